"""
concierge/transcriber.py
------------------------
Speech-to-text via the OpenAI audio transcription API.

The audio is forwarded as-is; format handling is left to the service.
Unintelligible audio comes back as an empty transcript, which is not an
error.
"""

from dataclasses import dataclass
from typing import Optional

from openai import APIError, OpenAI

from concierge.config import Settings
from concierge.errors import TranscriptionFailure
from concierge.openai_client import build_openai_client


@dataclass(frozen=True)
class AudioFile:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


class OpenAITranscriber:
    """Transcribes one audio file per call with `settings.stt_model`."""

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None):
        self.settings = settings
        self._client  = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = build_openai_client(self.settings)
        return self._client

    def __call__(self, audio: AudioFile) -> str:
        """
        Returns the trimmed transcript, possibly empty.

        Raises:
            TranscriptionFailure: On missing API key, API or connection errors.
        """
        if not self.settings.openai_api_key:
            raise TranscriptionFailure("Missing OPENAI_API_KEY.")

        try:
            response = self.client.audio.transcriptions.create(
                model = self.settings.stt_model,
                file  = (audio.filename, audio.content, audio.content_type),
            )
        except APIError as exc:
            raise TranscriptionFailure(f"Transcription request failed: {exc}") from exc

        return str(getattr(response, "text", "") or "").strip()
