"""
concierge/embedder.py
---------------------
Text embedding via the OpenAI embeddings API.

`OpenAIEmbedder` is a plain callable `text -> list[float]` bound to one
model, which is the shape the engine and the vector cache expect from their
`embed_fn` collaborator.
"""

from typing import List, Optional

from openai import APIError, OpenAI

from concierge.config import Settings
from concierge.errors import EmbeddingFailure
from concierge.openai_client import build_openai_client


class OpenAIEmbedder:
    """Embeds one string per call with `settings.embedding_model`."""

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None):
        self.settings = settings
        self.model    = settings.embedding_model
        self._client  = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = build_openai_client(self.settings)
        return self._client

    def __call__(self, text: str) -> List[float]:
        """
        Args:
            text: Non-empty string to embed.

        Returns:
            The embedding as a list of floats.

        Raises:
            EmbeddingFailure: On missing API key, API or connection errors,
                              or a response without an embedding.
        """
        if not self.settings.openai_api_key:
            raise EmbeddingFailure("Missing OPENAI_API_KEY.")

        try:
            response = self.client.embeddings.create(model=self.model, input=text)
        except APIError as exc:
            raise EmbeddingFailure(f"Embedding request failed: {exc}") from exc

        try:
            embedding = response.data[0].embedding
        except (AttributeError, IndexError, TypeError) as exc:
            raise EmbeddingFailure("Embedding response missing 'data[0].embedding'.") from exc

        if not embedding:
            raise EmbeddingFailure("Embedding response contained an empty vector.")
        return [float(x) for x in embedding]
