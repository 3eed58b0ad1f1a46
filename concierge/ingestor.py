"""
concierge/ingestor.py
---------------------
Turns an incoming request into one plain-text guest question.

The request is resolved once, from its method and declared content type,
into exactly one source variant:

    POST multipart/form-data  →  AudioUpload   (transcribed)
    POST anything else        →  JsonBody      ("text", then "question")
    GET                       →  QueryString   ("text", then "q")

Every variant yields a trimmed string. An empty string is a valid result
meaning "could not understand"; the engine answers it with a clarification.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union

from concierge.logging_config import get_logger
from concierge.transcriber import AudioFile
from validator.json_validator import ValidationError, validate_json_string

log = get_logger(__name__)

TranscribeFn = Callable[[AudioFile], str]

JSON_FIELDS         = ("text", "question")
QUERY_STRING_FIELDS = ("text", "q")


@dataclass(frozen=True)
class IncomingRequest:
    method: str
    content_type: str = ""
    body: bytes = b""
    query_params: Mapping[str, str] = field(default_factory=dict)
    audio: Optional[AudioFile] = None


@dataclass(frozen=True)
class AudioUpload:
    audio: Optional[AudioFile]


@dataclass(frozen=True)
class JsonBody:
    raw: str


@dataclass(frozen=True)
class QueryString:
    params: Mapping[str, str]


QuerySource = Union[AudioUpload, JsonBody, QueryString]


def is_multipart(content_type: str) -> bool:
    return "multipart/form-data" in (content_type or "").lower()


def resolve_source(request: IncomingRequest) -> QuerySource:
    """
    Picks the source variant for `request`.

    Raises:
        ValidationError: For methods other than GET and POST.
    """
    method = request.method.upper()
    if method == "POST":
        if is_multipart(request.content_type):
            return AudioUpload(audio=request.audio)
        return JsonBody(raw=request.body.decode("utf-8", errors="replace"))
    if method == "GET":
        return QueryString(params=request.query_params)
    raise ValidationError(f"Method {request.method} not allowed.")


def _first_text(values: Mapping[str, Any], keys) -> str:
    for key in keys:
        value = values.get(key)
        if value not in (None, ""):
            return str(value).strip()
    return ""


def extract_query(request: IncomingRequest, transcribe_fn: TranscribeFn) -> str:
    """
    Returns the guest question carried by `request`, possibly empty.

    Args:
        request:       Normalised request.
        transcribe_fn: Speech-to-text collaborator, called for audio only.

    Raises:
        ValidationError:      Missing audio upload or malformed JSON body.
        TranscriptionFailure: Propagated from `transcribe_fn`.
    """
    source = resolve_source(request)

    if isinstance(source, AudioUpload):
        if source.audio is None:
            raise ValidationError("Missing audio file")
        log.info("Transcribing audio upload '%s' (%d bytes)",
                 source.audio.filename, len(source.audio.content))
        return (transcribe_fn(source.audio) or "").strip()

    if isinstance(source, JsonBody):
        return _first_text(validate_json_string(source.raw), JSON_FIELDS)

    return _first_text(source.params, QUERY_STRING_FIELDS)
