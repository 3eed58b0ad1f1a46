"""
concierge/errors.py
-------------------
Exception taxonomy for collaborator failures.

Every error carries a `stage` label naming the pipeline step that failed,
which the HTTP boundary logs and, in debug mode only, echoes to the caller.

Degraded-but-handled outcomes (empty query, empty guide, no match) are NOT
exceptions — see concierge/engine.py.
"""


class ConciergeError(RuntimeError):
    """Base class for failures that surface as a server error."""

    stage = "internal"


class SourceUnavailable(ConciergeError):
    """The knowledge-base source could not be read (credentials, network, payload)."""

    stage = "knowledge_base"


class EmbeddingFailure(ConciergeError):
    """The embedding service failed or returned an unusable vector."""

    stage = "embedding"


class TranscriptionFailure(ConciergeError):
    """The speech-to-text service failed."""

    stage = "transcription"


class DimensionMismatch(ConciergeError, ValueError):
    """Two vectors of different length were compared — a model mix-up."""

    stage = "scoring"
