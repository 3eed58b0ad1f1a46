"""
app.py
------
Orchestration layer for the hotel guide concierge.

Wires the collaborators configured in the environment into one
RetrievalEngine and runs the per-request pipeline:

  INGEST  — request → extract_query() → plain-text question
            (audio uploads go through the transcriber)

  ANSWER  — question → RetrievalEngine.retrieve()
            → KB cache (Webflow) → vector cache (OpenAI embeddings)
            → cosine top-k → confidence gate → answer text

Both the HTTP service (service/api.py) and the Streamlit console import
from here. Run directly to answer one question from the command line:

    python app.py "When is checkout?"
"""

import json
import sys
from typing import Optional

from concierge.cms            import WebflowSource
from concierge.config         import Settings
from concierge.embedder       import OpenAIEmbedder
from concierge.engine         import RetrievalEngine, RetrievalResult
from concierge.errors         import ConciergeError
from concierge.ingestor       import IncomingRequest, TranscribeFn, extract_query
from concierge.knowledge_base import KnowledgeBaseCache
from concierge.logging_config import get_logger
from concierge.transcriber    import OpenAITranscriber
from concierge.vector_cache   import VectorCache

log = get_logger(__name__)


# ── Wiring ──────────────────────────────────────────────────────────────────────

def build_engine(
    settings: Settings,
    kb_cache: Optional[KnowledgeBaseCache] = None,
    vector_cache: Optional[VectorCache] = None,
) -> RetrievalEngine:
    """
    Builds an engine with the configured collaborators.

    Passing existing caches lets several engines (e.g. one per console
    session, each with its own threshold and top-k) share one KB and one
    vector generation; fresh caches are created otherwise.
    """
    return RetrievalEngine(
        fetch_fn     = WebflowSource(settings),
        embed_fn     = OpenAIEmbedder(settings),
        model_id     = settings.embedding_model,
        kb_cache     = kb_cache or KnowledgeBaseCache(ttl=settings.kb_cache_ttl),
        vector_cache = vector_cache or VectorCache(ttl=settings.vector_cache_ttl),
        threshold    = settings.similarity_threshold,
        top_k        = settings.top_k,
    )


def build_transcriber(settings: Settings) -> TranscribeFn:
    return OpenAITranscriber(settings)


# ── Per-request pipeline ────────────────────────────────────────────────────────

def answer_request(
    request: IncomingRequest,
    engine: RetrievalEngine,
    transcribe_fn: TranscribeFn,
) -> RetrievalResult:
    """
    Extracts the question from `request` and answers it.

    Raises:
        ValidationError: Malformed client input.
        ConciergeError:  Collaborator failure (KB, embedding, transcription).
    """
    query = extract_query(request, transcribe_fn)
    log.info("Query received — method=%s query='%.80s'", request.method, query)
    return engine.retrieve(query)


# ── Entry point ─────────────────────────────────────────────────────────────────

def main(argv: Optional[list] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    question = " ".join(argv) or "When is checkout?"

    settings = Settings.from_env()
    engine   = build_engine(settings)
    request  = IncomingRequest(method="GET", query_params={"text": question})

    try:
        result = answer_request(request, engine, build_transcriber(settings))
    except ConciergeError as exc:
        print(f"[ERROR] {exc.stage}: {exc}", file=sys.stderr)
        return 1

    print(json.dumps({"text": result.text}, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
