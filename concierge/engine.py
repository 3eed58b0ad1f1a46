"""
concierge/engine.py
-------------------
Retrieval engine: guest question in, guide answer out.

Per query:
    query → KB cache → vector cache → embed query → score every entry
          → top-k (stable, score descending) → confidence gate → answer text

The answers of ALL top-k entries that survive the gate are joined, in score
order, so a question touching several guide entries gets every relevant fact.

Empty query, empty guide and low confidence are ordinary outcomes with fixed
guest-facing messages, not exceptions. Collaborator failures propagate.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np

from concierge.knowledge_base import FetchFn, KBEntry, KnowledgeBaseCache
from concierge.logging_config import get_logger
from concierge.similarity import score_matrix
from concierge.vector_cache import EmbedFn, VectorCache, VectorCacheState

log = get_logger(__name__)

# ── Guest-facing messages ──────────────────────────────────────────────────────
CLARIFY_MESSAGE     = "I didn't catch that. Could you repeat your question?"
EMPTY_GUIDE_MESSAGE = "The hotel guide is empty. Please check back soon."
NO_MATCH_MESSAGE    = (
    "I don't have that in the hotel guide. "
    "Would you like the front desk contact details?"
)
# ──────────────────────────────────────────────────────────────────────────────

ANSWERED    = "answered"
NO_MATCH    = "no_match"
EMPTY_GUIDE = "empty_guide"
EMPTY_QUERY = "empty_query"


@dataclass(frozen=True)
class ScoredCandidate:
    id: str
    score: float


@dataclass
class RetrievalResult:
    status: str
    text: str
    matches: List[ScoredCandidate] = field(default_factory=list)


def rank(
    query_embedding,
    state: VectorCacheState,
    top_k: int,
) -> List[ScoredCandidate]:
    """
    Scores the query against every cached vector and keeps the best `top_k`.

    Ties keep the order of the vectors in the cache.
    """
    if not state.vectors:
        return []
    scores = score_matrix(query_embedding, state.matrix())
    order  = np.argsort(-scores, kind="stable")[:top_k]
    return [
        ScoredCandidate(id=state.vectors[i].id, score=float(scores[i]))
        for i in order
    ]


def compose_answer(
    candidates: List[ScoredCandidate],
    entries: List[KBEntry],
) -> str:
    """Joins the answers of `candidates`, skipping ids no longer in the KB."""
    by_id: Dict[str, KBEntry] = {e.id: e for e in entries}
    return " ".join(
        by_id[c.id].answer for c in candidates if c.id in by_id
    )


class RetrievalEngine:
    """
    Answers guest questions from the knowledge base.

    Args:
        fetch_fn:     Returns raw CMS records (see concierge/cms.py).
        embed_fn:     Maps text to an embedding (see concierge/embedder.py).
        model_id:     Identifier of the embedding model behind `embed_fn`.
        kb_cache:     Shared KB cache; a fresh one is created if omitted.
        vector_cache: Shared vector cache; a fresh one is created if omitted.
        threshold:    Minimum top score for an answer to be returned.
        top_k:        Number of entries whose answers are joined.
        clock:        Returns the current time in seconds.
    """

    def __init__(
        self,
        fetch_fn: FetchFn,
        embed_fn: EmbedFn,
        model_id: str,
        kb_cache: Optional[KnowledgeBaseCache] = None,
        vector_cache: Optional[VectorCache] = None,
        threshold: float = 0.82,
        top_k: int = 3,
        clock: Callable[[], float] = time.time,
    ):
        self.fetch_fn     = fetch_fn
        self.embed_fn     = embed_fn
        self.model_id     = model_id
        self.kb_cache     = kb_cache if kb_cache is not None else KnowledgeBaseCache()
        self.vector_cache = vector_cache if vector_cache is not None else VectorCache()
        self.threshold    = threshold
        self.top_k        = top_k
        self.clock        = clock

    def warm(self) -> VectorCacheState:
        """Loads the KB and its vectors ahead of the first question."""
        now     = self.clock()
        entries = self.kb_cache.get_entries(self.fetch_fn, now)
        return self.vector_cache.get_vectors(entries, self.embed_fn, self.model_id, now)

    def retrieve(self, query_text: str) -> RetrievalResult:
        """
        Runs the full retrieval pipeline for one question.

        Raises:
            SourceUnavailable, EmbeddingFailure, DimensionMismatch:
                propagated from the collaborators and the scorer.
        """
        query_text = (query_text or "").strip()
        if not query_text:
            log.info("Empty query — asking the guest to repeat")
            return RetrievalResult(status=EMPTY_QUERY, text=CLARIFY_MESSAGE)

        now     = self.clock()
        entries = self.kb_cache.get_entries(self.fetch_fn, now)
        if not entries:
            log.info("Knowledge base is empty — nothing to retrieve from")
            return RetrievalResult(status=EMPTY_GUIDE, text=EMPTY_GUIDE_MESSAGE)

        state     = self.vector_cache.get_vectors(entries, self.embed_fn, self.model_id, now)
        query_vec = np.asarray(self.embed_fn(query_text), dtype=np.float64)
        top       = rank(query_vec, state, self.top_k)
        log.debug("Top candidates: %s", [(c.id, round(c.score, 4)) for c in top])

        if not top or top[0].score < self.threshold:
            log.info(
                "No confident match for query='%.80s' (best=%.4f, threshold=%.2f)",
                query_text, top[0].score if top else float("nan"), self.threshold,
            )
            return RetrievalResult(status=NO_MATCH, text=NO_MATCH_MESSAGE, matches=top)

        text = compose_answer(top, entries)
        if not text:
            # Every candidate vanished in a KB refresh between the two caches.
            return RetrievalResult(status=NO_MATCH, text=NO_MATCH_MESSAGE, matches=top)

        log.info(
            "Answered query='%.80s' from %d entr%s (best=%.4f)",
            query_text, len(top), "y" if len(top) == 1 else "ies", top[0].score,
        )
        return RetrievalResult(status=ANSWERED, text=text, matches=top)

    def answer(self, query_text: str) -> str:
        """Returns the guest-facing answer text for `query_text`."""
        return self.retrieve(query_text).text
