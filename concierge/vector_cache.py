"""
concierge/vector_cache.py
-------------------------
In-memory cache of entry embeddings, one generation at a time.

A generation is stale when it is empty, was produced by a different
embedding model, covers a different number of entries than the current KB,
or is older than its TTL. A stale generation is recomputed in full: the
source offers no per-entry change signal, so an edited entry with an
unchanged id could not be detected by diffing.

Recomputation embeds entries one at a time and swaps the new generation in
only once every embedding succeeded; on failure the previous generation
stays in place.
"""

import threading
from dataclasses import dataclass, field
from typing import Callable, List, Sequence

import numpy as np

from concierge.errors import DimensionMismatch
from concierge.knowledge_base import KBEntry
from concierge.logging_config import get_logger

log = get_logger(__name__)

EmbedFn = Callable[[str], Sequence[float]]


@dataclass(frozen=True)
class EmbeddingVector:
    id: str
    embedding: np.ndarray


@dataclass
class VectorCacheState:
    generated_at: float = 0.0
    model_id: str = ""
    entry_count: int = 0
    vectors: List[EmbeddingVector] = field(default_factory=list)

    def matrix(self) -> np.ndarray:
        """Stacks the vectors into an (n, dim) array, in cache order."""
        if not self.vectors:
            return np.zeros((0, 0), dtype=np.float64)
        return np.vstack([v.embedding for v in self.vectors])


class VectorCache:
    """Holds the embedding vectors of every KB entry for up to `ttl` seconds."""

    def __init__(self, ttl: float = 1800.0):
        self.ttl    = ttl
        self._state = VectorCacheState()
        self._lock  = threading.Lock()

    @property
    def state(self) -> VectorCacheState:
        return self._state

    def is_stale(self, entry_count: int, model_id: str, now: float) -> bool:
        state = self._state
        return (
            not state.vectors
            or state.model_id != model_id
            or state.entry_count != entry_count
            or now - state.generated_at > self.ttl
        )

    def get_vectors(
        self,
        entries: Sequence[KBEntry],
        embed_fn: EmbedFn,
        model_id: str,
        now: float,
    ) -> VectorCacheState:
        """
        Returns the current generation, recomputing it when stale.

        Args:
            entries:  Current KB entries.
            embed_fn: Callable mapping text to an embedding.
            model_id: Identifier of the model behind `embed_fn`.
            now:      Current time in seconds.

        Returns:
            A VectorCacheState covering `entries`.

        Raises:
            Whatever `embed_fn` raises, or DimensionMismatch if the model
            returns vectors of differing length; the cache is left untouched.
        """
        if not self.is_stale(len(entries), model_id, now):
            return self._state

        with self._lock:
            if not self.is_stale(len(entries), model_id, now):
                return self._state

            log.info(
                "Vector cache stale — embedding %d entries with '%s'",
                len(entries), model_id,
            )
            vectors: List[EmbeddingVector] = []
            for entry in entries:
                embedding = np.asarray(embed_fn(entry.embedding_text()), dtype=np.float64)
                if vectors and embedding.shape != vectors[0].embedding.shape:
                    raise DimensionMismatch(
                        f"Entry {entry.id} embedded to {embedding.size} dimensions, "
                        f"expected {vectors[0].embedding.size}."
                    )
                vectors.append(EmbeddingVector(id=entry.id, embedding=embedding))

            self._state = VectorCacheState(
                generated_at=now,
                model_id=model_id,
                entry_count=len(entries),
                vectors=vectors,
            )
            log.info("Vector cache refreshed — %d vectors", len(vectors))
            return self._state

    def invalidate(self) -> None:
        with self._lock:
            self._state = VectorCacheState()
