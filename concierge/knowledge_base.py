"""
concierge/knowledge_base.py
---------------------------
Knowledge-base entries and their time-based cache.

Raw CMS records are normalised into KBEntry objects by a single adapter,
`normalize_record()`, so that naming drift in the source schema is a
one-place change. The cache holds one generation of entries and replaces it
wholesale once it is older than its TTL; a failed fetch leaves the previous
generation untouched.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from concierge.logging_config import get_logger

log = get_logger(__name__)

# Candidate keys for the "Keywords / Variations" field, in priority order.
KEYWORD_FIELD_ALIASES: Tuple[str, ...] = (
    "keywords / variations",
    "keywords-/-variations",
    "keywords",
)

# Plain-text representations a rich-text answer object may expose.
RICH_TEXT_KEYS: Tuple[str, ...] = ("plainText", "text")

FetchFn = Callable[[], Sequence[Mapping[str, Any]]]


@dataclass(frozen=True)
class KBEntry:
    id: str
    question: str
    question_patterns: Tuple[str, ...]
    answer: str

    def embedding_text(self) -> str:
        """Text sent to the embedding model for this entry."""
        return " ; ".join(self.question_patterns) + "\n\n" + self.answer


@dataclass
class KBCacheState:
    fetched_at: float = 0.0
    entries: Optional[List[KBEntry]] = None


# ── Record adapter ─────────────────────────────────────────────────────────────

def _first_present(fields: Mapping[str, Any], keys: Sequence[str]) -> Any:
    """Returns the first value under `keys` that is present and non-empty."""
    for key in keys:
        value = fields.get(key)
        if value not in (None, ""):
            return value
    return None


def _plain_text(value: Any) -> str:
    if isinstance(value, Mapping):
        value = _first_present(value, RICH_TEXT_KEYS)
    if value is None:
        return ""
    return str(value).strip()


def normalize_record(record: Mapping[str, Any], index: int) -> Optional[KBEntry]:
    """
    Maps one raw CMS record to a KBEntry.

    Args:
        record: Raw item; fields live under "fieldData" when present.
        index:  Position of the record in the fetched batch, used as the id
                of last resort.

    Returns:
        A KBEntry, or None when the record has no answer text.
    """
    fields = record.get("fieldData") or record

    entry_id = _first_present(fields, ("_id",))
    if entry_id is None:
        entry_id = _first_present(record, ("id",))
    if entry_id is None:
        entry_id = index

    answer = _plain_text(fields.get("answer"))
    if not answer:
        return None

    question = _plain_text(fields.get("question"))
    keywords = _first_present(fields, KEYWORD_FIELD_ALIASES) or ""
    variants = [kw.strip() for kw in str(keywords).split(",") if kw.strip()]
    patterns = tuple(p for p in [question, *variants] if p)

    return KBEntry(
        id=str(entry_id),
        question=question,
        question_patterns=patterns,
        answer=answer,
    )


def is_record(record: Any) -> bool:
    """True for a mapping whose fieldData, when present, is a mapping too."""
    if not isinstance(record, Mapping):
        return False
    fields = record.get("fieldData")
    return not fields or isinstance(fields, Mapping)


def normalize_records(records: Sequence[Any]) -> List[KBEntry]:
    """Normalises a fetched batch, dropping malformed items and empty answers."""
    entries: List[KBEntry] = []
    for i, record in enumerate(records):
        if not is_record(record):
            log.warning("Dropping KB record %d — not an object (%s)", i, type(record).__name__)
            continue
        entry = normalize_record(record, i)
        if entry is None:
            log.warning("Dropping KB record %d — empty answer", i)
            continue
        entries.append(entry)
    return entries


# ── Cache ──────────────────────────────────────────────────────────────────────

class KnowledgeBaseCache:
    """Holds the most recently fetched KB entries for `ttl` seconds."""

    def __init__(self, ttl: float = 300.0):
        self.ttl    = ttl
        self._state = KBCacheState()
        self._lock  = threading.Lock()

    @property
    def state(self) -> KBCacheState:
        return self._state

    def is_fresh(self, now: float) -> bool:
        state = self._state
        return state.entries is not None and now - state.fetched_at < self.ttl

    def get_entries(self, fetch_fn: FetchFn, now: float) -> List[KBEntry]:
        """
        Returns the cached entries, refetching them when stale.

        Args:
            fetch_fn: Zero-argument callable returning raw CMS records.
            now:      Current time in seconds.

        Returns:
            The entries of the current generation.

        Raises:
            Whatever `fetch_fn` raises; the cache is left untouched.
        """
        if self.is_fresh(now):
            return self._state.entries

        with self._lock:
            # Another caller may have refreshed while we waited.
            if self.is_fresh(now):
                return self._state.entries

            log.info("KB cache stale — fetching entries")
            records = fetch_fn()
            entries = normalize_records(records)
            self._state = KBCacheState(fetched_at=now, entries=entries)
            log.info(
                "KB cache refreshed — %d entries from %d records",
                len(entries), len(records),
            )
            return entries

    def invalidate(self) -> None:
        with self._lock:
            self._state = KBCacheState()
