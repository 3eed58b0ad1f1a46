"""Shared fakes: a controllable clock and recording collaborators."""

from typing import Dict, List, Optional, Sequence

import pytest

from concierge.errors import EmbeddingFailure, SourceUnavailable


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeEmbedder:
    """Returns canned vectors; texts without one map to `default`."""

    def __init__(self, vectors: Optional[Dict[str, Sequence[float]]] = None,
                 default: Sequence[float] = (0.0, 0.0, 1.0)):
        self.vectors = dict(vectors or {})
        self.default = list(default)
        self.calls: List[str] = []
        self.fail = False

    def __call__(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise EmbeddingFailure("embedding service down")
        return list(self.vectors.get(text, self.default))


class FakeSource:
    """Returns `records`; counts fetches; can be switched to fail."""

    def __init__(self, records: Optional[List[dict]] = None):
        self.records = list(records or [])
        self.calls = 0
        self.fail = False

    def __call__(self) -> List[dict]:
        self.calls += 1
        if self.fail:
            raise SourceUnavailable("Webflow fetch failed: 503")
        return list(self.records)


def make_record(item_id: str, question: str, answer: str, keywords: str = "") -> dict:
    fields = {"_id": item_id, "question": question, "answer": answer}
    if keywords:
        fields["keywords-/-variations"] = keywords
    return {"id": item_id, "fieldData": fields}


def entry_text(question: str, answer: str, keywords: Sequence[str] = ()) -> str:
    """Embedding input the vector cache builds for a record."""
    return " ; ".join([question, *keywords]) + "\n\n" + answer


@pytest.fixture
def clock():
    return FakeClock()
