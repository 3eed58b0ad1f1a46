import pytest
from fastapi.testclient import TestClient

from concierge.config import Settings
from concierge.engine import (
    CLARIFY_MESSAGE,
    EMPTY_GUIDE_MESSAGE,
    NO_MATCH_MESSAGE,
    RetrievalEngine,
)
from concierge.errors import TranscriptionFailure
from concierge.knowledge_base import KnowledgeBaseCache
from concierge.vector_cache import VectorCache
from service.api import SERVER_ERROR_MESSAGE, create_app

from conftest import FakeClock, FakeEmbedder, FakeSource, entry_text, make_record

CHECKOUT_Q = "When is checkout?"
CHECKOUT_A = "Checkout is at 11am."


class FakeTranscriber:
    def __init__(self, transcript=CHECKOUT_Q):
        self.transcript = transcript
        self.fail = False
        self.calls = []

    def __call__(self, audio):
        self.calls.append(audio)
        if self.fail:
            raise TranscriptionFailure("stt down")
        return self.transcript


@pytest.fixture
def source():
    return FakeSource([make_record("c", CHECKOUT_Q, CHECKOUT_A)])


@pytest.fixture
def embedder():
    vector = [0.1, 0.8, 0.3]
    return FakeEmbedder(
        {entry_text(CHECKOUT_Q, CHECKOUT_A): vector, CHECKOUT_Q: vector},
        default=[1.0, 0.0, 0.0],
    )


@pytest.fixture
def transcriber():
    return FakeTranscriber()


def _client(source, embedder, transcriber, debug=False):
    engine = RetrievalEngine(
        fetch_fn     = source,
        embed_fn     = embedder,
        model_id     = "test-model",
        kb_cache     = KnowledgeBaseCache(),
        vector_cache = VectorCache(),
        clock        = FakeClock(),
    )
    app = create_app(settings=Settings(debug=debug), engine=engine, transcribe_fn=transcriber)
    return TestClient(app)


@pytest.fixture
def client(source, embedder, transcriber):
    return _client(source, embedder, transcriber)


# ── /ask ───────────────────────────────────────────────────────────────────────

def test_get_with_text_parameter(client):
    response = client.get("/ask", params={"text": CHECKOUT_Q})
    assert response.status_code == 200
    assert response.json() == {"text": CHECKOUT_A}


def test_get_with_q_parameter(client):
    assert client.get("/ask", params={"q": CHECKOUT_Q}).json() == {"text": CHECKOUT_A}


def test_post_json_question_field(client):
    response = client.post("/ask", json={"question": CHECKOUT_Q})
    assert response.status_code == 200
    assert response.json() == {"text": CHECKOUT_A}


def test_post_audio_upload(client, transcriber):
    response = client.post(
        "/ask",
        files={"audio": ("question.webm", b"\x1aE\xdf\xa3", "audio/webm")},
    )
    assert response.status_code == 200
    assert response.json() == {"text": CHECKOUT_A}
    assert transcriber.calls[0].filename == "question.webm"
    assert transcriber.calls[0].content == b"\x1aE\xdf\xa3"


def test_multipart_without_audio_is_a_client_error(client, transcriber):
    response = client.post("/ask", data={"note": "no file"}, files={"other": ("x.txt", b"x", "text/plain")})
    assert response.status_code == 400
    assert response.json() == {"text": "Missing audio file"}
    assert transcriber.calls == []


def test_malformed_json_is_a_client_error(client):
    response = client.post("/ask", content=b"{oops", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert "Invalid JSON" in response.json()["text"]


def test_empty_query_asks_for_repeat(client, embedder, source):
    response = client.get("/ask")
    assert response.status_code == 200
    assert response.json() == {"text": CLARIFY_MESSAGE}
    assert embedder.calls == []
    assert source.calls == 0


def test_unintelligible_audio_asks_for_repeat(client, transcriber):
    transcriber.transcript = ""
    response = client.post("/ask", files={"audio": ("q.webm", b"...", "audio/webm")})
    assert response.json() == {"text": CLARIFY_MESSAGE}


def test_no_match_is_a_success(client):
    response = client.get("/ask", params={"text": "Do you allow pets?"})
    assert response.status_code == 200
    assert response.json() == {"text": NO_MATCH_MESSAGE}


def test_empty_guide_is_a_success(client, source):
    source.records = []
    response = client.get("/ask", params={"text": CHECKOUT_Q})
    assert response.status_code == 200
    assert response.json() == {"text": EMPTY_GUIDE_MESSAGE}


def test_source_failure_is_a_generic_server_error(client, source):
    source.fail = True
    response = client.get("/ask", params={"text": CHECKOUT_Q})
    assert response.status_code == 500
    assert response.json() == {"text": SERVER_ERROR_MESSAGE}


def test_transcription_failure_is_a_generic_server_error(client, transcriber):
    transcriber.fail = True
    response = client.post("/ask", files={"audio": ("q.webm", b"...", "audio/webm")})
    assert response.status_code == 500
    assert response.json() == {"text": SERVER_ERROR_MESSAGE}


def test_unexpected_failure_is_a_generic_server_error(source, transcriber):
    def broken_embedder(text):
        raise KeyError("boom")

    client = _client(source, broken_embedder, transcriber)
    response = client.get("/ask", params={"text": CHECKOUT_Q})
    assert response.status_code == 500
    assert response.json() == {"text": SERVER_ERROR_MESSAGE}


def test_debug_mode_exposes_failing_stage(source, embedder, transcriber):
    embedder.fail = True
    client = _client(source, embedder, transcriber, debug=True)

    body = client.get("/ask", params={"text": CHECKOUT_Q}).json()

    assert body["text"] == SERVER_ERROR_MESSAGE
    assert body["error"] == {"stage": "embedding", "detail": "embedding service down"}


def test_debug_mode_includes_matches(source, embedder, transcriber):
    client = _client(source, embedder, transcriber, debug=True)

    body = client.get("/ask", params={"text": CHECKOUT_Q}).json()

    assert body["text"] == CHECKOUT_A
    assert body["debug"]["status"] == "answered"
    assert body["debug"]["matches"][0]["id"] == "c"
    assert body["debug"]["matches"][0]["score"] == pytest.approx(1.0)


def test_unsupported_method(client):
    assert client.put("/ask", json={"text": "x"}).status_code == 405


def test_cors_preflight(client):
    response = client.options(
        "/ask",
        headers={"Origin": "https://hotel.example", "Access-Control-Request-Method": "POST"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


# ── /health and diagnostics ────────────────────────────────────────────────────

def test_health_reports_cache_sizes_without_fetching(client, source):
    before = client.get("/health").json()
    assert before == {"status": "ok", "embedding_model": "test-model", "kb_entries": 0, "vectors": 0}
    assert source.calls == 0

    client.get("/ask", params={"text": CHECKOUT_Q})
    after = client.get("/health").json()
    assert after["kb_entries"] == 1
    assert after["vectors"] == 1


def test_diagnostics_hidden_outside_debug(client):
    assert client.get("/diagnostics/kb").status_code == 404
    assert client.get("/diagnostics/embedding").status_code == 404


def test_kb_diagnostics(source, embedder, transcriber):
    source.records[0]["fieldData"]["keywords / variations"] = "check out"
    client = _client(source, embedder, transcriber, debug=True)

    body = client.get("/diagnostics/kb").json()

    assert body["ok"] is True
    assert body["count"] == 1
    assert body["sample"]["id"] == "c"
    assert body["sample"]["question"] == CHECKOUT_Q
    assert body["sample"]["keywords/variations"] == "check out"


def test_kb_diagnostics_failure(source, embedder, transcriber):
    source.fail = True
    client = _client(source, embedder, transcriber, debug=True)

    response = client.get("/diagnostics/kb")

    assert response.status_code == 500
    assert response.json() == {
        "ok": False,
        "where": "knowledge_base",
        "detail": "Webflow fetch failed: 503",
    }


def test_embedding_diagnostics(source, embedder, transcriber):
    client = _client(source, embedder, transcriber, debug=True)
    assert client.get("/diagnostics/embedding").json() == {"ok": True, "model": "test-model", "dim": 3}


def test_startup_warm_up_failure_is_not_fatal(source, embedder, transcriber):
    source.fail = True
    engine = RetrievalEngine(fetch_fn=source, embed_fn=embedder, model_id="test-model", clock=FakeClock())
    app = create_app(settings=Settings(warm_on_startup=True), engine=engine, transcribe_fn=transcriber)

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
    assert source.calls == 1


def test_malformed_cms_item_is_skipped(source, embedder, transcriber):
    source.records.append(None)
    source.records.append("garbage")
    client = _client(source, embedder, transcriber)

    response = client.get("/ask", params={"text": CHECKOUT_Q})

    assert response.status_code == 200
    assert response.json() == {"text": CHECKOUT_A}
    client.get("/ask", params={"text": CHECKOUT_Q})
    assert source.calls == 1


def test_startup_survives_unexpected_warm_up_error(source, transcriber):
    def broken_embedder(text):
        raise KeyError("boom")

    engine = RetrievalEngine(fetch_fn=source, embed_fn=broken_embedder, model_id="test-model", clock=FakeClock())
    app = create_app(settings=Settings(warm_on_startup=True), engine=engine, transcribe_fn=transcriber)

    with TestClient(app) as client:
        assert client.get("/health").json()["vectors"] == 0


def test_embedding_diagnostics_failure(source, embedder, transcriber):
    embedder.fail = True
    client = _client(source, embedder, transcriber, debug=True)

    response = client.get("/diagnostics/embedding")

    assert response.status_code == 500
    assert response.json() == {"ok": False, "where": "embedding", "detail": "embedding service down"}


def test_kb_diagnostics_tolerates_malformed_first_item(source, embedder, transcriber):
    source.records.insert(0, "garbage")
    client = _client(source, embedder, transcriber, debug=True)

    assert client.get("/diagnostics/kb").json() == {"ok": True, "count": 2, "sample": None}
