"""
service/api.py
--------------
FastAPI service layer for the hotel guide concierge.

Endpoints:
    GET  /ask?text=… | ?q=…                  →  {"text": str}
    POST /ask  {"text"|"question": str}      →  {"text": str}
    POST /ask  multipart/form-data, "audio"  →  {"text": str}
    GET  /health                             →  liveness + cache sizes
    GET  /diagnostics/kb                     →  first raw CMS record   (DEBUG only)
    GET  /diagnostics/embedding              →  embedding dimension    (DEBUG only)

Status mapping for /ask:
    200  answer, or a handled state (empty question, empty guide, no match)
    400  malformed client input (bad JSON body, missing audio upload)
    500  collaborator or internal failure — generic text only, unless DEBUG
         is set, in which case the failing stage and message are included

Run with:
    uvicorn service.api:app --host 0.0.0.0 --port 8000
"""

from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from app import answer_request, build_engine, build_transcriber
from concierge.config         import Settings
from concierge.engine         import RetrievalEngine
from concierge.errors         import ConciergeError
from concierge.ingestor       import IncomingRequest, TranscribeFn, is_multipart
from concierge.knowledge_base import is_record
from concierge.logging_config import get_logger
from concierge.transcriber    import AudioFile
from validator.json_validator import ValidationError, validate

log = get_logger(__name__)

SERVER_ERROR_MESSAGE = "Server error. Please try again in a moment."
SAMPLE_TEXT          = "hello from the hotel guide"


# ── Response models ────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    embedding_model: str
    kb_entries: int
    vectors: int


class KBDiagnostics(BaseModel):
    ok: bool
    count: int
    sample: Optional[Dict[str, Any]] = None


class EmbeddingDiagnostics(BaseModel):
    ok: bool
    model: str
    dim: int


# ── Helpers ────────────────────────────────────────────────────────────────────

def _text_response(status_code: int, payload: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=dict(validate(payload)))


def _failure_payload(exc: Exception, stage: str, debug: bool) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"text": SERVER_ERROR_MESSAGE}
    if debug:
        payload["error"] = {"stage": stage, "detail": str(exc)}
    return payload


async def _incoming(request: Request) -> IncomingRequest:
    """Reads the raw request into the transport-neutral IncomingRequest."""
    content_type = request.headers.get("content-type", "")
    audio: Optional[AudioFile] = None
    body = b""

    if request.method == "POST" and is_multipart(content_type):
        form   = await request.form()
        upload = form.get("audio")
        if isinstance(upload, UploadFile):
            audio = AudioFile(
                filename     = upload.filename or "audio",
                content      = await upload.read(),
                content_type = upload.content_type or "application/octet-stream",
            )
    elif request.method == "POST":
        body = await request.body()

    return IncomingRequest(
        method       = request.method,
        content_type = content_type,
        body         = body,
        query_params = dict(request.query_params),
        audio        = audio,
    )


def _require_debug(request: Request) -> None:
    if not request.app.state.settings.debug:
        raise HTTPException(status_code=404, detail="Not Found")


def _diagnostics_failure(exc: ConciergeError) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"ok": False, "where": exc.stage, "detail": str(exc)},
    )


# ── App factory ────────────────────────────────────────────────────────────────

def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[RetrievalEngine] = None,
    transcribe_fn: Optional[TranscribeFn] = None,
) -> FastAPI:
    """
    Builds the FastAPI app.

    Collaborators default to the ones configured in `settings` (itself read
    from the environment when omitted); tests inject fakes instead.
    """
    settings      = settings or Settings.from_env()
    engine        = engine or build_engine(settings)
    transcribe_fn = transcribe_fn or build_transcriber(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info(
            "Service startup — model=%s threshold=%.2f top_k=%d debug=%s",
            settings.embedding_model, settings.similarity_threshold,
            settings.top_k, settings.debug,
        )
        if settings.warm_on_startup:
            try:
                state = await run_in_threadpool(engine.warm)
                log.info("Warm-up complete — %d vectors cached", len(state.vectors))
            except ConciergeError as exc:
                log.warning("Warm-up failed at stage '%s': %s", exc.stage, exc)
            except Exception:
                log.exception("Warm-up failed unexpectedly")
        yield
        log.info("Service shutdown — caches released")

    app = FastAPI(
        title       = "Hotel Guide Concierge API",
        description = "Answers guest questions from the hotel guide, by text or voice.",
        version     = "1.0.0",
        lifespan    = lifespan,
    )
    app.state.settings      = settings
    app.state.engine        = engine
    app.state.transcribe_fn = transcribe_fn

    app.add_middleware(
        CORSMiddleware,
        allow_origins = ["*"],
        allow_methods = ["GET", "POST", "OPTIONS"],
        allow_headers = ["Content-Type"],
    )

    # ── Endpoints ──────────────────────────────────────────────────────────────

    @app.api_route("/ask", methods=["GET", "POST"], tags=["concierge"])
    async def ask(request: Request):
        """Answer one guest question given as text, JSON or an audio upload."""
        try:
            incoming = await _incoming(request)
            result   = await run_in_threadpool(
                answer_request, incoming, engine, transcribe_fn,
            )
        except ValidationError as exc:
            log.warning("%s /ask rejected — %s", request.method, exc)
            return _text_response(400, {"text": str(exc)})
        except ConciergeError as exc:
            log.error("%s /ask failed at stage '%s': %s", request.method, exc.stage, exc)
            return _text_response(500, _failure_payload(exc, exc.stage, settings.debug))
        except Exception as exc:
            log.exception("%s /ask failed unexpectedly", request.method)
            return _text_response(500, _failure_payload(exc, "internal", settings.debug))

        payload: Dict[str, Any] = {"text": result.text}
        if settings.debug:
            payload["debug"] = {
                "status":  result.status,
                "matches": [asdict(m) for m in result.matches],
            }
        return _text_response(200, payload)

    @app.get("/health", tags=["ops"], response_model=HealthResponse)
    def health_check():
        """
        Liveness check with cache sizes.

        Does NOT trigger a KB fetch or any embedding call.
        """
        entries = engine.kb_cache.state.entries or []
        return HealthResponse(
            status          = "ok",
            embedding_model = engine.model_id,
            kb_entries      = len(entries),
            vectors         = len(engine.vector_cache.state.vectors),
        )

    @app.get("/diagnostics/kb", tags=["ops"], response_model=KBDiagnostics)
    def kb_diagnostics(request: Request):
        """Fetches the raw collection, bypassing the cache, and describes item one."""
        _require_debug(request)
        try:
            records = engine.fetch_fn()
        except ConciergeError as exc:
            log.error("KB diagnostics failed: %s", exc)
            return _diagnostics_failure(exc)

        sample = None
        if records and is_record(records[0]):
            first  = records[0]
            fields = first.get("fieldData") or first
            sample = {
                "id":       fields.get("_id") or first.get("id"),
                "keys":     list(fields.keys())[:10],
                "question": fields.get("question"),
                "answer":   fields.get("answer"),
                "keywords/variations": (
                    fields.get("keywords / variations")
                    or fields.get("keywords-/-variations")
                ),
            }
        return KBDiagnostics(ok=True, count=len(records), sample=sample)

    @app.get("/diagnostics/embedding", tags=["ops"], response_model=EmbeddingDiagnostics)
    def embedding_diagnostics(request: Request):
        """Embeds a fixed sample string and reports the vector dimension."""
        _require_debug(request)
        try:
            vector = engine.embed_fn(SAMPLE_TEXT)
        except ConciergeError as exc:
            log.error("Embedding diagnostics failed: %s", exc)
            return _diagnostics_failure(exc)
        return EmbeddingDiagnostics(ok=True, model=engine.model_id, dim=len(vector))

    return app


app = create_app()
