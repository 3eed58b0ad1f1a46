"""
streamlit_app.py
----------------
Front-desk console for the hotel guide concierge.
Wraps build_engine() / answer_request() from app.py: type a question or
upload a voice recording and see the answer a guest would get.

Run with:
    streamlit run streamlit_app.py
"""

import sys
from dataclasses import replace
from pathlib import Path

import streamlit as st

# Make project root importable
sys.path.insert(0, str(Path(__file__).parent))

from app import answer_request, build_engine, build_transcriber
from concierge.config import Settings
from concierge.engine import ANSWERED
from concierge.errors import ConciergeError
from concierge.ingestor import IncomingRequest
from concierge.knowledge_base import KnowledgeBaseCache
from concierge.transcriber import AudioFile
from concierge.vector_cache import VectorCache
from validator.json_validator import ValidationError

# ── Page config ────────────────────────────────────────────────────────────────

st.set_page_config(
    page_title="Hotel Guide Concierge",
    page_icon="🛎️",
    layout="centered",
)

base_settings = Settings.from_env()

# ── Sidebar ────────────────────────────────────────────────────────────────────

with st.sidebar:
    st.header("⚙️ Configuration")
    threshold = st.slider(
        "Similarity threshold", min_value=0.0, max_value=1.0,
        value=base_settings.similarity_threshold, step=0.01,
    )
    top_k = st.slider("Top-k entries", min_value=1, max_value=10, value=base_settings.top_k)
    show_matches = st.checkbox("Show matches", value=base_settings.debug)
    st.markdown("---")
    st.caption(f"Embedding model: `{base_settings.embedding_model}`")
    st.caption("Requires OPENAI_API_KEY and WEBFLOW_* environment variables.")

settings = replace(base_settings, similarity_threshold=threshold, top_k=top_k)


# ── Caches (shared by every session) ───────────────────────────────────────────

@st.cache_resource
def load_caches(kb_cache_ttl: float, vector_cache_ttl: float):
    """One KB cache and one vector cache per process, survive reruns."""
    return KnowledgeBaseCache(ttl=kb_cache_ttl), VectorCache(ttl=vector_cache_ttl)


kb_cache, vector_cache = load_caches(settings.kb_cache_ttl, settings.vector_cache_ttl)

# Per run, with this session's threshold and top-k.
engine = build_engine(settings, kb_cache=kb_cache, vector_cache=vector_cache)

# ── Main UI ────────────────────────────────────────────────────────────────────

st.title("🛎️ Hotel Guide Concierge")
st.caption("Answers guest questions from the hotel guide")

question = st.text_input("Guest question", placeholder="When is checkout?")
recording = st.file_uploader("…or a voice recording", type=["mp3", "m4a", "wav", "webm", "ogg"])

if st.button("Ask", type="primary"):
    if recording is not None:
        request = IncomingRequest(
            method="POST",
            content_type="multipart/form-data",
            audio=AudioFile(
                filename=recording.name,
                content=recording.getvalue(),
                content_type=recording.type or "application/octet-stream",
            ),
        )
    else:
        request = IncomingRequest(method="GET", query_params={"text": question})

    with st.spinner("Looking it up…"):
        try:
            result = answer_request(request, engine, build_transcriber(settings))
        except ValidationError as exc:
            st.warning(str(exc))
            st.stop()
        except ConciergeError as exc:
            st.error(f"**{exc.stage} failed:** {exc}")
            st.stop()

    # ── Answer ──────────────────────────────────────────────────────────
    st.subheader("Answer")
    if result.status == ANSWERED:
        st.success(result.text)
    else:
        st.info(result.text)

    # ── Matches ─────────────────────────────────────────────────────────
    if show_matches and result.matches:
        st.subheader("Matches")
        entries = {e.id: e for e in (engine.kb_cache.state.entries or [])}
        for match in result.matches:
            entry = entries.get(match.id)
            label = entry.question if entry else match.id
            with st.expander(f"{match.score:.4f} — {label}"):
                st.caption(entry.answer if entry else "(no longer in the guide)")
