"""
concierge/config.py
-------------------
Runtime configuration, read from environment variables.

`Settings.from_env()` is the only place that touches os.environ; everything
else receives a Settings instance so tests can build one directly.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _optional(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(name, "").strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    embedding_model: str = "text-embedding-3-small"
    stt_model: str = "whisper-1"
    similarity_threshold: float = 0.82
    top_k: int = 3
    kb_cache_ttl: float = 300.0
    vector_cache_ttl: float = 1800.0
    webflow_token: Optional[str] = None
    webflow_site_id: Optional[str] = None
    webflow_collection_id: Optional[str] = None
    webflow_base_url: str = "https://api.webflow.com/v2"
    http_timeout: float = 30.0
    debug: bool = False
    warm_on_startup: bool = False

    def __post_init__(self):
        if self.top_k < 1:
            raise ValueError("TOP_K must be a positive integer.")
        if not -1.0 <= self.similarity_threshold <= 1.0:
            raise ValueError("SIMILARITY_THRESHOLD must lie in [-1, 1].")
        if self.kb_cache_ttl < 0 or self.vector_cache_ttl < 0:
            raise ValueError("Cache TTLs must be >= 0.")
        if self.http_timeout <= 0:
            raise ValueError("HTTP_TIMEOUT must be > 0.")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Builds Settings from `env` (defaults to os.environ)."""
        env = os.environ if env is None else env
        return cls(
            openai_api_key        = _optional(env, "OPENAI_API_KEY"),
            openai_base_url       = env.get("OPENAI_BASE_URL", cls.openai_base_url).rstrip("/"),
            embedding_model       = env.get("EMBEDDING_MODEL", cls.embedding_model),
            stt_model             = env.get("STT_MODEL", cls.stt_model),
            similarity_threshold  = float(env.get("SIMILARITY_THRESHOLD", "0.82")),
            top_k                 = int(env.get("TOP_K", "3")),
            kb_cache_ttl          = float(env.get("KB_CACHE_TTL", "300")),
            vector_cache_ttl      = float(env.get("VECTOR_CACHE_TTL", "1800")),
            webflow_token         = _optional(env, "WEBFLOW_TOKEN"),
            webflow_site_id       = _optional(env, "WEBFLOW_SITE_ID"),
            webflow_collection_id = _optional(env, "WEBFLOW_COLLECTION_ID"),
            webflow_base_url      = env.get("WEBFLOW_BASE_URL", cls.webflow_base_url).rstrip("/"),
            http_timeout          = float(env.get("HTTP_TIMEOUT", "30")),
            debug                 = _flag(env.get("DEBUG", "false")),
            warm_on_startup       = _flag(env.get("WARM_ON_STARTUP", "false")),
        )
