"""
AlumGlass - Centralized Configuration
======================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Credentials
-----------
- ``GEMINI_GENERATION_KEYS`` is a JSON object of ``{name: key}`` pairs.
  Insertion order **is** the rotation priority, e.g.
  ``{"free": "...", "paid": "..."}`` tries the free-tier key first.
- ``GEMINI_EMBEDDING_KEY`` is the single dedicated embedding credential.
- ``MONGO_URI`` and ``ASTRA_DB_TOKEN`` are ``SecretStr``; raw values never
  appear in repr, logs, or tracebacks.

All of the above are read-only at request time.  Which key is currently
rejected is tracked per call by the failover engine, never here.

Vector Backends
---------------
``VECTOR_BACKEND="astra"`` queries the Astra Data API over HTTP (production).
``VECTOR_BACKEND="lancedb"`` opens an embedded LanceDB table under
``LANCEDB_PATH`` (local development and tests).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_KNOWN_WEB_PROVIDERS = frozenset({"ddg", "sep"})


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required**; the app will refuse
    to start until they are provided.

    Attributes
    ----------
    GEMINI_GENERATION_KEYS : dict[str, SecretStr]
        Ordered generation credential pool.  **Required.**
    GEMINI_EMBEDDING_KEY : SecretStr
        Embedding credential.  **Required.**
    MONGO_URI : SecretStr
        MongoDB connection string for chat history.  **Required.**
    MAX_TOTAL_ATTEMPTS : int
        Upper bound on credential attempts for one logical call,
        regardless of pool size.
    RETRY_BACKOFF_MS : int
        Fixed pause before moving to the next credential.
    CHAT_HISTORY_LIMIT : int
        Number of most-recent messages fed into the prompt.
    WEB_SEARCH_PROVIDERS : list[str]
        Declared provider order; results are always formatted in this order.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    LANCEDB_PATH: Path = BASE_DIR / "data" / "lancedb"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"

    # ── Gemini Credentials (REQUIRED, no default) ──────────────────────
    GEMINI_GENERATION_KEYS: dict[str, SecretStr]
    GEMINI_EMBEDDING_KEY: SecretStr

    # ── Model Configuration ────────────────────────────────────────────
    LLM_MODEL: str = "gemini-2.5-pro"
    EMBEDDING_MODEL: str = "text-embedding-004"

    # ── Failover Policy ────────────────────────────────────────────────
    MAX_TOTAL_ATTEMPTS: int = 5
    RETRY_BACKOFF_MS: int = 800

    # ── MongoDB (REQUIRED, no default) ─────────────────────────────────
    MONGO_URI: SecretStr
    MONGO_DB_NAME: str = "alumglass"
    MONGO_COLLECTION: str = "chat_sessions"

    # ── Sessions ───────────────────────────────────────────────────────
    CHAT_HISTORY_LIMIT: int = 8
    SESSION_COOKIE_NAME: str = "alumglass_anon_session"
    SESSION_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 30

    # ── Vector Store ───────────────────────────────────────────────────
    VECTOR_BACKEND: Literal["astra", "lancedb"] = "astra"
    VECTOR_SEARCH_LIMIT: int = 10
    ASTRA_DB_ENDPOINT: str | None = None
    ASTRA_KEYSPACE: str | None = None
    ASTRA_COLLECTION_NAME: str | None = None
    ASTRA_DB_TOKEN: SecretStr | None = None
    LANCEDB_TABLE_NAME: str = "knowledge_base"
    VECTOR_DIMENSION: int = 768

    # ── Web Search ─────────────────────────────────────────────────────
    WEB_SEARCH_PROVIDERS: list[str] = ["ddg", "sep"]
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # ── Server ─────────────────────────────────────────────────────────
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("GEMINI_GENERATION_KEYS")
    @classmethod
    def _generation_pool_not_empty(cls, v: dict[str, SecretStr]) -> dict[str, SecretStr]:
        if not v:
            raise ValueError("GEMINI_GENERATION_KEYS must contain at least one credential")
        return v


    @field_validator("MAX_TOTAL_ATTEMPTS")
    @classmethod
    def _attempts_range(cls, v: int) -> int:
        if not 1 <= v <= 20:
            raise ValueError(f"MAX_TOTAL_ATTEMPTS must be 1–20, got {v}")
        return v


    @field_validator("WEB_SEARCH_PROVIDERS")
    @classmethod
    def _known_providers(cls, v: list[str]) -> list[str]:
        unknown = [name for name in v if name not in _KNOWN_WEB_PROVIDERS]
        if unknown:
            raise ValueError(f"Unknown web search providers: {unknown}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from alumglass.config.settings import settings
settings = Settings()
