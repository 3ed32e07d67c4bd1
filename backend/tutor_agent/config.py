"""
Application configuration using Pydantic Settings.
All config is loaded from environment variables / .env file.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # ── App ──────────────────────────────────────────────
    APP_NAME: str = "tutor-agent"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"  # comma-separated

    # ── Supabase ─────────────────────────────────────────
    SUPABASE_URL: str
    SUPABASE_KEY: str  # anon/public key
    SUPABASE_SERVICE_KEY: str = ""  # service_role key (for admin ops)

    # ── Security ─────────────────────────────────────────
    JWT_SECRET_KEY: str  # JWT signing key
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_MINUTES: int = 1440  # 24 hours

    # ── LLM (Provider-Agnostic) ──────────────────────────
    LLM_PROVIDER: str = "openai"  # gemini | openai | groq
    LLM_MODEL: str = "gpt-4o"
    LLM_API_KEY: str = ""
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_TOKENS: int = 1000
    LLM_TIMEOUT_SECONDS: float = 60.0

    # ── Embedding ────────────────────────────────────────
    EMBEDDING_PROVIDER: str = "openai"  # gemini | openai
    EMBEDDING_MODEL: str = "text-embedding-3-large"
    EMBEDDING_DIMENSIONS: int = 3072
    EMBEDDING_MAX_ATTEMPTS: int = 3  # per chunk, transient errors only
    EMBEDDING_RETRY_MIN_SECONDS: float = 1.0
    EMBEDDING_RETRY_MAX_SECONDS: float = 20.0

    # ── Ingestion ────────────────────────────────────────
    CHUNK_SIZE: int = 1000  # characters
    CHUNK_OVERLAP: int = 200  # characters
    INGESTION_MAX_WORKERS: int = 2
    STORAGE_BUCKET: str = "uploads"
    MAX_UPLOAD_SIZE_MB: int = 50

    # ── Job Registry ─────────────────────────────────────
    JOB_RETENTION_COMPLETED_SECONDS: int = 300  # 5 minutes
    JOB_RETENTION_FAILED_SECONDS: int = 900  # 15 minutes, kept longer for diagnosis
    JOB_REGISTRY_MAX_SIZE: int = 10_000

    # ── Retrieval / Chat ─────────────────────────────────
    RETRIEVAL_TOP_K: int = 5
    CHAT_HISTORY_LIMIT: int = 15  # most recent turns sent to the model

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance (singleton)."""
    return Settings()
