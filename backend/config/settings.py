"""Process configuration, read from the environment and backend/.env.

JWT_SECRET and MONGO_URL carry credentials; they are masked in log output
by observability.redaction and never echoed by /api/health.
"""
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    # ── Environment ──────────────────────────────────────────────
    ENV: Literal["dev", "staging", "prod"] = Field(default="dev")

    # ── Document store ───────────────────────────────────────────
    STORE_BACKEND: Literal["mongo", "memory"] = Field(default="mongo")
    MONGO_URL: str = Field(default="mongodb://localhost:27017")
    DB_NAME: str = Field(default="transcripts_dev")

    # ── Transcript lifecycle ─────────────────────────────────────
    DELETE_BATCH_SIZE: int = Field(default=10, ge=1)
    STUCK_TRANSCRIPT_WINDOW_DAYS: int = Field(default=2, ge=1)
    DEFAULT_LANGUAGE_CODE: str = Field(default="nb-NO")

    # ── Auth ─────────────────────────────────────────────────────
    JWT_SECRET: str = Field(default="")
    JWT_ALGORITHM: str = Field(default="HS256")
    SESSION_COOKIE_NAME: str = Field(default="__session")

    # ── Uploads (Google Cloud Storage) ───────────────────────────
    GCS_BUCKET: str = Field(default="")
    UPLOAD_URL_EXPIRY_SECONDS: int = Field(default=3600)  # 1 hour

    # ── Observability ────────────────────────────────────────────
    LOG_LEVEL: str = Field(default="INFO")
    LOG_REDACTION_ENABLED: bool = Field(default=True)

    # ── Feature Flags ────────────────────────────────────────────
    MOCK_STORAGE: bool = Field(default=True)
    MOCK_SPEECH: bool = Field(default=True)

    model_config = {
        "env_file": str(_ROOT / ".env"),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
