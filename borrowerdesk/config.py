"""
Application configuration: single source of truth.

All environment variables are defined in the root .env file.
This module loads them via pydantic-settings and exposes a singleton `settings`.
"""

import secrets
import warnings
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator


# Resolve paths relative to repo root (one level up from this package)
_REPO_ROOT = Path(__file__).resolve().parent.parent  # borrowerdesk/config.py → repo root
_ENV_FILE = _REPO_ROOT / ".env"

DOCUMENT_STORE_BACKENDS = ("firestore", "sql")


class Settings(BaseSettings):
    # ── General ──────────────────────────────────────────────
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # ── Document store ───────────────────────────────────────
    document_store: str = Field(
        default="firestore",
        description="'firestore' in production, 'sql' for local development and tests",
    )
    database_url: str = Field(default="sqlite+aiosqlite:///./borrowerdesk.db")

    # ── Firebase Admin ───────────────────────────────────────
    firebase_project_id: str = Field(default="")
    firebase_client_email: str = Field(default="")
    firebase_private_key: str = Field(default="")

    # ── Staff sessions ───────────────────────────────────────
    secret_key: str = Field(default="")
    session_cookie_name: str = Field(default="__session")
    session_max_age_hours: int = Field(default=12)
    session_cache_ttl_seconds: int = Field(default=60)

    # ── CORS ─────────────────────────────────────────────────
    cors_origins: str = Field(default="http://localhost:3000")

    @field_validator("firebase_private_key")
    @classmethod
    def _expand_private_key(cls, value: str) -> str:
        # Keys pasted into .env carry literal "\n" sequences.
        return value.replace("\\n", "\n")

    @field_validator("document_store")
    @classmethod
    def _check_document_store(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in DOCUMENT_STORE_BACKENDS:
            raise ValueError(
                f"DOCUMENT_STORE must be one of {', '.join(DOCUMENT_STORE_BACKENDS)}"
            )
        return value

    @model_validator(mode="after")
    def _enforce_secret_key(self) -> "Settings":
        """In production the SECRET_KEY env var is mandatory.
        In development a random key is generated and a warning is emitted."""
        placeholder = "change-me-to-a-random-secret-key-in-production"
        if not self.secret_key or self.secret_key == placeholder:
            if self.environment != "development":
                raise ValueError(
                    "SECRET_KEY environment variable must be set in non-development environments. "
                    "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
                )
            self.secret_key = secrets.token_urlsafe(64)
            warnings.warn(
                "SECRET_KEY not set; auto-generated a random key for development. "
                "Staff sessions will not persist across restarts.",
                stacklevel=2,
            )
        return self

    @property
    def has_firebase_credentials(self) -> bool:
        return bool(
            self.firebase_private_key
            and self.firebase_client_email
            and self.firebase_project_id
        )

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def session_max_age_seconds(self) -> int:
        return self.session_max_age_hours * 60 * 60

    model_config = {
        "env_file": str(_ENV_FILE),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
