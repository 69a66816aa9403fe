from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Request Desk"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    database_url: str = "postgresql+asyncpg://request_desk:request_desk@db:5432/request_desk"
    cors_origins: list[str] = ["http://localhost:8080"]

    upload_dir: Path = Path("uploads")
    max_upload_bytes: int = 10 * 1024 * 1024
    max_batch_files: int = 10
    allowed_upload_types: list[str] = [
        "application/pdf",
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ]
    # Origin used in public file URLs; the incoming request's base URL when unset.
    public_base_url: str | None = None

    # "legacy": partial rejection of travel/equipment items appends a
    # "[REJECTED] ..." note to the item text. "uniform": sets status/rejection_reason.
    rejection_note_mode: Literal["legacy", "uniform"] = "legacy"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
