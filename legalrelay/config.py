from __future__ import annotations

from functools import lru_cache
from typing import Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = Field(default="Legal AI Backend")
    environment: str = Field(default="dev")
    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False, description="Include tracebacks in 5xx bodies.")
    frontend_url: str = Field(default="http://localhost:3000")

    # OpenAI
    openai_api_key: Optional[str] = Field(default=None)
    openai_model: str = Field(default="gpt-4o-mini")
    openai_temperature: float = 0.1
    openai_max_tokens: int = 4096
    openai_qa_max_tokens: int = 1024
    openai_timeout_seconds: float = 120.0
    openai_tts_model: str = Field(default="gpt-4o-mini-tts")
    openai_tts_voice: str = Field(default="alloy")
    tts_max_bytes: Optional[int] = Field(
        default=900,
        description="UTF-8 byte limit for text-to-speech input; unset for no limit.",
    )

    # Limits
    min_document_chars: int = 100
    max_document_chars: int = 100_000
    max_upload_bytes: int = 10 * 1024 * 1024
    allowed_extensions: Tuple[str, ...] = (".pdf", ".doc", ".docx", ".txt")

    # Temp uploads
    temp_dir: str = Field(default="temp")
    temp_max_age_seconds: int = 60 * 60
    temp_sweep_interval_seconds: int = 60 * 60

    # User data store
    database_url: str = Field(default="sqlite:///./legalrelay.db")

    # Feature flags
    enable_accounts: bool = False
    require_registered_email: bool = False
    enable_streaming: bool = True

    @property
    def openai_configured(self) -> bool:
        return bool(self.openai_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
