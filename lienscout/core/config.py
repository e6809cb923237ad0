"""Configuration management"""
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENVIRONMENTS = ("development", "production")


class Settings(BaseSettings):
    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # Pipeline config (YAML). When unset, per-environment defaults apply.
    pipeline_config_path: Optional[Path] = None

    # Upstream filing sources
    ucc_api_endpoint: Optional[str] = None
    ucc_api_key: Optional[str] = None
    ucc_database_url: Optional[str] = None

    # Request timeout (seconds) for upstream fetches. Timeouts belong to the fetch, not the scheduler.
    http_timeout_seconds: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if v not in ENVIRONMENTS:
            raise ValueError(
                f"Unsupported ENVIRONMENT {v!r}. Expected one of: {', '.join(ENVIRONMENTS)}"
            )
        return v

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return (v or "INFO").upper()


# Instantiate settings (CLI entry point only; services take explicit config)
settings = Settings()
