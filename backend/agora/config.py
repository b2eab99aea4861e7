"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - Secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache): single instance per process
    - State machine tunables reach the core only through CorePolicy

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for every setting: the in-memory backend runs with no env at all
"""

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from agora.services.handler_context import CorePolicy


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Persistence
    repository_backend: Literal["memory", "sql"] = "memory"
    database_url: str = "postgresql+asyncpg://agora:agora@db:5432/agora"

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting platforms hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Concurrency
    conflict_max_retries: int = 3

    # Authentication
    login_lockout_threshold: int = 5
    login_lockout_minutes: int = 15
    otp_ttl_seconds: int = 300
    otp_length: int = 6
    otp_max_attempts: int = 5

    # Moderation
    account_suspension_days: int = 7

    # Messaging
    messages_page_size_max: int = 200

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    def core_policy(self) -> CorePolicy:
        return CorePolicy(
            conflict_max_retries=self.conflict_max_retries,
            login_lockout_threshold=self.login_lockout_threshold,
            login_lockout_duration=timedelta(minutes=self.login_lockout_minutes),
            otp_ttl=timedelta(seconds=self.otp_ttl_seconds),
            otp_length=self.otp_length,
            otp_max_attempts=self.otp_max_attempts,
            account_suspension=timedelta(days=self.account_suspension_days),
            messages_page_size_max=self.messages_page_size_max,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
