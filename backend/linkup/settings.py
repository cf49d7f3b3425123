"""Settings for the Linkup backend."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_field(default, *env_names: str):
    if env_names:
        alias = AliasChoices(*env_names) if len(env_names) > 1 else env_names[0]
        return Field(default=default, validation_alias=alias)
    return Field(default=default)


class Settings(BaseSettings):
    redis_url: str = _env_field("redis://localhost:6379/0", "REDIS_URL")

    environment: str = _env_field("production", "ENV", "APP_ENV", "ENVIRONMENT")
    service_name: str = _env_field("linkup-api", "SERVICE_NAME")
    git_commit: str = _env_field("unknown", "GIT_COMMIT", "COMMIT_SHA", "SOURCE_VERSION")
    obs_log_level: str = _env_field("INFO", "LOG_LEVEL")
    obs_log_sampling_rate_info: float = _env_field(1.0, "LOG_SAMPLING_RATE_INFO")
    cors_allow_origins: Any = _env_field((), "CORS_ALLOW_ORIGINS")

    # Message stream limits
    message_max_length: int = _env_field(4000, "MESSAGE_MAX_LENGTH")
    message_page_size: int = _env_field(50, "MESSAGE_PAGE_SIZE")

    # Live subscriptions: how long a pump blocks on pub/sub before re-checking
    # its cancel flag, and the reconnect backoff window after store outages.
    subscription_poll_seconds: float = _env_field(1.0, "SUBSCRIPTION_POLL_SECONDS")
    subscription_retry_initial_seconds: float = _env_field(0.5, "SUBSCRIPTION_RETRY_INITIAL_SECONDS")
    subscription_retry_max_seconds: float = _env_field(30.0, "SUBSCRIPTION_RETRY_MAX_SECONDS")

    def is_prod(self) -> bool:
        return self.environment.lower() in ("prod", "production", "live")

    def is_dev(self) -> bool:
        return self.environment.lower() in ("dev", "development")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("cors_allow_origins", mode="before")
    def _split_origins(cls, value):  # type: ignore[override]
        """Accept comma-separated strings or JSON-decoded lists."""
        if value in (None, ""):
            return ()
        if isinstance(value, (list, tuple, set)):
            return tuple(str(item).strip() for item in value if str(item).strip())
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        return value


settings = Settings()
