"""Environment-driven settings for the agent runtime."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_OPERATION_TIMEOUT = 10.0


class BerSettings(BaseSettings):
    """Application level settings loaded from BER_* environment variables."""

    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="json or console")
    service_name: str = Field(default="ber-agent")

    openai_api_key: Optional[str] = Field(default=None)
    chat_model: str = Field(default="gpt-4o-mini")
    embedding_model: str = Field(default="text-embedding-ada-002")

    operation_timeout_seconds: float = Field(
        default=DEFAULT_OPERATION_TIMEOUT,
        gt=0,
        description="Deadline for a single hook, validator or action call.",
    )
    skill_match_threshold: float = Field(
        default=0.0,
        description="A skill is only selected when its similarity is strictly above this value.",
    )

    model_config = SettingsConfigDict(env_prefix="BER_", env_file=".env", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> BerSettings:
    """Return a cached settings instance to avoid repeated environment reads."""

    return BerSettings()
