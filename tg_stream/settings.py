from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StreamSettings(BaseSettings):
    """Configuration for the Telegram-backed stream gateway."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    bot_token: str = Field(
        default="",
        validation_alias=AliasChoices("TG_STREAM_BOT_TOKEN", "BOT_TOKEN"),
    )
    api_base_url: str = Field(
        default="https://api.telegram.org",
        validation_alias="TG_STREAM_API_BASE_URL",
    )
    path_cache_ttl: float = Field(
        default=24 * 60 * 60,
        validation_alias="TG_STREAM_PATH_CACHE_TTL",
    )
    path_cache_size: int = Field(
        default=4096,
        validation_alias="TG_STREAM_PATH_CACHE_SIZE",
    )
    read_chunk_size: int = Field(
        default=64 * 1024,
        validation_alias="TG_STREAM_READ_CHUNK_SIZE",
    )
    connect_timeout: float = Field(
        default=10.0,
        validation_alias="TG_STREAM_CONNECT_TIMEOUT",
    )
    read_timeout: float = Field(
        default=300.0,
        validation_alias="TG_STREAM_READ_TIMEOUT",
    )
    video_content_type: str = Field(
        default="video/mp4",
        validation_alias="TG_STREAM_VIDEO_CONTENT_TYPE",
    )
    video_cache_control: str = Field(
        default="public, max-age=31536000, immutable",
        validation_alias="TG_STREAM_VIDEO_CACHE_CONTROL",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        validation_alias="TG_STREAM_LOG_LEVEL",
    )

    @field_validator("api_base_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("path_cache_size", "read_chunk_size", mode="after")
    @classmethod
    def _require_positive(cls, value: int) -> int:
        if value <= 0:
            msg = "must be a positive integer"
            raise ValueError(msg)
        return value

    @property
    def configured(self) -> bool:
        """Check if a bot token has been provided."""
        return bool(self.bot_token)


def load_settings_from_env() -> StreamSettings:
    """Load gateway settings from environment variables.

    Returns:
        StreamSettings instance populated from environment variables.
    """
    return StreamSettings()
