"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_BASE_URL = "http://10.0.2.2:3000"
DEFAULT_PROGRESSIVE_EXTENSIONS = "mp4,mkv,avi,mov,webm"
DEFAULT_SERVICE_MARKERS = "gamer:gamer.com|ani.gamer,anime1:anime1.me"


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="RemoteTV", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    base_url: str = Field(default=DEFAULT_BASE_URL, alias="BASE_URL")
    remote_config_url: HttpUrl | None = Field(
        default=None, alias="REMOTE_CONFIG_URL"
    )

    http_timeout_seconds: float = Field(
        default=60.0, alias="HTTP_TIMEOUT", gt=0, le=600
    )
    http_connect_timeout_seconds: float = Field(
        default=10.0, alias="HTTP_CONNECT_TIMEOUT", gt=0, le=120
    )
    fetch_retries: int = Field(default=1, alias="FETCH_RETRIES", ge=0, le=10)

    manifest_marker: str = Field(default="/m3u8?url=", alias="MANIFEST_MARKER")
    progressive_extensions_raw: str = Field(
        default=DEFAULT_PROGRESSIVE_EXTENSIONS, alias="PROGRESSIVE_EXTENSIONS"
    )
    fallback_service: str = Field(default="gamer", alias="FALLBACK_SERVICE")
    service_markers_raw: str = Field(
        default=DEFAULT_SERVICE_MARKERS, alias="SERVICE_MARKERS"
    )
    episode_failure_suffix: str = Field(
        default=" (episodes unavailable)", alias="EPISODE_FAILURE_SUFFIX"
    )
    error_group_label: str = Field(default="Error", alias="ERROR_GROUP_LABEL")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./remotetv.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("base_url")
    @classmethod
    def _strip_base_url(cls, value: str) -> str:
        """Drop surrounding whitespace and trailing slashes."""

        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("BASE_URL must not be blank")
        return normalized

    @field_validator("fallback_service", "manifest_marker")
    @classmethod
    def _require_value(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Value must not be blank")
        return stripped

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @field_validator("progressive_extensions_raw", "service_markers_raw", mode="before")
    @classmethod
    def _join_sequences(cls, value: object) -> object:
        """Accept lists as well as comma separated strings."""

        if isinstance(value, (list, tuple)):
            return ",".join(str(part) for part in value)
        return value

    @property
    def progressive_extensions(self) -> tuple[str, ...]:
        """Return lower-cased container extensions, each with a leading dot."""

        cleaned: list[str] = []
        for entry in self.progressive_extensions_raw.split(","):
            extension = entry.strip().lower().lstrip(".")
            if extension and f".{extension}" not in cleaned:
                cleaned.append(f".{extension}")
        return tuple(cleaned)

    @property
    def service_markers(self) -> dict[str, tuple[str, ...]]:
        """Return ``service -> host markers`` parsed from ``SERVICE_MARKERS``.

        The format is ``name:marker|marker,name:marker``. A service without
        markers is still recognised through its category prefix and path
        segment.
        """

        markers: dict[str, tuple[str, ...]] = {}
        for entry in self.service_markers_raw.split(","):
            name, _, raw_markers = entry.partition(":")
            name = name.strip().lower()
            if not name:
                continue
            markers[name] = tuple(
                marker.strip().lower()
                for marker in raw_markers.split("|")
                if marker.strip()
            )
        return markers

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
