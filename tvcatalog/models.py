"""Pydantic models describing catalog and playback payloads."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .errors import ParseError

logger = logging.getLogger(__name__)


class VideoType(str, Enum):
    MOVIE = "MOVIE"
    EPISODE = "EPISODE"
    CLIP = "CLIP"


class Video(BaseModel):
    """A single playable catalog entry.

    ``id`` and ``uri`` are stable across cache refreshes, so they are the keys
    used for lookups and watch progress.
    """

    model_config = ConfigDict(
        populate_by_name=True, frozen=True, coerce_numbers_to_str=True
    )

    id: str
    name: str
    description: str = ""
    uri: str
    video_uri: str = Field(alias="videoUri")
    thumbnail_uri: str = Field(default="", alias="thumbnailUri")
    background_image_uri: str = Field(default="", alias="backgroundImageUri")
    category: str = ""
    video_type: VideoType = Field(default=VideoType.MOVIE, alias="videoType")
    duration: str = ""
    series_uri: str = Field(default="", alias="seriesUri")
    season_uri: str = Field(default="", alias="seasonUri")
    episode_number: str = Field(default="", alias="episodeNumber")
    season_number: str = Field(default="", alias="seasonNumber")
    episode_url: str = Field(default="", alias="episodeUrl")

    @field_validator("video_type", mode="before")
    @classmethod
    def _parse_video_type(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper() or VideoType.MOVIE
        return value

    @field_validator(
        "description",
        "thumbnail_uri",
        "background_image_uri",
        "category",
        "duration",
        "series_uri",
        "season_uri",
        "episode_number",
        "season_number",
        "episode_url",
        mode="before",
    )
    @classmethod
    def _none_to_blank(cls, value: object) -> object:
        if value is None:
            return ""
        return value

    @model_validator(mode="after")
    def _episodes_need_series(self) -> "Video":
        if self.video_type is VideoType.EPISODE and not self.series_uri.strip():
            raise ValueError("EPISODE videos require a seriesUri")
        return self

    @property
    def is_standalone(self) -> bool:
        return not self.series_uri.strip()

    def degraded(self, suffix: str) -> "Video":
        """Return a copy whose name marks it as a fallback item."""

        return self.model_copy(update={"name": f"{self.name}{suffix}"})

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ServiceInfo(BaseModel):
    """One content backend listed by the system catalog."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    site: str
    list_uri: str = Field(alias="listUri")
    episodes_entry: str | None = Field(default=None, alias="episodesEntry")
    m3u8_entry: str | None = Field(default=None, alias="m3u8Entry")

    @field_validator("site", "list_uri")
    @classmethod
    def _require_value(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Value must not be blank")
        return stripped

    @property
    def label(self) -> str:
        return self.site.upper()


class ServiceCatalog(BaseModel):
    """Snapshot of the services available at fetch time."""

    model_config = ConfigDict(frozen=True)

    updated: str = ""
    services: tuple[ServiceInfo, ...] = ()

    @field_validator("updated", mode="before")
    @classmethod
    def _stringify_updated(cls, value: object) -> object:
        if value is None:
            return ""
        return str(value)

    @model_validator(mode="after")
    def _unique_sites(self) -> "ServiceCatalog":
        sites = [service.site for service in self.services]
        if len(sites) != len(set(sites)):
            raise ValueError("Service sites must be unique")
        return self

    @classmethod
    def from_payload(cls, payload: object) -> "ServiceCatalog":
        if not isinstance(payload, dict):
            raise ParseError("Catalog response must be a JSON object")
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise ParseError(f"Invalid catalog response: {exc}") from exc


class VideoGroup(BaseModel):
    """Presentation row: a label and the videos shown under it."""

    model_config = ConfigDict(frozen=True)

    name: str
    videos: tuple[Video, ...] = ()

    def is_empty(self) -> bool:
        return not self.videos

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "videos": [video.to_payload() for video in self.videos],
        }


class ListingEnvelope(BaseModel):
    """Generic ``{"content": [...]}`` wrapper used by service listings."""

    content: list[Any] = Field(default_factory=list)

    @classmethod
    def parse_videos(cls, payload: object, *, source: str) -> tuple[Video, ...]:
        """Return the valid videos of a listing, skipping malformed entries."""

        if not isinstance(payload, dict):
            raise ParseError(f"Listing from {source} must be a JSON object")
        try:
            envelope = cls.model_validate(payload)
        except ValidationError as exc:
            raise ParseError(f"Invalid listing from {source}: {exc}") from exc

        videos: list[Video] = []
        for entry in envelope.content:
            if not isinstance(entry, dict):
                continue
            try:
                videos.append(Video.model_validate(entry))
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed video from %s: %s",
                    source,
                    exc.errors()[0].get("msg") if exc.errors() else exc,
                )
        return tuple(videos)


class Episode(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    title: str
    original_url: str = Field(alias="originalUrl")
    video_uri: str = Field(alias="videoUri")

    def to_video(self, parent: Video, *, description: str) -> Video:
        """Build an episode video that inherits presentation fields from ``parent``."""

        return Video(
            id=self.original_url,
            name=self.title,
            description=description,
            uri=self.original_url,
            video_uri=self.video_uri,
            thumbnail_uri=parent.thumbnail_uri,
            background_image_uri=parent.background_image_uri,
            category=parent.category,
            video_type=parent.video_type,
            duration="PT00H00M",
            series_uri=parent.series_uri,
            season_uri=parent.season_uri,
            episode_number=self.title,
            season_number="1",
            episode_url="",
        )


class EpisodesResponse(BaseModel):
    success: bool = True
    description: str | None = None
    count: int | None = None
    episodes: list[Episode] = Field(default_factory=list)

    @field_validator("episodes", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return [] if value is None else value


class ManifestResolution(BaseModel):
    """Metadata returned by a manifest-resolution endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    manifest_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("manifestUrl", "m3u8Url", "manifest_url"),
    )
    referer: str | None = None
    cookies: str | None = None
    origin: str | None = None

    @field_validator("manifest_url", "referer", "cookies", "origin", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value
