"""Resolve the full episode list of the series a video belongs to."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping
from urllib.parse import quote

from pydantic import ValidationError

from ..base_url import BaseUrlProvider
from ..errors import CatalogEngineError, ParseError
from ..models import EpisodesResponse, Video, VideoGroup
from ..utils import ObserverList, join_url
from .fetch import FetchClient

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EpisodeFailure:
    """Published on the resolver error channel when a fallback is served."""

    video: Video
    error: Exception


class EpisodeResolver:
    """Fetch and normalise episodes, degrading to the selected video on failure."""

    def __init__(
        self,
        fetch: FetchClient,
        base_urls: BaseUrlProvider,
        *,
        service_markers: Mapping[str, tuple[str, ...]],
        fallback_service: str = "gamer",
        failure_suffix: str = " (episodes unavailable)",
    ):
        self._fetch = fetch
        self._base_urls = base_urls
        self._service_markers = dict(service_markers)
        self._fallback_service = fallback_service
        self._failure_suffix = failure_suffix
        self.errors: ObserverList[EpisodeFailure] = ObserverList("episode errors")

    async def resolve(self, video: Video) -> tuple[Video, ...]:
        """Return every episode of ``video``'s series, never raising.

        A standalone video is its own series and needs no request.
        """

        if video.is_standalone:
            logger.debug("%s has no series, returning it unchanged", video.name)
            return (video,)

        url = self.episodes_url(video)
        try:
            payload = await self._fetch.get_json(url)
            return self._parse(payload, video, url)
        except CatalogEngineError as exc:
            logger.warning("Episode list for %s unavailable: %s", video.name, exc)
            self.errors.notify(EpisodeFailure(video=video, error=exc))
            return (video.degraded(self._failure_suffix),)

    async def resolve_grouped(self, video: Video) -> tuple[VideoGroup, ...]:
        """Return the episodes as a single row named after ``video``."""

        return (VideoGroup(name=video.name, videos=await self.resolve(video)),)

    def episodes_url(self, video: Video) -> str:
        if video.episode_url.strip():
            return video.episode_url.strip()
        service = self.detect_service(video)
        encoded = quote(video.series_uri, safe="")
        return join_url(
            self._base_urls.current_base_url(), f"/{service}/episodes?url={encoded}"
        )

    def detect_service(self, video: Video) -> str:
        """Guess which backend serves ``video``.

        Tried in order: category prefix, ``/<service>/`` segment of the video
        URI, host marker inside the series URI. Falls back to the configured
        default service when nothing matches.
        """

        category = video.category.lower()
        for name in self._service_markers:
            if category.startswith(name):
                return name

        video_uri = video.video_uri.lower()
        for name in self._service_markers:
            if f"/{name}/" in video_uri:
                return name

        series_uri = video.series_uri.lower()
        for name, markers in self._service_markers.items():
            if any(marker in series_uri for marker in markers):
                return name

        logger.warning(
            "Could not detect the service for %s (category %r), using %s",
            video.name,
            video.category,
            self._fallback_service,
        )
        return self._fallback_service

    def _parse(self, payload: object, video: Video, url: str) -> tuple[Video, ...]:
        if not isinstance(payload, dict):
            raise ParseError(f"Episode response from {url} is not an object")
        try:
            parsed = EpisodesResponse.model_validate(payload)
        except ValidationError as exc:
            raise ParseError(f"Invalid episode response from {url}: {exc}") from exc

        if not parsed.episodes:
            raise ParseError(f"Episode response from {url} is empty")
        if not parsed.success:
            logger.info("Episode response for %s reports failure but lists episodes", video.name)

        description = parsed.description or ""
        episodes = tuple(
            episode.to_video(video, description=description) for episode in parsed.episodes
        )
        logger.info("Resolved %d episodes for %s", len(episodes), video.name)
        return episodes
