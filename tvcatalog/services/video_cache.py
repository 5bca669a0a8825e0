"""Per-service video listing cache with single-flight loading."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from ..errors import CatalogEngineError, NotFoundError
from ..models import ListingEnvelope, ServiceInfo, Video
from ..utils import ObserverList
from .fetch import FetchClient

logger = logging.getLogger(__name__)


class CacheState(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"
    POPULATED = "populated"
    FAILED = "failed"


@dataclass(slots=True)
class CacheFailure:
    """Published on the cache error channel when a listing load fails."""

    key: str
    error: Exception


@dataclass
class _CacheEntry:
    state: CacheState = CacheState.EMPTY
    videos: tuple[Video, ...] = ()
    generation: int = 0
    task: asyncio.Task[tuple[Video, ...]] | None = None


class VideoCache:
    """Lazily load and hold the video listing of each registered service.

    Only the first caller for an empty (or failed) key starts a fetch; every
    caller arriving while that fetch runs awaits the same task. ``refresh``
    replaces the entry, so a fetch still in flight for the old entry finishes
    for its own waiters but is never published into the cache.
    """

    def __init__(self, fetch: FetchClient):
        self._fetch = fetch
        self._lock = asyncio.Lock()
        self._services: dict[str, ServiceInfo] = {}
        self._entries: dict[str, _CacheEntry] = {}
        self._generation = 0
        self._fetch_counts: Counter[str] = Counter()
        self.errors: ObserverList[CacheFailure] = ObserverList("video cache errors")

    async def register_services(self, services: Iterable[ServiceInfo]) -> None:
        """Declare the listing endpoint behind each service key.

        Entries whose endpoint changed, or whose service disappeared, are
        dropped so the next ``get`` fetches from the new location.
        """

        incoming = {service.site: service for service in services}
        async with self._lock:
            for key, previous in list(self._services.items()):
                current = incoming.get(key)
                if current is None or current.list_uri != previous.list_uri:
                    self._entries.pop(key, None)
            self._services = incoming

    @property
    def service_keys(self) -> tuple[str, ...]:
        return tuple(self._services)

    def state(self, key: str) -> CacheState:
        entry = self._entries.get(key)
        return entry.state if entry else CacheState.EMPTY

    def cached(self, key: str) -> tuple[Video, ...]:
        """Return the populated videos for ``key`` without loading anything."""

        entry = self._entries.get(key)
        if entry is None or entry.state is not CacheState.POPULATED:
            return ()
        return entry.videos

    def fetch_count(self, key: str) -> int:
        """Return how many network fetches have been issued for ``key``."""

        return self._fetch_counts[key]

    async def get(self, key: str) -> tuple[Video, ...]:
        """Return the videos for ``key``, loading them on first use.

        Failures are absorbed: the entry becomes ``FAILED``, an empty tuple is
        returned and the error is published on :attr:`errors`. The next call
        retries.
        """

        async with self._lock:
            service = self._services.get(key)
            if service is None:
                logger.warning("No service registered for cache key %s", key)
                return ()
            entry = self._entries.setdefault(key, _CacheEntry())
            if entry.state is CacheState.POPULATED:
                return entry.videos
            if entry.state is not CacheState.LOADING or entry.task is None:
                self._generation += 1
                entry.state = CacheState.LOADING
                entry.generation = self._generation
                entry.task = asyncio.create_task(
                    self._load(key, service, entry.generation),
                    name=f"video-cache-load:{key}",
                )
            task = entry.task

        return await asyncio.shield(task)

    async def refresh(self, key: str) -> None:
        """Discard the entry for ``key`` whatever its state."""

        async with self._lock:
            previous = self._entries.pop(key, None)
            self._entries[key] = _CacheEntry()
        if previous is not None and previous.state is CacheState.LOADING:
            logger.info("Refresh of %s supersedes an in-flight load", key)

    async def refresh_all(self) -> None:
        async with self._lock:
            self._entries = {key: _CacheEntry() for key in self._services}

    async def lookup_by_id(self, video_id: str, *, key: str | None = None) -> Video | None:
        for video in await self._candidates(key):
            if video.id == video_id:
                return video
        return None

    async def lookup_by_uri(self, uri: str, *, key: str | None = None) -> Video | None:
        for video in await self._candidates(key):
            if video.uri == uri or video.video_uri == uri:
                return video
        return None

    async def lookup_by_series(
        self, series_uri: str, *, key: str | None = None
    ) -> tuple[Video, ...]:
        return tuple(
            video for video in await self._candidates(key) if video.series_uri == series_uri
        )

    async def require_by_id(self, video_id: str, *, key: str | None = None) -> Video:
        video = await self.lookup_by_id(video_id, key=key)
        if video is None:
            raise NotFoundError(f"Video {video_id} is not cached")
        return video

    async def _candidates(self, key: str | None) -> list[Video]:
        # A keyed lookup may trigger a load; an unkeyed one only scans what is
        # already populated.
        if key is not None:
            return list(await self.get(key))
        videos: list[Video] = []
        for entry in list(self._entries.values()):
            if entry.state is CacheState.POPULATED:
                videos.extend(entry.videos)
        return videos

    async def _load(
        self, key: str, service: ServiceInfo, generation: int
    ) -> tuple[Video, ...]:
        self._fetch_counts[key] += 1
        logger.debug("Loading %s listing from %s", key, service.list_uri)
        try:
            payload = await self._fetch.get_json(service.list_uri)
            videos = ListingEnvelope.parse_videos(payload, source=key)
        except CatalogEngineError as exc:
            logger.warning("Loading %s listing failed: %s", key, exc)
            await self._settle(key, generation, CacheState.FAILED, ())
            self.errors.notify(CacheFailure(key=key, error=exc))
            return ()
        except BaseException:
            await self._settle(key, generation, CacheState.FAILED, ())
            raise

        logger.info("Loaded %d videos for %s", len(videos), key)
        await self._settle(key, generation, CacheState.POPULATED, videos)
        return videos

    async def _settle(
        self,
        key: str,
        generation: int,
        state: CacheState,
        videos: tuple[Video, ...],
    ) -> None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.generation != generation:
                logger.info("Discarding stale %s load (generation %s)", key, generation)
                return
            entry.state = state
            entry.videos = videos
            entry.task = None
