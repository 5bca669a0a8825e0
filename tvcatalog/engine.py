"""Wiring of the catalog, episode and playback services."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .base_url import BaseUrlProvider
from .config import Settings
from .services.aggregator import CatalogAggregator
from .services.catalog_source import CatalogSource
from .services.episodes import EpisodeResolver
from .services.fetch import FetchClient
from .services.playback_session import PlaybackController
from .services.playback_source import PlaybackSourceResolver
from .services.video_cache import VideoCache
from .services.watch_progress import WatchProgressStore


@dataclass
class Engine:
    """Every long-lived service the presentation layer talks to."""

    fetch: FetchClient
    base_urls: BaseUrlProvider
    cache: VideoCache
    aggregator: CatalogAggregator
    episodes: EpisodeResolver
    sources: PlaybackSourceResolver
    playback: PlaybackController


def build_engine(
    settings: Settings,
    http_client: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> Engine:
    """Create the services sharing one HTTP client and one cache."""

    fetch = FetchClient(http_client, retries=settings.fetch_retries)
    base_urls = BaseUrlProvider(
        settings.base_url,
        remote_config_url=(
            str(settings.remote_config_url) if settings.remote_config_url else None
        ),
    )
    cache = VideoCache(fetch)
    aggregator = CatalogAggregator(
        CatalogSource(fetch),
        cache,
        base_urls,
        error_group_label=settings.error_group_label,
    )
    episodes = EpisodeResolver(
        fetch,
        base_urls,
        service_markers=settings.service_markers,
        fallback_service=settings.fallback_service,
        failure_suffix=settings.episode_failure_suffix,
    )
    sources = PlaybackSourceResolver(
        fetch,
        manifest_marker=settings.manifest_marker,
        progressive_extensions=settings.progressive_extensions,
    )
    progress = WatchProgressStore(session_factory) if session_factory is not None else None
    return Engine(
        fetch=fetch,
        base_urls=base_urls,
        cache=cache,
        aggregator=aggregator,
        episodes=episodes,
        sources=sources,
        playback=PlaybackController(sources, progress),
    )
