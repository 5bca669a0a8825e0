"""Progressive assembly of the browse rows from every content service."""

from __future__ import annotations

import logging
from typing import AsyncIterator, Callable

from ..base_url import BaseUrlProvider
from ..errors import CatalogEngineError, NotFoundError
from ..models import ServiceCatalog, ServiceInfo, Video, VideoGroup
from ..utils import ObserverList
from .catalog_source import CatalogSource
from .video_cache import VideoCache

logger = logging.getLogger(__name__)

Snapshot = tuple[VideoGroup, ...]


class CatalogAggregator:
    """Turn the service catalog into a stream of browse snapshots.

    A run emits the empty service rows first, then one full snapshot after
    each service resolves, in catalog order. A failing service keeps an empty
    row; a failing catalog produces a single error row and ends the run.
    """

    def __init__(
        self,
        catalog_source: CatalogSource,
        cache: VideoCache,
        base_urls: BaseUrlProvider,
        *,
        error_group_label: str = "Error",
    ):
        self._catalog_source = catalog_source
        self._cache = cache
        self._base_urls = base_urls
        self._error_group_label = error_group_label
        self._observers: ObserverList[Snapshot] = ObserverList("catalog snapshots")
        self._latest: Snapshot = ()
        self._catalog: ServiceCatalog | None = None

    def add_observer(self, callback: Callable[[Snapshot], None]) -> None:
        self._observers.add(callback)

    def remove_observer(self, callback: Callable[[Snapshot], None]) -> None:
        self._observers.remove(callback)

    @property
    def latest(self) -> Snapshot:
        """The last snapshot emitted by any run."""

        return self._latest

    @property
    def current_catalog(self) -> ServiceCatalog | None:
        return self._catalog

    async def load(self, base_url: str | None = None) -> AsyncIterator[Snapshot]:
        """Yield browse snapshots for one run against ``base_url``."""

        resolved_base = base_url or self._base_urls.current_base_url()
        try:
            catalog = await self._catalog_source.fetch(resolved_base)
        except CatalogEngineError as exc:
            logger.error("Loading the system catalog from %s failed: %s", resolved_base, exc)
            yield self._publish((VideoGroup(name=self._error_group_label),))
            return

        self._catalog = catalog
        await self._cache.register_services(catalog.services)
        loaded: dict[str, tuple[Video, ...]] = {}
        yield self._publish(self._build_snapshot(catalog.services, loaded))

        for service in catalog.services:
            # The cache absorbs fetch failures and hands back an empty tuple.
            loaded[service.site] = await self._cache.get(service.site)
            yield self._publish(self._build_snapshot(catalog.services, loaded))

    async def refresh(self, base_url: str | None = None) -> AsyncIterator[Snapshot]:
        """Invalidate every cached listing, then run :meth:`load` again."""

        await self._cache.refresh_all()
        async for snapshot in self.load(base_url):
            yield snapshot

    async def run(self, base_url: str | None = None, *, refresh: bool = False) -> Snapshot:
        """Drain one run and return its final snapshot."""

        runner = self.refresh(base_url) if refresh else self.load(base_url)
        final: Snapshot = ()
        async for snapshot in runner:
            final = snapshot
        return final

    async def reload_service(self, site: str) -> Snapshot:
        """Refetch one service and publish the browse rows with its new listing.

        Other rows keep whatever the cache already holds; nothing else is
        fetched. Raises ``NotFoundError`` for a site outside the current
        catalog.
        """

        catalog = self._catalog
        if catalog is None or site not in {service.site for service in catalog.services}:
            raise NotFoundError(f"Unknown service {site}")

        await self._cache.refresh(site)
        await self._cache.get(site)
        loaded = {service.site: self._cache.cached(service.site) for service in catalog.services}
        return self._publish(self._build_snapshot(catalog.services, loaded))

    def _build_snapshot(
        self,
        services: tuple[ServiceInfo, ...],
        loaded: dict[str, tuple[Video, ...]],
    ) -> Snapshot:
        return tuple(
            VideoGroup(name=service.label, videos=loaded.get(service.site, ()))
            for service in services
        )

    def _publish(self, snapshot: Snapshot) -> Snapshot:
        self._latest = snapshot
        self._observers.notify(snapshot)
        return snapshot
