"""Client for the system catalog listing every content service."""

from __future__ import annotations

import logging

from ..models import ServiceCatalog
from ..utils import join_url
from .fetch import FetchClient

logger = logging.getLogger(__name__)


class CatalogSource:
    """Fetch the ``/system/catalog`` document from a backend."""

    _CATALOG_PATH = "/system/catalog"

    def __init__(self, fetch: FetchClient):
        self._fetch = fetch

    async def fetch(self, base_url: str) -> ServiceCatalog:
        """Return the catalog snapshot; raises ``NetworkError`` or ``ParseError``."""

        url = join_url(base_url, self._CATALOG_PATH)
        logger.debug("Loading system catalog from %s", url)
        payload = await self._fetch.get_json(url)
        catalog = ServiceCatalog.from_payload(payload)
        logger.info(
            "Loaded %d services from %s (updated %s)",
            len(catalog.services),
            url,
            catalog.updated or "unknown",
        )
        return catalog
