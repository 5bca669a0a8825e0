"""Access to the backend host the catalog endpoints hang off."""

from __future__ import annotations

import logging

from .errors import CatalogEngineError
from .services.fetch import FetchClient
from .utils import normalize_base_url

logger = logging.getLogger(__name__)


class BaseUrlProvider:
    """Hold the current backend base URL.

    The configured default can be replaced by a local override or by the URL
    published in a remote ``{"url": ...}`` document.
    """

    def __init__(self, default_base_url: str, *, remote_config_url: str | None = None):
        normalized = normalize_base_url(default_base_url)
        if normalized is None:
            raise ValueError("A default base URL is required")
        self._default = normalized
        self._remote_config_url = remote_config_url
        self._override: str | None = None

    def current_base_url(self) -> str:
        return self._override or self._default

    def override(self, url: str) -> None:
        normalized = normalize_base_url(url)
        if normalized is None:
            raise ValueError("Override URL must not be blank")
        self._override = normalized
        logger.info("Base URL overridden to %s", normalized)

    def clear_override(self) -> None:
        self._override = None
        logger.info("Base URL override cleared, using %s", self._default)

    async def refresh_from_remote(self, fetch: FetchClient) -> bool:
        """Adopt the base URL published at the remote config URL.

        Returns ``True`` when a new value was applied. Any failure leaves the
        current value in place.
        """

        if not self._remote_config_url:
            logger.debug("No remote config URL configured, keeping %s", self.current_base_url())
            return False
        try:
            payload = await fetch.get_json(self._remote_config_url)
        except CatalogEngineError as exc:
            logger.warning("Remote config download failed: %s", exc)
            return False

        url = payload.get("url") if isinstance(payload, dict) else None
        normalized = normalize_base_url(url if isinstance(url, str) else None)
        if normalized is None:
            logger.warning("Remote config from %s has no usable url", self._remote_config_url)
            return False
        self._override = normalized
        logger.info("Base URL updated from remote config: %s", normalized)
        return True
