"""Thin JSON fetch wrapper shared by every remote lookup."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ..errors import NetworkError, ParseError

logger = logging.getLogger(__name__)


class FetchClient:
    """Issue GET requests and decode JSON, translating httpx failures.

    Transport errors (connection resets, timeouts) are retried ``retries``
    times; HTTP status errors are returned to the caller straight away.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        retries: int = 1,
        backoff_seconds: float = 0.2,
    ) -> None:
        self._client = http_client
        self._retries = max(0, retries)
        self._backoff_seconds = backoff_seconds

    async def get_json(self, url: str) -> Any:
        """Return the decoded JSON body served at ``url``."""

        attempt = 0
        while True:
            try:
                response = await self._client.get(url, follow_redirects=True)
                response.raise_for_status()
                break
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                logger.warning("GET %s returned HTTP %s", url, status)
                raise NetworkError(url, f"HTTP {status}", status_code=status) from exc
            except httpx.TransportError as exc:
                attempt += 1
                if attempt <= self._retries:
                    backoff = self._backoff_seconds * attempt
                    logger.info(
                        "Transient error fetching %s (%s). Retrying in %.1fs",
                        url,
                        exc.__class__.__name__,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise NetworkError(url, f"{exc.__class__.__name__}: {exc}") from exc
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                raise NetworkError(url, str(exc) or exc.__class__.__name__) from exc

        try:
            return response.json()
        except ValueError as exc:
            logger.warning(
                "Non-JSON response from %s: %s", url, response.text[:200]
            )
            raise ParseError(f"Response from {url} is not valid JSON") from exc
