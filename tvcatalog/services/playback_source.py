"""Turn a playback reference into a concrete, playable stream description."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Sequence, Union

from pydantic import ValidationError

from ..errors import CatalogEngineError, ResolutionError
from ..models import ManifestResolution
from ..utils import url_path
from .fetch import FetchClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Progressive:
    """A single media file played from start to end."""

    uri: str

    def to_payload(self) -> dict[str, object]:
        return {"kind": "progressive", "uri": self.uri}


@dataclass(frozen=True, slots=True)
class Segmented:
    """A segmented-stream manifest plus the headers its host expects."""

    manifest_uri: str
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def to_payload(self) -> dict[str, object]:
        return {
            "kind": "segmented",
            "manifestUri": self.manifest_uri,
            "headers": dict(self.headers),
        }


PlaybackSource = Union[Progressive, Segmented]


class PlaybackSourceResolver:
    """Resolve direct URLs and indirect manifest-resolution references."""

    def __init__(
        self,
        fetch: FetchClient,
        *,
        manifest_marker: str = "/m3u8?url=",
        progressive_extensions: Sequence[str] = (".mp4", ".mkv", ".avi"),
    ):
        self._fetch = fetch
        self._manifest_marker = manifest_marker
        self._progressive_extensions = tuple(ext.lower() for ext in progressive_extensions)

    def is_indirect(self, uri: str) -> bool:
        return self._manifest_marker in uri

    async def resolve(self, uri: str) -> PlaybackSource:
        """Return the playable source for ``uri``.

        Raises ``ResolutionError`` when the indirect lookup fails or reports
        no manifest. Direct references never touch the network.
        """

        if not self.is_indirect(uri):
            return self.classify(uri)

        resolution = await self._fetch_resolution(uri)
        if not resolution.success or not resolution.manifest_url:
            logger.error(
                "Invalid manifest response for %s: success=%s manifest=%s",
                uri,
                resolution.success,
                bool(resolution.manifest_url),
            )
            raise ResolutionError(f"Manifest resolution for {uri} returned no stream")

        headers = {
            name: value
            for name, value in (
                ("Referer", resolution.referer),
                ("Origin", resolution.origin),
                ("Cookie", resolution.cookies),
            )
            if value
        }
        return self.classify(resolution.manifest_url, headers=headers)

    def classify(self, url: str, *, headers: Mapping[str, str] | None = None) -> PlaybackSource:
        """Pick progressive playback for container files, segmented otherwise."""

        path = url_path(url).lower()
        if path.endswith(self._progressive_extensions):
            logger.info("Progressive source detected: %s", url)
            return Progressive(uri=url)
        if headers:
            logger.info("Segmented source with headers %s", sorted(headers))
        return Segmented(manifest_uri=url, headers=MappingProxyType(dict(headers or {})))

    async def _fetch_resolution(self, uri: str) -> ManifestResolution:
        try:
            payload = await self._fetch.get_json(uri)
        except CatalogEngineError as exc:
            raise ResolutionError(f"Manifest lookup for {uri} failed: {exc}") from exc
        if not isinstance(payload, dict):
            raise ResolutionError(f"Manifest lookup for {uri} returned a non-object body")
        try:
            return ManifestResolution.model_validate(payload)
        except ValidationError as exc:
            raise ResolutionError(f"Malformed manifest response for {uri}: {exc}") from exc
