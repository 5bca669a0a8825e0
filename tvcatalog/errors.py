"""Error types raised by the catalog and playback engine."""

from __future__ import annotations


class CatalogEngineError(Exception):
    """Base class for every error raised by the engine."""


class NetworkError(CatalogEngineError):
    """Transport failure, timeout or non-success HTTP status."""

    def __init__(self, url: str, message: str, *, status_code: int | None = None):
        super().__init__(f"{message} ({url})")
        self.url = url
        self.status_code = status_code


class ParseError(CatalogEngineError):
    """A response body was malformed or did not match the expected schema."""


class ResolutionError(CatalogEngineError):
    """A manifest lookup succeeded at the transport level but was unusable."""


class NotFoundError(CatalogEngineError, KeyError):
    """A cache lookup produced no match."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "not found"
