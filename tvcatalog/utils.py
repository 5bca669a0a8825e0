"""Utility helpers shared by the catalog and playback services."""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

T = TypeVar("T")


def normalize_base_url(value: str | None) -> str | None:
    """Return ``value`` without surrounding whitespace or trailing slashes."""

    if not value:
        return None
    normalized = value.strip().rstrip("/")
    return normalized or None


def join_url(base_url: str, path: str) -> str:
    """Join a base URL and an absolute path without doubling slashes."""

    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def url_path(url: str) -> str:
    """Return the path component of ``url``, tolerating bare paths."""

    return urlsplit(url).path or url.split("?", 1)[0]


class ObserverList(Generic[T]):
    """Ordered observer registry whose members cannot break the publisher.

    Callbacks run synchronously in registration order. An exception raised by
    one callback is logged and the remaining callbacks still run.
    """

    def __init__(self, name: str):
        self._name = name
        self._callbacks: list[Callable[[T], None]] = []

    def add(self, callback: Callable[[T], None]) -> None:
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def remove(self, callback: Callable[[T], None]) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            logger.debug("Observer %r was not registered on %s", callback, self._name)

    def notify(self, value: T) -> None:
        for callback in tuple(self._callbacks):
            try:
                callback(value)
            except Exception:
                logger.exception("Observer %r on %s failed", callback, self._name)

    def __len__(self) -> int:
        return len(self._callbacks)
