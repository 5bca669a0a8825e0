"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest


# Ensure the packages are importable when running tests without an editable
# install. This mirrors the runtime layout where ``tvcatalog`` sits at the
# project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tvcatalog.services.fetch import FetchClient  # noqa: E402

BACKEND = "http://backend.test"


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


def video_payload(video_id: str, **overrides: Any) -> dict[str, Any]:
    """Return a listing entry in the backend's camelCase wire format."""

    payload: dict[str, Any] = {
        "id": video_id,
        "name": f"Video {video_id}",
        "description": "",
        "uri": f"https://ani.gamer.com.tw/animeVideo.php?sn={video_id}",
        "videoUri": f"{BACKEND}/gamer/m3u8?url=sn%3D{video_id}",
        "thumbnailUri": f"https://img.example.com/{video_id}.jpg",
        "backgroundImageUri": f"https://img.example.com/{video_id}-bg.jpg",
        "category": "gamer - Series",
        "videoType": "EPISODE",
        "duration": "PT00H24M",
        "seriesUri": f"https://ani.gamer.com.tw/animeRef.php?sn=series-{video_id}",
        "seasonUri": "",
        "episodeNumber": "1",
        "seasonNumber": "1",
        "episodeUrl": "",
    }
    payload.update(overrides)
    return payload


def make_fetch(
    handler: Callable[[httpx.Request], Any],
    *,
    retries: int = 0,
) -> tuple[FetchClient, httpx.AsyncClient]:
    """Build a fetch client whose requests are answered by ``handler``."""

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FetchClient(http_client, retries=retries, backoff_seconds=0), http_client
