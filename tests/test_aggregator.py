"""Tests for progressive catalog aggregation."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from conftest import BACKEND, make_fetch, video_payload
from tvcatalog.base_url import BaseUrlProvider
from tvcatalog.errors import NotFoundError
from tvcatalog.services.aggregator import CatalogAggregator, Snapshot
from tvcatalog.services.catalog_source import CatalogSource
from tvcatalog.services.video_cache import CacheState, VideoCache


def _catalog(*sites: str) -> dict[str, Any]:
    return {
        "updated": "2024-05-01T00:00:00Z",
        "services": [
            {
                "site": site,
                "listUri": f"{BACKEND}/{site}/list",
                "episodesEntry": f"{BACKEND}/{site}/episodes",
                "m3u8Entry": f"{BACKEND}/{site}/m3u8",
            }
            for site in sites
        ],
    }


def _build(handler) -> tuple[CatalogAggregator, VideoCache]:
    fetch, _ = make_fetch(handler)
    cache = VideoCache(fetch)
    aggregator = CatalogAggregator(
        CatalogSource(fetch),
        cache,
        BaseUrlProvider(BACKEND),
        error_group_label="Error",
    )
    return aggregator, cache


async def _collect(runner) -> list[Snapshot]:
    return [snapshot async for snapshot in runner]


@pytest.mark.anyio("asyncio")
async def test_successful_run_emits_one_plus_n_snapshots_in_catalog_order() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path == "/system/catalog":
            return httpx.Response(200, json=_catalog("gamer", "anime1"))
        site = request.url.path.split("/")[1]
        return httpx.Response(
            200, json={"content": [video_payload(f"{site}-1"), video_payload(f"{site}-2")]}
        )

    aggregator, _ = _build(handler)
    snapshots = await _collect(aggregator.load())

    assert len(snapshots) == 3
    assert paths == ["/system/catalog", "/gamer/list", "/anime1/list"]
    assert [group.name for group in snapshots[0]] == ["GAMER", "ANIME1"]
    filled = [sum(not group.is_empty() for group in snapshot) for snapshot in snapshots]
    assert filled == [0, 1, 2]
    assert [video.id for video in snapshots[-1][1].videos] == ["anime1-1", "anime1-2"]
    assert aggregator.latest == snapshots[-1]
    assert aggregator.current_catalog is not None
    assert aggregator.current_catalog.updated == "2024-05-01T00:00:00Z"


@pytest.mark.anyio("asyncio")
async def test_failing_service_leaves_an_empty_row_and_does_not_escape() -> None:
    """Two services: the first lists three videos, the second answers HTTP 500."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/system/catalog":
            return httpx.Response(200, json=_catalog("gamer", "anime1"))
        if request.url.path == "/gamer/list":
            return httpx.Response(
                200, json={"content": [video_payload(str(index)) for index in range(3)]}
            )
        return httpx.Response(500, json={"error": "down"})

    aggregator, cache = _build(handler)
    final = await aggregator.run()

    assert len(final) == 2
    assert len(final[0].videos) == 3
    assert final[1].is_empty()
    assert cache.state("anime1") is CacheState.FAILED


@pytest.mark.anyio("asyncio")
async def test_catalog_failure_emits_single_error_group() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    aggregator, _ = _build(handler)
    snapshots = await _collect(aggregator.load())

    assert len(snapshots) == 1
    assert [group.name for group in snapshots[0]] == ["Error"]
    assert snapshots[0][0].is_empty()


@pytest.mark.anyio("asyncio")
async def test_malformed_catalog_is_treated_as_catalog_failure() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"services": [{"site": "gamer"}]})

    aggregator, _ = _build(handler)
    snapshots = await _collect(aggregator.load())

    assert [group.name for group in snapshots[0]] == ["Error"]


@pytest.mark.anyio("asyncio")
async def test_observers_receive_each_snapshot_even_if_one_fails() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/system/catalog":
            return httpx.Response(200, json=_catalog("gamer"))
        return httpx.Response(200, json={"content": [video_payload("1")]})

    aggregator, _ = _build(handler)
    received: list[Snapshot] = []

    def broken(_: Snapshot) -> None:
        raise RuntimeError("observer bug")

    aggregator.add_observer(broken)
    aggregator.add_observer(received.append)
    snapshots = await _collect(aggregator.load())

    assert received == snapshots

    aggregator.remove_observer(received.append)
    await aggregator.run()
    assert len(received) == len(snapshots)


@pytest.mark.anyio("asyncio")
async def test_refresh_invalidates_cached_listings() -> None:
    counts: dict[str, int] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        counts[request.url.path] = counts.get(request.url.path, 0) + 1
        if request.url.path == "/system/catalog":
            return httpx.Response(200, json=_catalog("gamer", "anime1"))
        return httpx.Response(200, json={"content": [video_payload("1")]})

    aggregator, cache = _build(handler)
    await aggregator.run()
    await aggregator.run()
    assert counts["/gamer/list"] == 1

    refreshed = await _collect(aggregator.refresh())

    assert len(refreshed) == 3
    assert counts["/system/catalog"] == 3
    assert counts["/gamer/list"] == 2
    assert counts["/anime1/list"] == 2
    assert cache.fetch_count("gamer") == 2


@pytest.mark.anyio("asyncio")
async def test_explicit_base_url_overrides_provider() -> None:
    hosts: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        return httpx.Response(200, json={"updated": "", "services": []})

    aggregator, _ = _build(handler)
    snapshots = await _collect(aggregator.load("http://other.test/"))

    assert hosts == ["other.test"]
    assert snapshots == [()]


@pytest.mark.anyio("asyncio")
async def test_reload_service_republishes_rows_with_new_listing() -> None:
    calls: dict[str, int] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        calls[path] = calls.get(path, 0) + 1
        if path == "/system/catalog":
            return httpx.Response(200, json=_catalog("gamer", "anime1"))
        if path == "/anime1/list" and calls[path] == 1:
            return httpx.Response(500, json={"error": "down"})
        return httpx.Response(200, json={"content": [video_payload(f"{path}-{calls[path]}")]})

    aggregator, _ = _build(handler)
    first = await aggregator.run()
    assert first[1].is_empty()

    received: list[Snapshot] = []
    aggregator.add_observer(received.append)
    snapshot = await aggregator.reload_service("anime1")

    assert [video.id for video in snapshot[1].videos] == ["/anime1/list-2"]
    assert snapshot[0] == first[0]
    assert aggregator.latest == snapshot
    assert received == [snapshot]
    assert calls == {"/system/catalog": 1, "/gamer/list": 1, "/anime1/list": 2}


@pytest.mark.anyio("asyncio")
async def test_reload_unknown_service_raises_not_found() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/system/catalog":
            return httpx.Response(200, json=_catalog("gamer"))
        return httpx.Response(200, json={"content": []})

    aggregator, _ = _build(handler)

    with pytest.raises(NotFoundError):
        await aggregator.reload_service("gamer")

    await aggregator.run()
    with pytest.raises(NotFoundError):
        await aggregator.reload_service("anime1")
