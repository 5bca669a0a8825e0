"""Entry point for the FastAPI bridge used by the TV front end."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import settings
from .database import Database
from .engine import Engine, build_engine
from .errors import NotFoundError, ResolutionError
from .models import Video, VideoGroup
from .playback import describe_state

logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)

app: FastAPI


class SessionRequest(BaseModel):
    """Body of ``POST /playback/session``: a cached id or a full video."""

    model_config = ConfigDict(populate_by_name=True)

    video_id: str | None = Field(default=None, alias="videoId")
    video: Video | None = None


class PlayerEvent(BaseModel):
    """Callback forwarded from the player engine."""

    event: str
    position: int = Field(default=0, ge=0)
    message: str | None = None


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            timeout=httpx.Timeout(
                settings.http_timeout_seconds,
                connect=settings.http_connect_timeout_seconds,
            ),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    engine = build_engine(settings, http_client, database.session_factory)
    await engine.base_urls.refresh_from_remote(engine.fetch)
    logger.info("Using backend %s", engine.base_urls.current_base_url())

    fastapi_app.state.engine = engine
    fastapi_app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await engine.playback.stop()
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Catalog browsing and stream resolution for the TV client",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_engine(app: FastAPI) -> Engine:
    engine = getattr(app.state, "engine", None)
    if not isinstance(engine, Engine):
        raise RuntimeError("Engine not initialised")
    return engine


def _groups_payload(groups: tuple[VideoGroup, ...]) -> list[dict[str, Any]]:
    return [group.to_payload() for group in groups]


def register_routes(fastapi_app: FastAPI) -> None:
    def _session_payload(engine: Engine) -> dict[str, Any]:
        session = engine.playback.active
        payload = describe_state(engine.playback.machine.state)
        payload["active"] = session is not None
        if session is not None and session.source is not None:
            payload["source"] = session.source.to_payload()
        return payload

    async def _find_video(engine: Engine, video_id: str) -> Video:
        try:
            return await engine.cache.require_by_id(video_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/browse")
    async def browse() -> dict[str, Any]:
        engine = get_engine(fastapi_app)
        groups = engine.aggregator.latest
        if not groups:
            groups = await engine.aggregator.run()
        catalog = engine.aggregator.current_catalog
        return {
            "updated": catalog.updated if catalog else None,
            "groups": _groups_payload(groups),
        }

    @fastapi_app.post("/browse/refresh")
    async def refresh_browse() -> dict[str, Any]:
        engine = get_engine(fastapi_app)
        groups = await engine.aggregator.run(refresh=True)
        catalog = engine.aggregator.current_catalog
        return {
            "updated": catalog.updated if catalog else None,
            "groups": _groups_payload(groups),
        }

    @fastapi_app.get("/services/{site}/videos")
    async def service_videos(site: str) -> dict[str, Any]:
        engine = get_engine(fastapi_app)
        if site not in engine.cache.service_keys:
            raise HTTPException(status_code=404, detail=f"Unknown service {site}")
        videos = await engine.cache.get(site)
        return {
            "site": site,
            "state": engine.cache.state(site).value,
            "videos": [video.to_payload() for video in videos],
        }

    @fastapi_app.post("/services/{site}/refresh")
    async def refresh_service(site: str) -> dict[str, Any]:
        engine = get_engine(fastapi_app)
        try:
            await engine.aggregator.reload_service(site)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        videos = engine.cache.cached(site)
        return {
            "site": site,
            "state": engine.cache.state(site).value,
            "videos": [video.to_payload() for video in videos],
        }

    @fastapi_app.get("/videos/lookup")
    async def lookup_video(video_id: str = Query(alias="id")) -> dict[str, Any]:
        engine = get_engine(fastapi_app)
        video = await _find_video(engine, video_id)
        return video.to_payload()

    @fastapi_app.get("/videos/episodes")
    async def video_episodes(video_id: str = Query(alias="id")) -> dict[str, Any]:
        engine = get_engine(fastapi_app)
        video = await _find_video(engine, video_id)
        groups = await engine.episodes.resolve_grouped(video)
        return {"groups": _groups_payload(groups)}

    @fastapi_app.get("/playback/resolve")
    async def resolve_source(uri: str) -> dict[str, Any]:
        engine = get_engine(fastapi_app)
        try:
            source = await engine.sources.resolve(uri)
        except ResolutionError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return source.to_payload()

    @fastapi_app.post("/playback/session")
    async def start_session(request: Request) -> JSONResponse:
        engine = get_engine(fastapi_app)
        try:
            body = SessionRequest.model_validate(await request.json())
        except (ValidationError, ValueError) as exc:
            raise HTTPException(status_code=400, detail="Invalid session request") from exc

        if body.video is not None:
            video = body.video
        elif body.video_id:
            video = await _find_video(engine, body.video_id)
        else:
            raise HTTPException(status_code=400, detail="videoId or video is required")

        session = await engine.playback.start(video)
        await session.wait_ready()
        return JSONResponse(_session_payload(engine), status_code=201)

    @fastapi_app.get("/playback/session")
    async def session_status() -> dict[str, Any]:
        return _session_payload(get_engine(fastapi_app))

    @fastapi_app.post("/playback/session/events")
    async def session_event(event: PlayerEvent) -> dict[str, Any]:
        engine = get_engine(fastapi_app)
        session = engine.playback.active
        if session is None:
            raise HTTPException(status_code=404, detail="No active playback session")

        kind = event.event.strip().lower()
        if kind == "playing":
            await session.on_is_playing_changed(True)
        elif kind == "paused":
            await session.on_is_playing_changed(False, position=event.position)
        elif kind == "ended":
            await session.on_is_playing_changed(False, ended=True)
        elif kind == "error":
            session.on_player_error(RuntimeError(event.message or "Player error"))
        else:
            raise HTTPException(status_code=400, detail=f"Unsupported event {event.event}")
        return _session_payload(engine)

    @fastapi_app.delete("/playback/session")
    async def stop_session() -> dict[str, Any]:
        engine = get_engine(fastapi_app)
        await engine.playback.stop()
        return _session_payload(engine)


app = create_app()
