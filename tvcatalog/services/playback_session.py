"""Drive one playback attempt from source resolution to completion."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from sqlalchemy.exc import SQLAlchemyError

from ..errors import ResolutionError
from ..models import Video
from ..playback import End, Pause, PlaybackStateMachine
from .playback_source import PlaybackSource, PlaybackSourceResolver
from .watch_progress import WatchProgressStore

logger = logging.getLogger(__name__)


class PlaybackSession:
    """Resolve a video's stream and feed player callbacks into the state machine.

    Closing the session cancels a resolution still in flight; nothing shared
    with other sessions (the cache, other resolutions) is touched.
    """

    def __init__(
        self,
        video: Video,
        resolver: PlaybackSourceResolver,
        machine: PlaybackStateMachine,
        progress: WatchProgressStore | None = None,
    ):
        self.video = video
        self.machine = machine
        self.source: PlaybackSource | None = None
        self._resolver = resolver
        self._progress = progress
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> asyncio.Task[None]:
        """Enter ``Load`` and begin resolving the stream in the background."""

        if self._task is not None:
            return self._task
        self.machine.load(self.video)
        self._task = asyncio.create_task(
            self._resolve_and_prepare(), name=f"playback-resolve:{self.video.id}"
        )
        return self._task

    async def wait_ready(self) -> None:
        """Wait until resolution has finished, successfully or not."""

        if self._task is not None:
            with suppress(asyncio.CancelledError):
                await asyncio.shield(self._task)

    async def on_is_playing_changed(
        self, is_playing: bool, *, ended: bool = False, position: int = 0
    ) -> None:
        """Player callback fired whenever playback starts or stops advancing."""

        if self._closed:
            return
        if is_playing:
            self.machine.play()
        elif ended:
            self.machine.end()
            if self._in_state(End):
                await self._save_progress(0, finished=True)
        else:
            self.machine.pause(position)
            if self._in_state(Pause):
                await self._save_progress(position)

    def on_player_error(self, cause: BaseException) -> None:
        if self._closed:
            return
        logger.warning("Playback error for %s: %s", self.video.name, cause)
        self.machine.fail(cause)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            logger.info("Cancelled stream resolution for %s", self.video.name)

    def _in_state(self, state_type: type) -> bool:
        # Rejected triggers leave the machine where it was.
        state = self.machine.state
        return isinstance(state, state_type) and state.video == self.video

    async def _resolve_and_prepare(self) -> None:
        try:
            source = await self._resolver.resolve(self.video.video_uri)
        except ResolutionError as exc:
            logger.error("Could not resolve a stream for %s: %s", self.video.name, exc)
            self.machine.fail(exc)
            return

        self.source = source
        start_position = await self._start_position()
        logger.info("Starting %s from %sms", self.video.name, start_position)
        self.machine.prepare(start_position)

    async def _start_position(self) -> int:
        if self._progress is None:
            return 0
        try:
            return await self._progress.get_start_position(self.video.id)
        except SQLAlchemyError as exc:
            logger.warning("Reading watch progress for %s failed: %s", self.video.id, exc)
            return 0

    async def _save_progress(self, position: int, *, finished: bool = False) -> None:
        if self._progress is None:
            return
        try:
            await self._progress.save(self.video.id, position, finished=finished)
        except SQLAlchemyError as exc:
            logger.warning("Saving watch progress for %s failed: %s", self.video.id, exc)


class PlaybackController:
    """Keep at most one playback session alive at a time."""

    def __init__(
        self,
        resolver: PlaybackSourceResolver,
        progress: WatchProgressStore | None = None,
        machine: PlaybackStateMachine | None = None,
    ):
        self._resolver = resolver
        self._progress = progress
        self.machine = machine or PlaybackStateMachine()
        self._active: PlaybackSession | None = None

    @property
    def active(self) -> PlaybackSession | None:
        return self._active

    async def start(self, video: Video) -> PlaybackSession:
        """Close the current session, if any, and start one for ``video``."""

        await self.stop()
        session = PlaybackSession(video, self._resolver, self.machine, self._progress)
        self._active = session
        session.start()
        return session

    async def stop(self) -> None:
        if self._active is None:
            return
        session, self._active = self._active, None
        await session.close()
