"""Finite state machine describing a single playback session."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Union

from .models import Video
from .utils import ObserverList

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Load:
    video: Video


@dataclass(frozen=True)
class Prepare:
    video: Video
    start_position: int


@dataclass(frozen=True)
class Play:
    video: Video


@dataclass(frozen=True)
class Pause:
    video: Video
    position: int


@dataclass(frozen=True)
class End:
    video: Video


@dataclass(frozen=True)
class Error:
    video: Video
    cause: BaseException


PlaybackState = Union[Load, Prepare, Play, Pause, End, Error]

_TERMINAL = (End, Error)

_ALLOWED: dict[type, tuple[type, ...]] = {
    Load: (Prepare,),
    Prepare: (Play, Pause, End),
    Play: (Pause, End),
    Pause: (Play, Pause, End),
}


class PlaybackStateMachine:
    """Validate and publish playback transitions.

    Triggers come from the player engine; observers only watch. ``Load``
    always starts a new session. ``End`` and ``Error`` are terminal, ``Error``
    can interrupt any live state and drops transitions still queued behind
    it. Transitions requested by an observer while another transition is
    being published are queued, so every observer sees them in order.
    """

    def __init__(self) -> None:
        self._state: PlaybackState | None = None
        self._prepared = False
        self._session = 0
        self._observers: ObserverList[PlaybackState] = ObserverList("playback state")
        self._queue: deque[PlaybackState] = deque()
        self._dispatching = False

    @property
    def state(self) -> PlaybackState | None:
        return self._state

    @property
    def session(self) -> int:
        """Counter increased by every accepted ``Load``."""

        return self._session

    @property
    def video(self) -> Video | None:
        return self._state.video if self._state is not None else None

    def add_observer(self, callback: Callable[[PlaybackState], None]) -> None:
        self._observers.add(callback)

    def remove_observer(self, callback: Callable[[PlaybackState], None]) -> None:
        self._observers.remove(callback)

    def load(self, video: Video) -> None:
        self.on_state_change(Load(video))

    def prepare(self, start_position: int) -> None:
        self._trigger(lambda video: Prepare(video, max(0, start_position)))

    def play(self) -> None:
        self._trigger(Play)

    def pause(self, position: int) -> None:
        self._trigger(lambda video: Pause(video, max(0, position)))

    def end(self) -> None:
        self._trigger(End)

    def fail(self, cause: BaseException) -> None:
        self._trigger(lambda video: Error(video, cause))

    def _trigger(self, build: Callable[[Video], PlaybackState]) -> None:
        video = self.video
        if video is None:
            logger.debug("Ignoring trigger before any video was loaded")
            return
        self.on_state_change(build(video))

    def on_state_change(self, state: PlaybackState) -> None:
        """Request a transition to ``state``."""

        if isinstance(state, Error):
            # Errors win over anything still waiting to be applied.
            self._queue = deque(item for item in self._queue if isinstance(item, Load))
            self._queue.appendleft(state)
        else:
            self._queue.append(state)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._queue:
                candidate = self._queue.popleft()
                if self._accept(candidate):
                    self._observers.notify(candidate)
        finally:
            self._dispatching = False

    def _accept(self, candidate: PlaybackState) -> bool:
        current = self._state
        if isinstance(candidate, Load):
            self._state = candidate
            self._prepared = False
            self._session += 1
            return True

        if current is None or isinstance(current, _TERMINAL):
            logger.debug("Ignoring %s: no live session", type(candidate).__name__)
            return False
        if candidate.video != current.video:
            logger.debug("Ignoring %s for a video outside the session", type(candidate).__name__)
            return False

        if isinstance(candidate, Error):
            self._state = candidate
            return True
        if isinstance(candidate, Prepare) and self._prepared:
            logger.debug("Start position already applied for session %s", self._session)
            return False
        if not isinstance(candidate, _ALLOWED.get(type(current), ())):
            logger.debug(
                "Rejected transition %s -> %s",
                type(current).__name__,
                type(candidate).__name__,
            )
            return False

        if isinstance(candidate, Prepare):
            self._prepared = True
        self._state = candidate
        return True


def describe_state(state: PlaybackState | None) -> dict[str, object]:
    """Return a JSON-friendly view of ``state`` for observers outside Python."""

    if state is None:
        return {"state": "idle"}
    payload: dict[str, object] = {
        "state": type(state).__name__.lower(),
        "video": state.video.to_payload(),
    }
    if isinstance(state, Prepare):
        payload["startPosition"] = state.start_position
    elif isinstance(state, Pause):
        payload["position"] = state.position
    elif isinstance(state, Error):
        payload["cause"] = str(state.cause) or type(state.cause).__name__
    return payload
