"""Persisted playback positions used to resume videos."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import WatchProgress

logger = logging.getLogger(__name__)


class WatchProgressStore:
    """Read and write the resume position of each video."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_start_position(self, video_id: str) -> int:
        """Return where playback should resume, ``0`` for new or finished videos."""

        async with self._session_factory() as session:
            record = await session.get(WatchProgress, video_id)
        if record is None or record.finished:
            return 0
        return max(0, record.position_ms)

    async def save(self, video_id: str, position_ms: int, *, finished: bool = False) -> None:
        async with self._session_factory() as session:
            record = await session.get(WatchProgress, video_id)
            if record is None:
                record = WatchProgress(video_id=video_id)
                session.add(record)
            record.position_ms = 0 if finished else max(0, position_ms)
            record.finished = finished
            record.updated_at = datetime.utcnow()
            await session.commit()
        logger.debug(
            "Saved progress for %s: %sms (finished=%s)", video_id, position_ms, finished
        )

    async def list_in_progress(self, limit: int = 20) -> list[str]:
        """Return ids of unfinished videos, most recently watched first."""

        async with self._session_factory() as session:
            stmt = (
                select(WatchProgress.video_id)
                .where(WatchProgress.finished.is_(False), WatchProgress.position_ms > 0)
                .order_by(WatchProgress.updated_at.desc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [row[0] for row in result.all()]
