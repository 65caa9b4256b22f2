"""Paused job markers."""

from collections.abc import Iterable

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from jobledger.core.database import ConnectionPool
from jobledger.core.logging import get_logger
from jobledger.models.paused_job import PausedJob

logger = get_logger(__name__)


class JobPauseStore:
    """Tracks which jobs are currently paused."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    async def pause_job(self, job_id: str, *, timeout: float | None = None) -> None:
        """Mark a job as paused. Pausing an already paused job is a no-op."""
        await self.pause_jobs([job_id], timeout=timeout)

    async def pause_jobs(self, job_ids: Iterable[str], *, timeout: float | None = None) -> None:
        """Pause several jobs in one transaction."""
        ids = sorted(set(job_ids))
        if not ids:
            return
        # Delete and insert commit together
        async with self._pool.session(timeout, operation="pause_jobs") as session:
            await self._delete(session, ids)
            await session.execute(insert(PausedJob), [{"id": job_id} for job_id in ids])
        logger.bind(jobs=ids).debug("jobs_paused")

    async def unpause_job(self, job_id: str, *, timeout: float | None = None) -> None:
        """Remove a job's pause marker. Unpausing a job that isn't paused is a no-op."""
        await self.unpause_jobs([job_id], timeout=timeout)

    async def unpause_jobs(self, job_ids: Iterable[str], *, timeout: float | None = None) -> None:
        """Unpause several jobs in one transaction."""
        ids = sorted(set(job_ids))
        if not ids:
            return
        async with self._pool.session(timeout, operation="unpause_jobs") as session:
            await self._delete(session, ids)
        logger.bind(jobs=ids).debug("jobs_unpaused")

    async def get_paused_job_ids(self, *, timeout: float | None = None) -> set[str]:
        """Ids of every currently paused job."""
        async with self._pool.session(timeout, operation="get_paused_job_ids") as session:
            result = await session.execute(select(PausedJob.id))
            return set(result.scalars().all())

    @staticmethod
    async def _delete(session: AsyncSession, ids: list[str]) -> None:
        await session.execute(delete(PausedJob).where(PausedJob.id.in_(ids)))
