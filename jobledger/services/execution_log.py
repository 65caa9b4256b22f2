"""Execution history: append-only log of finished job runs."""

from sqlalchemy import select
from sqlalchemy import exc as sa_exc

from jobledger.core.database import ConnectionPool
from jobledger.core.errors import DuplicateExecutionError
from jobledger.core.logging import get_logger
from jobledger.models.execution import Execution
from jobledger.schemas.execution import ExecutionRecord, ExecutionStat

logger = get_logger(__name__)


class ExecutionLogStore:
    """Records completed executions and answers queries over their history."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    async def log_execution(self, record: ExecutionRecord, *, timeout: float | None = None) -> None:
        """
        Insert one execution record.

        Ids are generated by the caller; this store does not deduplicate.

        Raises:
            DuplicateExecutionError: If an execution with the same id exists
        """
        try:
            async with self._pool.session(timeout, operation="log_execution") as session:
                session.add(
                    Execution(
                        id=record.id,
                        job=record.job,
                        start_time=record.start_time,
                        end_time=record.end_time,
                        context=record.context,
                        success=record.success,
                    )
                )
                await session.flush()
        except sa_exc.IntegrityError as e:
            raise DuplicateExecutionError(record.id) from e

        logger.bind(execution_id=record.id, job=record.job, success=record.success).debug(
            "execution_logged"
        )

    async def get_execution_log(
        self, success: bool, *, timeout: float | None = None
    ) -> list[ExecutionRecord]:
        """All executions with the given outcome, ordered by ascending end time."""
        stmt = select(Execution).where(Execution.success == success).order_by(Execution.end_time)
        async with self._pool.session(timeout, operation="get_execution_log") as session:
            result = await session.execute(stmt)
            return [ExecutionRecord.model_validate(row) for row in result.scalars().all()]

    async def get_execution_stats(
        self, job_id: str, *, timeout: float | None = None
    ) -> list[ExecutionStat]:
        """Per-run timing of one job, ordered by ascending start time."""
        stmt = select(Execution).where(Execution.job == job_id).order_by(Execution.start_time)
        async with self._pool.session(timeout, operation="get_execution_stats") as session:
            result = await session.execute(stmt)
            records = [ExecutionRecord.model_validate(row) for row in result.scalars().all()]
        return [ExecutionStat.from_record(record) for record in records]
