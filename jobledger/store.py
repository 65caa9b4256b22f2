"""
Entry point used by the scheduler and the HTTP layer.

    ledger = await connect(get_settings())
    await ledger.log_execution(record)
    paused = await ledger.get_paused_job_ids()
    await ledger.close()

`connect` returns only once the database is reachable and fully migrated,
so no query can ever run against a schema in an unknown state.
"""

from collections.abc import Iterable
from types import TracebackType

from jobledger.config import Settings, get_settings
from jobledger.core.database import ConnectionPool
from jobledger.core.logging import get_logger
from jobledger.core.migrations import SchemaMigrator, SchemaVersionRecord
from jobledger.schemas.execution import ExecutionRecord, ExecutionStat
from jobledger.services.execution_log import ExecutionLogStore
from jobledger.services.job_pause import JobPauseStore

logger = get_logger(__name__)


class JobLedger:
    """Handle over a migrated database: execution history and paused jobs."""

    def __init__(self, pool: ConnectionPool, migrator: SchemaMigrator) -> None:
        self.pool = pool
        self.migrator = migrator
        self.executions = ExecutionLogStore(pool)
        self.pauses = JobPauseStore(pool)

    async def log_execution(self, record: ExecutionRecord, *, timeout: float | None = None) -> None:
        await self.executions.log_execution(record, timeout=timeout)

    async def get_execution_log(
        self, success: bool, *, timeout: float | None = None
    ) -> list[ExecutionRecord]:
        return await self.executions.get_execution_log(success, timeout=timeout)

    async def get_execution_stats(
        self, job_id: str, *, timeout: float | None = None
    ) -> list[ExecutionStat]:
        return await self.executions.get_execution_stats(job_id, timeout=timeout)

    async def pause_job(self, job_id: str, *, timeout: float | None = None) -> None:
        await self.pauses.pause_job(job_id, timeout=timeout)

    async def pause_jobs(self, job_ids: Iterable[str], *, timeout: float | None = None) -> None:
        await self.pauses.pause_jobs(job_ids, timeout=timeout)

    async def unpause_job(self, job_id: str, *, timeout: float | None = None) -> None:
        await self.pauses.unpause_job(job_id, timeout=timeout)

    async def unpause_jobs(self, job_ids: Iterable[str], *, timeout: float | None = None) -> None:
        await self.pauses.unpause_jobs(job_ids, timeout=timeout)

    async def get_paused_job_ids(self, *, timeout: float | None = None) -> set[str]:
        return await self.pauses.get_paused_job_ids(timeout=timeout)

    async def schema_version(self) -> int:
        return await self.migrator.current_version()

    async def schema_history(self) -> list[SchemaVersionRecord]:
        return await self.migrator.history()

    async def close(self) -> None:
        await self.pool.dispose()

    async def __aenter__(self) -> "JobLedger":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


async def connect(
    settings: Settings | None = None,
    *,
    pool: ConnectionPool | None = None,
) -> JobLedger:
    """
    Open the pool, migrate the schema and return a ready ledger.

    Args:
        settings: Typed configuration, defaults to the environment
        pool: Existing pool to use instead of building one from settings

    Raises:
        ConfigurationError: If settings are needed and incomplete
        ConnectivityError: If the database cannot be reached
        MigrationError: If the schema cannot be brought up to date
    """
    owns_pool = pool is None
    if pool is None:
        settings = settings or get_settings()
        pool = ConnectionPool.from_settings(settings)
    lock_timeout = settings.migration_lock_timeout if settings else 30

    try:
        await pool.ping()
        migrator = SchemaMigrator(pool, lock_timeout=lock_timeout)
        version = await migrator.migrate()
    except BaseException:
        if owns_pool:
            await pool.dispose()
        raise

    logger.bind(schema_version=version, dialect=pool.dialect_name).info("ledger_connected")
    return JobLedger(pool, migrator)
