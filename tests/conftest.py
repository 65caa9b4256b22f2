"""
Pytest configuration and fixtures for JobLedger tests.

Provides:
- In-memory SQLite connection pools (aiosqlite + StaticPool)
- Migrated pools and the stores built on them
- Factory fixtures for creating execution records
"""

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from loguru import logger
from sqlalchemy import StaticPool, event

from jobledger.core.database import ConnectionPool
from jobledger.core.migrations import SchemaMigrator
from jobledger.schemas.execution import ExecutionRecord
from jobledger.services.execution_log import ExecutionLogStore
from jobledger.services.job_pause import JobPauseStore

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

BASE_TIME = datetime(2026, 3, 1, 12, 0, 0)


@pytest_asyncio.fixture
async def pool() -> AsyncGenerator[ConnectionPool, None]:
    """Create an empty in-memory database behind a connection pool."""
    pool = ConnectionPool(TEST_DATABASE_URL, poolclass=StaticPool)
    yield pool
    await pool.dispose()


@pytest_asyncio.fixture
async def migrated_pool(pool: ConnectionPool) -> ConnectionPool:
    """Pool whose database is at the latest schema version."""
    await SchemaMigrator(pool).migrate()
    return pool


@pytest_asyncio.fixture
async def execution_store(migrated_pool: ConnectionPool) -> ExecutionLogStore:
    return ExecutionLogStore(migrated_pool)


@pytest_asyncio.fixture
async def pause_store(migrated_pool: ConnectionPool) -> JobPauseStore:
    return JobPauseStore(migrated_pool)


@pytest.fixture
def statement_log():
    """Record every SQL statement a pool's engine sends to the driver."""

    def _attach(pool: ConnectionPool) -> list[str]:
        statements: list[str] = []

        @event.listens_for(pool.engine.sync_engine, "before_cursor_execute")
        def _record(conn, cursor, statement, parameters, context, executemany):
            statements.append(" ".join(statement.split()))

        return statements

    return _attach


@pytest.fixture
def log_records():
    """Capture loguru records emitted during the test."""
    records: list[dict] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


# ============================================================================
# Factory Fixtures
# ============================================================================


@pytest.fixture
def execution_factory():
    """Factory for creating execution records."""

    def _create_execution(
        job: str = "nightly-export",
        success: bool = True,
        start_offset_minutes: int = 0,
        duration_minutes: int = 5,
        context: dict = None,
        execution_id: str = None,
    ) -> ExecutionRecord:
        start_time = BASE_TIME + timedelta(minutes=start_offset_minutes)
        return ExecutionRecord(
            id=execution_id or str(uuid.uuid4()),
            job=job,
            start_time=start_time,
            end_time=start_time + timedelta(minutes=duration_minutes),
            context=context if context is not None else {"partition": "2026-03-01"},
            success=success,
        )

    return _create_execution
