"""
Schema evolution engine.

Evolutions are an ordered tuple of immutable steps; the 1-based position of
a step is its schema version. Released steps must never be edited or
reordered, only appended to. Applied versions are recorded in the
`schema_evolutions` bookkeeping table:

    schema_evolutions(schema_version SMALLINT PK, schema_update DATETIME)

`SchemaMigrator.migrate()` creates that table if needed, reads the highest
recorded version and applies every later step in ascending order, inserting
one bookkeeping row per step. The whole run shares a single transaction, so
a failure leaves the database at the version it started from.
"""

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Index, Table, func, insert, select, text
from sqlalchemy import exc as sa_exc
from sqlalchemy import schema as ddl
from sqlalchemy.ext.asyncio import AsyncConnection

from jobledger.core.database import ConnectionPool
from jobledger.core.datetime_utils import utc_now
from jobledger.core.errors import MigrationError
from jobledger.core.logging import get_logger
from jobledger.models.schema_evolution import SchemaEvolution

logger = get_logger(__name__)

MIGRATION_LOCK_NAME = "jobledger_schema_evolutions"

bookkeeping = SchemaEvolution.__table__


@dataclass(frozen=True, slots=True)
class CreateTable:
    table: Table


@dataclass(frozen=True, slots=True)
class CreateIndex:
    index: Index


Operation = CreateTable | CreateIndex


@dataclass(frozen=True, slots=True)
class SchemaStep:
    """One schema version: a named group of operations applied together."""

    name: str
    operations: tuple[Operation, ...]


@dataclass(frozen=True, slots=True)
class SchemaVersionRecord:
    version: int
    applied_at: datetime


async def _apply(conn: AsyncConnection, operation: Operation) -> None:
    if isinstance(operation, CreateTable):
        await conn.execute(ddl.CreateTable(operation.table))
    elif isinstance(operation, CreateIndex):
        await conn.execute(ddl.CreateIndex(operation.index))
    else:
        raise TypeError(f"Unknown schema operation: {operation!r}")


class SchemaMigrator:
    """Brings a database up to the latest schema version, exactly once per step."""

    def __init__(
        self,
        pool: ConnectionPool,
        steps: Sequence[SchemaStep] | None = None,
        lock_timeout: int = 30,
    ) -> None:
        if steps is None:
            from jobledger.evolutions import EVOLUTIONS

            steps = EVOLUTIONS
        self._pool = pool
        self._steps = tuple(steps)
        self._lock_timeout = lock_timeout

    @property
    def latest_version(self) -> int:
        return len(self._steps)

    async def migrate(self) -> int:
        """
        Apply all pending steps and return the resulting schema version.

        Raises:
            MigrationError: If a step fails, the lock cannot be acquired, or
                the database is newer than the known steps
        """
        async with self._pool.transaction(operation="migrate") as conn:
            async with self._exclusive(conn):
                try:
                    await conn.execute(ddl.CreateTable(bookkeeping, if_not_exists=True))
                    current = await self._read_version(conn)
                except sa_exc.SQLAlchemyError as e:
                    raise MigrationError(f"Cannot read schema version: {e}") from e

                if current > self.latest_version:
                    raise MigrationError(
                        "Database schema is newer than this release "
                        f"(db={current}, code={self.latest_version})",
                        version=current,
                    )
                if current == self.latest_version:
                    logger.bind(version=current).debug("schema_up_to_date")
                    return current

                for version, step in enumerate(self._steps[current:], start=current + 1):
                    await self._apply_step(conn, version, step)

        logger.bind(
            from_version=current, to_version=self.latest_version
        ).info("schema_migrated")
        return self.latest_version

    async def current_version(self) -> int:
        """Highest applied schema version, 0 for an unmigrated database."""
        async with self._pool.transaction(operation="schema_version") as conn:
            if not await self._has_bookkeeping(conn):
                return 0
            return await self._read_version(conn)

    async def history(self) -> list[SchemaVersionRecord]:
        """Applied versions in ascending order."""
        async with self._pool.transaction(operation="schema_history") as conn:
            if not await self._has_bookkeeping(conn):
                return []
            result = await conn.execute(
                select(bookkeeping.c.schema_version, bookkeeping.c.schema_update).order_by(
                    bookkeeping.c.schema_version
                )
            )
            return [SchemaVersionRecord(version=v, applied_at=at) for v, at in result.all()]

    async def _apply_step(self, conn: AsyncConnection, version: int, step: SchemaStep) -> None:
        try:
            for operation in step.operations:
                await _apply(conn, operation)
            await conn.execute(
                insert(bookkeeping).values(schema_version=version, schema_update=utc_now())
            )
        except sa_exc.SQLAlchemyError as e:
            logger.bind(version=version, step=step.name, error=str(e)).error(
                "schema_evolution_failed"
            )
            raise MigrationError(
                f"Schema evolution {version} ({step.name}) failed: {e}", version=version
            ) from e

        logger.bind(version=version, step=step.name).info("schema_evolution_applied")

    @staticmethod
    async def _read_version(conn: AsyncConnection) -> int:
        result = await conn.execute(select(func.max(bookkeeping.c.schema_version)))
        return result.scalar_one_or_none() or 0

    @staticmethod
    async def _has_bookkeeping(conn: AsyncConnection) -> bool:
        return await conn.run_sync(
            lambda sync_conn: sync_conn.dialect.has_table(sync_conn, bookkeeping.name)
        )

    @asynccontextmanager
    async def _exclusive(self, conn: AsyncConnection) -> AsyncIterator[None]:
        """Hold a named advisory lock for the duration of the migration (MySQL only)."""
        if conn.dialect.name != "mysql":
            yield
            return

        result = await conn.execute(
            text("SELECT GET_LOCK(:name, :timeout)"),
            {"name": MIGRATION_LOCK_NAME, "timeout": self._lock_timeout},
        )
        if result.scalar() != 1:
            raise MigrationError(
                f"Could not acquire migration lock within {self._lock_timeout}s"
            )
        try:
            yield
        finally:
            await conn.execute(text("SELECT RELEASE_LOCK(:name)"), {"name": MIGRATION_LOCK_NAME})
