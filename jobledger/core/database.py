import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event, text
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, Pool

from jobledger.config import Settings
from jobledger.core.errors import ConnectivityError, OperationTimeoutError
from jobledger.core.logging import get_logger

logger = get_logger(__name__)


def _enable_sqlite_transactions(engine: AsyncEngine) -> None:
    """
    Let SQLite run DDL inside transactions.

    The sqlite3 driver only opens a transaction before DML, so CREATE TABLE
    statements would otherwise commit on their own. Turning off its implicit
    handling and emitting BEGIN ourselves makes migrations atomic.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_transactions(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


class ConnectionPool:
    """
    Bounded pool of database connections handed out one operation at a time.

    Every `session()` / `transaction()` block holds exactly one pooled
    connection inside one transaction: it commits when the block exits
    normally, rolls back on any error, and always returns the connection.
    """

    def __init__(
        self,
        url: str | URL,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: float = 30.0,
        pool_recycle: int = 280,
        query_timeout: float | None = None,
        echo: bool = False,
        poolclass: type[Pool] | None = None,
        connect_args: dict[str, Any] | None = None,
    ) -> None:
        engine_kwargs: dict[str, Any] = {
            "echo": echo,
            "connect_args": connect_args or {},
        }
        if poolclass is None:
            engine_kwargs.update(
                poolclass=AsyncAdaptedQueuePool,
                pool_pre_ping=True,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
            )
        else:
            engine_kwargs["poolclass"] = poolclass

        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self.query_timeout = query_timeout
        self._sessionmaker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        if self.dialect_name == "sqlite":
            _enable_sqlite_transactions(self.engine)

        logger.bind(
            dialect=self.dialect_name,
            pool=type(self.engine.pool).__name__,
            pool_size=pool_size if poolclass is None else None,
            max_overflow=max_overflow if poolclass is None else None,
        ).debug("connection_pool_created")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionPool":
        """Build a pool from typed settings, pinning MySQL sessions to UTC."""
        url = settings.sqlalchemy_url
        connect_args: dict[str, Any] = {}
        if not settings.database_url or settings.database_url.startswith("mysql"):
            connect_args["init_command"] = "SET time_zone = '+00:00'"

        return cls(
            url,
            pool_size=settings.pool_size,
            max_overflow=settings.pool_max_overflow,
            pool_timeout=settings.pool_timeout,
            pool_recycle=settings.pool_recycle,
            query_timeout=settings.query_timeout,
            echo=settings.debug,
            connect_args=connect_args,
        )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    @asynccontextmanager
    async def _scoped(self, timeout: float | None, operation: str) -> AsyncIterator[None]:
        """Apply the operation timeout and translate driver failures."""
        timeout = self.query_timeout if timeout is None else timeout
        try:
            async with asyncio.timeout(timeout):
                yield
        except (TimeoutError, sa_exc.TimeoutError) as e:
            raise OperationTimeoutError(timeout, operation) from e
        except (sa_exc.OperationalError, sa_exc.InterfaceError) as e:
            raise ConnectivityError(f"{operation} failed: {e.orig or e}") from e
        except sa_exc.DBAPIError as e:
            if e.connection_invalidated:
                raise ConnectivityError(f"{operation} lost its connection: {e.orig or e}") from e
            raise

    @asynccontextmanager
    async def session(
        self, timeout: float | None = None, operation: str = "session"
    ) -> AsyncIterator[AsyncSession]:
        """Yield an ORM session bound to one pooled connection and one transaction."""
        async with self._scoped(timeout, operation):
            async with self._sessionmaker() as session, session.begin():
                yield session

    @asynccontextmanager
    async def transaction(
        self, timeout: float | None = None, operation: str = "transaction"
    ) -> AsyncIterator[AsyncConnection]:
        """Yield a Core connection inside one transaction."""
        async with self._scoped(timeout, operation):
            async with self.engine.begin() as conn:
                yield conn

    async def ping(self, timeout: float | None = None) -> None:
        """Check that the backend is reachable.

        Raises:
            ConnectivityError: If no connection can be established
        """
        try:
            async with self._scoped(timeout, "ping"):
                async with self.engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
        except (ConnectivityError, OperationTimeoutError):
            raise
        except (OSError, sa_exc.SQLAlchemyError) as e:
            raise ConnectivityError(f"Cannot reach database: {e}") from e

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()
        logger.debug("connection_pool_disposed")
