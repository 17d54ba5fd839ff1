import inspect
from contextvars import ContextVar

import asyncpg
from asyncpg import Connection
from loguru import logger

from ..config import hide_password_in_dsn

_query_context: ContextVar[dict[str, str] | None] = ContextVar("_sg_query_context", default=None)


def _connection_query_logger(record) -> None:
    """Log executed queries using loguru without assuming record internals.

    Query arguments are never logged; they carry channel secrets.
    """
    try:
        query = getattr(record, "query", None)
        elapsed = getattr(record, "elapsed", None)
        exception = getattr(record, "exception", None)

        ctx = _query_context.get()

        parts = ["SQL: {}", query]
        if elapsed is not None:
            parts[0] += " | elapsed={}"
            parts.append(elapsed)
        if exception:
            parts[0] += " | exception={}"
            parts.append(type(exception).__name__)
        if ctx and ctx.get("call_site"):
            parts[0] += " | caller={}"
            parts.append(ctx["call_site"])

        logger.debug(*parts)
    except Exception as exc:  # pragma: no cover - safeguard against logging errors
        logger.debug("SQL: <unable to log query> ({})", exc)


class AsyncPGClient:
    def __init__(self, conn: Connection):
        self.conn = conn
        if hasattr(conn, "add_query_logger"):
            try:
                conn.add_query_logger(_connection_query_logger)
            except Exception as exc:  # pragma: no cover - log but do not break queries
                logger.debug("Failed to attach query logger: {}", exc)

    @staticmethod
    def _call_site() -> str:
        """Capture the first non-storage frame to pinpoint the query caller."""
        frame = inspect.currentframe()
        while frame:
            module = frame.f_globals.get("__name__", "")
            if not module.startswith(__name__):
                return f"{module}:{frame.f_code.co_name}:{frame.f_lineno}"
            frame = frame.f_back

        return "unknown"

    async def _run_with_query_context(self, coro_factory):
        token = _query_context.set({"call_site": self._call_site()})
        try:
            return await coro_factory()
        finally:
            _query_context.reset(token)

    async def execute(self, query: str, *args, **kwargs):
        return await self._run_with_query_context(lambda: self.conn.execute(query, *args, **kwargs))

    async def fetch(self, query: str, *args, **kwargs):
        return await self._run_with_query_context(lambda: self.conn.fetch(query, *args, **kwargs))

    async def fetchrow(self, query: str, *args, **kwargs):
        return await self._run_with_query_context(lambda: self.conn.fetchrow(query, *args, **kwargs))

    async def fetchval(self, query: str, *args, **kwargs):
        return await self._run_with_query_context(lambda: self.conn.fetchval(query, *args, **kwargs))


class PgSession:
    """
    Async context session that acquires a connection from the pool and
    returns an AsyncPGClient. On exit, the connection is released to the pool.
    """

    def __init__(self, manager: "PostgresManager"):
        self._manager = manager
        self._conn: Connection | None = None

    async def __aenter__(self) -> AsyncPGClient:
        self._conn = await self._manager.acquire()
        return AsyncPGClient(self._conn)

    async def __aexit__(self, exc_type, exc, tb):
        if self._conn is not None:
            await self._manager.release(self._conn)
            self._conn = None


class PostgresManager:
    """
    PostgreSQL pool owner for the channel registry.

    Constructed once by the application lifespan and handed to whoever needs
    the store; `open()` creates a bounded pool and `close()` drains it.
    """

    def __init__(self, dsn: str, *, max_size: int = 10, command_timeout: float = 5.0):
        self._dsn = dsn
        self._max_size = max(1, max_size)
        self._command_timeout = command_timeout
        self._pool: asyncpg.Pool | None = None

    @property
    def safe_dsn(self) -> str:
        return hide_password_in_dsn(self._dsn)

    async def open(self) -> None:
        if self._pool is not None:
            return
        logger.info("Open Postgres pool {} max_size={}", self.safe_dsn, self._max_size)
        self._pool = await asyncpg.create_pool(
            self._dsn,
            min_size=1,
            max_size=self._max_size,
            command_timeout=self._command_timeout,
        )

    async def close(self) -> None:
        pool, self._pool = self._pool, None
        if pool is None:
            return
        try:
            await pool.close()
            logger.info("Closed Postgres pool {}", self.safe_dsn)
        except Exception as e:
            logger.error("Error closing Postgres pool {}: {}", self.safe_dsn, e)

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Postgres pool is not open")
        return self._pool

    async def acquire(self) -> Connection:
        return await self._require_pool().acquire()

    async def release(self, conn: Connection) -> None:
        try:
            await self._require_pool().release(conn)
        except Exception as e:
            logger.warning("Error releasing Postgres connection: {}", e)

    def session(self) -> PgSession:
        return PgSession(self)

    async def __aenter__(self) -> "PostgresManager":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
