"""
Pooled aiosqlite connections for the ledger database.

Reads share the pool freely. Writes go through ``transaction()``, which takes
SQLite's write lock up front (BEGIN IMMEDIATE), so concurrent writers wait out
busy_timeout instead of failing on lock upgrade. Racing duplicate posts are
stopped by the unique idempotency index.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from storeledger.config import get_logger, get_settings
from storeledger.infrastructure.storage.sqlite.schema import apply_schema

logger = get_logger(__name__)


class ConnectionPool:
    """Fixed-size pool of aiosqlite connections to one ledger database."""

    def __init__(self, db_path: Path, pool_size: int = 5, busy_timeout: int = 30000):
        self.db_path = Path(db_path)
        self.pool_size = max(1, pool_size)
        self.busy_timeout = busy_timeout

        self._idle: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue(maxsize=self.pool_size)
        self._opened: list[aiosqlite.Connection] = []
        self._ready = False
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open the connections and bring the schema up to date."""
        async with self._lock:
            if self._ready:
                return

            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            for _ in range(self.pool_size):
                conn = await self._open()
                self._opened.append(conn)
                self._idle.put_nowait(conn)

            version = await apply_schema(self._opened[0])
            self._ready = True
            logger.info(
                "ledger_pool_ready",
                db_path=str(self.db_path),
                pool_size=self.pool_size,
                schema_version=version,
            )

    async def _open(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(self.db_path)
        conn.row_factory = aiosqlite.Row
        # WAL so a report can read while an admin posts a transaction
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA synchronous=NORMAL")
        await conn.execute(f"PRAGMA busy_timeout={int(self.busy_timeout)}")
        return conn

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Borrow a connection for reads."""
        if not self._ready:
            await self.initialize()
        conn = await self._idle.get()
        try:
            yield conn
        finally:
            self._idle.put_nowait(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Borrow a connection inside a write transaction; commit or roll back on exit."""
        async with self.acquire() as conn:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()

    async def close(self) -> None:
        async with self._lock:
            while not self._idle.empty():
                self._idle.get_nowait()
            for conn in self._opened:
                await conn.close()
            self._opened.clear()
            self._ready = False
            logger.info("ledger_pool_closed", db_path=str(self.db_path))


_pool: ConnectionPool | None = None


async def get_pool() -> ConnectionPool:
    """Get the process-wide pool, creating it from storage settings."""
    global _pool
    if _pool is None:
        storage = get_settings().storage
        _pool = ConnectionPool(
            db_path=storage.db_path,
            pool_size=storage.pool_size,
            busy_timeout=storage.busy_timeout,
        )
        await _pool.initialize()
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


@asynccontextmanager
async def get_connection() -> AsyncIterator[aiosqlite.Connection]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        yield conn


@asynccontextmanager
async def get_transaction() -> AsyncIterator[aiosqlite.Connection]:
    pool = await get_pool()
    async with pool.transaction() as conn:
        yield conn
