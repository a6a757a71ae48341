"""
Results Database Connection Pool

Async asyncpg pool for the Postgres database holding benchmark results,
with connect retries and a health probe.
"""

import asyncio
import logging
import random
import socket
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import asyncpg
from asyncpg import Pool
from asyncpg.exceptions import CannotConnectNowError, TooManyConnectionsError

from loadbench.config import settings

logger = logging.getLogger(__name__)


class PostgresConnectionPool:
    """
    Lazily created asyncpg pool with retry on transient connect failures.
    """

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        min_size: int = 1,
        max_size: int = 5,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        command_timeout: float = 30.0,
        pool_name: str = "results",
    ):
        """
        Args:
            host: Database host
            port: Database port
            database: Database name
            user: Username
            password: Password
            min_size: Minimum pool size
            max_size: Maximum pool size
            max_retries: Connect attempts before giving up
            retry_delay: Base delay between attempts (seconds, grows linearly)
            command_timeout: Per-statement timeout (seconds)
            pool_name: Name used in log lines
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.min_size = min_size
        self.max_size = max_size
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.command_timeout = command_timeout
        self.pool_name = pool_name

        self._pool: Optional[Pool] = None
        self._init_lock = asyncio.Lock()

        logger.info(
            f"[{pool_name}] Postgres pool configured: {user}@{host}:{port}/{database}, "
            f"size={min_size}-{max_size}"
        )

    @property
    def initialized(self) -> bool:
        return self._pool is not None

    async def initialize(self) -> None:
        """Create the pool, retrying connection-level failures."""
        async with self._init_lock:
            if self._pool is not None:
                return

            logger.info(f"[{self.pool_name}] Creating Postgres connection pool...")
            for attempt in range(self.max_retries):
                try:
                    self._pool = await asyncpg.create_pool(
                        host=self.host,
                        port=self.port,
                        database=self.database,
                        user=self.user,
                        password=self.password,
                        min_size=self.min_size,
                        max_size=self.max_size,
                        command_timeout=self.command_timeout,
                    )
                    logger.info(f"[{self.pool_name}] Postgres pool ready")
                    return
                except (
                    CannotConnectNowError,
                    TooManyConnectionsError,
                    socket.gaierror,
                    OSError,
                ) as e:
                    if attempt >= self.max_retries - 1:
                        logger.error(
                            f"[{self.pool_name}] Failed to create pool after "
                            f"{self.max_retries} attempts: {e}"
                        )
                        raise
                    delay = self.retry_delay * (attempt + 1) + random.uniform(0, 0.5)
                    logger.warning(
                        f"[{self.pool_name}] Pool creation attempt {attempt + 1} failed "
                        f"({e}), retrying in {delay:.1f}s..."
                    )
                    await asyncio.sleep(delay)

    @asynccontextmanager
    async def get_connection(self):
        """
        Acquire a connection (async context manager).

        Usage:
            async with pool.get_connection() as conn:
                row = await conn.fetchrow("SELECT 1")
        """
        if self._pool is None:
            await self.initialize()
        if self._pool is None:
            raise RuntimeError("Pool not initialized")

        async with self._pool.acquire() as conn:
            yield conn

    async def execute_query(self, query: str, *args, timeout: Optional[float] = None) -> str:
        async with self.get_connection() as conn:
            return await conn.execute(query, *args, timeout=timeout)

    async def fetch_all(
        self, query: str, *args, timeout: Optional[float] = None
    ) -> List[asyncpg.Record]:
        async with self.get_connection() as conn:
            return await conn.fetch(query, *args, timeout=timeout)

    async def fetch_one(
        self, query: str, *args, timeout: Optional[float] = None
    ) -> Optional[asyncpg.Record]:
        async with self.get_connection() as conn:
            return await conn.fetchrow(query, *args, timeout=timeout)

    async def fetch_val(self, query: str, *args, timeout: Optional[float] = None) -> Any:
        async with self.get_connection() as conn:
            return await conn.fetchval(query, *args, timeout=timeout)

    async def is_healthy(self) -> bool:
        if self._pool is None:
            return False
        try:
            return await self.fetch_val("SELECT 1") == 1
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

    async def get_pool_stats(self) -> Dict[str, Any]:
        if self._pool is None:
            return {"initialized": False, "size": 0, "free": 0}
        return {
            "initialized": True,
            "min_size": self.min_size,
            "max_size": self.max_size,
            "size": self._pool.get_size(),
            "free": self._pool.get_idle_size(),
        }

    async def close(self) -> None:
        if self._pool is not None:
            logger.info(f"[{self.pool_name}] Closing Postgres connection pool...")
            await self._pool.close()
            self._pool = None


_default_pool: Optional[PostgresConnectionPool] = None


def get_default_pool() -> PostgresConnectionPool:
    """Get or create the results database pool."""
    global _default_pool

    if _default_pool is None:
        _default_pool = PostgresConnectionPool(
            host=settings.POSTGRES_HOST,
            port=settings.POSTGRES_PORT,
            database=settings.POSTGRES_DATABASE,
            user=settings.POSTGRES_USER,
            password=settings.POSTGRES_PASSWORD,
            min_size=settings.POSTGRES_POOL_MIN_SIZE,
            max_size=settings.POSTGRES_POOL_MAX_SIZE,
            command_timeout=settings.POSTGRES_COMMAND_TIMEOUT,
        )
    return _default_pool


async def close_default_pool() -> None:
    global _default_pool

    if _default_pool is not None:
        await _default_pool.close()
    _default_pool = None
