"""
MongoDB Target Connector

Async client wrapper for the replica set exercised by the TPC-B-like generator.
Provides the replica set readiness check, dataset initialization, and
per-transaction handles with primary reads and majority writes.
"""

import inspect
import logging
from datetime import UTC, datetime
from typing import Any, Optional

from pymongo import AsyncMongoClient, ReadPreference
from pymongo.errors import OperationFailure, PyMongoError
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from loadbench.config import settings
from loadbench.core.errors import ConfigurationError
from loadbench.core.tpcb_generator import ACCOUNTS_PER_SCALE, TELLERS_PER_SCALE

logger = logging.getLogger(__name__)

COLLECTIONS = ("accounts", "tellers", "branches", "history")


class MongoTpcbTransaction:
    """
    One open multi-document transaction.

    Created by `MongoTarget.begin()`; every statement runs inside the same
    session so the whole transaction commits or aborts atomically.
    """

    def __init__(self, db, session) -> None:
        self._db = db
        self._session = session

    async def update_account(self, aid: int, delta: int) -> None:
        await self._db.accounts.update_one(
            {"aid": aid}, {"$inc": {"abalance": delta}}, session=self._session
        )

    async def select_account(self, aid: int) -> Optional[dict[str, Any]]:
        return await self._db.accounts.find_one({"aid": aid}, session=self._session)

    async def update_teller(self, tid: int, delta: int) -> None:
        await self._db.tellers.update_one(
            {"tid": tid}, {"$inc": {"tbalance": delta}}, session=self._session
        )

    async def update_branch(self, bid: int, delta: int) -> None:
        await self._db.branches.update_one(
            {"bid": bid}, {"$inc": {"bbalance": delta}}, session=self._session
        )

    async def insert_history(self, tid: int, bid: int, aid: int, delta: int) -> None:
        await self._db.history.insert_one(
            {
                "tid": tid,
                "bid": bid,
                "aid": aid,
                "delta": delta,
                "mtime": datetime.now(UTC),
            },
            session=self._session,
        )

    async def commit(self) -> None:
        await self._session.commit_transaction()

    async def abort(self) -> None:
        await self._session.abort_transaction()

    async def close(self) -> None:
        await self._session.end_session()


class MongoTarget:
    """
    Async MongoDB client for one replica set target.
    """

    def __init__(
        self,
        uri: str,
        database: str,
        *,
        server_selection_timeout_ms: int = 15000,
        socket_timeout_ms: int = 60000,
        max_pool_size: int = 100,
    ):
        """
        Args:
            uri: MongoDB connection string (must reach a replica set)
            database: Database holding the TPC-B collections
            server_selection_timeout_ms: Driver server selection timeout
            socket_timeout_ms: Driver socket timeout (upper bound on a stalled statement)
            max_pool_size: Driver connection pool size; should cover the client count
        """
        self.uri = uri
        self.database = database
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self.socket_timeout_ms = socket_timeout_ms
        self.max_pool_size = max_pool_size

        self._client: Optional[AsyncMongoClient] = None

    @property
    def db(self):
        if self._client is None:
            raise RuntimeError("MongoTarget not initialized")
        return self._client[self.database]

    async def initialize(self) -> None:
        if self._client is not None:
            return
        self._client = AsyncMongoClient(
            self.uri,
            serverSelectionTimeoutMS=self.server_selection_timeout_ms,
            socketTimeoutMS=self.socket_timeout_ms,
            maxPoolSize=self.max_pool_size,
        )
        logger.info("MongoDB client ready for database %s", self.database)

    async def _get_client(self) -> AsyncMongoClient:
        await self.initialize()
        if self._client is None:
            raise RuntimeError("MongoTarget not initialized")
        return self._client

    async def check_ready(self) -> None:
        """
        Fail fast unless the target is a replica set that can run transactions.

        Raises:
            ConfigurationError: replSetGetStatus failed or did not report ok
        """
        client = await self._get_client()
        try:
            status = await client.admin.command("replSetGetStatus")
        except OperationFailure as e:
            raise ConfigurationError(f"Replica set not properly configured: {e}") from e
        except PyMongoError as e:
            raise ConfigurationError(f"Replica set unreachable: {e}") from e
        if not status.get("ok"):
            raise ConfigurationError("Replica set not properly configured.")
        logger.info("Replica set %s is ready", status.get("set", "?"))

    async def begin(self) -> MongoTpcbTransaction:
        """Start a session and a transaction on it."""
        client = await self._get_client()
        session = client.start_session()
        try:
            started = session.start_transaction(
                read_concern=ReadConcern("local"),
                write_concern=WriteConcern(w="majority"),
                read_preference=ReadPreference.PRIMARY,
            )
            # The async driver returns an awaitable transaction context.
            if inspect.isawaitable(started):
                await started
        except BaseException:
            await session.end_session()
            raise
        return MongoTpcbTransaction(self.db, session)

    async def initialize_dataset(self, scale: int, *, batch_size: int = 1000) -> None:
        """
        Recreate and populate the TPC-B collections for a scale factor.

        accounts = 100000 x scale, tellers = 10 x scale, branches = scale; all
        balances start at zero.
        """
        await self.initialize()
        db = self.db

        for name in COLLECTIONS:
            await db.drop_collection(name)
            await db.create_collection(name)

        await db.accounts.create_index("aid", unique=True)
        await db.tellers.create_index("tid", unique=True)
        await db.branches.create_index("bid", unique=True)
        await db.history.create_index("aid")

        await db.branches.insert_many(
            [{"bid": i + 1, "bbalance": 0} for i in range(scale)], ordered=False
        )
        logger.info("Branches initialized (%d)", scale)

        tellers = TELLERS_PER_SCALE * scale
        await db.tellers.insert_many(
            [{"tid": i + 1, "tbalance": 0} for i in range(tellers)], ordered=False
        )
        logger.info("Tellers initialized (%d)", tellers)

        accounts = ACCOUNTS_PER_SCALE * scale
        for start in range(0, accounts, batch_size):
            end = min(start + batch_size, accounts)
            await db.accounts.insert_many(
                [{"aid": j + 1, "abalance": 0} for j in range(start, end)],
                ordered=False,
            )
        logger.info("Accounts initialized (%d)", accounts)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
            logger.info("MongoDB client closed")


def get_target(max_pool_size: int = 100) -> MongoTarget:
    """Build a target from settings."""
    return MongoTarget(
        uri=settings.MONGO_URI,
        database=settings.MONGO_DATABASE,
        server_selection_timeout_ms=settings.MONGO_SERVER_SELECTION_TIMEOUT_MS,
        socket_timeout_ms=settings.MONGO_SOCKET_TIMEOUT_MS,
        max_pool_size=max_pool_size,
    )
