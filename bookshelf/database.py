"""
MongoDB database utilities for async operations.
Handles connection, indexing, id sequences and transactional units.
"""

from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import ConnectionFailure, PyMongoError

from .errors import ConflictError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

USERS = "users"
BOOKS = "books"
READ_ENTRIES = "read_entries"
WISH_ENTRIES = "wish_entries"
TAGS = "tags"
COUNTERS = "counters"


class MongoDBManager:
    """
    Async MongoDB manager for the shelf collections.
    Handles connection, indexing, integer id sequences and transactions.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        client: Optional[AsyncIOMotorClient] = None,
        transaction_retry_attempts: int = 2,
    ):
        """
        Initialize MongoDB manager.

        Args:
            connection_url: MongoDB connection URL (must point at a replica set
                for multi-document transactions)
            database_name: Name of the database
            client: Optional pre-built client
            transaction_retry_attempts: Extra attempts for transient transaction conflicts
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.client = client
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.transaction_retry_attempts = transaction_retry_attempts

    async def connect(self) -> None:
        """Establish connection to MongoDB and ensure indexes."""
        try:
            if self.client is None:
                self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]

            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """
        Create indexes backing the uniqueness rules and the listing orders.
        """
        try:
            await self.database[USERS].create_index("social_id", unique=True)
            await self.database[USERS].create_index("email")

            await self.database[BOOKS].create_index("isbn", unique=True)

            # One entry per (user, book) on each shelf
            for name in (READ_ENTRIES, WISH_ENTRIES):
                await self.database[name].create_index(
                    [("user_id", ASCENDING), ("book_id", ASCENDING)], unique=True
                )
                await self.database[name].create_index(
                    [("user_id", ASCENDING), ("created_at", DESCENDING)]
                )

            await self.database[READ_ENTRIES].create_index(
                [("user_id", ASCENDING), ("rating", DESCENDING), ("created_at", DESCENDING)]
            )

            await self.database[TAGS].create_index([("entry_id", ASCENDING), ("_id", ASCENDING)])

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    def collection(self, name: str):
        return self.database[name]

    async def next_id(self, sequence: str) -> int:
        """
        Allocate the next integer id of a sequence.

        Ids start at 1, so 0 is free to mean "not yet persisted". The counter
        is bumped outside any transaction; an aborted write leaves a gap.
        """
        doc = await self.database[COUNTERS].find_one_and_update(
            {"_id": sequence},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(doc["seq"])

    @asynccontextmanager
    async def transaction(self):
        """
        Open a session with a started transaction.

        Commits when the block exits normally and aborts on any exception.
        """
        async with await self.client.start_session() as session:
            async with session.start_transaction():
                yield session

    async def run_in_transaction(
        self,
        callback: Callable[[AsyncIOMotorClientSession], Awaitable[T]],
        operation: str = "transaction",
    ) -> T:
        """
        Run ``callback(session)`` as one transactional unit.

        Conflicts labelled ``TransientTransactionError`` re-run the whole
        callback, so a retried operation observes the winner's committed state.
        """
        attempt = 0
        while True:
            try:
                async with self.transaction() as session:
                    return await callback(session)
            except PyMongoError as e:
                if e.has_error_label("TransientTransactionError") and attempt < self.transaction_retry_attempts:
                    attempt += 1
                    logger.warning(
                        "Retrying transaction after transient conflict",
                        operation=operation,
                        attempt=attempt,
                        error=str(e),
                    )
                    continue
                logger.error("Transaction failed", operation=operation, attempts=attempt + 1, error=str(e))
                if e.has_error_label("TransientTransactionError"):
                    raise ConflictError("CONCURRENT_MODIFICATION", operation=operation) from e
                raise

    async def get_database_stats(self) -> Dict[str, Any]:
        """Get document counts for every shelf collection."""
        try:
            stats = {}
            for name in (USERS, BOOKS, READ_ENTRIES, WISH_ENTRIES, TAGS):
                stats[name] = await self.database[name].count_documents({})
            return stats
        except Exception as e:
            logger.error("Failed to get database stats", error=str(e))
            raise
