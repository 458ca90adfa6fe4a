"""
MongoDB Client
==============

Async MongoDB client using Motor for institutions and certificates.

Version: 0.1.0
"""

import time
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel

from educhain.config import settings
from educhain.logging import get_logger

logger = get_logger(__name__)

INSTITUTIONS = "institutions"
CERTIFICATES = "certificates"

INDEXES: dict[str, list[IndexModel]] = {
    INSTITUTIONS: [
        IndexModel("email", unique=True, name="email_unique"),
        IndexModel("wallet_address", unique=True, name="wallet_address_unique"),
        IndexModel("registration_number", unique=True, name="registration_number_unique"),
    ],
    CERTIFICATES: [
        # Pending reservations carry no token id or tx hash yet
        IndexModel("token_id", unique=True, sparse=True, name="token_id_unique"),
        IndexModel("transaction_hash", unique=True, sparse=True, name="transaction_hash_unique"),
        IndexModel(
            [
                ("student_id", ASCENDING),
                ("course_name", ASCENDING),
                ("institution_id", ASCENDING),
            ],
            unique=True,
            name="student_course_institution_unique",
        ),
        IndexModel([("institution_id", ASCENDING), ("created_at", DESCENDING)], name="institution_recent"),
        IndexModel([("status", ASCENDING), ("created_at", ASCENDING)], name="status_age"),
    ],
}


class MongoDBClient:
    """
    Process-wide motor client.

    Created lazily on first use; tests install an in-memory client with
    `set_client` instead.
    """

    _client: AsyncIOMotorClient | None = None  # type: ignore[type-arg]

    @classmethod
    def get_client(cls) -> AsyncIOMotorClient:  # type: ignore[type-arg]
        """Get or create the async client."""
        if cls._client is None:
            cls._client = AsyncIOMotorClient(
                settings.mongodb.uri.get_secret_value(),
                maxPoolSize=settings.mongodb.max_pool_size,
                minPoolSize=settings.mongodb.min_pool_size,
                serverSelectionTimeoutMS=settings.mongodb.server_selection_timeout_ms,
                connectTimeoutMS=5000,
                tz_aware=True,
            )
            logger.info(
                "mongodb_client_created",
                database=settings.mongodb.db,
            )
        return cls._client

    @classmethod
    def set_client(cls, client: Any) -> None:
        """Install a pre-built client (tests use an in-memory one)."""
        cls._client = client

    @classmethod
    def get_database(cls, name: str | None = None) -> AsyncIOMotorDatabase:  # type: ignore[type-arg]
        """Portal database, or another database on the same client."""
        return cls.get_client()[name or settings.mongodb.db]

    @classmethod
    async def close(cls) -> None:
        """Close the client; the next call to get_client reconnects."""
        if cls._client is not None:
            cls._client.close()
            cls._client = None
            logger.info("mongodb_client_closed")

    @classmethod
    async def health_check(cls) -> dict[str, Any]:
        """Ping the server and report round-trip latency."""
        try:
            start = time.perf_counter()
            result = await cls.get_client().admin.command("ping")
            latency_ms = (time.perf_counter() - start) * 1000

            return {
                "status": "healthy" if result.get("ok") == 1 else "unhealthy",
                "latency_ms": round(latency_ms, 2),
                "database": settings.mongodb.db,
            }
        except Exception as e:
            logger.error("mongodb_health_check_failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e),
            }

    @classmethod
    async def create_indexes(cls, db: AsyncIOMotorDatabase | None = None) -> None:  # type: ignore[type-arg]
        """Create the uniqueness and lookup indexes for both collections."""
        db = db if db is not None else cls.get_database()

        for collection, indexes in INDEXES.items():
            names = await db[collection].create_indexes(indexes)
            logger.info("mongodb_indexes_created", collection=collection, indexes=names)


async def get_mongodb() -> AsyncIOMotorDatabase:  # type: ignore[type-arg]
    """
    Dependency that provides the MongoDB database.

    Usage:
        @router.get("/certificates")
        async def certificates(db: AsyncIOMotorDatabase = Depends(get_mongodb)):
            cursor = db.certificates.find({})
            return await cursor.to_list(100)
    """
    return MongoDBClient.get_database()
