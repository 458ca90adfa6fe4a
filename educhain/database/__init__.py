"""
Database Module
===============

Async MongoDB client (motor) holding the institutions and certificates
collections.

Usage:
    from educhain.database import get_mongodb

    # In FastAPI
    @router.get("/example")
    async def example(db: AsyncIOMotorDatabase = Depends(get_mongodb)):
        return await db.certificates.find_one({"token_id": 1})
"""

from educhain.database.mongodb import (
    CERTIFICATES,
    INSTITUTIONS,
    MongoDBClient,
    get_mongodb,
)


__all__ = [
    "get_mongodb",
    "MongoDBClient",
    "INSTITUTIONS",
    "CERTIFICATES",
]
