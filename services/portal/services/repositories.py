"""
Repositories
============

MongoDB access for institutions and certificates.

Duplicate-key failures are mapped to ConflictError; every certificate
read used by listing, search, statistics and verification is restricted
to issued records.

Version: 0.1.0
"""

import re
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from educhain.auth import hash_password
from educhain.blockchain import IssueReceipt
from educhain.database import CERTIFICATES, INSTITUTIONS
from educhain.errors import ConflictError
from educhain.logging import get_logger
from educhain.models.certificate import (
    CertificateDetails,
    CertificateStatus,
    SearchType,
    TypeCount,
)
from educhain.models.institution import InstitutionCreate

logger = get_logger(__name__)

SEARCH_LIMIT = 50


def to_object_id(value: str | ObjectId) -> ObjectId | None:
    """Parse an id, returning None when malformed."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class InstitutionRepository:
    """Institution records."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:  # type: ignore[type-arg]
        self._collection = db[INSTITUTIONS]

    async def create(self, data: InstitutionCreate) -> dict[str, Any]:
        """
        Insert a new, unverified institution.

        Raises:
            ConflictError: Email, wallet address or registration number taken
        """
        existing = await self._collection.find_one(
            {
                "$or": [
                    {"email": data.email},
                    {"wallet_address": data.wallet_address},
                    {"registration_number": data.registration_number},
                ]
            },
            {"_id": 1},
        )
        if existing is not None:
            raise ConflictError("Institution already registered")

        now = datetime.now(UTC)
        doc = {
            "name": data.name,
            "email": data.email,
            "password_hash": hash_password(data.password),
            "wallet_address": data.wallet_address,
            "registration_number": data.registration_number,
            "is_verified": False,
            "contact_info": data.contact_info.model_dump() if data.contact_info else None,
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = await self._collection.insert_one(doc)
        except DuplicateKeyError:
            # Lost a race with a concurrent registration
            raise ConflictError("Institution already registered") from None

        doc["_id"] = result.inserted_id
        logger.info(
            "institution_registered",
            institution_id=str(result.inserted_id),
            wallet_address=data.wallet_address,
        )
        return doc

    async def get(self, institution_id: str) -> dict[str, Any] | None:
        oid = to_object_id(institution_id)
        if oid is None:
            return None
        return await self._collection.find_one({"_id": oid}, {"password_hash": 0})

    async def get_by_email(self, email: str) -> dict[str, Any] | None:
        """Includes the password hash, for login."""
        return await self._collection.find_one({"email": email})

    async def set_password(self, institution_id: str, password: str) -> None:
        """Replace the stored password hash."""
        oid = to_object_id(institution_id)
        if oid is None:
            return
        await self._collection.update_one(
            {"_id": oid},
            {"$set": {"password_hash": hash_password(password), "updated_at": datetime.now(UTC)}},
        )
        logger.info("institution_password_rehashed", institution_id=institution_id)

    async def names_by_id(self, ids: set[ObjectId]) -> dict[str, str]:
        """Institution names keyed by string id."""
        if not ids:
            return {}
        cursor = self._collection.find({"_id": {"$in": list(ids)}}, {"name": 1})
        return {str(doc["_id"]): doc["name"] async for doc in cursor}

    async def set_verified(self, institution_id: str, verified: bool = True) -> dict[str, Any] | None:
        """Flip the verification flag. Returns the updated record or None."""
        oid = to_object_id(institution_id)
        if oid is None:
            return None
        doc = await self._collection.find_one_and_update(
            {"_id": oid},
            {"$set": {"is_verified": verified, "updated_at": datetime.now(UTC)}},
            projection={"password_hash": 0},
            return_document=ReturnDocument.AFTER,
        )
        if doc is not None:
            logger.info("institution_verification_set", institution_id=institution_id, verified=verified)
        return doc


class CertificateRepository:
    """Certificate records, including pending reservations."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:  # type: ignore[type-arg]
        self._collection = db[CERTIFICATES]

    # =========================================================================
    # Issuance lifecycle
    # =========================================================================

    async def reserve(
        self,
        details: CertificateDetails,
        institution_id: str,
        ipfs_hash: str,
        file_hash: str | None,
        student_wallet_address: str,
    ) -> ObjectId:
        """
        Insert a pending record for the (student, course, institution) triple.

        Token id and transaction hash are left unset so the sparse unique
        indexes ignore the reservation.

        Raises:
            ConflictError: A record for the triple already exists
        """
        now = datetime.now(UTC)
        doc = {
            "status": CertificateStatus.PENDING.value,
            "student_name": details.student_name,
            "student_id": details.student_id,
            "student_email": details.student_email,
            "student_wallet_address": student_wallet_address,
            "course_name": details.course_name,
            "grade": details.grade,
            "certificate_type": details.certificate_type.value,
            "institution_id": ObjectId(institution_id),
            "ipfs_hash": ipfs_hash,
            "file_hash": file_hash,
            "graduation_date": details.graduation_date,
            "is_revoked": False,
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = await self._collection.insert_one(doc)
        except DuplicateKeyError:
            raise ConflictError(
                "Certificate already exists for this student and course"
            ) from None

        return result.inserted_id

    async def attach_transaction(self, record_id: ObjectId, tx_hash: str) -> None:
        """Record the hash of a broadcast transaction on a pending record."""
        await self._collection.update_one(
            {"_id": record_id, "status": CertificateStatus.PENDING.value},
            {"$set": {"transaction_hash": tx_hash, "updated_at": datetime.now(UTC)}},
        )

    async def promote(
        self,
        record_id: ObjectId,
        receipt: IssueReceipt,
        issue_date: datetime | None = None,
    ) -> bool:
        """Mark a pending record issued with its ledger-assigned token id."""
        now = datetime.now(UTC)
        result = await self._collection.update_one(
            {"_id": record_id, "status": CertificateStatus.PENDING.value},
            {
                "$set": {
                    "status": CertificateStatus.ISSUED.value,
                    "token_id": receipt.token_id,
                    "transaction_hash": receipt.tx_hash,
                    "block_number": receipt.block_number,
                    "issue_date": issue_date or now,
                    "updated_at": now,
                }
            },
        )
        return result.modified_count == 1

    async def release(self, record_id: ObjectId) -> bool:
        """Delete a pending reservation."""
        result = await self._collection.delete_one(
            {"_id": record_id, "status": CertificateStatus.PENDING.value}
        )
        return result.deleted_count == 1

    async def list_pending(self) -> list[dict[str, Any]]:
        cursor = self._collection.find({"status": CertificateStatus.PENDING.value})
        return await cursor.to_list(length=None)

    # =========================================================================
    # Issued records
    # =========================================================================

    async def get_issued(self, token_id: int) -> dict[str, Any] | None:
        return await self._collection.find_one(
            {"token_id": token_id, "status": CertificateStatus.ISSUED.value}
        )

    async def known_token_ids(self) -> set[int]:
        """Token ids of every issued record."""
        cursor = self._collection.find(
            {"status": CertificateStatus.ISSUED.value},
            {"token_id": 1},
        )
        return {doc["token_id"] async for doc in cursor}

    async def iter_unrevoked(self, batch_size: int) -> AsyncIterator[list[dict[str, Any]]]:
        """
        Walk every issued, unrevoked record in token id order.

        Each batch resumes after the last token id of the previous one.
        """
        last_token_id = 0
        while True:
            cursor = (
                self._collection.find(
                    {
                        "status": CertificateStatus.ISSUED.value,
                        "is_revoked": False,
                        "token_id": {"$gt": last_token_id},
                    }
                )
                .sort("token_id", ASCENDING)
                .limit(batch_size)
            )
            batch = await cursor.to_list(length=None)
            if not batch:
                return
            yield batch
            if len(batch) < batch_size:
                return
            last_token_id = batch[-1]["token_id"]

    async def mark_revoked(
        self,
        token_id: int,
        reason: str,
        tx_hash: str | None,
        revoked_at: datetime | None = None,
    ) -> bool:
        """Flip the revoked flag. Never reversed."""
        now = datetime.now(UTC)
        result = await self._collection.update_one(
            {"token_id": token_id, "is_revoked": False},
            {
                "$set": {
                    "is_revoked": True,
                    "revoke_reason": reason,
                    "revoke_date": revoked_at or now,
                    "revoke_transaction_hash": tx_hash,
                    "updated_at": now,
                }
            },
        )
        return result.modified_count == 1

    async def find_by_student(self, student_id: str) -> list[dict[str, Any]]:
        cursor = self._collection.find(
            {"student_id": student_id, "status": CertificateStatus.ISSUED.value}
        ).sort("created_at", DESCENDING)
        return await cursor.to_list(length=None)

    async def list_by_institution(
        self,
        institution_id: str,
        page: int,
        page_size: int,
    ) -> tuple[list[dict[str, Any]], int]:
        """One page of an institution's issued certificates, newest first, plus the total."""
        query = {
            "institution_id": ObjectId(institution_id),
            "status": CertificateStatus.ISSUED.value,
        }
        total = await self._collection.count_documents(query)
        cursor = (
            self._collection.find(query)
            .sort("created_at", DESCENDING)
            .skip((page - 1) * page_size)
            .limit(page_size)
        )
        return await cursor.to_list(length=None), total

    async def search(self, query: str, search_type: SearchType) -> list[dict[str, Any]]:
        """Case-insensitive substring search, or exact token id match."""
        pattern = {"$regex": re.escape(query), "$options": "i"}
        token_id = int(query) if query.isdigit() else -1

        if search_type == SearchType.STUDENT:
            criteria: dict[str, Any] = {
                "$or": [
                    {"student_name": pattern},
                    {"student_id": pattern},
                    {"student_email": pattern},
                ]
            }
        elif search_type == SearchType.COURSE:
            criteria = {"course_name": pattern}
        elif search_type == SearchType.TOKEN_ID:
            criteria = {"token_id": token_id}
        else:
            criteria = {
                "$or": [
                    {"student_name": pattern},
                    {"student_id": pattern},
                    {"course_name": pattern},
                    {"token_id": token_id},
                ]
            }

        criteria["status"] = CertificateStatus.ISSUED.value
        cursor = (
            self._collection.find(criteria)
            .sort("created_at", DESCENDING)
            .limit(SEARCH_LIMIT)
        )
        return await cursor.to_list(length=None)

    async def stats(self, institution_id: str) -> dict[str, Any]:
        """Totals by revocation state and by certificate type."""
        match = {
            "institution_id": ObjectId(institution_id),
            "status": CertificateStatus.ISSUED.value,
        }
        total = await self._collection.count_documents(match)
        revoked = await self._collection.count_documents({**match, "is_revoked": True})

        pipeline = [
            {"$match": match},
            {"$group": {"_id": "$certificate_type", "count": {"$sum": 1}}},
            {"$sort": {"_id": 1}},
        ]
        rows = await self._collection.aggregate(pipeline).to_list(length=None)
        by_type = [TypeCount(certificate_type=row["_id"], count=row["count"]) for row in rows]

        return {
            "total_certificates": total,
            "active_certificates": total - revoked,
            "revoked_certificates": revoked,
            "certificates_by_type": by_type,
        }
