"""
Search Service
==============

Queries over the local certificate index. The index is a convenience:
it can lag or miss entries relative to the ledger and is never
authoritative.

Version: 0.1.0
"""

from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from educhain.errors import ValidationFailed
from educhain.logging import get_logger
from educhain.models.certificate import Certificate, SearchType
from services.portal.services.repositories import (
    CertificateRepository,
    InstitutionRepository,
)

logger = get_logger(__name__)


class SearchService:
    """Listing and search over issued certificates."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:  # type: ignore[type-arg]
        self.certificates = CertificateRepository(db)
        self.institutions = InstitutionRepository(db)

    async def _with_institution_names(self, docs: list[dict[str, Any]]) -> list[Certificate]:
        names = await self.institutions.names_by_id({doc["institution_id"] for doc in docs})
        return [
            Certificate.from_document(doc, names.get(str(doc["institution_id"])))
            for doc in docs
        ]

    async def search(self, query: str, search_type: SearchType = SearchType.ALL) -> list[Certificate]:
        """
        Substring search by student or course, or exact token id match.

        Raises:
            ValidationFailed: Empty query
        """
        query = query.strip()
        if not query:
            raise ValidationFailed("Search query is required")

        docs = await self.certificates.search(query, search_type)
        logger.debug("certificates_searched", search_type=search_type.value, results=len(docs))
        return await self._with_institution_names(docs)

    async def by_student(self, student_id: str) -> list[Certificate]:
        docs = await self.certificates.find_by_student(student_id)
        return await self._with_institution_names(docs)

    async def by_institution(
        self,
        institution_id: str,
        institution_name: str,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Certificate], int]:
        docs, total = await self.certificates.list_by_institution(institution_id, page, page_size)
        return [Certificate.from_document(doc, institution_name) for doc in docs], total
