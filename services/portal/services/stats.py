"""
Statistics Service
==================

Dashboard totals for an institution.

Version: 0.1.0
"""

from motor.motor_asyncio import AsyncIOMotorDatabase

from educhain.models.certificate import CertificateStats
from services.portal.services.repositories import CertificateRepository


class StatsService:
    """Per-institution certificate statistics."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:  # type: ignore[type-arg]
        self.certificates = CertificateRepository(db)

    async def for_institution(self, institution_id: str) -> CertificateStats:
        return CertificateStats(**await self.certificates.stats(institution_id))
