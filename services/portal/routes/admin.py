"""
Admin Routes
============

Operator endpoints, restricted to wallets listed in ADMIN_WALLETS.

Version: 0.1.0
"""

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from educhain.auth import CurrentInstitution, require_admin
from educhain.database import get_mongodb
from educhain.logging import get_logger
from educhain.models.institution import Institution
from services.portal.services import (
    CertificateReconciler,
    InstitutionRepository,
    ReconciliationReport,
)

logger = get_logger(__name__)

router = APIRouter()


@router.post("/institutions/{institution_id}/verify", response_model=Institution)
async def verify_institution(
    institution_id: str,
    verified: bool = True,
    admin: CurrentInstitution = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_mongodb),  # type: ignore[type-arg]
) -> Institution:
    """Mark an institution verified (or unverified with ?verified=false)."""
    doc = await InstitutionRepository(db).set_verified(institution_id, verified)
    if doc is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Institution not found: {institution_id}",
        )

    logger.info(
        "institution_verified_by_admin",
        institution_id=institution_id,
        verified=verified,
        admin_id=admin.id,
    )
    return Institution.from_document(doc)


@router.post("/reconcile", response_model=ReconciliationReport)
async def reconcile(
    admin: CurrentInstitution = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_mongodb),  # type: ignore[type-arg]
) -> ReconciliationReport:
    """Run one ledger/database reconciliation pass."""
    logger.info("reconciliation_requested", admin_id=admin.id)
    return await CertificateReconciler(db).reconcile()
