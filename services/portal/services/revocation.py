"""
Revocation Service
==================

Revokes a certificate on behalf of its issuing institution: ledger
first, then the local flag. A local flip that fails after the ledger
write is healed by the reconciler.

Version: 0.1.0
"""

from datetime import UTC, datetime

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from educhain.blockchain import LedgerClient, RevokeReceipt, get_ledger_client
from educhain.errors import (
    AlreadyRevokedError,
    AuthorizationError,
    DatabaseError,
    LedgerError,
    LedgerTimeoutError,
    NotFoundError,
    ValidationFailed,
)
from educhain.logging import get_logger
from services.portal.services.repositories import CertificateRepository

logger = get_logger(__name__)

LEDGER_REVOKED_REASON = "Revoked on ledger"


class RevocationService:
    """Institution-authorized certificate revocation."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
        ledger: LedgerClient | None = None,
    ) -> None:
        self.certificates = CertificateRepository(db)
        self.ledger = ledger or get_ledger_client()

    async def revoke(
        self,
        token_id: int,
        reason: str,
        institution_id: str,
        signer: str | None = None,
    ) -> RevokeReceipt:
        """
        Revoke a certificate.

        Raises:
            ValidationFailed: Empty reason
            NotFoundError: No issued certificate with this token id
            AuthorizationError: Caller did not issue the certificate
            AlreadyRevokedError: Already revoked locally or on the ledger
        """
        reason = reason.strip()
        if not reason:
            raise ValidationFailed("Revocation reason is required")

        record = await self.certificates.get_issued(token_id)
        if record is None:
            raise NotFoundError("Certificate not found")
        if str(record["institution_id"]) != institution_id:
            logger.warning(
                "revoke_not_authorized",
                token_id=token_id,
                institution_id=institution_id,
            )
            raise AuthorizationError("Not authorized to revoke this certificate")
        if record.get("is_revoked", False):
            raise AlreadyRevokedError("Certificate already revoked")

        on_ledger = await self.ledger.verify_certificate(token_id)
        if on_ledger.is_revoked:
            # Ledger already revoked it; bring the local record in line
            await self.certificates.mark_revoked(token_id, LEDGER_REVOKED_REASON, None)
            raise AlreadyRevokedError("Certificate already revoked")

        try:
            receipt = await self.ledger.revoke_certificate(token_id, reason, signer=signer)
        except LedgerTimeoutError:
            logger.warning("ledger_revoke_unconfirmed", token_id=token_id)
            raise
        except LedgerError as e:
            if "already revoked" in e.message.lower():
                raise AlreadyRevokedError("Certificate already revoked") from e
            logger.error("ledger_revoke_failed", token_id=token_id, error=e.message)
            raise

        try:
            await self.certificates.mark_revoked(
                token_id,
                reason,
                receipt.tx_hash,
                revoked_at=datetime.now(UTC),
            )
        except PyMongoError as e:
            logger.error(
                "revoke_persistence_failed",
                token_id=token_id,
                tx_hash=receipt.tx_hash,
                error=str(e),
            )
            raise DatabaseError(
                "Certificate revoked on ledger but not recorded; it will be reconciled",
                details={"token_id": token_id, "transaction_hash": receipt.tx_hash},
            ) from e

        logger.info(
            "certificate_revoked",
            token_id=token_id,
            institution_id=institution_id,
            tx_hash=receipt.tx_hash,
        )
        return receipt
