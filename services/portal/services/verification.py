"""
Verification Service
====================

Answers whether a token id is a valid, unrevoked certificate. The ledger
is read first and is authoritative; the local record only enriches the
answer and may be absent.

Version: 0.1.0
"""

from motor.motor_asyncio import AsyncIOMotorDatabase

from educhain.blockchain import LedgerClient, get_ledger_client
from educhain.errors import NotFoundError
from educhain.logging import get_logger
from educhain.models.certificate import LocalCertificateInfo, VerificationResult
from educhain.validation import to_unix_seconds, to_utc
from services.portal.services.repositories import CertificateRepository

logger = get_logger(__name__)


class VerificationService:
    """Ledger-first certificate verification."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
        ledger: LedgerClient | None = None,
    ) -> None:
        self.certificates = CertificateRepository(db)
        self.ledger = ledger or get_ledger_client()

    async def verify(self, token_id: int) -> VerificationResult:
        """
        Verify a certificate by token id.

        Raises:
            NotFoundError: The ledger does not know the token id
        """
        on_ledger = await self.ledger.verify_certificate(token_id)
        if not on_ledger.exists:
            logger.info("certificate_not_found", token_id=token_id)
            raise NotFoundError("Certificate not found")

        local = await self.certificates.get_issued(token_id)
        additional_info = None
        graduation_date = on_ledger.graduation_date
        if local is not None:
            # The ledger keeps whole seconds; the local record keeps the
            # submitted milliseconds
            stored = to_utc(local["graduation_date"])
            if to_unix_seconds(stored) == on_ledger.graduation_timestamp:
                graduation_date = stored
            additional_info = LocalCertificateInfo(
                certificate_type=local["certificate_type"],
                transaction_hash=local.get("transaction_hash"),
                ipfs_hash=local["ipfs_hash"],
                file_hash=local.get("file_hash"),
                student_id=local["student_id"],
                institution_id=str(local["institution_id"]),
                revoke_reason=local.get("revoke_reason"),
            )
        else:
            logger.warning("certificate_missing_local_record", token_id=token_id)

        logger.debug(
            "certificate_verified",
            token_id=token_id,
            is_revoked=on_ledger.is_revoked,
            enriched=local is not None,
        )

        return VerificationResult(
            token_id=token_id,
            exists=True,
            is_revoked=on_ledger.is_revoked,
            student_name=on_ledger.student_name,
            course_name=on_ledger.course_name,
            institution_name=on_ledger.institution_name,
            grade=on_ledger.grade,
            issue_date=on_ledger.issue_date,
            graduation_date=graduation_date,
            additional_info=additional_info,
        )
