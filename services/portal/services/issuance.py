"""
Issuance Service
================

Turns certificate fields, an optional document and the issuing
institution into a ledger-confirmed, database-recorded certificate.

Workflow:
1. Re-read the issuer (must exist and be verified)
2. Pin the document, then the metadata document embedding its hash
3. Reserve the (student, course, institution) triple with a pending record
4. Submit the ledger write through the signer's single-writer lock
5. Promote the reservation to issued with the ledger-assigned token id

Failures before step 4 leave no side effects. A definite ledger failure
releases the reservation; an ambiguous one (broadcast, not confirmed)
keeps it pending with the transaction hash for the reconciler.

Version: 0.1.0
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo.errors import PyMongoError

from educhain.blockchain import (
    IssueReceipt,
    LedgerClient,
    LedgerIssueRequest,
    get_ledger_client,
)
from educhain.config import settings
from educhain.errors import (
    AuthorizationError,
    ConflictError,
    DatabaseError,
    IssuanceStage,
    LedgerError,
    LedgerTimeoutError,
    NotFoundError,
    PinningError,
    ValidationFailed,
)
from educhain.ipfs import PinningClient, build_certificate_metadata, get_pinning_client
from educhain.logging import get_logger
from educhain.models.certificate import CertificateDetails, CertificateIssueRequest
from educhain.validation import to_unix_seconds
from services.portal.services.repositories import (
    CertificateRepository,
    InstitutionRepository,
)

logger = get_logger(__name__)


@dataclass
class DocumentUpload:
    """An uploaded certificate document."""

    data: bytes
    filename: str
    content_type: str | None


class PinnedCertificate(BaseModel):
    """Hashes of a pinned document and its metadata."""

    ipfs_hash: str
    file_hash: str
    metadata: dict[str, Any]


class IssuanceResult(BaseModel):
    """Outcome of a confirmed issuance."""

    token_id: int
    transaction_hash: str
    block_number: int | None = None
    ipfs_hash: str
    file_hash: str | None = None


def check_document(document: DocumentUpload | None) -> DocumentUpload:
    """
    Validate an uploaded document's presence, type and size.

    Raises:
        ValidationFailed: Missing, disallowed type, empty or too large
    """
    if document is None or not document.filename:
        raise ValidationFailed("Certificate file is required")

    allowed = settings.upload.allowed_types_list
    if document.content_type not in allowed:
        raise ValidationFailed(
            "Invalid file type. Only JPEG, PNG, and PDF files are allowed.",
            details={"content_type": document.content_type, "allowed": allowed},
        )
    if not document.data:
        raise ValidationFailed("Certificate file is empty")
    if len(document.data) > settings.upload.max_file_size:
        raise ValidationFailed(
            "File too large",
            details={"max_bytes": settings.upload.max_file_size},
        )
    return document


class IssuanceService:
    """Issuance orchestrator."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
        ledger: LedgerClient | None = None,
        pinning: PinningClient | None = None,
    ) -> None:
        self.institutions = InstitutionRepository(db)
        self.certificates = CertificateRepository(db)
        self.ledger = ledger or get_ledger_client()
        self.pinning = pinning or get_pinning_client()

    async def load_issuer(self, institution_id: str) -> dict[str, Any]:
        """
        Re-read the issuing institution.

        Raises:
            NotFoundError: Institution no longer exists
            AuthorizationError: Institution is not verified
        """
        institution = await self.institutions.get(institution_id)
        if institution is None:
            raise NotFoundError("Institution not found", stage=IssuanceStage.VALIDATION)
        if not institution.get("is_verified", False):
            raise AuthorizationError(
                "Institution must be verified to issue certificates",
                stage=IssuanceStage.VALIDATION,
            )
        return institution

    # =========================================================================
    # Pinning
    # =========================================================================

    async def pin_certificate(
        self,
        details: CertificateDetails,
        institution: dict[str, Any],
        document: DocumentUpload | None,
    ) -> PinnedCertificate:
        """
        Pin the document, then the metadata document that references it.

        Raises:
            ValidationFailed: Document rejected
            PinningError: Upload failed (no side effects beyond orphan pins)
        """
        document = check_document(document)
        stamp = int(datetime.now(UTC).timestamp() * 1000)

        try:
            file_pin = await self.pinning.pin_file(
                document.data,
                document.filename,
                name=f"certificate-{details.student_id}-{stamp}",
                keyvalues={
                    "studentId": details.student_id,
                    "courseName": details.course_name,
                    "institution": institution["name"],
                },
            )
        except PinningError as e:
            e.stage = IssuanceStage.PIN_DOCUMENT
            logger.error("document_pin_failed", student_id=details.student_id, error=e.message)
            raise

        metadata = build_certificate_metadata(
            student_name=details.student_name,
            student_id=details.student_id,
            course_name=details.course_name,
            grade=details.grade,
            certificate_type=details.certificate_type.value,
            institution_name=institution["name"],
            graduation_date=details.graduation_date,
            issue_date=datetime.now(UTC),
            image_url=self.pinning.gateway_url(file_pin.ipfs_hash),
        )

        try:
            metadata_pin = await self.pinning.pin_json(
                metadata,
                name=f"metadata-{details.student_id}-{stamp}",
            )
        except PinningError as e:
            e.stage = IssuanceStage.PIN_METADATA
            logger.error("metadata_pin_failed", student_id=details.student_id, error=e.message)
            raise

        logger.info(
            "certificate_pinned",
            student_id=details.student_id,
            ipfs_hash=metadata_pin.ipfs_hash,
            file_hash=file_pin.ipfs_hash,
        )
        return PinnedCertificate(
            ipfs_hash=metadata_pin.ipfs_hash,
            file_hash=file_pin.ipfs_hash,
            metadata=metadata,
        )

    async def upload(
        self,
        details: CertificateDetails,
        document: DocumentUpload | None,
        institution_id: str,
    ) -> PinnedCertificate:
        """Pin a certificate for a later issue call."""
        institution = await self.load_issuer(institution_id)
        return await self.pin_certificate(details, institution, document)

    # =========================================================================
    # Issuance
    # =========================================================================

    async def issue(
        self,
        request: CertificateIssueRequest,
        institution_id: str,
    ) -> IssuanceResult:
        """Issue a certificate whose metadata was already pinned."""
        institution = await self.load_issuer(institution_id)
        return await self._mint(
            request,
            institution,
            student_wallet=request.student_wallet_address,
            ipfs_hash=request.ipfs_hash,
            file_hash=request.file_hash,
        )

    async def issue_with_document(
        self,
        details: CertificateDetails,
        student_wallet: str,
        document: DocumentUpload | None,
        institution_id: str,
    ) -> IssuanceResult:
        """Pin and issue in one call."""
        institution = await self.load_issuer(institution_id)
        pinned = await self.pin_certificate(details, institution, document)
        return await self._mint(
            details,
            institution,
            student_wallet=student_wallet,
            ipfs_hash=pinned.ipfs_hash,
            file_hash=pinned.file_hash,
        )

    async def _mint(
        self,
        details: CertificateDetails,
        institution: dict[str, Any],
        *,
        student_wallet: str,
        ipfs_hash: str,
        file_hash: str | None,
    ) -> IssuanceResult:
        institution_id = str(institution["_id"])
        log = logger.bind(
            institution_id=institution_id,
            student_id=details.student_id,
            course_name=details.course_name,
        )

        try:
            record_id = await self.certificates.reserve(
                details,
                institution_id,
                ipfs_hash=ipfs_hash,
                file_hash=file_hash,
                student_wallet_address=student_wallet,
            )
        except PyMongoError as e:
            log.error("certificate_reservation_failed", error=str(e))
            raise DatabaseError(
                "Failed to reserve certificate", stage=IssuanceStage.RESERVATION
            ) from e
        except ConflictError as e:
            e.stage = IssuanceStage.RESERVATION
            log.warning("certificate_reservation_rejected", error=str(e))
            raise

        log.debug("certificate_reserved", record_id=str(record_id))

        receipt = await self._write_ledger(
            record_id,
            LedgerIssueRequest(
                student_wallet=student_wallet,
                student_name=details.student_name,
                student_id=details.student_id,
                course_name=details.course_name,
                grade=details.grade,
                certificate_type=details.certificate_type.value,
                graduation_timestamp=to_unix_seconds(details.graduation_date),
                ipfs_hash=ipfs_hash,
                institution_name=institution["name"],
            ),
            signer=institution["wallet_address"],
        )

        try:
            promoted = await self.certificates.promote(record_id, receipt)
        except PyMongoError as e:
            log.error(
                "certificate_persistence_failed",
                token_id=receipt.token_id,
                tx_hash=receipt.tx_hash,
                error=str(e),
            )
            raise DatabaseError(
                "Certificate issued on ledger but not recorded; it will be reconciled",
                stage=IssuanceStage.PERSISTENCE,
                details={"token_id": receipt.token_id, "transaction_hash": receipt.tx_hash},
            ) from e

        if not promoted:
            log.error("certificate_reservation_lost", token_id=receipt.token_id)
            raise DatabaseError(
                "Certificate issued on ledger but its reservation was lost",
                stage=IssuanceStage.PERSISTENCE,
                details={"token_id": receipt.token_id, "transaction_hash": receipt.tx_hash},
            )

        log.info(
            "certificate_issued",
            token_id=receipt.token_id,
            tx_hash=receipt.tx_hash,
            block_number=receipt.block_number,
        )
        return IssuanceResult(
            token_id=receipt.token_id,
            transaction_hash=receipt.tx_hash,
            block_number=receipt.block_number,
            ipfs_hash=ipfs_hash,
            file_hash=file_hash,
        )

    async def _write_ledger(
        self,
        record_id: ObjectId,
        request: LedgerIssueRequest,
        signer: str,
    ) -> IssueReceipt:
        async def record_broadcast(tx_hash: str) -> None:
            # Pin the hash on the reservation before waiting for the receipt
            try:
                await self.certificates.attach_transaction(record_id, tx_hash)
            except PyMongoError as e:
                logger.error(
                    "ledger_tx_hash_not_recorded",
                    record_id=str(record_id),
                    tx_hash=tx_hash,
                    error=str(e),
                )

        try:
            return await self.ledger.issue_certificate(
                request,
                signer=signer,
                on_submitted=record_broadcast,
            )
        except LedgerTimeoutError as e:
            # Outcome unknown: keep the reservation so no duplicate is minted
            e.stage = IssuanceStage.CONFIRMATION
            if e.tx_hash:
                await self.certificates.attach_transaction(record_id, e.tx_hash)
            logger.warning(
                "ledger_write_unconfirmed",
                record_id=str(record_id),
                tx_hash=e.tx_hash,
                error=e.message,
            )
            raise
        except LedgerError as e:
            e.stage = IssuanceStage.LEDGER_WRITE
            await self.certificates.release(record_id)
            logger.error("ledger_write_failed", record_id=str(record_id), error=e.message)
            raise
        except LookupError as e:
            await self.certificates.release(record_id)
            logger.error("ledger_signer_unavailable", error=str(e))
            raise LedgerError(str(e), stage=IssuanceStage.LEDGER_WRITE) from e
