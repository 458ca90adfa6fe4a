"""
Certificate Models
==================

Issued academic credentials, mirrored between the ledger and the
document store. The ledger is the source of truth for existence and
revocation; the stored record is a follower that also keeps data the
ledger does not (student email, content hashes, institution linkage).

Version: 0.1.0
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from educhain.models.common import ApiModel
from educhain.validation import (
    is_valid_ipfs_hash,
    normalize_address,
    normalize_email,
    to_utc,
    validate_graduation_date,
)


class CertificateType(str, Enum):
    """Kinds of credential an institution can issue."""

    CERTIFICATE = "Certificate"
    DIPLOMA = "Diploma"
    DEGREE = "Degree"
    TRANSCRIPT = "Transcript"
    AWARD = "Award"


class CertificateStatus(str, Enum):
    """
    Local record state.

    PENDING records reserve the (student, course, institution) triple
    while the ledger write is in flight; only ISSUED records are
    visible to listing, search and verification.
    """

    PENDING = "pending"
    ISSUED = "issued"


class SearchType(str, Enum):
    """Search field selector."""

    ALL = "all"
    STUDENT = "student"
    COURSE = "course"
    TOKEN_ID = "tokenId"


class CertificateDetails(ApiModel):
    """Student and course fields shared by upload and issue requests."""

    student_name: str = Field(..., min_length=2, max_length=200)
    student_id: str = Field(..., min_length=1, max_length=50)
    student_email: str
    course_name: str = Field(..., min_length=2, max_length=300)
    grade: str = Field(..., min_length=1)
    certificate_type: CertificateType = CertificateType.CERTIFICATE
    graduation_date: datetime

    @field_validator("student_name", "student_id", "course_name", "grade", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("student_email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("graduation_date")
    @classmethod
    def validate_graduation(cls, v: datetime) -> datetime:
        return validate_graduation_date(v)


class CertificateIssueRequest(CertificateDetails):
    """Mint request for metadata already pinned via upload."""

    student_wallet_address: str
    ipfs_hash: str
    file_hash: str | None = None

    @field_validator("student_wallet_address")
    @classmethod
    def validate_wallet(cls, v: str) -> str:
        try:
            return normalize_address(v)
        except ValueError:
            raise ValueError(
                "Please provide a valid Ethereum address for student wallet"
            ) from None

    @field_validator("ipfs_hash")
    @classmethod
    def validate_ipfs_hash(cls, v: str) -> str:
        if not is_valid_ipfs_hash(v):
            raise ValueError("Please provide a valid IPFS hash")
        return v.strip()

    @field_validator("file_hash")
    @classmethod
    def validate_file_hash(cls, v: str | None) -> str | None:
        if v is not None and not is_valid_ipfs_hash(v):
            raise ValueError("Please provide a valid IPFS hash")
        return v


class Certificate(ApiModel):
    """Stored certificate record."""

    id: str
    token_id: int | None = None
    status: CertificateStatus = CertificateStatus.ISSUED

    student_name: str
    student_id: str
    student_email: str
    student_wallet_address: str | None = None
    course_name: str
    grade: str
    certificate_type: CertificateType

    institution_id: str
    institution_name: str | None = None

    ipfs_hash: str
    file_hash: str | None = None
    transaction_hash: str | None = None
    block_number: int | None = None

    issue_date: datetime | None = None
    graduation_date: datetime

    is_revoked: bool = False
    revoke_reason: str | None = None
    revoke_date: datetime | None = None
    revoke_transaction_hash: str | None = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator(
        "issue_date",
        "graduation_date",
        "revoke_date",
        "created_at",
        "updated_at",
    )
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        return to_utc(v) if v is not None else None

    @classmethod
    def from_document(
        cls,
        doc: dict[str, Any],
        institution_name: str | None = None,
    ) -> "Certificate":
        """Build from a MongoDB document."""
        return cls(
            id=str(doc["_id"]),
            token_id=doc.get("token_id"),
            status=doc.get("status", CertificateStatus.ISSUED),
            student_name=doc["student_name"],
            student_id=doc["student_id"],
            student_email=doc["student_email"],
            student_wallet_address=doc.get("student_wallet_address"),
            course_name=doc["course_name"],
            grade=doc["grade"],
            certificate_type=doc["certificate_type"],
            institution_id=str(doc["institution_id"]),
            institution_name=institution_name,
            ipfs_hash=doc["ipfs_hash"],
            file_hash=doc.get("file_hash"),
            transaction_hash=doc.get("transaction_hash"),
            block_number=doc.get("block_number"),
            issue_date=doc.get("issue_date"),
            graduation_date=doc["graduation_date"],
            is_revoked=doc.get("is_revoked", False),
            revoke_reason=doc.get("revoke_reason"),
            revoke_date=doc.get("revoke_date"),
            revoke_transaction_hash=doc.get("revoke_transaction_hash"),
            created_at=doc.get("created_at") or datetime.now(UTC),
            updated_at=doc.get("updated_at") or datetime.now(UTC),
        )


class UploadResponse(ApiModel):
    """Result of pinning a document and its metadata."""

    success: bool = True
    ipfs_hash: str = Field(..., description="Metadata content hash (canonical)")
    file_hash: str = Field(..., description="Document content hash")
    metadata: dict[str, Any]


class IssueResponse(ApiModel):
    """Result of a confirmed issuance."""

    success: bool = True
    token_id: int
    transaction_hash: str
    block_number: int | None = None
    ipfs_hash: str
    file_hash: str | None = None
    message: str = "Certificate issued successfully"


class RevokeRequest(ApiModel):
    """Revocation request body."""

    reason: str = Field(..., min_length=1, max_length=500)

    @field_validator("reason", mode="before")
    @classmethod
    def strip_reason(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class RevokeResponse(ApiModel):
    """Result of a revocation."""

    success: bool = True
    token_id: int
    transaction_hash: str
    message: str = "Certificate revoked successfully"


class LocalCertificateInfo(ApiModel):
    """Fields only the document store knows."""

    certificate_type: CertificateType
    transaction_hash: str | None
    ipfs_hash: str
    file_hash: str | None = None
    student_id: str
    institution_id: str
    revoke_reason: str | None = None


class VerificationResult(ApiModel):
    """Ledger state enriched with local data when available."""

    token_id: int
    exists: bool
    is_revoked: bool
    student_name: str
    course_name: str
    institution_name: str
    grade: str
    issue_date: datetime
    graduation_date: datetime
    additional_info: LocalCertificateInfo | None = None


class CertificateListResponse(ApiModel):
    """List of certificates."""

    certificates: list[Certificate]
    total: int
    page: int = 1
    page_size: int | None = None
    pages: int = 1


class BatchItemResult(ApiModel):
    """Per-student outcome of a batch upload."""

    student_id: str | None
    ipfs_hash: str | None = None
    file_hash: str | None = None
    status: str
    error: str | None = None


class BatchUploadResponse(ApiModel):
    """Outcome of a batch upload."""

    success: bool = True
    processed: int
    failed: int
    results: list[BatchItemResult]
    errors: list[BatchItemResult]


class TypeCount(ApiModel):
    certificate_type: str
    count: int


class CertificateStats(ApiModel):
    """Dashboard statistics for an institution."""

    total_certificates: int
    active_certificates: int
    revoked_certificates: int
    certificates_by_type: list[TypeCount]
