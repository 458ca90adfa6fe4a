"""
Certificates Routes
===================

API endpoints for uploading, issuing, verifying, revoking and searching
certificates.

Version: 0.1.0
"""

import json
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, File, Form, Path, Query, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, ValidationError

from educhain.auth import (
    CurrentInstitution,
    get_current_institution,
    require_verified_institution,
)
from educhain.config import settings
from educhain.database import get_mongodb
from educhain.errors import NotFoundError, PortalError, ValidationFailed
from educhain.ipfs import get_pinning_client
from educhain.logging import get_logger
from educhain.models.certificate import (
    BatchItemResult,
    BatchUploadResponse,
    CertificateDetails,
    CertificateIssueRequest,
    CertificateListResponse,
    CertificateStats,
    IssueResponse,
    RevokeRequest,
    RevokeResponse,
    SearchType,
    UploadResponse,
    VerificationResult,
)
from educhain.models.common import field_errors
from educhain.validation import is_valid_ipfs_hash, normalize_address
from services.portal.services import (
    DocumentUpload,
    IssuanceResult,
    IssuanceService,
    RevocationService,
    SearchService,
    StatsService,
    VerificationService,
)

logger = get_logger(__name__)

router = APIRouter()

ModelT = TypeVar("ModelT", bound=BaseModel)


# =============================================================================
# Dependencies
# =============================================================================


def get_issuance_service(
    db: AsyncIOMotorDatabase = Depends(get_mongodb),  # type: ignore[type-arg]
) -> IssuanceService:
    return IssuanceService(db)


def get_verification_service(
    db: AsyncIOMotorDatabase = Depends(get_mongodb),  # type: ignore[type-arg]
) -> VerificationService:
    return VerificationService(db)


def get_revocation_service(
    db: AsyncIOMotorDatabase = Depends(get_mongodb),  # type: ignore[type-arg]
) -> RevocationService:
    return RevocationService(db)


def get_search_service(
    db: AsyncIOMotorDatabase = Depends(get_mongodb),  # type: ignore[type-arg]
) -> SearchService:
    return SearchService(db)


async def certificate_form(
    student_name: str = Form(..., alias="studentName"),
    student_id: str = Form(..., alias="studentId"),
    student_email: str = Form(..., alias="studentEmail"),
    course_name: str = Form(..., alias="courseName"),
    grade: str = Form(..., alias="grade"),
    certificate_type: str = Form(default="Certificate", alias="certificateType"),
    graduation_date: str = Form(..., alias="graduationDate"),
) -> dict[str, Any]:
    """Certificate fields sent alongside a multipart upload."""
    return {
        "student_name": student_name,
        "student_id": student_id,
        "student_email": student_email,
        "course_name": course_name,
        "grade": grade,
        "certificate_type": certificate_type,
        "graduation_date": graduation_date,
    }


def parse_model(model: type[ModelT], data: Any) -> ModelT:
    """Validate data into a model, surfacing failures as ValidationFailed."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed(
            "Validation failed",
            details=field_errors(e.errors()),
        ) from None


async def read_upload(file: UploadFile | None) -> DocumentUpload | None:
    if file is None:
        return None
    return DocumentUpload(
        data=await file.read(),
        filename=file.filename or "",
        content_type=file.content_type,
    )


def to_issue_response(result: IssuanceResult) -> IssueResponse:
    return IssueResponse(
        token_id=result.token_id,
        transaction_hash=result.transaction_hash,
        block_number=result.block_number,
        ipfs_hash=result.ipfs_hash,
        file_hash=result.file_hash,
    )


# =============================================================================
# Upload & Issue
# =============================================================================


@router.post("/upload", response_model=UploadResponse)
async def upload_certificate(
    form: dict[str, Any] = Depends(certificate_form),
    certificate: UploadFile | None = File(default=None),
    institution: CurrentInstitution = Depends(require_verified_institution),
    service: IssuanceService = Depends(get_issuance_service),
) -> UploadResponse:
    """
    Pin a certificate document and its metadata.

    Returns the metadata hash to pass to /issue. Requires a verified
    institution.
    """
    details = parse_model(CertificateDetails, form)
    pinned = await service.upload(details, await read_upload(certificate), institution.id)

    return UploadResponse(
        ipfs_hash=pinned.ipfs_hash,
        file_hash=pinned.file_hash,
        metadata=pinned.metadata,
    )


@router.post("/issue", response_model=IssueResponse)
async def issue_certificate(
    request: CertificateIssueRequest,
    institution: CurrentInstitution = Depends(require_verified_institution),
    service: IssuanceService = Depends(get_issuance_service),
) -> IssueResponse:
    """
    Mint a certificate whose metadata was pinned via /upload.

    Returns the ledger-assigned token id and transaction hash.
    """
    result = await service.issue(request, institution.id)
    return to_issue_response(result)


@router.post("/issue-with-document", response_model=IssueResponse)
async def issue_with_document(
    form: dict[str, Any] = Depends(certificate_form),
    student_wallet_address: str = Form(..., alias="studentWalletAddress"),
    certificate: UploadFile | None = File(default=None),
    institution: CurrentInstitution = Depends(require_verified_institution),
    service: IssuanceService = Depends(get_issuance_service),
) -> IssueResponse:
    """Pin a document and mint the certificate in one call."""
    details = parse_model(CertificateDetails, form)
    try:
        wallet = normalize_address(student_wallet_address)
    except ValueError:
        raise ValidationFailed(
            "Please provide a valid Ethereum address for student wallet"
        ) from None

    result = await service.issue_with_document(
        details,
        wallet,
        await read_upload(certificate),
        institution.id,
    )
    return to_issue_response(result)


@router.post("/batch-upload", response_model=BatchUploadResponse)
async def batch_upload(
    certificates: list[UploadFile] | None = File(default=None),
    students_data: str = Form(..., alias="studentsData"),
    institution: CurrentInstitution = Depends(require_verified_institution),
    service: IssuanceService = Depends(get_issuance_service),
) -> BatchUploadResponse:
    """
    Pin several certificates at once.

    `studentsData` is a JSON array with one entry per uploaded file, in
    the same order. Failures are reported per student.
    """
    if not certificates:
        raise ValidationFailed("No certificate files provided")
    if len(certificates) > settings.upload.max_batch_files:
        raise ValidationFailed(
            f"At most {settings.upload.max_batch_files} files per batch"
        )

    try:
        students = json.loads(students_data)
    except json.JSONDecodeError:
        raise ValidationFailed("studentsData must be a JSON array") from None
    if not isinstance(students, list):
        raise ValidationFailed("studentsData must be a JSON array")
    if len(students) != len(certificates):
        raise ValidationFailed("Number of files must match number of student records")

    issuer = await service.load_issuer(institution.id)

    results: list[BatchItemResult] = []
    errors: list[BatchItemResult] = []

    for file, student in zip(certificates, students, strict=True):
        student_id = student.get("studentId") if isinstance(student, dict) else None
        try:
            details = parse_model(CertificateDetails, student)
            pinned = await service.pin_certificate(details, issuer, await read_upload(file))
        except PortalError as e:
            logger.warning("batch_item_failed", student_id=student_id, error=e.message)
            errors.append(BatchItemResult(student_id=student_id, status="failed", error=e.message))
            continue

        results.append(
            BatchItemResult(
                student_id=details.student_id,
                ipfs_hash=pinned.ipfs_hash,
                file_hash=pinned.file_hash,
                status="uploaded",
            )
        )

    logger.info(
        "batch_upload_completed",
        institution_id=institution.id,
        processed=len(results),
        failed=len(errors),
    )

    return BatchUploadResponse(
        processed=len(results),
        failed=len(errors),
        results=results,
        errors=errors,
    )


# =============================================================================
# Verify & Revoke
# =============================================================================


@router.get("/verify/{token_id}", response_model=VerificationResult)
async def verify_certificate(
    token_id: int = Path(..., ge=0),
    service: VerificationService = Depends(get_verification_service),
) -> VerificationResult:
    """
    Verify a certificate by token id.

    Public. Ledger state is authoritative; local data is attached when
    available.
    """
    return await service.verify(token_id)


@router.post("/revoke/{token_id}", response_model=RevokeResponse)
async def revoke_certificate(
    body: RevokeRequest,
    token_id: int = Path(..., ge=0),
    institution: CurrentInstitution = Depends(require_verified_institution),
    service: RevocationService = Depends(get_revocation_service),
) -> RevokeResponse:
    """Revoke a certificate issued by the caller's institution."""
    receipt = await service.revoke(
        token_id,
        body.reason,
        institution.id,
        signer=institution.wallet_address,
    )
    return RevokeResponse(token_id=token_id, transaction_hash=receipt.tx_hash)


# =============================================================================
# Queries
# =============================================================================


@router.get("/student/{student_id}", response_model=CertificateListResponse)
async def get_student_certificates(
    student_id: str,
    service: SearchService = Depends(get_search_service),
) -> CertificateListResponse:
    """Certificates issued to a student id. Public."""
    certificates = await service.by_student(student_id)
    return CertificateListResponse(certificates=certificates, total=len(certificates))


@router.get("/institution", response_model=CertificateListResponse)
async def get_institution_certificates(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    institution: CurrentInstitution = Depends(get_current_institution),
    service: SearchService = Depends(get_search_service),
) -> CertificateListResponse:
    """Certificates issued by the caller's institution, newest first."""
    certificates, total = await service.by_institution(
        institution.id,
        institution.name,
        page=page,
        page_size=page_size,
    )
    pages = (total + page_size - 1) // page_size if total > 0 else 1

    return CertificateListResponse(
        certificates=certificates,
        total=total,
        page=page,
        page_size=page_size,
        pages=pages,
    )


@router.get("/stats", response_model=CertificateStats)
async def get_stats(
    institution: CurrentInstitution = Depends(get_current_institution),
    db: AsyncIOMotorDatabase = Depends(get_mongodb),  # type: ignore[type-arg]
) -> CertificateStats:
    """Dashboard statistics for the caller's institution."""
    return await StatsService(db).for_institution(institution.id)


@router.get("/search", response_model=CertificateListResponse)
async def search_certificates(
    query: str = Query(default="", description="Search text"),
    search_type: SearchType = Query(
        default=SearchType.ALL,
        alias="type",
        description="Field to search",
    ),
    service: SearchService = Depends(get_search_service),
) -> CertificateListResponse:
    """Search the local certificate index. Public."""
    certificates = await service.search(query, search_type)
    return CertificateListResponse(certificates=certificates, total=len(certificates))


@router.get("/metadata/{ipfs_hash}")
async def get_metadata(ipfs_hash: str) -> dict[str, Any]:
    """Fetch a pinned metadata document."""
    if not is_valid_ipfs_hash(ipfs_hash):
        raise ValidationFailed("Please provide a valid IPFS hash")

    content = await get_pinning_client().fetch(ipfs_hash)
    if not isinstance(content, dict):
        raise NotFoundError("Metadata not found")
    return content
