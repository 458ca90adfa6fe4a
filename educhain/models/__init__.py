"""
Shared Models
=============

Pydantic models shared across the portal.

Models:
- Institution models (InstitutionCreate, Institution, LoginRequest)
- Certificate models (Certificate, CertificateIssueRequest, VerificationResult)
- Common responses (ErrorResponse, HealthResponse)
"""

from educhain.models.certificate import (
    Certificate,
    CertificateDetails,
    CertificateIssueRequest,
    CertificateStats,
    CertificateStatus,
    CertificateType,
    SearchType,
    VerificationResult,
)
from educhain.models.common import (
    ERROR_RESPONSES,
    ApiModel,
    ErrorResponse,
    HealthResponse,
    field_errors,
)
from educhain.models.institution import (
    ContactInfo,
    Institution,
    InstitutionCreate,
    InstitutionSummary,
    LoginRequest,
)

__all__ = [
    # Institution
    "ContactInfo",
    "Institution",
    "InstitutionCreate",
    "InstitutionSummary",
    "LoginRequest",
    # Certificate
    "Certificate",
    "CertificateDetails",
    "CertificateIssueRequest",
    "CertificateStats",
    "CertificateStatus",
    "CertificateType",
    "SearchType",
    "VerificationResult",
    # Common
    "ApiModel",
    "ErrorResponse",
    "ERROR_RESPONSES",
    "HealthResponse",
    "field_errors",
]
