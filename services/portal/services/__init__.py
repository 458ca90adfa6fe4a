"""
Portal Services
===============

Business logic for the certificate portal.

Services:
- IssuanceService: Two-phase issuance orchestrator
- VerificationService: Ledger-first verification
- RevocationService: Institution-authorized revocation
- SearchService: Listing and search over the local index
- StatsService: Dashboard statistics
- CertificateReconciler: Ledger/database reconciliation

Version: 0.1.0
"""

from services.portal.services.issuance import (
    DocumentUpload,
    IssuanceResult,
    IssuanceService,
    PinnedCertificate,
    check_document,
)
from services.portal.services.reconciliation import (
    CertificateReconciler,
    ReconciliationReport,
)
from services.portal.services.repositories import (
    CertificateRepository,
    InstitutionRepository,
)
from services.portal.services.revocation import RevocationService
from services.portal.services.search import SearchService
from services.portal.services.stats import StatsService
from services.portal.services.verification import VerificationService


__all__ = [
    # Repositories
    "InstitutionRepository",
    "CertificateRepository",
    # Issuance
    "IssuanceService",
    "IssuanceResult",
    "DocumentUpload",
    "PinnedCertificate",
    "check_document",
    # Queries
    "VerificationService",
    "SearchService",
    "StatsService",
    # Mutations
    "RevocationService",
    # Jobs
    "CertificateReconciler",
    "ReconciliationReport",
]
