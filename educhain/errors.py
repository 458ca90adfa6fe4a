"""
Error Taxonomy
==============

Exceptions raised by the portal's services and clients. Each carries the
HTTP status and machine-readable code the API layer renders.

Version: 0.1.0
"""

from enum import Enum
from typing import Any

from educhain.models.common import ErrorResponse


class IssuanceStage(str, Enum):
    """Steps of the issuance workflow at which a failure can occur."""

    VALIDATION = "validation"
    RESERVATION = "reservation"
    PIN_DOCUMENT = "pin_document"
    PIN_METADATA = "pin_metadata"
    LEDGER_WRITE = "ledger_write"
    CONFIRMATION = "confirmation"
    PERSISTENCE = "persistence"


class PortalError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        details: Any | None = None,
        stage: IssuanceStage | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.stage = stage

    def to_dict(self) -> dict[str, Any]:
        """Render as the API error envelope."""
        return ErrorResponse(
            error=self.message,
            error_code=self.error_code,
            details=self.details,
            stage=self.stage.value if self.stage else None,
        ).render()


class ValidationFailed(PortalError):
    """Malformed input, rejected before any external call."""

    status_code = 400
    error_code = "validation_failed"


class AuthenticationError(PortalError):
    """Missing, invalid or expired credentials."""

    status_code = 401
    error_code = "unauthenticated"


class AuthorizationError(PortalError):
    """Authenticated caller may not perform the action."""

    status_code = 403
    error_code = "forbidden"


class NotFoundError(PortalError):
    """Unknown institution, certificate or token id."""

    status_code = 404
    error_code = "not_found"


class ConflictError(PortalError):
    """Duplicate unique key or conflicting state."""

    status_code = 409
    error_code = "conflict"


class AlreadyRevokedError(ConflictError):
    """Certificate has already been revoked."""

    error_code = "already_revoked"


class ExternalServiceError(PortalError):
    """A dependency (pinning service, ledger, database) failed."""

    status_code = 502
    error_code = "external_service_error"
    service: str = "external"


class PinningError(ExternalServiceError):
    """Pinning service unreachable or rejected the upload."""

    error_code = "pinning_error"
    service = "ipfs"


class LedgerError(ExternalServiceError):
    """Ledger call reverted or could not be submitted."""

    error_code = "ledger_error"
    service = "blockchain"

    def __init__(
        self,
        message: str,
        *,
        tx_hash: str | None = None,
        details: Any | None = None,
        stage: IssuanceStage | None = None,
    ) -> None:
        super().__init__(message, details=details, stage=stage)
        self.tx_hash = tx_hash

    @property
    def broadcast(self) -> bool:
        """Whether the transaction left the process before failing."""
        return self.tx_hash is not None


class LedgerTimeoutError(LedgerError):
    """
    Transaction was broadcast but not confirmed in time.

    The outcome is ambiguous: the transaction may still confirm later.
    """

    status_code = 504
    error_code = "ledger_timeout"


class DatabaseError(ExternalServiceError):
    """Document store unreachable or write failed."""

    error_code = "database_error"
    service = "database"
