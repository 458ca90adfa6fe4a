"""
Pinning Client Interface
========================

Abstract base class and models for uploading certificate documents and
metadata to a content-addressed store.

Version: 0.1.0
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from educhain.config import PinningMode, settings
from educhain.logging import get_logger

logger = get_logger(__name__)


class PinResult(BaseModel):
    """Outcome of a pin request."""

    ipfs_hash: str = Field(..., description="Content identifier")
    pin_size: int = Field(default=0, description="Pinned size in bytes")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class PinningClient(ABC):
    """
    Abstract base class for pinning service clients.

    Implements the Strategy pattern for different pinning modes.
    """

    @property
    @abstractmethod
    def mode(self) -> PinningMode:
        """Get the pinning mode."""
        ...

    @abstractmethod
    async def pin_file(
        self,
        data: bytes,
        filename: str,
        name: str | None = None,
        keyvalues: dict[str, str] | None = None,
    ) -> PinResult:
        """
        Pin raw document bytes.

        Args:
            data: File content
            filename: Original file name
            name: Pin name shown in the pinning dashboard
            keyvalues: Searchable pin metadata

        Raises:
            PinningError: Upload failed
        """
        ...

    @abstractmethod
    async def pin_json(
        self,
        document: dict[str, Any],
        name: str | None = None,
        keyvalues: dict[str, str] | None = None,
    ) -> PinResult:
        """
        Pin a JSON document.

        Raises:
            PinningError: Upload failed
        """
        ...

    @abstractmethod
    async def fetch(self, ipfs_hash: str) -> dict[str, Any] | bytes | None:
        """
        Fetch pinned content through the gateway.

        Returns:
            Parsed JSON, raw bytes, or None when the gateway has nothing
        """
        ...

    @abstractmethod
    async def test_authentication(self) -> bool:
        """Check the configured credentials."""
        ...

    @abstractmethod
    async def health_check(self) -> dict[str, Any]:
        """Check pinning service connectivity."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        return None

    def gateway_url(self, ipfs_hash: str) -> str:
        """Public gateway URL for a content hash."""
        return f"{settings.pinning.gateway_url.rstrip('/')}/{ipfs_hash}"


def _iso_date(value: datetime) -> str:
    return value.date().isoformat()


def build_certificate_metadata(
    *,
    student_name: str,
    student_id: str,
    course_name: str,
    grade: str,
    certificate_type: str,
    institution_name: str,
    graduation_date: datetime,
    issue_date: datetime,
    image_url: str,
    token_id: int | str = "pending",
) -> dict[str, Any]:
    """
    Build the ERC-721 style metadata document pinned for a certificate.

    The token id is not known before the ledger write, so the verification
    URL carries a placeholder unless one is given.
    """
    verification_url = f"{settings.frontend_url.rstrip('/')}/verify/{token_id}"

    certificate_data = {
        "studentName": student_name,
        "studentId": student_id,
        "courseName": course_name,
        "grade": grade,
        "certificateType": certificate_type,
        "institutionName": institution_name,
        "graduationDate": graduation_date.isoformat(),
        "issueDate": issue_date.isoformat(),
        "imageUrl": image_url,
    }

    return {
        "name": f"Academic Certificate - {student_name}",
        "description": (
            f"{certificate_type} in {course_name} awarded to {student_name} "
            f"by {institution_name}"
        ),
        "image": image_url,
        "external_url": verification_url,
        "attributes": [
            {"trait_type": "Student Name", "value": student_name},
            {"trait_type": "Course", "value": course_name},
            {"trait_type": "Grade", "value": grade},
            {"trait_type": "Institution", "value": institution_name},
            {"trait_type": "Certificate Type", "value": certificate_type},
            {"trait_type": "Issue Date", "value": _iso_date(issue_date)},
            {"trait_type": "Graduation Date", "value": _iso_date(graduation_date)},
        ],
        "properties": {
            "certificate_data": certificate_data,
            "verification_url": verification_url,
            "blockchain": "Base",
            "standard": "ERC-721",
        },
    }


# Global client instance
_client: PinningClient | None = None


def get_pinning_client() -> PinningClient:
    """
    Get the configured pinning client instance.

    Returns:
        PinningClient instance based on settings
    """
    global _client

    if _client is None:
        mode = settings.pinning.mode

        if mode == PinningMode.MOCK:
            from educhain.ipfs.mock import MockPinningClient

            _client = MockPinningClient()
        elif mode == PinningMode.PINATA:
            from educhain.ipfs.pinata import PinataClient

            _client = PinataClient()
        else:
            raise ValueError(f"Unknown pinning mode: {mode}")

        logger.info("pinning_client_initialized", mode=mode.value)

    return _client


def set_pinning_client(client: PinningClient) -> None:
    """
    Set a custom pinning client.

    Args:
        client: PinningClient instance
    """
    global _client
    _client = client
    logger.info("pinning_client_set", mode=client.mode.value)


def reset_pinning_client() -> None:
    """Reset the client to be re-initialized."""
    global _client
    _client = None
