"""
Test Configuration
==================

Pytest fixtures for the certificate portal tests.
"""

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import ASGITransport, AsyncClient

# Set test environment
os.environ["ENVIRONMENT"] = "testing"
os.environ["BLOCKCHAIN_MODE"] = "mock"
os.environ["PINNING_MODE"] = "mock"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-session-tokens"
os.environ["ADMIN_WALLETS"] = "0x" + "ad" * 20

from mongomock_motor import AsyncMongoMockClient  # noqa: E402

from educhain.blockchain import Keystore, MockLedgerClient, set_ledger_client  # noqa: E402
from educhain.blockchain.client import reset_ledger_client  # noqa: E402
from educhain.database import MongoDBClient  # noqa: E402
from educhain.ipfs import MockPinningClient, set_pinning_client  # noqa: E402
from educhain.ipfs.client import reset_pinning_client  # noqa: E402

ADMIN_WALLET = "0x" + "ad" * 20
STUDENT_WALLET = "0x" + "5e" * 20
PDF_BYTES = b"%PDF-1.4 test certificate document"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[Any, None]:
    """Fresh in-memory MongoDB with the production indexes."""
    client = AsyncMongoMockClient()
    MongoDBClient.set_client(client)
    database = MongoDBClient.get_database()
    await MongoDBClient.create_indexes(database)

    yield database

    MongoDBClient.set_client(None)


@pytest.fixture
def ledger() -> MockLedgerClient:
    """Fresh mock ledger with its own custodial key."""
    keystore = Keystore()
    keystore.add_key("0x" + "11" * 32, default=True)
    client = MockLedgerClient(keystore=keystore)
    set_ledger_client(client)

    yield client

    reset_ledger_client()


@pytest.fixture
def pinning() -> MockPinningClient:
    """Fresh mock pinning service."""
    client = MockPinningClient()
    set_pinning_client(client)

    yield client

    reset_pinning_client()


@pytest_asyncio.fixture
async def portal_client(
    db: Any,
    ledger: MockLedgerClient,
    pinning: MockPinningClient,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client for the certificate portal."""
    from services.portal.main import app

    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://test",
    ) as client:
        yield client


# ============================================================================
# Sample Data Fixtures
# ============================================================================


InstitutionFactory = Callable[..., Awaitable[dict[str, Any]]]


def institution_payload(suffix: str = "1", **overrides: Any) -> dict[str, Any]:
    """Registration body for a test institution."""
    payload = {
        "name": f"Test University {suffix}",
        "email": f"registrar{suffix}@university.edu",
        "password": "Secret123",
        "walletAddress": "0x" + suffix.rjust(40, "0"),
        "registrationNumber": f"REG-{suffix}",
        "contactInfo": {"phone": "+15551234567", "website": "https://university.edu"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_institution(portal_client: AsyncClient, db: Any) -> InstitutionFactory:
    """Register (and by default verify) an institution, then log in."""

    async def _make(suffix: str = "1", verified: bool = True, **overrides: Any) -> dict[str, Any]:
        payload = institution_payload(suffix, **overrides)
        response = await portal_client.post("/api/institutions/register", json=payload)
        assert response.status_code == 201, response.text
        institution_id = response.json()["institutionId"]

        if verified:
            await db["institutions"].update_one(
                {"_id": ObjectId(institution_id)},
                {"$set": {"is_verified": True}},
            )

        response = await portal_client.post(
            "/api/institutions/login",
            json={"email": payload["email"], "password": payload["password"]},
        )
        assert response.status_code == 200, response.text

        return {
            "id": institution_id,
            "name": payload["name"],
            "wallet_address": payload["walletAddress"].lower(),
            "headers": {"Authorization": f"Bearer {response.json()['token']}"},
        }

    return _make


@pytest_asyncio.fixture
async def institution(make_institution: InstitutionFactory) -> dict[str, Any]:
    """A verified, logged-in institution."""
    return await make_institution()


@pytest.fixture
def certificate_fields() -> Callable[..., dict[str, Any]]:
    """Certificate form fields, camelCase as sent by clients."""

    def _fields(**overrides: Any) -> dict[str, Any]:
        fields = {
            "studentName": "Ada Lovelace",
            "studentId": "S1",
            "studentEmail": "ada@student.edu",
            "courseName": "CS101",
            "grade": "A",
            "certificateType": "Certificate",
            "graduationDate": "2024-06-01T00:00:00Z",
        }
        fields.update(overrides)
        return fields

    return _fields


@pytest.fixture
def document() -> dict[str, tuple[str, bytes, str]]:
    """Multipart file field holding a small PDF."""
    return {"certificate": ("diploma.pdf", PDF_BYTES, "application/pdf")}


@pytest.fixture
def past_date() -> datetime:
    return datetime(2024, 6, 1, 12, 30, 45, tzinfo=UTC)


@pytest.fixture
def student_wallet() -> str:
    return STUDENT_WALLET


@pytest_asyncio.fixture
async def admin(make_institution: InstitutionFactory) -> dict[str, Any]:
    """An institution whose wallet is listed in ADMIN_WALLETS."""
    return await make_institution("ad", walletAddress=ADMIN_WALLET)
