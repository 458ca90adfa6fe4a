"""Tests for ledger/database reconciliation."""

from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest
from bson import ObjectId
from httpx import AsyncClient

from educhain.blockchain import IssueReceipt, LedgerIssueRequest, MockLedgerClient, TxSubmitted
from educhain.errors import LedgerError, LedgerTimeoutError
from services.portal.services import CertificateReconciler

PENDING_TX = "0x" + "cd" * 32


def pending_record(institution_id: str, **overrides: Any) -> dict[str, Any]:
    record = {
        "status": "pending",
        "student_name": "Ada Lovelace",
        "student_id": "S1",
        "student_email": "ada@student.edu",
        "student_wallet_address": "0x" + "5e" * 20,
        "course_name": "CS101",
        "grade": "A",
        "certificate_type": "Certificate",
        "institution_id": ObjectId(institution_id),
        "ipfs_hash": "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG",
        "file_hash": None,
        "graduation_date": datetime(2024, 6, 1, tzinfo=UTC),
        "is_revoked": False,
        "created_at": datetime.now(UTC),
        "updated_at": datetime.now(UTC),
    }
    record.update(overrides)
    return record


def ledger_request(student_id: str = "S1") -> LedgerIssueRequest:
    return LedgerIssueRequest(
        student_wallet="0x" + "5e" * 20,
        student_name="Ada Lovelace",
        student_id=student_id,
        course_name="CS101",
        grade="A",
        certificate_type="Certificate",
        graduation_timestamp=1717200000,
        ipfs_hash="QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG",
    )


class TestCertificateReconciler:
    """Tests for CertificateReconciler."""

    @pytest.mark.asyncio
    async def test_promotes_confirmed_transaction(
        self,
        db: Any,
        ledger: MockLedgerClient,
        institution: dict[str, Any],
    ) -> None:
        """Test that a pending record whose transaction confirmed becomes issued."""
        receipt = await ledger.issue_certificate(ledger_request())
        result = await db["certificates"].insert_one(
            pending_record(institution["id"], transaction_hash=receipt.tx_hash)
        )

        report = await CertificateReconciler(db, ledger).reconcile()

        assert report.promoted == [receipt.token_id]
        stored = await db["certificates"].find_one({"_id": result.inserted_id})
        assert stored["status"] == "issued"
        assert stored["token_id"] == receipt.token_id
        assert report.orphaned == []

    @pytest.mark.asyncio
    async def test_keeps_unknown_transaction_pending(
        self,
        db: Any,
        ledger: MockLedgerClient,
        institution: dict[str, Any],
    ) -> None:
        await db["certificates"].insert_one(
            pending_record(institution["id"], transaction_hash=PENDING_TX)
        )

        report = await CertificateReconciler(db, ledger).reconcile()

        assert len(report.still_pending) == 1
        assert await db["certificates"].count_documents({"status": "pending"}) == 1

    @pytest.mark.asyncio
    async def test_releases_reverted_transaction(
        self,
        db: Any,
        ledger: MockLedgerClient,
        institution: dict[str, Any],
    ) -> None:
        """Test that a reverted transaction frees the triple."""
        await db["certificates"].insert_one(
            pending_record(institution["id"], transaction_hash=PENDING_TX)
        )
        ledger.get_issue_receipt = AsyncMock(  # type: ignore[method-assign]
            side_effect=LedgerError("Transaction reverted", tx_hash=PENDING_TX)
        )

        report = await CertificateReconciler(db, ledger).reconcile()

        assert len(report.released) == 1
        assert await db["certificates"].count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_releases_stale_reservation(
        self,
        db: Any,
        ledger: MockLedgerClient,
        institution: dict[str, Any],
    ) -> None:
        """Test grace-period handling of reservations that never reached the ledger."""
        now = datetime.now(UTC)
        await db["certificates"].insert_one(
            pending_record(institution["id"], created_at=now - timedelta(minutes=10))
        )
        await db["certificates"].insert_one(
            pending_record(institution["id"], student_id="S2", created_at=now)
        )

        report = await CertificateReconciler(
            db, ledger, pending_grace=timedelta(minutes=5)
        ).reconcile(now=now)

        assert len(report.released) == 1
        assert len(report.still_pending) == 1
        remaining = await db["certificates"].find_one({})
        assert remaining["student_id"] == "S2"

    @pytest.mark.asyncio
    async def test_syncs_ledger_revocation(
        self,
        db: Any,
        ledger: MockLedgerClient,
        institution: dict[str, Any],
    ) -> None:
        """Test that revocations made on the ledger are adopted locally."""
        receipt = await ledger.issue_certificate(ledger_request())
        await db["certificates"].insert_one(
            pending_record(
                institution["id"],
                status="issued",
                token_id=receipt.token_id,
                transaction_hash=receipt.tx_hash,
            )
        )
        await ledger.revoke_certificate(receipt.token_id, "revoked on chain")

        report = await CertificateReconciler(db, ledger).reconcile()

        assert report.revoked == [receipt.token_id]
        stored = await db["certificates"].find_one({"token_id": receipt.token_id})
        assert stored["is_revoked"] is True
        assert stored["revoke_reason"] == "Revoked on ledger"

    @pytest.mark.asyncio
    async def test_revocation_sync_covers_every_batch(
        self,
        db: Any,
        ledger: MockLedgerClient,
        institution: dict[str, Any],
    ) -> None:
        """Test that records beyond the first batch are checked in the same pass."""
        for student_id in ("S1", "S2", "S3"):
            receipt = await ledger.issue_certificate(ledger_request(student_id))
            await db["certificates"].insert_one(
                pending_record(
                    institution["id"],
                    student_id=student_id,
                    status="issued",
                    token_id=receipt.token_id,
                    transaction_hash=receipt.tx_hash,
                )
            )
        await ledger.revoke_certificate(1, "revoked on chain")
        await ledger.revoke_certificate(3, "revoked on chain")

        report = await CertificateReconciler(db, ledger, batch_size=1).reconcile()

        assert report.revoked == [1, 3]
        assert await db["certificates"].count_documents({"is_revoked": True}) == 2

    @pytest.mark.asyncio
    async def test_reports_orphans(
        self,
        db: Any,
        ledger: MockLedgerClient,
    ) -> None:
        """Test that ledger tokens without a local record are reported, not backfilled."""
        await ledger.issue_certificate(ledger_request("S1"))
        await ledger.issue_certificate(ledger_request("S2"))

        report = await CertificateReconciler(db, ledger).reconcile()

        assert report.orphaned == [1, 2]
        assert await db["certificates"].count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_promote_after_timeout(
        self,
        portal_client: AsyncClient,
        db: Any,
        ledger: MockLedgerClient,
        institution: dict[str, Any],
        certificate_fields: Any,
        document: dict[str, Any],
        student_wallet: str,
    ) -> None:
        """Test that an issuance that timed out is completed by the reconciler."""
        real_receipt: list[IssueReceipt] = []
        original_issue = ledger.issue_certificate

        async def confirm_late(
            request: LedgerIssueRequest,
            signer: str | None = None,
            on_submitted: TxSubmitted | None = None,
        ) -> IssueReceipt:
            receipt = await original_issue(request, signer=signer, on_submitted=on_submitted)
            real_receipt.append(receipt)
            raise LedgerTimeoutError("Transaction not confirmed", tx_hash=receipt.tx_hash)

        ledger.issue_certificate = confirm_late  # type: ignore[method-assign]

        response = await portal_client.post(
            "/api/certificates/issue-with-document",
            data={**certificate_fields(), "studentWalletAddress": student_wallet},
            files=document,
            headers=institution["headers"],
        )
        assert response.status_code == 504

        report = await CertificateReconciler(db, ledger).reconcile()

        assert report.promoted == [real_receipt[0].token_id]
        verified = await portal_client.get(f"/api/certificates/verify/{real_receipt[0].token_id}")
        assert verified.json()["additionalInfo"]["transactionHash"] == real_receipt[0].tx_hash


class TestReconcileEndpoint:
    """Tests for POST /api/admin/reconcile."""

    @pytest.mark.asyncio
    async def test_admin_runs_reconciliation(
        self,
        portal_client: AsyncClient,
        admin: dict[str, Any],
        ledger: MockLedgerClient,
    ) -> None:
        await ledger.issue_certificate(ledger_request())

        response = await portal_client.post("/api/admin/reconcile", headers=admin["headers"])

        assert response.status_code == 200
        assert response.json()["orphaned"] == [1]

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(
        self,
        portal_client: AsyncClient,
        institution: dict[str, Any],
    ) -> None:
        response = await portal_client.post("/api/admin/reconcile", headers=institution["headers"])

        assert response.status_code == 403
