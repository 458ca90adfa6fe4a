"""
Reconciliation Service
======================

Brings the local certificate index back in line with the ledger after
partial failures.

Passes:
- Pending reservations with a transaction hash are promoted when the
  transaction confirmed, released when it reverted, left alone while
  the ledger does not know it yet.
- Pending reservations without a transaction hash older than the grace
  period are released (the ledger was never written).
- Issued records revoked on the ledger but not locally are flipped.
- Ledger token ids without any local record are reported as orphaned.
  They are not backfilled: the ledger lacks the student e-mail and
  content hashes.

Version: 0.1.0
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from educhain.blockchain import LedgerClient, get_ledger_client
from educhain.config import settings
from educhain.errors import LedgerError
from educhain.logging import get_logger
from educhain.validation import to_utc
from services.portal.services.repositories import CertificateRepository
from services.portal.services.revocation import LEDGER_REVOKED_REASON

logger = get_logger(__name__)


class ReconciliationReport(BaseModel):
    """Outcome of one reconciliation run."""

    promoted: list[int] = Field(default_factory=list, description="Token ids promoted to issued")
    released: list[str] = Field(default_factory=list, description="Reservation ids deleted")
    still_pending: list[str] = Field(default_factory=list)
    revoked: list[int] = Field(default_factory=list, description="Token ids flipped to revoked")
    orphaned: list[int] = Field(default_factory=list, description="Ledger token ids with no record")
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None


class CertificateReconciler:
    """Ledger/database reconciliation job."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
        ledger: LedgerClient | None = None,
        pending_grace: timedelta | None = None,
        batch_size: int | None = None,
    ) -> None:
        self.certificates = CertificateRepository(db)
        self.ledger = ledger or get_ledger_client()
        self.pending_grace = pending_grace or timedelta(
            seconds=settings.reconcile.pending_grace_seconds
        )
        self.batch_size = batch_size or settings.reconcile.scan_batch_size

    async def reconcile(self, now: datetime | None = None) -> ReconciliationReport:
        """Run every pass once."""
        report = ReconciliationReport()
        now = to_utc(now) if now is not None else datetime.now(UTC)

        await self._resolve_pending(report, now)
        await self._sync_revocations(report)
        await self._find_orphans(report)

        report.finished_at = datetime.now(UTC)
        logger.info(
            "reconciliation_completed",
            promoted=len(report.promoted),
            released=len(report.released),
            still_pending=len(report.still_pending),
            revoked=len(report.revoked),
            orphaned=len(report.orphaned),
        )
        return report

    async def _resolve_pending(self, report: ReconciliationReport, now: datetime) -> None:
        for record in await self.certificates.list_pending():
            record_id = str(record["_id"])
            tx_hash = record.get("transaction_hash")

            if not tx_hash:
                if self._is_stale(record, now):
                    await self.certificates.release(record["_id"])
                    report.released.append(record_id)
                    logger.info("stale_reservation_released", record_id=record_id)
                else:
                    report.still_pending.append(record_id)
                continue

            try:
                receipt = await self.ledger.get_issue_receipt(tx_hash)
            except LedgerError as e:
                await self.certificates.release(record["_id"])
                report.released.append(record_id)
                logger.info("reverted_reservation_released", record_id=record_id, error=e.message)
                continue

            if receipt is None:
                report.still_pending.append(record_id)
                continue

            await self.certificates.promote(record["_id"], receipt)
            report.promoted.append(receipt.token_id)
            logger.info(
                "reservation_promoted",
                record_id=record_id,
                token_id=receipt.token_id,
                tx_hash=tx_hash,
            )

    def _is_stale(self, record: dict[str, Any], now: datetime) -> bool:
        created_at = record.get("created_at")
        if created_at is None:
            return True
        return now - to_utc(created_at) > self.pending_grace

    async def _sync_revocations(self, report: ReconciliationReport) -> None:
        async for batch in self.certificates.iter_unrevoked(self.batch_size):
            for record in batch:
                token_id = record["token_id"]
                on_ledger = await self.ledger.verify_certificate(token_id)
                if on_ledger.exists and on_ledger.is_revoked:
                    if await self.certificates.mark_revoked(token_id, LEDGER_REVOKED_REASON, None):
                        report.revoked.append(token_id)
                        logger.info("revocation_synced", token_id=token_id)

    async def _find_orphans(self, report: ReconciliationReport) -> None:
        total = await self.ledger.get_total_certificates()
        known = await self.certificates.known_token_ids()
        report.orphaned = [token_id for token_id in range(1, total + 1) if token_id not in known]
        if report.orphaned:
            logger.warning("orphaned_tokens_found", token_ids=report.orphaned)
