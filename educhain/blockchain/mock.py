"""
Mock Ledger Client
==================

In-memory stand-in for the certificate contract, for development and
testing.

Version: 0.1.0
"""

import asyncio
import hashlib
import uuid
from dataclasses import dataclass
from typing import Any

from educhain.blockchain.client import (
    IssueReceipt,
    LedgerCertificate,
    LedgerClient,
    LedgerIssueRequest,
    RevokeReceipt,
    TxSubmitted,
    now_timestamp,
)
from educhain.blockchain.keystore import Keystore
from educhain.config import BlockchainMode
from educhain.errors import LedgerError
from educhain.logging import get_logger
from educhain.validation import is_valid_address

logger = get_logger(__name__)


@dataclass
class _MintedCertificate:
    request: LedgerIssueRequest
    issuer: str
    issue_timestamp: int
    is_revoked: bool = False
    revoke_reason: str | None = None


class MockLedgerClient(LedgerClient):
    """
    In-memory mock ledger.

    Simulates the contract without blockchain infrastructure: sequential
    token ids from 1, random transaction hashes, one block per write.
    Every signed write leases a nonce from the keystore exactly like the
    real client, and the nonces used are recorded for inspection.

    Data is stored in memory and lost on restart.
    """

    def __init__(self, keystore: Keystore | None = None, latency: float = 0.0) -> None:
        super().__init__(keystore)
        self._connected = False
        self._block_number = 1000
        self._latency = latency

        self._certificates: dict[int, _MintedCertificate] = {}
        self._issue_receipts: dict[str, IssueReceipt] = {}
        self._account_nonces: dict[str, int] = {}
        self.used_nonces: list[tuple[str, int]] = []
        self.issue_calls = 0
        self.revoke_calls = 0

        logger.debug("mock_ledger_initialized")

    @property
    def mode(self) -> BlockchainMode:
        return BlockchainMode.MOCK

    async def connect(self) -> None:
        self._connected = True
        logger.info("mock_ledger_connected")

    async def disconnect(self) -> None:
        self._connected = False
        logger.info("mock_ledger_disconnected")

    async def health_check(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "mode": self.mode.value,
            "connected": self._connected,
            "block_number": self._block_number,
            "certificates": len(self._certificates),
        }

    def _generate_tx_hash(self) -> str:
        return "0x" + hashlib.sha256(uuid.uuid4().bytes).hexdigest()

    def _next_block(self) -> int:
        self._block_number += 1
        return self._block_number

    async def _fetch_nonce(self, address: str) -> int:
        return self._account_nonces.get(address.lower(), 0)

    async def _submit(self, signer: str | None) -> tuple[str, str]:
        """Lease a nonce, simulate network latency, and 'broadcast'."""
        async with self.keystore.transaction(signer, self._fetch_nonce) as lease:
            if self._latency:
                await asyncio.sleep(self._latency)
            address = lease.signer.address
            if lease.nonce != self._account_nonces.get(address, 0):
                raise LedgerError(f"nonce too low: {lease.nonce}")
            self._account_nonces[address] = lease.nonce + 1
            self.used_nonces.append((address, lease.nonce))
            lease.mark_sent()
        return address, self._generate_tx_hash()

    # =========================================================================
    # Contract calls
    # =========================================================================

    async def issue_certificate(
        self,
        request: LedgerIssueRequest,
        signer: str | None = None,
        on_submitted: TxSubmitted | None = None,
    ) -> IssueReceipt:
        self.issue_calls += 1
        if not is_valid_address(request.student_wallet):
            raise LedgerError("Invalid student wallet address")

        issuer, tx_hash = await self._submit(signer)
        if on_submitted is not None:
            await on_submitted(tx_hash)

        token_id = len(self._certificates) + 1
        self._certificates[token_id] = _MintedCertificate(
            request=request,
            issuer=issuer,
            issue_timestamp=now_timestamp(),
        )

        receipt = IssueReceipt(
            token_id=token_id,
            tx_hash=tx_hash,
            block_number=self._next_block(),
            signer=issuer,
        )
        self._issue_receipts[tx_hash] = receipt

        logger.info(
            "mock_certificate_minted",
            token_id=token_id,
            student_id=request.student_id,
            tx_hash=tx_hash,
        )
        return receipt

    async def verify_certificate(self, token_id: int) -> LedgerCertificate:
        minted = self._certificates.get(token_id)
        if minted is None:
            return LedgerCertificate.not_found(token_id)

        return LedgerCertificate(
            token_id=token_id,
            exists=True,
            is_revoked=minted.is_revoked,
            student_name=minted.request.student_name,
            course_name=minted.request.course_name,
            institution_name=minted.request.institution_name,
            grade=minted.request.grade,
            issue_timestamp=minted.issue_timestamp,
            graduation_timestamp=minted.request.graduation_timestamp,
        )

    async def revoke_certificate(
        self,
        token_id: int,
        reason: str,
        signer: str | None = None,
    ) -> RevokeReceipt:
        self.revoke_calls += 1
        minted = self._certificates.get(token_id)
        if minted is None:
            raise LedgerError("Certificate does not exist")
        if minted.is_revoked:
            raise LedgerError("Certificate already revoked")

        _, tx_hash = await self._submit(signer)
        minted.is_revoked = True
        minted.revoke_reason = reason

        logger.info("mock_certificate_revoked", token_id=token_id, tx_hash=tx_hash)
        return RevokeReceipt(
            token_id=token_id,
            tx_hash=tx_hash,
            block_number=self._next_block(),
        )

    async def get_issue_receipt(self, tx_hash: str) -> IssueReceipt | None:
        return self._issue_receipts.get(tx_hash)

    async def get_certificates_by_student(self, student_id: str) -> list[int]:
        return [
            token_id
            for token_id, minted in self._certificates.items()
            if minted.request.student_id == student_id
        ]

    async def get_total_certificates(self) -> int:
        return len(self._certificates)

    # =========================================================================
    # Test Utilities
    # =========================================================================

    def clear_all(self) -> None:
        """Clear all mock data (for testing)."""
        self._certificates.clear()
        self._issue_receipts.clear()
        self._account_nonces.clear()
        self.used_nonces.clear()
        self.issue_calls = 0
        self.revoke_calls = 0
        self._block_number = 1000
        logger.debug("mock_ledger_cleared")

    def get_stats(self) -> dict[str, int]:
        """Get storage statistics."""
        return {
            "certificates": len(self._certificates),
            "revoked": sum(1 for c in self._certificates.values() if c.is_revoked),
            "block_number": self._block_number,
            "issue_calls": self.issue_calls,
            "revoke_calls": self.revoke_calls,
        }

    def count_for(self, student_id: str, course_name: str) -> int:
        """Number of minted certificates for a student and course."""
        return sum(
            1
            for minted in self._certificates.values()
            if minted.request.student_id == student_id
            and minted.request.course_name == course_name
        )
