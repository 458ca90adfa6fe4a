"""
Ledger Client Interface
=======================

Abstract base class and models for the certificate contract's
issue / verify / revoke calls.

Version: 0.1.0
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from educhain.blockchain.keystore import Keystore
from educhain.config import BlockchainMode, settings
from educhain.logging import get_logger
from educhain.validation import from_unix_seconds

logger = get_logger(__name__)

# Called with the transaction hash once a write has been broadcast
TxSubmitted = Callable[[str], Awaitable[None]]


class LedgerIssueRequest(BaseModel):
    """Arguments of the contract's issueCertificate call."""

    student_wallet: str
    student_name: str
    student_id: str
    course_name: str
    grade: str
    certificate_type: str
    graduation_timestamp: int = Field(..., description="Unix seconds, UTC")
    ipfs_hash: str = Field(..., description="Metadata content hash")

    # Recorded by the mock ledger only; the deployed contract resolves the
    # institution name from its own registry of authorized issuers.
    institution_name: str = ""


class IssueReceipt(BaseModel):
    """Confirmed issuance."""

    token_id: int
    tx_hash: str
    block_number: int | None = None
    signer: str | None = None


class RevokeReceipt(BaseModel):
    """Confirmed revocation."""

    token_id: int
    tx_hash: str
    block_number: int | None = None


class LedgerCertificate(BaseModel):
    """Result of the contract's verifyCertificate view."""

    token_id: int
    exists: bool
    is_revoked: bool = False
    student_name: str = ""
    course_name: str = ""
    institution_name: str = ""
    grade: str = ""
    issue_timestamp: int = 0
    graduation_timestamp: int = 0

    @property
    def issue_date(self) -> datetime:
        return from_unix_seconds(self.issue_timestamp)

    @property
    def graduation_date(self) -> datetime:
        return from_unix_seconds(self.graduation_timestamp)

    @classmethod
    def not_found(cls, token_id: int) -> "LedgerCertificate":
        return cls(token_id=token_id, exists=False)


class LedgerClient(ABC):
    """
    Abstract base class for ledger clients.

    Implements the Strategy pattern for different blockchain modes.
    Writes go through the keystore so that each signing key submits one
    transaction at a time.
    """

    def __init__(self, keystore: Keystore | None = None) -> None:
        self.keystore = keystore or Keystore.from_settings()

    @property
    @abstractmethod
    def mode(self) -> BlockchainMode:
        """Get the blockchain mode."""
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the network."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect from the network."""
        ...

    @abstractmethod
    async def health_check(self) -> dict[str, Any]:
        """Check ledger connectivity."""
        ...

    @abstractmethod
    async def issue_certificate(
        self,
        request: LedgerIssueRequest,
        signer: str | None = None,
        on_submitted: TxSubmitted | None = None,
    ) -> IssueReceipt:
        """
        Mint a certificate and wait for confirmation.

        Args:
            request: Contract call arguments
            signer: Address of the signing key (default custodial key)
            on_submitted: Awaited with the transaction hash right after
                broadcast, before waiting for the receipt

        Returns:
            IssueReceipt with the ledger-assigned token id

        Raises:
            LedgerError: Call reverted or could not be submitted
            LedgerTimeoutError: Outcome unknown after broadcast (not
                confirmed in time, receipt unreadable, event missing)
        """
        ...

    @abstractmethod
    async def verify_certificate(self, token_id: int) -> LedgerCertificate:
        """
        Read a certificate's ledger state.

        Unknown token ids yield a result with exists=False.
        """
        ...

    @abstractmethod
    async def revoke_certificate(
        self,
        token_id: int,
        reason: str,
        signer: str | None = None,
    ) -> RevokeReceipt:
        """
        Revoke a certificate and wait for confirmation.

        Raises:
            LedgerError: Call reverted (unknown or already revoked token)
            LedgerTimeoutError: Broadcast but not confirmed in time
        """
        ...

    @abstractmethod
    async def get_issue_receipt(self, tx_hash: str) -> IssueReceipt | None:
        """
        Look up the outcome of an issuance transaction.

        Returns:
            IssueReceipt once mined, None while unknown, pending, or
            mined without a readable CertificateIssued event

        Raises:
            LedgerError: The transaction was mined but reverted
        """
        ...

    @abstractmethod
    async def get_certificates_by_student(self, student_id: str) -> list[int]:
        """Token ids the ledger holds for a student id."""
        ...

    @abstractmethod
    async def get_total_certificates(self) -> int:
        """Number of certificates ever minted (token ids run 1..total)."""
        ...


def now_timestamp() -> int:
    return int(datetime.now(UTC).timestamp())


# Global client instance
_client: LedgerClient | None = None


def get_ledger_client() -> LedgerClient:
    """
    Get the configured ledger client instance.

    Returns:
        LedgerClient instance based on settings
    """
    global _client

    if _client is None:
        mode = settings.blockchain.mode

        if mode == BlockchainMode.MOCK:
            from educhain.blockchain.mock import MockLedgerClient

            _client = MockLedgerClient()
        elif mode in (BlockchainMode.TESTNET, BlockchainMode.MAINNET):
            from educhain.blockchain.web3_client import Web3LedgerClient

            _client = Web3LedgerClient()
        else:
            raise ValueError(f"Unknown blockchain mode: {mode}")

        logger.info(
            "ledger_client_initialized",
            mode=mode.value,
        )

    return _client


def set_ledger_client(client: LedgerClient) -> None:
    """
    Set a custom ledger client.

    Args:
        client: LedgerClient instance
    """
    global _client
    _client = client
    logger.info(
        "ledger_client_set",
        mode=client.mode.value,
    )


def reset_ledger_client() -> None:
    """Reset the client to be re-initialized."""
    global _client
    _client = None
