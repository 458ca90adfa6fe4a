"""
Blockchain Module
=================

Client for the certificate contract (issue / verify / revoke).

Supports:
- Mock (development/testing)
- Testnet (Base Goerli)
- Mainnet (Base)

Features:
- Keystore with one writer per signing key (no nonce races)
- Token id extraction from the CertificateIssued event
- Retried reads, never-retried writes

Usage:
    from educhain.blockchain import get_ledger_client, LedgerIssueRequest

    client = get_ledger_client()

    receipt = await client.issue_certificate(
        LedgerIssueRequest(
            student_wallet="0x...",
            student_name="Ada Lovelace",
            student_id="S1",
            course_name="CS101",
            grade="A",
            certificate_type="Certificate",
            graduation_timestamp=1717200000,
            ipfs_hash="Qm...",
        )
    )

    result = await client.verify_certificate(receipt.token_id)
"""

from educhain.blockchain.client import (
    IssueReceipt,
    LedgerCertificate,
    LedgerClient,
    LedgerIssueRequest,
    RevokeReceipt,
    TxSubmitted,
    get_ledger_client,
    reset_ledger_client,
    set_ledger_client,
)
from educhain.blockchain.keystore import Keystore, NonceLease, Signer
from educhain.blockchain.mock import MockLedgerClient

__all__ = [
    # Client
    "LedgerClient",
    "get_ledger_client",
    "set_ledger_client",
    "reset_ledger_client",
    # Models
    "LedgerIssueRequest",
    "IssueReceipt",
    "RevokeReceipt",
    "LedgerCertificate",
    "TxSubmitted",
    # Keys
    "Keystore",
    "Signer",
    "NonceLease",
    # Implementations
    "MockLedgerClient",
]
