"""
Unit tests for the web3 ledger client.

The JSON-RPC surface (`client._w3.eth`) is patched; nothing here talks
to a node.
"""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_account import Account
from web3 import Web3
from web3.exceptions import TimeExhausted, TransactionNotFound, Web3RPCError

from educhain.blockchain import Keystore, LedgerIssueRequest
from educhain.blockchain.web3_client import Web3LedgerClient
from educhain.errors import LedgerError, LedgerTimeoutError

PRIVATE_KEY = "0x" + "11" * 32
SIGNER = Account.from_key(PRIVATE_KEY).address
CONTRACT = Web3.to_checksum_address("0x" + "c0" * 20)
STUDENT_WALLET = "0x" + "5e" * 20
TX_HASH = "0x" + "ab" * 32
ISSUED_TOPIC = Web3.keccak(text="CertificateIssued(uint256,address,address,string)")


def issue_request() -> LedgerIssueRequest:
    return LedgerIssueRequest(
        student_wallet=STUDENT_WALLET,
        student_name="Ada Lovelace",
        student_id="S1",
        course_name="CS101",
        grade="A",
        certificate_type="Certificate",
        graduation_timestamp=1717200000,
        ipfs_hash="QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG",
    )


def contract_call() -> MagicMock:
    """Contract function whose transaction builds without a node."""
    call = MagicMock()
    call.build_transaction = AsyncMock(
        return_value={
            "to": CONTRACT,
            "value": 0,
            "data": "0x",
            "gas": 500_000,
            "gasPrice": 1_000_000_000,
            "nonce": 0,
            "chainId": 31337,
        }
    )
    return call


def issued_log(token_id: int, issuer: str) -> dict[str, Any]:
    """CertificateIssued log entry as a node returns it."""
    ipfs_hash = b"QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"
    data = (
        (32).to_bytes(32, "big")
        + len(ipfs_hash).to_bytes(32, "big")
        + ipfs_hash
        + bytes(-len(ipfs_hash) % 32)
    )
    return {
        "address": CONTRACT,
        "topics": [
            ISSUED_TOPIC,
            token_id.to_bytes(32, "big"),
            bytes(12) + bytes.fromhex(STUDENT_WALLET[2:]),
            bytes(12) + bytes.fromhex(issuer[2:]),
        ],
        "data": data,
        "logIndex": 0,
        "transactionIndex": 0,
        "transactionHash": bytes.fromhex(TX_HASH[2:]),
        "blockHash": bytes(32),
        "blockNumber": 1234,
    }


def receipt(status: int = 1, logs: list[dict[str, Any]] | None = None, sender: str = "") -> dict[str, Any]:
    return {
        "status": status,
        "blockNumber": 1234,
        "from": sender,
        "transactionHash": bytes.fromhex(TX_HASH[2:]),
        "logs": logs or [],
    }


class TestWeb3LedgerClient:
    """Tests for Web3LedgerClient."""

    @pytest.fixture
    def client(self) -> Web3LedgerClient:
        """Client on a local chain id with patched RPC calls."""
        keystore = Keystore()
        keystore.add_key(PRIVATE_KEY, default=True)
        client = Web3LedgerClient(
            keystore=keystore,
            rpc_url="http://localhost:8545",
            contract_address=CONTRACT,
            chain_id=31337,
        )
        client._confirmations = 1
        client._w3.eth.get_transaction_count = AsyncMock(return_value=5)
        client._w3.eth.send_raw_transaction = AsyncMock(return_value=bytes.fromhex(TX_HASH[2:]))
        return client

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    @pytest.mark.asyncio
    async def test_nonces_leased_in_sequence(self, client: Web3LedgerClient) -> None:
        """Test that consecutive writes take consecutive nonces from one node read."""
        calls = [contract_call(), contract_call()]

        for call in calls:
            await client._send(call, None, "issueCertificate")

        nonces = [call.build_transaction.await_args.args[0]["nonce"] for call in calls]
        assert nonces == [5, 6]
        assert client._w3.eth.get_transaction_count.await_count == 1
        assert client.keystore.get().next_nonce == 7

    @pytest.mark.asyncio
    async def test_returns_signed_hash(self, client: Web3LedgerClient) -> None:
        tx_hash = await client._send(contract_call(), None, "issueCertificate")

        assert tx_hash.startswith("0x")
        assert len(tx_hash) == 66
        client._w3.eth.send_raw_transaction.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message",
        ["insufficient funds for gas * price + value", "nonce too low"],
    )
    async def test_node_rejection_is_definite(self, client: Web3LedgerClient, message: str) -> None:
        """Test that an RPC rejection is a LedgerError and frees the nonce."""
        client._w3.eth.send_raw_transaction = AsyncMock(side_effect=Web3RPCError(message))

        with pytest.raises(LedgerError) as exc_info:
            await client._send(contract_call(), None, "issueCertificate")

        assert not isinstance(exc_info.value, LedgerTimeoutError)
        assert client.keystore.get().next_nonce is None

    @pytest.mark.asyncio
    async def test_transport_failure_on_send_is_ambiguous(self, client: Web3LedgerClient) -> None:
        """Test that a dropped connection during submission keeps the hash."""
        client._w3.eth.send_raw_transaction = AsyncMock(side_effect=ConnectionResetError("reset"))

        with pytest.raises(LedgerTimeoutError) as exc_info:
            await client._send(contract_call(), None, "issueCertificate")

        assert exc_info.value.tx_hash is not None
        assert exc_info.value.tx_hash.startswith("0x")

    @pytest.mark.asyncio
    async def test_build_failure_is_definite(self, client: Web3LedgerClient) -> None:
        call = contract_call()
        call.build_transaction = AsyncMock(side_effect=Web3RPCError("fee history unavailable"))

        with pytest.raises(LedgerError) as exc_info:
            await client._send(call, None, "issueCertificate")

        assert not isinstance(exc_info.value, LedgerTimeoutError)
        client._w3.eth.send_raw_transaction.assert_not_awaited()

    # -------------------------------------------------------------------------
    # Issuance
    # -------------------------------------------------------------------------

    @pytest.mark.asyncio
    async def test_issue_decodes_token_id(self, client: Web3LedgerClient) -> None:
        """Test that the token id comes from the CertificateIssued event."""
        client._send = AsyncMock(return_value=TX_HASH)  # type: ignore[method-assign]
        client._w3.eth.wait_for_transaction_receipt = AsyncMock(
            return_value=receipt(logs=[issued_log(42, SIGNER)], sender=SIGNER)
        )
        submitted: list[str] = []

        async def on_submitted(tx_hash: str) -> None:
            submitted.append(tx_hash)

        result = await client.issue_certificate(issue_request(), on_submitted=on_submitted)

        assert result.token_id == 42
        assert result.tx_hash == TX_HASH
        assert result.block_number == 1234
        assert result.signer == SIGNER.lower()
        assert submitted == [TX_HASH]

    @pytest.mark.asyncio
    async def test_revert_is_definite(self, client: Web3LedgerClient) -> None:
        client._send = AsyncMock(return_value=TX_HASH)  # type: ignore[method-assign]
        client._w3.eth.wait_for_transaction_receipt = AsyncMock(return_value=receipt(status=0))

        with pytest.raises(LedgerError) as exc_info:
            await client.issue_certificate(issue_request())

        assert not isinstance(exc_info.value, LedgerTimeoutError)
        assert exc_info.value.tx_hash == TX_HASH

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "failure",
        [
            TimeExhausted("not mined"),
            ConnectionResetError("connection reset by peer"),
            Web3RPCError("header not found"),
        ],
    )
    async def test_failure_after_broadcast_is_ambiguous(
        self,
        client: Web3LedgerClient,
        failure: Exception,
    ) -> None:
        """Test that anything but a revert while awaiting the receipt keeps the hash."""
        client._send = AsyncMock(return_value=TX_HASH)  # type: ignore[method-assign]
        client._w3.eth.wait_for_transaction_receipt = AsyncMock(side_effect=failure)

        with pytest.raises(LedgerTimeoutError) as exc_info:
            await client.issue_certificate(issue_request())

        assert exc_info.value.tx_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_missing_event_is_ambiguous(self, client: Web3LedgerClient) -> None:
        """Test that a successful receipt without the event is not treated as a failure."""
        client._send = AsyncMock(return_value=TX_HASH)  # type: ignore[method-assign]
        client._w3.eth.wait_for_transaction_receipt = AsyncMock(
            return_value=receipt(sender=SIGNER)
        )

        with pytest.raises(LedgerTimeoutError) as exc_info:
            await client.issue_certificate(issue_request())

        assert exc_info.value.tx_hash == TX_HASH

    # -------------------------------------------------------------------------
    # Receipt lookup
    # -------------------------------------------------------------------------

    @pytest.mark.asyncio
    async def test_issue_receipt_confirmed(self, client: Web3LedgerClient) -> None:
        client._w3.eth.get_transaction_receipt = AsyncMock(
            return_value=receipt(logs=[issued_log(7, SIGNER)], sender=SIGNER)
        )

        result = await client.get_issue_receipt(TX_HASH)

        assert result is not None
        assert result.token_id == 7

    @pytest.mark.asyncio
    async def test_issue_receipt_unknown(self, client: Web3LedgerClient) -> None:
        client._w3.eth.get_transaction_receipt = AsyncMock(
            side_effect=TransactionNotFound("not found")
        )

        assert await client.get_issue_receipt(TX_HASH) is None

    @pytest.mark.asyncio
    async def test_issue_receipt_without_event_stays_unknown(self, client: Web3LedgerClient) -> None:
        client._w3.eth.get_transaction_receipt = AsyncMock(
            return_value=receipt(sender=SIGNER)
        )

        assert await client.get_issue_receipt(TX_HASH) is None

    @pytest.mark.asyncio
    async def test_issue_receipt_reverted(self, client: Web3LedgerClient) -> None:
        client._w3.eth.get_transaction_receipt = AsyncMock(return_value=receipt(status=0))

        with pytest.raises(LedgerError):
            await client.get_issue_receipt(TX_HASH)
