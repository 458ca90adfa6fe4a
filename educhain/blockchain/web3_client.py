"""
Web3 Ledger Client
==================

Ledger client for the deployed certificate contract on Base, over an
HTTP JSON-RPC provider using web3.py.

Writes are signed locally with keys from the keystore. Nonce assignment,
signing and submission happen while the signer lock is held; waiting for
the receipt does not. Reads are retried, writes never are.

Version: 0.1.0
"""

import asyncio
from typing import Any

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import (
    ContractLogicError,
    TimeExhausted,
    TransactionNotFound,
    Web3Exception,
    Web3RPCError,
)
from web3.logs import DISCARD

from educhain.blockchain.abi import CERTIFICATE_CONTRACT_ABI
from educhain.blockchain.client import (
    IssueReceipt,
    LedgerCertificate,
    LedgerClient,
    LedgerIssueRequest,
    RevokeReceipt,
    TxSubmitted,
)
from educhain.blockchain.keystore import Keystore
from educhain.config import BlockchainMode, settings
from educhain.errors import LedgerError, LedgerTimeoutError
from educhain.logging import get_logger

logger = get_logger(__name__)

# Transport failures worth retrying on read calls
RETRYABLE_ERRORS = (OSError, asyncio.TimeoutError)

read_retry = retry(
    retry=retry_if_exception_type(RETRYABLE_ERRORS),
    stop=stop_after_attempt(settings.blockchain.read_retries),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
    reraise=True,
    before_sleep=lambda retry_state: logger.warning(
        "ledger_read_retry",
        attempt=retry_state.attempt_number,
    ),
)


class Web3LedgerClient(LedgerClient):
    """Ledger client backed by web3.py's AsyncWeb3."""

    def __init__(
        self,
        keystore: Keystore | None = None,
        rpc_url: str | None = None,
        contract_address: str | None = None,
        chain_id: int | None = None,
    ) -> None:
        super().__init__(keystore)
        cfg = settings.blockchain

        self._rpc_url = rpc_url or cfg.resolved_rpc_url
        self._chain_id = chain_id or cfg.resolved_chain_id
        self._tx_timeout = cfg.tx_timeout_seconds
        self._confirmations = cfg.confirmations
        self._gas_limit = cfg.gas_limit

        self._w3 = AsyncWeb3(
            AsyncHTTPProvider(
                self._rpc_url,
                request_kwargs={"timeout": cfg.tx_timeout_seconds},
            )
        )

        address = contract_address or cfg.contract_address
        self._contract = (
            self._w3.eth.contract(
                address=Web3.to_checksum_address(address),
                abi=CERTIFICATE_CONTRACT_ABI,
            )
            if address
            else None
        )

        logger.debug(
            "web3_ledger_initialized",
            rpc_url=self._rpc_url,
            chain_id=self._chain_id,
            contract=address,
        )

    @property
    def mode(self) -> BlockchainMode:
        return settings.blockchain.mode

    @property
    def contract(self) -> Any:
        if self._contract is None:
            raise LedgerError("Contract address not configured")
        return self._contract

    async def connect(self) -> None:
        if not await self._w3.is_connected():
            raise LedgerError(f"Cannot reach RPC endpoint {self._rpc_url}")
        logger.info("web3_ledger_connected", chain_id=self._chain_id)

    async def disconnect(self) -> None:
        await self._w3.provider.disconnect()
        logger.info("web3_ledger_disconnected")

    async def health_check(self) -> dict[str, Any]:
        try:
            block_number = await self._w3.eth.block_number
            return {
                "status": "healthy",
                "mode": self.mode.value,
                "chain_id": self._chain_id,
                "block_number": block_number,
                "contract": self._contract.address if self._contract else None,
            }
        except Exception as e:
            logger.error("ledger_health_check_failed", error=str(e))
            return {"status": "unhealthy", "mode": self.mode.value, "error": str(e)}

    async def _fetch_nonce(self, address: str) -> int:
        return await self._w3.eth.get_transaction_count(address, "pending")

    async def _send(self, call: Any, signer: str | None, operation: str) -> str:
        """
        Build, sign and submit a contract call under the signer lock.

        Returns:
            0x-prefixed transaction hash
        """
        async with self.keystore.transaction(signer, self._fetch_nonce) as lease:
            try:
                tx = await call.build_transaction(
                    {
                        "from": lease.signer.checksum_address,
                        "nonce": lease.nonce,
                        "chainId": self._chain_id,
                        "gas": self._gas_limit,
                    }
                )
            except ContractLogicError as e:
                raise LedgerError(f"{operation} would revert: {e}") from e
            except (ValueError, Web3Exception, *RETRYABLE_ERRORS) as e:
                raise LedgerError(f"{operation} could not be built: {e}") from e

            signed = lease.signer.account.sign_transaction(tx)
            tx_hash = Web3.to_hex(signed.hash)

            try:
                await self._w3.eth.send_raw_transaction(signed.raw_transaction)
            except (ValueError, Web3RPCError) as e:
                # Node rejection (insufficient funds, nonce too low ...)
                raise LedgerError(f"{operation} rejected by node: {e}") from e
            except Exception as e:
                # The node may or may not have received it; the nonce is
                # re-read from the node on the next write.
                raise LedgerTimeoutError(
                    f"{operation} submission outcome unknown: {e}",
                    tx_hash=tx_hash,
                ) from e

            lease.mark_sent()

        logger.info(
            "ledger_tx_sent",
            operation=operation,
            tx_hash=tx_hash,
            nonce=lease.nonce,
            signer=lease.signer.address,
        )
        return tx_hash

    async def _wait_for_receipt(self, tx_hash: str, operation: str) -> Any:
        """
        Wait for a broadcast transaction to be mined.

        Only a mined, reverted receipt is a definite LedgerError. Anything
        else that goes wrong after broadcast leaves the outcome unknown and
        surfaces as LedgerTimeoutError carrying the hash.
        """
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self._tx_timeout,
            )
        except TimeExhausted as e:
            raise LedgerTimeoutError(
                f"{operation} not confirmed within {self._tx_timeout}s",
                tx_hash=tx_hash,
            ) from e
        except Exception as e:
            raise LedgerTimeoutError(
                f"{operation} receipt unavailable: {e}",
                tx_hash=tx_hash,
            ) from e

        if receipt["status"] != 1:
            raise LedgerError(f"{operation} reverted", tx_hash=tx_hash)

        if self._confirmations > 1:
            try:
                await self._await_confirmations(receipt["blockNumber"], tx_hash, operation)
            except LedgerTimeoutError:
                raise
            except Exception as e:
                raise LedgerTimeoutError(
                    f"{operation} confirmation check failed: {e}",
                    tx_hash=tx_hash,
                ) from e

        return receipt

    async def _await_confirmations(self, mined_in: int, tx_hash: str, operation: str) -> None:
        target = mined_in + self._confirmations - 1
        deadline = asyncio.get_running_loop().time() + self._tx_timeout
        while await self._w3.eth.block_number < target:
            if asyncio.get_running_loop().time() > deadline:
                raise LedgerTimeoutError(
                    f"{operation} lacks {self._confirmations} confirmations",
                    tx_hash=tx_hash,
                )
            await asyncio.sleep(2)

    def _token_id_from_receipt(self, receipt: Any) -> int | None:
        events = self.contract.events.CertificateIssued().process_receipt(
            receipt,
            errors=DISCARD,
        )
        if not events:
            return None
        return int(events[0]["args"]["tokenId"])

    # =========================================================================
    # Contract calls
    # =========================================================================

    async def issue_certificate(
        self,
        request: LedgerIssueRequest,
        signer: str | None = None,
        on_submitted: TxSubmitted | None = None,
    ) -> IssueReceipt:
        call = self.contract.functions.issueCertificate(
            Web3.to_checksum_address(request.student_wallet),
            request.student_name,
            request.student_id,
            request.course_name,
            request.grade,
            request.certificate_type,
            request.graduation_timestamp,
            request.ipfs_hash,
        )
        tx_hash = await self._send(call, signer, "issueCertificate")
        if on_submitted is not None:
            await on_submitted(tx_hash)
        receipt = await self._wait_for_receipt(tx_hash, "issueCertificate")

        token_id = self._token_id_from_receipt(receipt)
        if token_id is None:
            # Mined successfully, so a token may exist; leave it to reconciliation
            raise LedgerTimeoutError(
                "CertificateIssued event missing from receipt",
                tx_hash=tx_hash,
            )

        logger.info(
            "ledger_certificate_issued",
            token_id=token_id,
            tx_hash=tx_hash,
            block_number=receipt["blockNumber"],
        )
        return IssueReceipt(
            token_id=token_id,
            tx_hash=tx_hash,
            block_number=receipt["blockNumber"],
            signer=receipt["from"].lower(),
        )

    @read_retry
    async def verify_certificate(self, token_id: int) -> LedgerCertificate:
        try:
            (
                exists,
                is_revoked,
                student_name,
                course_name,
                institution_name,
                issue_date,
                graduation_date,
                grade,
            ) = await self.contract.functions.verifyCertificate(token_id).call()
        except ContractLogicError:
            return LedgerCertificate.not_found(token_id)

        if not exists:
            return LedgerCertificate.not_found(token_id)

        return LedgerCertificate(
            token_id=token_id,
            exists=True,
            is_revoked=is_revoked,
            student_name=student_name,
            course_name=course_name,
            institution_name=institution_name,
            grade=grade,
            issue_timestamp=issue_date,
            graduation_timestamp=graduation_date,
        )

    async def revoke_certificate(
        self,
        token_id: int,
        reason: str,
        signer: str | None = None,
    ) -> RevokeReceipt:
        call = self.contract.functions.revokeCertificate(token_id, reason)
        tx_hash = await self._send(call, signer, "revokeCertificate")
        receipt = await self._wait_for_receipt(tx_hash, "revokeCertificate")

        logger.info("ledger_certificate_revoked", token_id=token_id, tx_hash=tx_hash)
        return RevokeReceipt(
            token_id=token_id,
            tx_hash=tx_hash,
            block_number=receipt["blockNumber"],
        )

    @read_retry
    async def get_issue_receipt(self, tx_hash: str) -> IssueReceipt | None:
        try:
            receipt = await self._w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None

        if receipt["status"] != 1:
            raise LedgerError("issueCertificate reverted", tx_hash=tx_hash)

        token_id = self._token_id_from_receipt(receipt)
        if token_id is None:
            logger.warning("ledger_issue_event_missing", tx_hash=tx_hash)
            return None

        return IssueReceipt(
            token_id=token_id,
            tx_hash=tx_hash,
            block_number=receipt["blockNumber"],
            signer=receipt["from"].lower(),
        )

    @read_retry
    async def get_certificates_by_student(self, student_id: str) -> list[int]:
        token_ids = await self.contract.functions.getCertificatesByStudent(student_id).call()
        return [int(token_id) for token_id in token_ids]

    @read_retry
    async def get_total_certificates(self) -> int:
        return int(await self.contract.functions.getTotalCertificates().call())
