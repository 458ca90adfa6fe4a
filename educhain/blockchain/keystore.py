"""
Keystore
========

Holds the signing keys the service submits ledger writes with.

Each signer owns an asyncio.Lock and a locally tracked nonce. A write
holds the lock from nonce assignment until the signed transaction has
been handed to the node, so concurrent requests sharing a key never
race on nonce assignment. Waiting for confirmation happens outside the
lock.

Version: 0.1.0
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from eth_account import Account
from eth_account.signers.local import LocalAccount

from educhain.config import BlockchainMode, settings
from educhain.logging import get_logger

logger = get_logger(__name__)

NonceFetcher = Callable[[str], Awaitable[int]]


@dataclass
class Signer:
    """A signing key with its single-writer lock."""

    account: LocalAccount
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    next_nonce: int | None = None

    @property
    def address(self) -> str:
        """Lower-cased hex address."""
        return self.account.address.lower()

    @property
    def checksum_address(self) -> str:
        return self.account.address


@dataclass
class NonceLease:
    """Nonce handed to one transaction while the signer lock is held."""

    signer: Signer
    nonce: int
    sent: bool = False

    def mark_sent(self) -> None:
        """Record that the transaction reached the node."""
        self.sent = True


class Keystore:
    """Signing keys keyed by lower-cased address."""

    def __init__(self) -> None:
        self._signers: dict[str, Signer] = {}
        self._default: str | None = None

    @classmethod
    def from_settings(cls) -> "Keystore":
        """
        Build the keystore holding the custodial key.

        In mock mode a throwaway key is generated when none is configured.
        """
        keystore = cls()
        private_key = settings.blockchain.private_key.get_secret_value()

        if private_key:
            keystore.add_key(private_key, default=True)
        elif settings.blockchain.mode == BlockchainMode.MOCK:
            keystore.add_account(Account.create(), default=True)
        else:
            logger.warning("keystore_without_custodial_key")

        return keystore

    def add_key(self, private_key: str, default: bool = False) -> Signer:
        """Register a hex private key."""
        return self.add_account(Account.from_key(private_key), default=default)

    def add_account(self, account: LocalAccount, default: bool = False) -> Signer:
        signer = Signer(account=account)
        self._signers[signer.address] = signer
        if default or self._default is None:
            self._default = signer.address
        logger.info("keystore_signer_added", address=signer.address, default=default)
        return signer

    @property
    def default_address(self) -> str | None:
        return self._default

    def has_key(self, address: str) -> bool:
        return address.lower() in self._signers

    def get(self, address: str | None = None) -> Signer:
        """
        Get the signer for an address, falling back to the custodial key.

        Raises:
            LookupError: No key is available at all
        """
        if address is not None and address.lower() in self._signers:
            return self._signers[address.lower()]
        if self._default is None:
            raise LookupError("No signing key configured")
        return self._signers[self._default]

    @asynccontextmanager
    async def transaction(
        self,
        address: str | None,
        fetch_nonce: NonceFetcher,
    ) -> AsyncIterator[NonceLease]:
        """
        Lease the next nonce of a signer for one transaction.

        The signer lock is held for the duration of the block. If the block
        fails before the lease is marked sent, the cached nonce is dropped
        and re-read from the node next time.
        """
        signer = self.get(address)
        async with signer.lock:
            if signer.next_nonce is None:
                signer.next_nonce = await fetch_nonce(signer.checksum_address)

            lease = NonceLease(signer=signer, nonce=signer.next_nonce)
            try:
                yield lease
            except BaseException:
                if lease.sent:
                    signer.next_nonce = lease.nonce + 1
                else:
                    signer.next_nonce = None
                raise
            else:
                signer.next_nonce = lease.nonce + 1 if lease.sent else lease.nonce
