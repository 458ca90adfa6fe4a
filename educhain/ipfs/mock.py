"""
Mock Pinning Client
===================

In-memory content-addressed store for development and testing.

Content is keyed by a real CIDv0: base58btc of the sha2-256 multihash of
the stored bytes, so the same content always yields the same hash.

Version: 0.1.0
"""

import hashlib
import json
from typing import Any

import base58

from educhain.config import PinningMode
from educhain.errors import PinningError
from educhain.ipfs.client import PinningClient, PinResult
from educhain.logging import get_logger

logger = get_logger(__name__)

# multihash header: sha2-256, 32-byte digest
SHA2_256_PREFIX = b"\x12\x20"


def compute_cid_v0(data: bytes) -> str:
    """CIDv0 of raw bytes."""
    digest = hashlib.sha256(data).digest()
    return base58.b58encode(SHA2_256_PREFIX + digest).decode("ascii")


def canonical_json(document: dict[str, Any]) -> bytes:
    return json.dumps(document, sort_keys=True, separators=(",", ":"), default=str).encode()


class MockPinningClient(PinningClient):
    """
    In-memory mock pinning service.

    Set `fail_uploads` to make every upload raise PinningError.
    Data is lost on restart.
    """

    def __init__(self) -> None:
        self._files: dict[str, bytes] = {}
        self._documents: dict[str, dict[str, Any]] = {}
        self._pins: dict[str, dict[str, Any]] = {}
        self.fail_uploads = False
        logger.debug("mock_pinning_initialized")

    @property
    def mode(self) -> PinningMode:
        return PinningMode.MOCK

    def _check_available(self) -> None:
        if self.fail_uploads:
            raise PinningError("Failed to upload to IPFS: mock pinning service unavailable")

    async def pin_file(
        self,
        data: bytes,
        filename: str,
        name: str | None = None,
        keyvalues: dict[str, str] | None = None,
    ) -> PinResult:
        self._check_available()
        ipfs_hash = compute_cid_v0(data)
        self._files[ipfs_hash] = data
        self._pins[ipfs_hash] = {"name": name or filename, "keyvalues": keyvalues or {}}

        logger.info("mock_file_pinned", ipfs_hash=ipfs_hash, size=len(data))
        return PinResult(ipfs_hash=ipfs_hash, pin_size=len(data))

    async def pin_json(
        self,
        document: dict[str, Any],
        name: str | None = None,
        keyvalues: dict[str, str] | None = None,
    ) -> PinResult:
        self._check_available()
        content = canonical_json(document)
        ipfs_hash = compute_cid_v0(content)
        self._documents[ipfs_hash] = json.loads(content)
        self._pins[ipfs_hash] = {"name": name or "metadata.json", "keyvalues": keyvalues or {}}

        logger.info("mock_json_pinned", ipfs_hash=ipfs_hash)
        return PinResult(ipfs_hash=ipfs_hash, pin_size=len(content))

    async def fetch(self, ipfs_hash: str) -> dict[str, Any] | bytes | None:
        if ipfs_hash in self._documents:
            return self._documents[ipfs_hash]
        return self._files.get(ipfs_hash)

    async def test_authentication(self) -> bool:
        return True

    async def health_check(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "mode": self.mode.value,
            "pins": len(self._pins),
        }

    # =========================================================================
    # Test Utilities
    # =========================================================================

    def clear_all(self) -> None:
        """Clear all mock data (for testing)."""
        self._files.clear()
        self._documents.clear()
        self._pins.clear()
        self.fail_uploads = False

    def get_pin(self, ipfs_hash: str) -> dict[str, Any] | None:
        """Pin name and keyvalues recorded for a hash."""
        return self._pins.get(ipfs_hash)
