"""
IPFS Module
===========

Pinning client for certificate documents and their metadata.

Supports:
- Mock (development/testing, in-memory, real CIDv0 hashes)
- Pinata

Usage:
    from educhain.ipfs import get_pinning_client, build_certificate_metadata

    client = get_pinning_client()
    document = await client.pin_file(data, "diploma.pdf")
    metadata = build_certificate_metadata(..., image_url=client.gateway_url(document.ipfs_hash))
    pinned = await client.pin_json(metadata)
"""

from educhain.ipfs.client import (
    PinningClient,
    PinResult,
    build_certificate_metadata,
    get_pinning_client,
    reset_pinning_client,
    set_pinning_client,
)
from educhain.ipfs.mock import MockPinningClient, compute_cid_v0

__all__ = [
    # Client
    "PinningClient",
    "get_pinning_client",
    "set_pinning_client",
    "reset_pinning_client",
    # Models
    "PinResult",
    "build_certificate_metadata",
    # Implementations
    "MockPinningClient",
    "compute_cid_v0",
]
