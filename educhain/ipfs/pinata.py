"""
Pinata Client
=============

Pinning client for the Pinata API over httpx.

Authenticates with a JWT bearer token when configured, otherwise with
the API key / secret pair. Transient failures (connection errors,
timeouts, 429 and 5xx responses) are retried with exponential backoff.

Version: 0.1.0
"""

import json
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from educhain.config import PinningMode, settings
from educhain.errors import PinningError
from educhain.ipfs.client import PinningClient, PinResult
from educhain.logging import get_logger

logger = get_logger(__name__)


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.ConnectError, httpx.TimeoutException)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


pinata_retry = retry(
    retry=retry_if_exception(_is_retryable),
    stop=stop_after_attempt(settings.pinning.max_retries),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
    before_sleep=lambda retry_state: logger.warning(
        "pinata_retry",
        attempt=retry_state.attempt_number,
    ),
)


class PinataClient(PinningClient):
    """Pinata pinning service client."""

    def __init__(
        self,
        api_url: str | None = None,
        gateway_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        cfg = settings.pinning
        self._api_url = (api_url or cfg.api_url).rstrip("/")
        self._gateway_url = gateway_url or cfg.gateway_url
        self._timeout = timeout or cfg.timeout_seconds

        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            timeout=httpx.Timeout(self._timeout),
            headers=self._auth_headers(),
        )
        self._gateway = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            follow_redirects=True,
        )

        logger.debug("pinata_client_initialized", api_url=self._api_url)

    @staticmethod
    def _auth_headers() -> dict[str, str]:
        cfg = settings.pinning
        jwt = cfg.pinata_jwt.get_secret_value()
        if jwt:
            return {"Authorization": f"Bearer {jwt}"}
        return {
            "pinata_api_key": cfg.pinata_api_key.get_secret_value(),
            "pinata_secret_api_key": cfg.pinata_secret_key.get_secret_value(),
        }

    @property
    def mode(self) -> PinningMode:
        return PinningMode.PINATA

    async def close(self) -> None:
        await self._client.aclose()
        await self._gateway.aclose()

    def gateway_url(self, ipfs_hash: str) -> str:
        return f"{self._gateway_url.rstrip('/')}/{ipfs_hash}"

    @staticmethod
    def _pinata_metadata(name: str, keyvalues: dict[str, str] | None) -> dict[str, Any]:
        return {"name": name, "keyvalues": keyvalues or {}}

    @pinata_retry
    async def _post(self, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._client.post(path, **kwargs)
        response.raise_for_status()
        return response.json()

    def _to_result(self, body: dict[str, Any]) -> PinResult:
        return PinResult(
            ipfs_hash=body["IpfsHash"],
            pin_size=body.get("PinSize", 0),
            timestamp=body["Timestamp"],
        )

    async def pin_file(
        self,
        data: bytes,
        filename: str,
        name: str | None = None,
        keyvalues: dict[str, str] | None = None,
    ) -> PinResult:
        metadata = self._pinata_metadata(name or filename, keyvalues)
        try:
            body = await self._post(
                "/pinning/pinFileToIPFS",
                files={"file": (filename, data)},
                data={
                    "pinataMetadata": json.dumps(metadata),
                    "pinataOptions": json.dumps({"cidVersion": 0}),
                },
            )
        except httpx.HTTPError as e:
            logger.error("pinata_file_upload_failed", filename=filename, error=str(e))
            raise PinningError(f"Failed to upload to IPFS: {e}") from e

        result = self._to_result(body)
        logger.info("pinata_file_pinned", ipfs_hash=result.ipfs_hash, size=result.pin_size)
        return result

    async def pin_json(
        self,
        document: dict[str, Any],
        name: str | None = None,
        keyvalues: dict[str, str] | None = None,
    ) -> PinResult:
        payload = {
            "pinataContent": document,
            "pinataMetadata": self._pinata_metadata(name or "metadata.json", keyvalues),
            "pinataOptions": {"cidVersion": 0},
        }
        try:
            body = await self._post("/pinning/pinJSONToIPFS", json=payload)
        except httpx.HTTPError as e:
            logger.error("pinata_json_upload_failed", error=str(e))
            raise PinningError(f"Failed to upload JSON to IPFS: {e}") from e

        result = self._to_result(body)
        logger.info("pinata_json_pinned", ipfs_hash=result.ipfs_hash)
        return result

    async def fetch(self, ipfs_hash: str) -> dict[str, Any] | bytes | None:
        try:
            response = await self._gateway.get(self.gateway_url(ipfs_hash))
        except httpx.HTTPError as e:
            raise PinningError(f"Failed to fetch from IPFS: {e}") from e

        if response.status_code == 404:
            return None
        if response.is_error:
            raise PinningError(f"Failed to fetch from IPFS: HTTP {response.status_code}")

        if "application/json" in response.headers.get("content-type", ""):
            return response.json()
        return response.content

    async def test_authentication(self) -> bool:
        try:
            response = await self._client.get("/data/testAuthentication")
        except httpx.HTTPError as e:
            raise PinningError(f"IPFS connection failed: {e}") from e
        return response.status_code == 200

    async def health_check(self) -> dict[str, Any]:
        try:
            authenticated = await self.test_authentication()
            return {
                "status": "healthy" if authenticated else "unhealthy",
                "mode": self.mode.value,
                "authenticated": authenticated,
            }
        except Exception as e:
            logger.error("pinata_health_check_failed", error=str(e))
            return {"status": "unhealthy", "mode": self.mode.value, "error": str(e)}
