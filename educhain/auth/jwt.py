"""
Session Tokens
==============

HS256 session tokens handed to institutions at login.

Claims:
    sub             institution ObjectId (hex)
    wallet_address  lower-cased institution wallet
    name            institution display name
    iat / exp       issue and expiry instants (24h lifetime by default)

Version: 0.1.0
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from pydantic import BaseModel, Field, ValidationError

from educhain.config import settings
from educhain.logging import get_logger


logger = get_logger(__name__)


class TokenData(BaseModel):
    """Decoded session token claims."""

    sub: str = Field(..., min_length=1, description="Institution ID")
    exp: datetime
    iat: datetime = Field(default_factory=lambda: datetime.now(UTC))

    wallet_address: str | None = None
    name: str | None = None

    @property
    def institution_id(self) -> str:
        return self.sub


def session_lifetime() -> timedelta:
    return timedelta(minutes=settings.jwt.access_token_expire_minutes)


def create_access_token(
    claims: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Sign a session token.

    Args:
        claims: Institution claims; `sub` must hold the institution id
        expires_delta: Lifetime override (defaults to the configured 24h)
    """
    issued_at = datetime.now(UTC)
    expires_at = issued_at + (expires_delta if expires_delta is not None else session_lifetime())

    token = jwt.encode(
        {**claims, "iat": issued_at, "exp": expires_at},
        settings.jwt.secret_key.get_secret_value(),
        algorithm=settings.jwt.algorithm,
    )
    logger.debug("session_token_issued", institution_id=claims.get("sub"), expires_at=expires_at.isoformat())
    return token


def decode_token(token: str) -> TokenData | None:
    """
    Verify a session token's signature and expiry.

    Returns None for anything that is not a valid, unexpired token
    carrying an institution id.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt.secret_key.get_secret_value(),
            algorithms=[settings.jwt.algorithm],
        )
    except JWTError as e:
        logger.warning("session_token_rejected", error=str(e))
        return None

    try:
        return TokenData.model_validate(payload)
    except ValidationError as e:
        logger.warning("session_token_claims_invalid", errors=e.error_count())
        return None
