"""
FastAPI Authentication Dependencies
===================================

Dependency injection for route protection.

Version: 0.1.0
"""

from typing import Annotated

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from educhain.auth.jwt import decode_token
from educhain.config import settings
from educhain.database.mongodb import INSTITUTIONS, get_mongodb
from educhain.logging import bind_context, get_logger


logger = get_logger(__name__)

# Bearer token extraction from the Authorization header
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/institutions/login",
    auto_error=False,
)


class CurrentInstitution(BaseModel):
    """Authenticated institution for dependency injection."""

    id: str = Field(..., description="Institution ID")
    wallet_address: str = Field(..., description="Institution wallet address")
    name: str = Field(..., description="Institution name")
    is_verified: bool = Field(default=False, description="Whether verified by an admin")


async def get_current_institution(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    db: Annotated[AsyncIOMotorDatabase, Depends(get_mongodb)],  # type: ignore[type-arg]
) -> CurrentInstitution:
    """
    Extract the institution from the session token.

    The institution is re-read from the database so that verification
    status is current and deleted institutions are rejected.

    Raises:
        HTTPException: 401 if token is missing, invalid, expired, or the
            institution no longer exists
    """
    if token is None:
        logger.warning("auth_token_missing")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token_data = decode_token(token)
    if token_data is None:
        logger.warning("auth_token_invalid")
        raise credentials_exception

    try:
        institution_oid = ObjectId(token_data.institution_id)
    except (InvalidId, TypeError):
        logger.warning("auth_token_bad_subject", sub=token_data.sub)
        raise credentials_exception from None

    doc = await db[INSTITUTIONS].find_one({"_id": institution_oid}, {"password_hash": 0})
    if doc is None:
        logger.warning("auth_institution_not_found", institution_id=token_data.sub)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Institution not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    bind_context(institution_id=token_data.sub)
    logger.debug("institution_authenticated", institution_id=token_data.sub)

    return CurrentInstitution(
        id=str(doc["_id"]),
        wallet_address=doc["wallet_address"],
        name=doc["name"],
        is_verified=doc.get("is_verified", False),
    )


async def require_verified_institution(
    institution: Annotated[CurrentInstitution, Depends(get_current_institution)],
) -> CurrentInstitution:
    """
    Ensure the current institution has been verified.

    Raises:
        HTTPException: 403 if the institution is unverified
    """
    if not institution.is_verified:
        logger.warning("unverified_institution_access_attempt", institution_id=institution.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Institution must be verified to perform this action",
        )
    return institution


async def require_admin(
    institution: Annotated[CurrentInstitution, Depends(get_current_institution)],
) -> CurrentInstitution:
    """
    Ensure the caller's wallet is listed in ADMIN_WALLETS.

    Raises:
        HTTPException: 403 if the wallet is not an admin wallet
    """
    if institution.wallet_address.lower() not in settings.admin_wallets_list:
        logger.warning("admin_access_denied", institution_id=institution.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return institution
