"""
Institutions Routes
===================

Registration, login and profile of certificate-issuing institutions.

Version: 0.1.0
"""

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from educhain.auth import (
    CurrentInstitution,
    create_access_token,
    get_current_institution,
    password_needs_rehash,
    verify_password,
)
from educhain.config import settings
from educhain.database import get_mongodb
from educhain.logging import get_logger
from educhain.models.institution import (
    Institution,
    InstitutionCreate,
    InstitutionSummary,
    LoginRequest,
    LoginResponse,
    RegistrationResponse,
)
from services.portal.services import InstitutionRepository

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/register",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_institution(
    data: InstitutionCreate,
    db: AsyncIOMotorDatabase = Depends(get_mongodb),  # type: ignore[type-arg]
) -> RegistrationResponse:
    """
    Register a new institution.

    The institution starts unverified and cannot issue certificates
    until an admin verifies it.
    """
    doc = await InstitutionRepository(db).create(data)

    return RegistrationResponse(
        institution_id=str(doc["_id"]),
        wallet_address=doc["wallet_address"],
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    db: AsyncIOMotorDatabase = Depends(get_mongodb),  # type: ignore[type-arg]
) -> LoginResponse:
    """
    Exchange e-mail and password for a session token.

    Failures never reveal which of the two was wrong.
    """
    repo = InstitutionRepository(db)
    doc = await repo.get_by_email(credentials.email)
    if doc is None or not verify_password(credentials.password, doc.get("password_hash")):
        logger.warning("login_failed", email=credentials.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    institution_id = str(doc["_id"])
    if password_needs_rehash(doc["password_hash"]):
        await repo.set_password(institution_id, credentials.password)

    token = create_access_token(
        {
            "sub": institution_id,
            "wallet_address": doc["wallet_address"],
            "name": doc["name"],
        }
    )

    logger.info("institution_logged_in", institution_id=institution_id)

    return LoginResponse(
        token=token,
        expires_in=settings.jwt.access_token_expire_minutes * 60,
        institution=InstitutionSummary(
            id=institution_id,
            name=doc["name"],
            email=doc["email"],
            wallet_address=doc["wallet_address"],
            is_verified=doc.get("is_verified", False),
        ),
    )


@router.get("/me", response_model=Institution)
async def get_profile(
    current: CurrentInstitution = Depends(get_current_institution),
    db: AsyncIOMotorDatabase = Depends(get_mongodb),  # type: ignore[type-arg]
) -> Institution:
    """Profile of the authenticated institution."""
    doc = await InstitutionRepository(db).get(current.id)
    if doc is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Institution not found",
        )
    return Institution.from_document(doc)
