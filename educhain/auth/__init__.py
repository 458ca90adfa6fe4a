"""
Authentication Module
=====================

JWT-based authentication for certificate-issuing institutions.

Features:
- JWT session token generation and validation (24h by default)
- Password hashing with bcrypt
- FastAPI dependencies for route protection (authenticated, verified, admin)

Usage:
    from educhain.auth import (
        create_access_token,
        get_current_institution,
        require_verified_institution,
        hash_password,
        verify_password,
    )

    token = create_access_token({
        "sub": institution_id,
        "wallet_address": wallet,
        "name": name,
    })

    @router.post("/certificates/issue")
    async def issue(
        institution: CurrentInstitution = Depends(require_verified_institution),
    ):
        ...
"""

from educhain.auth.dependencies import (
    CurrentInstitution,
    get_current_institution,
    oauth2_scheme,
    require_admin,
    require_verified_institution,
)
from educhain.auth.jwt import (
    TokenData,
    create_access_token,
    decode_token,
)
from educhain.auth.password import (
    hash_password,
    password_needs_rehash,
    verify_password,
)

__all__ = [
    # JWT
    "create_access_token",
    "decode_token",
    "TokenData",
    # Password
    "hash_password",
    "verify_password",
    "password_needs_rehash",
    # Dependencies
    "CurrentInstitution",
    "get_current_institution",
    "require_verified_institution",
    "require_admin",
    "oauth2_scheme",
]
