"""
Password Hashing
================

bcrypt hashing of institution passwords.

Hashes made with fewer rounds than the current policy are still
accepted at login and re-hashed on the spot.

Version: 0.1.0
"""

from passlib.context import CryptContext
from passlib.exc import UnknownHashError

BCRYPT_ROUNDS = 12

_pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=BCRYPT_ROUNDS,
    bcrypt__min_rounds=BCRYPT_ROUNDS,
)


def hash_password(password: str) -> str:
    """Hash a password with the current bcrypt policy."""
    return _pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """
    Check a password against a stored hash.

    A missing or malformed stored hash never matches.
    """
    if not hashed_password:
        return False
    try:
        return _pwd_context.verify(plain_password, hashed_password)
    except (UnknownHashError, ValueError):
        return False


def password_needs_rehash(hashed_password: str) -> bool:
    """Whether a stored hash falls short of the current policy."""
    return _pwd_context.needs_update(hashed_password)
