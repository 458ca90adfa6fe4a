"""
Field Validation
================

Format checks shared by request models and services.

IPFS hash validation accepts CIDv0 (base58btc, "Qm" + 44 chars) and CIDv1
(base32 lowercase, "b..."). It is not a full multiformats parser.

Version: 0.1.0
"""

import re
from datetime import UTC, date, datetime, time, timedelta
from urllib.parse import urlparse


ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
TX_HASH_PATTERN = re.compile(r"^0x[a-fA-F0-9]{64}$")
EMAIL_PATTERN = re.compile(r"^\w+([.+-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,})+$")
CIDV0_PATTERN = re.compile(r"^Qm[1-9A-HJ-NP-Za-km-z]{44}$")
CIDV1_BASE32_PATTERN = re.compile(r"^b[a-z2-7]{10,}$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")

MAX_CID_LENGTH = 128
UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

CERTIFICATE_TYPES = ("Certificate", "Diploma", "Degree", "Transcript", "Award")


def is_valid_address(value: str | None) -> bool:
    """Check for a well-formed 20-byte hex address."""
    return bool(value) and ADDRESS_PATTERN.match(value) is not None


def normalize_address(value: str) -> str:
    """Lower-case an address after validating it."""
    if not is_valid_address(value):
        raise ValueError("Please provide a valid Ethereum address")
    return value.lower()


def is_valid_email(value: str | None) -> bool:
    return bool(value) and EMAIL_PATTERN.match(value) is not None


def normalize_email(value: str) -> str:
    value = value.strip().lower()
    if not is_valid_email(value):
        raise ValueError("Please provide a valid email address")
    return value


def is_valid_ipfs_hash(value: str | None) -> bool:
    """Check a content hash is a CIDv0 or base32 CIDv1."""
    cid = (value or "").strip()
    if not cid or len(cid) > MAX_CID_LENGTH:
        return False
    return bool(CIDV0_PATTERN.match(cid) or CIDV1_BASE32_PATTERN.match(cid))


def is_valid_tx_hash(value: str | None) -> bool:
    return bool(value) and TX_HASH_PATTERN.match(value) is not None


def is_valid_phone(value: str | None) -> bool:
    return bool(value) and PHONE_PATTERN.match(value) is not None


def is_valid_url(value: str | None) -> bool:
    if not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_password_strength(password: str) -> str:
    """
    Enforce the registration password policy.

    At least 8 characters with one lowercase letter, one uppercase letter
    and one digit.
    """
    if len(password) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if not (
        re.search(r"[a-z]", password)
        and re.search(r"[A-Z]", password)
        and re.search(r"\d", password)
    ):
        raise ValueError(
            "Password must contain at least one uppercase letter, "
            "one lowercase letter, and one number"
        )
    return password


def to_utc(value: datetime | date) -> datetime:
    """Convert to an aware UTC datetime; naive values are taken as UTC."""
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def validate_graduation_date(
    value: datetime | date,
    now: datetime | None = None,
) -> datetime:
    """
    Normalize a graduation date and reject future values.

    The comparison happens at full precision: a value equal to `now` is
    accepted, one microsecond later is rejected. Values finer than a
    millisecond are rejected so that the stored instant is exactly the
    submitted one.
    """
    graduation = to_utc(value)
    current = to_utc(now) if now is not None else datetime.now(UTC)
    if graduation > current:
        raise ValueError("Graduation date cannot be in the future")
    if graduation.microsecond % 1000:
        raise ValueError("Graduation date cannot be more precise than a millisecond")
    return graduation


def to_unix_seconds(value: datetime) -> int:
    """Exact UTC datetime -> unix seconds (sub-second part floored)."""
    return (to_utc(value) - UNIX_EPOCH) // timedelta(seconds=1)


def from_unix_seconds(seconds: int) -> datetime:
    return datetime.fromtimestamp(int(seconds), tz=UTC)
