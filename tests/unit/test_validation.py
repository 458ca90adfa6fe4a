"""
Unit tests for field validation.
"""

from datetime import UTC, date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from educhain.models.certificate import CertificateDetails, CertificateIssueRequest
from educhain.models.institution import InstitutionCreate
from educhain.validation import (
    from_unix_seconds,
    is_valid_address,
    is_valid_ipfs_hash,
    normalize_address,
    to_unix_seconds,
    to_utc,
    validate_graduation_date,
)

CIDV0 = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"


class TestAddresses:
    """Tests for wallet address validation."""

    def test_valid_address(self) -> None:
        """Test a well-formed mixed-case address."""
        assert is_valid_address("0x" + "aB" * 20)

    @pytest.mark.parametrize(
        "value",
        ["", None, "0x123", "ab" * 20, "0x" + "g" * 40, "0x" + "a" * 41],
    )
    def test_invalid_address(self, value: str | None) -> None:
        """Test malformed addresses."""
        assert not is_valid_address(value)

    def test_normalize_lowercases(self) -> None:
        """Test that addresses are stored lower-cased."""
        assert normalize_address("0x" + "AB" * 20) == "0x" + "ab" * 20


class TestContentHashes:
    """Tests for IPFS hash validation."""

    def test_cid_v0(self) -> None:
        assert is_valid_ipfs_hash(CIDV0)

    def test_cid_v1_base32(self) -> None:
        assert is_valid_ipfs_hash("bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi")

    @pytest.mark.parametrize(
        "value",
        ["", "Qm123", "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbd0", "not-a-hash", "b" * 200],
    )
    def test_invalid_hashes(self, value: str) -> None:
        """Test malformed or oversized hashes (0 is not base58)."""
        assert not is_valid_ipfs_hash(value)


class TestGraduationDate:
    """Tests for graduation date normalization."""

    def test_now_accepted(self) -> None:
        """Test that a date equal to now is accepted."""
        now = datetime(2024, 6, 1, 12, 0, 0, 500_000, tzinfo=UTC)

        assert validate_graduation_date(now, now=now) == now

    def test_one_microsecond_in_future_rejected(self) -> None:
        """Test that the comparison is not truncated."""
        now = datetime(2024, 6, 1, 12, 0, 0, 500, tzinfo=UTC)

        with pytest.raises(ValueError, match="future"):
            validate_graduation_date(now + timedelta(microseconds=1), now=now)

    def test_sub_millisecond_rejected(self) -> None:
        """Test that precision the database cannot store is refused."""
        with pytest.raises(ValueError, match="millisecond"):
            validate_graduation_date(datetime(2024, 6, 1, 12, 0, 0, 250_001, tzinfo=UTC))

    def test_offset_converted_to_utc(self) -> None:
        """Test that offset-aware values are converted to UTC."""
        value = datetime(2024, 6, 1, 2, 0, tzinfo=timezone(timedelta(hours=2)))

        assert validate_graduation_date(value) == datetime(2024, 6, 1, 0, 0, tzinfo=UTC)

    def test_plain_date(self) -> None:
        """Test that a bare date becomes midnight UTC."""
        assert to_utc(date(2024, 6, 1)) == datetime(2024, 6, 1, tzinfo=UTC)


class TestUnixSeconds:
    """Tests for ledger timestamp conversion."""

    def test_exact_round_trip(self, past_date: datetime) -> None:
        """Test that whole-second UTC datetimes survive the ledger encoding."""
        seconds = to_unix_seconds(past_date)

        assert from_unix_seconds(seconds) == past_date

    def test_known_value(self) -> None:
        assert to_unix_seconds(datetime(2024, 6, 1, tzinfo=UTC)) == 1717200000

    def test_naive_taken_as_utc(self) -> None:
        assert to_unix_seconds(datetime(1970, 1, 2)) == 86400


class TestRequestModels:
    """Tests for request model validation."""

    def _details(self, **overrides: object) -> dict[str, object]:
        data: dict[str, object] = {
            "studentName": "Ada Lovelace",
            "studentId": "S1",
            "studentEmail": "Ada@Student.edu",
            "courseName": "CS101",
            "grade": "A",
            "graduationDate": "2024-06-01T00:00:00Z",
        }
        data.update(overrides)
        return data

    def test_details_camel_case(self) -> None:
        """Test that camelCase input populates snake_case fields."""
        details = CertificateDetails.model_validate(self._details())

        assert details.student_id == "S1"
        assert details.student_email == "ada@student.edu"
        assert details.certificate_type.value == "Certificate"

    def test_future_graduation_rejected(self) -> None:
        """Test that a future graduation date fails validation."""
        future = (datetime.now(UTC) + timedelta(days=1)).isoformat()

        with pytest.raises(ValidationError):
            CertificateDetails.model_validate(self._details(graduationDate=future))

    def test_unknown_certificate_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CertificateDetails.model_validate(self._details(certificateType="Badge"))

    def test_issue_request_wallet_normalized(self) -> None:
        """Test that the student wallet is lower-cased."""
        request = CertificateIssueRequest.model_validate(
            self._details(studentWalletAddress="0x" + "AB" * 20, ipfsHash=CIDV0)
        )

        assert request.student_wallet_address == "0x" + "ab" * 20

    def test_issue_request_bad_hash_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CertificateIssueRequest.model_validate(
                self._details(studentWalletAddress="0x" + "ab" * 20, ipfsHash="nope")
            )

    def test_institution_bad_wallet_rejected(self) -> None:
        """Test that registration rejects a malformed wallet."""
        with pytest.raises(ValidationError):
            InstitutionCreate.model_validate(
                {
                    "name": "Test University",
                    "email": "registrar@university.edu",
                    "password": "Secret123",
                    "walletAddress": "0x123",
                    "registrationNumber": "REG-1",
                }
            )
