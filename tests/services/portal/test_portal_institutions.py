"""Tests for institution registration, login and admin verification."""

from typing import Any

import pytest
from httpx import AsyncClient
from passlib.hash import bcrypt


def registration(suffix: str = "1", **overrides: Any) -> dict[str, Any]:
    payload = {
        "name": f"Test University {suffix}",
        "email": f"registrar{suffix}@university.edu",
        "password": "Secret123",
        "walletAddress": "0x" + suffix.rjust(40, "0"),
        "registrationNumber": f"REG-{suffix}",
    }
    payload.update(overrides)
    return payload


class TestRegistration:
    """Tests for POST /api/institutions/register."""

    @pytest.mark.asyncio
    async def test_register(self, portal_client: AsyncClient, db: Any) -> None:
        """Test that a new institution starts unverified with a hashed password."""
        response = await portal_client.post(
            "/api/institutions/register",
            json=registration(walletAddress="0x" + "AB" * 20),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["walletAddress"] == "0x" + "ab" * 20

        stored = await db["institutions"].find_one({"email": "registrar1@university.edu"})
        assert stored["is_verified"] is False
        assert stored["password_hash"].startswith("$2b$")
        assert "password" not in stored

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "field,value",
        [
            ("email", "registrar1@university.edu"),
            ("walletAddress", "0x" + "1".rjust(40, "0")),
            ("registrationNumber", "REG-1"),
        ],
    )
    async def test_duplicate_rejected(
        self,
        portal_client: AsyncClient,
        db: Any,
        field: str,
        value: str,
    ) -> None:
        """Test that any shared unique field is a conflict with no partial write."""
        first = await portal_client.post("/api/institutions/register", json=registration("1"))
        assert first.status_code == 201

        response = await portal_client.post(
            "/api/institutions/register",
            json=registration("2", **{field: value}),
        )

        assert response.status_code == 409
        assert response.json()["error"] == "Institution already registered"
        assert await db["institutions"].count_documents({}) == 1

    @pytest.mark.asyncio
    async def test_duplicate_email_case_insensitive(self, portal_client: AsyncClient) -> None:
        """Test that e-mail addresses are compared lower-cased."""
        await portal_client.post("/api/institutions/register", json=registration("1"))

        response = await portal_client.post(
            "/api/institutions/register",
            json=registration("2", email="REGISTRAR1@University.edu"),
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_weak_password_rejected(self, portal_client: AsyncClient) -> None:
        """Test that validation failures are 400 with field details."""
        response = await portal_client.post(
            "/api/institutions/register",
            json=registration(password="short"),
        )

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error_code"] == "validation_failed"
        assert any(d["field"] == "password" for d in data["details"])

    @pytest.mark.asyncio
    async def test_invalid_wallet_rejected(self, portal_client: AsyncClient) -> None:
        response = await portal_client.post(
            "/api/institutions/register",
            json=registration(walletAddress="0x123"),
        )

        assert response.status_code == 400


class TestLogin:
    """Tests for POST /api/institutions/login and GET /me."""

    @pytest.mark.asyncio
    async def test_login(self, portal_client: AsyncClient) -> None:
        """Test that login returns a 24h session token and a summary."""
        await portal_client.post("/api/institutions/register", json=registration())

        response = await portal_client.post(
            "/api/institutions/login",
            json={"email": "registrar1@university.edu", "password": "Secret123"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token"]
        assert data["expiresIn"] == 24 * 60 * 60
        assert data["institution"]["isVerified"] is False
        assert data["institution"]["name"] == "Test University 1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "email,password",
        [
            ("registrar1@university.edu", "Wrong1234"),
            ("nobody@university.edu", "Secret123"),
        ],
    )
    async def test_invalid_credentials(
        self,
        portal_client: AsyncClient,
        email: str,
        password: str,
    ) -> None:
        """Test that wrong password and unknown e-mail look the same."""
        await portal_client.post("/api/institutions/register", json=registration())

        response = await portal_client.post(
            "/api/institutions/login",
            json={"email": email, "password": password},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid credentials"
        assert response.json()["error_code"] == "unauthenticated"

    @pytest.mark.asyncio
    async def test_login_upgrades_weak_hash(self, portal_client: AsyncClient, db: Any) -> None:
        """Test that a hash below the current cost is replaced at login."""
        await portal_client.post("/api/institutions/register", json=registration())
        await db["institutions"].update_one(
            {"email": "registrar1@university.edu"},
            {"$set": {"password_hash": bcrypt.using(rounds=10).hash("Secret123")}},
        )

        response = await portal_client.post(
            "/api/institutions/login",
            json={"email": "registrar1@university.edu", "password": "Secret123"},
        )

        assert response.status_code == 200
        stored = await db["institutions"].find_one({"email": "registrar1@university.edu"})
        assert stored["password_hash"].startswith("$2b$12$")

    @pytest.mark.asyncio
    async def test_profile(self, portal_client: AsyncClient, institution: dict[str, Any]) -> None:
        """Test the authenticated profile endpoint."""
        response = await portal_client.get("/api/institutions/me", headers=institution["headers"])

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == institution["id"]
        assert data["isVerified"] is True
        assert "passwordHash" not in data

    @pytest.mark.asyncio
    async def test_profile_requires_token(self, portal_client: AsyncClient) -> None:
        response = await portal_client.get("/api/institutions/me")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_profile_rejects_bad_token(self, portal_client: AsyncClient) -> None:
        response = await portal_client.get(
            "/api/institutions/me",
            headers={"Authorization": "Bearer not-a-token"},
        )

        assert response.status_code == 401


class TestAdminVerification:
    """Tests for POST /api/admin/institutions/{id}/verify."""

    @pytest.mark.asyncio
    async def test_admin_verifies(
        self,
        portal_client: AsyncClient,
        make_institution: Any,
        admin: dict[str, Any],
    ) -> None:
        """Test that an admin wallet can verify an institution."""
        pending = await make_institution("2", verified=False)

        response = await portal_client.post(
            f"/api/admin/institutions/{pending['id']}/verify",
            headers=admin["headers"],
        )

        assert response.status_code == 200
        assert response.json()["isVerified"] is True

        profile = await portal_client.get("/api/institutions/me", headers=pending["headers"])
        assert profile.json()["isVerified"] is True

    @pytest.mark.asyncio
    async def test_admin_unverifies(
        self,
        portal_client: AsyncClient,
        institution: dict[str, Any],
        admin: dict[str, Any],
    ) -> None:
        response = await portal_client.post(
            f"/api/admin/institutions/{institution['id']}/verify",
            params={"verified": "false"},
            headers=admin["headers"],
        )

        assert response.status_code == 200
        assert response.json()["isVerified"] is False

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(
        self,
        portal_client: AsyncClient,
        institution: dict[str, Any],
    ) -> None:
        """Test that ordinary institutions cannot verify anyone."""
        response = await portal_client.post(
            f"/api/admin/institutions/{institution['id']}/verify",
            headers=institution["headers"],
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "forbidden"

    @pytest.mark.asyncio
    async def test_unknown_institution(
        self,
        portal_client: AsyncClient,
        admin: dict[str, Any],
    ) -> None:
        response = await portal_client.post(
            "/api/admin/institutions/000000000000000000000000/verify",
            headers=admin["headers"],
        )

        assert response.status_code == 404
