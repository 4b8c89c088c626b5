"""Tests for authentication endpoints: register, login, me, refresh."""

import uuid
from unittest.mock import patch

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.auth.jwt import create_token_pair
from frontdesk.auth.passwords import needs_rehash
from frontdesk.config import settings
from frontdesk.models.user import User

pytestmark = pytest.mark.asyncio(loop_scope="session")


# ---------------------------------------------------------------------------
# POST /api/v1/auth/register
# ---------------------------------------------------------------------------


class TestRegister:
    """Tests for staff registration."""

    async def test_register_success(self, client: AsyncClient) -> None:
        email = f"newuser-{uuid.uuid4().hex[:8]}@test.com"
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": "securepass123", "name": "New User"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == email
        assert data["user"]["role"] == "staff"
        assert data["user"]["is_active"] is True
        assert data["tokens"]["access_token"]
        assert data["tokens"]["refresh_token"]
        assert data["tokens"]["token_type"] == "bearer"

    async def test_register_duplicate_email(self, client: AsyncClient) -> None:
        payload = {
            "email": f"dup-{uuid.uuid4().hex[:8]}@test.com",
            "password": "securepass123",
            "name": "First",
        }
        assert (await client.post("/api/v1/auth/register", json=payload)).status_code == 201

        response = await client.post("/api/v1/auth/register", json=payload)
        assert response.status_code == 409
        assert "already registered" in response.json()["detail"].lower()

    async def test_register_short_password(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": f"short-{uuid.uuid4().hex[:8]}@test.com", "password": "short", "name": "S"},
        )
        assert response.status_code == 422

    async def test_register_invalid_email(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": "not-an-email", "password": "securepass123", "name": "Bad"},
        )
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# POST /api/v1/auth/login
# ---------------------------------------------------------------------------


class TestLogin:
    async def test_login_success(self, client: AsyncClient, test_user: User) -> None:
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email, "password": "testpass123"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == str(test_user.id)
        assert data["tokens"]["access_token"]

    async def test_login_wrong_password(self, client: AsyncClient, test_user: User) -> None:
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email, "password": "wrongpass"},
        )
        assert response.status_code == 401

    async def test_login_unknown_email(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "nobody@test.com", "password": "whatever123"},
        )
        assert response.status_code == 401


# ---------------------------------------------------------------------------
# GET /api/v1/auth/me and POST /api/v1/auth/refresh
# ---------------------------------------------------------------------------


class TestMe:
    async def test_me_returns_profile(self, client: AsyncClient, test_user: User, auth_headers: dict) -> None:
        response = await client.get("/api/v1/auth/me", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["email"] == test_user.email
        assert response.json()["role"] == "staff"


class TestRefresh:
    async def test_refresh_success(self, client: AsyncClient, test_user: User) -> None:
        tokens = create_token_pair(str(test_user.id), test_user.role)
        response = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        assert response.status_code == 200
        assert response.json()["access_token"]

    async def test_refresh_with_access_token_rejected(self, client: AsyncClient, test_user: User) -> None:
        tokens = create_token_pair(str(test_user.id), test_user.role)
        response = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]}
        )
        assert response.status_code == 401

    async def test_refresh_garbage_rejected(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": "garbage"})
        assert response.status_code == 401


# ---------------------------------------------------------------------------
# Account bookkeeping
# ---------------------------------------------------------------------------


class TestAccountBookkeeping:
    """Email normalisation, login stamps and hash upgrades."""

    async def test_register_lowercases_email(self, client: AsyncClient) -> None:
        local = f"Desk-{uuid.uuid4().hex[:8]}"
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": f"{local}@Test.com", "password": "securepass123", "name": "Desk"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == f"{local.lower()}@test.com"
        assert data["tokens"]["expires_in"] == settings.jwt_access_token_expire_minutes * 60

    async def test_login_is_case_insensitive_and_stamped(self, client: AsyncClient, test_user: User) -> None:
        assert test_user.last_login_at is None

        response = await client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email.upper(), "password": "testpass123"},
        )
        assert response.status_code == 200
        assert response.json()["user"]["last_login_at"] is not None

    async def test_login_upgrades_hash_cost(self, client: AsyncClient, test_user: User) -> None:
        with patch.object(settings, "bcrypt_rounds", settings.bcrypt_rounds + 1):
            response = await client.post(
                "/api/v1/auth/login",
                json={"email": test_user.email, "password": "testpass123"},
            )
            assert response.status_code == 200
            assert not needs_rehash(test_user.hashed_password)

    async def test_refresh_refused_for_inactive_account(
        self, client: AsyncClient, test_user: User, db_session: AsyncSession
    ) -> None:
        tokens = create_token_pair(str(test_user.id), test_user.role)
        test_user.is_active = False
        await db_session.flush()

        response = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        assert response.status_code == 401

    async def test_overlong_password_rejected(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": f"long-{uuid.uuid4().hex[:8]}@test.com", "password": "é" * 40, "name": "Long"},
        )
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# PUT /api/v1/auth/profile and /api/v1/auth/change-password
# ---------------------------------------------------------------------------


class TestProfile:
    async def test_update_name_and_email(self, client: AsyncClient, test_user: User, auth_headers: dict) -> None:
        new_email = f"Renamed-{uuid.uuid4().hex[:8]}@Test.com"
        response = await client.put(
            "/api/v1/auth/profile",
            json={"name": "Desk Lead", "email": new_email},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Desk Lead"
        assert data["email"] == new_email.lower()
        assert data["role"] == test_user.role

    async def test_email_taken(self, client: AsyncClient, auth_headers: dict, manager_user: User) -> None:
        response = await client.put(
            "/api/v1/auth/profile", json={"email": manager_user.email}, headers=auth_headers
        )
        assert response.status_code == 409

    async def test_own_email_is_not_a_conflict(
        self, client: AsyncClient, test_user: User, auth_headers: dict
    ) -> None:
        response = await client.put(
            "/api/v1/auth/profile", json={"email": test_user.email.upper()}, headers=auth_headers
        )
        assert response.status_code == 200

    async def test_role_cannot_be_self_assigned(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.put("/api/v1/auth/profile", json={"role": "admin"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["role"] == "staff"

    async def test_requires_auth(self, client: AsyncClient) -> None:
        response = await client.put("/api/v1/auth/profile", json={"name": "Nobody"})
        assert response.status_code in (401, 403)


class TestChangePassword:
    async def test_change_then_login_with_new_password(
        self, client: AsyncClient, test_user: User, auth_headers: dict
    ) -> None:
        response = await client.put(
            "/api/v1/auth/change-password",
            json={"current_password": "testpass123", "new_password": "freshpass456"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Password changed successfully"

        old = await client.post(
            "/api/v1/auth/login", json={"email": test_user.email, "password": "testpass123"}
        )
        assert old.status_code == 401
        new = await client.post(
            "/api/v1/auth/login", json={"email": test_user.email, "password": "freshpass456"}
        )
        assert new.status_code == 200

    async def test_wrong_current_password(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.put(
            "/api/v1/auth/change-password",
            json={"current_password": "not-it-at-all", "new_password": "freshpass456"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    @pytest.mark.parametrize("new_password", ["short", "é" * 40])
    async def test_new_password_rules(self, client: AsyncClient, auth_headers: dict, new_password: str) -> None:
        response = await client.put(
            "/api/v1/auth/change-password",
            json={"current_password": "testpass123", "new_password": new_password},
            headers=auth_headers,
        )
        assert response.status_code == 422
