"""
Integration tests for authentication endpoints.

Tests the /api/auth/* endpoints including login, logout, and session management.
"""

import pytest
from datetime import datetime, timezone, timedelta
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.session import Session
from app.models.user import User
from app.models.user_history import UserHistory, HistoryAction


@pytest.mark.integration
@pytest.mark.auth
class TestAuthenticationEndpoints:
    """Test authentication API endpoints."""

    @pytest.mark.asyncio
    async def test_login_success(self, client: AsyncClient, participant_user: User):
        """Test successful login."""
        response = await client.post(
            "/api/auth/login",
            json={"email": participant_user.email, "password": "participant123"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["email"] == participant_user.email
        assert data["user"]["full_name"] == "Priya Sharma"
        assert data["token"]
        assert "expires_at" in data
        assert "session_token" in response.cookies

    @pytest.mark.asyncio
    async def test_login_invalid_credentials(
        self, client: AsyncClient, db_session: AsyncSession, participant_user: User
    ):
        """Test login with invalid password is logged."""
        response = await client.post(
            "/api/auth/login",
            json={"email": participant_user.email, "password": "wrong_password"}
        )

        assert response.status_code == 401
        assert "session_token" not in response.cookies
        entries = (await db_session.execute(
            select(UserHistory).where(UserHistory.action == HistoryAction.LOGIN_FAILED.value)
        )).scalars().all()
        assert len(entries) == 1

    @pytest.mark.asyncio
    async def test_login_nonexistent_user(self, client: AsyncClient):
        response = await client.post(
            "/api/auth/login",
            json={"email": "nobody@test.com", "password": "password123"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_rate_limited(self, client: AsyncClient, participant_user: User):
        email = participant_user.email
        for _ in range(5):
            response = await client.post(
                "/api/auth/login",
                json={"email": email, "password": "wrong_password"}
            )
            assert response.status_code == 401

        response = await client.post(
            "/api/auth/login",
            json={"email": email, "password": "participant123"}
        )
        assert response.status_code == 429

    @pytest.mark.asyncio
    async def test_me_with_bearer_token(self, client: AsyncClient, participant_headers: dict):
        response = await client.get("/api/auth/me", headers=participant_headers)
        assert response.status_code == 200
        assert response.json()["email"] == "participant@test.com"

    @pytest.mark.asyncio
    async def test_me_with_cookie(self, client: AsyncClient, participant_user: User):
        login = await client.post(
            "/api/auth/login",
            json={"email": participant_user.email, "password": "participant123"}
        )
        response = await client.get(
            "/api/auth/me",
            headers={"Cookie": f"session_token={login.json()['token']}"}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_me_endpoint_unauthenticated(self, client: AsyncClient):
        response = await client.get("/api/auth/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me_endpoint_invalid_session(self, client: AsyncClient):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer invalid-token"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_logout(self, client: AsyncClient, participant_headers: dict):
        response = await client.post("/api/auth/logout", headers=participant_headers)
        assert response.status_code == 200
        assert response.json()["message"] == "Logout successful"

        response = await client.get("/api/auth/me", headers=participant_headers)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_without_session(self, client: AsyncClient):
        response = await client.post("/api/auth/logout")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_session_expiry(
        self, client: AsyncClient, db_session: AsyncSession, participant_headers: dict
    ):
        session = (await db_session.execute(select(Session))).scalar_one()
        session.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        await db_session.commit()

        response = await client.get("/api/auth/me", headers=participant_headers)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_register_then_login(self, client: AsyncClient, db_session: AsyncSession):
        payload = {
            "email": "rahul.verma@college.edu",
            "password": "library-card-42",
            "first_name": "Rahul",
            "last_name": "Verma",
            "department": "Chemistry",
        }
        response = await client.post("/api/auth/register", json=payload)

        assert response.status_code == 201
        assert response.json()["full_name"] == "Rahul Verma"
        assert response.json()["role"] == "user"
        entries = (await db_session.execute(
            select(UserHistory).where(UserHistory.action == HistoryAction.REGISTERED.value)
        )).scalars().all()
        assert len(entries) == 1

        response = await client.post(
            "/api/auth/login",
            json={"email": "rahul.verma@college.edu", "password": "library-card-42"}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client: AsyncClient, participant_user: User):
        email = participant_user.email
        response = await client.post(
            "/api/auth/register",
            json={"email": email.upper(), "password": "password123", "first_name": "Copy"}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Email is already in use, please login."

    @pytest.mark.asyncio
    async def test_register_rejects_short_password(self, client: AsyncClient):
        response = await client.post(
            "/api/auth/register",
            json={"email": "short@college.edu", "password": "short", "first_name": "Short"}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_change_password(self, client: AsyncClient, participant_headers: dict):
        response = await client.post(
            "/api/auth/change-password",
            json={"current_password": "wrong", "new_password": "brand-new-pass"},
            headers=participant_headers
        )
        assert response.status_code == 401

        response = await client.post(
            "/api/auth/change-password",
            json={"current_password": "participant123", "new_password": "brand-new-pass"},
            headers=participant_headers
        )
        assert response.status_code == 200

        response = await client.post(
            "/api/auth/login",
            json={"email": "participant@test.com", "password": "brand-new-pass"}
        )
        assert response.status_code == 200



@pytest.mark.integration
@pytest.mark.auth
class TestRoleAccess:
    """Platform admin endpoints."""

    @pytest.mark.asyncio
    async def test_admin_can_list_jobs(self, client: AsyncClient, admin_user: User):
        login = await client.post("/api/auth/login", json={"email": admin_user.email, "password": "admin123"})
        headers = {"Authorization": f"Bearer {login.json()['token']}"}

        response = await client.get("/api/admin/scheduler/jobs", headers=headers)

        assert response.status_code == 200
        assert "jobs" in response.json()

    @pytest.mark.asyncio
    async def test_regular_user_cannot_list_jobs(self, client: AsyncClient, participant_headers: dict):
        response = await client.get("/api/admin/scheduler/jobs", headers=participant_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["version"].startswith("v")
