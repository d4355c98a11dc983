"""
Integration tests for registration, login and profile endpoints.
"""
import pytest
from httpx import AsyncClient
from conftest import auth_header


@pytest.mark.integration
@pytest.mark.asyncio
class TestAuthEndpoints:

    async def test_register_and_login(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/register", json={
            "email": "newbie@example.com",
            "password": "Test123!@#",
            "name": "Newbie",
        })
        assert response.status_code == 201
        data = response.json()
        assert data["role"] == "member"
        assert data["wants_notifications"] is True

        login = await client.post("/api/v1/auth/login", json={
            "email": "newbie@example.com",
            "password": "Test123!@#",
        })
        assert login.status_code == 200
        tokens = login.json()

        me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
        assert me.json()["email"] == "newbie@example.com"

    async def test_register_weak_password(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/register", json={
            "email": "weak@example.com",
            "password": "short",
            "name": "Weak",
        })
        assert response.status_code == 400

    async def test_register_duplicate_email(self, client: AsyncClient, test_member):
        response = await client.post("/api/v1/auth/register", json={
            "email": test_member.email,
            "password": "Test123!@#",
            "name": "Copy",
        })
        assert response.status_code == 400
        assert "already registered" in response.json()["detail"]

    async def test_login_wrong_password(self, client: AsyncClient, test_member):
        response = await client.post("/api/v1/auth/login", json={
            "email": test_member.email,
            "password": "Wrong123!@#",
        })
        assert response.status_code == 401

    async def test_refresh_token(self, client: AsyncClient, test_member):
        login = await client.post("/api/v1/auth/login", json={
            "email": test_member.email,
            "password": "Test123!@#",
        })
        refresh = await client.post("/api/v1/auth/refresh", json={"refresh_token": login.json()["refresh_token"]})

        assert refresh.status_code == 200
        assert refresh.json()["access_token"]

    async def test_access_token_cannot_refresh(self, client: AsyncClient, member_token):
        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": member_token})
        assert response.status_code == 401

    async def test_protected_route_requires_token(self, client: AsyncClient):
        response = await client.get("/api/v1/profiles/me")
        assert response.status_code in (401, 403)


@pytest.mark.integration
@pytest.mark.asyncio
class TestProfileEndpoints:

    async def test_update_notification_preferences(self, client: AsyncClient, test_member):
        response = await client.patch(
            "/api/v1/profiles/me",
            headers=auth_header(test_member),
            json={"wants_notifications": False, "phone": "+852 5555 0000"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["wants_notifications"] is False
        assert data["wants_rsvp_updates"] is True
        assert data["phone"] == "+852 5555 0000"

    async def test_health(self, client: AsyncClient):
        response = await client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
