"""
Authentication and user administration tests for the iTasks API
"""
import pytest
from httpx import AsyncClient

from tests.conftest import PASSWORD, auth_headers, make_user
from itasks.db.models import UserRole


class TestLogin:
    """Login and token lifecycle"""

    async def test_login_json(self, client: AsyncClient, tech):
        response = await client.post(
            "/api/v1/auth/login-json", json={"email": "tech@helpdesk.io", "password": PASSWORD}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["access_token"]
        assert data["token_type"] == "bearer"
        assert data["expires_in"] > 0

    async def test_oauth2_form_login(self, client: AsyncClient, tech):
        response = await client.post(
            "/api/v1/auth/login", data={"username": "tech@helpdesk.io", "password": PASSWORD}
        )

        assert response.status_code == 200
        assert "access_token" in response.json()

    async def test_wrong_password(self, client: AsyncClient, tech):
        response = await client.post(
            "/api/v1/auth/login-json", json={"email": "tech@helpdesk.io", "password": "Wrong1234"}
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Incorrect email or password"

    async def test_unknown_email(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/login-json", json={"email": "nobody@helpdesk.io", "password": PASSWORD}
        )

        assert response.status_code == 401

    async def test_inactive_user_rejected(self, client: AsyncClient, db_session):
        await make_user(db_session, "gone@helpdesk.io", "Gone User", UserRole.TECHNICIAN, is_active=False)

        response = await client.post(
            "/api/v1/auth/login-json", json={"email": "gone@helpdesk.io", "password": PASSWORD}
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Inactive user"

    async def test_me(self, client: AsyncClient, lead):
        response = await client.get("/api/v1/auth/me", headers=auth_headers(lead))

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "lead@helpdesk.io"
        assert data["role"] == "TeamLead"
        assert data["id"] == str(lead.uuid)

    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 401

    async def test_garbage_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    async def test_logout_revokes_token(self, client: AsyncClient, tech):
        headers = auth_headers(tech)

        response = await client.post("/api/v1/auth/logout", headers=headers)
        assert response.status_code == 204

        response = await client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 401
        assert response.json()["detail"] == "Token has been revoked"

        # A fresh token still works
        response = await client.get("/api/v1/auth/me", headers=auth_headers(tech))
        assert response.status_code == 200


class TestUserAdministration:
    """Admin-only user management"""

    def new_user(self, **overrides):
        payload = {
            "email": "newbie@helpdesk.io",
            "name": "New Bie",
            "password": "Welcome123",
            "role": "Technician",
        }
        payload.update(overrides)
        return payload

    async def test_admin_creates_user(self, client: AsyncClient, admin):
        response = await client.post("/api/v1/users/", json=self.new_user(), headers=auth_headers(admin))

        assert response.status_code == 201, response.text
        data = response.json()
        assert data["email"] == "newbie@helpdesk.io"
        assert data["role"] == "Technician"
        assert data["is_active"] is True

        login = await client.post(
            "/api/v1/auth/login-json", json={"email": "newbie@helpdesk.io", "password": "Welcome123"}
        )
        assert login.status_code == 200

    async def test_non_admin_cannot_create_user(self, client: AsyncClient, lead):
        response = await client.post("/api/v1/users/", json=self.new_user(), headers=auth_headers(lead))

        assert response.status_code == 403
        assert response.json()["detail"] == "Forbidden: only Admin can perform this action"

    async def test_duplicate_email(self, client: AsyncClient, admin, tech):
        response = await client.post(
            "/api/v1/users/", json=self.new_user(email="tech@helpdesk.io"), headers=auth_headers(admin)
        )

        assert response.status_code == 409

    @pytest.mark.parametrize("password", ["short1A", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere"])
    async def test_weak_password(self, client: AsyncClient, admin, password):
        response = await client.post(
            "/api/v1/users/", json=self.new_user(password=password), headers=auth_headers(admin)
        )

        assert response.status_code == 422

    async def test_deactivated_user_loses_access(self, client: AsyncClient, admin, tech):
        headers = auth_headers(tech)

        response = await client.patch(
            f"/api/v1/users/{tech.uuid}", json={"is_active": False}, headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        response = await client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 403

    async def test_admin_cannot_demote_self(self, client: AsyncClient, admin):
        response = await client.patch(
            f"/api/v1/users/{admin.uuid}", json={"role": "Viewer"}, headers=auth_headers(admin)
        )

        assert response.status_code == 400

    async def test_search_users(self, client: AsyncClient, tech, other_tech):
        response = await client.get("/api/v1/users/search", params={"q": "otto"}, headers=auth_headers(tech))

        assert response.status_code == 200
        assert [u["email"] for u in response.json()] == ["other@helpdesk.io"]


class TestTeams:

    async def test_create_team_and_assign_member(self, client: AsyncClient, admin, tech):
        response = await client.post(
            "/api/v1/teams/", json={"name": "Branch Support", "description": "Field branches"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 201
        team = response.json()

        response = await client.patch(
            f"/api/v1/users/{tech.uuid}", json={"team_id": team["id"]}, headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["team"]["name"] == "Branch Support"

        teams = await client.get("/api/v1/teams/", headers=auth_headers(tech))
        assert [t["name"] for t in teams.json()] == ["Branch Support"]

    async def test_duplicate_team_name(self, client: AsyncClient, admin):
        await client.post("/api/v1/teams/", json={"name": "Network"}, headers=auth_headers(admin))
        response = await client.post("/api/v1/teams/", json={"name": "Network"}, headers=auth_headers(admin))
        assert response.status_code == 409

    async def test_unknown_team_on_user(self, client: AsyncClient, admin, tech):
        response = await client.patch(
            f"/api/v1/users/{tech.uuid}",
            json={"team_id": "8a1f6c2e-4b7d-4e0a-9c3b-2f5d6e7a8b9c"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 404
