"""
Tests for profile management and manager-only user administration.
"""
import pytest
from unittest.mock import patch
from httpx import AsyncClient

from conftest import DEFAULT_PASSWORD, auth_headers
from core.security import verify_password, verify_token


class TestProfile:

    @pytest.mark.asyncio
    async def test_me_requires_token(self, async_client: AsyncClient):
        response = await async_client.get("/api/users/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me_rejects_bad_token(self, async_client: AsyncClient):
        response = await async_client.get("/api/users/me", headers={"Authorization": "Bearer nonsense"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_get_me(self, async_client: AsyncClient, user):
        response = await async_client.get("/api/users/me", headers=auth_headers(user))
        assert response.status_code == 200
        profile = response.json()["data"]["user"]
        assert profile["email"] == user["email"]
        assert "hashedPassword" not in profile

    @pytest.mark.asyncio
    async def test_deleted_user_token_is_rejected(self, async_client: AsyncClient, user, mongo_db):
        headers = auth_headers(user)
        await mongo_db.users.delete_one({"_id": user["_id"]})
        response = await async_client.get("/api/users/me", headers=headers)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_update_me_ignores_role(self, async_client: AsyncClient, user, mongo_db):
        response = await async_client.patch(
            "/api/users/me",
            json={"name": "New Name", "householdMembers": 2, "role": "manager"},
            headers=auth_headers(user),
        )
        assert response.status_code == 200
        updated = response.json()["data"]["user"]
        assert updated["name"] == "New Name"
        assert updated["householdMembers"] == 2
        assert updated["role"] == "user"

    @pytest.mark.asyncio
    async def test_update_password(self, async_client: AsyncClient, user, mongo_db):
        response = await async_client.patch(
            "/api/users/update-password",
            json={"currentPassword": DEFAULT_PASSWORD, "newPassword": "another1", "confirmPassword": "another1"},
            headers=auth_headers(user),
        )
        assert response.status_code == 200
        assert verify_token(response.json()["token"])["sub"] == str(user["_id"])
        stored = await mongo_db.users.find_one({"_id": user["_id"]})
        assert verify_password("another1", stored["hashed_password"])

    @pytest.mark.asyncio
    async def test_update_password_wrong_current(self, async_client: AsyncClient, user):
        response = await async_client.patch(
            "/api/users/update-password",
            json={"currentPassword": "wrong", "newPassword": "another1", "confirmPassword": "another1"},
            headers=auth_headers(user),
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_update_password_mismatch(self, async_client: AsyncClient, user):
        response = await async_client.patch(
            "/api/users/update-password",
            json={"currentPassword": DEFAULT_PASSWORD, "newPassword": "another1", "confirmPassword": "another2"},
            headers=auth_headers(user),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_delete_me(self, async_client: AsyncClient, user, mongo_db):
        response = await async_client.delete("/api/users/me", headers=auth_headers(user))
        assert response.status_code == 204
        assert await mongo_db.users.find_one({"_id": user["_id"]}) is None


class TestManagerAdministration:

    @pytest.mark.asyncio
    async def test_list_users_is_manager_only(self, async_client: AsyncClient, user, manager):
        denied = await async_client.get("/api/users", headers=auth_headers(user))
        assert denied.status_code == 403

        response = await async_client.get("/api/users", headers=auth_headers(manager))
        assert response.status_code == 200
        assert response.json()["results"] == 2

    @pytest.mark.asyncio
    async def test_manager_creates_collector(self, async_client: AsyncClient, manager):
        with patch("services.user_service.send_account_creation_email", return_value=True) as mailer:
            response = await async_client.post(
                "/api/users/admin",
                json={"name": "Kamal", "email": "kamal@example.com", "password": "temp1234", "role": "collector"},
                headers=auth_headers(manager),
            )
        assert response.status_code == 201
        assert response.json()["data"]["user"]["role"] == "collector"
        mailer.assert_called_once_with("kamal@example.com", "Kamal", "temp1234")

    @pytest.mark.asyncio
    async def test_role_change_applies_to_existing_token(self, async_client: AsyncClient, user, manager):
        headers = auth_headers(user)
        assert (await async_client.get("/api/users", headers=headers)).status_code == 403

        response = await async_client.patch(
            f"/api/users/{user['_id']}", json={"role": "manager"}, headers=auth_headers(manager)
        )
        assert response.status_code == 200

        assert (await async_client.get("/api/users", headers=headers)).status_code == 200

    @pytest.mark.asyncio
    async def test_deactivated_user_is_locked_out(self, async_client: AsyncClient, user, manager):
        await async_client.patch(
            f"/api/users/{user['_id']}", json={"status": "inactive"}, headers=auth_headers(manager)
        )
        response = await async_client.get("/api/users/me", headers=auth_headers(user))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_update_unknown_user(self, async_client: AsyncClient, manager):
        response = await async_client.patch(
            "/api/users/65a000000000000000000000", json={"name": "x"}, headers=auth_headers(manager)
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_user(self, async_client: AsyncClient, user, manager, mongo_db):
        response = await async_client.delete(f"/api/users/{user['_id']}", headers=auth_headers(manager))
        assert response.status_code == 204
        assert await mongo_db.users.count_documents({}) == 1
