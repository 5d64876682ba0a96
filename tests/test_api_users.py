"""
tests/test_api_users.py -- Integration tests for user, profile and bond routes.

Coverage:
  - Registration: 201 with default role even when a role is supplied; 409 on
    duplicate email (any case); 422 on short password or malformed email
  - Own profile: GET/PATCH /users/me; change-password verifies the old password
  - Administration: list/get for staff only, admin-update (incl. password and
    role), role change, delete (self-delete refused)
  - Bonds: self or staff may create/advance/set humor; other users get 403;
    missing avatar or bond -> 404

Fixtures used (from conftest.py):
  - api_client: (client, admin_token, admin_id)
  - register_user: factory that registers + logs in a regular user
"""

from __future__ import annotations

from fastapi.testclient import TestClient


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _create_avatar(client: TestClient, admin_token: str, name: str) -> str:
    resp = client.post("/api/v1/avatars", json={"name": name, "type": "mentor"}, headers=_bearer(admin_token))
    assert resp.status_code == 201, f"Avatar create failed: {resp.status_code} {resp.text}"
    return resp.json()["slug"]


class TestRegistration:
    def test_register_forces_default_role(self, api_client: tuple[TestClient, str, int]) -> None:
        """A role in the request body is ignored; new accounts are always 'user'."""
        client, _token, _uid = api_client
        body = {"email": "sneaky@example.com", "password": "password123", "role": "admin"}
        resp = client.post("/api/v1/users/register", json=body)
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
        data = resp.json()
        assert data["role"] == "user"
        assert data["email"] == "sneaky@example.com"
        assert "password" not in data and "hashed_password" not in data

    def test_duplicate_email_conflicts(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        body = {"email": "twice@example.com", "password": "password123"}
        assert client.post("/api/v1/users/register", json=body).status_code == 201
        resp = client.post("/api/v1/users/register", json={**body, "email": "TWICE@example.com"})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_short_password_rejected(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/v1/users/register", json={"email": "short@example.com", "password": "abc"})
        assert resp.status_code == 422

    def test_malformed_email_rejected(self, api_client: tuple[TestClient, str, int]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/v1/users/register", json={"email": "not-an-email", "password": "password123"})
        assert resp.status_code == 422


class TestOwnProfile:
    def test_get_and_update_me(self, api_client: tuple[TestClient, str, int], register_user) -> None:
        client, _token, _uid = api_client
        token, user_id = register_user("profile@example.com")
        resp = client.get("/api/v1/users/me", headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json()["id"] == user_id

        patch = {"display_name": "Ada", "preferred_voice": "calm", "app_settings": {"theme": "dark"}}
        resp = client.patch("/api/v1/users/me", json=patch, headers=_bearer(token))
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        data = resp.json()
        assert data["display_name"] == "Ada"
        assert data["preferred_voice"] == "calm"
        assert data["app_settings"] == {"theme": "dark", "accessibility_mode": False}
        assert data["role"] == "user"

    def test_self_update_cannot_change_role(self, api_client: tuple[TestClient, str, int], register_user) -> None:
        client, _token, _uid = api_client
        token, _user_id = register_user("climber@example.com")
        resp = client.patch("/api/v1/users/me", json={"role": "admin"}, headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json()["role"] == "user"

    def test_change_password(self, api_client: tuple[TestClient, str, int], register_user) -> None:
        client, _token, _uid = api_client
        token, _user_id = register_user("rotate@example.com", "oldpassword1")

        wrong = {"old_password": "not-it", "new_password": "newpassword1"}
        resp = client.patch("/api/v1/users/me/change-password", json=wrong, headers=_bearer(token))
        assert resp.status_code == 401

        right = {"old_password": "oldpassword1", "new_password": "newpassword1"}
        resp = client.patch("/api/v1/users/me/change-password", json=right, headers=_bearer(token))
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"

        login = {"email": "rotate@example.com", "password": "newpassword1"}
        assert client.post("/api/v1/auth/login", json=login).status_code == 200
        login["password"] = "oldpassword1"
        assert client.post("/api/v1/auth/login", json=login).status_code == 401


class TestAdministration:
    def test_list_users_requires_staff(self, api_client: tuple[TestClient, str, int], register_user) -> None:
        client, admin_token, _uid = api_client
        token, _user_id = register_user("lister@example.com")
        assert client.get("/api/v1/users", headers=_bearer(token)).status_code == 403
        resp = client.get("/api/v1/users", headers=_bearer(admin_token))
        assert resp.status_code == 200
        assert "lister@example.com" in [u["email"] for u in resp.json()]

    def test_get_user(self, api_client: tuple[TestClient, str, int], register_user) -> None:
        client, admin_token, _uid = api_client
        _token, user_id = register_user("lookup@example.com")
        resp = client.get(f"/api/v1/users/{user_id}", headers=_bearer(admin_token))
        assert resp.status_code == 200
        assert resp.json()["email"] == "lookup@example.com"
        assert client.get("/api/v1/users/99999", headers=_bearer(admin_token)).status_code == 404

    def test_admin_update(self, api_client: tuple[TestClient, str, int], register_user) -> None:
        client, admin_token, _uid = api_client
        _token, user_id = register_user("managed@example.com")
        body = {
            "display_name": "Managed",
            "email": "renamed@example.com",
            "password": "resetpass123",
            "role": "mod",
            "unlocked_badges": ["pioneer", "pioneer"],
        }
        resp = client.patch(f"/api/v1/users/{user_id}/admin-update", json=body, headers=_bearer(admin_token))
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        data = resp.json()
        assert data["email"] == "renamed@example.com"
        assert data["role"] == "mod"
        assert data["unlocked_badges"] == ["pioneer"]
        login = {"email": "renamed@example.com", "password": "resetpass123"}
        assert client.post("/api/v1/auth/login", json=login).status_code == 200

    def test_admin_update_requires_admin(self, api_client: tuple[TestClient, str, int], register_user) -> None:
        client, _admin_token, _uid = api_client
        token, user_id = register_user("selfpromote@example.com")
        resp = client.patch(f"/api/v1/users/{user_id}/admin-update", json={"role": "admin"}, headers=_bearer(token))
        assert resp.status_code == 403

    def test_role_update_unknown_role(self, api_client: tuple[TestClient, str, int], register_user) -> None:
        client, admin_token, _uid = api_client
        _token, user_id = register_user("badrole@example.com")
        resp = client.patch(f"/api/v1/users/{user_id}/role", json={"role": "root"}, headers=_bearer(admin_token))
        assert resp.status_code == 422

    def test_role_update_missing_user(self, api_client: tuple[TestClient, str, int]) -> None:
        client, admin_token, _uid = api_client
        resp = client.patch("/api/v1/users/99999/role", json={"role": "mod"}, headers=_bearer(admin_token))
        assert resp.status_code == 404

    def test_admin_cannot_delete_self(self, api_client: tuple[TestClient, str, int]) -> None:
        client, admin_token, admin_id = api_client
        assert client.delete(f"/api/v1/users/{admin_id}", headers=_bearer(admin_token)).status_code == 403

    def test_delete_missing_user(self, api_client: tuple[TestClient, str, int]) -> None:
        client, admin_token, _uid = api_client
        assert client.delete("/api/v1/users/99999", headers=_bearer(admin_token)).status_code == 404


class TestBonds:
    def test_bond_lifecycle_as_self(self, api_client: tuple[TestClient, str, int], register_user) -> None:
        client, admin_token, _uid = api_client
        slug = _create_avatar(client, admin_token, "Bond Buddy")
        token, user_id = register_user("bonder@example.com")

        resp = client.post(f"/api/v1/users/{user_id}/bonds/{slug}", headers=_bearer(token))
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
        assert resp.json() == {"bond_level": 1, "bond_points": 0, "humor_level": 0}

        client.patch(f"/api/v1/users/{user_id}/bonds/{slug}/points", json={"points": 90}, headers=_bearer(token))
        resp = client.patch(
            f"/api/v1/users/{user_id}/bonds/{slug}/points", json={"points": 30}, headers=_bearer(token)
        )
        assert resp.status_code == 200
        assert (resp.json()["bond_level"], resp.json()["bond_points"]) == (2, 20)

        resp = client.patch(f"/api/v1/users/{user_id}/bonds/{slug}/humor", json={"humor_level": 3}, headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json()["humor_level"] == 3

        bonds = client.get("/api/v1/users/me", headers=_bearer(token)).json()["bonds"]
        assert bonds[slug] == {"bond_level": 2, "bond_points": 20, "humor_level": 3}

    def test_other_user_cannot_touch_bond(self, api_client: tuple[TestClient, str, int], register_user) -> None:
        client, admin_token, _uid = api_client
        slug = _create_avatar(client, admin_token, "Guarded Pal")
        _owner_token, owner_id = register_user("owner@example.com")
        intruder_token, _intruder_id = register_user("intruder@example.com")
        resp = client.post(f"/api/v1/users/{owner_id}/bonds/{slug}", headers=_bearer(intruder_token))
        assert resp.status_code == 403

    def test_staff_can_manage_any_bond(self, api_client: tuple[TestClient, str, int], register_user) -> None:
        client, admin_token, _uid = api_client
        slug = _create_avatar(client, admin_token, "Staff Pal")
        _token, user_id = register_user("managedbond@example.com")
        resp = client.post(f"/api/v1/users/{user_id}/bonds/{slug}", headers=_bearer(admin_token))
        assert resp.status_code == 201

    def test_negative_points_rejected(self, api_client: tuple[TestClient, str, int], register_user) -> None:
        client, admin_token, _uid = api_client
        slug = _create_avatar(client, admin_token, "Strict Pal")
        token, user_id = register_user("negative@example.com")
        client.post(f"/api/v1/users/{user_id}/bonds/{slug}", headers=_bearer(token))
        resp = client.patch(
            f"/api/v1/users/{user_id}/bonds/{slug}/points", json={"points": -5}, headers=_bearer(token)
        )
        assert resp.status_code == 422

    def test_missing_avatar_or_bond(self, api_client: tuple[TestClient, str, int], register_user) -> None:
        client, admin_token, _uid = api_client
        slug = _create_avatar(client, admin_token, "Lonely Pal")
        token, user_id = register_user("nobond@example.com")
        assert client.post(f"/api/v1/users/{user_id}/bonds/ghost", headers=_bearer(token)).status_code == 404
        resp = client.patch(
            f"/api/v1/users/{user_id}/bonds/{slug}/points", json={"points": 5}, headers=_bearer(token)
        )
        assert resp.status_code == 404
