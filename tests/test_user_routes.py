"""
tests/test_user_routes.py -- Integration tests for profile and user administration routes.

Coverage:
  - GET/PUT /users/me for any authenticated principal
  - admin-only listing, lookup, role and status changes (403 for users)
  - guards: no self-deactivation, never zero active admins
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from conftest import ADMIN_EMAIL


def _h(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestOwnProfile:
    def test_update_username_and_password(self, api_client: tuple[TestClient, str, str], register) -> None:
        client, _, _ = api_client
        token, _ = register(username="before", password="oldpass", email="profile@x.com")

        resp = client.put("/api/users/me", json={"username": "after", "password": "newpass"}, headers=_h(token))
        assert resp.status_code == 200, resp.text
        assert resp.json()["username"] == "after"

        assert client.post("/api/auth/login", json={"email": "profile@x.com", "password": "oldpass"}).status_code == 401
        assert client.post("/api/auth/login", json={"email": "profile@x.com", "password": "newpass"}).status_code == 200

    def test_email_conflict_is_400(self, api_client: tuple[TestClient, str, str], register) -> None:
        client, _, _ = api_client
        token, _ = register(username="clash")
        resp = client.put("/api/users/me", json={"email": ADMIN_EMAIL.upper()}, headers=_h(token))
        assert resp.status_code == 400
        assert resp.json()["code"] == "email_taken"

    def test_role_cannot_be_self_assigned(self, api_client: tuple[TestClient, str, str], register) -> None:
        client, _, _ = api_client
        token, _ = register(username="climber")
        resp = client.put("/api/users/me", json={"role": "admin"}, headers=_h(token))
        assert resp.status_code == 200
        assert resp.json()["role"] == "user"


class TestAdministration:
    def test_user_cannot_administer(self, api_client: tuple[TestClient, str, str], register) -> None:
        client, _, admin_id = api_client
        token, _ = register(username="nosy")
        assert client.get("/api/users", headers=_h(token)).status_code == 403
        assert client.get(f"/api/users/{admin_id}", headers=_h(token)).status_code == 403
        assert client.put(f"/api/users/{admin_id}/role", json={"role": "user"}, headers=_h(token)).status_code == 403
        # 403 even when the body is invalid
        assert client.put(f"/api/users/{admin_id}/status", json={}, headers=_h(token)).status_code == 403
        malformed = {"content": b"{not json", "headers": {"Content-Type": "application/json", **_h(token)}}
        assert client.put(f"/api/users/{admin_id}/role", **malformed).status_code == 403
        assert client.put("/api/inquiries/any/status", **malformed).status_code == 403
        anonymous = {"content": b"{not json", "headers": {"Content-Type": "application/json"}}
        assert client.put("/api/users/me", **anonymous).status_code == 401

    def test_list_and_get(self, api_client: tuple[TestClient, str, str], register) -> None:
        client, admin_token, _ = api_client
        _, user_id = register(username="listed")

        resp = client.get("/api/users", headers=_h(admin_token))
        assert resp.status_code == 200
        assert user_id in {u["id"] for u in resp.json()}
        assert all("hashedPassword" not in u for u in resp.json())

        resp = client.get(f"/api/users/{user_id}", headers=_h(admin_token))
        assert resp.status_code == 200
        assert resp.json()["username"] == "listed"

    def test_get_missing_is_404(self, api_client: tuple[TestClient, str, str]) -> None:
        client, admin_token, _ = api_client
        resp = client.get("/api/users/doesnotexist", headers=_h(admin_token))
        assert resp.status_code == 404
        assert resp.json() == {"error": "User not found.", "code": "not_found"}

    def test_promote_and_demote(self, api_client: tuple[TestClient, str, str], register) -> None:
        client, admin_token, _ = api_client
        token, user_id = register(username="promoted")

        resp = client.put(f"/api/users/{user_id}/role", json={"role": "admin"}, headers=_h(admin_token))
        assert resp.status_code == 200
        assert resp.json()["role"] == "admin"
        # The role is read from the store on every request, so the same token now passes.
        assert client.get("/api/users", headers=_h(token)).status_code == 200

        resp = client.put(f"/api/users/{user_id}/role", json={"role": "user"}, headers=_h(admin_token))
        assert resp.json()["role"] == "user"
        assert client.get("/api/users", headers=_h(token)).status_code == 403

    def test_invalid_role_is_400(self, api_client: tuple[TestClient, str, str], register) -> None:
        client, admin_token, _ = api_client
        _, user_id = register(username="oddrole")
        resp = client.put(f"/api/users/{user_id}/role", json={"role": "owner"}, headers=_h(admin_token))
        assert resp.status_code == 400

    def test_deactivate_and_reactivate(self, api_client: tuple[TestClient, str, str], register) -> None:
        client, admin_token, _ = api_client
        token, user_id = register(username="paused")

        resp = client.put(f"/api/users/{user_id}/status", json={"status": "inactive"}, headers=_h(admin_token))
        assert resp.json()["status"] == "inactive"
        assert client.get("/api/users/me", headers=_h(token)).status_code == 401

        resp = client.put(f"/api/users/{user_id}/status", json={"status": "active"}, headers=_h(admin_token))
        assert resp.json()["status"] == "active"
        assert client.get("/api/users/me", headers=_h(token)).status_code == 200


class TestAdminGuards:
    def test_cannot_deactivate_self(self, api_client: tuple[TestClient, str, str]) -> None:
        client, admin_token, admin_id = api_client
        resp = client.put(f"/api/users/{admin_id}/status", json={"status": "inactive"}, headers=_h(admin_token))
        assert resp.status_code == 400
        assert resp.json()["code"] == "self_deactivation"

    def test_cannot_demote_last_admin(self, api_client: tuple[TestClient, str, str]) -> None:
        client, admin_token, admin_id = api_client
        resp = client.put(f"/api/users/{admin_id}/role", json={"role": "user"}, headers=_h(admin_token))
        assert resp.status_code == 400
        assert resp.json()["code"] == "last_admin"
        assert client.get("/api/users/me", headers=_h(admin_token)).json()["role"] == "admin"
