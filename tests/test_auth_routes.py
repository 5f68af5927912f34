"""
tests/test_auth_routes.py -- Integration tests for registration, login and the auth dependency.

Coverage:
  - register -> login -> /users/me scenario
  - duplicate email (any case) is 400 and creates nothing
  - login failures (unknown email, wrong password) return identical 401 bodies
  - request state machine: no token 401, bad token 403, unknown/inactive principal 401
  - elevated roles at registration need an admin caller

Fixtures used (from conftest.py):
  - api_client: (client, admin_token, admin_id)
  - register: helper that creates a user through the API
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from api.limiter import limiter
from auth.tokens import issue_token


class TestRegisterLoginScenario:
    def test_register_login_me(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client

        resp = client.post("/api/auth/register", json={"username": "a", "email": "a@x.com", "password": "p"})
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["token"]
        assert data["user"]["email"] == "a@x.com"
        assert data["user"]["role"] == "user"
        assert "hashedPassword" not in data["user"]
        assert resp.headers["Cache-Control"] == "no-store"

        resp = client.post("/api/auth/login", json={"email": "a@x.com", "password": "p"})
        assert resp.status_code == 200, resp.text
        token = resp.json()["token"]
        assert resp.json()["user"]["id"] == data["user"]["id"]

        resp = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        me = resp.json()
        assert me["role"] == "user"
        assert me["status"] == "active"
        assert me["username"] == "a"

    def test_duplicate_email_rejected(self, api_client: tuple[TestClient, str, str]) -> None:
        client, admin_token, _ = api_client
        body = {"username": "dup", "email": "dup@x.com", "password": "p"}
        assert client.post("/api/auth/register", json=body).status_code == 201

        resp = client.post("/api/auth/register", json={**body, "email": "DUP@x.com"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Email already in use.", "code": "email_taken"}

        users = client.get("/api/users", headers={"Authorization": f"Bearer {admin_token}"}).json()
        assert sum(1 for u in users if u["email"] == "dup@x.com") == 1

    def test_register_validation_is_400(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        for body in (
            {"email": "nouser@x.com", "password": "p"},
            {"username": "u", "email": "not-an-email", "password": "p"},
            {"username": "u", "email": "u@x.com", "password": ""},
        ):
            resp = client.post("/api/auth/register", json=body)
            assert resp.status_code == 400, body
            assert resp.json()["code"] == "validation_error"

    def test_malformed_json_is_400(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = client.post(
            "/api/auth/register",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400


class TestLogin:
    def test_failures_are_indistinguishable(self, api_client: tuple[TestClient, str, str], register) -> None:
        client, _, _ = api_client
        register(username="known", password="rightpass", email="known@x.com")

        wrong_password = client.post("/api/auth/login", json={"email": "known@x.com", "password": "wrongpass"})
        unknown_email = client.post("/api/auth/login", json={"email": "ghost@x.com", "password": "wrongpass"})

        assert wrong_password.status_code == 401
        assert unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json()
        assert wrong_password.json() == {"error": "Invalid email or password.", "code": "bad_credentials"}
        assert wrong_password.headers["Cache-Control"] == "no-store"

    def test_login_is_case_insensitive_on_email(self, api_client: tuple[TestClient, str, str], register) -> None:
        client, _, _ = api_client
        register(username="casey", password="pw", email="casey@x.com")
        resp = client.post("/api/auth/login", json={"email": "Casey@X.com", "password": "pw"})
        assert resp.status_code == 200


    def test_login_is_rate_limited(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        limiter.reset()
        limiter.enabled = True
        try:
            codes = [
                client.post("/api/auth/login", json={"email": "flood@x.com", "password": "guess"}).status_code
                for _ in range(11)
            ]
            last = client.post("/api/auth/login", json={"email": "flood@x.com", "password": "guess"})
        finally:
            limiter.enabled = False
            limiter.reset()
        assert codes[:10] == [401] * 10
        assert codes[10] == 429
        assert last.json()["code"] == "rate_limited"
        assert "Retry-After" in last.headers


class TestAuthStateMachine:
    def test_no_token_is_401(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = client.get("/api/users/me")
        assert resp.status_code == 401
        assert resp.json() == {"error": "No token provided.", "code": "unauthorized"}

    def test_non_bearer_scheme_is_401(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = client.get("/api/users/me", headers={"Authorization": "Basic YTpi"})
        assert resp.status_code == 401

    def test_invalid_token_is_403(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = client.get("/api/users/me", headers={"Authorization": "Bearer not.a.token"})
        assert resp.status_code == 403
        assert resp.json()["code"] == "invalid_token"

    def test_unknown_principal_is_401(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        token = issue_token("0" * 32)
        resp = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "User not found or inactive."

    def test_deactivated_principal_is_401(self, api_client: tuple[TestClient, str, str], register) -> None:
        client, admin_token, _ = api_client
        token, user_id = register(username="leaving")
        headers = {"Authorization": f"Bearer {token}"}
        assert client.get("/api/users/me", headers=headers).status_code == 200

        resp = client.put(
            f"/api/users/{user_id}/status",
            json={"status": "inactive"},
            headers={"Authorization": f"Bearer {admin_token}"},
        )
        assert resp.status_code == 200

        assert client.get("/api/users/me", headers=headers).status_code == 401


class TestRegisterRoles:
    def test_elevated_role_without_admin_is_403(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = client.post(
            "/api/auth/register",
            json={"username": "sneaky", "email": "sneaky@x.com", "password": "p", "role": "admin"},
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == "forbidden"

    def test_elevated_role_from_user_is_403(self, api_client: tuple[TestClient, str, str], register) -> None:
        client, _, _ = api_client
        token, _ = register(username="plain")
        resp = client.post(
            "/api/auth/register",
            json={"username": "x", "email": "x-admin@x.com", "password": "p", "role": "admin"},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 403

    def test_admin_can_register_admin(self, api_client: tuple[TestClient, str, str]) -> None:
        client, admin_token, _ = api_client
        resp = client.post(
            "/api/auth/register",
            json={"username": "second", "email": "second-admin@x.com", "password": "p", "role": "admin"},
            headers={"Authorization": f"Bearer {admin_token}"},
        )
        assert resp.status_code == 201
        assert resp.json()["user"]["role"] == "admin"

    def test_explicit_user_role_is_allowed(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = client.post(
            "/api/auth/register",
            json={"username": "u", "email": "explicit@x.com", "password": "p", "role": "user"},
        )
        assert resp.status_code == 201
        assert resp.json()["user"]["role"] == "user"

    def test_unknown_role_is_400(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = client.post(
            "/api/auth/register",
            json={"username": "u", "email": "odd@x.com", "password": "p", "role": "superuser"},
        )
        assert resp.status_code == 400
