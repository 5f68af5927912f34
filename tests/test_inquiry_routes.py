"""
tests/test_inquiry_routes.py -- Integration tests for customer inquiry routes.

Coverage:
  - any authenticated principal can submit; anonymous is 401
  - only admins list, read, update status, delete (403 for users)
  - admin views embed the submitter's username and email
"""

from __future__ import annotations

from fastapi.testclient import TestClient

_BODY = {"name": "Dana", "email": "dana@x.com", "subject": "NSX", "message": "Is the timing belt done?"}


def _h(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_submit_requires_auth(api_client: tuple[TestClient, str, str]) -> None:
    client, _, _ = api_client
    assert client.post("/api/inquiries", json=_BODY).status_code == 401


def test_submit_and_admin_views(api_client: tuple[TestClient, str, str], register) -> None:
    client, admin_token, _ = api_client
    token, user_id = register(username="dana")

    resp = client.post("/api/inquiries", json=_BODY, headers=_h(token))
    assert resp.status_code == 201, resp.text
    created = resp.json()
    assert created["status"] == "New"
    assert created["userId"] == user_id
    assert created["response"] is None

    listed = client.get("/api/inquiries", headers=_h(admin_token)).json()
    row = next(i for i in listed if i["id"] == created["id"])
    assert row["user"]["id"] == user_id
    assert row["user"]["username"] == "dana"

    detail = client.get(f"/api/inquiries/{created['id']}", headers=_h(admin_token))
    assert detail.status_code == 200
    assert detail.json()["message"] == _BODY["message"]


def test_submit_validation(api_client: tuple[TestClient, str, str], register) -> None:
    client, _, _ = api_client
    token, _ = register(username="sloppy")
    for bad in ({**_BODY, "email": "nope"}, {**_BODY, "message": ""}, {"name": "x", "email": "x@x.com"}):
        assert client.post("/api/inquiries", json=bad, headers=_h(token)).status_code == 400


def test_users_cannot_manage(api_client: tuple[TestClient, str, str], register) -> None:
    client, _, _ = api_client
    token, _ = register(username="curious")
    created = client.post("/api/inquiries", json=_BODY, headers=_h(token)).json()

    assert client.get("/api/inquiries", headers=_h(token)).status_code == 403
    assert client.get(f"/api/inquiries/{created['id']}", headers=_h(token)).status_code == 403
    assert (
        client.put(f"/api/inquiries/{created['id']}/status", json={"status": "Read"}, headers=_h(token)).status_code
        == 403
    )
    assert client.delete(f"/api/inquiries/{created['id']}", headers=_h(token)).status_code == 403


def test_status_update_and_delete(api_client: tuple[TestClient, str, str], register) -> None:
    client, admin_token, _ = api_client
    token, _ = register(username="asker")
    created = client.post("/api/inquiries", json=_BODY, headers=_h(token)).json()

    resp = client.put(
        f"/api/inquiries/{created['id']}/status",
        json={"status": "Responded", "response": "Yes, at 90k miles."},
        headers=_h(admin_token),
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "Responded"
    assert resp.json()["response"] == "Yes, at 90k miles."

    bad = client.put(f"/api/inquiries/{created['id']}/status", json={"status": "Archived"}, headers=_h(admin_token))
    assert bad.status_code == 400

    resp = client.delete(f"/api/inquiries/{created['id']}", headers=_h(admin_token))
    assert resp.status_code == 200
    assert resp.json() == {"message": "Inquiry deleted."}

    assert client.get(f"/api/inquiries/{created['id']}", headers=_h(admin_token)).status_code == 404
    assert client.delete(f"/api/inquiries/{created['id']}", headers=_h(admin_token)).status_code == 404
    assert (
        client.put(
            f"/api/inquiries/{created['id']}/status", json={"status": "Read"}, headers=_h(admin_token)
        ).status_code
        == 404
    )
