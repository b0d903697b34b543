"""
tests/test_api_users.py -- Integration tests for the admin user management routes.

Coverage:
  - 401 without a session, 403 with a non-admin session (generic message)
  - list, approve, reject, unban, delete, limits happy paths
  - self-targeting and last-admin guards surface as 409 and leave state unchanged
  - unknown ids surface as 404
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from auth.tokens import SESSION_COOKIE


@pytest.fixture
def admin_setup(client: TestClient):
    """(client, admin_headers, admin_id, pending_user_id) with an empty cookie jar."""
    resp = client.post("/api/v1/auth/signup", json={"email": "a@x", "password": "p@ssw0rd1"})
    admin_id = resp.json()["user"]["id"]
    headers = {"Authorization": f"Bearer {resp.cookies[SESSION_COOKIE]}"}
    user_id = client.post("/api/v1/auth/signup", json={"email": "b@x", "password": "p@ssw0rd2"}).json()["user"]["id"]
    client.cookies.clear()
    return client, headers, admin_id, user_id


def _status_of(client: TestClient, headers: dict, user_id: str) -> str:
    users = client.get("/api/v1/users", headers=headers).json()
    return next(u["status"] for u in users if u["id"] == user_id)


class TestAccessControl:
    def test_anonymous_gets_401(self, client: TestClient) -> None:
        assert client.get("/api/v1/users").status_code == 401

    def test_non_admin_gets_generic_403(self, admin_setup) -> None:
        client, headers, _admin_id, user_id = admin_setup
        client.post(f"/api/v1/users/{user_id}/approve", headers=headers)
        token = client.post("/api/v1/auth/login", json={"email": "b@x", "password": "p@ssw0rd2"}).cookies[
            SESSION_COOKIE
        ]
        client.cookies.clear()
        resp = client.get("/api/v1/users", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403
        assert resp.json()["error"] == {"code": "forbidden", "message": "Admin access required."}


class TestStatusRoutes:
    def test_list_users(self, admin_setup) -> None:
        client, headers, admin_id, user_id = admin_setup
        resp = client.get("/api/v1/users", headers=headers)
        assert resp.status_code == 200
        assert [u["id"] for u in resp.json()] == [admin_id, user_id]

    def test_approve_reject_unban(self, admin_setup) -> None:
        client, headers, _admin_id, user_id = admin_setup
        assert client.post(f"/api/v1/users/{user_id}/approve", headers=headers).json()["status"] == "approved"
        assert client.post(f"/api/v1/users/{user_id}/reject", headers=headers).json()["status"] == "rejected"
        assert client.post(f"/api/v1/users/{user_id}/unban", headers=headers).json()["status"] == "pending"

    def test_reject_self_is_409_and_unchanged(self, admin_setup) -> None:
        client, headers, admin_id, _user_id = admin_setup
        resp = client.post(f"/api/v1/users/{admin_id}/reject", headers=headers)
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"
        assert _status_of(client, headers, admin_id) == "approved"

    def test_unban_pending_is_409(self, admin_setup) -> None:
        client, headers, _admin_id, user_id = admin_setup
        assert client.post(f"/api/v1/users/{user_id}/unban", headers=headers).status_code == 409

    def test_unknown_user_is_404(self, admin_setup) -> None:
        client, headers, _admin_id, _user_id = admin_setup
        resp = client.post("/api/v1/users/does-not-exist/approve", headers=headers)
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"


class TestDeleteRoute:
    def test_delete_user(self, admin_setup) -> None:
        client, headers, _admin_id, user_id = admin_setup
        assert client.delete(f"/api/v1/users/{user_id}", headers=headers).status_code == 204
        ids = [u["id"] for u in client.get("/api/v1/users", headers=headers).json()]
        assert user_id not in ids

    def test_delete_self_is_409(self, admin_setup) -> None:
        client, headers, admin_id, _user_id = admin_setup
        assert client.delete(f"/api/v1/users/{admin_id}", headers=headers).status_code == 409
        assert _status_of(client, headers, admin_id) == "approved"

    def test_delete_unknown_is_404(self, admin_setup) -> None:
        client, headers, _admin_id, _user_id = admin_setup
        assert client.delete("/api/v1/users/nope", headers=headers).status_code == 404


class TestLimitsRoute:
    def test_partial_update_and_clear(self, admin_setup) -> None:
        client, headers, _admin_id, user_id = admin_setup
        resp = client.patch(f"/api/v1/users/{user_id}/limits", headers=headers, json={"max_images": 25})
        assert resp.status_code == 200
        assert resp.json()["limits"]["max_images"] == 25

        resp = client.patch(
            f"/api/v1/users/{user_id}/limits", headers=headers, json={"max_total_storage_mb": 512.0}
        )
        limits = resp.json()["limits"]
        assert limits == {"max_images": 25, "max_single_upload_size_mb": None, "max_total_storage_mb": 512.0}

        resp = client.patch(f"/api/v1/users/{user_id}/limits", headers=headers, json={"max_images": None})
        assert resp.json()["limits"]["max_images"] is None
        assert resp.json()["status"] == "pending"

    def test_negative_limit_is_422(self, admin_setup) -> None:
        client, headers, _admin_id, user_id = admin_setup
        resp = client.patch(f"/api/v1/users/{user_id}/limits", headers=headers, json={"max_images": -5})
        assert resp.status_code == 422

    def test_unknown_field_is_422(self, admin_setup) -> None:
        client, headers, _admin_id, user_id = admin_setup
        resp = client.patch(f"/api/v1/users/{user_id}/limits", headers=headers, json={"role": "admin"})
        assert resp.status_code == 422

    def test_unknown_user_is_404(self, admin_setup) -> None:
        client, headers, _admin_id, _user_id = admin_setup
        resp = client.patch("/api/v1/users/nope/limits", headers=headers, json={"max_images": 1})
        assert resp.status_code == 404
