"""
HTTP surface tests with an in-memory backend context.
"""

import pytest
from fastapi.testclient import TestClient

from uncip_backend.context import get_context
from uncip_backend.permissions.auth import SessionData, encode_session_token
from uncip_backend.server import app
from uncip_backend.tests.fixtures import alert_payload, child_payload


def bearer(user_id: str, role: str, **claims) -> dict:
    token = encode_session_token(SessionData(user_id=user_id, role=role, **claims))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(context):
    app.dependency_overrides[get_context] = lambda: context
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.mark.integration
class TestSession:

    def test_health_needs_no_session(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_missing_session_is_401(self, client):
        response = client.get("/auth/session")
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "unauthenticated"

    def test_malformed_header_is_401(self, client):
        response = client.get("/children", headers={"Authorization": "Token abc"})
        assert response.status_code == 401

    def test_session_reports_normalized_roles(self, client):
        response = client.get("/auth/session", headers=bearer("u1", "Admin", email="a@example.org"))

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == "u1"
        assert body["role"] == "admin"
        assert body["roles"] == ["admin"]

    def test_session_without_role_is_parent(self, client):
        body = client.get("/auth/session", headers=bearer("u1", None)).json()
        assert body["role"] == "parent"


@pytest.mark.integration
class TestChildrenApi:

    def test_create_and_list(self, client):
        response = client.post("/children", json=child_payload(), headers=bearer("p1", "parent"))
        assert response.status_code == 201
        child = response.json()
        assert child["guardians"] == ["p1"]

        mine = client.get("/children", headers=bearer("p1", "parent"))
        assert mine.headers["X-Total-Count"] == "1"
        assert [c["id"] for c in mine.json()] == [child["id"]]

        theirs = client.get("/children", headers=bearer("p2", "parent"))
        assert theirs.json() == []
        assert theirs.headers["X-Total-Count"] == "0"

    def test_missing_field_is_400_with_fields(self, client):
        payload = child_payload()
        payload.pop("first_name")

        response = client.post("/children", json=payload, headers=bearer("p1", "parent"))
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "invalid"
        assert "first_name" in detail["fields"]

    def test_update_outside_guardianship_is_404(self, client):
        child = client.post("/children", json=child_payload(), headers=bearer("p1", "parent")).json()

        response = client.patch(f"/children/{child['id']}", json={"first_name": "X"}, headers=bearer("p2", "parent"))
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "not_found"

        response = client.delete(f"/children/{child['id']}", headers=bearer("p2", "parent"))
        assert response.status_code == 404

    def test_guardian_deletes(self, client):
        child = client.post("/children", json=child_payload(), headers=bearer("p1", "parent")).json()

        assert client.delete(f"/children/{child['id']}", headers=bearer("p1", "parent")).status_code == 204
        assert client.get(f"/children/{child['id']}", headers=bearer("p1", "parent")).status_code == 404


@pytest.mark.integration
class TestAlertsApi:

    def test_duplicate_active_alert_is_409(self, client):
        child = client.post("/children", json=child_payload(), headers=bearer("p1", "parent")).json()

        first = client.post("/alerts", json=alert_payload(child["id"]), headers=bearer("p1", "parent"))
        assert first.status_code == 201

        second = client.post("/alerts", json=alert_payload(child["id"]), headers=bearer("p1", "parent"))
        assert second.status_code == 409
        assert second.json()["detail"]["reason"] == "duplicate-active-alert"

    def test_list_filters(self, client):
        child = client.post("/children", json=child_payload(), headers=bearer("p1", "parent")).json()
        alert = client.post("/alerts", json=alert_payload(child["id"]), headers=bearer("p1", "parent")).json()

        active = client.get("/alerts", params={"status": "active"}, headers=bearer("c1", "community"))
        assert [a["id"] for a in active.json()] == [alert["id"]]

        resolved = client.get("/alerts", params={"status": "resolved"}, headers=bearer("c1", "community"))
        assert resolved.json() == []

    def test_invalid_filter_is_400(self, client):
        response = client.get("/alerts", params={"status": "bogus"}, headers=bearer("c1", "community"))
        assert response.status_code == 400

    def test_forbidden_is_generic(self, client):
        child = client.post("/children", json=child_payload(), headers=bearer("p1", "parent")).json()
        alert = client.post("/alerts", json=alert_payload(child["id"]), headers=bearer("p1", "parent")).json()

        response = client.delete(f"/alerts/{alert['id']}", headers=bearer("p1", "parent"))
        assert response.status_code == 403
        assert response.json()["detail"] == {"code": "forbidden", "message": "Forbidden"}

    def test_resolve(self, client):
        child = client.post("/children", json=child_payload(), headers=bearer("p1", "parent")).json()
        alert = client.post("/alerts", json=alert_payload(child["id"]), headers=bearer("p1", "parent")).json()

        response = client.patch(f"/alerts/{alert['id']}", json={"status": "resolved"}, headers=bearer("a1", "authority"))
        assert response.status_code == 200
        assert response.json()["resolved_by"] == "a1"
        assert response.json()["resolved_at"] is not None


@pytest.mark.integration
class TestUsersApi:

    def test_signup_creates_parent(self, client):
        response = client.post("/signup", json={
            "email": "dad@example.org",
            "display_name": "Dad",
            "password": "long-enough-password",
        })

        assert response.status_code == 201
        assert response.json()["role"] == "parent"

    def test_signup_short_password_is_400(self, client):
        response = client.post("/signup", json={"email": "dad@example.org", "display_name": "Dad", "password": "short"})
        assert response.status_code == 400
        assert "password" in response.json()["detail"]["fields"]

    def test_non_admin_create_user_is_403(self, client):
        response = client.post(
            "/users",
            json={"email": "x@example.org", "display_name": "X", "role": "admin"},
            headers=bearer("p1", "parent"),
        )
        assert response.status_code == 403

    def test_admin_creates_user(self, client):
        response = client.post(
            "/users",
            json={"email": "cop@example.org", "display_name": "Officer", "role": "authority"},
            headers=bearer("admin-1", "admin"),
        )
        assert response.status_code == 201
        user = response.json()

        listed = client.get("/users", headers=bearer("admin-1", "admin"))
        assert listed.headers["X-Total-Count"] == "1"

        own = client.get(f"/users/{user['id']}", headers=bearer(user["id"], "authority"))
        assert own.status_code == 200
        assert own.json()["email"] == "cop@example.org"
