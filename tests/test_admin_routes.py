"""
tests/test_admin_routes.py -- Integration tests for the /api/admin endpoints.

Covers admin login (admin_token cookie), the access rule (admin token or a
role that may open /admin), dashboard data, role changes, user deletion and
the registration allow-list.
"""

from __future__ import annotations

import pytest

from auth.admin_tokens import ADMIN_COOKIE, create_admin_token
from conftest import PanelEnv, add_user

ADMIN_CREDENTIALS = {"username": "paneladmin", "password": "panel-admin-password"}


@pytest.fixture
def admin_cookies() -> dict[str, str]:
    return {ADMIN_COOKIE: create_admin_token()}


class TestAdminLogin:
    def test_valid_credentials_set_cookie(self, panel: PanelEnv) -> None:
        resp = panel.client.post("/api/admin/auth", json=ADMIN_CREDENTIALS)
        assert resp.status_code == 200, resp.text
        assert resp.json()["success"] is True
        token = resp.cookies.get(ADMIN_COOKIE)
        assert token

        data = panel.client.get("/api/admin", cookies={ADMIN_COOKIE: token})
        assert data.status_code == 200

    def test_wrong_password(self, panel: PanelEnv) -> None:
        resp = panel.client.post("/api/admin/auth", json={"username": "paneladmin", "password": "guess"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "bad_credentials"
        assert ADMIN_COOKIE not in resp.cookies

    def test_admin_login_is_rate_limited(self, panel: PanelEnv) -> None:
        bad = {"username": "paneladmin", "password": "guess"}
        statuses = [panel.client.post("/api/admin/auth", json=bad).status_code for _ in range(5)]
        assert statuses == [401] * 5

        blocked = panel.client.post("/api/admin/auth", json=ADMIN_CREDENTIALS)
        assert blocked.status_code == 429
        assert blocked.json()["error"]["code"] == "rate_limited"
        assert "Retry-After" in blocked.headers
        assert ADMIN_COOKIE not in blocked.cookies

    def test_logout_clears_cookie(self, panel: PanelEnv) -> None:
        resp = panel.client.delete("/api/admin/auth")
        assert resp.status_code == 200
        assert ADMIN_COOKIE in resp.headers.get("set-cookie", "")


class TestAdminAccess:
    def test_anonymous_rejected(self, panel: PanelEnv) -> None:
        resp = panel.client.get("/api/admin")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    @pytest.mark.parametrize("role", ["staff", "admin"])
    def test_roles_without_admin_page_rejected(self, panel: PanelEnv, role: str) -> None:
        assert panel.client.get("/api/admin", cookies=panel.cookies(role)).status_code == 401

    def test_host_session_allowed(self, panel: PanelEnv) -> None:
        assert panel.client.get("/api/admin", cookies=panel.cookies("host")).status_code == 200

    def test_forged_admin_cookie_rejected(self, panel: PanelEnv) -> None:
        assert panel.client.get("/api/admin", cookies={ADMIN_COOKIE: "not.a.token"}).status_code == 401


class TestAdminData:
    def test_overview(self, panel: PanelEnv, admin_cookies) -> None:
        resp = panel.client.get("/api/admin", params={"type": "overview"}, cookies=admin_cookies)
        assert resp.status_code == 200
        body = resp.json()
        assert body["stats"]["totalUsers"] == panel.user_store.count_users()
        assert isinstance(body["stats"]["todayActivity"], int)
        assert len(body["recentUsers"]) <= 10
        roles = {entry["role"]: entry["count"] for entry in body["usersByRole"]}
        assert roles["staff"] >= 1
        assert roles["host"] >= 1

    def test_users_paginated_and_searchable(self, panel: PanelEnv, admin_cookies) -> None:
        resp = panel.client.get(
            "/api/admin",
            params={"type": "users", "search": "staff@", "limit": 5},
            cookies=admin_cookies,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert [u["email"] for u in body["users"]] == ["staff@example.com"]
        assert body["pagination"] == {"page": 1, "limit": 5, "total": 1, "totalPages": 1}
        assert "hashedPassword" not in body["users"][0]

    def test_users_filtered_by_role(self, panel: PanelEnv, admin_cookies) -> None:
        resp = panel.client.get("/api/admin", params={"type": "users", "role": "host"}, cookies=admin_cookies)
        assert all(u["role"] == "host" for u in resp.json()["users"])

    def test_activities(self, panel: PanelEnv, admin_cookies) -> None:
        panel.client.post("/api/auth/login", json={"email": "staff@example.com", "password": "password123"})
        resp = panel.client.get(
            "/api/admin",
            params={"type": "activities", "action": "USER_LOGIN", "userId": panel.user_id("staff")},
            cookies=admin_cookies,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["activities"]
        assert all(a["action"] == "USER_LOGIN" for a in body["activities"])
        assert all(a["userId"] == panel.user_id("staff") for a in body["activities"])
        assert body["pagination"]["limit"] == 50

    def test_unknown_type(self, panel: PanelEnv, admin_cookies) -> None:
        resp = panel.client.get("/api/admin", params={"type": "billing"}, cookies=admin_cookies)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_type"


class TestAdminActions:
    def test_change_role(self, panel: PanelEnv) -> None:
        uid, _ = add_user(panel.user_store, "promote@example.com", "staff")
        resp = panel.client.post(
            "/api/admin",
            json={"action": "changeRole", "userId": uid, "newRole": "admin"},
            cookies=panel.cookies("host"),
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["user"]["role"] == "admin"
        assert panel.user_store.get_by_id(uid).role == "admin"

        entries = panel.audit_store.list_recent(action="CHANGE_ROLE")
        assert entries[0].entity_id == str(uid)
        assert entries[0].user_id == panel.user_id("host")
        assert entries[0].details == {"targetEmail": "promote@example.com", "oldRole": "staff", "newRole": "admin"}

    def test_change_role_requires_valid_role(self, panel: PanelEnv, admin_cookies) -> None:
        resp = panel.client.post(
            "/api/admin",
            json={"action": "changeRole", "userId": panel.user_id("staff"), "newRole": "owner"},
            cookies=admin_cookies,
        )
        assert resp.status_code == 422

        resp = panel.client.post(
            "/api/admin",
            json={"action": "changeRole", "userId": panel.user_id("staff")},
            cookies=admin_cookies,
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_role"

    def test_delete_user(self, panel: PanelEnv, admin_cookies) -> None:
        uid, token = add_user(panel.user_store, "leaving@example.com", "staff")
        resp = panel.client.post("/api/admin", json={"action": "deleteUser", "userId": uid}, cookies=admin_cookies)
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "user": None}
        assert panel.user_store.get_by_id(uid) is None
        assert panel.user_store.get_session(token) is None
        assert panel.audit_store.list_recent(action="DELETE_USER")[0].details["deletedEmail"] == "leaving@example.com"

    def test_cannot_delete_self(self, panel: PanelEnv) -> None:
        resp = panel.client.post(
            "/api/admin",
            json={"action": "deleteUser", "userId": panel.user_id("host")},
            cookies=panel.cookies("host"),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "self_delete"

    def test_unknown_target(self, panel: PanelEnv, admin_cookies) -> None:
        resp = panel.client.post("/api/admin", json={"action": "deleteUser", "userId": 999999}, cookies=admin_cookies)
        assert resp.status_code == 404

    def test_unknown_action(self, panel: PanelEnv, admin_cookies) -> None:
        resp = panel.client.post(
            "/api/admin", json={"action": "suspend", "userId": panel.user_id("staff")}, cookies=admin_cookies
        )
        assert resp.status_code == 422


class TestAllowedEmails:
    def test_crud(self, panel: PanelEnv, admin_cookies) -> None:
        created = panel.client.post(
            "/api/admin/allowed-emails",
            json={"email": "Invitee@Example.com", "note": "agency partner"},
            cookies=admin_cookies,
        )
        assert created.status_code == 201, created.text
        entry = created.json()["data"]
        assert entry["email"] == "invitee@example.com"
        assert entry["createdBy"] == "admin"

        listed = panel.client.get("/api/admin/allowed-emails", cookies=admin_cookies).json()
        assert listed["success"] is True
        assert "invitee@example.com" in [e["email"] for e in listed["data"]]

        removed = panel.client.delete("/api/admin/allowed-emails", params={"id": entry["id"]}, cookies=admin_cookies)
        assert removed.status_code == 200
        assert not panel.user_store.is_email_allowed("invitee@example.com")

    def test_created_by_is_signed_in_user(self, panel: PanelEnv) -> None:
        resp = panel.client.post(
            "/api/admin/allowed-emails", json={"email": "byhost@example.com"}, cookies=panel.cookies("host")
        )
        assert resp.json()["data"]["createdBy"] == "host@example.com"

    def test_duplicate(self, panel: PanelEnv, admin_cookies) -> None:
        panel.user_store.upsert_allowed_email("twice@example.com", None, "test")
        resp = panel.client.post("/api/admin/allowed-emails", json={"email": "twice@example.com"}, cookies=admin_cookies)
        assert resp.status_code == 409

    def test_delete_requires_id(self, panel: PanelEnv, admin_cookies) -> None:
        resp = panel.client.delete("/api/admin/allowed-emails", cookies=admin_cookies)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "id_required"

    def test_delete_missing(self, panel: PanelEnv, admin_cookies) -> None:
        resp = panel.client.delete("/api/admin/allowed-emails", params={"id": 987654}, cookies=admin_cookies)
        assert resp.status_code == 404

    def test_requires_admin_access(self, panel: PanelEnv) -> None:
        resp = panel.client.get("/api/admin/allowed-emails", cookies=panel.cookies("staff"))
        assert resp.status_code == 401
