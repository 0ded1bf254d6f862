"""
tests/test_settings_routes.py -- Settings page endpoints: connections, password, profile.

fetch_google_profile is patched where the route module imported it, so no
test reaches the network.
"""

from __future__ import annotations

from unittest.mock import patch

from auth.models import OAuthAccount, User
from auth.tokens import SESSION_COOKIE, verify_password
from conftest import TEST_PASSWORD, PanelEnv, add_user


def _link(panel: PanelEnv, user_id: int, provider: str, account_id: str, **tokens) -> None:
    panel.user_store.link_account(
        OAuthAccount(user_id=user_id, provider=provider, provider_account_id=account_id, **tokens)
    )


class TestConnectionStatus:
    def test_not_connected(self, panel: PanelEnv) -> None:
        uid, token = add_user(panel.user_store, "loner@example.com", "host")
        resp = panel.client.get("/api/settings/facebook-account", cookies={SESSION_COOKIE: token})
        assert resp.status_code == 200
        assert resp.json()["isConnected"] is False
        assert resp.json()["providerAccountId"] is None

    def test_connected_facebook(self, panel: PanelEnv) -> None:
        uid, token = add_user(panel.user_store, "fbuser@example.com", "host")
        _link(panel, uid, "facebook", "fb-1001", access_token="fb-token", scope="ads_read", expires_at=1700000000)

        resp = panel.client.get("/api/settings/facebook-account", cookies={SESSION_COOKIE: token})
        body = resp.json()
        assert body["isConnected"] is True
        assert body["providerAccountId"] == "fb-1001"
        assert body["scope"] == "ads_read"
        assert body["tokenExpires"].startswith("2023-11-14T22:13:20")

        google = panel.client.get("/api/settings/google-account", cookies={SESSION_COOKIE: token})
        assert google.json()["isConnected"] is False

    def test_requires_auth(self, panel: PanelEnv) -> None:
        assert panel.client.get("/api/settings/google-account").status_code == 401

    def test_disconnect_removes_links(self, panel: PanelEnv) -> None:
        uid, token = add_user(panel.user_store, "unlink@example.com", "admin")
        _link(panel, uid, "google", "g-2002", access_token="g-token")

        resp = panel.client.post("/api/auth/disconnect-google", cookies={SESSION_COOKIE: token})

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Disconnected successfully"}
        assert panel.user_store.get_account(uid, "google") is None
        assert panel.audit_store.count(action="DISCONNECT_ACCOUNT", user_id=uid) == 1


class TestGoogleStatus:
    def test_live_profile(self, panel: PanelEnv) -> None:
        uid, token = add_user(panel.user_store, "glive@example.com", "host")
        _link(panel, uid, "google", "g-3003", access_token="live-token")
        profile = {"name": "Live Name", "email": "live@gmail.com", "picture": "https://img.example/p.png"}

        with patch("api.routes.settings.fetch_google_profile", return_value=profile) as fetch:
            resp = panel.client.get("/api/auth/google/status", cookies={SESSION_COOKIE: token})

        fetch.assert_called_once_with("live-token")
        assert resp.json() == {"isConnected": True, **profile}

    def test_falls_back_to_local_user(self, panel: PanelEnv) -> None:
        uid, token = add_user(panel.user_store, "gstale@example.com", "host", name="Stale")
        _link(panel, uid, "google", "g-4004", access_token="expired-token")

        with patch("api.routes.settings.fetch_google_profile", return_value=None):
            resp = panel.client.get("/api/auth/google/status", cookies={SESSION_COOKIE: token})

        body = resp.json()
        assert body["isConnected"] is True
        assert body["email"] == "gstale@example.com"
        assert body["name"] == "Stale"

    def test_not_linked_skips_fetch(self, panel: PanelEnv) -> None:
        with patch("api.routes.settings.fetch_google_profile") as fetch:
            resp = panel.client.get("/api/auth/google/status", cookies=panel.cookies("staff"))
        fetch.assert_not_called()
        assert resp.json()["isConnected"] is False


class TestPassword:
    def test_status(self, panel: PanelEnv) -> None:
        resp = panel.client.get("/api/settings/password", cookies=panel.cookies("staff"))
        assert resp.json() == {"hasPassword": True}

    def test_oauth_only_user_has_no_password(self, panel: PanelEnv) -> None:
        uid = panel.user_store.create_user(User(email="oauthonly@example.com", role="host"))
        token = panel.user_store.create_session(uid, 3600).session_token
        cookies = {SESSION_COOKIE: token}
        assert panel.client.get("/api/settings/password", cookies=cookies).json() == {"hasPassword": False}

        resp = panel.client.post("/api/settings/password", json={"newPassword": "first-pass"}, cookies=cookies)
        assert resp.status_code == 200
        assert verify_password("first-pass", panel.user_store.get_by_id(uid).hashed_password)

    def test_change_requires_current_password(self, panel: PanelEnv) -> None:
        _, token = add_user(panel.user_store, "pwd1@example.com", "staff")
        resp = panel.client.post(
            "/api/settings/password", json={"newPassword": "new-secret"}, cookies={SESSION_COOKIE: token}
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "current_password_required"

    def test_wrong_current_password(self, panel: PanelEnv) -> None:
        _, token = add_user(panel.user_store, "pwd2@example.com", "staff")
        resp = panel.client.post(
            "/api/settings/password",
            json={"currentPassword": "not-it", "newPassword": "new-secret"},
            cookies={SESSION_COOKIE: token},
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "bad_credentials"

    def test_change_password(self, panel: PanelEnv) -> None:
        uid, token = add_user(panel.user_store, "pwd3@example.com", "staff")
        resp = panel.client.post(
            "/api/settings/password",
            json={"currentPassword": TEST_PASSWORD, "newPassword": "new-secret"},
            cookies={SESSION_COOKIE: token},
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "Password updated."
        assert verify_password("new-secret", panel.user_store.get_by_id(uid).hashed_password)

    def test_new_password_too_short(self, panel: PanelEnv) -> None:
        resp = panel.client.post(
            "/api/settings/password",
            json={"currentPassword": TEST_PASSWORD, "newPassword": "abc"},
            cookies=panel.cookies("staff"),
        )
        assert resp.status_code == 422


class TestProfile:
    def test_get_profile(self, panel: PanelEnv) -> None:
        resp = panel.client.get("/api/account/profile", cookies=panel.cookies("admin"))
        assert resp.status_code == 200
        body = resp.json()
        assert body["email"] == "admin@example.com"
        assert body["role"] == "admin"
        assert "hashedPassword" not in body

    def test_update_name(self, panel: PanelEnv) -> None:
        uid, token = add_user(panel.user_store, "rename@example.com", "staff")
        resp = panel.client.put("/api/account/profile", json={"name": "  New Name  "}, cookies={SESSION_COOKIE: token})
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert resp.json()["user"]["name"] == "New Name"
        assert panel.user_store.get_by_id(uid).name == "New Name"

    def test_name_length_validated(self, panel: PanelEnv) -> None:
        resp = panel.client.put("/api/account/profile", json={"name": "x"}, cookies=panel.cookies("staff"))
        assert resp.status_code == 422
