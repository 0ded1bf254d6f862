"""
tests/test_store.py -- UserStore behaviour that the routes and scripts rely on.
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import AllowedEmail, OAuthAccount, User
from auth.store import AccountInUseError
from conftest import make_test_stores


@pytest.fixture
def user_store():
    store, _audit_store = make_test_stores("user_store_unit")
    yield store
    store.close()


class TestUsers:
    def test_email_is_normalized(self, user_store) -> None:
        uid = user_store.create_user(User(email="  Mixed.Case@Example.COM ", role="host"))
        assert user_store.get_by_email("mixed.case@example.com").id == uid
        assert user_store.get_role("MIXED.CASE@example.com") == "host"

    def test_duplicate_email_raises(self, user_store) -> None:
        user_store.create_user(User(email="dup@example.com"))
        with pytest.raises(IntegrityError):
            user_store.create_user(User(email="DUP@example.com"))

    def test_permissions_round_trip(self, user_store) -> None:
        uid = user_store.create_user(User(email="perm@example.com", permissions=["view_admanager"]))
        user_store.update_user(uid, permissions=["view_admanager", "view_google_sheets"])
        assert user_store.get_by_id(uid).permissions == ["view_admanager", "view_google_sheets"]

    def test_update_rejects_unknown_fields(self, user_store) -> None:
        uid = user_store.create_user(User(email="strict@example.com"))
        with pytest.raises(ValueError):
            user_store.update_user(uid, email="other@example.com")

    def test_search_and_role_filters(self, user_store) -> None:
        user_store.create_user(User(email="alice@example.com", name="Alice", role="host"))
        user_store.create_user(User(email="bob@example.com", name="Bob", role="staff"))
        assert [u.email for u in user_store.list_users(search="ali")] == ["alice@example.com"]
        assert user_store.count_users(role="staff") == 1
        assert user_store.count_users_by_role() == {"host": 1, "staff": 1}

    def test_get_role_for_unknown_email(self, user_store) -> None:
        assert user_store.get_role("nobody@example.com") is None


class TestSessions:
    def test_expired_session_is_not_returned(self, user_store) -> None:
        uid = user_store.create_user(User(email="s@example.com"))
        live = user_store.create_session(uid, 3600)
        expired = user_store.create_session(uid, -1)
        assert user_store.get_session(live.session_token).user_id == uid
        assert user_store.get_session(expired.session_token) is None

    def test_orphan_sessions_have_no_owner(self, user_store) -> None:
        uid = user_store.create_user(User(email="owner@example.com"))
        user_store.create_session(uid, 3600)
        user_store.create_session(424242, 3600)
        owners = [owner.email if owner else None for _session, owner in user_store.list_sessions()]
        assert owners == ["owner@example.com", None]


class TestLinkedAccounts:
    def test_relink_refreshes_tokens(self, user_store) -> None:
        uid = user_store.create_user(User(email="fb@example.com"))
        first = user_store.link_account(
            OAuthAccount(user_id=uid, provider="facebook", provider_account_id="123", access_token="old")
        )
        second = user_store.link_account(
            OAuthAccount(user_id=uid, provider="facebook", provider_account_id="123", access_token="new")
        )
        assert first == second
        assert user_store.get_account(uid, "facebook").access_token == "new"
        assert len(user_store.list_accounts(uid)) == 1

    def test_identity_owned_by_another_user_is_refused(self, user_store) -> None:
        owner = user_store.create_user(User(email="owner-fb@example.com"))
        other = user_store.create_user(User(email="other-fb@example.com"))
        user_store.link_account(
            OAuthAccount(user_id=owner, provider="facebook", provider_account_id="fb1", access_token="A-TOKEN")
        )

        with pytest.raises(AccountInUseError) as excinfo:
            user_store.link_account(
                OAuthAccount(user_id=other, provider="facebook", provider_account_id="fb1", access_token="B-TOKEN")
            )

        assert excinfo.value.owner_id == owner
        assert user_store.get_account(owner, "facebook").access_token == "A-TOKEN"
        assert user_store.get_account(other, "facebook") is None

    def test_delete_accounts_by_provider(self, user_store) -> None:
        uid = user_store.create_user(User(email="both@example.com"))
        user_store.link_account(OAuthAccount(user_id=uid, provider="facebook", provider_account_id="1"))
        user_store.link_account(OAuthAccount(user_id=uid, provider="google", provider_account_id="2"))
        assert user_store.delete_accounts(uid, "facebook") == 1
        assert [a.provider for a in user_store.list_accounts(uid)] == ["google"]


class TestAllowList:
    def test_upsert_is_idempotent(self, user_store) -> None:
        assert user_store.upsert_allowed_email(" New@Example.com", "first", "admin") is True
        assert user_store.upsert_allowed_email("new@example.com", "second", "admin") is False
        entry = user_store.get_allowed_email("new@example.com")
        assert entry.note == "first"

    def test_add_duplicate_raises(self, user_store) -> None:
        user_store.add_allowed_email(AllowedEmail(email="x@example.com"))
        with pytest.raises(IntegrityError):
            user_store.add_allowed_email(AllowedEmail(email="X@example.com"))

    def test_delete(self, user_store) -> None:
        entry_id = user_store.add_allowed_email(AllowedEmail(email="bye@example.com"))
        assert user_store.delete_allowed_email(entry_id) is True
        assert user_store.is_email_allowed("bye@example.com") is False
        assert user_store.delete_allowed_email(entry_id) is False
