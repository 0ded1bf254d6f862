"""
tests/conftest.py -- Shared test fixtures for AdPanel integration tests.

This module provides:
  - make_test_stores(): isolated in-memory UserStore + AuditLogStore on one engine
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - panel: a PanelEnv with a TestClient and one signed-in user per role

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment variables must be set before any auth/core import so
get_settings() auto-generates SECRET_KEY in dev mode rather than raising
ValueError, and so the admin login has credentials to check against.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from unittest.mock import MagicMock

# CRITICAL: set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ADMIN_USERNAME", "paneladmin")
os.environ.setdefault("ADMIN_PASSWORD", "panel-admin-password")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from asgi import app
from audit.store import AuditLogStore
from audit.writer import AuditLogger
from auth.models import User
from auth.store import UserStore
from auth.tokens import SESSION_COOKIE, hash_password
from core.database import create_db_engine

TEST_PASSWORD = "password123"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_test_stores(db_suffix: str) -> tuple[UserStore, AuditLogStore]:
    """Create isolated named shared-memory SQLite stores sharing one engine.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    url = f"sqlite:///file:test_adpanel_{db_suffix}?mode=memory&cache=shared&uri=true"
    engine = create_db_engine(url)
    return UserStore(engine), AuditLogStore(engine)


def add_user(store: UserStore, email: str, role: str, name: str | None = None) -> tuple[int, str]:
    """Create a password user and a live session. Returns (user_id, session_token)."""
    uid = store.create_user(
        User(email=email, role=role, name=name or email.split("@")[0], hashed_password=hash_password(TEST_PASSWORD))
    )
    session = store.create_session(uid, 3600)
    return uid, session.session_token


def _patch_lifespan(user_store: UserStore, audit_store: AuditLogStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs. The OAuth registry is mocked to prevent network calls.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.audit_store = audit_store
        app.state.audit = AuditLogger(audit_store)
        app.state.oauth = MagicMock()
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@dataclass
class PanelEnv:
    client: TestClient
    user_store: UserStore
    audit_store: AuditLogStore
    # role -> (user_id, session_token)
    users: dict[str, tuple[int, str]] = field(default_factory=dict)

    def cookies(self, role: str) -> dict[str, str]:
        return {SESSION_COOKIE: self.users[role][1]}

    def user_id(self, role: str) -> int:
        return self.users[role][0]


@pytest.fixture(scope="module")
def panel_env(request) -> Generator[PanelEnv, None, None]:
    """One TestClient per test module, with host/admin/staff users signed in.

    follow_redirects=False so tests can assert on redirect Location headers.
    """
    user_store, audit_store = make_test_stores(request.module.__name__.replace(".", "_"))
    users = {role: add_user(user_store, f"{role}@example.com", role) for role in ("host", "admin", "staff")}

    app.router.lifespan_context = _patch_lifespan(user_store, audit_store)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=False) as client:
        yield PanelEnv(client=client, user_store=user_store, audit_store=audit_store, users=users)

    user_store.close()


@pytest.fixture
def panel(panel_env: PanelEnv) -> PanelEnv:
    """panel_env with a clean cookie jar and fresh rate-limit counters."""
    panel_env.client.cookies.clear()
    limiter.reset()
    return panel_env
