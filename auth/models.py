"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; stores and routes do the work.

Layer rule: no imports from api/, web/, audit/, maintenance/ or client/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """Represents an account holder in AdPanel.

    email is the login identifier and is always stored lower-cased.

    role is stored as a plain string ("host", "admin", "staff"). Callers turn
    it into a Role via auth.permissions.resolve_role(), which defaults unknown
    values to staff.

    hashed_password is None for OAuth-only users (they have no local password).
    permissions is a free-form list of feature flags ("view_admanager", ...)
    kept alongside the role for the admin panel.
    """

    email: str
    role: str = "staff"
    id: int | None = None
    name: str | None = None
    hashed_password: str | None = None  # None = OAuth-only user
    permissions: list[str] = field(default_factory=list)
    image: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Session:
    """A browser login session. session_token is the cookie value.

    user_id is not constrained by a foreign key: sessions can outlive their
    user, and maintenance.tasks.clean_sessions() removes the orphans.
    """

    session_token: str
    user_id: int
    expires: str  # ISO 8601 UTC
    id: int | None = None


@dataclass
class OAuthAccount:
    """A linked Facebook or Google identity and its stored tokens.

    expires_at is epoch seconds, as returned by the provider token endpoint.
    """

    user_id: int
    provider: str  # "facebook", "google"
    provider_account_id: str
    id: int | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    scope: str | None = None
    token_type: str | None = None
    id_token: str | None = None
    expires_at: int | None = None


@dataclass
class AllowedEmail:
    """An email address pre-approved for account registration."""

    email: str
    id: int | None = None
    note: str | None = None
    created_by: str | None = None
    created_at: str | None = None
