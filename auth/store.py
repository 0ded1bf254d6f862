"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper. UserStore is the repository for users,
sessions, linked OAuth accounts and the registration allow-list; the _row_to_*
functions are the mappers. Route and script code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Emails are normalized (strip + lower) on every write and lookup so the
  UNIQUE constraint on users.email and allowed_emails.email cannot be
  bypassed with case variants.

  UNIQUE(provider, provider_account_id) on oauth_accounts: re-linking the same
  provider identity updates the stored tokens instead of inserting a duplicate.
  Linking an identity that already belongs to another user raises
  AccountInUseError; ownership never moves silently.

  sessions.user_id deliberately has no foreign key. Sessions left behind by a
  removed user are cleaned up by maintenance.tasks.clean_sessions().

The Engine is injected (see core.database.create_db_engine) so that the audit
store shares it and account deletion can run in one transaction.

Layer rule: no imports from api/, web/, audit/, maintenance/ or client/.
"""

from __future__ import annotations

import json
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Connection, Engine

from auth.models import AllowedEmail, OAuthAccount, Session, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(255)),
    Column("hashed_password", Text),  # NULL for OAuth-only users
    Column("role", String(30), nullable=False, server_default="staff"),
    Column("permissions", Text, nullable=False, server_default="[]"),  # JSON array
    Column("image", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("session_token", String(128), nullable=False, unique=True),
    Column("user_id", Integer, nullable=False),
    Column("expires", String(32), nullable=False),
)

_oauth_accounts = Table(
    "oauth_accounts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("provider", String(30), nullable=False),
    Column("provider_account_id", String(255), nullable=False),
    Column("access_token", Text),
    Column("refresh_token", Text),
    Column("scope", Text),
    Column("token_type", String(30)),
    Column("id_token", Text),
    Column("expires_at", Integer),  # epoch seconds
    UniqueConstraint("provider", "provider_account_id", name="uq_oauth_provider_account"),
)

_allowed_emails = Table(
    "allowed_emails",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("note", Text),
    Column("created_by", String(255)),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class AccountInUseError(Exception):
    """The provider identity is already linked to a different user."""

    def __init__(self, provider: str, provider_account_id: str, owner_id: int) -> None:
        super().__init__(f"{provider} account {provider_account_id} is linked to user {owner_id}")
        self.provider = provider
        self.provider_account_id = provider_account_id
        self.owner_id = owner_id


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    """Return the canonical stored form of an email address."""
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User, Session, OAuthAccount and AllowedEmail entities.

    Usage:
        engine = create_db_engine("sqlite:///adpanel.db")
        store = UserStore(engine)
        store.create_user(User(email="owner@example.com", role="host"))
        user = store.get_by_email("owner@example.com")
        store.close()
    """

    # Columns update_user() is allowed to touch. Anything else is a bug in the
    # caller and raises ValueError.
    _MUTABLE_USER_FIELDS: frozenset = frozenset({"name", "role", "permissions", "hashed_password", "image"})

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers (e.g. POST /api/register) turn that into a 409.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=normalize_email(user.email),
                    name=user.name,
                    hashed_password=user.hashed_password,
                    role=user.role,
                    permissions=json.dumps(user.permissions),
                    image=user.image,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_role(self, email: str) -> str | None:
        """Return the stored role string for email, or None if no such user.

        This is the narrow lookup the route guard needs; it does not load the
        full user record.
        """
        with self.engine.connect() as conn:
            row = conn.execute(select(_users.c.role).where(_users.c.email == normalize_email(email))).fetchone()
        return row.role if row is not None else None

    def list_users(
        self,
        search: str = "",
        role: str = "",
        limit: int | None = None,
        offset: int = 0,
    ) -> list[User]:
        """Return users newest first, optionally filtered and paginated.

        search matches a substring of the name or email. role matches exactly.
        """
        query = self._filtered_users(select(_users), search, role).order_by(_users.c.created_at.desc(), _users.c.id.desc())
        if limit is not None:
            query = query.limit(limit).offset(offset)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows]

    def count_users(self, search: str = "", role: str = "") -> int:
        query = self._filtered_users(select(func.count()).select_from(_users), search, role)
        with self.engine.connect() as conn:
            result = conn.execute(query).scalar()
        return result or 0

    def count_users_by_role(self) -> dict[str, int]:
        """Return {role: user_count} for every role present in the table."""
        with self.engine.connect() as conn:
            rows = conn.execute(select(_users.c.role, func.count()).group_by(_users.c.role)).fetchall()
        return {row[0]: row[1] for row in rows}

    @staticmethod
    def _filtered_users(query, search: str, role: str):
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(_users.c.name.like(pattern), _users.c.email.like(pattern)))
        if role:
            query = query.where(_users.c.role == role)
        return query

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user and stamp updated_at.

        Accepted fields: name, role, permissions (list), hashed_password, image.
        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - self._MUTABLE_USER_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if "permissions" in fields:
            fields["permissions"] = json.dumps(list(fields["permissions"]))
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int, conn: Connection | None = None) -> bool:
        """Delete a user together with their sessions and linked OAuth accounts.

        Runs in its own transaction unless an open Connection is supplied, in
        which case the caller owns the transaction (see
        services.accounts.delete_account, which also removes audit rows).

        Returns True if the user row existed.
        """
        if conn is not None:
            return self._delete_user(conn, user_id)
        with self.engine.begin() as own_conn:
            return self._delete_user(own_conn, user_id)

    @staticmethod
    def _delete_user(conn: Connection, user_id: int) -> bool:
        conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
        conn.execute(_oauth_accounts.delete().where(_oauth_accounts.c.user_id == user_id))
        result = conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, user_id: int, ttl_seconds: int) -> Session:
        """Create a browser session and return it. The token is 256-bit random."""
        session = Session(
            session_token=secrets.token_urlsafe(32),
            user_id=user_id,
            expires=(datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)).isoformat(),
        )
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.insert().values(
                    session_token=session.session_token,
                    user_id=session.user_id,
                    expires=session.expires,
                )
            )
            conn.commit()
            session.id = result.inserted_primary_key[0]
        return session

    def get_session(self, session_token: str) -> Session | None:
        """Return the session for token, or None if missing or expired."""
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.session_token == session_token)).fetchone()
        if row is None:
            return None
        session = _row_to_session(row)
        if datetime.fromisoformat(session.expires) <= datetime.now(timezone.utc):
            return None
        return session

    def delete_session(self, session_token: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.session_token == session_token))
            conn.commit()
        return result.rowcount > 0

    def delete_session_by_id(self, session_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.id == session_id))
            conn.commit()
        return result.rowcount > 0

    def list_sessions(self, user_id: int | None = None) -> list[tuple[Session, User | None]]:
        """Return (session, owner) pairs. owner is None for orphaned sessions.

        LEFT OUTER JOIN so sessions whose user row is gone are still returned.
        """
        query = (
            select(_sessions, _users.c.email, _users.c.name)
            .select_from(_sessions.outerjoin(_users, _sessions.c.user_id == _users.c.id))
            .order_by(_sessions.c.id)
        )
        if user_id is not None:
            query = query.where(_sessions.c.user_id == user_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        pairs: list[tuple[Session, User | None]] = []
        for row in rows:
            owner = User(id=row.user_id, email=row.email, name=row.name) if row.email is not None else None
            pairs.append((_row_to_session(row), owner))
        return pairs

    # ------------------------------------------------------------------
    # Linked OAuth accounts
    # ------------------------------------------------------------------

    def link_account(self, account: OAuthAccount) -> int:
        """Insert a linked account, or refresh tokens if the pair is already linked.

        Returns the account ID. The (provider, provider_account_id) pair is the
        identity and belongs to one user only.

        Raises:
            AccountInUseError: the pair is already linked to a different user.
                Nothing is written.
        """
        tokens = {
            "access_token": account.access_token,
            "refresh_token": account.refresh_token,
            "scope": account.scope,
            "token_type": account.token_type,
            "id_token": account.id_token,
            "expires_at": account.expires_at,
        }
        with self.engine.begin() as conn:
            existing = conn.execute(
                select(_oauth_accounts.c.id, _oauth_accounts.c.user_id).where(
                    (_oauth_accounts.c.provider == account.provider)
                    & (_oauth_accounts.c.provider_account_id == account.provider_account_id)
                )
            ).fetchone()
            if existing is not None:
                if existing.user_id != account.user_id:
                    raise AccountInUseError(account.provider, account.provider_account_id, existing.user_id)
                conn.execute(_oauth_accounts.update().where(_oauth_accounts.c.id == existing.id).values(**tokens))
                return existing.id
            result = conn.execute(
                _oauth_accounts.insert().values(
                    user_id=account.user_id,
                    provider=account.provider,
                    provider_account_id=account.provider_account_id,
                    **tokens,
                )
            )
            return result.inserted_primary_key[0]

    def get_account(self, user_id: int, provider: str) -> OAuthAccount | None:
        """Return the first linked account for (user, provider), or None."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _oauth_accounts.select()
                .where((_oauth_accounts.c.user_id == user_id) & (_oauth_accounts.c.provider == provider))
                .order_by(_oauth_accounts.c.id)
            ).fetchone()
        return _row_to_account(row) if row is not None else None

    def list_accounts(self, user_id: int) -> list[OAuthAccount]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _oauth_accounts.select().where(_oauth_accounts.c.user_id == user_id).order_by(_oauth_accounts.c.id)
            ).fetchall()
        return [_row_to_account(r) for r in rows]

    def delete_accounts(self, user_id: int, provider: str) -> int:
        """Unlink every account of provider for the user. Returns rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _oauth_accounts.delete().where(
                    (_oauth_accounts.c.user_id == user_id) & (_oauth_accounts.c.provider == provider)
                )
            )
            conn.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Registration allow-list
    # ------------------------------------------------------------------

    def is_email_allowed(self, email: str) -> bool:
        return self.get_allowed_email(email) is not None

    def get_allowed_email(self, email: str) -> AllowedEmail | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _allowed_emails.select().where(_allowed_emails.c.email == normalize_email(email))
            ).fetchone()
        return _row_to_allowed_email(row) if row is not None else None

    def add_allowed_email(self, entry: AllowedEmail) -> int:
        """Insert an allow-list entry and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the email is already listed.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _allowed_emails.insert().values(
                    email=normalize_email(entry.email),
                    note=entry.note,
                    created_by=entry.created_by,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def upsert_allowed_email(self, email: str, note: str | None, created_by: str | None) -> bool:
        """Add email to the allow-list if absent. Existing entries are left as-is.

        Returns True if a new entry was created.
        """
        if self.is_email_allowed(email):
            return False
        self.add_allowed_email(AllowedEmail(email=email, note=note, created_by=created_by))
        return True

    def list_allowed_emails(self) -> list[AllowedEmail]:
        """Return the allow-list newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _allowed_emails.select().order_by(_allowed_emails.c.created_at.desc(), _allowed_emails.c.id.desc())
            ).fetchall()
        return [_row_to_allowed_email(r) for r in rows]

    def count_allowed_emails(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_allowed_emails)).scalar()
        return result or 0

    def delete_allowed_email(self, entry_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_allowed_emails.delete().where(_allowed_emails.c.id == entry_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        hashed_password=row.hashed_password,
        role=row.role,
        permissions=json.loads(row.permissions) if row.permissions else [],
        image=row.image,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        session_token=row.session_token,
        user_id=row.user_id,
        expires=row.expires,
    )


def _row_to_account(row) -> OAuthAccount:
    return OAuthAccount(
        id=row.id,
        user_id=row.user_id,
        provider=row.provider,
        provider_account_id=row.provider_account_id,
        access_token=row.access_token,
        refresh_token=row.refresh_token,
        scope=row.scope,
        token_type=row.token_type,
        id_token=row.id_token,
        expires_at=row.expires_at,
    )


def _row_to_allowed_email(row) -> AllowedEmail:
    return AllowedEmail(
        id=row.id,
        email=row.email,
        note=row.note,
        created_by=row.created_by,
        created_at=row.created_at,
    )
