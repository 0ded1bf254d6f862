"""
maintenance/tasks.py -- One-shot maintenance operations against the database.

Each task takes its stores and inputs explicitly and reports progress through
an echo callable (print by default), so the scripts/ wrappers stay thin and
tests can capture output. Tasks that walk a list handle items one at a time
in order; a failing item is reported and the batch carries on.

Nothing here reads hardcoded emails or passwords. Inputs always come from
the caller (script arguments).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from audit.store import AuditLogStore
from auth.store import UserStore, normalize_email
from auth.tokens import hash_password
from core.config import get_settings
from core.database import create_db_engine
from services.accounts import delete_account

logger = logging.getLogger("adpanel.maintenance")

Echo = Callable[[str], None]

MIN_PASSWORD_LENGTH = 6


@dataclass
class BatchResult:
    """Outcome of a task that processes a list of items."""

    succeeded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@contextmanager
def open_stores(db_url: str | None = None) -> Iterator[tuple[UserStore, AuditLogStore]]:
    """Yield (user_store, audit_store) on one engine; dispose it afterwards.

    db_url defaults to Settings.database_url.
    """
    engine = create_db_engine(db_url or get_settings().database_url)
    try:
        yield UserStore(engine), AuditLogStore(engine)
    finally:
        engine.dispose()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def list_users(user_store: UserStore, echo: Echo = print) -> int:
    """Print every user, newest first. Returns the number of users."""
    users = user_store.list_users()
    echo(f"Users: {len(users)}")
    for user in users:
        echo(f"- {user.email} | {user.name or 'N/A'} | {user.role} | created {user.created_at}")
    return len(users)


def set_user_password(user_store: UserStore, email: str, password: str, echo: Echo = print) -> bool:
    """Hash password and store it for email. Returns False if nothing changed."""
    if len(password) < MIN_PASSWORD_LENGTH:
        echo(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        return False
    user = user_store.get_by_email(email)
    if user is None:
        echo(f"User not found: {email}")
        return False
    user_store.update_user(user.id, hashed_password=hash_password(password))
    echo(f"Password updated for {user.email}")
    logger.info("Password reset for user %s via maintenance task", user.id)
    return True


def delete_user(user_store: UserStore, audit_store: AuditLogStore, email: str, echo: Echo = print) -> bool:
    """Delete the user with email plus their sessions, accounts and audit rows."""
    user = user_store.get_by_email(email)
    if user is None:
        echo(f"User not found: {email}")
        return False
    delete_account(user_store, audit_store, user.id)
    echo(f"Deleted user {user.email} (id {user.id})")
    return True


def debug_user(user_store: UserStore, email: str, echo: Echo = print) -> bool:
    """Print what the database knows about email. Returns True if the user exists."""
    echo(f"Debugging user: {email}")
    user = user_store.get_by_email(email)
    if user is None:
        echo("User not found in database")
        echo(f"Email in allow-list: {'yes' if user_store.is_email_allowed(email) else 'no'}")
        return False

    echo(f"  ID: {user.id}")
    echo(f"  Email: {user.email}")
    echo(f"  Name: {user.name or '(not set)'}")
    echo(f"  Role: {user.role}")
    echo(f"  Permissions: {', '.join(user.permissions) or '(none)'}")
    echo(f"  Has password: {'yes' if user.hashed_password else 'no'}")
    echo(f"  Created: {user.created_at}")

    accounts = user_store.list_accounts(user.id)
    echo(f"Linked accounts ({len(accounts)}):")
    if not accounts:
        echo("  (no OAuth accounts linked)")
    for account in accounts:
        echo(f"  - {account.provider}: {account.provider_account_id}")
        echo(f"    Has access token: {'yes' if account.access_token else 'no'}")

    sessions = [s for s, _ in user_store.list_sessions(user_id=user.id) if user_store.get_session(s.session_token)]
    echo(f"Active sessions: {len(sessions)}")
    return True


def remove_permission(user_store: UserStore, email: str, permission: str, echo: Echo = print) -> bool:
    """Drop permission from the user's permission list. Returns True if it was present."""
    user = user_store.get_by_email(email)
    if user is None:
        echo(f"User not found: {email}")
        return False
    echo(f"Current permissions: {user.permissions}")
    if permission not in user.permissions:
        echo(f"{user.email} does not have {permission}")
        return False
    remaining = [p for p in user.permissions if p != permission]
    user_store.update_user(user.id, permissions=remaining)
    echo(f"Updated permissions: {remaining}")
    return True


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


def clean_sessions(user_store: UserStore, echo: Echo = print) -> int:
    """Delete sessions whose user no longer exists, then list the rest.

    Returns the number of sessions removed.
    """
    pairs = user_store.list_sessions()
    echo(f"Sessions: {len(pairs)}")
    orphans = [session for session, owner in pairs if owner is None]
    echo(f"Orphan sessions (no user): {len(orphans)}")

    removed = 0
    for session in orphans:
        try:
            user_store.delete_session_by_id(session.id)
        except SQLAlchemyError:
            logger.exception("Failed to delete session %s", session.id)
            echo(f"Failed to delete session {session.id}")
            continue
        removed += 1
        echo(f"Deleted session {session.id}")

    echo("Remaining sessions:")
    for session, owner in user_store.list_sessions():
        who = f"{owner.email} ({owner.name or 'N/A'})" if owner else "N/A"
        echo(f"- User: {who}")
        echo(f"  Expires: {session.expires}")
    return removed


# ---------------------------------------------------------------------------
# Registration allow-list
# ---------------------------------------------------------------------------


def add_allowed_emails(
    user_store: UserStore,
    emails: Iterable[str],
    note: str | None = None,
    created_by: str = "admin",
    echo: Echo = print,
) -> BatchResult:
    """Allow-list each email in order. Already-listed emails are skipped."""
    emails = list(emails)
    echo(f"Adding {len(emails)} emails...")
    result = BatchResult()
    for raw in emails:
        email = normalize_email(raw)
        if "@" not in email:
            echo(f"! {raw} - not an email address")
            result.failed.append(raw)
            continue
        try:
            created = user_store.upsert_allowed_email(email, note, created_by)
        except SQLAlchemyError as exc:
            logger.exception("Failed to allow-list %s", email)
            echo(f"! {email} - {exc}")
            result.failed.append(email)
            continue
        if created:
            echo(f"+ {email}")
            result.succeeded.append(email)
        else:
            echo(f"= {email} (already listed)")
            result.skipped.append(email)

    echo(f"Total allowed emails: {user_store.count_allowed_emails()}")
    return result


def seed_allowed_emails(user_store: UserStore, echo: Echo = print) -> BatchResult:
    """Allow-list every existing user's email so they can keep signing in."""
    users = user_store.list_users()
    echo(f"Found {len(users)} existing users")
    result = BatchResult()
    for user in users:
        note = f"{user.name or 'N/A'} ({user.role}) - Existing user"
        try:
            created = user_store.upsert_allowed_email(user.email, note, "system")
        except SQLAlchemyError:
            logger.exception("Failed to seed %s", user.email)
            echo(f"! skipped {user.email}")
            result.failed.append(user.email)
            continue
        if created:
            echo(f"+ {user.email}")
            result.succeeded.append(user.email)
        else:
            result.skipped.append(user.email)

    check_allowed_emails(user_store, echo=echo)
    return result


def check_allowed_emails(user_store: UserStore, echo: Echo = print) -> int:
    """Print the allow-list. Returns its size."""
    entries = user_store.list_allowed_emails()
    echo(f"Allowed emails: {len(entries)}")
    for entry in entries:
        echo(f"  - {entry.email} | {entry.note or ''} | by {entry.created_by or 'N/A'}")
    return len(entries)
