"""
services/accounts.py -- Account-level operations spanning auth and audit stores.

delete_account() removes a user's audit rows, sessions, linked OAuth accounts
and the user row in ONE transaction. Either everything goes or nothing does;
a failure half-way cannot leave audit rows pointing at a missing user or a
user without their sessions.

Both stores must share the same Engine (see core.database.create_db_engine).
"""

from __future__ import annotations

import logging

from audit.store import AuditLogStore
from auth.store import UserStore

logger = logging.getLogger("adpanel.services.accounts")


def delete_account(user_store: UserStore, audit_store: AuditLogStore, user_id: int) -> bool:
    """Delete user_id and everything that belongs to it.

    Returns True if the user existed. Database errors propagate after the
    transaction has been rolled back.
    """
    if user_store.engine is not audit_store.engine:
        raise ValueError("delete_account requires both stores to share one Engine")
    with user_store.engine.begin() as conn:
        removed_logs = audit_store.delete_for_user(user_id, conn=conn)
        deleted = user_store.delete_user(user_id, conn=conn)
    logger.info("Deleted account %s (user_row=%s, audit_rows=%d)", user_id, deleted, removed_logs)
    return deleted
