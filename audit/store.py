"""
audit/store.py -- SQLAlchemy Core persistence for audit log rows.

Pattern: Repository + Data Mapper, same as auth/store.py.

The table is append-only from the application's point of view. The single
exception is delete_for_user(), which account deletion calls inside the same
transaction that removes the user (see services/accounts.py).

user_id has no foreign key: rows written for a user are removed explicitly,
and rows without a user (failed logins, system events) are allowed.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Connection, Engine

from audit.models import AuditEvent, AuditLogEntry

metadata = MetaData()

_audit_logs = Table(
    "audit_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer),
    Column("action", String(50), nullable=False),
    Column("entity_type", String(50)),
    Column("entity_id", String(255)),
    Column("details", Text),  # JSON blob
    Column("ip_address", String(64)),
    Column("user_agent", Text),
    Column("created_at", String(32), nullable=False),
    Index("ix_audit_logs_user_id", "user_id"),
    Index("ix_audit_logs_created_at", "created_at"),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLogStore:
    """Repository for audit rows. Shares the application Engine."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine)

    def append(self, event: AuditEvent) -> int:
        """Insert one row for event and return its ID. Raises on DB failure."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _audit_logs.insert().values(
                    user_id=event.user_id,
                    action=event.action.value,
                    entity_type=event.entity_type,
                    entity_id=event.entity_id,
                    details=json.dumps(event.details) if event.details is not None else None,
                    ip_address=event.ip_address,
                    user_agent=event.user_agent,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def list_recent(
        self,
        action: str = "",
        user_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditLogEntry]:
        """Return rows newest first, optionally filtered by action and/or user."""
        query = self._filtered(select(_audit_logs), action, user_id)
        query = query.order_by(_audit_logs.c.created_at.desc(), _audit_logs.c.id.desc()).limit(limit).offset(offset)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_entry(r) for r in rows]

    def count(self, action: str = "", user_id: int | None = None, since: str | None = None) -> int:
        """Count rows matching the filters. since is an ISO 8601 lower bound."""
        query = self._filtered(select(func.count()).select_from(_audit_logs), action, user_id)
        if since is not None:
            query = query.where(_audit_logs.c.created_at >= since)
        with self.engine.connect() as conn:
            result = conn.execute(query).scalar()
        return result or 0

    @staticmethod
    def _filtered(query, action: str, user_id: int | None):
        if action:
            query = query.where(_audit_logs.c.action == action)
        if user_id is not None:
            query = query.where(_audit_logs.c.user_id == user_id)
        return query

    def delete_for_user(self, user_id: int, conn: Connection) -> int:
        """Delete every row for user_id inside the caller's transaction."""
        result = conn.execute(_audit_logs.delete().where(_audit_logs.c.user_id == user_id))
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


def _row_to_entry(row) -> AuditLogEntry:
    return AuditLogEntry(
        id=row.id,
        user_id=row.user_id,
        action=row.action,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        details=json.loads(row.details) if row.details else None,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        created_at=row.created_at,
    )
