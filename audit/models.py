"""
audit/models.py -- Domain types for the audit trail.

AuditAction is a closed set: record() only accepts members of this enum, so
ad-hoc action strings cannot leak into the table.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class AuditAction(str, Enum):
    USER_LOGIN = "USER_LOGIN"
    USER_REGISTER = "USER_REGISTER"
    SYNC_INTERESTS = "SYNC_INTERESTS"
    EXPORT_DATA = "EXPORT_DATA"
    CREATE_CAMPAIGN = "CREATE_CAMPAIGN"
    UPDATE_CAMPAIGN = "UPDATE_CAMPAIGN"
    API_ERROR = "API_ERROR"
    # Admin panel
    CHANGE_ROLE = "CHANGE_ROLE"
    DELETE_USER = "DELETE_USER"
    # Facebook/Google connections
    CONNECT_ACCOUNT = "CONNECT_ACCOUNT"
    DISCONNECT_ACCOUNT = "DISCONNECT_ACCOUNT"


@dataclass(frozen=True)
class AuditEvent:
    """One thing worth recording. Everything but action is optional context.

    details must be JSON-serializable; it is stored as a JSON blob.
    """

    action: AuditAction
    user_id: int | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    details: dict[str, Any] | None = None
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass
class AuditLogEntry:
    """A persisted audit row, as read back by the admin panel."""

    id: int
    action: str
    created_at: str
    user_id: int | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    details: dict[str, Any] | None = None
    ip_address: str | None = None
    user_agent: str | None = None
