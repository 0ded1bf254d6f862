"""
audit/writer.py -- Best-effort audit log writer.

AuditLogger.record() is the only way application code writes audit rows. It
never raises: a failed write is logged locally and reported as False, so an
audit outage cannot break the login, registration or admin action that
triggered it. Durability of the trail is best-effort.
"""

from __future__ import annotations

import logging
from typing import Protocol

from audit.models import AuditEvent

logger = logging.getLogger("adpanel.audit")


class AuditSink(Protocol):
    def append(self, event: AuditEvent) -> int: ...


class AuditLogger:
    def __init__(self, sink: AuditSink) -> None:
        self._sink = sink

    def record(self, event: AuditEvent) -> bool:
        """Persist event. Returns True on success, False if the write failed."""
        try:
            self._sink.append(event)
        except Exception:
            logger.exception("Failed to create audit log (action=%s)", event.action.value)
            return False
        return True
