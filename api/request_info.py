"""
api/request_info.py -- Client details attached to audit events.

The app usually runs behind a reverse proxy, so the first X-Forwarded-For hop
is preferred over X-Real-IP, which is preferred over the socket peer.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request

from audit.models import AuditAction, AuditEvent


def client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def audit_event(
    request: Request,
    action: AuditAction,
    user_id: int | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> AuditEvent:
    """Build an AuditEvent carrying the request's IP address and user agent."""
    return AuditEvent(
        action=action,
        user_id=user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent", "unknown"),
    )
