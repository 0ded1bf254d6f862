"""
auth/guard.py -- Server-side route guard.

check_route_access() is a pure function of (identity, route, store): the
caller resolves the identity from the request and passes it in explicitly, so
the guard never reads ambient request state.

A redirect is signalled by raising RouteRedirect. The exception is the
control-flow exit: nothing after the guard call runs in the handler. The
FastAPI app registers an exception handler that turns it into a 302.

Layer rule: no imports from api/, web/, audit/ or client/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from auth.permissions import Role, can_access_route, get_first_accessible_route, resolve_role

logger = logging.getLogger("adpanel.auth.guard")

LOGIN_ROUTE = "/login"


@dataclass(frozen=True)
class Identity:
    """Who the current request belongs to, as established by the session layer."""

    email: str | None
    user_id: int | None = None


class RoleStore(Protocol):
    def get_role(self, email: str) -> str | None: ...


class RouteRedirect(Exception):
    """Raised by the guard to end the request with a redirect to location."""

    def __init__(self, location: str) -> None:
        super().__init__(location)
        self.location = location


def get_user_role(identity: Identity | None, store: RoleStore) -> Role | None:
    """Return the identity's resolved role, or None if unauthenticated or unknown.

    A user row whose role column is empty or unrecognised resolves to staff.
    """
    if identity is None or not identity.email:
        return None
    stored = store.get_role(identity.email)
    if stored is None:
        return None
    return resolve_role(stored)


def check_route_access(identity: Identity | None, route: str, store: RoleStore) -> Role:
    """Enforce the permission table for route and return the caller's role.

    Raises:
        RouteRedirect("/login"): no identity, or no user record for it.
        RouteRedirect(first accessible route): role may not visit route.
    """
    if identity is None or not identity.email:
        raise RouteRedirect(LOGIN_ROUTE)

    role = get_user_role(identity, store)
    if role is None:
        logger.info("No user record for %s -- redirecting to login", identity.email)
        raise RouteRedirect(LOGIN_ROUTE)

    if not can_access_route(role, route):
        target = get_first_accessible_route(role)
        logger.info("Role %s denied %s -- redirecting to %s", role.value, route, target)
        raise RouteRedirect(target)

    return role
