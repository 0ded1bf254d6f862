"""
auth/permissions.py -- Role-based route permission table.

The table is the single authority for "who may see what". It is built once at
import time and exposed read-only (MappingProxyType of frozensets), so nothing
at runtime can widen a route's role set.

Fail-closed: a route missing from the table is denied for every role,
including host.

Default-role fallback lives in resolve_role(), which callers apply to the
stored role string BEFORE consulting the table. can_access_route() itself never
guesses a role.

Layer rule: no imports from api/, web/, audit/, maintenance/ or client/.
"""

from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType

logger = logging.getLogger("adpanel.auth.permissions")


class Role(str, Enum):
    host = "host"
    admin = "admin"
    staff = "staff"


DEFAULT_ROLE = Role.staff

SETTINGS_ROUTE = "/settings"

ROUTE_ROLES: MappingProxyType[str, frozenset[Role]] = MappingProxyType(
    {
        "/dashboard": frozenset({Role.host, Role.admin, Role.staff}),
        "/admanager": frozenset({Role.host, Role.admin}),
        "/google-sheets": frozenset({Role.host, Role.admin}),
        "/payments": frozenset({Role.host, Role.admin}),
        SETTINGS_ROUTE: frozenset({Role.host, Role.admin, Role.staff}),
        "/admin": frozenset({Role.host}),
    }
)

# Landing order after login. /settings is last and open to every role.
ROUTE_PRIORITY: tuple[str, ...] = (
    "/dashboard",
    "/admanager",
    "/google-sheets",
    "/payments",
    "/admin",
    SETTINGS_ROUTE,
)


def resolve_role(value: str | Role | None) -> Role:
    """Map a stored role value to a Role, defaulting to staff.

    None, empty strings and unrecognised values all resolve to DEFAULT_ROLE.
    """
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        if value:
            logger.warning("Unknown role %r -- treating as %s", value, DEFAULT_ROLE.value)
        return DEFAULT_ROLE


def can_access_route(role: str | Role | None, route: str) -> bool:
    """Return True if role may visit route.

    False when role is missing or the route is not in the table. String roles
    are accepted as long as they match a Role value exactly; anything else is
    not a member of any role set.
    """
    if not role:
        return False
    allowed = ROUTE_ROLES.get(route)
    if allowed is None:
        return False
    try:
        return Role(role) in allowed
    except ValueError:
        return False


def get_first_accessible_route(role: str | Role | None) -> str:
    """Return the first route in ROUTE_PRIORITY that role may visit.

    Falls back to /settings so every authenticated user has somewhere to land
    and a denied route can never redirect back to itself.
    """
    for route in ROUTE_PRIORITY:
        if can_access_route(role, route):
            logger.debug("First accessible route for %r: %s", role, route)
            return route
    return SETTINGS_ROUTE
