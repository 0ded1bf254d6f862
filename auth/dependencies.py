"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two user auth methods are checked in priority order:
  1. session_token cookie -- DB-backed session set by the login flows.
  2. Authorization: Bearer <token> header -- API clients using JWTs.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.
get_identity() reduces the user to the Identity the route guard consumes.
require_admin_access() admits a valid admin_token cookie, or a signed-in user
whose role may open the /admin route.

Layer rule: no imports from web/, audit/ or client/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.admin_tokens import ADMIN_COOKIE, verify_admin_token
from auth.guard import Identity
from auth.models import User
from auth.permissions import can_access_route, resolve_role
from auth.tokens import SESSION_COOKIE, decode_access_token

ADMIN_ROUTE = "/admin"


def try_get_current_user(request: Request) -> User | None:
    """Attempt to authenticate the request via session cookie or Bearer JWT.

    Returns the authenticated User on success, None on any failure.
    Never raises -- callers that need a hard 401 should use get_current_user().
    """
    user_store = request.app.state.user_store

    # 1. Session cookie (browser)
    session_token = request.cookies.get(SESSION_COOKIE)
    if session_token:
        session = user_store.get_session(session_token)
        if session is not None:
            user = user_store.get_by_id(session.user_id)
            if user is not None:
                return user

    # 2. Authorization: Bearer header (API clients)
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        payload = decode_access_token(auth_header[7:])
        if payload:
            user = user_store.get_by_id(payload["user_id"])
            if user is not None:
                return user

    return None


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user


def get_identity(request: Request) -> Identity | None:
    """Return the request's Identity for the route guard, or None."""
    user = try_get_current_user(request)
    if user is None:
        return None
    return Identity(email=user.email, user_id=user.id)


def has_admin_access(request: Request) -> bool:
    if verify_admin_token(request.cookies.get(ADMIN_COOKIE)):
        return True
    user = try_get_current_user(request)
    return user is not None and can_access_route(resolve_role(user.role), ADMIN_ROUTE)


def require_admin_access(request: Request) -> None:
    """Require admin panel access. Raises HTTP 401 otherwise.

    Use as a router-level dependency:
        router = APIRouter(dependencies=[Depends(require_admin_access)])
    """
    if not has_admin_access(request):
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Admin access required."},
        )
