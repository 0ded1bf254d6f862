"""
api/routes/admin.py -- Admin panel REST endpoints.

Routes:
  POST   /api/admin/auth                   -- admin login; sets admin_token cookie
  DELETE /api/admin/auth                   -- admin logout
  GET    /api/admin?type=overview          -- headline stats, recent users, users by role
  GET    /api/admin?type=users             -- paginated, searchable user list
  GET    /api/admin?type=activities        -- paginated audit log
  POST   /api/admin                        -- {action: changeRole | deleteUser}
  GET    /api/admin/allowed-emails         -- registration allow-list
  POST   /api/admin/allowed-emails         -- add an entry
  DELETE /api/admin/allowed-emails?id=     -- remove an entry

Access: everything except /admin/auth requires require_admin_access, which
accepts a valid admin_token cookie or a signed-in user whose role may open
the /admin page.

Security:
  [H2] POST /admin/auth is rate-limited per IP.
  Admin credentials are compared with secrets.compare_digest.
"""

import logging
import secrets
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import (
    ActivitiesPageResponse,
    AdminActionRequest,
    AdminActionResponse,
    AdminLoginRequest,
    AllowedEmailCreate,
    AllowedEmailCreatedResponse,
    AllowedEmailListResponse,
    AllowedEmailResponse,
    AuditLogResponse,
    OverviewResponse,
    OverviewStats,
    Pagination,
    RoleCount,
    SuccessResponse,
    UserResponse,
    UsersPageResponse,
)
from api.request_info import audit_event
from audit.models import AuditAction
from audit.store import AuditLogStore
from auth.admin_tokens import ADMIN_COOKIE, ADMIN_TOKEN_TTL, create_admin_token
from auth.dependencies import require_admin_access, try_get_current_user
from auth.models import AllowedEmail
from auth.store import UserStore
from core.config import get_settings
from services.accounts import delete_account

logger = logging.getLogger("adpanel.api.admin")

_settings = get_settings()

_ADMIN_ONLY = [Depends(require_admin_access)]
_RECENT_USERS = 10

router = APIRouter()


def _actor(request: Request) -> tuple[int | None, str]:
    """Return (user_id, label) of whoever is driving the admin panel."""
    user = try_get_current_user(request)
    if user is None:
        return None, "admin"
    return user.id, user.email


# ---------------------------------------------------------------------------
# Admin login / logout
# ---------------------------------------------------------------------------


@router.post("/admin/auth", response_model=SuccessResponse)
@limiter.limit(_settings.admin_login_rate_limit)  # [H2]
def admin_login(request: Request, body: AdminLoginRequest) -> JSONResponse:
    """Check the configured admin credentials and issue a 24h admin token."""
    if not _settings.admin_username or not _settings.admin_password:
        raise HTTPException(
            status_code=503,
            detail={"code": "admin_not_configured", "message": "Admin credentials not configured."},
        )
    username_ok = secrets.compare_digest(body.username.encode(), _settings.admin_username.encode())
    password_ok = secrets.compare_digest(body.password.encode(), _settings.admin_password.encode())
    if not (username_ok and password_ok):
        logger.warning("Failed admin login attempt for %r", body.username)
        raise HTTPException(
            status_code=401,
            detail={"code": "bad_credentials", "message": "Invalid username or password."},
        )

    resp = JSONResponse(content=SuccessResponse().model_dump(by_alias=True))
    resp.set_cookie(
        ADMIN_COOKIE,
        value=create_admin_token(),
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=int(ADMIN_TOKEN_TTL.total_seconds()),
        path="/",
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.delete("/admin/auth", response_model=SuccessResponse)
def admin_logout() -> JSONResponse:
    resp = JSONResponse(content=SuccessResponse().model_dump(by_alias=True))
    resp.delete_cookie(ADMIN_COOKIE, path="/")
    return resp


# ---------------------------------------------------------------------------
# Dashboard data
# ---------------------------------------------------------------------------


@router.get("/admin", dependencies=_ADMIN_ONLY)
def admin_data(
    request: Request,
    type: str = "overview",
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1, le=200),
    search: str = "",
    role: str = "",
    action: str = "",
    user_id: int | None = Query(None, alias="userId"),
) -> OverviewResponse | UsersPageResponse | ActivitiesPageResponse:
    user_store: UserStore = request.app.state.user_store
    audit_store: AuditLogStore = request.app.state.audit_store

    if type == "overview":
        midnight = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        return OverviewResponse(
            stats=OverviewStats(
                total_users=user_store.count_users(),
                today_activity=audit_store.count(since=midnight.isoformat()),
            ),
            recent_users=[UserResponse.from_user(u) for u in user_store.list_users(limit=_RECENT_USERS)],
            users_by_role=[RoleCount(role=r, count=c) for r, c in sorted(user_store.count_users_by_role().items())],
        )

    if type == "users":
        limit = limit or 20
        users = user_store.list_users(search=search, role=role, limit=limit, offset=(page - 1) * limit)
        return UsersPageResponse(
            users=[UserResponse.from_user(u) for u in users],
            pagination=Pagination.build(page, limit, user_store.count_users(search=search, role=role)),
        )

    if type == "activities":
        limit = limit or 50
        entries = audit_store.list_recent(action=action, user_id=user_id, limit=limit, offset=(page - 1) * limit)
        return ActivitiesPageResponse(
            activities=[AuditLogResponse.from_entry(e) for e in entries],
            pagination=Pagination.build(page, limit, audit_store.count(action=action, user_id=user_id)),
        )

    raise HTTPException(
        status_code=400,
        detail={"code": "invalid_type", "message": f"Unknown admin data type '{type}'."},
    )


# ---------------------------------------------------------------------------
# Admin actions
# ---------------------------------------------------------------------------


@router.post("/admin", response_model=AdminActionResponse, dependencies=_ADMIN_ONLY)
def admin_action(request: Request, body: AdminActionRequest) -> AdminActionResponse:
    """Change a user's role or delete a user. Both are audited."""
    user_store: UserStore = request.app.state.user_store
    target = user_store.get_by_id(body.user_id)
    if target is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    actor_id, actor_label = _actor(request)

    if body.action == "changeRole":
        if body.new_role is None:
            raise HTTPException(
                status_code=400,
                detail={"code": "invalid_role", "message": "newRole must be one of host, admin, staff."},
            )
        user_store.update_user(target.id, role=body.new_role.value)
        logger.info("%s changed role of %s to %s", actor_label, target.email, body.new_role.value)
        request.app.state.audit.record(
            audit_event(
                request,
                AuditAction.CHANGE_ROLE,
                user_id=actor_id,
                entity_type="user",
                entity_id=str(target.id),
                details={"targetEmail": target.email, "oldRole": target.role, "newRole": body.new_role.value},
            )
        )
        return AdminActionResponse(user=UserResponse.from_user(user_store.get_by_id(target.id)))

    # deleteUser
    if actor_id == target.id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_delete", "message": "Use account deletion to remove your own account."},
        )
    delete_account(user_store, request.app.state.audit_store, target.id)
    logger.info("%s deleted user %s", actor_label, target.email)
    request.app.state.audit.record(
        audit_event(
            request,
            AuditAction.DELETE_USER,
            user_id=actor_id,
            entity_type="user",
            entity_id=str(target.id),
            details={"deletedEmail": target.email, "deletedName": target.name},
        )
    )
    return AdminActionResponse()


# ---------------------------------------------------------------------------
# Registration allow-list
# ---------------------------------------------------------------------------


@router.get("/admin/allowed-emails", response_model=AllowedEmailListResponse, dependencies=_ADMIN_ONLY)
def list_allowed_emails(request: Request) -> AllowedEmailListResponse:
    entries = request.app.state.user_store.list_allowed_emails()
    return AllowedEmailListResponse(data=[AllowedEmailResponse.from_entry(e) for e in entries])


@router.post(
    "/admin/allowed-emails",
    response_model=AllowedEmailCreatedResponse,
    status_code=201,
    dependencies=_ADMIN_ONLY,
)
def add_allowed_email(request: Request, body: AllowedEmailCreate) -> AllowedEmailCreatedResponse:
    user_store: UserStore = request.app.state.user_store
    _, actor_label = _actor(request)
    try:
        user_store.add_allowed_email(AllowedEmail(email=body.email, note=body.note or None, created_by=actor_label))
    except IntegrityError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "Email already exists."},
        ) from exc
    return AllowedEmailCreatedResponse(data=AllowedEmailResponse.from_entry(user_store.get_allowed_email(body.email)))


@router.delete("/admin/allowed-emails", response_model=SuccessResponse, dependencies=_ADMIN_ONLY)
def remove_allowed_email(request: Request, id: int | None = None) -> SuccessResponse:
    if id is None:
        raise HTTPException(
            status_code=400,
            detail={"code": "id_required", "message": "ID is required."},
        )
    if not request.app.state.user_store.delete_allowed_email(id):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Allowed email not found."},
        )
    return SuccessResponse()
