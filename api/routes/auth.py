"""
api/routes/auth.py -- Authentication, registration and route-access endpoints.

Routes:
  POST /api/auth/login                  -- password login; sets session cookie
  POST /api/auth/logout                 -- deletes the DB session and cookie
  POST /api/register                    -- allow-listed self-registration
  GET  /api/auth/check-access?route=    -- {hasAccess, redirectTo?} for a route
  GET  /api/auth/first-route            -- 302 to the caller's landing page
  GET  /api/auth/me                     -- current user info (requires auth)
  GET  /api/auth/providers              -- enabled OAuth providers (public)
  GET  /api/auth/{provider}/login       -- start a Facebook/Google connection
  GET  /api/auth/{provider}/callback    -- finish it; stores the linked account
  POST /api/auth/disconnect-facebook    -- unlink Facebook
  POST /api/auth/disconnect-google      -- unlink Google

Security:
  [H2] POST /login and POST /register are rate-limited per IP.
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on login responses.
  Registration only succeeds for emails on the allow-list.
"""

import logging

import httpx
from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import (
    CheckAccessResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisterRequest,
    RegisterResponse,
    SuccessResponse,
    UserResponse,
)
from api.request_info import audit_event
from audit.models import AuditAction
from audit.writer import AuditLogger
from auth.dependencies import get_current_user, get_identity
from auth.guard import LOGIN_ROUTE, RouteRedirect, check_route_access, get_user_role
from auth.models import User
from auth.oauth import account_from_token, get_enabled_providers, get_provider_identity
from auth.permissions import Role, get_first_accessible_route, resolve_role
from auth.store import AccountInUseError, UserStore
from auth.tokens import SESSION_COOKIE, authenticate_user, create_access_token, hash_password, set_session_cookie
from core.config import get_settings

logger = logging.getLogger("adpanel.api.auth")

_settings = get_settings()

# Role and feature flags given to every self-registered account.
REGISTER_ROLE = Role.host
REGISTER_PERMISSIONS = ["view_admanager", "view_google_sheets"]

# Auth policy:
# - POST /auth/login, /auth/logout, /register:  public
# - GET  /auth/check-access, /auth/first-route: optional auth (answer depends on it)
# - GET  /auth/providers:                        public
# - everything else:                             requires auth (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Login / logout / register
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(_settings.login_rate_limit)  # [H2]
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; open a DB session.

    Wrong email and wrong password return the same "bad_credentials" error.
    A successful login is recorded in the audit log (best-effort).
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid email or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    session = user_store.create_session(user.id, _settings.session_expire_seconds)
    role = resolve_role(user.role)
    token = create_access_token(user.id, user.email, role.value)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=_settings.token_expire_seconds,
            email=user.email,
            role=role.value,
            redirect_to=get_first_accessible_route(role),
        ).model_dump(),
    )
    set_session_cookie(resp, session.session_token)
    resp.headers["Cache-Control"] = "no-store"  # [M5]

    audit: AuditLogger = request.app.state.audit
    audit.record(audit_event(request, AuditAction.USER_LOGIN, user_id=user.id, details={"provider": "credentials"}))
    return resp


@router.post("/auth/logout")
async def logout(request: Request) -> JSONResponse:
    """Delete the DB session (if any) and clear the cookie."""
    session_token = request.cookies.get(SESSION_COOKIE)
    if session_token:
        request.app.state.user_store.delete_session(session_token)
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie(SESSION_COOKIE, path="/")
    return resp


@router.post("/register", response_model=RegisterResponse, status_code=201)
@limiter.limit(_settings.register_rate_limit)  # [H2]
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Create a password account for an allow-listed email.

    New accounts get the host role and the default feature flags.
    """
    user_store: UserStore = request.app.state.user_store

    if not user_store.is_email_allowed(body.email):
        logger.info("Registration refused for non allow-listed email %s", body.email)
        raise HTTPException(
            status_code=403,
            detail={"code": "email_not_allowed", "message": "This email is not approved for registration."},
        )
    if user_store.get_by_email(body.email) is not None:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "User with this email already exists."},
        )

    new_user = User(
        email=body.email,
        name=body.name,
        role=REGISTER_ROLE.value,
        hashed_password=hash_password(body.password),
        permissions=list(REGISTER_PERMISSIONS),
    )
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError as exc:
        # Lost a race with a concurrent registration for the same email.
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "User with this email already exists."},
        ) from exc

    created = user_store.get_by_id(user_id)
    request.app.state.audit.record(
        audit_event(request, AuditAction.USER_REGISTER, user_id=user_id, entity_type="user", entity_id=str(user_id))
    )
    return RegisterResponse(user=UserResponse.from_user(created), message="User created successfully")


# ---------------------------------------------------------------------------
# Route access
# ---------------------------------------------------------------------------


@router.get("/auth/check-access", response_model=CheckAccessResponse, response_model_exclude_none=True)
def check_access(request: Request, route: str | None = None) -> CheckAccessResponse:
    """Tell the client-side guard whether the caller may view route.

    Unauthenticated callers and callers without a user record get
    redirectTo=/login; denied callers get their first accessible route.
    """
    if not route:
        raise HTTPException(
            status_code=400,
            detail={"code": "route_required", "message": "Route parameter required."},
        )
    try:
        check_route_access(get_identity(request), route, request.app.state.user_store)
    except RouteRedirect as redirect:
        return CheckAccessResponse(has_access=False, redirect_to=redirect.location)
    return CheckAccessResponse(has_access=True)


@router.get("/auth/first-route")
def first_route(request: Request) -> RedirectResponse:
    """Redirect to the first route the caller's role may open, or to /login."""
    role = get_user_role(get_identity(request), request.app.state.user_store)
    if role is None:
        return RedirectResponse(LOGIN_ROUTE, status_code=302)
    return RedirectResponse(get_first_accessible_route(role), status_code=302)


@router.get("/auth/me", response_model=MeResponse)
async def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    role = resolve_role(current_user.role)
    return MeResponse(
        user_id=current_user.id,
        email=current_user.email,
        name=current_user.name,
        role=role,
        first_route=get_first_accessible_route(role),
    )


# ---------------------------------------------------------------------------
# Facebook / Google connections
# ---------------------------------------------------------------------------


@router.get("/auth/providers", response_model=list[str])
async def list_providers() -> list[str]:
    """Return the configured OAuth providers. Empty if none are set up."""
    return get_enabled_providers()


def _require_provider(provider: str) -> None:
    if provider not in get_enabled_providers():
        raise HTTPException(
            status_code=404,
            detail={"code": "unknown_provider", "message": f"OAuth provider '{provider}' is not configured."},
        )


@router.get("/auth/{provider}/login")
async def oauth_login(request: Request, provider: str, current_user: User = Depends(get_current_user)):
    """Redirect the browser to the provider's consent page."""
    _require_provider(provider)
    client = request.app.state.oauth.create_client(provider)
    redirect_uri = str(request.url_for("oauth_callback", provider=provider))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/auth/{provider}/callback", name="oauth_callback")
async def oauth_callback(
    request: Request,
    provider: str,
    current_user: User = Depends(get_current_user),
) -> RedirectResponse:
    """Exchange the code, store the linked account and return to /settings.

    The (provider, account id) pair is upserted, so reconnecting refreshes
    the stored tokens instead of adding a second row. An identity already
    linked to another user is refused with ?error=account_in_use.
    """
    _require_provider(provider)
    client = request.app.state.oauth.create_client(provider)

    try:
        token = await client.authorize_access_token(request)
    except OAuthError:
        logger.exception("OAuth token exchange failed for provider %r", provider)
        return RedirectResponse("/settings?error=oauth_failed", status_code=302)

    try:
        _email, account_id = await get_provider_identity(client, provider, token)
    except (ValueError, httpx.HTTPError):
        logger.exception("Could not read %s identity for user %s", provider, current_user.id)
        return RedirectResponse("/settings?error=oauth_failed", status_code=302)

    user_store: UserStore = request.app.state.user_store
    try:
        user_store.link_account(account_from_token(current_user.id, provider, account_id, token))
    except AccountInUseError as exc:
        logger.warning(
            "User %s tried to connect %s account %s owned by user %s",
            current_user.id,
            provider,
            account_id,
            exc.owner_id,
        )
        return RedirectResponse("/settings?error=account_in_use", status_code=302)
    request.app.state.audit.record(
        audit_event(
            request,
            AuditAction.CONNECT_ACCOUNT,
            user_id=current_user.id,
            entity_type=provider,
            entity_id=account_id,
        )
    )
    return RedirectResponse(f"/settings?connected={provider}", status_code=302)


def _disconnect(request: Request, user: User, provider: str) -> SuccessResponse:
    removed = request.app.state.user_store.delete_accounts(user.id, provider)
    logger.info("Disconnected %d %s account(s) for user %s", removed, provider, user.id)
    request.app.state.audit.record(
        audit_event(request, AuditAction.DISCONNECT_ACCOUNT, user_id=user.id, entity_type=provider)
    )
    return SuccessResponse(message="Disconnected successfully")


@router.post("/auth/disconnect-facebook", response_model=SuccessResponse)
def disconnect_facebook(request: Request, current_user: User = Depends(get_current_user)) -> SuccessResponse:
    return _disconnect(request, current_user, "facebook")


@router.post("/auth/disconnect-google", response_model=SuccessResponse)
def disconnect_google(request: Request, current_user: User = Depends(get_current_user)) -> SuccessResponse:
    return _disconnect(request, current_user, "google")
