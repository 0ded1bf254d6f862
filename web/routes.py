"""
web/routes.py -- Jinja2 template routes for the AdPanel web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same user store, audit logger) but return HTML instead of JSON.

Every protected page starts with check_route_access(). When the guard denies
the request it raises RouteRedirect, which the app-level exception handler
turns into a 302; the page handler never continues past the guard.

Routes:
  GET  /               -- redirect to the caller's first accessible page
  GET  /login          -- login form
  POST /login          -- handle password login
  POST /logout         -- delete session, redirect /login
  GET  /dashboard      -- overview (every role)
  GET  /admanager      -- ad manager (host, admin)
  GET  /google-sheets  -- Google Sheets export (host, admin)
  GET  /payments       -- payments (host, admin)
  GET  /settings       -- connections, password, profile (every role)
  GET  /admin          -- admin panel (host)
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from api.request_info import audit_event
from audit.models import AuditAction
from auth.dependencies import get_identity, try_get_current_user
from auth.guard import LOGIN_ROUTE, check_route_access, get_user_role
from auth.oauth import get_enabled_providers
from auth.permissions import ROUTE_PRIORITY, Role, can_access_route, get_first_accessible_route, resolve_role
from auth.store import UserStore
from auth.tokens import SESSION_COOKIE, authenticate_user, set_session_cookie
from core.config import get_settings

logger = logging.getLogger("adpanel.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

_settings = get_settings()

# Whitelist mapping for ?error= query params on /login [M3].
# The raw query param is NEVER passed to templates -- only the message from
# this dict is.
_ERROR_MESSAGES: dict[str, str] = {
    "bad_credentials": "Invalid email or password.",
    "oauth_failed": "OAuth authentication failed. Please try again.",
}

_PAGE_TITLES: dict[str, str] = {
    "/dashboard": "Dashboard",
    "/admanager": "Ad Manager",
    "/google-sheets": "Google Sheets",
    "/payments": "Payments",
    "/settings": "Settings",
    "/admin": "Admin",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _nav_for(role: Role) -> list[dict]:
    """Sidebar entries for every page role may open, in landing order."""
    return [{"path": r, "title": _PAGE_TITLES[r]} for r in ROUTE_PRIORITY if can_access_route(role, r)]


def _render_guarded(request: Request, route: str, template: str, context_factory=None) -> HTMLResponse:
    """Run the guard, then render. context_factory is only called once access is granted."""
    role = check_route_access(get_identity(request), route, request.app.state.user_store)
    user = try_get_current_user(request)
    context = context_factory() if context_factory is not None else {}
    return templates.TemplateResponse(
        request,
        template,
        {
            "user": user,
            "role": role.value,
            "route": route,
            "title": _PAGE_TITLES[route],
            "nav": _nav_for(role),
            **context,
        },
    )


# ---------------------------------------------------------------------------
# Landing
# ---------------------------------------------------------------------------


@router.get("/")
def index(request: Request) -> RedirectResponse:
    role = get_user_role(get_identity(request), request.app.state.user_store)
    if role is None:
        return RedirectResponse(LOGIN_ROUTE, status_code=302)
    return RedirectResponse(get_first_accessible_route(role), status_code=302)


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request):
    """Render the login page. Signed-in users go straight to their landing page."""
    user = try_get_current_user(request)
    if user is not None:
        return RedirectResponse(get_first_accessible_route(resolve_role(user.role)), status_code=302)

    error_msg: Optional[str] = _ERROR_MESSAGES.get(request.query_params.get("error", ""))
    return templates.TemplateResponse(
        request,
        "login.html",
        {"error_msg": error_msg, "providers": get_enabled_providers()},
    )


@router.post("/login", response_class=HTMLResponse)
def login_post(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
) -> RedirectResponse:
    """Handle the email/password login form."""
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, email, password)  # [C1] timing equalization
    if user is None:
        return RedirectResponse("/login?error=bad_credentials", status_code=302)

    session = user_store.create_session(user.id, _settings.session_expire_seconds)
    resp = RedirectResponse(get_first_accessible_route(resolve_role(user.role)), status_code=302)
    set_session_cookie(resp, session.session_token)
    resp.headers["Cache-Control"] = "no-store"  # [M5]

    request.app.state.audit.record(
        audit_event(request, AuditAction.USER_LOGIN, user_id=user.id, details={"provider": "credentials", "via": "web"})
    )
    return resp


@router.post("/logout")
def logout(request: Request) -> RedirectResponse:
    """Delete the DB session and redirect to the login page."""
    session_token = request.cookies.get(SESSION_COOKIE)
    if session_token:
        request.app.state.user_store.delete_session(session_token)
    resp = RedirectResponse(LOGIN_ROUTE, status_code=302)
    resp.delete_cookie(SESSION_COOKIE, path="/")
    return resp


# ---------------------------------------------------------------------------
# Protected pages
# ---------------------------------------------------------------------------


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request) -> HTMLResponse:
    return _render_guarded(request, "/dashboard", "page.html")


@router.get("/admanager", response_class=HTMLResponse)
def admanager(request: Request) -> HTMLResponse:
    return _render_guarded(request, "/admanager", "page.html")


@router.get("/google-sheets", response_class=HTMLResponse)
def google_sheets(request: Request) -> HTMLResponse:
    return _render_guarded(request, "/google-sheets", "page.html")


@router.get("/payments", response_class=HTMLResponse)
def payments(request: Request) -> HTMLResponse:
    return _render_guarded(request, "/payments", "page.html")


@router.get("/settings", response_class=HTMLResponse)
def settings_page(request: Request) -> HTMLResponse:
    """Connections, password and profile. Every role may open it."""
    role = check_route_access(get_identity(request), "/settings", request.app.state.user_store)
    user = try_get_current_user(request)
    user_store: UserStore = request.app.state.user_store
    connections = {
        provider: user_store.get_account(user.id, provider) is not None for provider in ("facebook", "google")
    }
    return templates.TemplateResponse(
        request,
        "settings.html",
        {
            "user": user,
            "role": role.value,
            "route": "/settings",
            "title": _PAGE_TITLES["/settings"],
            "nav": _nav_for(role),
            "connections": connections,
            "providers": get_enabled_providers(),
        },
    )


@router.get("/admin", response_class=HTMLResponse)
def admin_page(request: Request) -> HTMLResponse:
    """Admin panel shell. Data is loaded from GET /api/admin by the page."""
    user_store: UserStore = request.app.state.user_store
    return _render_guarded(
        request,
        "/admin",
        "admin.html",
        lambda: {
            "total_users": user_store.count_users(),
            "allowed_emails": user_store.count_allowed_emails(),
        },
    )
