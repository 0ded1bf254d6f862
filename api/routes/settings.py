"""
api/routes/settings.py -- Connection and password endpoints for the settings page.

Routes:
  GET  /api/settings/facebook-account  -- linked Facebook account status
  GET  /api/settings/google-account    -- linked Google account status
  GET  /api/auth/google/status         -- Google profile of the linked account
  GET  /api/settings/password          -- whether the user has a local password
  POST /api/settings/password          -- set or change the local password

All routes require an authenticated user.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import (
    ConnectionStatusResponse,
    GoogleStatusResponse,
    PasswordChangeRequest,
    PasswordStatusResponse,
    SuccessResponse,
)
from auth.dependencies import get_current_user
from auth.models import User
from auth.oauth import fetch_google_profile
from auth.store import UserStore
from auth.tokens import hash_password, verify_password

logger = logging.getLogger("adpanel.api.settings")

router = APIRouter()


def _connection_status(user_store: UserStore, user: User, provider: str) -> ConnectionStatusResponse:
    account = user_store.get_account(user.id, provider)
    if account is None:
        return ConnectionStatusResponse(is_connected=False)
    expires = None
    if account.expires_at is not None:
        expires = datetime.fromtimestamp(account.expires_at, tz=timezone.utc)
    return ConnectionStatusResponse(
        is_connected=True,
        provider_account_id=account.provider_account_id,
        scope=account.scope,
        token_expires=expires,
    )


@router.get("/settings/facebook-account", response_model=ConnectionStatusResponse)
def facebook_account(request: Request, current_user: User = Depends(get_current_user)) -> ConnectionStatusResponse:
    return _connection_status(request.app.state.user_store, current_user, "facebook")


@router.get("/settings/google-account", response_model=ConnectionStatusResponse)
def google_account(request: Request, current_user: User = Depends(get_current_user)) -> ConnectionStatusResponse:
    return _connection_status(request.app.state.user_store, current_user, "google")


@router.get("/auth/google/status", response_model=GoogleStatusResponse)
def google_status(request: Request, current_user: User = Depends(get_current_user)) -> GoogleStatusResponse:
    """Show which Google account is connected.

    The live profile is fetched with the stored access token. If that fails
    (expired token, network error) the local user details are shown instead.
    """
    account = request.app.state.user_store.get_account(current_user.id, "google")
    profile = {"name": current_user.name, "email": current_user.email, "picture": current_user.image}
    if account is not None and account.access_token:
        fetched = fetch_google_profile(account.access_token)
        if fetched is not None:
            profile = fetched
    return GoogleStatusResponse(is_connected=account is not None, **profile)


@router.get("/settings/password", response_model=PasswordStatusResponse)
def password_status(current_user: User = Depends(get_current_user)) -> PasswordStatusResponse:
    return PasswordStatusResponse(has_password=current_user.hashed_password is not None)


@router.post("/settings/password", response_model=SuccessResponse)
def change_password(
    request: Request,
    body: PasswordChangeRequest,
    current_user: User = Depends(get_current_user),
) -> SuccessResponse:
    """Set a new password. The current one must be supplied if it exists.

    OAuth-only users (no password yet) may set one without a current password.
    """
    if current_user.hashed_password is not None:
        if not body.current_password:
            raise HTTPException(
                status_code=400,
                detail={"code": "current_password_required", "message": "Current password is required."},
            )
        if not verify_password(body.current_password, current_user.hashed_password):
            raise HTTPException(
                status_code=400,
                detail={"code": "bad_credentials", "message": "Incorrect current password."},
            )

    request.app.state.user_store.update_user(current_user.id, hashed_password=hash_password(body.new_password))
    logger.info("Password updated for user %s", current_user.id)
    return SuccessResponse(message="Password updated.")
