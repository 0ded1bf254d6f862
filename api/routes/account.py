"""
api/routes/account.py -- Self-service profile and account deletion.

Routes:
  GET    /api/account/profile  -- the caller's profile
  PUT    /api/account/profile  -- rename (2-50 characters)
  DELETE /api/account/delete   -- delete the caller's account and all its data
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import ProfileResponse, ProfileUpdate, ProfileUpdatedResponse, SuccessResponse
from auth.dependencies import get_current_user
from auth.models import User
from auth.tokens import SESSION_COOKIE
from services.accounts import delete_account

logger = logging.getLogger("adpanel.api.account")

router = APIRouter()


def _profile(user: User) -> ProfileResponse:
    return ProfileResponse(id=user.id, email=user.email, name=user.name, image=user.image, role=user.role)


@router.get("/account/profile", response_model=ProfileResponse)
def get_profile(current_user: User = Depends(get_current_user)) -> ProfileResponse:
    return _profile(current_user)


@router.put("/account/profile", response_model=ProfileUpdatedResponse)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
) -> ProfileUpdatedResponse:
    user_store = request.app.state.user_store
    user_store.update_user(current_user.id, name=body.name)
    return ProfileUpdatedResponse(user=_profile(user_store.get_by_id(current_user.id)))


@router.delete("/account/delete")
def delete_own_account(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Delete the caller's audit rows, sessions, linked accounts and user row.

    All of it happens in one transaction; on failure nothing is removed and
    the generic 500 handler answers.
    """
    delete_account(request.app.state.user_store, request.app.state.audit_store, current_user.id)
    resp = JSONResponse(
        content=SuccessResponse(message="Account deleted successfully").model_dump(by_alias=True)
    )
    resp.delete_cookie(SESSION_COOKIE, path="/")
    return resp
