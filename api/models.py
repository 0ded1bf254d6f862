"""
API request and response models for AdPanel REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
audit/models.py, which own the internal domain representation. Route handlers
map between the two.

Wire format: the account, settings and admin endpoints speak camelCase JSON
(hasAccess, redirectTo, isConnected, ...) because the browser front-end was
written against that shape. Those models derive from CamelModel, which
serializes by alias and still accepts snake_case names when constructed in
Python. The token endpoint keeps OAuth's snake_case (access_token).
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from audit.models import AuditLogEntry
from auth.models import AllowedEmail, User
from auth.permissions import Role

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: one @, no whitespace, a dot in the domain. Deliverability
# is proven by the OAuth provider or the admin who allow-listed the address.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


class SuccessResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Login / registration
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=255)


class LoginResponse(BaseModel):
    """Response for POST /api/auth/login.

    The browser session lives in the session_token cookie; access_token is a
    Bearer JWT for API clients that cannot hold cookies.
    """

    access_token: str
    token_type: str
    expires_in: int
    email: str
    role: str
    redirect_to: str


class RegisterRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=255)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class UserResponse(CamelModel):
    """Public view of a user. The password hash never leaves the store."""

    id: int
    email: str
    name: Optional[str] = None
    role: str
    permissions: list[str] = Field(default_factory=list)
    image: Optional[str] = None
    created_at: str = ""

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            permissions=user.permissions,
            image=user.image,
            created_at=user.created_at or "",
        )


class RegisterResponse(CamelModel):
    user: UserResponse
    message: str


class MeResponse(CamelModel):
    user_id: int
    email: str
    name: Optional[str] = None
    role: Role
    first_route: str


# ---------------------------------------------------------------------------
# Route access
# ---------------------------------------------------------------------------


class CheckAccessResponse(CamelModel):
    """Response for GET /api/auth/check-access. redirect_to is set only on denial."""

    has_access: bool
    redirect_to: Optional[str] = None


# ---------------------------------------------------------------------------
# Settings and account
# ---------------------------------------------------------------------------


class ConnectionStatusResponse(CamelModel):
    """Facebook/Google connection status for the settings page."""

    is_connected: bool
    provider_account_id: Optional[str] = None
    scope: Optional[str] = None
    token_expires: Optional[datetime] = None


class GoogleStatusResponse(CamelModel):
    is_connected: bool
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None


class PasswordStatusResponse(CamelModel):
    has_password: bool


class PasswordChangeRequest(CamelModel):
    """current_password is required only when the user already has one."""

    current_password: Optional[str] = Field(default=None, max_length=255)
    new_password: str = Field(min_length=6, max_length=255)


class ProfileResponse(CamelModel):
    id: int
    email: str
    name: Optional[str] = None
    image: Optional[str] = None
    role: str


class ProfileUpdate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=50)


class ProfileUpdatedResponse(CamelModel):
    success: bool = True
    user: ProfileResponse


# ---------------------------------------------------------------------------
# Admin panel
# ---------------------------------------------------------------------------


class AdminLoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class AdminActionRequest(CamelModel):
    """Body for POST /api/admin. new_role is required for changeRole."""

    action: Literal["changeRole", "deleteUser"]
    user_id: int
    new_role: Optional[Role] = None


class RoleCount(CamelModel):
    role: str
    count: int


class OverviewStats(CamelModel):
    total_users: int
    today_activity: int


class OverviewResponse(CamelModel):
    stats: OverviewStats
    recent_users: list[UserResponse]
    users_by_role: list[RoleCount]


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, total_pages=(total + limit - 1) // limit)


class UsersPageResponse(CamelModel):
    users: list[UserResponse]
    pagination: Pagination


class AuditLogResponse(CamelModel):
    id: int
    user_id: Optional[int] = None
    action: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    details: Optional[dict] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: str

    @classmethod
    def from_entry(cls, entry: AuditLogEntry) -> "AuditLogResponse":
        return cls(
            id=entry.id,
            user_id=entry.user_id,
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            details=entry.details,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
            created_at=entry.created_at,
        )


class ActivitiesPageResponse(CamelModel):
    activities: list[AuditLogResponse]
    pagination: Pagination


class AdminActionResponse(CamelModel):
    success: bool = True
    user: Optional[UserResponse] = None


class AllowedEmailCreate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    note: Optional[str] = Field(default=None, max_length=500)


class AllowedEmailResponse(CamelModel):
    id: int
    email: str
    note: Optional[str] = None
    created_by: Optional[str] = None
    created_at: str = ""

    @classmethod
    def from_entry(cls, entry: AllowedEmail) -> "AllowedEmailResponse":
        return cls(
            id=entry.id,
            email=entry.email,
            note=entry.note,
            created_by=entry.created_by,
            created_at=entry.created_at or "",
        )


class AllowedEmailListResponse(CamelModel):
    success: bool = True
    data: list[AllowedEmailResponse]


class AllowedEmailCreatedResponse(CamelModel):
    success: bool = True
    data: AllowedEmailResponse
