"""
API request and response models for AuthGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request models only check types and sizes. Email shape and password length
are business rules enforced by AuthService so every caller (API, CLI) gets
the same checks.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import PublicUser, TokenPayload

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    roleNames (camelCase) and role_names are both accepted. Omitted or empty
    means the baseline USER role. Email and name are trimmed; the password is
    taken exactly as sent.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(max_length=255)
    password: str = Field(max_length=255)
    name: Optional[str] = Field(default=None, max_length=255)
    role_names: Optional[list[str]] = Field(default=None, alias="roleNames", max_length=10)

    @field_validator("email", "name", mode="before")
    @classmethod
    def strip_identifiers(cls, value):
        return _strip(value)

    @field_validator("role_names", mode="before")
    @classmethod
    def strip_role_names(cls, values):
        if isinstance(values, list):
            return [_strip(v) for v in values]
        return values


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    Empty values are not rejected here; AuthService answers them with the
    same invalid_credentials error as any other failed login.
    """

    email: str = Field(max_length=255)
    password: str = Field(max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        return _strip(value)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Sanitized user. There is no password field on this model by construction."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    name: Optional[str] = None
    roles: list[str]
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_public(cls, user: PublicUser) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            roles=list(user.roles),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class AuthResponse(BaseModel):
    """Response for register and login. The token is also set as a cookie."""

    model_config = ConfigDict(frozen=True)

    message: str
    user: UserResponse
    token: str


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserResponse


class UserListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    users: list[UserResponse]


class TokenPayloadResponse(BaseModel):
    """Verified claims of the caller's token."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    roles: list[str]

    @classmethod
    def from_payload(cls, payload: TokenPayload) -> "TokenPayloadResponse":
        return cls(user_id=payload.user_id, email=payload.email, roles=list(payload.roles))


class SessionResponse(BaseModel):
    """Soft auth check. payload is null when the request carries no valid token."""

    model_config = ConfigDict(frozen=True)

    authenticated: bool
    payload: Optional[TokenPayloadResponse] = None


class RoleGatedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    payload: TokenPayloadResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


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
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    database: str
    timestamp: str
