"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create account; 201, sets token cookie
  POST /api/v1/auth/login      -- password login; 200, sets token cookie
  GET  /api/v1/auth/me         -- current user (requires auth)
  POST /api/v1/auth/logout     -- clears cookie; 200
  GET  /api/v1/auth/session    -- soft check; payload or null, never 401

Errors raised by AuthService (AuthError subclasses) propagate to the handler
in api/main.py, which maps each to its status code and error envelope.

Security:
  Cache-Control: no-store on every response that carries a token.
  Logout only clears the cookie. Tokens are stateless and stay valid until
  they expire.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    AuthResponse,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    SessionResponse,
    TokenPayloadResponse,
    UserResponse,
)
from auth.dependencies import get_token_payload, optional_token_payload
from auth.models import AuthResult, TokenPayload
from auth.service import AuthService
from auth.tokens import clear_auth_cookie, set_auth_cookie

# Auth policy:
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:   public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/session:  optional auth (optional_token_payload)
# - GET  /api/v1/auth/me:       requires auth (get_token_payload)
router = APIRouter()


def _auth_response(result: AuthResult, message: str, status_code: int) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            message=message,
            user=UserResponse.from_public(result.user),
            token=result.token,
        ).model_dump(),
    )
    set_auth_cookie(resp, result.token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
async def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Register a new user and log them in.

    The token is returned in the body and as an httpOnly cookie so both
    header-based and cookie-based clients work.
    """
    service: AuthService = request.app.state.auth_service
    result = await service.register(
        email=body.email,
        password=body.password,
        name=body.name,
        role_names=body.role_names,
    )
    return _auth_response(result, "User registered successfully.", 201)


@router.post("/auth/login", response_model=AuthResponse)
async def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Wrong email and wrong password produce the same 401 invalid_credentials.
    """
    service: AuthService = request.app.state.auth_service
    result = await service.login(body.email, body.password)
    return _auth_response(result, "Login successful.", 200)


@router.post("/auth/logout", response_model=MessageResponse)
async def logout() -> JSONResponse:
    """Clear the token cookie. Nothing changes server-side."""
    resp = JSONResponse(content=MessageResponse(message="Logged out successfully.").model_dump())
    clear_auth_cookie(resp)
    return resp


@router.get("/auth/session", response_model=SessionResponse)
async def session(payload: TokenPayload | None = Depends(optional_token_payload)) -> SessionResponse:
    """Report whether the caller holds a valid token without failing when it does not."""
    if payload is None:
        return SessionResponse(authenticated=False)
    return SessionResponse(authenticated=True, payload=TokenPayloadResponse.from_payload(payload))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
async def me(request: Request, payload: TokenPayload = Depends(get_token_payload)) -> MeResponse:
    """Return the current user, re-read from the store."""
    service: AuthService = request.app.state.auth_service
    user = await service.get_current_user(payload.user_id)
    return MeResponse(user=UserResponse.from_public(user))
