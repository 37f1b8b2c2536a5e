"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Token sources, checked in priority order:
  1. Authorization: Bearer <token> header -- API clients.
  2. "token" cookie -- set by register/login for browser clients.

Request state machine:
  no token               -> 401 "Authentication required. No token provided."
  token fails to verify  -> 401 with a kind-specific message
                            (Invalid token / Token expired / Malformed token)
  verified               -> TokenPayload
  require_roles(...)     -> 403 when the authorization gate denies

optional_token_payload() is the soft variant: payload or None, never raises.

Layer rule: auth/dependencies.py may import from fastapi (for
Depends/HTTPException/Request) because this module is part of the FastAPI
dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from auth.errors import TokenError
from auth.gate import allow
from auth.models import TokenPayload
from auth.tokens import decode_access_token
from core.config import get_settings


def extract_token(request: Request) -> str | None:
    """Return the raw token from the Bearer header or the auth cookie, if any."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(get_settings().cookie_name) or None


def get_token_payload(request: Request) -> TokenPayload:
    """Require a valid token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(payload: TokenPayload = Depends(get_token_payload)): ...
    """
    token = extract_token(request)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required. No token provided."},
        )
    try:
        return decode_access_token(token)
    except TokenError as exc:
        raise HTTPException(
            status_code=401,
            detail={"code": exc.code, "message": exc.message},
        ) from exc


def optional_token_payload(request: Request) -> TokenPayload | None:
    """Return the verified payload if the request carries a valid token, else None."""
    token = extract_token(request)
    if token is None:
        return None
    try:
        return decode_access_token(token)
    except TokenError:
        return None


def require_roles(*allowed_roles: str):
    """Build a dependency that admits only holders of at least one of allowed_roles.

    Use as a FastAPI dependency:
        @router.get("/admin-only")
        async def route(payload: TokenPayload = Depends(require_roles("ADMIN"))): ...
    """
    allowed = frozenset(allowed_roles)

    def dependency(payload: TokenPayload = Depends(get_token_payload)) -> TokenPayload:
        if not allow(payload, allowed):
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": "You do not have permission to access this resource."},
            )
        return payload

    return dependency
