"""
api/routes/v1/users.py -- User endpoints gated by role.

Routes:
  GET /api/v1/users/profile         -- own profile (any authenticated user)
  GET /api/v1/users                 -- all users (ADMIN)
  GET /api/v1/users/moderator-only  -- example gated route (MODERATOR or ADMIN)

Authorization is checked against the roles in the verified token. A role
granted or removed after login takes effect when the user next logs in.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import MeResponse, RoleGatedResponse, TokenPayloadResponse, UserListResponse, UserResponse
from auth.dependencies import get_token_payload, require_roles
from auth.models import TokenPayload
from auth.service import AuthService

router = APIRouter()


@router.get("/users/profile", response_model=MeResponse)
async def profile(request: Request, payload: TokenPayload = Depends(get_token_payload)) -> MeResponse:
    service: AuthService = request.app.state.auth_service
    user = await service.get_current_user(payload.user_id)
    return MeResponse(user=UserResponse.from_public(user))


@router.get("/users/moderator-only", response_model=RoleGatedResponse)
async def moderator_only(payload: TokenPayload = Depends(require_roles("MODERATOR", "ADMIN"))) -> RoleGatedResponse:
    return RoleGatedResponse(
        message="This is a moderator/admin only route.",
        payload=TokenPayloadResponse.from_payload(payload),
    )


@router.get("/users", response_model=UserListResponse)
async def list_users(request: Request, payload: TokenPayload = Depends(require_roles("ADMIN"))) -> UserListResponse:
    """List all user accounts. Admin only."""
    service: AuthService = request.app.state.auth_service
    users = await service.list_users()
    return UserListResponse(users=[UserResponse.from_public(u) for u in users])
