"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; these only own domain shape.

Role membership is a set relation: a User holds any number of Roles through
UserRole association records. A single-role user is the degenerate case.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Role:
    """A named permission tier ("USER", "ADMIN", "MODERATOR", ...)."""

    name: str
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class UserRole:
    """Association row joining a User to a Role.

    role is populated by the store when the association is loaded together
    with its Role; it is None on rows built for insertion.
    """

    user_id: int | None
    role_id: int
    role: Role | None = None


@dataclass
class User:
    """An identity record.

    hashed_password is always a bcrypt hash once the record has been created.
    It never leaves the auth core -- see PublicUser.

    role is the legacy flat single-role column. Records read from the current
    schema leave it None and carry user_roles instead.
    """

    email: str
    hashed_password: str
    id: int | None = None
    name: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    user_roles: list[UserRole] = field(default_factory=list)
    role: str | None = None


@dataclass
class PublicUser:
    """Sanitized user view returned to every caller outside the core."""

    id: int
    email: str
    roles: list[str]
    name: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class TokenPayload:
    """Verified identity claim decoded from a signed token. Never persisted."""

    user_id: int
    email: str
    roles: list[str]
    issued_at: datetime | None = None
    expires_at: datetime | None = None


@dataclass
class AuthResult:
    """Outcome of a successful register or login."""

    user: PublicUser
    token: str
