"""
auth/service.py -- Auth core use cases: register, login, current user.

AuthService composes the credential hasher (auth/passwords.py), the token
service (auth/tokens.py) and the role resolver (auth/roles.py) over an
injected UserStore. It holds no mutable state of its own, so one instance is
shared by every request.

Every failure is raised as a typed AuthError (auth/errors.py). The service
never formats HTTP responses -- that is the boundary layer's job.

Security:
  Login runs bcrypt whether or not the email exists, and unknown email and
  wrong password raise the same InvalidCredentials. Response content and
  timing do not reveal which part was wrong.

  bcrypt is CPU-bound, so it runs in a worker thread to keep the event loop
  responsive while other requests wait on the store.

Concurrency:
  The email pre-check in register() is an optimization. The store's UNIQUE
  constraint is the real guard: an IntegrityError from create_user() after
  the pre-check passed means a concurrent registration won, and is reported
  as DuplicateEmail.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateEmail, InvalidCredentials, InvalidRoles, NotFound, StoreUnavailable, ValidationError
from auth.models import AuthResult, PublicUser, TokenPayload, User
from auth.passwords import burn_verification, hash_password, verify_password
from auth.roles import BASELINE_ROLE, require_role_names
from auth.store import UserStore
from auth.tokens import create_access_token, decode_access_token
from core.config import get_settings

logger = logging.getLogger("authgate.auth")

# Permissive local@domain.tld shape. Deliverability is not our concern.
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate unexpected database failures into StoreUnavailable.

    IntegrityError passes through untouched: callers give it domain meaning.
    """
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        logger.exception("Store operation failed: %s", operation)
        raise StoreUnavailable() from exc


def to_public(user: User) -> PublicUser:
    """Build the sanitized view of a user. The password hash is dropped here."""
    return PublicUser(
        id=user.id,
        email=user.email,
        name=user.name,
        roles=require_role_names(user),
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


class AuthService:
    """Register, login and current-user use cases over an injected store."""

    def __init__(self, store: UserStore, password_min_length: int | None = None) -> None:
        self.store = store
        if password_min_length is None:
            password_min_length = get_settings().password_min_length
        self.password_min_length = password_min_length

    # ------------------------------------------------------------------
    # Use cases
    # ------------------------------------------------------------------

    async def register(
        self,
        email: str,
        password: str,
        name: str | None = None,
        role_names: list[str] | None = None,
    ) -> AuthResult:
        """Create a user with the given roles (default ["USER"]) and issue a token.

        Raises ValidationError, DuplicateEmail, InvalidRoles or StoreUnavailable.
        """
        self._validate_registration(email, password)

        with _store_errors("find_user_by_email"):
            existing = await self.store.find_user_by_email(email)
        if existing is not None:
            raise DuplicateEmail()

        hashed = await asyncio.to_thread(hash_password, password)

        requested = role_names or [BASELINE_ROLE]
        with _store_errors("find_roles_by_names"):
            roles = await self.store.find_roles_by_names(requested)
        if not roles:
            raise InvalidRoles()
        unknown = set(requested) - {r.name for r in roles}
        if unknown:
            logger.warning("Registration ignored unknown roles: %s", ", ".join(sorted(unknown)))

        try:
            with _store_errors("create_user"):
                created = await self.store.create_user(
                    User(email=email, hashed_password=hashed, name=name),
                    [r.id for r in roles],
                )
        except IntegrityError as exc:
            with _store_errors("find_user_by_email"):
                taken = await self.store.find_user_by_email(email)
            if taken is not None:
                logger.info("Registration lost a race on a duplicate email")
                raise DuplicateEmail() from exc
            # Not the email: a requested role vanished before the insert.
            logger.warning("Registration failed on a role reference: %s", exc.orig)
            raise InvalidRoles() from exc

        return self._issue(created)

    async def login(self, email: str, password: str) -> AuthResult:
        """Verify credentials and issue a token. No side effects.

        Raises InvalidCredentials (unknown email and wrong password alike),
        InvalidRoles or StoreUnavailable.
        """
        with _store_errors("find_user_by_email"):
            user = await self.store.find_user_by_email(email)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt.
            await asyncio.to_thread(burn_verification)
            raise InvalidCredentials()
        if not await asyncio.to_thread(verify_password, password, user.hashed_password):
            raise InvalidCredentials()
        return self._issue(user)

    async def get_current_user(self, user_id: int) -> PublicUser:
        """Return the sanitized view of a user identified by a verified token.

        NotFound means the user was deleted after the token was issued.
        """
        with _store_errors("find_user_by_id"):
            user = await self.store.find_user_by_id(user_id)
        if user is None:
            raise NotFound()
        return to_public(user)

    async def list_users(self) -> list[PublicUser]:
        with _store_errors("find_all_users"):
            users = await self.store.find_all_users()
        return [to_public(u) for u in users]

    def verify_token(self, token: str) -> TokenPayload:
        """Verify a token. Raises TokenMalformed, TokenBadSignature or TokenExpired."""
        return decode_access_token(token)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate_registration(self, email: str, password: str) -> None:
        if not isinstance(email, str) or not email or not isinstance(password, str) or not password:
            raise ValidationError("Email and password are required.")
        if not _EMAIL_RE.match(email):
            raise ValidationError("Invalid email format.")
        if len(password) < self.password_min_length:
            raise ValidationError(f"Password must be at least {self.password_min_length} characters long.")

    def _issue(self, user: User) -> AuthResult:
        public = to_public(user)
        token = create_access_token(public.id, public.email, public.roles)
        return AuthResult(user=public, token=token)
