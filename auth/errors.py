"""
auth/errors.py -- Typed error taxonomy raised by the auth core.

Every failure the core can report is an AuthError subclass carrying a stable
machine-readable `code` and a `message` that is safe to show to clients.
The boundary layer (api/main.py) maps each class to a fixed HTTP status.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all auth-core failures."""

    code: str = "auth_error"
    message: str = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(AuthError):
    """Bad input shape. Caller's fault, never retried."""

    code = "validation_error"
    message = "Invalid input."


class DuplicateEmail(AuthError):
    code = "duplicate_email"
    message = "User with this email already exists."


class InvalidCredentials(AuthError):
    """Unknown email and wrong password share this exact error."""

    code = "invalid_credentials"
    message = "Invalid email or password."


class InvalidRoles(AuthError):
    code = "invalid_roles"
    message = "Invalid roles specified."


class NotFound(AuthError):
    code = "not_found"
    message = "User not found."


class TokenError(AuthError):
    """Common parent of the three token verification failures."""

    code = "token_error"
    message = "Authentication failed."


class TokenMalformed(TokenError):
    code = "token_malformed"
    message = "Malformed token."


class TokenBadSignature(TokenError):
    code = "token_invalid"
    message = "Invalid token."


class TokenExpired(TokenError):
    code = "token_expired"
    message = "Token expired."


class StoreUnavailable(AuthError):
    code = "store_unavailable"
    message = "The user store is unavailable."
