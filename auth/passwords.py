"""
auth/passwords.py -- Credential hashing and verification.

Passwords: bcrypt, used directly rather than through passlib. passlib's
internal wrap-bug detection creates a password longer than 72 bytes, which
bcrypt 4.x rejects with an explicit error.

The cost factor comes from Settings.bcrypt_rounds (default 10) and is fixed
for the lifetime of the process. Verification reads the cost from the stored
hash, so hashes created under an older setting keep verifying.

The _DUMMY_HASH constant enables timing equalization in the login use case:
response time must not reveal whether an email exists.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging

import bcrypt

from core.config import get_settings

logger = logging.getLogger("authgate.auth")

_settings = get_settings()


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated first. bcrypt 4.x raises
    on longer input instead of truncating silently as older releases did.
    """
    secret = plain.encode("utf-8")[:72]
    return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=_settings.bcrypt_rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed or empty hash is a mismatch, not an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        logger.debug("Password verification against a malformed hash")
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("authgate_timing_dummy")


def burn_verification() -> None:
    """Run one bcrypt check against the dummy hash and discard the result."""
    verify_password("authgate_timing_dummy_input", _DUMMY_HASH)
