"""
auth/tokens.py -- Signed identity tokens and their cookie transport.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       user_id, email, roles, issued-at and expiry. Tokens are stateless:
       nothing is stored server-side, so logout is a client-side discard.

  Verification distinguishes three failures because the boundary layer
       answers each with a different 401 message:
         TokenMalformed    -- not a parseable JWT, or identity claims missing
         TokenBadSignature -- signature does not match SECRET_KEY
         TokenExpired      -- signature valid but past `exp`
       Structure of the header and claims segments is checked first
       (unverified parse). Any change to the signature segment, including
       characters outside base64url, is a bad signature. Then signature and
       expiry are checked together via jwt.decode(). A tampered AND expired
       token is reported as a bad signature: expiry is only trusted on signed
       claims.

  SECRET_KEY: sourced from core.config.get_settings(). The Settings class
       validates the key at startup.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is
the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from auth.errors import TokenBadSignature, TokenExpired, TokenMalformed
from auth.models import TokenPayload
from core.config import get_settings

logger = logging.getLogger("authgate.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(
    user_id: int,
    email: str,
    roles: list[str],
    expire_seconds: int = 0,
    issued_at: datetime | None = None,
) -> str:
    """Encode a signed JWT with user identity and expiry.

    Args:
        user_id:        Numeric user ID stored in the DB.
        email:          User email, also carried in the payload.
        roles:          Canonical role-name list for the user.
        expire_seconds: Token lifetime in seconds. If 0 (default), uses
                        Settings.token_expire_seconds (7 days).
        issued_at:      Issue timestamp. Defaults to now; tests pass a past
                        value to produce already-expired tokens.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    iat = issued_at or datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "user_id": user_id,
        "email": email,
        "roles": list(roles),
        "iat": iat,
        "exp": iat + timedelta(seconds=duration),
    }
    return jwt.encode(claims, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    """Verify a JWT and return its payload.

    Raises TokenMalformed, TokenBadSignature or TokenExpired. Never returns
    a partially trusted payload.
    """
    if not isinstance(token, str) or not token:
        raise TokenMalformed()
    segments = token.split(".", 2)
    if len(segments) != 3:
        raise TokenMalformed()
    header, claims, signature = segments

    # Structure covers the header and claims segments only.
    signing_input = f"{header}.{claims}."
    try:
        jwt.get_unverified_header(signing_input)
        jwt.get_unverified_claims(signing_input)
    except JWTError as exc:
        raise TokenMalformed() from exc

    if not _is_canonical_segment(signature):
        logger.info("Rejected token: non-canonical signature segment")
        raise TokenBadSignature()

    try:
        claims = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpired() from exc
    except JWTError as exc:
        logger.info("Rejected token: %s", exc)
        raise TokenBadSignature() from exc

    return _claims_to_payload(claims)


def _is_canonical_segment(segment: str) -> bool:
    """True when segment is the exact unpadded base64url encoding of its bytes.

    The decoder ignores the unused low bits of the final character, so several
    strings decode to the same signature. Only the canonical one is accepted.
    """
    try:
        raw = base64url_decode(segment.encode("ascii"))
    except ValueError:
        return False
    return base64url_encode(raw).decode("ascii") == segment


def _claims_to_payload(claims: dict[str, Any]) -> TokenPayload:
    user_id = claims.get("user_id")
    email = claims.get("email")
    roles = claims.get("roles")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise TokenMalformed()
    if not isinstance(email, str) or not isinstance(roles, list):
        raise TokenMalformed()
    if not all(isinstance(r, str) for r in roles):
        raise TokenMalformed()
    return TokenPayload(
        user_id=user_id,
        email=email,
        roles=roles,
        issued_at=_from_timestamp(claims.get("iat")),
        expires_at=_from_timestamp(claims.get("exp")),
    )


def _from_timestamp(value: Any) -> datetime | None:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str) -> None:
    """Write the JWT as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="strict": never sent on cross-site requests (CSRF mitigation).
    secure: only sent over HTTPS in production (ENVIRONMENT=production).
    max_age: matches the JWT expiry so both expire together.
    """
    response.set_cookie(
        _settings.cookie_name,
        value=token,
        httponly=True,
        samesite="strict",
        secure=_settings.secure_cookies,
        max_age=_settings.token_expire_seconds,
    )


def clear_auth_cookie(response) -> None:
    """Expire the auth cookie. The token itself stays valid until `exp`."""
    response.delete_cookie(
        _settings.cookie_name,
        httponly=True,
        samesite="strict",
        secure=_settings.secure_cookies,
    )
