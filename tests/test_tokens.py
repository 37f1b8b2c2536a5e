"""Unit tests for JWT issue/verify in auth/tokens.py.

Covers:
- round trip: decoded payload carries identical user_id, email and roles
- expiry: a token past its TTL fails with TokenExpired
- tamper: altered signature or claims fail with TokenBadSignature, never succeed
- wrong secret fails with TokenBadSignature
- structurally invalid tokens and missing identity claims fail with TokenMalformed
"""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.errors import TokenBadSignature, TokenError, TokenExpired, TokenMalformed
from auth.tokens import _settings, create_access_token, decode_access_token

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


_B64URL = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"

# HS256 signatures are 32 bytes, 43 base64url characters.
_SIGNATURE_LENGTH = 43


def _flip_char(segment: str, index: int) -> str:
    replacement = "A" if segment[index] != "A" else "B"
    return segment[:index] + replacement + segment[index + 1 :]


def _replace_char(segment: str, index: int, replacement: str) -> str:
    return segment[:index] + replacement + segment[index + 1 :]


def _b64url(data: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------


class TestRoundTrip:
    @pytest.mark.parametrize(
        "user_id,email,roles",
        [
            (1, "u1@x.com", ["USER"]),
            (42, "admin@example.com", ["ADMIN", "USER"]),
            (7, "mod@example.org", ["MODERATOR"]),
        ],
    )
    def test_decode_returns_issued_identity(self, user_id: int, email: str, roles: list[str]) -> None:
        payload = decode_access_token(create_access_token(user_id, email, roles))
        assert payload.user_id == user_id
        assert payload.email == email
        assert payload.roles == roles

    def test_default_ttl_is_seven_days(self) -> None:
        payload = decode_access_token(create_access_token(1, "a@b.com", ["USER"]))
        assert payload.issued_at is not None and payload.expires_at is not None
        assert payload.expires_at - payload.issued_at == timedelta(seconds=_settings.token_expire_seconds)
        assert _settings.token_expire_seconds == 7 * 24 * 60 * 60

    def test_custom_ttl(self) -> None:
        payload = decode_access_token(create_access_token(1, "a@b.com", ["USER"], expire_seconds=60))
        assert payload.expires_at - payload.issued_at == timedelta(seconds=60)


# ---------------------------------------------------------------------------
# Failure kinds
# ---------------------------------------------------------------------------


class TestExpiry:
    def test_token_past_ttl_is_expired(self) -> None:
        issued = datetime.now(timezone.utc) - timedelta(seconds=120)
        token = create_access_token(1, "a@b.com", ["USER"], expire_seconds=60, issued_at=issued)
        with pytest.raises(TokenExpired):
            decode_access_token(token)

    def test_default_ttl_elapsed_is_expired(self) -> None:
        issued = datetime.now(timezone.utc) - timedelta(days=8)
        token = create_access_token(1, "a@b.com", ["USER"], issued_at=issued)
        with pytest.raises(TokenExpired):
            decode_access_token(token)

    def test_token_within_ttl_is_valid(self) -> None:
        issued = datetime.now(timezone.utc) - timedelta(days=6)
        token = create_access_token(1, "a@b.com", ["USER"], issued_at=issued)
        assert decode_access_token(token).user_id == 1


class TestTamper:
    @pytest.mark.parametrize("index", range(_SIGNATURE_LENGTH))
    def test_flipped_signature_char_is_bad_signature(self, index: int) -> None:
        token = create_access_token(1, "a@b.com", ["USER"])
        signing_input, signature = token.rsplit(".", 1)
        tampered = f"{signing_input}.{_flip_char(signature, index)}"
        with pytest.raises(TokenBadSignature):
            decode_access_token(tampered)

    def test_signature_length(self) -> None:
        signature = create_access_token(1, "a@b.com", ["USER"]).rsplit(".", 1)[1]
        assert len(signature) == _SIGNATURE_LENGTH

    @pytest.mark.parametrize("index", range(_SIGNATURE_LENGTH))
    def test_low_bit_swap_is_bad_signature(self, index: int) -> None:
        # The final character carries unused padding bits; a low-bit swap
        # there decodes to the same bytes and must still be rejected.
        token = create_access_token(1, "a@b.com", ["USER"])
        signing_input, signature = token.rsplit(".", 1)
        swapped = _B64URL[_B64URL.index(signature[index]) ^ 1]
        with pytest.raises(TokenBadSignature):
            decode_access_token(f"{signing_input}.{_replace_char(signature, index, swapped)}")

    @pytest.mark.parametrize("replacement", ["!", "=", ".", "+", "/", " "])
    @pytest.mark.parametrize("index", [0, 21, _SIGNATURE_LENGTH - 1])
    def test_non_base64url_signature_char_is_bad_signature(self, index: int, replacement: str) -> None:
        token = create_access_token(1, "a@b.com", ["USER"])
        signing_input, signature = token.rsplit(".", 1)
        with pytest.raises(TokenBadSignature):
            decode_access_token(f"{signing_input}.{_replace_char(signature, index, replacement)}")

    def test_truncated_signature_is_bad_signature(self) -> None:
        token = create_access_token(1, "a@b.com", ["USER"])
        with pytest.raises(TokenBadSignature):
            decode_access_token(token[:-1])

    def test_escalated_roles_with_original_signature_is_bad_signature(self) -> None:
        token = create_access_token(1, "a@b.com", ["USER"])
        header, claims, signature = token.split(".")
        forged = jwt.get_unverified_claims(token)
        forged["roles"] = ["ADMIN"]
        with pytest.raises(TokenBadSignature):
            decode_access_token(f"{header}.{_b64url(forged)}.{signature}")

    def test_wrong_secret_is_bad_signature(self) -> None:
        claims = {"sub": "1", "user_id": 1, "email": "a@b.com", "roles": ["ADMIN"]}
        token = jwt.encode(claims, "another-secret-key-that-is-long-enough!!", algorithm="HS256")
        with pytest.raises(TokenBadSignature):
            decode_access_token(token)

    def test_tampered_expired_token_reports_bad_signature(self) -> None:
        issued = datetime.now(timezone.utc) - timedelta(days=8)
        token = create_access_token(1, "a@b.com", ["USER"], issued_at=issued)
        signing_input, signature = token.rsplit(".", 1)
        with pytest.raises(TokenBadSignature):
            decode_access_token(f"{signing_input}.{_flip_char(signature, 3)}")


class TestMalformed:
    @pytest.mark.parametrize("token", ["", "not-a-token", "a.b", "a.b.c", "!!!.@@@.###"])
    def test_unparseable_token_is_malformed(self, token: str) -> None:
        with pytest.raises(TokenMalformed):
            decode_access_token(token)

    def test_signed_token_without_identity_claims_is_malformed(self) -> None:
        token = jwt.encode({"sub": "1"}, _settings.secret_key, algorithm="HS256")
        with pytest.raises(TokenMalformed):
            decode_access_token(token)

    def test_signed_token_with_string_user_id_is_malformed(self) -> None:
        claims = {"user_id": "1", "email": "a@b.com", "roles": ["USER"]}
        token = jwt.encode(claims, _settings.secret_key, algorithm="HS256")
        with pytest.raises(TokenMalformed):
            decode_access_token(token)

    def test_failure_kinds_are_distinct(self) -> None:
        kinds = {TokenMalformed, TokenBadSignature, TokenExpired}
        assert len({k.code for k in kinds}) == 3
        assert len({k.message for k in kinds}) == 3
        assert all(issubclass(k, TokenError) for k in kinds)
