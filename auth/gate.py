"""
auth/gate.py -- Authorization decision.

Pure and stateless. Callers map False to HTTP 403 and a missing payload
to HTTP 401 (see auth/dependencies.py).
"""

from __future__ import annotations

from collections.abc import Iterable

from auth.models import TokenPayload


def allow(payload: TokenPayload | None, allowed_roles: Iterable[str]) -> bool:
    """Return True iff the payload holds at least one of allowed_roles.

    No payload (unauthenticated) always denies.
    """
    if payload is None:
        return False
    return not set(payload.roles).isdisjoint(allowed_roles)
