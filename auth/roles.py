"""
auth/roles.py -- Role resolution across the two role schemas.

Two shapes of user record reach the core:
  - join-table records: `user_roles` holds UserRole associations, each with
    its Role loaded (current schema, many roles per user)
  - flat records: a single `role` string on the user (legacy schema)

Both normalize to a canonical role list: unique names, in the order the store
returned them. Records may be domain dataclasses or plain mappings (e.g. rows
exported from the legacy schema).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from auth.errors import InvalidRoles

BASELINE_ROLE = "USER"
DEFAULT_ROLES: tuple[str, ...] = ("USER", "ADMIN", "MODERATOR")


def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _association_name(link: Any) -> str | None:
    """Role name of one association record, or None if it has none loaded."""
    role = _field(link, "role")
    if role is not None:
        name = role if isinstance(role, str) else _field(role, "name")
        if name:
            return name
    return _field(link, "role_name")


def _candidate_names(record: Any) -> Iterable[str | None]:
    links = _field(record, "user_roles")
    if links:
        for link in links:
            yield _association_name(link)

    roles = _field(record, "roles")
    if roles:
        for role in roles:
            yield role if isinstance(role, str) else _field(role, "name")

    flat = _field(record, "role")
    if isinstance(flat, str):
        yield flat


def resolve_role_names(record: Any) -> list[str]:
    """Return the canonical role list for a user record.

    Blank names are skipped and duplicates keep their first position.
    An empty list means nothing resolved; see require_role_names().
    """
    seen: set[str] = set()
    names: list[str] = []
    for name in _candidate_names(record):
        if not name:
            continue
        name = name.strip()
        if name and name not in seen:
            seen.add(name)
            names.append(name)
    return names


def require_role_names(record: Any) -> list[str]:
    """Like resolve_role_names(), but a user without roles is an InvalidRoles error.

    An authenticated user must carry at least one role, otherwise every
    authorization check against them would be meaningless.
    """
    names = resolve_role_names(record)
    if not names:
        raise InvalidRoles("User has no roles assigned.")
    return names
