"""Integration tests for auth/store.py against an in-memory SQLite database.

Covers:
- role seeding is idempotent and lookups ignore unknown names
- create_user writes the user and its role associations together
- duplicate email and unknown role id both raise IntegrityError and write nothing
- lookups by email (case-sensitive) and id return roles in grant order
- delete cascades to role associations
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore


async def _role_ids(store: UserStore, *names: str) -> list[int]:
    return [r.id for r in await store.find_roles_by_names(names)]


def _user(email: str = "a@b.com") -> User:
    return User(email=email, hashed_password="$2b$04$notarealhashbutstoredverbatim", name="A")


class TestRoles:
    async def test_seeded_roles_exist(self, store: UserStore) -> None:
        roles = await store.find_roles_by_names(["USER", "ADMIN", "MODERATOR"])
        assert [r.name for r in roles] == ["USER", "ADMIN", "MODERATOR"]
        assert all(r.id is not None and r.created_at for r in roles)

    async def test_unknown_names_are_absent(self, store: UserStore) -> None:
        roles = await store.find_roles_by_names(["USER", "SUPERUSER"])
        assert [r.name for r in roles] == ["USER"]

    async def test_empty_lookup(self, store: UserStore) -> None:
        assert await store.find_roles_by_names([]) == []

    async def test_ensure_roles_is_idempotent(self, store: UserStore) -> None:
        before = await store.find_roles_by_names(["USER"])
        again = await store.ensure_roles(["USER", "AUDITOR"])
        assert [r.name for r in again] == ["USER", "AUDITOR"]
        assert again[0].id == before[0].id


class TestCreateUser:
    async def test_create_returns_user_with_roles(self, store: UserStore) -> None:
        created = await store.create_user(_user(), await _role_ids(store, "USER"))
        assert created.id is not None
        assert created.email == "a@b.com"
        assert created.created_at and created.updated_at
        assert [link.role.name for link in created.user_roles] == ["USER"]

    async def test_create_requires_a_role(self, store: UserStore) -> None:
        with pytest.raises(ValueError):
            await store.create_user(_user(), [])
        assert await store.find_user_by_email("a@b.com") is None

    async def test_duplicate_email_raises_integrity_error(self, store: UserStore) -> None:
        ids = await _role_ids(store, "USER")
        await store.create_user(_user(), ids)
        with pytest.raises(IntegrityError):
            await store.create_user(_user(), ids)
        users = [u for u in await store.find_all_users() if u.email == "a@b.com"]
        assert len(users) == 1

    async def test_unknown_role_id_rolls_back_user_row(self, store: UserStore) -> None:
        """The user insert must not survive a failed association insert."""
        with pytest.raises(IntegrityError):
            await store.create_user(_user(), [99999])
        assert await store.find_user_by_email("a@b.com") is None

    async def test_repeated_role_ids_are_collapsed(self, store: UserStore) -> None:
        user_id = (await _role_ids(store, "USER"))[0]
        created = await store.create_user(_user(), [user_id, user_id])
        assert len(created.user_roles) == 1


class TestLookups:
    async def test_find_by_email_and_id_agree(self, store: UserStore) -> None:
        created = await store.create_user(_user(), await _role_ids(store, "ADMIN", "USER"))
        by_email = await store.find_user_by_email("a@b.com")
        by_id = await store.find_user_by_id(created.id)
        assert by_email == by_id == created

    async def test_email_lookup_is_case_sensitive(self, store: UserStore) -> None:
        await store.create_user(_user(), await _role_ids(store, "USER"))
        assert await store.find_user_by_email("A@B.COM") is None

    async def test_missing_user_is_none(self, store: UserStore) -> None:
        assert await store.find_user_by_email("nobody@b.com") is None
        assert await store.find_user_by_id(12345) is None

    async def test_roles_come_back_in_grant_order(self, store: UserStore) -> None:
        ids = await _role_ids(store, "USER", "ADMIN", "MODERATOR")
        created = await store.create_user(_user(), list(reversed(ids)))
        assert [link.role.name for link in created.user_roles] == ["MODERATOR", "ADMIN", "USER"]

    async def test_find_all_users_groups_roles_per_user(self, store: UserStore) -> None:
        await store.create_user(_user("one@b.com"), await _role_ids(store, "USER"))
        await store.create_user(_user("two@b.com"), await _role_ids(store, "ADMIN", "MODERATOR"))
        users = await store.find_all_users()
        assert [u.email for u in users] == ["one@b.com", "two@b.com"]
        assert [[link.role.name for link in u.user_roles] for u in users] == [["USER"], ["ADMIN", "MODERATOR"]]

    async def test_delete_user(self, store: UserStore) -> None:
        created = await store.create_user(_user(), await _role_ids(store, "USER"))
        assert await store.delete_user(created.id) is True
        assert await store.find_user_by_id(created.id) is None
        assert await store.delete_user(created.id) is False

    async def test_ping(self, store: UserStore) -> None:
        assert await store.ping() is True
