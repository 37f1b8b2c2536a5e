"""
auth/store.py -- SQLAlchemy Core persistence layer for users and roles.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user /
_row_to_role are the mappers. Service and route code never touches SQL.

The store is asynchronous (SQLAlchemy asyncio extension, aiosqlite driver by
default). It is constructed once at process start, handed to AuthService, and
disposed at shutdown -- there is no module-level database client.

Schema:
  users       -- identity records; email is UNIQUE and is the authoritative
                 guard against concurrent duplicate registrations
  roles       -- named permission tiers; name is UNIQUE
  user_roles  -- association rows; UNIQUE(user_id, role_id)

create_user() writes the user row and its association rows in one
transaction: a user is never persisted without roles.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    event,
    select,
    text,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from auth.models import Role, User, UserRole

logger = logging.getLogger("authgate.store")

_DEFAULT_DB_URL = "sqlite+aiosqlite:///./authgate.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("name", String(255)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_roles = Table(
    "roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(50), nullable=False, unique=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_user_roles = Table(
    "user_roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False),
    UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_role"),
)


# ---------------------------------------------------------------------------
# SQLite pragmas
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable foreign keys and WAL mode on every new SQLite connection.

    SQLite ignores FOREIGN KEY clauses unless the pragma is on, and PRAGMAs
    are not inherited by new connections from the pool.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and Role entities.

    Usage:
        store = UserStore("sqlite+aiosqlite:///./authgate.db")
        await store.init()
        roles = await store.find_roles_by_names(["USER"])
        user = await store.create_user(User(email=..., hashed_password=...), [r.id for r in roles])
        await store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        self.db_url = db_url
        self.engine: AsyncEngine = create_async_engine(db_url)
        if db_url.startswith("sqlite"):
            event.listen(self.engine.sync_engine, "connect", _set_sqlite_pragmas)

    async def init(self) -> None:
        """Create tables that do not exist yet. Idempotent."""
        async with self.engine.begin() as conn:
            await conn.run_sync(_metadata.create_all)

    async def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False
        return True

    # ------------------------------------------------------------------
    # Role queries
    # ------------------------------------------------------------------

    async def find_roles_by_names(self, names: Iterable[str]) -> list[Role]:
        """Return the Role records whose name is in names, ordered by id.

        Unknown names are silently absent from the result.
        """
        wanted = list(dict.fromkeys(names))
        if not wanted:
            return []
        async with self.engine.connect() as conn:
            rows = (
                await conn.execute(_roles.select().where(_roles.c.name.in_(wanted)).order_by(_roles.c.id))
            ).fetchall()
        return [_row_to_role(r) for r in rows]

    async def ensure_roles(self, names: Iterable[str]) -> list[Role]:
        """Insert any of names not yet present and return all of them.

        Called at startup to seed the baseline roles.
        """
        wanted = list(dict.fromkeys(names))
        existing = {r.name for r in await self.find_roles_by_names(wanted)}
        missing = [n for n in wanted if n not in existing]
        if missing:
            now = _now_iso()
            async with self.engine.begin() as conn:
                await conn.execute(
                    _roles.insert(),
                    [{"name": n, "created_at": now, "updated_at": now} for n in missing],
                )
            logger.info("Seeded roles: %s", ", ".join(missing))
        return await self.find_roles_by_names(wanted)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    async def create_user(self, user: User, role_ids: Iterable[int]) -> User:
        """Insert a user together with its role associations; return the stored record.

        Both inserts run in one transaction. Raises ValueError if role_ids is
        empty. Raises sqlalchemy.exc.IntegrityError if the email already
        exists or a role id does not; nothing is written in either case.
        """
        ids = list(dict.fromkeys(role_ids))
        if not ids:
            raise ValueError("A user must be created with at least one role.")
        now = _now_iso()
        async with self.engine.begin() as conn:
            result = await conn.execute(
                _users.insert().values(
                    email=user.email,
                    hashed_password=user.hashed_password,
                    name=user.name,
                    created_at=now,
                    updated_at=now,
                )
            )
            user_id = result.inserted_primary_key[0]
            await conn.execute(
                _user_roles.insert(),
                [{"user_id": user_id, "role_id": rid} for rid in ids],
            )
            created = await self._load_user(conn, _users.c.id == user_id)
        logger.info("Created user id=%s with %d role(s)", user_id, len(ids))
        return created

    async def find_user_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive), roles included."""
        async with self.engine.connect() as conn:
            return await self._load_user(conn, _users.c.email == email)

    async def find_user_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key, roles included."""
        async with self.engine.connect() as conn:
            return await self._load_user(conn, _users.c.id == user_id)

    async def find_all_users(self) -> list[User]:
        """Return all users ordered by id, roles included."""
        async with self.engine.connect() as conn:
            rows = (await conn.execute(_users.select().order_by(_users.c.id))).fetchall()
            links = await self._load_links(conn, [r.id for r in rows])
        return [_row_to_user(r, links.get(r.id, [])) for r in rows]

    async def delete_user(self, user_id: int) -> bool:
        """Delete a user and (by cascade) its role associations."""
        async with self.engine.begin() as conn:
            result = await conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    async def close(self) -> None:
        await self.engine.dispose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load_user(self, conn: AsyncConnection, condition) -> User | None:
        row = (await conn.execute(_users.select().where(condition))).fetchone()
        if row is None:
            return None
        links = await self._load_links(conn, [row.id])
        return _row_to_user(row, links.get(row.id, []))

    async def _load_links(self, conn: AsyncConnection, user_ids: list[int]) -> dict[int, list[UserRole]]:
        """Fetch association rows with their roles, grouped by user id.

        Ordered by association id so every user's roles come back in the
        order they were granted.
        """
        if not user_ids:
            return {}
        stmt = (
            select(
                _user_roles.c.user_id,
                _user_roles.c.role_id,
                _roles.c.name,
                _roles.c.created_at,
                _roles.c.updated_at,
            )
            .select_from(_user_roles.join(_roles, _user_roles.c.role_id == _roles.c.id))
            .where(_user_roles.c.user_id.in_(user_ids))
            .order_by(_user_roles.c.id)
        )
        grouped: dict[int, list[UserRole]] = {}
        for row in (await conn.execute(stmt)).fetchall():
            role = Role(id=row.role_id, name=row.name, created_at=row.created_at, updated_at=row.updated_at)
            grouped.setdefault(row.user_id, []).append(UserRole(user_id=row.user_id, role_id=row.role_id, role=role))
        return grouped


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row, links: list[UserRole]) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        name=row.name,
        created_at=row.created_at,
        updated_at=row.updated_at,
        user_roles=links,
    )


def _row_to_role(row) -> Role:
    return Role(
        id=row.id,
        name=row.name,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
