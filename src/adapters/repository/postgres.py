"""
PostgreSQL repository adapter - Implements AccountStore protocol.

This module provides the PostgreSQL implementation of the domain's
repository ports using psycopg3 with raw SQL.

Connection Handling:
--------------------
Each repository call borrows a connection from the async pool and commits
on its own. Inside ``PostgresAccountStore.transaction()`` every call made
by the same task shares one connection, and the block commits or rolls
back as a whole.

Unique constraints (email, identity per profile, contact and username per
role) are enforced by the schema; violations surface as Conflict.
"""

import logging
import uuid
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import asdict, fields
from enum import Enum
from pathlib import Path
from typing import Any, Generic, TypeVar

from psycopg import AsyncConnection, errors, sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from src.domain.exceptions import Conflict, InternalError
from src.domain.models import Identity, Profile, Role, SellerStatus

logger = logging.getLogger(__name__)

T = TypeVar("T", Identity, Profile)

_UNIQUE_MESSAGES = {
    "identities_email_key": "Email already registered!",
    "profiles_identity_id_key": "Profile already exists for this account!",
    "profiles_role_contact_key": "Contact already exists!",
    "profiles_role_username_key": "Username already exists!",
}

_current_connection: ContextVar[AsyncConnection | None] = ContextVar(
    "account_store_connection", default=None
)


def _dump(value: Any) -> Any:
    # psycopg dumps enums by name; the schema stores their values.
    return value.value if isinstance(value, Enum) else value


class _PostgresRepository(Generic[T]):
    """Shared CRUD over one table whose columns mirror a domain dataclass."""

    table: str
    model: type

    def __init__(self, pool: AsyncConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 AsyncConnectionPool for database connections
        """
        self._pool = pool
        self._columns = tuple(f.name for f in fields(self.model))

    def _load(self, row: dict[str, Any]) -> T:
        raise NotImplementedError

    def _scope(self) -> sql.Composable:
        """Extra WHERE condition narrowing every query."""
        return sql.SQL("TRUE")

    def _scope_params(self) -> tuple[Any, ...]:
        return ()

    def _select(self) -> sql.Composed:
        return sql.SQL("SELECT {} FROM {}").format(
            sql.SQL(", ").join(map(sql.Identifier, self._columns)),
            sql.Identifier(self.table),
        )

    @asynccontextmanager
    async def _cursor(self) -> AsyncIterator[Any]:
        conn = _current_connection.get()
        if conn is not None:
            async with conn.cursor(row_factory=dict_row) as cursor:
                yield cursor
            return

        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cursor:
                yield cursor
            await conn.commit()

    async def _fetch_one(self, query: sql.Composable, params: tuple[Any, ...]) -> T | None:
        try:
            async with self._cursor() as cursor:
                await cursor.execute(query, params)
                row = await cursor.fetchone()
        except errors.UniqueViolation as e:
            constraint = e.diag.constraint_name or ""
            logger.info("Unique constraint violated: %s", constraint)
            raise Conflict(_UNIQUE_MESSAGES.get(constraint, "Record already exists!")) from e
        return self._load(row) if row is not None else None

    async def create(self, record: T) -> T:
        values = asdict(record)
        values["id"] = record.id or uuid.uuid4().hex
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING {}").format(
            sql.Identifier(self.table),
            sql.SQL(", ").join(map(sql.Identifier, self._columns)),
            sql.SQL(", ").join([sql.Placeholder()] * len(self._columns)),
            sql.SQL(", ").join(map(sql.Identifier, self._columns)),
        )
        created = await self._fetch_one(query, tuple(_dump(values[c]) for c in self._columns))
        if created is None:
            raise InternalError(f"Insert into {self.table} returned no row")
        return created

    async def update_by_id(self, record_id: str, changes: Mapping[str, Any]) -> T | None:
        unknown = set(changes) - set(self._columns)
        if unknown:
            raise ValueError(f"Unknown fields: {sorted(unknown)}")
        if not changes:
            return await self.find_by_id(record_id)

        query = sql.SQL(
            "UPDATE {} SET {}, updated_at = NOW() WHERE id = %s AND {} RETURNING {}"
        ).format(
            sql.Identifier(self.table),
            sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(name)) for name in changes
            ),
            self._scope(),
            sql.SQL(", ").join(map(sql.Identifier, self._columns)),
        )
        params = (
            *(_dump(value) for value in changes.values()),
            record_id,
            *self._scope_params(),
        )
        return await self._fetch_one(query, params)

    async def delete_by_id(self, record_id: str) -> bool:
        query = sql.SQL("DELETE FROM {} WHERE id = %s AND {}").format(
            sql.Identifier(self.table), self._scope()
        )
        async with self._cursor() as cursor:
            await cursor.execute(query, (record_id, *self._scope_params()))
            return cursor.rowcount == 1

    async def find_by_id(self, record_id: str) -> T | None:
        return await self.find_by_field("id", record_id)

    async def find_by_field(self, name: str, value: Any) -> T | None:
        if name not in self._columns:
            raise ValueError(f"Unknown field: {name}")
        query = sql.SQL("{} WHERE {} = %s AND {} LIMIT 1").format(
            self._select(), sql.Identifier(name), self._scope()
        )
        return await self._fetch_one(query, (_dump(value), *self._scope_params()))

    async def find_all(self) -> list[T]:
        query = sql.SQL("{} WHERE {} ORDER BY created_at").format(self._select(), self._scope())
        async with self._cursor() as cursor:
            await cursor.execute(query, self._scope_params())
            rows = await cursor.fetchall()
        return [self._load(row) for row in rows]


class PostgresIdentityRepository(_PostgresRepository[Identity]):
    """Implements IdentityRepository protocol via psycopg3."""

    table = "identities"
    model = Identity

    def _load(self, row: dict[str, Any]) -> Identity:
        return Identity(**{**row, "role": Role(row["role"])})

    async def find_by_email(self, email: str) -> Identity | None:
        query = sql.SQL("{} WHERE lower(email) = lower(%s) LIMIT 1").format(self._select())
        return await self._fetch_one(query, (email,))


class PostgresProfileRepository(_PostgresRepository[Profile]):
    """Implements ProfileRepository protocol for a single role."""

    table = "profiles"
    model = Profile

    def __init__(self, pool: AsyncConnectionPool, role: Role) -> None:
        super().__init__(pool)
        self.role = role

    def _load(self, row: dict[str, Any]) -> Profile:
        seller_status = row["seller_status"]
        return Profile(
            **{
                **row,
                "role": Role(row["role"]),
                "seller_status": SellerStatus(seller_status) if seller_status else None,
            }
        )

    def _scope(self) -> sql.Composable:
        return sql.SQL("role = %s")

    def _scope_params(self) -> tuple[Any, ...]:
        return (self.role.value,)

    async def find_by_identity_id(self, identity_id: str) -> Profile | None:
        return await self.find_by_field("identity_id", identity_id)


class PostgresAccountStore:
    """
    Implements AccountStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool
        self.identities = PostgresIdentityRepository(pool)
        self._profiles = {role: PostgresProfileRepository(pool, role) for role in Role}

    def profiles(self, role: Role) -> PostgresProfileRepository:
        return self._profiles[Role(role)]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if _current_connection.get() is not None:
            # Nested block joins the outer transaction.
            yield
            return

        async with self._pool.connection() as conn:
            token = _current_connection.set(conn)
            try:
                async with conn.transaction():
                    yield
            finally:
                _current_connection.reset(token)


async def run_migrations(pool: AsyncConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 AsyncConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            async with pool.connection() as conn:
                await conn.execute(sql_file.read_text())
                await conn.commit()

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
