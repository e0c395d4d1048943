"""
In-memory repository adapter - Implements AccountStore protocol.

Backs tests and local development (``STORAGE_BACKEND=memory``). Applies
the same unique constraints as the PostgreSQL schema and reports their
violation as Conflict.
"""

import uuid
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import fields, replace
from typing import Any, Generic, TypeVar

from src.domain.exceptions import Conflict
from src.domain.models import Identity, Profile, Role

T = TypeVar("T", Identity, Profile)

_MISSING = object()

# Undo entries (rows, key, previous row) for the transaction open in this task
_journal: ContextVar[list[tuple[dict, str, Any]] | None] = ContextVar(
    "in_memory_journal", default=None
)


class _InMemoryRepository(Generic[T]):
    """Generic Repository over a dict shared with the owning store."""

    model: type

    def __init__(self, rows: dict[str, T]) -> None:
        self._rows = rows
        self._columns = {f.name for f in fields(self.model)}

    def _visible(self, record: T) -> bool:
        return True

    def _put(self, record: T) -> None:
        self._remember(record.id)
        self._rows[record.id] = record

    def _remove(self, record_id: str) -> None:
        self._remember(record_id)
        del self._rows[record_id]

    def _remember(self, record_id: str) -> None:
        journal = _journal.get()
        if journal is not None:
            journal.append((self._rows, record_id, self._rows.get(record_id, _MISSING)))

    def _check_unique(self, record: T) -> None:
        """Raise Conflict if ``record`` collides with another stored row."""

    async def create(self, record: T) -> T:
        record = replace(record, id=record.id or uuid.uuid4().hex)
        self._check_unique(record)
        self._put(record)
        return replace(record)

    async def update_by_id(self, record_id: str, changes: Mapping[str, Any]) -> T | None:
        current = self._rows.get(record_id)
        if current is None or not self._visible(current):
            return None
        unknown = set(changes) - self._columns
        if unknown:
            raise ValueError(f"Unknown fields: {sorted(unknown)}")
        updated = replace(current, **changes)
        self._check_unique(updated)
        self._put(updated)
        return replace(updated)

    async def delete_by_id(self, record_id: str) -> bool:
        current = self._rows.get(record_id)
        if current is None or not self._visible(current):
            return False
        self._remove(record_id)
        return True

    async def find_by_id(self, record_id: str) -> T | None:
        record = self._rows.get(record_id)
        if record is None or not self._visible(record):
            return None
        return replace(record)

    async def find_by_field(self, name: str, value: Any) -> T | None:
        if name not in self._columns:
            raise ValueError(f"Unknown field: {name}")
        return self._first(lambda record: getattr(record, name) == value)

    async def find_all(self) -> list[T]:
        return [replace(record) for record in self._rows.values() if self._visible(record)]

    def _first(self, predicate: Callable[[T], bool]) -> T | None:
        for record in self._rows.values():
            if self._visible(record) and predicate(record):
                return replace(record)
        return None


class InMemoryIdentityRepository(_InMemoryRepository[Identity]):
    model = Identity

    async def find_by_email(self, email: str) -> Identity | None:
        email = email.lower()
        return self._first(lambda record: record.email.lower() == email)

    def _check_unique(self, record: Identity) -> None:
        for other in self._rows.values():
            if other.id != record.id and other.email.lower() == record.email.lower():
                raise Conflict("Email already registered!")


class InMemoryProfileRepository(_InMemoryRepository[Profile]):
    model = Profile

    def __init__(self, rows: dict[str, Profile], role: Role) -> None:
        super().__init__(rows)
        self.role = role

    def _visible(self, record: Profile) -> bool:
        return record.role == self.role

    async def find_by_identity_id(self, identity_id: str) -> Profile | None:
        return self._first(lambda record: record.identity_id == identity_id)

    def _check_unique(self, record: Profile) -> None:
        for other in self._rows.values():
            if other.id == record.id:
                continue
            if other.identity_id == record.identity_id:
                raise Conflict("Profile already exists for this account!")
            if other.role != record.role:
                continue
            if record.contact and other.contact == record.contact:
                raise Conflict("Contact already exists!")
            if record.username and other.username == record.username:
                raise Conflict("Username already exists!")


class InMemoryAccountStore:
    """Identity store plus per-role profile stores held in process memory."""

    def __init__(self) -> None:
        self._identity_rows: dict[str, Identity] = {}
        self._profile_rows: dict[str, Profile] = {}
        self.identities = InMemoryIdentityRepository(self._identity_rows)
        self._profiles = {
            role: InMemoryProfileRepository(self._profile_rows, role) for role in Role
        }

    def profiles(self, role: Role) -> InMemoryProfileRepository:
        return self._profiles[Role(role)]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Undo this task's writes if the block raises.

        Only writes made from the task that opened the block are journaled,
        so concurrent tasks keep their changes. A nested block joins the
        outer one.
        """
        if _journal.get() is not None:
            yield
            return
        journal: list[tuple[dict, str, Any]] = []
        token = _journal.set(journal)
        try:
            yield
        except BaseException:
            for rows, record_id, previous in reversed(journal):
                if previous is _MISSING:
                    rows.pop(record_id, None)
                else:
                    rows[record_id] = previous
            raise
        finally:
            _journal.reset(token)
