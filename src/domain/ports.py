"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.

Every port that performs I/O is asynchronous: services suspend at each
persistence or delivery call and resume with its result.
"""

from collections.abc import Mapping
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, TypeVar

from .models import Identity, Profile, Role

T = TypeVar("T")


class OtpPurpose(str, Enum):
    """What a one-time passcode is delivered for."""

    REGISTRATION = "registration"
    PASSWORD_RESET = "password_reset"


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a notification send."""

    success: bool
    message: str


class Repository(Protocol[T]):
    """Generic persistence port for one entity type."""

    async def create(self, record: T) -> T:
        """Persist a new record and return it with its store-assigned id."""
        ...

    async def update_by_id(self, record_id: str, changes: Mapping[str, Any]) -> T | None:
        """Apply field changes; returns the updated record or None if missing."""
        ...

    async def delete_by_id(self, record_id: str) -> bool:
        """Delete a record; returns False if it did not exist."""
        ...

    async def find_by_id(self, record_id: str) -> T | None: ...

    async def find_by_field(self, name: str, value: Any) -> T | None:
        """Return the first record whose field ``name`` equals ``value``."""
        ...

    async def find_all(self) -> list[T]: ...


class IdentityRepository(Repository[Identity], Protocol):
    """Port interface for base-user persistence."""

    async def find_by_email(self, email: str) -> Identity | None:
        """Case-insensitive lookup by email."""
        ...


class ProfileRepository(Repository[Profile], Protocol):
    """Port interface for one role's profile store."""

    role: Role

    async def find_by_identity_id(self, identity_id: str) -> Profile | None: ...


class AccountStore(Protocol):
    """Identity store plus one profile store per role."""

    identities: IdentityRepository

    def profiles(self, role: Role) -> ProfileRepository: ...

    def transaction(self) -> AbstractAsyncContextManager[None]:
        """
        Scope several repository writes so they commit together.

        Any exception raised inside the block rolls back every write
        made through this store's repositories within it.
        """
        ...


class PasswordHasher(Protocol):
    """Port interface for one-way password hashing."""

    async def hash(self, password: str) -> str: ...

    async def verify(self, password: str, password_hash: str) -> bool: ...


class TokenIssuer(Protocol):
    """Port interface for bearer token signing and verification."""

    def sign(self, claims: Mapping[str, Any], ttl_seconds: int) -> str: ...

    def verify(self, token: str) -> dict[str, Any]:
        """Decode a token; raises Unauthorized if invalid or expired."""
        ...


class NotificationSender(Protocol):
    """Port interface for OTP delivery."""

    async def send_otp(
        self, recipient_name: str, email: str, otp: str, purpose: OtpPurpose
    ) -> DeliveryResult:
        """
        Deliver a one-time passcode.

        Delivery failures are reported through the result, not raised.
        """
        ...


class ImageStore(Protocol):
    """Port interface for remote image storage."""

    async def upload(self, data: bytes, filename: str, folder: str) -> str:
        """Store image bytes and return their public URL."""
        ...
