"""
Domain records - Identity, Profile and the result envelope.

An Identity is the role-tagged authentication record (one per email).
A Profile holds role-specific attributes and links to exactly one
Identity through ``identity_id``.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class Role(str, Enum):
    """Account roles; each role has its own profile store."""

    ADMIN = "admin"
    SELLER = "seller"
    BUYER = "buyer"


class SellerStatus(str, Enum):
    """Seller moderation status."""

    NONE = "none"
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class AccountState(str, Enum):
    """
    Registration lifecycle states.

    Transitions (forward-only):
    - NO_IDENTITY -> UNVERIFIED (first registration attempt)
    - UNVERIFIED -> UNVERIFIED (registration retry or resend)
    - UNVERIFIED -> VERIFIED (registration OTP consumed)
    """

    NO_IDENTITY = "no_identity"
    UNVERIFIED = "unverified"
    VERIFIED = "verified"


@dataclass
class AccountConfig:
    """Lifecycle options injected into the domain services."""

    otp_ttl_minutes: int = 10
    signup_token_ttl_years: int = 1
    login_token_ttl_hours: int = 24


@dataclass
class Identity:
    """Base user record, unique by email."""

    email: str
    role: Role
    id: str | None = None
    is_verified: bool = False
    verify_code: str | None = None
    verify_code_expiry: datetime | None = None
    reset_code: str | None = None
    reset_code_expiry: datetime | None = None
    is_permanently_banned: bool = False
    ban_reason: str | None = None
    banned_at: datetime | None = None
    banned_from: datetime | None = None
    banned_until: datetime | None = None

    @property
    def state(self) -> AccountState:
        return AccountState.VERIFIED if self.is_verified else AccountState.UNVERIFIED


@dataclass
class Profile:
    """Role-specific attributes, 1:1 with an Identity."""

    identity_id: str
    role: Role
    full_name: str
    contact: str | None = None
    password_hash: str | None = None
    id: str | None = None
    username: str | None = None
    bio: str | None = None
    profile_picture_url: str | None = None
    terms: bool = False
    # Seller moderation
    seller_status: SellerStatus | None = None
    seller_notes: str | None = None
    seller_verified_at: datetime | None = None
    seller_attempt_count: int = 0
    seller_rule_violation_count: int = 0
    is_seller_permanently_banned: bool = False
    seller_banned_at: datetime | None = None
    seller_banned_from: datetime | None = None
    seller_banned_until: datetime | None = None


@dataclass
class Registration:
    """Sign-up payload; role-specific fields are optional."""

    full_name: str
    email: str
    password: str
    role: Role | str | None
    contact: str | None = None
    username: str | None = None
    terms: bool = False


@dataclass
class ProfileUpdate:
    """Editable profile details; None means unchanged."""

    full_name: str | None = None
    email: str | None = None
    contact: str | None = None
    username: str | None = None
    bio: str | None = None


@dataclass
class Caller:
    """Claims of the authenticated bearer."""

    profile_id: str
    identity_id: str
    role: Role


@dataclass
class SanitizedProfile:
    """Profile + Identity projection without password hash or OTP fields."""

    id: str
    base_user_id: str
    email: str
    role: Role
    is_verified: bool
    is_permanently_banned: bool
    full_name: str | None = None
    username: str | None = None
    contact: str | None = None
    bio: str | None = None
    terms: bool | None = None
    profile_picture_url: str | None = None
    seller_status: SellerStatus | None = None

    @classmethod
    def from_records(cls, identity: Identity, profile: Profile) -> "SanitizedProfile":
        return cls(
            id=profile.id or "",
            base_user_id=profile.identity_id,
            email=identity.email,
            role=identity.role,
            is_verified=identity.is_verified,
            is_permanently_banned=identity.is_permanently_banned,
            full_name=profile.full_name,
            username=profile.username,
            contact=profile.contact,
            bio=profile.bio,
            terms=profile.terms if profile.role == Role.BUYER else None,
            profile_picture_url=profile.profile_picture_url,
            seller_status=profile.seller_status,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "baseUserId": self.base_user_id,
            "fullName": self.full_name,
            "username": self.username,
            "contact": self.contact,
            "bio": self.bio,
            "terms": self.terms,
            "profilePictureUrl": self.profile_picture_url,
            "sellerStatus": self.seller_status.value if self.seller_status else None,
            "baseUser": {
                "_id": self.base_user_id,
                "email": self.email,
                "role": self.role.value,
                "isVerified": self.is_verified,
                "isPermanentlyBanned": self.is_permanently_banned,
            },
        }


@dataclass
class AccountResult:
    """Uniform envelope returned by every lifecycle operation."""

    message: str
    status: int = 200
    success: bool = True
    token: str | None = None
    user: SanitizedProfile | None = None
