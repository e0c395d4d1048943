"""
Role policies - everything that differs between buyer, seller and admin.

The lifecycle services are written once and parameterized by a
RolePolicy instead of being repeated per role.
"""

import re
from dataclasses import dataclass

from .models import Role

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]{2,}$")
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.]{3,20}$")
CONTACT_PATTERN = re.compile(r"^[0-9]{10}$")


@dataclass(frozen=True)
class RolePolicy:
    """Role-specific configuration for the account lifecycle."""

    role: Role
    label: str
    # Non-email login identifier: profile field and accepted shape
    secondary_identifier: str | None
    secondary_pattern: re.Pattern[str] | None
    secondary_label: str | None
    # Profile fields that must not collide with a verified account
    unique_fields: tuple[str, ...]
    # Lookup key for registration OTP verification ("email" or a profile field)
    verification_key: str
    # Token claim carrying the secondary identifier
    token_claim: str
    registration_fields: tuple[str, ...]

    def matches_secondary(self, identifier: str) -> bool:
        return bool(self.secondary_pattern and self.secondary_pattern.match(identifier))

    @property
    def identifier_hint(self) -> str:
        if self.secondary_label is None:
            return "Identifier must be a valid email."
        return f"Identifier must be a valid email or {self.secondary_label}."


BUYER = RolePolicy(
    role=Role.BUYER,
    label="buyer",
    secondary_identifier="username",
    secondary_pattern=USERNAME_PATTERN,
    secondary_label="username",
    unique_fields=("username", "contact"),
    verification_key="username",
    token_claim="username",
    registration_fields=("full_name", "username", "contact", "terms"),
)

SELLER = RolePolicy(
    role=Role.SELLER,
    label="seller",
    secondary_identifier="contact",
    secondary_pattern=CONTACT_PATTERN,
    secondary_label="phone number",
    unique_fields=("contact",),
    verification_key="email",
    token_claim="contact",
    registration_fields=("full_name", "contact"),
)

ADMIN = RolePolicy(
    role=Role.ADMIN,
    label="admin",
    secondary_identifier=None,
    secondary_pattern=None,
    secondary_label=None,
    unique_fields=("contact",),
    verification_key="email",
    token_claim="contact",
    registration_fields=("full_name", "contact"),
)

POLICIES: dict[Role, RolePolicy] = {policy.role: policy for policy in (BUYER, SELLER, ADMIN)}


def policy_for(role: Role | str) -> RolePolicy:
    """Look up the policy for a role."""
    return POLICIES[Role(role)]


def is_email(identifier: str) -> bool:
    return bool(EMAIL_PATTERN.match(identifier))


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase
    """
    return email.strip().lower()
