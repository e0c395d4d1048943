"""
Login authenticator - credential check and login token issuance.

The requested role is the routing key: a service bound to one role
rejects every other role before touching the stores.
"""

import logging
from dataclasses import dataclass, field

from .accounts import RoleAccountService
from .exceptions import BadRequest, NotFound
from .models import AccountConfig, AccountResult, Profile, Role, SanitizedProfile
from .ports import PasswordHasher, TokenIssuer
from .roles import is_email, normalize_email

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 60 * 60


@dataclass
class LoginService(RoleAccountService):
    """Domain service for credential-based login."""

    hasher: PasswordHasher
    tokens: TokenIssuer
    config: AccountConfig = field(default_factory=AccountConfig)
    # Verification is not required to log in unless enabled.
    require_verified: bool = False

    async def login(self, identifier: str, password: str, role: Role | str | None) -> AccountResult:
        """
        Authenticate by email or the role's secondary identifier.

        Raises:
            BadRequest: Missing/unknown role, malformed identifier, no password
                set on the profile, or wrong password
            NotFound: No account of this role for the identifier
        """
        self._require_role(role)
        if not identifier or not password:
            raise BadRequest("Missing credentials! Credentials are required!")

        identifier = identifier.strip()
        label = self.policy.label

        if is_email(identifier):
            identity = await self.store.identities.find_by_email(normalize_email(identifier))
            if identity is None or identity.role != self.policy.role:
                raise NotFound(f"Invalid email! No {label} account found with this email.")
            profile = await self.profiles.find_by_identity_id(identity.id)
            if profile is None:
                raise NotFound(f"{label.capitalize()} user not found for this email.")
        elif self.policy.matches_secondary(identifier):
            secondary = self.policy.secondary_label
            profile = await self.profiles.find_by_field(
                self.policy.secondary_identifier, identifier
            )
            if profile is None:
                raise NotFound(
                    f"Invalid {secondary}! No {label} account found with this {secondary}."
                )
            identity = await self.store.identities.find_by_id(profile.identity_id)
            if identity is None or identity.role != self.policy.role:
                raise NotFound("User not found!")
        else:
            raise BadRequest(f"Invalid identifier! {self.policy.identifier_hint}")

        await self._check_password(profile, password)

        if self.require_verified and not identity.is_verified:
            raise BadRequest("This account is not verified! Please verify your email first.")

        token = self.tokens.sign(
            self._claims(identity, profile),
            self.config.login_token_ttl_hours * SECONDS_PER_HOUR,
        )
        logger.info("Login for %s profile %s", label, profile.id)
        return AccountResult(
            message=f"Logged in as {label} successfully.",
            token=token,
            user=SanitizedProfile.from_records(identity, profile),
        )

    async def logout(self) -> AccountResult:
        """Stateless logout; issued tokens stay valid until they expire."""
        return AccountResult(message="Logged out successfully.")

    async def _check_password(self, profile: Profile, password: str) -> None:
        if not profile.password_hash:
            raise BadRequest(f"Password not found for {self.policy.label}!")
        if not await self.hasher.verify(password, profile.password_hash):
            raise BadRequest("Invalid password! Please enter correct password.")
