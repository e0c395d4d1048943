"""
Shared plumbing for the role-parameterized account services.

A service is bound to one RolePolicy and reaches the Identity store and
that role's Profile store through an AccountStore.
"""

import logging
from dataclasses import dataclass

from .exceptions import BadRequest, Conflict, Forbidden, NotFound
from .models import Caller, Identity, Profile, Role
from .ports import AccountStore, ProfileRepository
from .roles import RolePolicy, normalize_email

logger = logging.getLogger(__name__)

_FIELD_LABELS = {"username": "Username", "contact": "Contact"}


@dataclass
class RoleAccountService:
    """Base for services operating on Identity + Profile pairs of one role."""

    store: AccountStore
    policy: RolePolicy

    @property
    def profiles(self) -> ProfileRepository:
        return self.store.profiles(self.policy.role)

    def _require_role(self, role: Role | str | None) -> None:
        if not role:
            raise BadRequest("User role is required!")
        if role != self.policy.role:
            raise BadRequest("Invalid role! Role is unknown.")

    def _require_owner(self, caller: Caller, profile_id: str) -> None:
        if caller.role != self.policy.role or caller.profile_id != profile_id:
            logger.warning(
                "Profile %s access denied for caller %s", profile_id, caller.profile_id
            )
            raise Forbidden()

    async def _identity_by_email(self, email: str) -> Identity:
        identity = await self.store.identities.find_by_email(normalize_email(email))
        if identity is None:
            raise NotFound("User with this email does not exist!")
        return identity

    async def _identity_for(self, profile: Profile) -> Identity:
        identity = await self.store.identities.find_by_id(profile.identity_id)
        if identity is None:
            raise NotFound("User with this id not found!")
        return identity

    async def _profile_by_id(self, profile_id: str) -> Profile:
        profile = await self.profiles.find_by_id(profile_id)
        if profile is None:
            raise NotFound(f"{self.policy.label.capitalize()} with this id not found!")
        return profile

    async def _profile_for(self, identity: Identity) -> Profile:
        profile = await self.profiles.find_by_identity_id(identity.id)
        if profile is None:
            raise NotFound(
                f"{self.policy.label.capitalize()} with this base user id not found!"
            )
        return profile

    async def _claim_unique_fields(
        self, values: dict[str, str | None], owner_identity_id: str | None
    ) -> None:
        """
        Check role-unique profile fields against other accounts.

        A verified holder blocks the claim with Conflict. Values held by
        unverified accounts are released only once every field has passed,
        so a rejected claim leaves other accounts untouched.
        """
        releases: list[tuple[str, Profile]] = []
        for name in self.policy.unique_fields:
            value = values.get(name)
            if not value:
                continue
            holder = await self.profiles.find_by_field(name, value)
            if holder is None or holder.identity_id == owner_identity_id:
                continue
            holder_identity = await self.store.identities.find_by_id(holder.identity_id)
            if holder_identity is not None and holder_identity.is_verified:
                raise Conflict(f"{_FIELD_LABELS.get(name, name)} already exists!")
            releases.append((name, holder))

        for name, holder in releases:
            logger.warning(
                "Releasing %s from unverified %s profile %s", name, self.policy.label, holder.id
            )
            await self.profiles.update_by_id(holder.id, {name: None})

    def _claims(self, identity: Identity, profile: Profile) -> dict:
        return {
            "_id": profile.id,
            "userId": identity.id,
            "email": identity.email,
            "role": identity.role.value,
            self.policy.token_claim: getattr(profile, self.policy.token_claim),
        }
