"""
Profile manager - authenticated reads and edits of Identity + Profile pairs.

Operations that touch both records (detail updates, account deletion)
run inside ``AccountStore.transaction()`` so they commit together.
"""

import logging
from dataclasses import dataclass

from .accounts import RoleAccountService
from .exceptions import BadRequest, Conflict, InternalError, NotFound
from .models import AccountResult, Caller, ProfileUpdate, SanitizedProfile
from .ports import ImageStore
from .roles import is_email, normalize_email

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = ("full_name", "contact", "username", "bio")


@dataclass
class ProfileService(RoleAccountService):
    """Domain service for profile CRUD."""

    images: ImageStore
    picture_folder: str = "leelame/profile-pictures"

    async def get_by_id(self, profile_id: str) -> AccountResult:
        if not profile_id or not profile_id.strip():
            raise BadRequest(f"{self.policy.label.capitalize()} id is required!")
        profile = await self._profile_by_id(profile_id.strip())
        identity = await self._identity_for(profile)
        return AccountResult(
            message=f"{self.policy.label.capitalize()} with this id successfully fetched.",
            user=SanitizedProfile.from_records(identity, profile),
        )

    async def get_by_email(self, email: str) -> AccountResult:
        if not email or not email.strip():
            raise BadRequest("Email is required!")
        identity = await self._identity_by_email(email)
        profile = await self._profile_for(identity)
        return AccountResult(
            message=f"{self.policy.label.capitalize()} with this email successfully fetched.",
            user=SanitizedProfile.from_records(identity, profile),
        )

    async def get_current(self, caller: Caller, profile_id: str) -> AccountResult:
        self._require_owner(caller, profile_id)
        profile = await self._profile_by_id(profile_id)
        identity = await self._identity_for(profile)
        return AccountResult(
            message=f"{self.policy.label.capitalize()} profile fetched successfully.",
            user=SanitizedProfile.from_records(identity, profile),
        )

    async def update_details(
        self, caller: Caller, profile_id: str, update: ProfileUpdate
    ) -> AccountResult:
        """
        Apply profile detail changes and an optional email change.

        Changed email, contact and username are re-checked for uniqueness;
        only a different, verified account blocks them.
        """
        self._require_owner(caller, profile_id)
        profile = await self._profile_by_id(profile_id)
        identity = await self._identity_for(profile)

        changes = {
            name: getattr(update, name)
            for name in _PROFILE_FIELDS
            if getattr(update, name) is not None and getattr(update, name) != getattr(profile, name)
        }
        if "username" in changes and "username" not in self.policy.unique_fields:
            raise BadRequest(f"Username is not supported for {self.policy.label} profiles!")

        new_email = None
        if update.email is not None and normalize_email(update.email) != identity.email:
            new_email = normalize_email(update.email)
            if not is_email(new_email):
                raise BadRequest("Invalid email address")

        if not changes and new_email is None:
            raise BadRequest("No profile changes provided!")

        async with self.store.transaction():
            if new_email is not None:
                await self._claim_email(new_email, identity.id)
            await self._claim_unique_fields(changes, identity.id)

            if changes:
                profile = await self.profiles.update_by_id(profile.id, changes)
                if profile is None:
                    raise NotFound(f"{self.policy.label.capitalize()} is not updated and not found!")
            if new_email is not None:
                identity = await self.store.identities.update_by_id(
                    identity.id, {"email": new_email}
                )
                if identity is None:
                    raise NotFound("User is not updated and not found!")

        logger.info("Updated %s profile %s", self.policy.label, profile.id)
        return AccountResult(
            message=f"{self.policy.label.capitalize()} profile details updated successfully.",
            user=SanitizedProfile.from_records(identity, profile),
        )

    async def change_picture(
        self, caller: Caller, profile_id: str, data: bytes, filename: str
    ) -> AccountResult:
        """Upload a new profile picture and store its URL on the profile."""
        self._require_owner(caller, profile_id)
        if not data:
            raise BadRequest("Profile picture is required!")
        profile = await self._profile_by_id(profile_id)
        identity = await self._identity_for(profile)

        url = await self.images.upload(data, filename, self.picture_folder)
        profile = await self.profiles.update_by_id(profile.id, {"profile_picture_url": url})
        if profile is None:
            raise NotFound(f"{self.policy.label.capitalize()} is not updated and not found!")

        return AccountResult(
            message="Profile picture updated successfully.",
            user=SanitizedProfile.from_records(identity, profile),
        )

    async def delete_account(self, caller: Caller, profile_id: str) -> AccountResult:
        """
        Delete the Profile and then its Identity.

        Both deletes share one transaction; if either record is still
        findable afterwards the operation is reported as failed.
        """
        self._require_owner(caller, profile_id)
        profile = await self._profile_by_id(profile_id)

        async with self.store.transaction():
            await self.profiles.delete_by_id(profile.id)
            await self.store.identities.delete_by_id(profile.identity_id)

        remaining_profile = await self.profiles.find_by_id(profile.id)
        remaining_identity = await self.store.identities.find_by_id(profile.identity_id)
        if remaining_profile is not None or remaining_identity is not None:
            raise InternalError("Account could not be deleted!")

        logger.info("Deleted %s account %s", self.policy.label, profile.identity_id)
        return AccountResult(message="Account deleted successfully.")

    async def _claim_email(self, email: str, owner_identity_id: str) -> None:
        holder = await self.store.identities.find_by_email(email)
        if holder is None or holder.id == owner_identity_id:
            return
        if holder.is_verified:
            raise Conflict("Email already registered!")
        logger.warning("Removing unverified identity %s holding %s", holder.id, email)
        stale = await self.store.profiles(holder.role).find_by_identity_id(holder.id)
        if stale is not None:
            await self.store.profiles(holder.role).delete_by_id(stale.id)
        await self.store.identities.delete_by_id(holder.id)
