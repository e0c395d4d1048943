"""
Registration domain service - Account lifecycle state machine.

This module contains the core business logic for user registration,
implementing a two-stage identity verification flow.

Account State Machine (Forward-Only Transitions)
================================================

States:
- NO_IDENTITY: No Identity exists for the email
- UNVERIFIED: Identity + Profile exist, registration OTP pending
- VERIFIED: Terminal state after the registration OTP is consumed

Valid Transitions:
    NO_IDENTITY -> UNVERIFIED   (first registration attempt)
    UNVERIFIED  -> UNVERIFIED   (registration retry or resend; OTP replaced)
    UNVERIFIED  -> VERIFIED     (correct, unexpired OTP)

Invalid Transitions (reported as Conflict):
    VERIFIED -> any             (already registered / already verified)

Compensation: if OTP delivery fails during registration, the writes of
that attempt are undone (new Identity/Profile deleted, reused Identity's
OTP cleared). Updates applied to a pre-existing Profile are not reverted.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from .accounts import RoleAccountService
from .exceptions import AccountError, BadRequest, Conflict, InternalError, NotFound
from .models import (
    AccountConfig,
    AccountResult,
    AccountState,
    Identity,
    Profile,
    Registration,
    Role,
    SanitizedProfile,
    SellerStatus,
)
from .otp import check_otp, generate_otp, otp_expiry, utc_now
from .ports import NotificationSender, OtpPurpose, PasswordHasher, TokenIssuer
from .roles import normalize_email

logger = logging.getLogger(__name__)

SECONDS_PER_YEAR = 365 * 24 * 60 * 60


@dataclass
class RegistrationService(RoleAccountService):
    """
    Domain service for user registration.

    Orchestrates the registration flow: uniqueness checks, create-or-reuse
    of Identity + Profile, OTP issuance and rollback on delivery failure.
    """

    hasher: PasswordHasher
    tokens: TokenIssuer
    notifier: NotificationSender
    config: AccountConfig = field(default_factory=AccountConfig)
    clock: Callable[[], datetime] = utc_now

    async def register(self, registration: Registration) -> AccountResult:
        """
        Register a new account or re-attempt an unverified one.

        Args:
            registration: Sign-up payload for this service's role

        Returns:
            Created envelope with a pre-verification token and the profile

        Raises:
            BadRequest: Role is missing or not this service's role
            Conflict: Email, username or contact held by a verified account
            InternalError: OTP delivery failed (attempt rolled back)
        """
        self._require_role(registration.role)
        email = normalize_email(registration.email)

        identity = await self.store.identities.find_by_email(email)
        state = identity.state if identity else AccountState.NO_IDENTITY
        if state == AccountState.VERIFIED:
            raise Conflict("Email already registered!")

        await self._claim_unique_fields(
            {name: getattr(registration, name, None) for name in self.policy.unique_fields},
            identity.id if identity else None,
        )

        otp = generate_otp()
        expiry = otp_expiry(self.clock(), self.config.otp_ttl_minutes)
        password_hash = await self.hasher.hash(registration.password)
        profile_fields = self._profile_fields(registration, password_hash)

        is_new_identity = False
        is_new_profile = False

        if identity is None:
            identity = await self.store.identities.create(
                Identity(
                    email=email,
                    role=self.policy.role,
                    is_verified=False,
                    verify_code=otp,
                    verify_code_expiry=expiry,
                )
            )
            is_new_identity = True
            try:
                profile = await self.profiles.create(
                    Profile(identity_id=identity.id, role=self.policy.role, **profile_fields)
                )
            except AccountError:
                await self.store.identities.delete_by_id(identity.id)
                raise
            is_new_profile = True
        else:
            await self._drop_foreign_profile(identity)
            identity = await self.store.identities.update_by_id(
                identity.id,
                {"verify_code": otp, "verify_code_expiry": expiry, "role": self.policy.role},
            )
            if identity is None:
                raise NotFound("User with this id not found!")

            profile = await self.profiles.find_by_identity_id(identity.id)
            if profile is None:
                profile = await self.profiles.create(
                    Profile(identity_id=identity.id, role=self.policy.role, **profile_fields)
                )
                is_new_profile = True
            else:
                profile = await self.profiles.update_by_id(profile.id, profile_fields)
                if profile is None:
                    raise NotFound(
                        f"{self.policy.label.capitalize()} with this id not found!"
                    )

        token = self.tokens.sign(
            self._claims(identity, profile),
            self.config.signup_token_ttl_years * SECONDS_PER_YEAR,
        )

        delivery = await self.notifier.send_otp(
            registration.full_name, email, otp, OtpPurpose.REGISTRATION
        )
        if not delivery.success:
            await self._rollback(identity, profile, is_new_identity, is_new_profile)
            raise InternalError(delivery.message or "Failed to send verification email!")

        logger.info("Registered %s account %s (pending verification)", self.policy.label, identity.id)
        return AccountResult(
            message="User registered successfully. Please verify your email.",
            status=201,
            token=token,
            user=SanitizedProfile.from_records(identity, profile),
        )

    async def verify_registration(self, identifier: str, otp: str) -> AccountResult:
        """
        Consume the registration OTP and activate the account.

        Args:
            identifier: Email, or the role's verification field (buyer: username)
            otp: 6-digit passcode from the verification email

        Raises:
            BadRequest: Missing input, no pending code, expired or mismatched code
            NotFound: No Identity/Profile for the identifier
            Conflict: Account already verified
        """
        if not identifier or not identifier.strip():
            raise BadRequest(f"{self._verification_label} is required!")
        if not otp or not otp.strip():
            raise BadRequest("OTP is required!")

        identity, _ = await self._load_for_verification(identifier.strip())

        if identity.is_verified:
            raise Conflict("This account is already verified! Please login.")

        check_otp(identity.verify_code, identity.verify_code_expiry, otp, self.clock())

        updated = await self.store.identities.update_by_id(
            identity.id,
            {"is_verified": True, "verify_code": None, "verify_code_expiry": None},
        )
        if updated is None:
            raise NotFound("User is not updated and not found!")

        logger.info("Verified %s account %s", self.policy.label, identity.id)
        return AccountResult(message="Account verified successfully. You can now login.")

    async def resend_verification(self, email: str) -> AccountResult:
        """
        Issue a fresh registration OTP for an unverified account.

        Unlike register(), a delivery failure is only reported; the new
        code stays stored.
        """
        if not email or not email.strip():
            raise BadRequest("Email is required!")

        identity = await self._identity_by_email(email)
        if identity.is_verified:
            raise Conflict("This account is already verified! Please login.")
        profile = await self._profile_for(identity)

        otp = generate_otp()
        identity = await self.store.identities.update_by_id(
            identity.id,
            {
                "verify_code": otp,
                "verify_code_expiry": otp_expiry(self.clock(), self.config.otp_ttl_minutes),
            },
        )
        if identity is None:
            raise NotFound("User is not updated and not found!")

        delivery = await self.notifier.send_otp(
            profile.full_name, identity.email, otp, OtpPurpose.REGISTRATION
        )
        if not delivery.success:
            raise InternalError(
                delivery.message or "Failed to send verification email! Try again later."
            )

        return AccountResult(
            message=delivery.message
            or "Verification email sent successfully. Please check your inbox.",
            user=SanitizedProfile.from_records(identity, profile),
        )

    async def check_username_unique(self, username: str) -> AccountResult:
        """Report whether a username is free to claim (held only by unverified accounts)."""
        if "username" not in self.policy.unique_fields:
            raise BadRequest("Invalid role! Role is unknown.")
        if not username or not username.strip():
            raise BadRequest("Username is required!")

        holder = await self.profiles.find_by_field("username", username.strip())
        if holder is not None:
            holder_identity = await self.store.identities.find_by_id(holder.identity_id)
            if holder_identity is not None and holder_identity.is_verified:
                raise Conflict("Username is already taken!")

        return AccountResult(message="Username is available")

    @property
    def _verification_label(self) -> str:
        return self.policy.verification_key.capitalize()

    async def _load_for_verification(self, identifier: str) -> tuple[Identity, Profile]:
        key = self.policy.verification_key
        if key == "email":
            identity = await self._identity_by_email(identifier)
            return identity, await self._profile_for(identity)

        profile = await self.profiles.find_by_field(key, identifier)
        if profile is None:
            raise NotFound(
                f"{self.policy.label.capitalize()} with this {key} does not exist!"
            )
        identity = await self.store.identities.find_by_id(profile.identity_id)
        if identity is None:
            raise NotFound("User with this id does not exist!")
        return identity, profile

    def _profile_fields(self, registration: Registration, password_hash: str) -> dict:
        fields = {name: getattr(registration, name) for name in self.policy.registration_fields}
        fields["password_hash"] = password_hash
        if self.policy.role == Role.SELLER:
            fields.setdefault("seller_status", SellerStatus.NONE)
        return fields

    async def _drop_foreign_profile(self, identity: Identity) -> None:
        """Remove a profile left in another role's store by an earlier unverified attempt."""
        if identity.role == self.policy.role:
            return
        stale = await self.store.profiles(identity.role).find_by_identity_id(identity.id)
        if stale is not None:
            logger.warning(
                "Dropping unverified %s profile %s for identity %s",
                identity.role.value,
                stale.id,
                identity.id,
            )
            await self.store.profiles(identity.role).delete_by_id(stale.id)

    async def _rollback(
        self,
        identity: Identity,
        profile: Profile,
        is_new_identity: bool,
        is_new_profile: bool,
    ) -> None:
        logger.warning("OTP delivery failed for identity %s, rolling back", identity.id)
        if is_new_identity:
            await self.profiles.delete_by_id(profile.id)
            await self.store.identities.delete_by_id(identity.id)
            return

        await self.store.identities.update_by_id(
            identity.id, {"verify_code": None, "verify_code_expiry": None}
        )
        if is_new_profile:
            await self.profiles.delete_by_id(profile.id)
