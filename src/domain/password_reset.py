"""
Password reset domain service - OTP-gated password change.

Flow: request_reset -> (verify_reset_code) -> reset_password.

The stored reset code is the only thing tying the steps together. It is
cleared only by a completed reset; verify_reset_code leaves it in place
so the final step can re-validate it.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from .accounts import RoleAccountService
from .exceptions import BadRequest, InternalError, NotFound
from .models import AccountConfig, AccountResult
from .otp import check_otp, generate_otp, otp_expiry, utc_now
from .ports import NotificationSender, OtpPurpose, PasswordHasher

logger = logging.getLogger(__name__)


@dataclass
class PasswordResetService(RoleAccountService):
    """Domain service for forgotten-password recovery."""

    hasher: PasswordHasher
    notifier: NotificationSender
    config: AccountConfig = field(default_factory=AccountConfig)
    clock: Callable[[], datetime] = utc_now

    async def request_reset(self, email: str) -> AccountResult:
        """
        Issue and deliver a reset OTP for a verified account.

        Raises:
            BadRequest: Email missing or account not verified
            NotFound: No Identity or no Profile of this role
            InternalError: OTP delivery failed
        """
        if not email or not email.strip():
            raise BadRequest("Email is required!")

        identity = await self._identity_by_email(email)
        if not identity.is_verified:
            raise BadRequest("This account is not verified! Please verify your email first.")
        profile = await self._profile_for(identity)

        otp = generate_otp()
        updated = await self.store.identities.update_by_id(
            identity.id,
            {
                "reset_code": otp,
                "reset_code_expiry": otp_expiry(self.clock(), self.config.otp_ttl_minutes),
            },
        )
        if updated is None:
            raise NotFound("User is not updated and not found!")

        delivery = await self.notifier.send_otp(
            profile.full_name, identity.email, otp, OtpPurpose.PASSWORD_RESET
        )
        if not delivery.success:
            raise InternalError(delivery.message or "Failed to send verification email!")

        logger.info("Password reset requested for %s account %s", self.policy.label, identity.id)
        return AccountResult(message="Reset Password instructions have been sent to your email")

    async def verify_reset_code(self, email: str, otp: str) -> AccountResult:
        """Check a reset OTP without consuming it."""
        if not email or not email.strip():
            raise BadRequest("Email is required!")
        if not otp or not otp.strip():
            raise BadRequest("OTP is required!")

        identity = await self._identity_by_email(email)
        check_otp(identity.reset_code, identity.reset_code_expiry, otp, self.clock())

        return AccountResult(
            message="Account verified successfully. You can now reset your password."
        )

    async def reset_password(self, email: str, new_password: str, otp: str) -> AccountResult:
        """
        Consume the pending reset code and store a new password hash.

        The code must be pending, unexpired and match ``otp``. Clearing the
        code and saving the new hash share one transaction.
        """
        if not email or not email.strip():
            raise BadRequest("Email is required!")
        if not otp or not otp.strip():
            raise BadRequest("OTP is required!")
        if not new_password or not new_password.strip():
            raise BadRequest("New password is required!")

        identity = await self._identity_by_email(email)
        check_otp(identity.reset_code, identity.reset_code_expiry, otp, self.clock())
        profile = await self._profile_for(identity)
        password_hash = await self.hasher.hash(new_password)

        async with self.store.transaction():
            cleared = await self.store.identities.update_by_id(
                identity.id, {"reset_code": None, "reset_code_expiry": None}
            )
            if cleared is None:
                raise NotFound("User is not updated and not found!")

            updated = await self.profiles.update_by_id(
                profile.id, {"password_hash": password_hash}
            )
            if updated is None:
                raise NotFound(f"{self.policy.label.capitalize()} is not updated and not found!")

        logger.info("Password reset completed for %s account %s", self.policy.label, identity.id)
        return AccountResult(
            message="Password reset successfully. You can now login with your new password."
        )
