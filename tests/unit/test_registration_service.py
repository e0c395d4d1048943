"""
Unit tests for RegistrationService domain logic.

Tests the registration state machine over the in-memory store to verify:
- Create-or-reuse of Identity + Profile
- OTP issuance, expiry and consumption
- Uniqueness rules against verified and unverified holders
- Compensating rollback when delivery fails
- Role checks and per-role verification keys
"""

import re

import pytest

from src.domain.exceptions import BadRequest, Conflict, InternalError, NotFound
from src.domain.models import AccountState, Role, SellerStatus
from src.domain.ports import DeliveryResult, OtpPurpose
from src.domain.roles import ADMIN, BUYER, SELLER
from tests.factories import (
    admin_registration,
    buyer_registration,
    seller_registration,
    sent_otp,
)


class TestRegisterNewAccount:
    """Tests for NO_IDENTITY -> UNVERIFIED."""

    @pytest.mark.asyncio
    async def test_register_buyer_scenario(self, registration_for) -> None:
        """Fresh buyer registration returns 201 with an unverified profile."""
        service = registration_for(BUYER)

        result = await service.register(buyer_registration())

        assert result.status == 201
        assert result.success is True
        assert result.message == "User registered successfully. Please verify your email."
        assert result.user.username == "abc"
        assert result.user.is_verified is False

    @pytest.mark.asyncio
    async def test_register_creates_one_identity_and_one_profile(
        self, registration_for, store
    ) -> None:
        """Exactly one Profile linked to exactly one Identity."""
        await registration_for(BUYER).register(buyer_registration())

        identities = await store.identities.find_all()
        profiles = await store.profiles(Role.BUYER).find_all()
        assert len(identities) == 1
        assert len(profiles) == 1
        assert profiles[0].identity_id == identities[0].id
        assert identities[0].state == AccountState.UNVERIFIED

    @pytest.mark.asyncio
    async def test_register_stores_pending_otp(self, registration_for, store, clock) -> None:
        """OTP is stored with a 10-minute expiry."""
        await registration_for(BUYER).register(buyer_registration())

        identity = await store.identities.find_by_email("a@x.com")
        assert re.match(r"^\d{6}$", identity.verify_code)
        assert (identity.verify_code_expiry - clock.now).total_seconds() == 600

    @pytest.mark.asyncio
    async def test_register_sends_stored_otp(self, registration_for, store, notifier) -> None:
        """The delivered code is the stored code."""
        await registration_for(BUYER).register(buyer_registration())

        identity = await store.identities.find_by_email("a@x.com")
        notifier.send_otp.assert_awaited_once_with(
            "Alice Buyer", "a@x.com", identity.verify_code, OtpPurpose.REGISTRATION
        )

    @pytest.mark.asyncio
    async def test_register_normalizes_email(self, registration_for, store) -> None:
        """Email is stripped and lowercased before storage."""
        await registration_for(BUYER).register(buyer_registration(email="  A@X.COM "))

        assert await store.identities.find_by_email("a@x.com") is not None

    @pytest.mark.asyncio
    async def test_register_hashes_password(self, registration_for, store) -> None:
        """Only the hash is stored on the profile."""
        await registration_for(BUYER).register(buyer_registration())

        profile = (await store.profiles(Role.BUYER).find_all())[0]
        assert profile.password_hash == "hashed:Abcd123!@"

    @pytest.mark.asyncio
    async def test_register_returns_signed_token(self, registration_for, tokens) -> None:
        """Pre-verification token carries ids, role and the role's secondary claim."""
        result = await registration_for(BUYER).register(buyer_registration())

        claims = tokens.verify(result.token)
        assert claims["_id"] == result.user.id
        assert claims["userId"] == result.user.base_user_id
        assert claims["role"] == "buyer"
        assert claims["username"] == "abc"

    @pytest.mark.asyncio
    async def test_register_seller_defaults_status(self, registration_for, tokens) -> None:
        """Sellers start with status none and a contact claim."""
        result = await registration_for(SELLER).register(seller_registration())

        assert result.user.seller_status == SellerStatus.NONE
        assert tokens.verify(result.token)["contact"] == "8888888888"

    @pytest.mark.asyncio
    async def test_register_admin(self, registration_for, store) -> None:
        """Admin registration stores the admin profile."""
        result = await registration_for(ADMIN).register(admin_registration())

        assert result.status == 201
        assert len(await store.profiles(Role.ADMIN).find_all()) == 1


class TestRegisterRoleChecks:
    """Tests for role validation on registration."""

    @pytest.mark.asyncio
    async def test_missing_role_rejected(self, registration_for) -> None:
        """Missing role is a BadRequest."""
        with pytest.raises(BadRequest, match="User role is required!"):
            await registration_for(BUYER).register(buyer_registration(role=None))

    @pytest.mark.asyncio
    async def test_other_role_rejected(self, registration_for) -> None:
        """A seller payload cannot register through the buyer service."""
        with pytest.raises(BadRequest, match="Invalid role! Role is unknown."):
            await registration_for(BUYER).register(buyer_registration(role="seller"))

    @pytest.mark.asyncio
    async def test_role_string_accepted(self, registration_for) -> None:
        """Role given as its string value is accepted."""
        result = await registration_for(BUYER).register(buyer_registration(role="buyer"))
        assert result.status == 201


class TestRegisterExistingEmail:
    """Tests for UNVERIFIED -> UNVERIFIED and VERIFIED rejection."""

    @pytest.mark.asyncio
    async def test_verified_email_conflicts(self, registration_for, notifier) -> None:
        """Registering twice with a verified email yields Conflict."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())
        await service.verify_registration("abc", sent_otp(notifier))

        with pytest.raises(Conflict, match="Email already registered!"):
            await service.register(buyer_registration(username="other", contact="1111111111"))

    @pytest.mark.asyncio
    async def test_unverified_email_reuses_identity(self, registration_for, store) -> None:
        """Retrying an unverified registration keeps the Identity id."""
        service = registration_for(BUYER)
        first = await service.register(buyer_registration())
        second = await service.register(buyer_registration(full_name="Alice Again"))

        assert second.user.base_user_id == first.user.base_user_id
        assert len(await store.identities.find_all()) == 1
        assert len(await store.profiles(Role.BUYER).find_all()) == 1
        assert second.user.full_name == "Alice Again"

    @pytest.mark.asyncio
    async def test_retry_replaces_otp(self, registration_for, store, notifier) -> None:
        """A retry issues a fresh code that replaces the pending one."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())
        await service.register(buyer_registration())

        identity = await store.identities.find_by_email("a@x.com")
        assert identity.verify_code == sent_otp(notifier)
        assert notifier.send_otp.await_count == 2

    @pytest.mark.asyncio
    async def test_retry_under_other_role_moves_profile(self, registration_for, store) -> None:
        """An unverified identity re-registered as seller leaves no buyer profile."""
        await registration_for(BUYER).register(buyer_registration(email="s@x.com"))
        await registration_for(SELLER).register(seller_registration())

        identity = await store.identities.find_by_email("s@x.com")
        assert identity.role == Role.SELLER
        assert await store.profiles(Role.BUYER).find_all() == []
        assert len(await store.profiles(Role.SELLER).find_all()) == 1


class TestRegisterUniqueFields:
    """Tests for username/contact uniqueness."""

    @pytest.mark.asyncio
    async def test_username_of_verified_account_conflicts(
        self, registration_for, notifier
    ) -> None:
        """A verified holder of the username blocks registration."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())
        await service.verify_registration("abc", sent_otp(notifier))

        with pytest.raises(Conflict, match="Username already exists!"):
            await service.register(buyer_registration(email="b@x.com", contact="1111111111"))

    @pytest.mark.asyncio
    async def test_contact_of_verified_account_conflicts(
        self, registration_for, notifier
    ) -> None:
        """A verified holder of the contact blocks registration."""
        service = registration_for(SELLER)
        await service.register(seller_registration())
        await service.verify_registration("s@x.com", sent_otp(notifier))

        with pytest.raises(Conflict, match="Contact already exists!"):
            await service.register(seller_registration(email="t@x.com"))

    @pytest.mark.asyncio
    async def test_unverified_holder_releases_username(self, registration_for, store) -> None:
        """An unverified holder loses the username to the new registration."""
        service = registration_for(BUYER)
        first = await service.register(buyer_registration())
        await service.register(buyer_registration(email="b@x.com", contact="1111111111"))

        stale = await store.profiles(Role.BUYER).find_by_id(first.user.id)
        assert stale.username is None
        holder = await store.profiles(Role.BUYER).find_by_field("username", "abc")
        assert holder.id != first.user.id

    @pytest.mark.asyncio
    async def test_verified_email_conflict_keeps_other_usernames(
        self, registration_for, store, notifier
    ) -> None:
        """A rejected registration does not take the username of an unverified account."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())
        await service.verify_registration("abc", sent_otp(notifier))
        await service.register(
            buyer_registration(email="b@x.com", username="bob", contact="1111111111")
        )
        bob_otp = sent_otp(notifier)

        with pytest.raises(Conflict, match="Email already registered!"):
            await service.register(buyer_registration(username="bob", contact="2222222222"))

        holder = await store.profiles(Role.BUYER).find_by_field("username", "bob")
        assert holder is not None
        await service.verify_registration("bob", bob_otp)
        assert (await store.identities.find_by_email("b@x.com")).is_verified is True

    @pytest.mark.asyncio
    async def test_blocked_contact_releases_nothing(
        self, registration_for, store, notifier
    ) -> None:
        """No value is released when another field of the same claim conflicts."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())
        await service.verify_registration("abc", sent_otp(notifier))
        await service.register(
            buyer_registration(email="b@x.com", username="bob", contact="1111111111")
        )

        with pytest.raises(Conflict, match="Contact already exists!"):
            await service.register(
                buyer_registration(email="c@x.com", username="bob", contact="9999999999")
            )

        holder = await store.profiles(Role.BUYER).find_by_field("username", "bob")
        assert holder is not None
        assert await store.identities.find_by_email("c@x.com") is None

    @pytest.mark.asyncio
    async def test_contact_unique_per_role(self, registration_for) -> None:
        """The same contact may be used by a buyer and a seller."""
        await registration_for(BUYER).register(buyer_registration(contact="8888888888"))
        result = await registration_for(SELLER).register(seller_registration())

        assert result.status == 201


class TestRegisterRollback:
    """Tests for compensation when OTP delivery fails."""

    @pytest.mark.asyncio
    async def test_failed_delivery_removes_new_records(
        self, registration_for, store, notifier
    ) -> None:
        """New Identity and Profile are deleted when the email cannot be sent."""
        notifier.send_otp.return_value = DeliveryResult(
            success=False, message="Failed to send verification email."
        )

        with pytest.raises(InternalError, match="Failed to send verification email."):
            await registration_for(BUYER).register(buyer_registration())

        assert await store.identities.find_all() == []
        assert await store.profiles(Role.BUYER).find_all() == []

    @pytest.mark.asyncio
    async def test_failed_delivery_clears_reused_identity_otp(
        self, registration_for, store, notifier
    ) -> None:
        """A reused Identity keeps its row but loses the undelivered code."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())
        notifier.send_otp.return_value = DeliveryResult(success=False, message="")

        with pytest.raises(InternalError):
            await service.register(buyer_registration())

        identity = await store.identities.find_by_email("a@x.com")
        assert identity is not None
        assert identity.verify_code is None
        assert identity.verify_code_expiry is None
        assert len(await store.profiles(Role.BUYER).find_all()) == 1


class TestVerifyRegistration:
    """Tests for UNVERIFIED -> VERIFIED."""

    @pytest.mark.asyncio
    async def test_correct_otp_verifies_and_clears(
        self, registration_for, store, notifier
    ) -> None:
        """Correct code activates the account and clears the code."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())

        result = await service.verify_registration("abc", sent_otp(notifier))

        assert result.status == 200
        assert result.message == "Account verified successfully. You can now login."
        identity = await store.identities.find_by_email("a@x.com")
        assert identity.is_verified is True
        assert identity.verify_code is None
        assert identity.verify_code_expiry is None

    @pytest.mark.asyncio
    async def test_wrong_otp_scenario(self, registration_for, notifier) -> None:
        """Wrong code fails with 400 Invalid OTP."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())
        wrong = "000000" if sent_otp(notifier) != "000000" else "111111"

        with pytest.raises(BadRequest, match="Invalid OTP") as exc_info:
            await service.verify_registration("abc", wrong)
        assert exc_info.value.status == 400

    @pytest.mark.asyncio
    async def test_expired_otp_fails_even_if_correct(
        self, registration_for, notifier, clock
    ) -> None:
        """now > expiry fails regardless of code correctness."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())
        clock.advance(minutes=10, seconds=1)

        with pytest.raises(BadRequest, match="OTP has expired!"):
            await service.verify_registration("abc", sent_otp(notifier))

    @pytest.mark.asyncio
    async def test_otp_valid_at_expiry_instant(self, registration_for, notifier, clock) -> None:
        """The code is still accepted exactly at its expiry time."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())
        clock.advance(minutes=10)

        result = await service.verify_registration("abc", sent_otp(notifier))
        assert result.success is True

    @pytest.mark.asyncio
    async def test_repeat_verification_conflicts(self, registration_for, notifier) -> None:
        """A second verification reports already verified."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())
        otp = sent_otp(notifier)
        await service.verify_registration("abc", otp)

        with pytest.raises(Conflict, match="already verified"):
            await service.verify_registration("abc", otp)

    @pytest.mark.asyncio
    async def test_seller_verifies_by_email(self, registration_for, notifier) -> None:
        """Sellers identify the pending registration by email."""
        service = registration_for(SELLER)
        await service.register(seller_registration())

        result = await service.verify_registration("S@X.com", sent_otp(notifier))
        assert result.success is True

    @pytest.mark.asyncio
    async def test_unknown_username_not_found(self, registration_for) -> None:
        """Unknown verification key is NotFound."""
        with pytest.raises(NotFound):
            await registration_for(BUYER).verify_registration("nobody", "123456")

    @pytest.mark.asyncio
    async def test_missing_otp_rejected(self, registration_for) -> None:
        """Empty code is a BadRequest."""
        with pytest.raises(BadRequest, match="OTP is required!"):
            await registration_for(BUYER).verify_registration("abc", "")


class TestResendVerification:
    """Tests for re-issuing the registration OTP."""

    @pytest.mark.asyncio
    async def test_resend_replaces_code(self, registration_for, store, notifier, clock) -> None:
        """Resend stores and delivers a fresh code with a new expiry."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())
        clock.advance(minutes=30)

        result = await service.resend_verification("a@x.com")

        identity = await store.identities.find_by_email("a@x.com")
        assert result.success is True
        assert identity.verify_code == sent_otp(notifier)
        assert identity.verify_code_expiry > clock.now
        await service.verify_registration("abc", sent_otp(notifier))

    @pytest.mark.asyncio
    async def test_resend_for_verified_conflicts(self, registration_for, notifier) -> None:
        """Resend is refused once verified."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())
        await service.verify_registration("abc", sent_otp(notifier))

        with pytest.raises(Conflict):
            await service.resend_verification("a@x.com")

    @pytest.mark.asyncio
    async def test_resend_unknown_email(self, registration_for) -> None:
        """Unknown email is NotFound."""
        with pytest.raises(NotFound, match="User with this email does not exist!"):
            await registration_for(BUYER).resend_verification("nobody@x.com")

    @pytest.mark.asyncio
    async def test_resend_delivery_failure(self, registration_for, notifier) -> None:
        """Failed resend surfaces as InternalError."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())
        notifier.send_otp.return_value = DeliveryResult(success=False, message="")

        with pytest.raises(InternalError):
            await service.resend_verification("a@x.com")


class TestCheckUsernameUnique:
    """Tests for username availability."""

    @pytest.mark.asyncio
    async def test_free_username_available(self, registration_for) -> None:
        """Unused username is available."""
        result = await registration_for(BUYER).check_username_unique("fresh")
        assert result.message == "Username is available"

    @pytest.mark.asyncio
    async def test_unverified_holder_available(self, registration_for) -> None:
        """A username held only by an unverified account is available."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())

        result = await service.check_username_unique("abc")
        assert result.success is True

    @pytest.mark.asyncio
    async def test_verified_holder_taken(self, registration_for, notifier) -> None:
        """A verified holder makes the username taken."""
        service = registration_for(BUYER)
        await service.register(buyer_registration())
        await service.verify_registration("abc", sent_otp(notifier))

        with pytest.raises(Conflict, match="Username is already taken!"):
            await service.check_username_unique("abc")

    @pytest.mark.asyncio
    async def test_not_offered_for_sellers(self, registration_for) -> None:
        """Sellers have no usernames."""
        with pytest.raises(BadRequest):
            await registration_for(SELLER).check_username_unique("abc")
