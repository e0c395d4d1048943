"""
API v1 routes.

Defines REST endpoints for the account lifecycle. One router is built per
role from its RolePolicy and mounted at ``/buyers``, ``/sellers`` and
``/admins``.
"""

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from src.api.dependencies import (
    login_service,
    password_reset_service,
    profile_service,
    registration_service,
    require_caller,
)
from src.api.models import (
    AccountResponse,
    EmailRequest,
    ErrorResponse,
    LoginRequest,
    ResetPasswordRequest,
    SignUpRequest,
    UpdateProfileRequest,
    VerifyRegistrationRequest,
    VerifyResetRequest,
)
from src.domain.authentication import LoginService
from src.domain.exceptions import BadRequest
from src.domain.models import Caller, ProfileUpdate, Registration
from src.domain.password_reset import PasswordResetService
from src.domain.profiles import ProfileService
from src.domain.registration import RegistrationService
from src.domain.roles import RolePolicy

_ERRORS = {
    400: {"model": ErrorResponse, "description": "Invalid input or OTP"},
    404: {"model": ErrorResponse, "description": "Account not found"},
}
_PROTECTED = {
    401: {"model": ErrorResponse, "description": "Missing or invalid bearer token"},
    403: {"model": ErrorResponse, "description": "Token not valid for this role or profile"},
}


def _registration_from(body: SignUpRequest, policy: RolePolicy) -> Registration:
    fields = policy.registration_fields
    if "username" in fields and not body.username:
        raise BadRequest("Username is required!")
    if "terms" in fields and not body.terms:
        raise BadRequest("You must accept the terms and conditions")
    return Registration(
        full_name=body.full_name,
        email=str(body.email),
        password=body.password,
        role=body.role,
        contact=body.contact,
        username=body.username if "username" in fields else None,
        terms=body.terms if "terms" in fields else False,
    )


def build_role_router(policy: RolePolicy) -> APIRouter:
    """Create the lifecycle and profile endpoints for one role."""
    label = policy.label
    router = APIRouter(tags=[f"{label}s"])

    get_registration = registration_service(policy)
    get_login = login_service(policy)
    get_reset = password_reset_service(policy)
    get_profiles = profile_service(policy)
    get_caller = require_caller(policy)

    @router.post(
        "/sign-up",
        response_model=AccountResponse,
        status_code=status.HTTP_201_CREATED,
        responses={
            **_ERRORS,
            409: {"model": ErrorResponse, "description": "Email, username or contact taken"},
            500: {"model": ErrorResponse, "description": "Verification email not sent"},
        },
        summary=f"Register a {label}",
        description="Create an unverified account and email a 6-digit verification code.",
    )
    async def sign_up(
        body: SignUpRequest,
        service: RegistrationService = Depends(get_registration),
    ) -> AccountResponse:
        """
        Register a new account and send the verification code.

        Re-registering an unverified email replaces its details and code.
        """
        result = await service.register(_registration_from(body, policy))
        return AccountResponse.from_result(result)

    if "username" in policy.unique_fields:

        @router.get(
            "/check-username-unique",
            response_model=AccountResponse,
            responses={409: {"model": ErrorResponse, "description": "Username taken"}},
            summary="Check username availability",
        )
        async def check_username_unique(
            username: str = Query(..., min_length=3, max_length=20),
            service: RegistrationService = Depends(get_registration),
        ) -> AccountResponse:
            return AccountResponse.from_result(await service.check_username_unique(username))

    @router.put(
        "/verify-account/registration",
        response_model=AccountResponse,
        responses={**_ERRORS, 409: {"model": ErrorResponse, "description": "Already verified"}},
        summary="Verify registration code",
        description=f"Submit the emailed code with the account {policy.verification_key}.",
    )
    async def verify_registration(
        body: VerifyRegistrationRequest,
        service: RegistrationService = Depends(get_registration),
    ) -> AccountResponse:
        identifier = getattr(body, policy.verification_key)
        result = await service.verify_registration(str(identifier or ""), body.otp)
        return AccountResponse.from_result(result)

    @router.put(
        "/send-verification-email-registration",
        response_model=AccountResponse,
        responses={
            **_ERRORS,
            409: {"model": ErrorResponse, "description": "Already verified"},
            500: {"model": ErrorResponse, "description": "Verification email not sent"},
        },
        summary="Resend registration code",
    )
    async def send_verification_email(
        body: EmailRequest,
        service: RegistrationService = Depends(get_registration),
    ) -> AccountResponse:
        return AccountResponse.from_result(await service.resend_verification(str(body.email)))

    @router.post(
        "/login",
        response_model=AccountResponse,
        responses=_ERRORS,
        summary=f"Log in as {label}",
        description=policy.identifier_hint,
    )
    async def login(
        body: LoginRequest,
        service: LoginService = Depends(get_login),
    ) -> AccountResponse:
        result = await service.login(body.identifier, body.password, body.role)
        return AccountResponse.from_result(result)

    @router.get(
        "/logout",
        response_model=AccountResponse,
        responses=_PROTECTED,
        summary=f"Log out {label}",
    )
    async def logout(
        caller: Caller = Depends(get_caller),
        service: LoginService = Depends(get_login),
    ) -> AccountResponse:
        return AccountResponse.from_result(await service.logout())

    @router.put(
        "/forgot-password",
        response_model=AccountResponse,
        responses={
            **_ERRORS,
            500: {"model": ErrorResponse, "description": "Reset email not sent"},
        },
        summary="Request password reset code",
    )
    async def forgot_password(
        body: EmailRequest,
        service: PasswordResetService = Depends(get_reset),
    ) -> AccountResponse:
        return AccountResponse.from_result(await service.request_reset(str(body.email)))

    @router.put(
        "/verify-account/reset-password",
        response_model=AccountResponse,
        responses=_ERRORS,
        summary="Check password reset code",
        description="Validates the code without consuming it.",
    )
    async def verify_reset_code(
        body: VerifyResetRequest,
        service: PasswordResetService = Depends(get_reset),
    ) -> AccountResponse:
        result = await service.verify_reset_code(str(body.email), body.otp)
        return AccountResponse.from_result(result)

    @router.put(
        "/reset-password",
        response_model=AccountResponse,
        responses=_ERRORS,
        summary="Reset password",
    )
    async def reset_password(
        body: ResetPasswordRequest,
        service: PasswordResetService = Depends(get_reset),
    ) -> AccountResponse:
        result = await service.reset_password(str(body.email), body.new_password, body.otp)
        return AccountResponse.from_result(result)

    @router.get(
        "/email/{email}",
        response_model=AccountResponse,
        responses={**_ERRORS, **_PROTECTED},
        summary=f"Get {label} by email",
    )
    async def get_by_email(
        email: str,
        caller: Caller = Depends(get_caller),
        service: ProfileService = Depends(get_profiles),
    ) -> AccountResponse:
        return AccountResponse.from_result(await service.get_by_email(email))

    @router.get(
        "/me/{profile_id}",
        response_model=AccountResponse,
        responses={**_ERRORS, **_PROTECTED},
        summary=f"Get the authenticated {label}",
    )
    async def get_current(
        profile_id: str,
        caller: Caller = Depends(get_caller),
        service: ProfileService = Depends(get_profiles),
    ) -> AccountResponse:
        return AccountResponse.from_result(await service.get_current(caller, profile_id))

    @router.get(
        "/{profile_id}",
        response_model=AccountResponse,
        responses={**_ERRORS, **_PROTECTED},
        summary=f"Get {label} by id",
    )
    async def get_by_id(
        profile_id: str,
        caller: Caller = Depends(get_caller),
        service: ProfileService = Depends(get_profiles),
    ) -> AccountResponse:
        return AccountResponse.from_result(await service.get_by_id(profile_id))

    @router.put(
        "/{profile_id}",
        response_model=AccountResponse,
        responses={
            **_ERRORS,
            **_PROTECTED,
            409: {"model": ErrorResponse, "description": "Email, username or contact taken"},
        },
        summary=f"Update {label} details",
    )
    async def update_details(
        profile_id: str,
        body: UpdateProfileRequest,
        caller: Caller = Depends(get_caller),
        service: ProfileService = Depends(get_profiles),
    ) -> AccountResponse:
        update = ProfileUpdate(
            full_name=body.full_name,
            email=str(body.email) if body.email else None,
            contact=body.contact,
            username=body.username if "username" in policy.registration_fields else None,
            bio=body.bio,
        )
        return AccountResponse.from_result(
            await service.update_details(caller, profile_id, update)
        )

    @router.put(
        "/{profile_id}/profile-picture",
        response_model=AccountResponse,
        responses={
            **_ERRORS,
            **_PROTECTED,
            500: {"model": ErrorResponse, "description": "Upload failed"},
        },
        summary=f"Change {label} profile picture",
    )
    async def change_picture(
        profile_id: str,
        image: UploadFile = File(...),
        caller: Caller = Depends(get_caller),
        service: ProfileService = Depends(get_profiles),
    ) -> AccountResponse:
        data = await image.read()
        result = await service.change_picture(
            caller, profile_id, data, image.filename or "image"
        )
        return AccountResponse.from_result(result)

    @router.delete(
        "/{profile_id}",
        response_model=AccountResponse,
        responses={
            **_ERRORS,
            **_PROTECTED,
            500: {"model": ErrorResponse, "description": "Deletion incomplete"},
        },
        summary=f"Delete {label} account",
    )
    async def delete_account(
        profile_id: str,
        caller: Caller = Depends(get_caller),
        service: ProfileService = Depends(get_profiles),
    ) -> AccountResponse:
        return AccountResponse.from_result(await service.delete_account(caller, profile_id))

    return router
