"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
Service factories are built per role so one router definition
serves buyers, sellers and admins.
"""

from collections.abc import Callable
from functools import lru_cache

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.adapters.security import BcryptPasswordHasher, JwtTokenIssuer
from src.adapters.smtp import ConsoleNotificationSender, SmtpNotificationSender
from src.adapters.storage import SpacesImageStore
from src.config.settings import Settings, get_settings
from src.domain.exceptions import Forbidden, NotFound, Unauthorized
from src.domain.models import Caller, Role
from src.domain.authentication import LoginService
from src.domain.password_reset import PasswordResetService
from src.domain.ports import (
    AccountStore,
    ImageStore,
    NotificationSender,
    PasswordHasher,
    TokenIssuer,
)
from src.domain.profiles import ProfileService
from src.domain.registration import RegistrationService
from src.domain.roles import RolePolicy


def get_store(request: Request) -> AccountStore:
    """
    Get account store from app state.

    The store is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.store


@lru_cache
def get_hasher() -> PasswordHasher:
    """Get bcrypt hasher (singleton)."""
    return BcryptPasswordHasher(cost=get_settings().bcrypt_cost)


@lru_cache
def get_token_issuer() -> TokenIssuer:
    """Get JWT issuer (singleton)."""
    settings = get_settings()
    return JwtTokenIssuer(
        secret_key=settings.jwt_secret.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


@lru_cache
def get_notifier() -> NotificationSender:
    """Get the configured OTP sender; console unless ``EMAIL_BACKEND=smtp``."""
    settings = get_settings()
    if settings.email_backend == "smtp":
        return SmtpNotificationSender(settings)
    return ConsoleNotificationSender()


@lru_cache
def get_image_store() -> ImageStore:
    """Get Spaces image store (singleton)."""
    return SpacesImageStore(get_settings())


def registration_service(policy: RolePolicy) -> Callable[..., RegistrationService]:
    def dependency(
        store: AccountStore = Depends(get_store),
        hasher: PasswordHasher = Depends(get_hasher),
        tokens: TokenIssuer = Depends(get_token_issuer),
        notifier: NotificationSender = Depends(get_notifier),
        settings: Settings = Depends(get_settings),
    ) -> RegistrationService:
        return RegistrationService(
            store=store,
            policy=policy,
            hasher=hasher,
            tokens=tokens,
            notifier=notifier,
            config=settings.account_config(),
        )

    return dependency


def login_service(policy: RolePolicy) -> Callable[..., LoginService]:
    def dependency(
        store: AccountStore = Depends(get_store),
        hasher: PasswordHasher = Depends(get_hasher),
        tokens: TokenIssuer = Depends(get_token_issuer),
        settings: Settings = Depends(get_settings),
    ) -> LoginService:
        return LoginService(
            store=store,
            policy=policy,
            hasher=hasher,
            tokens=tokens,
            config=settings.account_config(),
            require_verified=settings.require_verified_login,
        )

    return dependency


def password_reset_service(policy: RolePolicy) -> Callable[..., PasswordResetService]:
    def dependency(
        store: AccountStore = Depends(get_store),
        hasher: PasswordHasher = Depends(get_hasher),
        notifier: NotificationSender = Depends(get_notifier),
        settings: Settings = Depends(get_settings),
    ) -> PasswordResetService:
        return PasswordResetService(
            store=store,
            policy=policy,
            hasher=hasher,
            notifier=notifier,
            config=settings.account_config(),
        )

    return dependency


def profile_service(policy: RolePolicy) -> Callable[..., ProfileService]:
    def dependency(
        store: AccountStore = Depends(get_store),
        images: ImageStore = Depends(get_image_store),
        settings: Settings = Depends(get_settings),
    ) -> ProfileService:
        return ProfileService(
            store=store,
            policy=policy,
            images=images,
            picture_folder=settings.profile_picture_folder,
        )

    return dependency


# Bearer security scheme for OpenAPI documentation; missing header handled below
http_bearer = HTTPBearer(auto_error=False)


def require_caller(policy: RolePolicy) -> Callable[..., Caller]:
    """
    Build a dependency authenticating the bearer token for one role.

    - Missing, malformed or expired token -> 401
    - Token issued for another role -> 403
    - Identity or profile from the token no longer stored -> 404
    """

    async def dependency(
        credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
        tokens: TokenIssuer = Depends(get_token_issuer),
        store: AccountStore = Depends(get_store),
    ) -> Caller:
        if credentials is None:
            raise Unauthorized()

        claims = tokens.verify(credentials.credentials)
        try:
            caller = Caller(
                profile_id=str(claims["_id"]),
                identity_id=str(claims["userId"]),
                role=Role(claims["role"]),
            )
        except (KeyError, ValueError) as e:
            raise Unauthorized() from e

        if caller.role != policy.role:
            raise Forbidden(f"User role {caller.role.value} is not authorized to access this route")

        if await store.identities.find_by_id(caller.identity_id) is None:
            raise NotFound("Base user with this id not found!")
        if await store.profiles(policy.role).find_by_id(caller.profile_id) is None:
            raise NotFound(f"{policy.label.capitalize()} with this id not found!")

        return caller

    return dependency
