"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory account store and fake collaborators
- A controllable clock for OTP expiry
- Service factories bound to a role policy
- Test client setup over the in-memory backend
"""

from collections.abc import Generator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from src.adapters.repository.memory import InMemoryAccountStore
from src.adapters.security.jwt_tokens import JwtTokenIssuer
from src.api.dependencies import get_hasher, get_image_store, get_notifier, get_token_issuer
from src.api.main import create_app
from src.config.settings import get_settings
from src.domain.authentication import LoginService
from src.domain.models import AccountConfig
from src.domain.password_reset import PasswordResetService
from src.domain.ports import DeliveryResult
from src.domain.profiles import ProfileService
from src.domain.registration import RegistrationService
from src.domain.roles import RolePolicy
from tests.factories import TEST_SECRET, Clock, FakeHasher


@pytest.fixture
def store() -> InMemoryAccountStore:
    return InMemoryAccountStore()


@pytest.fixture
def hasher() -> FakeHasher:
    return FakeHasher()


@pytest.fixture
def tokens() -> JwtTokenIssuer:
    return JwtTokenIssuer(secret_key=TEST_SECRET)


@pytest.fixture
def notifier() -> AsyncMock:
    """Notification sender that reports successful delivery."""
    sender = AsyncMock()
    sender.send_otp.return_value = DeliveryResult(
        success=True, message="Verification email sent successfully."
    )
    return sender


@pytest.fixture
def images() -> AsyncMock:
    store = AsyncMock()
    store.upload.return_value = "https://cdn.example.com/leelame/profile-pictures/me.png"
    return store


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def registration_for(store, hasher, tokens, notifier, clock):
    def factory(policy: RolePolicy) -> RegistrationService:
        return RegistrationService(
            store=store,
            policy=policy,
            hasher=hasher,
            tokens=tokens,
            notifier=notifier,
            config=AccountConfig(),
            clock=clock,
        )

    return factory


@pytest.fixture
def login_for(store, hasher, tokens):
    def factory(policy: RolePolicy, require_verified: bool = False) -> LoginService:
        return LoginService(
            store=store,
            policy=policy,
            hasher=hasher,
            tokens=tokens,
            require_verified=require_verified,
        )

    return factory


@pytest.fixture
def reset_for(store, hasher, notifier, clock):
    def factory(policy: RolePolicy) -> PasswordResetService:
        return PasswordResetService(
            store=store, policy=policy, hasher=hasher, notifier=notifier, clock=clock
        )

    return factory


@pytest.fixture
def profiles_for(store, images):
    def factory(policy: RolePolicy) -> ProfileService:
        return ProfileService(store=store, policy=policy, images=images)

    return factory


def _clear_caches() -> None:
    for cached in (get_settings, get_hasher, get_token_issuer, get_notifier, get_image_store):
        cached.cache_clear()


@pytest.fixture
def memory_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Point the application at the in-memory backend and console sender."""
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("EMAIL_BACKEND", "console")
    monkeypatch.setenv("JWT_SECRET", TEST_SECRET)
    _clear_caches()
    yield
    _clear_caches()


@pytest.fixture
def api_client(memory_settings, hasher, notifier, images) -> Generator[TestClient, None, None]:
    """
    Client for the full application over the in-memory store.

    The hasher, notifier and image store are replaced by fakes so tests
    can read OTPs from ``notifier`` and skip bcrypt and S3.
    """
    app = create_app()
    app.dependency_overrides[get_hasher] = lambda: hasher
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_image_store] = lambda: images
    with TestClient(app) as client:
        yield client
