"""
Shared fixtures for adversarial tests.

Provides token forging and a signed-up buyer for tampering tests.
"""

import time
from collections.abc import Callable
from typing import Any

import jwt
import pytest
from fastapi.testclient import TestClient

from tests.factories import PASSWORD, TEST_SECRET


@pytest.fixture
def forge() -> Callable[..., str]:
    """Sign arbitrary claims, by default with the application's secret."""

    def sign(
        claims: dict[str, Any],
        secret: str = TEST_SECRET,
        expires_in: int = 3600,
        algorithm: str = "HS256",
    ) -> str:
        now = int(time.time())
        payload = {"iat": now, "exp": now + expires_in, **claims}
        return jwt.encode(payload, secret, algorithm=algorithm)

    return sign


@pytest.fixture
def signed_up(api_client: TestClient) -> Callable[..., dict]:
    """Sign up an account and return its token and profile."""

    def sign_up(path: str = "buyers", **overrides) -> dict:
        body = {
            "fullName": "Alice Buyer",
            "email": "a@x.com",
            "password": PASSWORD,
            "contact": "9999999999",
            "role": path.rstrip("s"),
            "username": "abc",
            "terms": True,
            **overrides,
        }
        response = api_client.post(f"/v1/{path}/sign-up", json=body)
        assert response.status_code == 201
        return response.json()

    return sign_up
