"""JWT token issuer - Implements TokenIssuer protocol with PyJWT."""

from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from src.domain.exceptions import Unauthorized


class JwtTokenIssuer:
    """Signs and verifies HS256 bearer tokens.

    Examples
    --------
    >>> issuer = JwtTokenIssuer(secret_key="your-secret-key")
    >>> token = issuer.sign({"_id": "p1", "role": "buyer"}, ttl_seconds=3600)
    >>> issuer.verify(token)["role"]
    'buyer'
    """

    DEFAULT_ALGORITHM = "HS256"

    def __init__(self, secret_key: str, algorithm: str = DEFAULT_ALGORITHM):
        if not secret_key:
            msg = "JWT secret key cannot be empty"
            raise ValueError(msg)

        self._secret_key = secret_key
        self._algorithm = algorithm

    def sign(self, claims: Mapping[str, Any], ttl_seconds: int) -> str:
        now = datetime.now(tz=timezone.utc)
        payload = dict(claims)
        payload["iat"] = now
        payload["exp"] = now + timedelta(seconds=ttl_seconds)
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> dict[str, Any]:
        """Decode a token.

        Raises
        ------
        Unauthorized
            If token is invalid, expired, or malformed
        """
        try:
            return jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError as e:
            raise Unauthorized("Token has expired") from e
        except jwt.InvalidTokenError as e:
            raise Unauthorized() from e
