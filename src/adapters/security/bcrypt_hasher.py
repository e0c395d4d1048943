"""
bcrypt password hasher - Implements PasswordHasher protocol.

bcrypt is CPU-bound (~100ms at cost 10), so hashing and checking run in
a worker thread instead of on the event loop.
"""

import asyncio

import bcrypt


class BcryptPasswordHasher:
    """Implements PasswordHasher protocol with bcrypt."""

    def __init__(self, cost: int = 10) -> None:
        if cost < 10:
            raise ValueError("bcrypt cost factor must be at least 10")
        self._cost = cost

    def _hash(self, password: str) -> str:
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self._cost)).decode()

    def _verify(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode(), password_hash.encode())
        except ValueError:
            # Stored value is not a bcrypt hash
            return False

    async def hash(self, password: str) -> str:
        return await asyncio.to_thread(self._hash, password)

    async def verify(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(self._verify, password, password_hash)
