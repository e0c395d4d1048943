"""
One-time passcodes - generation and lazy expiry checks.

Codes are 6-digit strings with a wall-clock validity window. Expiry is
checked at next use (``now > expiry``); nothing sweeps stale codes.
"""

import secrets
from datetime import datetime, timedelta, timezone

from .exceptions import BadRequest

OTP_LENGTH = 6


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def generate_otp() -> str:
    """
    Generate cryptographically secure 6-digit passcode.

    Uses secrets module for cryptographic randomness.
    Returns string to preserve leading zeros.
    """
    return "".join(secrets.choice("0123456789") for _ in range(OTP_LENGTH))


def otp_expiry(now: datetime, ttl_minutes: int) -> datetime:
    return now + timedelta(minutes=ttl_minutes)


def check_otp(
    stored: str | None,
    expiry: datetime | None,
    supplied: str,
    now: datetime,
) -> None:
    """
    Validate a pending passcode.

    Order matters: a missing code wins over expiry, and an expired code
    fails regardless of whether ``supplied`` matches.

    Raises:
        BadRequest: No pending code, code expired, or code mismatch
    """
    if not stored or expiry is None:
        raise BadRequest("No OTP request found! Please request for a new OTP.")

    if now > expiry:
        raise BadRequest("OTP has expired! Please request for a new OTP.")

    if not secrets.compare_digest(stored.encode(), supplied.encode()):
        raise BadRequest("Invalid OTP! Please try again.")
