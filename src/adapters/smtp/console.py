"""
Console notification sender adapter - Implements NotificationSender protocol.

This module provides a console-based implementation of the domain's
notification port, logging one-time passcodes for local development.
"""

import logging

from src.domain.ports import DeliveryResult, OtpPurpose

logger = logging.getLogger(__name__)


class ConsoleNotificationSender:
    """
    Implements NotificationSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints passcodes to the log.
    """

    async def send_otp(
        self, recipient_name: str, email: str, otp: str, purpose: OtpPurpose
    ) -> DeliveryResult:
        """
        Log the passcode (simulates email delivery).

        The code is logged at INFO level to be visible in docker-compose logs.
        """
        logger.info(
            "[%s] Name: %s Email: %s Code: %s",
            purpose.value.upper(),
            recipient_name,
            email,
            otp,
        )
        return DeliveryResult(success=True, message="Verification email sent successfully.")
