"""
SMTP notification sender adapter - Implements NotificationSender protocol.

Renders the registration / password-reset passcode emails and delivers
them over SMTP (STARTTLS or implicit TLS). The blocking smtplib session
runs in a worker thread so the event loop keeps serving requests.
"""

import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from src.config.settings import Settings
from src.domain.ports import DeliveryResult, OtpPurpose

logger = logging.getLogger(__name__)

SUBJECTS = {
    OtpPurpose.REGISTRATION: "Leelame | Your Verification Code",
    OtpPurpose.PASSWORD_RESET: "Leelame | Reset Your Password",
}

INTROS = {
    OtpPurpose.REGISTRATION: (
        "Thank you for signing up with us. Please use the following code to "
        "verify your email address for your registration."
    ),
    OtpPurpose.PASSWORD_RESET: (
        "We received a request to reset your password. Please use the following "
        "code to continue."
    ),
}

OTP_TEXT = """Hello, {name}

{intro}

Verification Code: {otp}

If you did not request this, please ignore this email.
This code will expire in {ttl} minutes.
"""

OTP_HTML = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>Verification Code</title>
</head>
<body style="font-family: 'Roboto', Verdana, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2 style="color: #1a73e8;">Hello, {name}</h2>
        <p>{intro}</p>
        <p><strong>Verification Code: {otp}</strong></p>
        <p>If you did not request this, please ignore this email.</p>
        <p>This code will expire in {ttl} minutes.</p>
    </div>
</body>
</html>
"""


class SmtpNotificationSender:
    """Implements NotificationSender protocol via SMTP."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def _create_message(
        self, recipient_name: str, email: str, otp: str, purpose: OtpPurpose
    ) -> MIMEMultipart:
        values = {
            "name": recipient_name,
            "intro": INTROS[purpose],
            "otp": otp,
            "ttl": self._settings.otp_ttl_minutes,
        }
        msg = MIMEMultipart("alternative")
        msg["Subject"] = SUBJECTS[purpose]
        msg["From"] = f"{self._settings.smtp_from_name} <{self._settings.smtp_from_email}>"
        msg["To"] = email

        msg.attach(MIMEText(OTP_TEXT.format(**values), "plain"))
        msg.attach(MIMEText(OTP_HTML.format(**values), "html"))
        return msg

    def _send_email(self, message: MIMEMultipart) -> None:
        smtp_password = (
            self._settings.smtp_password.get_secret_value()
            if self._settings.smtp_password
            else ""
        )

        if not self._settings.smtp_starttls:
            # Implicit TLS (port 465)
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(
                self._settings.smtp_host,
                self._settings.smtp_port,
                context=context,
            ) as server:
                if self._settings.smtp_user:
                    server.login(self._settings.smtp_user, smtp_password)
                server.send_message(message)
            return

        with smtplib.SMTP(self._settings.smtp_host, self._settings.smtp_port) as server:
            server.starttls(context=ssl.create_default_context())
            if self._settings.smtp_user:
                server.login(self._settings.smtp_user, smtp_password)
            server.send_message(message)

    async def send_otp(
        self, recipient_name: str, email: str, otp: str, purpose: OtpPurpose
    ) -> DeliveryResult:
        message = self._create_message(recipient_name, email, otp, purpose)
        try:
            await asyncio.to_thread(self._send_email, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send %s email to %s: %s", purpose.value, email, e)
            return DeliveryResult(success=False, message="Failed to send verification email.")

        logger.info("Email sent to %s", email)
        return DeliveryResult(success=True, message="Verification email sent successfully.")
