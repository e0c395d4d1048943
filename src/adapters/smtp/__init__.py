"""Notification adapters - OTP delivery implementations."""

from .console import ConsoleNotificationSender
from .mailer import SmtpNotificationSender

__all__ = ["ConsoleNotificationSender", "SmtpNotificationSender"]
