"""Email sender adapters."""

from .console import ConsoleEmailSender
from .sender import SmtpEmailSender

__all__ = ["ConsoleEmailSender", "SmtpEmailSender"]
