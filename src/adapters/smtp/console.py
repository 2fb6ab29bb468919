"""
Console email sender adapter - Implements EmailSender protocol.

This module provides a console-based implementation of the domain's
email sender port, logging outgoing messages for development.
"""

import logging
import re

from src.domain.ports import MailMessage

logger = logging.getLogger(__name__)

_HREF_RE = re.compile(r'href="([^"]+)"')


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints the message and its links.
    """

    def send(self, message: MailMessage) -> None:
        """
        Log the message to console (simulates email delivery).

        The first link in the body is logged at INFO level so verification
        and reset links can be followed from the server log.

        Args:
            message: Outbound email built by the domain layer
        """
        match = _HREF_RE.search(message.html)
        link = match.group(1) if match else "-"
        logger.info("[EMAIL] To: %s Subject: %s Link: %s", message.to, message.subject, link)
        logger.debug("[EMAIL] Body:\n%s", message.html)
