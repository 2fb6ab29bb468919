"""
SMTP email sender adapter - Implements EmailSender protocol.

Delivers HTML mail through an SMTP relay and classifies failures so the
domain can report authentication, connectivity and other errors distinctly.
A new connection is opened per message; the adapter holds configuration only.
"""

import logging
import smtplib
from email.message import EmailMessage

from src.domain.exceptions import DeliveryError, DeliveryFailure
from src.domain.ports import MailMessage

logger = logging.getLogger(__name__)


class SmtpEmailSender:
    """Implements EmailSender protocol via smtplib."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str = "",
        from_name: str = "DUK",
        use_tls: bool = True,
        use_ssl: bool = False,
        timeout: float = 15.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._from_address = from_address or username
        self._from_name = from_name
        self._use_tls = use_tls
        self._use_ssl = use_ssl
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self._host and self._username and self._password)

    def send(self, message: MailMessage) -> None:
        """
        Send one message.

        Raises:
            DeliveryError: UNCONFIGURED, AUTH, CONNECTION or GENERIC
        """
        if not self.configured:
            raise DeliveryError(DeliveryFailure.UNCONFIGURED)

        msg = EmailMessage()
        msg["Subject"] = message.subject
        msg["From"] = f'"{self._from_name}" <{self._from_address}>'
        msg["To"] = message.to
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(message.html, subtype="html")

        smtp_cls = smtplib.SMTP_SSL if self._use_ssl else smtplib.SMTP
        try:
            with smtp_cls(self._host, self._port, timeout=self._timeout) as client:
                if not self._use_ssl and self._use_tls:
                    client.starttls()
                client.login(self._username, self._password)
                client.send_message(msg)
        except smtplib.SMTPAuthenticationError as e:
            logger.error("SMTP authentication failed for %s: %s", self._username, e)
            raise DeliveryError(DeliveryFailure.AUTH, str(e)) from e
        except (smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected) as e:
            logger.error("SMTP connection to %s:%s failed: %s", self._host, self._port, e)
            raise DeliveryError(DeliveryFailure.CONNECTION, str(e)) from e
        except smtplib.SMTPException as e:
            logger.error("SMTP delivery to %s failed: %s", message.to, e)
            raise DeliveryError(DeliveryFailure.GENERIC, str(e)) from e
        except OSError as e:
            # DNS failure, refused connection, timeout
            logger.error("SMTP connection to %s:%s failed: %s", self._host, self._port, e)
            raise DeliveryError(DeliveryFailure.CONNECTION, str(e)) from e

        logger.info("Email sent to %s: %s", message.to, message.subject)
