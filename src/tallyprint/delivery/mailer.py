"""Email delivery over SMTP.

Failures are raised as DeliveryError with a short code so callers (and the
CLI's JSON output) can tell configuration problems from transient ones:

    SMTP_NOT_CONFIGURED      host or sender missing
    SMTP_AUTH_FAILED         login rejected
    SMTP_CONNECTION_FAILED   server unreachable or connection dropped
    SMTP_TIMEOUT             server did not answer in time
    SMTP_RECIPIENT_REJECTED  recipient refused by the server
    SMTP_ERROR               any other SMTP failure

Nothing is retried here.
"""

import logging
import smtplib
import socket
from collections.abc import Sequence
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import Protocol

from tallyprint.errors import DeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attachment:
    """File attached to an outgoing email."""

    filename: str
    content: bytes
    maintype: str = "text"
    subtype: str = "html"


class Mailer(Protocol):
    """Sends a rendered document by email."""

    def send(
        self,
        recipient: str,
        subject: str,
        text: str,
        html: str | None = None,
        attachments: Sequence[Attachment] = (),
    ) -> None:
        """Send one message or raise DeliveryError."""
        ...


class SMTPMailer:
    """Mailer using smtplib, with optional STARTTLS and login.

    Attributes:
        host: SMTP server host
        port: SMTP server port
        username: Login user (empty: no login)
        sender: Envelope and From address
        sender_name: Display name for the From header
        use_tls: Issue STARTTLS before login
        timeout: Socket timeout in seconds
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        sender: str = "",
        sender_name: str = "",
        use_tls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self._password = password
        self.sender = sender or username
        self.sender_name = sender_name
        self.use_tls = use_tls
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        """Return True if host and sender are set."""
        return bool(self.host and self.sender)

    def build_message(
        self,
        recipient: str,
        subject: str,
        text: str,
        html: str | None = None,
        attachments: Sequence[Attachment] = (),
    ) -> EmailMessage:
        """Build the MIME message (plain text with optional HTML alternative)."""
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self.sender_name, self.sender)) if self.sender_name else self.sender
        msg["To"] = recipient
        msg.set_content(text or "")
        if html:
            msg.add_alternative(html, subtype="html")
        for attachment in attachments:
            msg.add_attachment(
                attachment.content,
                maintype=attachment.maintype,
                subtype=attachment.subtype,
                filename=attachment.filename,
            )
        return msg

    def send(
        self,
        recipient: str,
        subject: str,
        text: str,
        html: str | None = None,
        attachments: Sequence[Attachment] = (),
    ) -> None:
        """Send a message.

        Raises:
            DeliveryError: With one of the SMTP_* codes
        """
        if not self.is_configured:
            raise DeliveryError("SMTP_NOT_CONFIGURED", "SMTP host and sender must be set")
        if not recipient:
            raise DeliveryError("SMTP_RECIPIENT_REJECTED", "No recipient address given")

        msg = self.build_message(recipient, subject, text, html, attachments)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self._password)
                server.send_message(msg)
        except smtplib.SMTPAuthenticationError as e:
            raise DeliveryError("SMTP_AUTH_FAILED", f"Authentication failed: {e}") from e
        except smtplib.SMTPRecipientsRefused as e:
            raise DeliveryError("SMTP_RECIPIENT_REJECTED", f"Recipient refused: {recipient}") from e
        except (socket.timeout, TimeoutError) as e:
            raise DeliveryError("SMTP_TIMEOUT", f"Timed out talking to {self.host}") from e
        except (smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected, ConnectionError) as e:
            raise DeliveryError(
                "SMTP_CONNECTION_FAILED", f"Cannot connect to {self.host}:{self.port}: {e}"
            ) from e
        except smtplib.SMTPException as e:
            raise DeliveryError("SMTP_ERROR", str(e)) from e
        except OSError as e:
            raise DeliveryError(
                "SMTP_CONNECTION_FAILED", f"Cannot connect to {self.host}:{self.port}: {e}"
            ) from e

        logger.info("Email sent to %s: %s", recipient, subject)
