"""Outbound email transport."""

import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from threading import Lock
from typing import List, NamedTuple, Optional, Protocol

from src.shared.intake.errors import NotificationError


class OutboundEmail(NamedTuple):
    to: str
    subject: str
    body: str
    reply_to: Optional[str] = None


class Mailer(Protocol):
    def send(self, message: OutboundEmail) -> None:
        """Deliver one plain-text email. Raises NotificationError on failure."""
        ...


class SmtpMailer:
    """Sends mail through an SMTP relay with STARTTLS and login."""

    def __init__(self, host: str, port: int, user: Optional[str], password: Optional[str],
                 sender: Optional[str] = None, timeout: float = 10.0):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender or user
        self.timeout = timeout

    @classmethod
    def from_env(cls) -> "SmtpMailer":
        # Get email configuration from environment variables
        return cls(
            host=os.environ.get("SMTP_HOST", "smtp.gmail.com"),
            port=int(os.environ.get("SMTP_PORT", "587")),
            user=os.environ.get("SMTP_USER"),
            password=os.environ.get("SMTP_PASSWORD"),
            sender=os.environ.get("CONTACT_FROM_EMAIL"),
        )

    def send(self, message: OutboundEmail) -> None:
        if not self.user or not self.password:
            logging.error("SMTP credentials not configured")
            raise NotificationError(detail="SMTP credentials not configured")

        msg = MIMEMultipart()
        msg['From'] = self.sender
        msg['To'] = message.to
        msg['Subject'] = message.subject
        if message.reply_to:
            msg['Reply-To'] = message.reply_to  # Allow staff to reply directly to the sender
        msg.attach(MIMEText(message.body, 'plain', 'utf-8'))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()  # Enable encryption
                server.login(self.user, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logging.error(f"Failed to send email to {message.to}: {str(e)}", exc_info=True)
            raise NotificationError(detail=str(e))


class InMemoryMailer:
    """Collects messages instead of sending them. Set fail=True to simulate an outage."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.outbox: List[OutboundEmail] = []
        self._lock = Lock()

    def send(self, message: OutboundEmail) -> None:
        if self.fail:
            raise NotificationError(detail="mail transport unavailable")
        with self._lock:
            self.outbox.append(message)
