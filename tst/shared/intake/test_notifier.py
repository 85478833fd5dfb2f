"""Tests for notifications and the SMTP mailer."""
import smtplib
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from src.shared.intake.errors import NotificationError
from src.shared.intake.mailer import InMemoryMailer, OutboundEmail, SmtpMailer
from src.shared.intake.notifier import Notifier, build_notification
from src.shared.intake.schemas import StoredSubmission


class FlakyMailer(InMemoryMailer):
    """Delivers the first message, fails afterwards."""

    def send(self, message):
        if self.outbox:
            raise NotificationError(detail="relay refused")
        super().send(message)


def _submission():
    return StoredSubmission(
        id="sub-1",
        created_at=datetime(2026, 10, 19, 9, 30, 5),
        name="Jane Doe",
        email="jane@x.com",
        subject="general",
        message="Hello, I have a question about your services.",
        source_ip="203.0.113.7",
    )


def test_notification_summary():
    email = build_notification(_submission(), "staff@recruitpro.test")
    assert email.to == "staff@recruitpro.test"
    assert email.subject == "New Contact Form Message - general"
    assert email.reply_to == "jane@x.com"
    assert "Name: Jane Doe" in email.body
    assert "Newsletter consent: No" in email.body
    assert "Submitted: 2026-10-19 09:30:05" in email.body
    assert "IP: 203.0.113.7" in email.body
    assert "Reference: sub-1" in email.body


def test_notify_sends_to_recipient():
    mailer = InMemoryMailer()
    result = Notifier(mailer, "staff@recruitpro.test").notify(_submission())
    assert result.sent
    assert result.auto_reply_sent is None
    assert [m.to for m in mailer.outbox] == ["staff@recruitpro.test"]


def test_notify_reports_transport_failure():
    result = Notifier(InMemoryMailer(fail=True), "staff@recruitpro.test").notify(_submission())
    assert not result.sent


def test_auto_reply_sent_when_enabled():
    mailer = InMemoryMailer()
    result = Notifier(mailer, "staff@recruitpro.test", auto_responder_enabled=True,
                      site_name="RecruitPro").notify(_submission())
    assert result.sent and result.auto_reply_sent
    assert [m.to for m in mailer.outbox] == ["staff@recruitpro.test", "jane@x.com"]
    assert mailer.outbox[1].subject == "Thank you for contacting RecruitPro"


def test_auto_reply_failure_does_not_fail_notification():
    result = Notifier(FlakyMailer(), "staff@recruitpro.test", auto_responder_enabled=True).notify(_submission())
    assert result.sent
    assert result.auto_reply_sent is False


@patch("src.shared.intake.mailer.smtplib.SMTP")
def test_smtp_mailer_sends(mock_smtp):
    server = MagicMock()
    mock_smtp.return_value.__enter__.return_value = server
    mailer = SmtpMailer("smtp.test", 587, "bot@recruitpro.test", "pw")

    mailer.send(OutboundEmail("staff@recruitpro.test", "Subject", "Body", reply_to="jane@x.com"))

    server.starttls.assert_called_once()
    server.login.assert_called_once_with("bot@recruitpro.test", "pw")
    sent = server.send_message.call_args.args[0]
    assert sent["To"] == "staff@recruitpro.test"
    assert sent["Reply-To"] == "jane@x.com"


@patch("src.shared.intake.mailer.smtplib.SMTP")
def test_smtp_failure_raises_notification_error(mock_smtp):
    mock_smtp.return_value.__enter__.return_value.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad")
    with pytest.raises(NotificationError):
        SmtpMailer("smtp.test", 587, "bot", "pw").send(OutboundEmail("a@b.test", "s", "b"))


def test_smtp_without_credentials_raises():
    with pytest.raises(NotificationError):
        SmtpMailer("smtp.test", 587, None, None).send(OutboundEmail("a@b.test", "s", "b"))
