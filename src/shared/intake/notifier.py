"""Staff notification and sender auto-reply for accepted submissions."""

import logging

from src.shared.intake.errors import NotificationError
from src.shared.intake.mailer import Mailer, OutboundEmail
from src.shared.intake.schemas import NotifyResult, StoredSubmission


def build_notification(submission: StoredSubmission, recipient: str) -> OutboundEmail:
    """Plain-text summary for the site owner."""
    body = (
        "New contact form submission:\n\n"
        f"Name: {submission.name}\n"
        f"Email: {submission.email}\n"
        f"Phone: {submission.phone}\n"
        f"Company: {submission.company}\n"
        f"Subject: {submission.subject}\n"
        f"Message:\n{submission.message}\n\n"
        f"Newsletter consent: {'Yes' if submission.newsletter_consent else 'No'}\n"
        f"Submitted: {submission.created_at.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"IP: {submission.source_ip}"
    )
    if submission.id:
        body += f"\nReference: {submission.id}"
    return OutboundEmail(
        to=recipient,
        subject=f"New Contact Form Message - {submission.subject}",
        body=body,
        reply_to=submission.email,
    )


def build_auto_reply(submission: StoredSubmission, site_name: str) -> OutboundEmail:
    body = f"""
Hi {submission.name},

Thank you for contacting {site_name}. We have received your message and will
get back to you within 24 hours.

Your message:
{submission.message}

Best regards,
The {site_name} Team
"""
    return OutboundEmail(
        to=submission.email,
        subject=f"Thank you for contacting {site_name}",
        body=body,
    )


class Notifier:
    """
    Sends the staff notification and, optionally, a thank-you to the sender.

    Only the staff notification counts towards ``sent``; the auto-reply is
    best effort and its failure is logged and otherwise ignored.
    """

    def __init__(self, mailer: Mailer, recipient: str, auto_responder_enabled: bool = False,
                 site_name: str = "RecruitPro"):
        self.mailer = mailer
        self.recipient = recipient
        self.auto_responder_enabled = auto_responder_enabled
        self.site_name = site_name

    def notify(self, submission: StoredSubmission) -> NotifyResult:
        try:
            self.mailer.send(build_notification(submission, self.recipient))
        except NotificationError as e:
            logging.error(f"Contact notification failed for submission {submission.id}: {e.detail}")
            return NotifyResult(sent=False)

        logging.info(f"Contact notification sent for submission {submission.id}")
        if not self.auto_responder_enabled:
            return NotifyResult(sent=True)

        try:
            self.mailer.send(build_auto_reply(submission, self.site_name))
        except NotificationError as e:
            logging.warning(f"Auto-reply failed for submission {submission.id}: {e.detail}")
            return NotifyResult(sent=True, auto_reply_sent=False)
        return NotifyResult(sent=True, auto_reply_sent=True)
