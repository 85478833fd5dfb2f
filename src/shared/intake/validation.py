"""Server-side validation of contact form submissions.

Pure functions: no I/O, no side effects. Only the first failing rule is
reported, matching what the form shows to the user.
"""

from src.shared.auth.input_validation import (
    MAX_COMPANY_LENGTH,
    MAX_NAME_LENGTH,
    MAX_PHONE_LENGTH,
    MAX_USER_AGENT_LENGTH,
    is_valid_email,
    normalize_email,
    sanitize_text_field,
    sanitize_textarea_field,
    sanitize_url,
)
from src.shared.intake.config import IntakeConfig
from src.shared.intake.schemas import SUBJECT_CHOICES, SubmissionRequest, ValidationResult

MSG_REQUIRED = "Please fill in all required fields."
MSG_SUBJECT = "Please select a valid subject."
MSG_EMAIL = "Please enter a valid email address."
MSG_TOO_SHORT = "Message must be at least {min_len} characters long."
MSG_TOO_LONG = "Message is too long. Please limit to {max_len} characters."
MSG_CONSENT = "Please accept the privacy policy."


def sanitize_request(request: SubmissionRequest) -> SubmissionRequest:
    """Return a copy of the request with every text field sanitized."""
    return request.model_copy(update={
        "name": sanitize_text_field(request.name, max_length=MAX_NAME_LENGTH),
        "email": normalize_email(request.email),
        "phone": sanitize_text_field(request.phone, max_length=MAX_PHONE_LENGTH),
        "company": sanitize_text_field(request.company, max_length=MAX_COMPANY_LENGTH),
        "subject": sanitize_text_field(request.subject).lower(),
        "message": sanitize_textarea_field(request.message),
        "user_agent": sanitize_text_field(request.user_agent, max_length=MAX_USER_AGENT_LENGTH),
        "referrer_url": sanitize_url(request.referrer_url),
    })


def validate(request: SubmissionRequest, config: IntakeConfig = None) -> ValidationResult:
    """
    Check a (sanitized) submission.

    Order: required fields, subject choice, email syntax, message length,
    privacy consent. Stops at the first violation.
    """
    config = config or IntakeConfig()

    if not request.name or not request.email or not request.subject or not request.message:
        return ValidationResult(ok=False, errors=[MSG_REQUIRED])

    if request.subject not in SUBJECT_CHOICES:
        return ValidationResult(ok=False, errors=[MSG_SUBJECT])

    if not is_valid_email(request.email):
        return ValidationResult(ok=False, errors=[MSG_EMAIL])

    length = len(request.message)
    if length < config.message_min_len:
        return ValidationResult(ok=False, errors=[MSG_TOO_SHORT.format(min_len=config.message_min_len)])
    if length > config.message_max_len:
        return ValidationResult(ok=False, errors=[MSG_TOO_LONG.format(max_len=config.message_max_len)])

    if not request.privacy_consent:
        return ValidationResult(ok=False, errors=[MSG_CONSENT])

    return ValidationResult(ok=True)
