"""Error taxonomy for the intake pipeline.

Every error carries a user-safe message and an error_kind that is exposed
to clients as ``errorKind``. Diagnostic detail stays in ``detail`` and is
only ever logged.
"""

from typing import Optional


class IntakeError(Exception):
    """Base class for all intake failures."""
    error_kind = "error"
    default_message = "Something went wrong. Please try again later."

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(detail or self.message)


class FormValidationError(IntakeError):
    """Missing or malformed field, bad length, consent not given."""
    error_kind = "validation"
    default_message = "Please fill in all required fields."


class SpamRejection(IntakeError):
    """A spam defense rejected the submission."""
    error_kind = "spam"
    default_message = "Your submission could not be processed."

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None, check_name: str = ""):
        super().__init__(message, detail)
        self.check_name = check_name
        # Filled in by SpamDefenseChain with the checks run so far
        self.verdict = []


class RateLimited(SpamRejection):
    error_kind = "rate_limited"
    default_message = "Too many submissions. Please try again later."

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None, retry_after: int = 0):
        super().__init__(message, detail, check_name="rate_limit")
        self.retry_after = retry_after


class SecurityError(IntakeError):
    """CSRF token missing, forged or expired."""
    error_kind = "security"
    default_message = "Security check failed. Please reload the page and try again."


class PersistenceError(IntakeError):
    """The submission could not be stored. Retryable."""
    error_kind = "persistence"
    default_message = "We could not save your message right now. Please try again in a few minutes."


class NotificationError(IntakeError):
    """The outbound message transport failed after the submission was saved."""
    error_kind = "notification_failed"
    default_message = (
        "Your message has been saved, but we could not notify our team right away. "
        "We will still get back to you; for urgent matters please call us directly."
    )


class CaptchaUnavailable(IntakeError):
    """The CAPTCHA verification service could not be reached or answered garbage."""
    error_kind = "captcha_unavailable"
