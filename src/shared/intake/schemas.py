"""Pydantic schemas and value types for the contact intake pipeline."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


SUBJECT_CHOICES = (
    "general",
    "services",
    "partnership",
    "careers",
    "media",
    "feedback",
    "other",
)


class IntakeState(str, Enum):
    RECEIVED = "received"
    VALIDATING = "validating"
    SPAM_CHECKING = "spam_checking"
    PERSISTING = "persisting"
    NOTIFYING = "notifying"
    COMPLETED = "completed"
    REJECTED = "rejected"
    FAILED = "failed"


class SubmissionStatus(str, Enum):
    PRIVATE = "private"
    VISIBLE = "visible"


class SubmissionRequest(BaseModel):
    """
    One contact form POST, after transport decoding.

    Fields are deliberately lenient (everything optional, no format checks):
    the validator owns the rules so it can answer with a single
    human-readable message instead of a 422 error list.
    """
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None
    privacy_consent: bool = False
    newsletter_consent: bool = False
    page_id: int = 0
    user_agent: str = ""
    referrer_url: str = ""
    source_ip: str = "unknown"
    submitted_at: Optional[float] = None
    form_render_timestamp: Optional[float] = None
    honeypot_value: str = ""
    captcha_token: Optional[str] = None
    csrf_token: Optional[str] = None


class StoredSubmission(BaseModel):
    """A persisted submission. Never mutated once written."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    created_at: datetime
    status: SubmissionStatus = SubmissionStatus.PRIVATE
    name: str
    email: str
    phone: str = ""
    company: str = ""
    subject: str
    message: str
    privacy_consent: bool = True
    newsletter_consent: bool = False
    page_id: int = 0
    user_agent: str = ""
    referrer_url: str = ""
    source_ip: str = "unknown"
    form_render_timestamp: Optional[float] = None

    @property
    def title(self) -> str:
        return f"Contact: {self.name} - {self.subject}"


class ValidationResult(BaseModel):
    ok: bool
    errors: List[str] = Field(default_factory=list)

    @property
    def first_error(self) -> Optional[str]:
        return self.errors[0] if self.errors else None


class SpamCheckResult(BaseModel):
    """One entry of a spam verdict."""
    check_name: str
    passed: bool
    reason: str = ""


class RateLimitDecision(BaseModel):
    allowed: bool
    current_count: int
    retry_after: int = 0


class NotifyResult(BaseModel):
    sent: bool
    auto_reply_sent: Optional[bool] = None


class IntakeOutcome(BaseModel):
    """Terminal result of one pass through the orchestrator."""
    state: IntakeState
    success: bool
    message: str
    error_kind: Optional[str] = None
    submission_id: Optional[str] = None
    degraded: bool = False
    retry_after: Optional[int] = None
    verdict: List[SpamCheckResult] = Field(default_factory=list)
    states: List[IntakeState] = Field(default_factory=list)


class ContactResponse(BaseModel):
    """Schema for contact form response."""
    success: bool
    message: str
    error_kind: Optional[str] = Field(default=None, serialization_alias="errorKind")


class FormTokenResponse(BaseModel):
    """Hidden values the page embeds when it renders the form."""
    csrf_token: str
    form_start_time: int
