"""Tests for contact form validation and sanitization."""
import pytest

from src.shared.intake.config import IntakeConfig
from src.shared.intake.schemas import SubmissionRequest
from src.shared.intake.validation import (
    MSG_CONSENT,
    MSG_EMAIL,
    MSG_REQUIRED,
    MSG_SUBJECT,
    sanitize_request,
    validate,
)


def _request(**overrides):
    fields = dict(
        name="Jane Doe",
        email="jane@x.com",
        subject="general",
        message="Hello, I have a question about your services.",
        privacy_consent=True,
    )
    fields.update(overrides)
    return sanitize_request(SubmissionRequest(**fields))


def test_valid_request_passes():
    result = validate(_request())
    assert result.ok
    assert result.errors == []


@pytest.mark.parametrize("field", ["name", "email", "subject", "message"])
@pytest.mark.parametrize("value", [None, "", "   "])
def test_missing_required_field(field, value):
    result = validate(_request(**{field: value}))
    assert not result.ok
    assert result.errors == [MSG_REQUIRED]


def test_unknown_subject_rejected():
    result = validate(_request(subject="lottery"))
    assert result.errors == [MSG_SUBJECT]


def test_subject_is_case_insensitive():
    assert validate(_request(subject="Careers")).ok


@pytest.mark.parametrize("email", ["not-an-email", "jane@", "@example.com", "jane doe@example.com"])
def test_invalid_email(email):
    result = validate(_request(email=email))
    assert result.errors == [MSG_EMAIL]


def test_message_length_boundaries_are_inclusive():
    assert validate(_request(message="x" * 10)).ok
    assert validate(_request(message="x" * 2000)).ok

    too_short = validate(_request(message="x" * 9))
    assert not too_short.ok
    assert "at least 10" in too_short.first_error

    too_long = validate(_request(message="x" * 2001))
    assert not too_long.ok
    assert "2000" in too_long.first_error


def test_message_length_ignores_surrounding_whitespace():
    result = validate(_request(message="   short    "))
    assert not result.ok


def test_privacy_consent_required():
    result = validate(_request(privacy_consent=False))
    assert result.errors == [MSG_CONSENT]


def test_first_error_wins():
    # Bad email and missing consent: only the email error is reported
    result = validate(_request(email="nope", privacy_consent=False))
    assert result.errors == [MSG_EMAIL]


def test_lengths_follow_config():
    config = IntakeConfig(message_min_len=3, message_max_len=5)
    assert validate(_request(message="abc"), config).ok
    assert not validate(_request(message="abcdef"), config).ok


def test_sanitize_strips_markup_and_whitespace():
    clean = _request(
        name="  <b>Jane</b>\n Doe ",
        message="<script>x</script>Line one\r\nLine two  ",
        referrer_url="javascript:alert(1)",
        company="Acme\x00 Ltd",
    )
    assert clean.name == "Jane Doe"
    assert clean.message == "xLine one\nLine two"
    assert clean.referrer_url == ""
    assert clean.company == "Acme Ltd"


def test_sanitize_keeps_http_referrer():
    clean = _request(referrer_url="https://recruitpro.test/contact/")
    assert clean.referrer_url == "https://recruitpro.test/contact/"
