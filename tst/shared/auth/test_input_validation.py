"""Tests for shared input sanitization helpers."""
import pytest

from src.shared.auth.input_validation import (
    is_valid_email,
    sanitize_text_field,
    sanitize_textarea_field,
    sanitize_url,
)


def test_text_field_strips_markup_and_collapses_whitespace():
    assert sanitize_text_field("  <b>Jane</b>\n  Doe\x00 ") == "Jane Doe"


def test_text_field_truncates():
    assert sanitize_text_field("x" * 150, max_length=100) == "x" * 100


def test_textarea_keeps_line_breaks():
    assert sanitize_textarea_field("Hi,\r\n<script>x</script>thanks\r") == "Hi,\nxthanks"


@pytest.mark.parametrize("value", [None, ""])
def test_missing_values_become_empty(value):
    assert sanitize_text_field(value) == ""
    assert sanitize_textarea_field(value) == ""
    assert sanitize_url(value) == ""


@pytest.mark.parametrize("url,expected", [
    ("https://recruitpro.test/contact", "https://recruitpro.test/contact"),
    ("javascript:alert(1)", ""),
    ("/relative/path", ""),
])
def test_sanitize_url(url, expected):
    assert sanitize_url(url) == expected


@pytest.mark.parametrize("email,valid", [
    ("jane@x.com", True),
    ("jane.doe+contact@recruitpro.co.uk", True),
    ("not-an-email", False),
    ("jane@", False),
    ("", False),
])
def test_is_valid_email(email, valid):
    assert is_valid_email(email) is valid
