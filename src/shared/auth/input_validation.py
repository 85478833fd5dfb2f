"""
Input sanitization and format checks shared by public form endpoints.
Strips markup and control characters so stored values are plain text.
"""

import re
from typing import Optional
from urllib.parse import urlparse

from email_validator import validate_email as _validate_email, EmailNotValidError


# Maximum lengths for different input types
MAX_NAME_LENGTH = 100
MAX_EMAIL_LENGTH = 255
MAX_PHONE_LENGTH = 50
MAX_COMPANY_LENGTH = 200
MAX_USER_AGENT_LENGTH = 500
MAX_URL_LENGTH = 2048

_TAG_RE = re.compile(r'<[^>]*>')
# Control characters except tab/newline/carriage return
_CONTROL_RE = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')
_WHITESPACE_RE = re.compile(r'\s+')


def _truncate(text: str, max_length: Optional[int]) -> str:
    if max_length and len(text) > max_length:
        return text[:max_length]
    return text


def sanitize_text_field(text: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Sanitize a single-line text value.

    Removes tags and control characters, collapses runs of whitespace
    (including line breaks) to a single space and strips the ends.

    Args:
        text: Raw input, may be None
        max_length: Truncate to this many characters (None for no limit)

    Returns:
        Sanitized text, "" for missing input
    """
    if not text:
        return ""

    text = _TAG_RE.sub('', text)
    text = _CONTROL_RE.sub('', text)
    text = _WHITESPACE_RE.sub(' ', text).strip()
    return _truncate(text, max_length)


def sanitize_textarea_field(text: Optional[str]) -> str:
    """
    Sanitize multi-line text. Same as sanitize_text_field but line breaks
    are preserved. Never truncates: the caller enforces length rules.
    """
    if not text:
        return ""

    text = _TAG_RE.sub('', text)
    text = _CONTROL_RE.sub('', text)
    text = text.replace('\r\n', '\n').replace('\r', '\n')
    return text.strip()


def sanitize_url(url: Optional[str]) -> str:
    """Keep only absolute http(s) URLs; anything else becomes ""."""
    if not url:
        return ""

    url = url.strip()
    if len(url) > MAX_URL_LENGTH:
        return ""

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return ""
    return url


def normalize_email(email: Optional[str]) -> str:
    if not email:
        return ""
    return email.strip()


def is_valid_email(email: str) -> bool:
    """
    Syntax-only email check (no DNS lookups).
    Uses the same validator pydantic's EmailStr relies on.
    """
    if not email or len(email) > MAX_EMAIL_LENGTH:
        return False
    try:
        _validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True
