"""Configuration for the contact form intake pipeline."""

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


class IntakeConfig(BaseModel):
    """
    Immutable settings for one intake pipeline.

    Built once at startup (see from_env) and handed to the orchestrator.
    Every spam defense can be switched off independently.
    """
    model_config = ConfigDict(frozen=True)

    honeypot_enabled: bool = True
    timing_check_enabled: bool = True
    rate_limit_enabled: bool = True
    content_filter_enabled: bool = False

    # CAPTCHA runs only when enabled AND both keys are set
    captcha_enabled: bool = True
    captcha_site_key: str = ""
    captcha_secret: str = ""
    captcha_min_score: float = 0.5
    captcha_timeout_seconds: float = 3.0
    captcha_fail_open: bool = True

    message_min_len: int = Field(default=10, ge=1)
    message_max_len: int = Field(default=2000, ge=1)
    min_fill_seconds: int = Field(default=5, ge=0)

    rate_limit_max: int = Field(default=3, ge=1)
    rate_limit_window_seconds: int = Field(default=3600, ge=1)

    notification_recipient: str = "admin@example.com"
    auto_responder_enabled: bool = False
    site_name: str = "RecruitPro"

    @property
    def captcha_active(self) -> bool:
        return bool(self.captcha_enabled and self.captcha_site_key and self.captcha_secret)

    @classmethod
    def from_env(cls, recipient: Optional[str] = None) -> "IntakeConfig":
        """Build the config from CONTACT_* / RECAPTCHA_* environment variables."""
        return cls(
            honeypot_enabled=_env_bool("CONTACT_HONEYPOT_ENABLED", True),
            timing_check_enabled=_env_bool("CONTACT_TIME_CHECK_ENABLED", True),
            rate_limit_enabled=_env_bool("CONTACT_RATE_LIMIT_ENABLED", True),
            content_filter_enabled=_env_bool("CONTACT_CONTENT_FILTER_ENABLED", False),
            captcha_enabled=_env_bool("RECAPTCHA_ENABLED", True),
            captcha_site_key=os.environ.get("RECAPTCHA_SITE_KEY", ""),
            captcha_secret=os.environ.get("RECAPTCHA_SECRET_KEY", ""),
            captcha_min_score=_env_float("RECAPTCHA_MIN_SCORE", 0.5),
            captcha_timeout_seconds=_env_float("RECAPTCHA_TIMEOUT_SECONDS", 3.0),
            captcha_fail_open=_env_bool("RECAPTCHA_FAIL_OPEN", True),
            message_min_len=_env_int("CONTACT_MESSAGE_MIN_LENGTH", 10),
            message_max_len=_env_int("CONTACT_MESSAGE_MAX_LENGTH", 2000),
            min_fill_seconds=_env_int("CONTACT_MIN_FILL_SECONDS", 5),
            rate_limit_max=_env_int("CONTACT_RATE_LIMIT_MAX", 3),
            rate_limit_window_seconds=_env_int("CONTACT_RATE_LIMIT_WINDOW_SECONDS", 3600),
            notification_recipient=recipient or os.environ.get("CONTACT_NOTIFY_EMAIL", "admin@example.com"),
            auto_responder_enabled=_env_bool("CONTACT_AUTO_RESPONDER_ENABLED", False),
            site_name=os.environ.get("SITE_NAME", "RecruitPro"),
        )
