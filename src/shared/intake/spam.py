"""Spam defenses for the public contact form.

Each check inspects one aspect of a submission and raises SpamRejection
when it trips. SpamDefenseChain runs the enabled checks in order and stops
at the first failure, so later (more expensive) checks such as the CAPTCHA
network call are skipped for obvious bots.
"""

import logging
import math
import re
import time
from typing import Callable, List, Optional

from src.shared.intake.captcha import CaptchaVerifier
from src.shared.intake.config import IntakeConfig
from src.shared.intake.errors import CaptchaUnavailable, RateLimited, SpamRejection
from src.shared.intake.rate_limit import RateLimiter, hash_identity
from src.shared.intake.schemas import SpamCheckResult, SubmissionRequest

MSG_HONEYPOT = "Your submission could not be processed."
MSG_TOO_FAST = "Your submission could not be completed. Please try again in a moment."
MSG_CONTENT = "Your message could not be accepted. Please rephrase it."
MSG_RATE_LIMIT = "Too many submissions. Please try again later."
MSG_CAPTCHA = "We could not verify your submission. Please try again."

SPAM_PATTERNS = [
    re.compile(r'\b(viagra|cialis|casino|poker)\b', re.IGNORECASE),
    re.compile(r'\b(cheap|discount|free money)\b', re.IGNORECASE),
    re.compile(r'https?://[^\s]+\.(tk|ml|ga|cf)\b', re.IGNORECASE),
    re.compile(r'\b(SEO|backlink|link building)\b', re.IGNORECASE),
]


class HoneypotCheck:
    """The hidden website_url field must come back empty."""
    name = "honeypot"

    def __call__(self, request: SubmissionRequest) -> str:
        if request.honeypot_value:
            raise SpamRejection(MSG_HONEYPOT, detail="honeypot field filled", check_name=self.name)
        return "honeypot empty"


class TimingCheck:
    """Humans need a few seconds to fill the form in; bots post instantly."""
    name = "timing"

    def __init__(self, min_seconds: int = 5, clock: Callable[[], float] = time.time):
        self.min_seconds = min_seconds
        self.clock = clock

    def __call__(self, request: SubmissionRequest) -> str:
        rendered_at = request.form_render_timestamp
        if rendered_at is None or not math.isfinite(rendered_at):
            raise SpamRejection(MSG_TOO_FAST, detail="missing form render timestamp", check_name=self.name)

        elapsed = self.clock() - rendered_at
        if elapsed < self.min_seconds:
            raise SpamRejection(MSG_TOO_FAST, detail=f"submitted after {elapsed:.1f}s", check_name=self.name)
        return f"elapsed {elapsed:.1f}s"


class ContentFilterCheck:
    name = "content"

    def __init__(self, patterns: List[re.Pattern] = None):
        self.patterns = patterns if patterns is not None else SPAM_PATTERNS

    def __call__(self, request: SubmissionRequest) -> str:
        text = request.message or ""
        for pattern in self.patterns:
            if pattern.search(text):
                raise SpamRejection(MSG_CONTENT, detail=f"matched {pattern.pattern}", check_name=self.name)
        return "no spam patterns"


class RateLimitCheck:
    name = "rate_limit"

    def __init__(self, limiter: RateLimiter):
        self.limiter = limiter

    def __call__(self, request: SubmissionRequest) -> str:
        decision = self.limiter.check_and_increment(hash_identity(request.source_ip))
        if not decision.allowed:
            raise RateLimited(
                MSG_RATE_LIMIT,
                detail=f"count {decision.current_count} at limit",
                retry_after=decision.retry_after,
            )
        return f"count {decision.current_count}"


class CaptchaCheck:
    """
    reCAPTCHA v3 score check.

    A verifier outage is resolved by fail_open: when True the submission is
    let through (and logged), when False it is rejected.
    """
    name = "captcha"

    def __init__(self, verifier: CaptchaVerifier, min_score: float = 0.5, fail_open: bool = True):
        self.verifier = verifier
        self.min_score = min_score
        self.fail_open = fail_open

    def __call__(self, request: SubmissionRequest) -> str:
        if not request.captcha_token:
            raise SpamRejection(MSG_CAPTCHA, detail="missing captcha token", check_name=self.name)

        try:
            result = self.verifier.verify(request.captcha_token, remote_ip=request.source_ip)
        except CaptchaUnavailable as e:
            if self.fail_open:
                logging.warning(f"reCAPTCHA unavailable ({e.detail}); accepting submission (fail-open)")
                return f"verifier unavailable, fail-open: {e.detail}"
            raise SpamRejection(MSG_CAPTCHA, detail=f"verifier unavailable: {e.detail}", check_name=self.name)

        if not result.success or result.score < self.min_score:
            raise SpamRejection(
                MSG_CAPTCHA,
                detail=f"success={result.success} score={result.score} codes={result.error_codes}",
                check_name=self.name,
            )
        return f"score {result.score}"


class SpamDefenseChain:
    """Runs spam checks in order, stopping at the first one that trips."""

    def __init__(self, checks: list):
        self.checks = checks

    @property
    def check_names(self) -> List[str]:
        return [check.name for check in self.checks]

    def run(self, request: SubmissionRequest) -> List[SpamCheckResult]:
        """
        Returns the verdict when every check passes.

        Raises SpamRejection (or RateLimited) from the first failing check,
        with the partial verdict attached as ``exc.verdict``.
        """
        verdict: List[SpamCheckResult] = []
        for check in self.checks:
            try:
                reason = check(request)
            except SpamRejection as e:
                verdict.append(SpamCheckResult(check_name=check.name, passed=False, reason=e.detail or ""))
                e.verdict = verdict
                raise
            verdict.append(SpamCheckResult(check_name=check.name, passed=True, reason=reason))
        return verdict


def build_spam_chain(config: IntakeConfig, rate_limiter: Optional[RateLimiter] = None,
                     captcha_verifier: Optional[CaptchaVerifier] = None,
                     clock: Callable[[], float] = time.time) -> SpamDefenseChain:
    """Assemble the enabled checks: honeypot, timing, content, rate limit, CAPTCHA."""
    checks = []
    if config.honeypot_enabled:
        checks.append(HoneypotCheck())
    if config.timing_check_enabled:
        checks.append(TimingCheck(config.min_fill_seconds, clock=clock))
    if config.content_filter_enabled:
        checks.append(ContentFilterCheck())
    if config.rate_limit_enabled:
        if rate_limiter is None:
            raise ValueError("rate_limit_enabled requires a RateLimiter")
        checks.append(RateLimitCheck(rate_limiter))
    if config.captcha_active:
        if captcha_verifier is None:
            raise ValueError("CAPTCHA is configured but no verifier was supplied")
        checks.append(CaptchaCheck(captcha_verifier, config.captcha_min_score, config.captcha_fail_open))
    return SpamDefenseChain(checks)
