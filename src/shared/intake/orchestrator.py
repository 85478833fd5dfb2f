"""Contact form intake pipeline.

Received -> Validating -> SpamChecking -> Persisting -> Notifying -> Completed

Rejected is reachable before anything is stored (CSRF, validation, spam);
Failed when the submission or the rate-limit counter cannot be written.
A failed notification still completes, flagged as degraded, because the
submission is already stored by then.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from src.shared.auth.csrf import CsrfVerifier
from src.shared.intake.captcha import CaptchaVerifier
from src.shared.intake.config import IntakeConfig
from src.shared.intake.database import RecordStore
from src.shared.intake.errors import (
    FormValidationError,
    IntakeError,
    NotificationError,
    PersistenceError,
    RateLimited,
    SecurityError,
    SpamRejection,
)
from src.shared.intake.mailer import Mailer
from src.shared.intake.notifier import Notifier
from src.shared.intake.rate_limit import RateLimiter, RateLimitStore, hash_identity
from src.shared.intake.schemas import (
    IntakeOutcome,
    IntakeState,
    SpamCheckResult,
    StoredSubmission,
    SubmissionRequest,
)
from src.shared.intake.spam import SpamDefenseChain, build_spam_chain
from src.shared.intake.validation import sanitize_request, validate

MSG_SUCCESS = "Thank you for your message! We will get back to you within 24 hours."


class IntakeOrchestrator:
    """Runs one submission through every stage and returns a terminal outcome."""

    def __init__(self, config: IntakeConfig, csrf: CsrfVerifier, spam_chain: SpamDefenseChain,
                 store: RecordStore, notifier: Notifier, clock: Callable[[], float] = time.time,
                 rate_limiter: Optional[RateLimiter] = None):
        self.config = config
        self.csrf = csrf
        self.spam_chain = spam_chain
        self.store = store
        self.notifier = notifier
        self.clock = clock
        self.rate_limiter = rate_limiter

    @classmethod
    def build(cls, config: IntakeConfig, csrf: CsrfVerifier, rate_limit_store: RateLimitStore,
              store: RecordStore, mailer: Mailer, captcha_verifier: Optional[CaptchaVerifier] = None,
              clock: Callable[[], float] = time.time) -> "IntakeOrchestrator":
        """Wire the default components from a config and its collaborators."""
        limiter = RateLimiter(
            rate_limit_store,
            max_requests=config.rate_limit_max,
            window_seconds=config.rate_limit_window_seconds,
            clock=clock,
        )
        chain = build_spam_chain(config, rate_limiter=limiter, captcha_verifier=captcha_verifier, clock=clock)
        notifier = Notifier(
            mailer,
            recipient=config.notification_recipient,
            auto_responder_enabled=config.auto_responder_enabled,
            site_name=config.site_name,
        )
        return cls(config, csrf, chain, store, notifier, clock=clock,
                   rate_limiter=limiter if config.rate_limit_enabled else None)

    def submit(self, request: SubmissionRequest) -> IntakeOutcome:
        states: List[IntakeState] = [IntakeState.RECEIVED]
        ip_tag = hash_identity(request.source_ip)[:12]

        if not self.csrf.verify(request.csrf_token, request.page_id):
            logging.warning(f"Contact form CSRF check failed (ip {ip_tag}, page {request.page_id})")
            return self._terminal(IntakeState.REJECTED, states, SecurityError())

        states.append(IntakeState.VALIDATING)
        clean = sanitize_request(request)
        result = validate(clean, self.config)
        if not result.ok:
            logging.info(f"Contact form validation failed (ip {ip_tag}): {result.first_error}")
            return self._terminal(IntakeState.REJECTED, states, FormValidationError(result.first_error))

        states.append(IntakeState.SPAM_CHECKING)
        try:
            verdict = self.spam_chain.run(clean)
        except RateLimited as e:
            return self._terminal(IntakeState.REJECTED, states, e, verdict=e.verdict, retry_after=e.retry_after)
        except SpamRejection as e:
            logging.warning(f"Contact form spam rejection by {e.check_name} (ip {ip_tag}): {e.detail}")
            return self._terminal(IntakeState.REJECTED, states, e, verdict=e.verdict)
        except PersistenceError as e:
            logging.error(f"Contact form rate limit store unavailable: {e.detail}")
            return self._terminal(IntakeState.FAILED, states, e)

        states.append(IntakeState.PERSISTING)
        submission = self._to_stored(clean)
        try:
            submission_id = self.store.persist(submission)
        except PersistenceError as e:
            logging.error(f"Contact submission could not be stored (ip {ip_tag}): {e.detail}")
            self._release_slot(clean.source_ip)
            return self._terminal(IntakeState.FAILED, states, e, verdict=verdict)
        submission = submission.model_copy(update={"id": submission_id})
        logging.info(f"Contact submission {submission_id} stored (subject {submission.subject})")

        states.append(IntakeState.NOTIFYING)
        notify_result = self.notifier.notify(submission)

        states.append(IntakeState.COMPLETED)
        if not notify_result.sent:
            degraded = NotificationError()
            return IntakeOutcome(
                state=IntakeState.COMPLETED,
                success=True,
                message=degraded.message,
                error_kind=degraded.error_kind,
                submission_id=submission_id,
                degraded=True,
                verdict=verdict,
                states=states,
            )
        return IntakeOutcome(
            state=IntakeState.COMPLETED,
            success=True,
            message=MSG_SUCCESS,
            submission_id=submission_id,
            verdict=verdict,
            states=states,
        )

    def _release_slot(self, source_ip: str) -> None:
        """Hand the rate limit slot back; nothing was accepted."""
        if self.rate_limiter is None:
            return
        try:
            self.rate_limiter.release(hash_identity(source_ip))
        except PersistenceError as e:
            logging.warning(f"Could not release contact rate limit slot: {e.detail}")

    def _to_stored(self, clean: SubmissionRequest) -> StoredSubmission:
        submitted_at = clean.submitted_at if clean.submitted_at is not None else self.clock()
        created_at = datetime.fromtimestamp(submitted_at, tz=timezone.utc).replace(tzinfo=None)
        return StoredSubmission(
            created_at=created_at,
            name=clean.name,
            email=clean.email,
            phone=clean.phone or "",
            company=clean.company or "",
            subject=clean.subject,
            message=clean.message,
            privacy_consent=clean.privacy_consent,
            newsletter_consent=clean.newsletter_consent,
            page_id=clean.page_id,
            user_agent=clean.user_agent,
            referrer_url=clean.referrer_url,
            source_ip=clean.source_ip,
            form_render_timestamp=clean.form_render_timestamp,
        )

    @staticmethod
    def _terminal(state: IntakeState, states: List[IntakeState], error: IntakeError,
                  verdict: Optional[List[SpamCheckResult]] = None,
                  retry_after: Optional[int] = None) -> IntakeOutcome:
        states.append(state)
        return IntakeOutcome(
            state=state,
            success=False,
            message=error.message,
            error_kind=error.error_kind,
            retry_after=retry_after,
            verdict=verdict or [],
            states=states,
        )
