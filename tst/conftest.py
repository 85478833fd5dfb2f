"""
Shared pytest fixtures for the contact intake tests.
"""
import os

# The database module refuses to import without DATABASE_URL
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

import pytest

from src.shared.auth.csrf import SignedTokenCsrf
from src.shared.intake.config import IntakeConfig
from src.shared.intake.database import InMemorySubmissionStore
from src.shared.intake.mailer import InMemoryMailer
from src.shared.intake.orchestrator import IntakeOrchestrator
from src.shared.intake.rate_limit import InMemoryRateLimitStore
from src.shared.intake.schemas import SubmissionRequest

PAGE_ID = 42
START = 1_700_000_000.0


class FakeClock:
    """Callable clock the tests can move forward."""

    def __init__(self, now: float = START):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return IntakeConfig(notification_recipient="staff@recruitpro.test")


@pytest.fixture
def csrf(clock):
    return SignedTokenCsrf("test-secret-key-not-for-production", clock=clock)


@pytest.fixture
def rate_store():
    return InMemoryRateLimitStore()


@pytest.fixture
def store():
    return InMemorySubmissionStore()


@pytest.fixture
def mailer():
    return InMemoryMailer()


@pytest.fixture
def make_orchestrator(csrf, rate_store, store, mailer, clock, config):
    """Factory so tests can swap one collaborator or the config."""
    def _make(**overrides):
        return IntakeOrchestrator.build(
            overrides.pop("config", config),
            csrf=overrides.pop("csrf", csrf),
            rate_limit_store=overrides.pop("rate_limit_store", rate_store),
            store=overrides.pop("store", store),
            mailer=overrides.pop("mailer", mailer),
            captcha_verifier=overrides.pop("captcha_verifier", None),
            clock=clock,
        )
    return _make


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()


@pytest.fixture
def make_request(csrf, clock):
    """A valid submission rendered 10 seconds ago, with overridable fields."""
    def _make(**overrides):
        fields = dict(
            name="Jane Doe",
            email="jane@x.com",
            subject="general",
            message="Hello, I have a question about your services.",
            privacy_consent=True,
            page_id=PAGE_ID,
            source_ip="203.0.113.7",
            form_render_timestamp=clock() - 10,
            honeypot_value="",
            csrf_token=csrf.issue(PAGE_ID),
        )
        fields.update(overrides)
        return SubmissionRequest(**fields)
    return _make
