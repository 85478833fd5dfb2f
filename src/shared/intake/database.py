"""Database models and stores for contact submissions and rate limiting."""

import logging
import sqlite3
import uuid
from contextlib import nullcontext
from threading import Lock, RLock
from typing import Callable, Dict, List, Protocol

from sqlalchemy import Boolean, Column, DateTime, Float, Index, Integer, String, Text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

# Import Base from auth database to use the same declarative base
from src.shared.auth.database import Base
from src.shared.intake.errors import PersistenceError
from src.shared.intake.rate_limit import CounterState
from src.shared.intake.schemas import StoredSubmission

# Driver errors can surface unwrapped when a connection is left in a bad state
DB_ERRORS = (SQLAlchemyError, sqlite3.Error)

# SQLite allows a single writer; in-process writers queue here instead of
# interleaving transactions on a shared connection
_SQLITE_WRITE_LOCK = RLock()


def write_lock_for(session_factory: Callable[[], Session]):
    """Lock to hold around write transactions for this session factory's engine."""
    bind = getattr(session_factory, "kw", {}).get("bind")
    if bind is not None and bind.dialect.name == "sqlite":
        return _SQLITE_WRITE_LOCK
    return nullcontext()


class ContactSubmission(Base):
    """An accepted contact form submission."""
    __tablename__ = "contact_submissions"

    id = Column(String, primary_key=True)
    created_at = Column(DateTime, nullable=False, index=True)
    status = Column(String, nullable=False, default="private")
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=False, default="")
    company = Column(String(200), nullable=False, default="")
    subject = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    privacy_consent = Column(Boolean, nullable=False, default=True)
    newsletter_consent = Column(Boolean, nullable=False, default=False)
    page_id = Column(Integer, nullable=False, default=0)
    user_agent = Column(String(500), nullable=False, default="")
    referrer_url = Column(String(2048), nullable=False, default="")
    ip_address = Column(String(64), nullable=False, default="unknown")
    form_started_at = Column(Float, nullable=True)


class ContactRateLimit(Base):
    """Fixed-window submission counter, keyed by hashed IP."""
    __tablename__ = "contact_rate_limits"

    key = Column(String(64), primary_key=True)  # sha256 hex of the IP
    count = Column(Integer, nullable=False, default=0)
    window_expiry = Column(Float, nullable=False)  # unix timestamp

    __table_args__ = (
        Index('idx_contact_rate_limit_expiry', 'window_expiry'),
    )


class RecordStore(Protocol):
    def persist(self, submission: StoredSubmission) -> str:
        """Durably write the submission and return its id. Raises PersistenceError."""
        ...


def _new_id() -> str:
    return str(uuid.uuid4())


class SqlSubmissionStore:
    """Stores submissions in the contact_submissions table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory
        self._write_lock = write_lock_for(session_factory)

    def persist(self, submission: StoredSubmission) -> str:
        submission_id = submission.id or _new_id()
        record = ContactSubmission(
            id=submission_id,
            created_at=submission.created_at,
            status=submission.status.value,
            name=submission.name,
            email=submission.email,
            phone=submission.phone,
            company=submission.company,
            subject=submission.subject,
            message=submission.message,
            privacy_consent=submission.privacy_consent,
            newsletter_consent=submission.newsletter_consent,
            page_id=submission.page_id,
            user_agent=submission.user_agent,
            referrer_url=submission.referrer_url,
            ip_address=submission.source_ip,
            form_started_at=submission.form_render_timestamp,
        )
        with self._write_lock:
            db = self.session_factory()
            try:
                db.add(record)
                db.commit()
            except DB_ERRORS as e:
                db.rollback()
                logging.error(f"Failed to store contact submission: {str(e)}", exc_info=True)
                raise PersistenceError(detail=str(e))
            finally:
                db.close()
        return submission_id

    def count(self) -> int:
        db = self.session_factory()
        try:
            return db.query(ContactSubmission).count()
        finally:
            db.close()


class InMemorySubmissionStore:
    """Keeps submissions in a list. For tests and local runs without a database."""

    def __init__(self):
        self.records: Dict[str, StoredSubmission] = {}
        self._lock = Lock()

    def persist(self, submission: StoredSubmission) -> str:
        submission_id = submission.id or _new_id()
        with self._lock:
            self.records[submission_id] = submission.model_copy(update={"id": submission_id})
        return submission_id

    def all(self) -> List[StoredSubmission]:
        with self._lock:
            return list(self.records.values())


class SqlRateLimitStore:
    """
    Database-backed counters that work across multiple server processes.

    Every change is a single conditional UPDATE (or INSERT for a new key),
    so the database serializes concurrent hits on the same key and two
    requests can never both slip under the limit. On SQLite the whole
    transaction additionally runs under the process-wide write lock.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory
        self._write_lock = write_lock_for(session_factory)

    def increment_if_below(self, key: str, limit: int, window_seconds: int, now: float) -> CounterState:
        expiry = now + window_seconds
        with self._write_lock:
            db = self.session_factory()
            try:
                return self._increment(db, key, limit, expiry, now)
            except DB_ERRORS as e:
                db.rollback()
                logging.error(f"Failed to update contact rate limit: {str(e)}", exc_info=True)
                raise PersistenceError(detail=str(e))
            finally:
                db.close()

    @staticmethod
    def _increment(db: Session, key: str, limit: int, expiry: float, now: float) -> CounterState:
        # A lost INSERT race means the row now exists, so the second pass resolves it
        for _ in range(2):
            reset = db.execute(
                update(ContactRateLimit)
                .where(ContactRateLimit.key == key, ContactRateLimit.window_expiry <= now)
                .values(count=1, window_expiry=expiry)
            )
            if reset.rowcount:
                db.commit()
                return CounterState(True, 1, expiry)

            bumped = db.execute(
                update(ContactRateLimit)
                .where(ContactRateLimit.key == key, ContactRateLimit.count < limit)
                .values(count=ContactRateLimit.count + 1)
            )
            db.commit()
            row = db.get(ContactRateLimit, key)
            if bumped.rowcount:
                return CounterState(True, row.count, row.window_expiry)
            if row is not None:
                return CounterState(False, row.count, row.window_expiry)

            db.add(ContactRateLimit(key=key, count=1, window_expiry=expiry))
            try:
                db.commit()
                return CounterState(True, 1, expiry)
            except IntegrityError:
                db.rollback()
        raise PersistenceError(detail=f"could not settle rate limit counter for {key[:12]}")

    def release(self, key: str, now: float) -> None:
        """Give back one counted hit inside the current window."""
        with self._write_lock:
            db = self.session_factory()
            try:
                db.execute(
                    update(ContactRateLimit)
                    .where(ContactRateLimit.key == key, ContactRateLimit.window_expiry > now,
                           ContactRateLimit.count > 0)
                    .values(count=ContactRateLimit.count - 1)
                )
                db.commit()
            except DB_ERRORS as e:
                db.rollback()
                logging.error(f"Failed to release contact rate limit: {str(e)}", exc_info=True)
                raise PersistenceError(detail=str(e))
            finally:
                db.close()

    def get(self, key: str, now: float) -> int:
        """Current count for key (0 when missing or expired)."""
        db = self.session_factory()
        try:
            row = db.get(ContactRateLimit, key)
            if row is None or row.window_expiry <= now:
                return 0
            return row.count
        finally:
            db.close()

    def purge_expired(self, now: float) -> int:
        """Delete counters whose window has ended."""
        with self._write_lock:
            db = self.session_factory()
            try:
                deleted = db.query(ContactRateLimit).filter(ContactRateLimit.window_expiry <= now).delete()
                db.commit()
                return deleted
            except DB_ERRORS as e:
                logging.warning(f"Failed to cleanup old rate limit entries: {str(e)}")
                db.rollback()
                return 0
            finally:
                db.close()
