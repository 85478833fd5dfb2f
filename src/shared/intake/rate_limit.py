"""Fixed-window rate limiting for contact form submissions."""

import hashlib
import logging
import math
import time
from threading import Lock
from typing import Callable, Dict, NamedTuple, Protocol

from src.shared.intake.schemas import RateLimitDecision

KEY_PREFIX = "contact_form_"


class CounterState(NamedTuple):
    allowed: bool
    count: int
    window_expiry: float


class RateLimitStore(Protocol):
    """Key/value counter store with per-key expiry."""

    def increment_if_below(self, key: str, limit: int, window_seconds: int, now: float) -> CounterState:
        """
        Atomically count one hit for key.

        Starts a fresh window (count=1, expiry=now+window) when the key is
        missing or expired, increments while count < limit, and otherwise
        leaves the counter untouched and reports allowed=False.
        """
        ...

    def release(self, key: str, now: float) -> None:
        """Give back one counted hit if the window is still open."""
        ...


def hash_identity(source_ip: str) -> str:
    """Counter key for an IP; raw addresses never reach the store."""
    return hashlib.sha256(f"{KEY_PREFIX}{source_ip}".encode("utf-8")).hexdigest()


class InMemoryRateLimitStore:
    """Process-local counter store. Increments are serialized by one lock."""

    def __init__(self):
        self._counters: Dict[str, list] = {}
        self._lock = Lock()

    def increment_if_below(self, key: str, limit: int, window_seconds: int, now: float) -> CounterState:
        with self._lock:
            entry = self._counters.get(key)
            if entry is None or entry[1] <= now:
                # Expired entries are dropped and replaced by a fresh window
                entry = [1, now + window_seconds]
                self._counters[key] = entry
                return CounterState(True, 1, entry[1])
            if entry[0] >= limit:
                return CounterState(False, entry[0], entry[1])
            entry[0] += 1
            return CounterState(True, entry[0], entry[1])

    def release(self, key: str, now: float) -> None:
        with self._lock:
            entry = self._counters.get(key)
            if entry is not None and entry[1] > now and entry[0] > 0:
                entry[0] -= 1

    def get(self, key: str, now: float) -> int:
        """Current count for key (0 when missing or expired)."""
        with self._lock:
            entry = self._counters.get(key)
            if entry is None or entry[1] <= now:
                return 0
            return entry[0]

    def purge_expired(self, now: float) -> int:
        with self._lock:
            expired = [key for key, entry in self._counters.items() if entry[1] <= now]
            for key in expired:
                del self._counters[key]
            return len(expired)


class RateLimiter:
    """
    Caps submissions per source IP within a fixed window.

    A hit is counted when a submission passes the rate limit check. Posts
    later rejected by the CAPTCHA keep their slot, so a bot cannot buy
    unlimited verification calls; a submission that fails to be stored is
    handed back through release().
    """

    def __init__(self, store: RateLimitStore, max_requests: int = 3, window_seconds: int = 3600,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock

    def check_and_increment(self, identity_key: str) -> RateLimitDecision:
        """Count one submission for an already-hashed identity key."""
        now = self.clock()
        state = self.store.increment_if_below(identity_key, self.max_requests, self.window_seconds, now)
        if state.allowed:
            return RateLimitDecision(allowed=True, current_count=state.count)

        retry_after = max(int(math.ceil(state.window_expiry - now)), 1)
        logging.warning(f"Contact form rate limit hit for {identity_key[:12]} (count={state.count})")
        return RateLimitDecision(allowed=False, current_count=state.count, retry_after=retry_after)

    def check_ip(self, source_ip: str) -> RateLimitDecision:
        return self.check_and_increment(hash_identity(source_ip))

    def release(self, identity_key: str) -> None:
        self.store.release(identity_key, self.clock())
