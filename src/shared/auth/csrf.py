"""CSRF tokens for public forms: signed JWTs bound to the page that rendered the form."""

import logging
import os
import time
from typing import Callable, Optional, Protocol

from jose import JWTError, jwt

ALGORITHM = "HS256"
TOKEN_TYPE = "csrf"
# Same lifetime as a WordPress nonce
CSRF_TOKEN_EXPIRE_SECONDS = 24 * 60 * 60


class CsrfVerifier(Protocol):
    def verify(self, token: Optional[str], page_id: int) -> bool:
        ...


class SignedTokenCsrf:
    """Issues and verifies form tokens signed with the application secret."""

    def __init__(self, secret_key: str, expire_seconds: int = CSRF_TOKEN_EXPIRE_SECONDS,
                 clock: Callable[[], float] = time.time):
        if not secret_key:
            raise ValueError(
                "SECRET_KEY environment variable is required for form tokens. "
                "Please set it to a secure random string."
            )
        self.secret_key = secret_key
        self.expire_seconds = expire_seconds
        self.clock = clock

    @classmethod
    def from_env(cls) -> "SignedTokenCsrf":
        return cls(os.environ.get("SECRET_KEY", ""))

    def issue(self, page_id: int) -> str:
        now = int(self.clock())
        payload = {
            "type": TOKEN_TYPE,
            "page_id": int(page_id),
            "iat": now,
            "exp": now + self.expire_seconds,
        }
        return jwt.encode(payload, self.secret_key, algorithm=ALGORITHM)

    def verify(self, token: Optional[str], page_id: int) -> bool:
        """
        True when the token was issued by us, for this page, and has not expired.
        Expiry is checked against the injected clock rather than wall time.
        """
        if not token:
            return False
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError:
            return False

        if payload.get("type") != TOKEN_TYPE:
            return False
        if payload.get("page_id") != int(page_id):
            logging.warning("CSRF token presented for a different page")
            return False
        expires_at = payload.get("exp")
        if not isinstance(expires_at, (int, float)) or expires_at <= self.clock():
            return False
        return True
