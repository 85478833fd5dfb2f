"""
Google reCAPTCHA v3 verification.

Posts the token from the page to the siteverify endpoint and returns the
success flag and risk score. Network problems are raised as
CaptchaUnavailable so the caller can apply its fail-open/fail-closed policy.

Documentation: https://developers.google.com/recaptcha/docs/verify
"""

import logging
from typing import List, NamedTuple, Optional, Protocol

import requests

from src.shared.intake.errors import CaptchaUnavailable


class CaptchaResult(NamedTuple):
    success: bool
    score: float
    error_codes: List[str]


class CaptchaVerifier(Protocol):
    def verify(self, token: str, remote_ip: Optional[str] = None) -> CaptchaResult:
        ...


class RecaptchaVerifier:
    """
    Service for verifying reCAPTCHA v3 tokens.

    Usage:
        verifier = RecaptchaVerifier(secret_key, timeout=3)
        result = verifier.verify(token, remote_ip='192.168.1.1')
    """

    VERIFY_URL = 'https://www.google.com/recaptcha/api/siteverify'

    def __init__(self, secret_key: str, timeout: float = 3.0, verify_url: str = None):
        self.secret_key = secret_key
        self.timeout = timeout
        self.verify_url = verify_url or self.VERIFY_URL

    def verify(self, token: str, remote_ip: Optional[str] = None) -> CaptchaResult:
        """
        Verify a reCAPTCHA token.

        Args:
            token: The token generated by grecaptcha.execute on the page
            remote_ip: Optional end-user IP, forwarded to the verifier

        Returns:
            CaptchaResult with success flag, score (0.0 when absent) and error codes

        Raises:
            CaptchaUnavailable: timeout, connection error, non-200 status or unreadable body
        """
        payload = {
            'secret': self.secret_key,
            'response': token,
        }
        if remote_ip and remote_ip != "unknown":
            payload['remoteip'] = remote_ip

        try:
            response = requests.post(self.verify_url, data=payload, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logging.error("reCAPTCHA verification timeout")
            raise CaptchaUnavailable(detail="timeout")
        except requests.exceptions.RequestException as e:
            logging.error(f"reCAPTCHA verification network error: {e}")
            raise CaptchaUnavailable(detail=str(e))

        if response.status_code != 200:
            logging.error(f"reCAPTCHA API returned status {response.status_code}")
            raise CaptchaUnavailable(detail=f"status {response.status_code}")

        try:
            result = response.json()
        except ValueError:
            raise CaptchaUnavailable(detail="invalid JSON from verifier")
        if not isinstance(result, dict):
            raise CaptchaUnavailable(detail="unexpected verifier payload")

        try:
            score = float(result.get('score', 0.0))
        except (TypeError, ValueError):
            score = 0.0

        error_codes = result.get('error-codes', []) or []
        if not result.get('success'):
            logging.warning(f"reCAPTCHA verification failed: {error_codes}")

        return CaptchaResult(bool(result.get('success')), score, list(error_codes))
