"""Tests for the reCAPTCHA verifier (HTTP calls mocked)."""
from unittest.mock import MagicMock, patch

import pytest
import requests

from src.shared.intake.captcha import RecaptchaVerifier
from src.shared.intake.errors import CaptchaUnavailable


def _response(status_code=200, payload=None, json_error=False):
    response = MagicMock()
    response.status_code = status_code
    if json_error:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = payload
    return response


@patch("src.shared.intake.captcha.requests.post")
def test_successful_verification(mock_post):
    mock_post.return_value = _response(payload={"success": True, "score": 0.9, "action": "contact_form"})
    verifier = RecaptchaVerifier("secret", timeout=2.5)

    result = verifier.verify("tok", remote_ip="203.0.113.7")

    assert result.success
    assert result.score == 0.9
    args, kwargs = mock_post.call_args
    assert args[0] == RecaptchaVerifier.VERIFY_URL
    assert kwargs["data"] == {"secret": "secret", "response": "tok", "remoteip": "203.0.113.7"}
    assert kwargs["timeout"] == 2.5


@patch("src.shared.intake.captcha.requests.post")
def test_unknown_ip_not_forwarded(mock_post):
    mock_post.return_value = _response(payload={"success": True, "score": 0.7})
    RecaptchaVerifier("secret").verify("tok", remote_ip="unknown")
    assert "remoteip" not in mock_post.call_args.kwargs["data"]


@patch("src.shared.intake.captcha.requests.post")
def test_failed_verification_reports_error_codes(mock_post):
    mock_post.return_value = _response(payload={"success": False, "error-codes": ["timeout-or-duplicate"]})
    result = RecaptchaVerifier("secret").verify("tok")
    assert not result.success
    assert result.score == 0.0
    assert result.error_codes == ["timeout-or-duplicate"]


@pytest.mark.parametrize("error", [
    requests.exceptions.Timeout("slow"),
    requests.exceptions.ConnectionError("down"),
])
@patch("src.shared.intake.captcha.requests.post")
def test_network_errors_raise_unavailable(mock_post, error):
    mock_post.side_effect = error
    with pytest.raises(CaptchaUnavailable):
        RecaptchaVerifier("secret").verify("tok")


@patch("src.shared.intake.captcha.requests.post")
def test_non_200_raises_unavailable(mock_post):
    mock_post.return_value = _response(status_code=502)
    with pytest.raises(CaptchaUnavailable) as exc:
        RecaptchaVerifier("secret").verify("tok")
    assert "502" in exc.value.detail


@patch("src.shared.intake.captcha.requests.post")
def test_garbage_body_raises_unavailable(mock_post):
    mock_post.return_value = _response(json_error=True)
    with pytest.raises(CaptchaUnavailable):
        RecaptchaVerifier("secret").verify("tok")
