"""Contact routes: form token issuance and protected form submission."""

import math
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from src.shared.auth.csrf import SignedTokenCsrf
from src.shared.auth.dependencies import get_client_ip
from src.shared.intake.orchestrator import IntakeOrchestrator
from src.shared.intake.schemas import ContactResponse, FormTokenResponse, IntakeOutcome, SubmissionRequest

router = APIRouter(prefix="/api/contact", tags=["contact"])

FALSE_CHECKBOX_VALUES = ("", "0", "false", "off", "no")

STATUS_BY_ERROR_KIND = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "spam": status.HTTP_400_BAD_REQUEST,
    "security": status.HTTP_403_FORBIDDEN,
    "rate_limited": status.HTTP_429_TOO_MANY_REQUESTS,
    "persistence": status.HTTP_503_SERVICE_UNAVAILABLE,
    "notification_failed": status.HTTP_202_ACCEPTED,
}


def get_orchestrator(request: Request) -> IntakeOrchestrator:
    orchestrator = getattr(request.app.state, "intake_orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Contact form is not configured"
        )
    return orchestrator


def get_csrf(request: Request) -> SignedTokenCsrf:
    csrf = getattr(request.app.state, "csrf", None)
    if csrf is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Contact form is not configured"
        )
    return csrf


def parse_checkbox(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() not in FALSE_CHECKBOX_VALUES


def parse_timestamp(value: Optional[str]) -> Optional[float]:
    """Unix timestamp from a hidden field; None when missing or not a finite number."""
    if value is None:
        return None
    try:
        parsed = float(value.strip())
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def parse_int(value: Optional[str]) -> int:
    try:
        return int(value) if value is not None else 0
    except ValueError:
        return 0


def outcome_to_response(outcome: IntakeOutcome) -> JSONResponse:
    body = ContactResponse(success=outcome.success, message=outcome.message, error_kind=outcome.error_kind)
    status_code = STATUS_BY_ERROR_KIND.get(outcome.error_kind, status.HTTP_200_OK)
    headers = {}
    if outcome.retry_after:
        headers["Retry-After"] = str(outcome.retry_after)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
        headers=headers
    )


@router.get("/form-token", response_model=FormTokenResponse)
async def issue_form_token(
    page_id: int = Query(0, ge=0),
    csrf: SignedTokenCsrf = Depends(get_csrf),
):
    """
    Values the page embeds as hidden fields when it renders the contact form:
    a CSRF token bound to the page and the render timestamp for the timing check.
    """
    return FormTokenResponse(csrf_token=csrf.issue(page_id), form_start_time=int(csrf.clock()))


@router.post("/submit", response_model=ContactResponse)
def submit_contact_form(
    request: Request,
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    company: Optional[str] = Form(None),
    subject: Optional[str] = Form(None),
    message: Optional[str] = Form(None),
    privacy_consent: Optional[str] = Form(None),
    newsletter_consent: Optional[str] = Form(None),
    page_id: Optional[str] = Form(None),
    user_agent: Optional[str] = Form(None),
    referrer: Optional[str] = Form(None),
    website_url: Optional[str] = Form(None),
    form_start_time: Optional[str] = Form(None),
    recaptcha_token: Optional[str] = Form(None),
    csrf_token: Optional[str] = Form(None),
    orchestrator: IntakeOrchestrator = Depends(get_orchestrator),
):
    """
    Submit the contact form.

    Runs CSRF verification, validation, spam defenses (honeypot, timing,
    rate limit, reCAPTCHA), stores the submission and notifies staff.
    Always answers with {success, message} plus errorKind on failure.
    """
    submission = SubmissionRequest(
        name=name,
        email=email,
        phone=phone,
        company=company,
        subject=subject,
        message=message,
        privacy_consent=parse_checkbox(privacy_consent),
        newsletter_consent=parse_checkbox(newsletter_consent),
        page_id=parse_int(page_id),
        user_agent=user_agent or request.headers.get("User-Agent", ""),
        referrer_url=referrer or "",
        source_ip=get_client_ip(request),
        submitted_at=orchestrator.clock(),
        form_render_timestamp=parse_timestamp(form_start_time),
        honeypot_value=website_url or "",
        captcha_token=recaptcha_token,
        csrf_token=csrf_token,
    )
    outcome = orchestrator.submit(submission)
    return outcome_to_response(outcome)
