"""Contact Intake Service - FastAPI server for the protected contact form."""

import logging
import os
import time

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.shared.auth.csrf import SignedTokenCsrf
from src.shared.auth.database import SessionLocal, init_db
from src.shared.intake.captcha import RecaptchaVerifier
from src.shared.intake.config import IntakeConfig
from src.shared.intake.database import SqlRateLimitStore, SqlSubmissionStore
from src.shared.intake.mailer import SmtpMailer
from src.shared.intake.orchestrator import IntakeOrchestrator
from src.shared.intake.routes import router as contact_router

DEFAULT_ALLOWED_ORIGINS = "http://localhost:3000"
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS).split(",")
    if origin.strip()
]

app = FastAPI(
    title="Contact Intake Service",
    description="Spam-resistant contact form intake: validation, honeypot, timing, rate limit and reCAPTCHA",
    version="0.1.0"
)


def configure_intake(target: FastAPI) -> None:
    """Build the production pipeline (SQL stores, SMTP, reCAPTCHA) and attach it to app.state."""
    config = IntakeConfig.from_env()
    csrf = SignedTokenCsrf.from_env()
    captcha_verifier = None
    if config.captcha_active:
        captcha_verifier = RecaptchaVerifier(config.captcha_secret, timeout=config.captcha_timeout_seconds)
    target.state.csrf = csrf
    target.state.intake_orchestrator = IntakeOrchestrator.build(
        config,
        csrf=csrf,
        rate_limit_store=SqlRateLimitStore(SessionLocal),
        store=SqlSubmissionStore(SessionLocal),
        mailer=SmtpMailer.from_env(),
        captcha_verifier=captcha_verifier,
    )
    logging.info(
        f"Contact intake configured (honeypot={config.honeypot_enabled}, timing={config.timing_check_enabled}, "
        f"rate_limit={config.rate_limit_enabled}, captcha={config.captcha_active})"
    )


# Initialize database and pipeline on startup
@app.on_event("startup")
async def startup_event():
    try:
        init_db()
        SqlRateLimitStore(SessionLocal).purge_expired(time.time())
        logging.info("Database initialization completed on startup")
    except Exception as e:
        # Log error but don't crash the app; submissions will fail with a retryable error
        logging.error(f"Database initialization error on startup: {str(e)}")

    try:
        configure_intake(app)
    except ValueError as e:
        # Missing SECRET_KEY: the contact routes answer 503 until it is set
        logging.error(f"Contact intake not configured: {str(e)}")


# Include contact routes
app.include_router(contact_router)

# CORS configuration - must be added before exception handlers
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


def _cors_headers(request: Request) -> dict:
    headers = {}
    origin = request.headers.get("origin")
    if origin in ALLOWED_ORIGINS:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
        headers["Access-Control-Allow-Methods"] = "*"
        headers["Access-Control-Allow-Headers"] = "*"
    return headers


# Global exception handlers to ensure CORS headers are always added
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Ensure CORS headers are added to FastAPI HTTP exceptions."""
    # Handle both string and dict detail formats
    if isinstance(exc.detail, dict):
        content = exc.detail
    elif isinstance(exc.detail, str):
        content = {"detail": exc.detail}
    else:
        content = {"detail": str(exc.detail)}

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=_cors_headers(request)
    )


@app.exception_handler(StarletteHTTPException)
async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Ensure CORS headers are added to Starlette HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail} if isinstance(exc.detail, (str, dict)) else {"detail": str(exc.detail)},
        headers=_cors_headers(request)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Ensure CORS headers are added to validation errors."""
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()},
        headers=_cors_headers(request)
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Ensure CORS headers are added to all exceptions."""
    logging.error(f"Unhandled exception: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
        headers=_cors_headers(request)
    )


@app.get("/")
async def root():
    return {"message": "Contact Intake Service is running", "status": "ok"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
