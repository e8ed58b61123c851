"""
gravitas.api.auth — Credential sign-up, e-mail verification & sessions
=======================================================================
"""

from __future__ import annotations

import logging
from datetime import timedelta
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from gravitas.api.deps import (
    get_config,
    get_current_user,
    get_engine,
    issue_token,
    session_secret,
)
from gravitas.api.rate_limit import RateLimiter, otp_verify_limiter
from gravitas.config import GravitasConfig
from gravitas.constants import OTP_TYPE_EMAIL_VERIFICATION, SESSION_COOKIE, normalize_email
from gravitas.database.engine import run_db
from gravitas.services import mail_service, verification_service
from gravitas.services.mail_service import MailDeliveryError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


# ---------------------------------------------------------------------------
# Request bodies — every field optional so missing ones get a 400 message
# ---------------------------------------------------------------------------
class RegisterBody(BaseModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None


class VerifyOtpBody(BaseModel):
    email: str | None = None
    otp: str | None = None
    type: str = OTP_TYPE_EMAIL_VERIFICATION


class ResendOtpBody(BaseModel):
    email: str | None = None
    type: str = OTP_TYPE_EMAIL_VERIFICATION


class LoginBody(BaseModel):
    email: str | None = None
    password: str | None = None


def _secure(request: Request) -> bool:
    return request.url.scheme == "https"


# ---------------------------------------------------------------------------
# Registration & OTP verification
# ---------------------------------------------------------------------------
@router.post("/register")
async def register(
    body: RegisterBody,
    engine=Depends(get_engine),
    cfg: GravitasConfig = Depends(get_config),
):
    """Create an unverified account and mail its verification code."""
    user, otp = await run_db(
        verification_service.register_user,
        engine,
        name=body.name,
        email=body.email,
        password=body.password,
        otp_ttl=timedelta(minutes=cfg.otp_ttl_minutes),
    )
    try:
        await mail_service.send_otp_email(
            user["email"], user["name"], otp,
            ttl_minutes=cfg.otp_ttl_minutes, site_name=cfg.site_name,
        )
    except MailDeliveryError:
        await run_db(verification_service.discard_registration, engine, user["id"], user["email"])
        raise HTTPException(500, "Failed to send verification email. Please try again.")

    return {
        "message": "Registration successful. Please check your email for the verification code.",
        "userId": user["id"],
        "email": user["email"],
        "requiresVerification": True,
    }


@router.post("/verify-otp")
def verify_otp(
    body: VerifyOtpBody,
    engine=Depends(get_engine),
    limiter: RateLimiter = Depends(otp_verify_limiter),
):
    if not body.email or not body.otp:
        raise HTTPException(400, "Email and OTP are required")
    limiter.enforce(normalize_email(body.email))
    message = verification_service.consume_otp(engine, body.email, body.otp.strip(), body.type)
    return {"message": message, "verified": True}


@router.post("/resend-otp")
async def resend_otp(
    body: ResendOtpBody,
    engine=Depends(get_engine),
    cfg: GravitasConfig = Depends(get_config),
):
    user, otp = await run_db(
        verification_service.reissue_otp,
        engine,
        body.email,
        body.type,
        otp_ttl=timedelta(minutes=cfg.otp_ttl_minutes),
        cooldown=timedelta(seconds=cfg.otp_resend_cooldown_seconds),
    )
    try:
        await mail_service.send_otp_email(
            user["email"], user["name"], otp,
            ttl_minutes=cfg.otp_ttl_minutes, site_name=cfg.site_name,
        )
    except MailDeliveryError:
        raise HTTPException(500, "Failed to send OTP email. Please try again.")
    return {"message": "OTP sent successfully"}


# ---------------------------------------------------------------------------
# Verification links
# ---------------------------------------------------------------------------
@router.get("/verify-email")
def verify_email(
    token: str | None = None,
    engine=Depends(get_engine),
    cfg: GravitasConfig = Depends(get_config),
):
    verification_service.consume_verification_token(engine, token)
    return RedirectResponse(f"{cfg.app_url}/auth/email-verified")


@router.post("/send-verification")
async def send_verification(
    user_id: str = Depends(get_current_user),
    engine=Depends(get_engine),
    cfg: GravitasConfig = Depends(get_config),
):
    user, token = await run_db(
        verification_service.issue_verification_token,
        engine,
        user_id,
        ttl=timedelta(hours=cfg.verification_token_ttl_hours),
    )
    link = f"{cfg.app_url}/api/auth/verify-email?{urlencode({'token': token})}"
    try:
        await mail_service.send_verification_link(
            user["email"], user["name"], link, site_name=cfg.site_name
        )
    except MailDeliveryError:
        raise HTTPException(500, "Failed to send verification email. Please try again.")
    return {"message": "Verification email sent"}


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
@router.post("/login")
def login(
    body: LoginBody,
    request: Request,
    response: Response,
    engine=Depends(get_engine),
    cfg: GravitasConfig = Depends(get_config),
):
    if not body.email or not body.password:
        raise HTTPException(400, "Email and password are required")
    user = verification_service.authenticate(engine, body.email, body.password)

    ttl = timedelta(days=cfg.session_ttl_days)
    token = issue_token(
        {"sub": user["id"], "email": user["email"], "name": user["name"]},
        session_secret(),
        ttl,
    )
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=int(ttl.total_seconds()),
        httponly=True,
        secure=_secure(request),
        samesite="lax",
        path="/",
    )
    logger.info("User %s signed in", user["id"])
    return {
        "token": token,
        "user": {
            "id": user["id"],
            "name": user["name"],
            "email": user["email"],
            "image": user["image"],
        },
    }


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE, path="/")
    return {"success": True}


@router.get("/session")
def session(
    user_id: str = Depends(get_current_user),
    engine=Depends(get_engine),
):
    user = verification_service.get_user(engine, user_id)
    if user is None:
        raise HTTPException(401, "Unauthorized")
    return user
