"""
gravitas.services.verification_service — Accounts, OTPs & Link Tokens
======================================================================

Registration, e-mail verification and credential checks.

OTPs and verification-link tokens are single use: consuming one is a
conditional delete whose rowcount must be exactly 1, inside the same
transaction that marks the user verified.  Two concurrent consumers of the
same code therefore cannot both succeed.  Expiry is authoritative; there
is no renewal, only re-issue.
"""

from __future__ import annotations

import logging
import secrets
from datetime import UTC, datetime, timedelta

from fastapi import HTTPException, status
from sqlalchemy import Engine, delete, select, update

from gravitas.constants import (
    EMAIL_PATTERN,
    OTP_LENGTH,
    OTP_TYPE_EMAIL_VERIFICATION,
    PASSWORD_MIN_LENGTH,
    normalize_email,
)
from gravitas.database.engine import get_session
from gravitas.database.models import EmailOtp, User, VerificationToken
from gravitas.services.passwords import hash_password, verify_password

logger = logging.getLogger(__name__)


def generate_otp() -> str:
    """Uniformly random numeric code of :data:`OTP_LENGTH` digits, no leading zero."""
    low = 10 ** (OTP_LENGTH - 1)
    return str(low + secrets.randbelow(9 * low))


def _public_user(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "image": user.image,
        "emailVerified": user.email_verified.isoformat() if user.email_verified else None,
    }


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------
def register_user(
    engine: Engine,
    *,
    name: str | None,
    email: str | None,
    password: str | None,
    otp_ttl: timedelta,
) -> tuple[dict, str]:
    """Create an unverified user and its first verification OTP.

    Returns ``(user_dict, otp)``; the caller mails the OTP.
    """
    if not name or not email or not password:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Name, email, and password are required")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long",
        )
    if not EMAIL_PATTERN.match(email):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Please enter a valid email address")

    email = normalize_email(email)
    now = datetime.now(UTC)
    otp = generate_otp()

    with get_session(engine) as session:
        if session.scalar(select(User.id).where(User.email == email)):
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "User with this email already exists")

        user = User(
            name=name.strip(),
            email=email,
            password_hash=hash_password(password),
            email_verified=None,
        )
        session.add(user)
        session.flush()
        session.add(EmailOtp(
            email=email,
            otp=otp,
            type=OTP_TYPE_EMAIL_VERIFICATION,
            user_id=user.id,
            expires=now + otp_ttl,
            created_at=now,
        ))
        result = _public_user(user)

    logger.info("Registered user %s (pending verification)", result["id"])
    return result, otp


def discard_registration(engine: Engine, user_id: str, email: str) -> None:
    """Undo :func:`register_user` when the verification mail could not be sent."""
    with get_session(engine) as session:
        session.execute(delete(EmailOtp).where(EmailOtp.email == email))
        session.execute(delete(User).where(User.id == user_id))
    logger.warning("Discarded registration %s after mail failure", user_id)


# ---------------------------------------------------------------------------
# OTPs
# ---------------------------------------------------------------------------
def reissue_otp(
    engine: Engine,
    email: str | None,
    otp_type: str,
    *,
    otp_ttl: timedelta,
    cooldown: timedelta,
) -> tuple[dict, str]:
    """Replace any outstanding OTPs of *otp_type* with a fresh one.

    Returns ``(user_dict, otp)``.  Refuses with 429 when an OTP was issued
    within *cooldown*.
    """
    if not email:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Email is required")
    email = normalize_email(email)
    now = datetime.now(UTC)

    with get_session(engine) as session:
        user = session.scalar(select(User).where(User.email == email))
        if user is None:
            raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found")
        if otp_type == OTP_TYPE_EMAIL_VERIFICATION and user.email_verified:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Email is already verified")

        recent = session.scalar(
            select(EmailOtp.id).where(
                EmailOtp.email == email,
                EmailOtp.type == otp_type,
                EmailOtp.created_at > now - cooldown,
            )
        )
        if recent:
            raise HTTPException(
                status.HTTP_429_TOO_MANY_REQUESTS,
                "OTP was sent recently. Please wait 1 minute before requesting another.",
            )

        session.execute(
            delete(EmailOtp).where(EmailOtp.email == email, EmailOtp.type == otp_type)
        )
        otp = generate_otp()
        session.add(EmailOtp(
            email=email,
            otp=otp,
            type=otp_type,
            user_id=user.id,
            expires=now + otp_ttl,
            created_at=now,
        ))
        return _public_user(user), otp


def consume_otp(engine: Engine, email: str, otp: str, otp_type: str) -> str:
    """Verify and burn an OTP; mark the user verified for e-mail OTPs.

    Returns the success message.
    """
    email = normalize_email(email)
    now = datetime.now(UTC)

    with get_session(engine) as session:
        record_id = session.scalar(
            select(EmailOtp.id).where(
                EmailOtp.email == email,
                EmailOtp.otp == otp,
                EmailOtp.type == otp_type,
                EmailOtp.expires > now,
            )
        )
        if record_id is None:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid or expired OTP")

        if otp_type == OTP_TYPE_EMAIL_VERIFICATION:
            updated = session.execute(
                update(User)
                .where(User.email == email)
                .values(email_verified=now, updated_at=now)
            )
            if updated.rowcount == 0:
                raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found")

        burned = session.execute(delete(EmailOtp).where(EmailOtp.id == record_id))
        if burned.rowcount != 1:
            # Lost the race to a concurrent verification of the same code
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid or expired OTP")

    if otp_type == OTP_TYPE_EMAIL_VERIFICATION:
        return "Email verified successfully"
    return "OTP verified successfully"


# ---------------------------------------------------------------------------
# Verification links
# ---------------------------------------------------------------------------
def issue_verification_token(engine: Engine, user_id: str, *, ttl: timedelta) -> tuple[dict, str]:
    """Create a link token for *user_id*'s address. Returns ``(user_dict, token)``."""
    with get_session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found")
        if user.email_verified:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Email is already verified")
        token = secrets.token_urlsafe(32)
        session.execute(
            delete(VerificationToken).where(VerificationToken.identifier == user.email)
        )
        session.add(VerificationToken(
            token=token,
            identifier=user.email,
            expires=datetime.now(UTC) + ttl,
        ))
        return _public_user(user), token


def consume_verification_token(engine: Engine, token: str | None) -> None:
    if not token:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Verification token is required")
    now = datetime.now(UTC)

    with get_session(engine) as session:
        identifier = session.scalar(
            select(VerificationToken.identifier).where(
                VerificationToken.token == token,
                VerificationToken.expires > now,
            )
        )
        if identifier is None:
            raise HTTPException(
                status.HTTP_400_BAD_REQUEST, "Invalid or expired verification token"
            )

        updated = session.execute(
            update(User)
            .where(User.email == identifier)
            .values(email_verified=now, updated_at=now)
        )
        if updated.rowcount == 0:
            raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found")

        burned = session.execute(
            delete(VerificationToken).where(VerificationToken.token == token)
        )
        if burned.rowcount != 1:
            raise HTTPException(
                status.HTTP_400_BAD_REQUEST, "Invalid or expired verification token"
            )


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------
def authenticate(engine: Engine, email: str, password: str) -> dict:
    """Check e-mail + password. Unverified accounts are refused with 403."""
    with get_session(engine) as session:
        user = session.scalar(select(User).where(User.email == normalize_email(email)))
        if user is None or not verify_password(user.password_hash, password):
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid email or password")
        if not user.email_verified:
            raise HTTPException(
                status.HTTP_403_FORBIDDEN,
                "Please verify your email address before signing in",
            )
        return _public_user(user)


def get_user(engine: Engine, user_id: str) -> dict | None:
    with get_session(engine) as session:
        user = session.get(User, user_id)
        return _public_user(user) if user else None
