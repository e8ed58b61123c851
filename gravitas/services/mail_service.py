"""
gravitas.services.mail_service — SMTP delivery for verification mails
======================================================================

Reads ``SMTP_HOST``, ``SMTP_PORT``, ``SMTP_USER``, ``SMTP_PASS`` and
``SENDER_EMAIL`` from the environment.  Unlike password-reset style
notices, verification mails are part of the sign-up contract: a delivery
failure raises :class:`MailDeliveryError` so the caller can roll back.
"""

from __future__ import annotations

import hashlib
import logging
import os
from email.message import EmailMessage

import aiosmtplib

logger = logging.getLogger(__name__)


class MailDeliveryError(RuntimeError):
    """SMTP is unconfigured or the server refused the message."""


def mask_email(email: str) -> str:
    return hashlib.sha256(email.lower().encode("utf-8")).hexdigest()[:12]


async def send_email(
    to_email: str, subject: str, body_html: str, *, sender_name: str = "Gravitas"
) -> None:
    host = os.getenv("SMTP_HOST", "").strip()
    if not host:
        raise MailDeliveryError("SMTP_HOST is not configured")

    port = int(os.getenv("SMTP_PORT", "587"))
    sender = os.getenv("SENDER_EMAIL", "").strip() or os.getenv("SMTP_USER", "")

    msg = EmailMessage()
    msg["From"] = f"{sender_name} <{sender}>"
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body_html, subtype="html")

    try:
        # 587 → STARTTLS, 465 → implicit TLS
        await aiosmtplib.send(
            msg,
            hostname=host,
            port=port,
            username=os.getenv("SMTP_USER") or None,
            password=os.getenv("SMTP_PASS") or None,
            start_tls=port == 587,
            use_tls=port == 465,
            timeout=15,
        )
    except aiosmtplib.SMTPException as exc:
        logger.error("Failed to send email to %s: %s", mask_email(to_email), exc)
        raise MailDeliveryError(str(exc)) from exc
    logger.info("Email sent to %s", mask_email(to_email))


async def send_otp_email(
    email: str, name: str, otp: str, *, ttl_minutes: int, site_name: str = "Gravitas"
) -> None:
    subject = f"Verify your {site_name} account - OTP Code"
    body = f"""
    <html>
        <body style="font-family: Arial, sans-serif;">
            <h2>Verify Your Email Address</h2>
            <p>Hi {name},</p>
            <p>Use the following code to verify your email address:</p>
            <p style="font-size: 32px; font-weight: bold; letter-spacing: 8px;">{otp}</p>
            <p>This code expires in {ttl_minutes} minutes.</p>
            <p>If you did not create an account, please ignore this email.</p>
        </body>
    </html>
    """
    await send_email(email, subject, body, sender_name=site_name)


async def send_verification_link(
    email: str, name: str, link: str, *, site_name: str = "Gravitas"
) -> None:
    subject = f"Confirm your {site_name} email address"
    body = f"""
    <html>
        <body style="font-family: Arial, sans-serif;">
            <p>Hi {name},</p>
            <p>Click the link below to confirm your email address:</p>
            <p><a href="{link}">Verify Email</a></p>
            <p>If you did not request this, please ignore this email.</p>
        </body>
    </html>
    """
    await send_email(email, subject, body, sender_name=site_name)
