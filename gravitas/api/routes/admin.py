"""
gravitas.api.routes.admin — Site-admin console API
===================================================

Admin sign-in, the community review queue, platform stats and the live
log monitor.  Every route except ``/login`` and ``/logout`` requires an
admin token; mutations additionally pass the per-admin write limiter.
"""

from __future__ import annotations

import hmac
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from gravitas.api.deps import (
    ADMIN_ROLE,
    admin_secret,
    get_config,
    get_current_admin,
    get_session,
    issue_token,
)
from gravitas.api.rate_limit import (
    ADMIN_LOGIN_LIMIT,
    ADMIN_WRITE_LIMIT,
    OTP_VERIFY_LIMIT,
    RateLimiter,
    admin_login_limiter,
    client_ip,
    rate_limited_admin,
)
from gravitas.config import GravitasConfig
from gravitas.constants import ADMIN_COOKIE
from gravitas.services import admin_service
from gravitas.services.log_buffer import VALID_LEVELS, clear, get_logs

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


class AdminLoginBody(BaseModel):
    username: str | None = None
    password: str | None = None


class RejectBody(BaseModel):
    reason: str | None = None


def _reviewer(admin: dict) -> str:
    return admin.get("username") or admin.get("sub") or ADMIN_ROLE


# ---------------------------------------------------------------------------
# Sign-in
# ---------------------------------------------------------------------------
@router.post("/login")
def admin_login(
    body: AdminLoginBody,
    request: Request,
    response: Response,
    cfg: GravitasConfig = Depends(get_config),
    limiter: RateLimiter = Depends(admin_login_limiter),
):
    limiter.enforce(client_ip(request))

    username = (body.username or "").encode("utf-8")
    password = (body.password or "").encode("utf-8")
    # Evaluate both comparisons so timing does not reveal which one failed
    user_ok = hmac.compare_digest(username, cfg.admin_username.encode("utf-8"))
    pass_ok = hmac.compare_digest(password, cfg.admin_password.encode("utf-8"))
    if not (user_ok and pass_ok):
        logger.warning("Failed admin login from %s", client_ip(request))
        raise HTTPException(401, "Invalid username or password")

    ttl = timedelta(hours=cfg.admin_token_ttl_hours)
    token = issue_token(
        {"sub": cfg.admin_username, "username": cfg.admin_username, "role": ADMIN_ROLE},
        admin_secret(),
        ttl,
    )
    response.set_cookie(
        ADMIN_COOKIE,
        token,
        max_age=int(ttl.total_seconds()),
        httponly=True,
        secure=request.url.scheme == "https",
        samesite="strict",
        path="/",
    )
    logger.info("Admin %s signed in", cfg.admin_username)
    return {"token": token, "role": ADMIN_ROLE, "message": "Login successful"}


@router.post("/logout")
def admin_logout(response: Response):
    response.delete_cookie(ADMIN_COOKIE, path="/")
    return {"success": True, "message": "Admin logged out successfully"}


@router.get("/check-auth")
def check_auth(admin: dict = Depends(get_current_admin)):
    return {"isAdmin": True}


# ---------------------------------------------------------------------------
# Community review
# ---------------------------------------------------------------------------
@router.get("/communities/pending")
def list_pending(
    admin: dict = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    return admin_service.pending_communities(session)


@router.post("/communities/approve/{community_id}")
def approve(
    community_id: str,
    admin: dict = Depends(rate_limited_admin),
    session: Session = Depends(get_session),
):
    community = admin_service.approve_community(session, community_id, _reviewer(admin))
    return {"success": True, "message": "Community approved successfully", "community": community}


@router.post("/communities/reject/{community_id}")
def reject(
    community_id: str,
    body: RejectBody | None = None,
    admin: dict = Depends(rate_limited_admin),
    session: Session = Depends(get_session),
):
    community = admin_service.reject_community(
        session, community_id, _reviewer(admin), body.reason if body else None
    )
    return {"success": True, "message": "Community rejected", "community": community}


@router.get("/communities/stats")
def community_stats(
    admin: dict = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    return admin_service.community_stats(session)


@router.get("/dashboard/stats")
def dashboard_stats(
    admin: dict = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    return admin_service.dashboard_stats(session)


# ---------------------------------------------------------------------------
# Monitoring
# ---------------------------------------------------------------------------
def _limit_info(limit: tuple[int, int]) -> dict:
    max_requests, window = limit
    return {"maxRequests": max_requests, "windowSeconds": window}


@router.get("/monitoring")
def monitoring(
    tail: int = Query(200, ge=1, le=2000),
    level: str | None = Query(None),
    admin: dict = Depends(get_current_admin),
):
    """Recent log entries from the in-memory buffer plus limiter settings."""
    if level and level.upper() not in VALID_LEVELS:
        raise HTTPException(400, f"Invalid level. Must be one of: {', '.join(VALID_LEVELS)}")
    entries = get_logs(tail=tail, level=level)
    return {
        "entries": entries,
        "total": len(entries),
        "validLevels": list(VALID_LEVELS),
        "rateLimits": {
            "adminLogin": _limit_info(ADMIN_LOGIN_LIMIT),
            "adminWrite": _limit_info(ADMIN_WRITE_LIMIT),
            "otpVerify": _limit_info(OTP_VERIFY_LIMIT),
        },
    }


@router.delete("/monitoring")
def clear_monitoring(admin: dict = Depends(rate_limited_admin)):
    dropped = clear()
    logger.info("Log buffer cleared by %s (%d entries)", _reviewer(admin), dropped)
    return {"success": True, "cleared": dropped}
