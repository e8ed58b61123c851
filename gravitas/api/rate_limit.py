"""
gravitas.api.rate_limit — Sliding-Window Rate Limiting
=======================================================

Three throttles share one DB-backed limiter class, each with its own key
namespace in the ``rate_limit_events`` table:

* ``admin-login:<ip>``   — 10 attempts / 15 min per client IP
* ``admin-write:<sub>``  — 30 mutations / min per admin subject
* ``otp-verify:<email>`` — 10 attempts / 15 min per e-mail

Exceeding a limit yields HTTP 429 with a ``Retry-After`` header.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import Engine, delete, func, select
from sqlalchemy.orm import Session

from gravitas.api.deps import get_current_admin, get_engine
from gravitas.database.models import RateLimitEvent

logger = logging.getLogger(__name__)

ADMIN_WRITE_LIMIT = (30, 60)
ADMIN_LOGIN_LIMIT = (10, 15 * 60)
OTP_VERIFY_LIMIT = (10, 15 * 60)

# HTTP methods considered "mutations"
_MUTATION_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class RateLimiter:
    """Sliding-window rate limiter keyed by an arbitrary string.

    DB-backed so state survives restarts and is shared between workers.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        *,
        engine: Engine,
        namespace: str,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.engine = engine
        self.namespace = namespace

    def _key(self, identifier: str) -> str:
        return f"{self.namespace}:{identifier}"

    def _normalize_dt(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def check(self, identifier: str) -> tuple[bool, dict[str, Any]]:
        """Check if *identifier* is within limits.

        Returns (allowed, info) where info contains:
          - remaining: requests remaining in the window
          - reset: seconds until the oldest request expires
          - limit: the max requests per window
        """
        key = self._key(identifier)
        now = datetime.now(UTC)
        cutoff = now - timedelta(seconds=self.window_seconds)

        with Session(self.engine) as session:
            session.execute(
                delete(RateLimitEvent).where(
                    RateLimitEvent.key == key,
                    RateLimitEvent.timestamp < cutoff,
                )
            )
            timestamps = session.scalars(
                select(RateLimitEvent.timestamp)
                .where(RateLimitEvent.key == key)
                .order_by(RateLimitEvent.timestamp.asc())
            ).all()
            session.commit()

        count = len(timestamps)
        remaining = max(0, self.max_requests - count)

        if count >= self.max_requests:
            oldest = self._normalize_dt(timestamps[0])
            reset = (oldest + timedelta(seconds=self.window_seconds) - now).total_seconds()
            return False, {
                "remaining": 0,
                "reset": max(1, int(reset) + 1),
                "limit": self.max_requests,
            }

        return True, {
            "remaining": remaining,
            "reset": self.window_seconds,
            "limit": self.max_requests,
        }

    def record(self, identifier: str) -> dict[str, Any]:
        """Record a request and return updated rate-limit info."""
        key = self._key(identifier)
        now = datetime.now(UTC)
        cutoff = now - timedelta(seconds=self.window_seconds)

        with Session(self.engine) as session:
            session.execute(
                delete(RateLimitEvent).where(
                    RateLimitEvent.key == key,
                    RateLimitEvent.timestamp < cutoff,
                )
            )
            session.add(RateLimitEvent(key=key, timestamp=now))
            session.flush()

            count = session.scalar(
                select(func.count()).select_from(
                    select(RateLimitEvent.id)
                    .where(RateLimitEvent.key == key)
                    .subquery()
                )
            ) or 0
            session.commit()

        return {
            "remaining": max(0, self.max_requests - count),
            "reset": self.window_seconds,
            "limit": self.max_requests,
        }

    def reset(self, identifier: str | None = None) -> None:
        """Clear state for *identifier*, or the whole namespace if None."""
        with Session(self.engine) as session:
            if identifier is None:
                session.execute(
                    delete(RateLimitEvent).where(
                        RateLimitEvent.key.startswith(f"{self.namespace}:")
                    )
                )
            else:
                session.execute(
                    delete(RateLimitEvent).where(
                        RateLimitEvent.key == self._key(identifier)
                    )
                )
            session.commit()

    def enforce(self, identifier: str) -> None:
        """Record the attempt, or raise 429 when the window is full."""
        allowed, info = self.check(identifier)
        if not allowed:
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ds",
                self._key(identifier), self.max_requests, self.window_seconds,
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "error": "Too many requests. Please try again later.",
                    "retry_after": info["reset"],
                },
                headers={"Retry-After": str(info["reset"])},
            )
        self.record(identifier)


# ---------------------------------------------------------------------------
# Factories — one limiter per namespace, bound to the request's engine
# ---------------------------------------------------------------------------
def admin_write_limiter(engine: Engine = Depends(get_engine)) -> RateLimiter:
    max_requests, window = ADMIN_WRITE_LIMIT
    return RateLimiter(max_requests, window, engine=engine, namespace="admin-write")


def admin_login_limiter(engine: Engine = Depends(get_engine)) -> RateLimiter:
    max_requests, window = ADMIN_LOGIN_LIMIT
    return RateLimiter(max_requests, window, engine=engine, namespace="admin-login")


def otp_verify_limiter(engine: Engine = Depends(get_engine)) -> RateLimiter:
    max_requests, window = OTP_VERIFY_LIMIT
    return RateLimiter(max_requests, window, engine=engine, namespace="otp-verify")


# ---------------------------------------------------------------------------
# FastAPI dependency — chains after get_current_admin
# ---------------------------------------------------------------------------
async def rate_limited_admin(
    request: Request,
    admin: dict = Depends(get_current_admin),
    limiter: RateLimiter = Depends(admin_write_limiter),
) -> dict:
    """Validate the admin token *and* enforce per-admin mutation limits.

    GET/HEAD/OPTIONS requests pass through without rate-limit checks.
    """
    if request.method not in _MUTATION_METHODS:
        return admin

    await asyncio.to_thread(limiter.enforce, admin.get("sub") or admin.get("username", "admin"))
    return admin


def trusted_proxies() -> frozenset[str]:
    """Peers allowed to set ``X-Forwarded-For`` (``TRUSTED_PROXIES``, comma-separated)."""
    raw = os.getenv("TRUSTED_PROXIES", "")
    return frozenset(p.strip() for p in raw.split(",") if p.strip())


def client_ip(request: Request) -> str:
    """Address of the caller, as seen by the first untrusted hop.

    ``X-Forwarded-For`` is ignored unless the direct peer is a trusted
    proxy.  The chain is then walked right to left, skipping trusted hops,
    so a client cannot pick its own key by prepending addresses.
    """
    peer = request.client.host if request.client else "unknown"
    trusted = trusted_proxies()
    if peer not in trusted:
        return peer

    forwarded = request.headers.get("x-forwarded-for", "")
    hops = [h.strip() for h in forwarded.split(",") if h.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return hops[0] if hops else peer
