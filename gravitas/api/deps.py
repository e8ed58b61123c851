"""
gravitas.api.deps — FastAPI dependency injection
=================================================

Everything a handler borrows per request lives here: the process-wide
engine, the loaded config, a DB session, and the resolved caller.

Two token families coexist and share one verification routine,
:func:`verify_claims`:

* **user sessions** — signed with ``SESSION_SECRET``, carried in the
  ``gravitas_session`` cookie or an ``Authorization: Bearer`` header;
* **admin tokens** — signed with ``ADMIN_JWT_SECRET``, carried in an
  ``Authorization: Bearer`` header or the ``admin_token`` cookie, and
  required to hold ``role == "admin"``.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Cookie, Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from gravitas.config import GravitasConfig, load_config
from gravitas.database.engine import create_db_engine

_WEAK_SECRETS = frozenset({
    "admin-secret-key",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"
ADMIN_ROLE = "admin"


class ConfigurationError(RuntimeError):
    """A required secret is missing or unusable; requests fail closed."""


def load_secret(name: str) -> str:
    """Load and validate a signing secret from the environment.

    Raises :class:`ConfigurationError` if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.  There is no
    fallback value.
    """
    secret = os.getenv(name, "")
    if not secret:
        raise ConfigurationError(
            f"{name} environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise ConfigurationError(
            f"{name} is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise ConfigurationError(
            f"{name} is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


def admin_secret() -> str:
    return load_secret("ADMIN_JWT_SECRET")


def session_secret() -> str:
    return load_secret("SESSION_SECRET")


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------
def issue_token(claims: dict, secret: str, ttl: timedelta) -> str:
    """Sign *claims* with an ``iat``/``exp`` window of *ttl*."""
    now = datetime.now(UTC)
    payload = {**claims, "iat": now, "exp": now + ttl}
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def verify_claims(token: str, secret: str) -> dict:
    """Verify signature and expiry of *token* and return its claims.

    Raises 401 for any malformed, tampered or expired token.
    """
    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unauthorized")


def _bearer(authorization: str | None) -> str | None:
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    return None


# ---------------------------------------------------------------------------
# Shared resources
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> GravitasConfig:
    return load_config()


def get_session(engine: Annotated[Engine, Depends(get_engine)]):
    with Session(engine, expire_on_commit=False) as session:
        yield session


# ---------------------------------------------------------------------------
# Callers
# ---------------------------------------------------------------------------
def get_optional_user(
    gravitas_session: Annotated[str | None, Cookie()] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> str | None:
    """Return the signed-in user's id, or ``None`` when there is no valid session."""
    token = gravitas_session or _bearer(authorization)
    if not token:
        return None
    try:
        claims = verify_claims(token, session_secret())
    except HTTPException:
        return None
    return claims.get("sub") or None


def get_current_user(
    gravitas_session: Annotated[str | None, Cookie()] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Validate the user session and return the user id. Raises 401 if invalid."""
    token = gravitas_session or _bearer(authorization)
    if not token:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unauthorized")
    claims = verify_claims(token, session_secret())
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unauthorized")
    return user_id


def get_current_admin(
    authorization: Annotated[str | None, Header()] = None,
    admin_token: Annotated[str | None, Cookie()] = None,
) -> dict:
    """Validate the admin token and return its claims. Raises 401 if invalid."""
    token = _bearer(authorization) or admin_token
    if not token:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unauthorized")
    claims = verify_claims(token, admin_secret())
    if claims.get("role") != ADMIN_ROLE:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unauthorized")
    return claims
