"""
gravitas.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for site identity, admin credentials and the tuning
knobs of the verification and session flows.  Secrets (JWT signing keys,
SMTP password, database URL) are **not** stored here; they come from the
environment (see :mod:`gravitas.api.deps` and
:mod:`gravitas.services.mail_service`).

Usage::

    from gravitas.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.site_name)         # "Gravitas"
    print(cfg.otp_ttl_minutes)   # 10
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class GravitasConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    site_name: str
    app_url: str  # Public base URL used in verification links / redirects

    # Admin console credentials
    admin_username: str
    admin_password: str

    # Verification flows
    otp_ttl_minutes: int = 10
    otp_resend_cooldown_seconds: int = 60
    verification_token_ttl_hours: int = 24

    # Sessions
    session_ttl_days: int = 30
    admin_token_ttl_hours: int = 24

    # Feeds
    page_limit: int = 20


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path | None = None) -> GravitasConfig:
    """Read *path* and return a :class:`GravitasConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.  Defaults to the
        ``GRAVITAS_CONFIG`` env var, then ``config.yaml`` in the current
        working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    if path is None:
        path = os.getenv("GRAVITAS_CONFIG", "config.yaml")
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return GravitasConfig(
        site_name=raw["site_name"],
        app_url=str(raw["app_url"]).rstrip("/"),
        admin_username=raw["admin_username"],
        admin_password=str(raw["admin_password"]),
        otp_ttl_minutes=int(raw.get("otp_ttl_minutes", 10)),
        otp_resend_cooldown_seconds=int(raw.get("otp_resend_cooldown_seconds", 60)),
        verification_token_ttl_hours=int(raw.get("verification_token_ttl_hours", 24)),
        session_ttl_days=int(raw.get("session_ttl_days", 30)),
        admin_token_ttl_hours=int(raw.get("admin_token_ttl_hours", 24)),
        page_limit=int(raw.get("page_limit", 20)),
    )
