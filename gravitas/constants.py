"""
gravitas.constants — Shared Constants & Helpers
================================================

Single source of truth for validation patterns, field limits and default
payloads.  Import from here instead of duplicating in routes and services.
"""

from __future__ import annotations

import re
import uuid

# ---------------------------------------------------------------------------
# Community field limits
# ---------------------------------------------------------------------------
HANDLE_PATTERN = re.compile(r"^[a-z0-9-]+$")
HANDLE_MAX_LENGTH = 30
NAME_MAX_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 500

# Path segments that sit beside /communities/{handle} in the API and web app
RESERVED_HANDLES = frozenset({"create", "user"})

# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_MIN_LENGTH = 6

USER_NAME_MAX_LENGTH = 100
BIO_MAX_LENGTH = 500
LOCATION_MAX_LENGTH = 200
URL_MAX_LENGTH = 500

OTP_LENGTH = 6
OTP_TYPE_EMAIL_VERIFICATION = "email_verification"

# ---------------------------------------------------------------------------
# Cookies
# ---------------------------------------------------------------------------
SESSION_COOKIE = "gravitas_session"
ADMIN_COOKIE = "admin_token"

# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
DEFAULT_NOTIFICATION_TYPE = "system"

DEFAULT_NOTIFICATION_SETTINGS: dict[str, bool] = {
    "emailNotifications": True,
    "eventReminders": True,
    "communityUpdates": True,
    "newFollowers": False,
    "eventInvitations": True,
    "weeklyDigest": False,
}

RECENT_ITEMS_LIMIT = 5

# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------
SEARCH_RESULT_LIMIT = 5
FEED_SECTION_LIMIT = 10
FEED_LIMIT = 20


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def new_id() -> str:
    """Generate a primary key for a new row."""
    return str(uuid.uuid4())


def is_valid_id(value: str) -> bool:
    """True when *value* is a well-formed row identifier."""
    try:
        return str(uuid.UUID(value)) == value.lower()
    except (ValueError, AttributeError, TypeError):
        return False


def normalize_email(email: str) -> str:
    return email.strip().lower()
