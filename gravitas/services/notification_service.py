"""
gravitas.services.notification_service — Notification Feed & Preferences
=========================================================================

Notifications are created server-side (community review outcomes, new
members) and only ever mutated by their owner through *read* and
*read-all*.  Every query is scoped by the owning user id.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from gravitas.constants import DEFAULT_NOTIFICATION_SETTINGS, DEFAULT_NOTIFICATION_TYPE
from gravitas.database.models import Notification, User

logger = logging.getLogger(__name__)


def notification_dict(n: Notification) -> dict:
    return {
        "id": n.id,
        "title": n.title,
        "description": n.description,
        "createdAt": n.created_at.isoformat() if n.created_at else None,
        "read": bool(n.read),
        "type": n.type or DEFAULT_NOTIFICATION_TYPE,
        "linkUrl": n.link_url,
    }


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def notify(
    session: Session,
    *,
    user_id: str,
    title: str,
    description: str | None = None,
    type: str = DEFAULT_NOTIFICATION_TYPE,
    link_url: str | None = None,
    community_id: str | None = None,
    sender_id: str | None = None,
) -> Notification:
    """Queue a notification on *session*; the caller commits."""
    row = Notification(
        user_id=user_id,
        title=title,
        description=description,
        type=type,
        link_url=link_url,
        community_id=community_id,
        sender_id=sender_id,
        read=False,
    )
    session.add(row)
    return row


def mark_read(session: Session, user_id: str, notification_id: str) -> bool:
    """Mark one of *user_id*'s notifications read. False if no such notification."""
    result = session.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(read=True, updated_at=datetime.now(UTC))
    )
    session.commit()
    return result.rowcount > 0


def mark_all_read(session: Session, user_id: str) -> int:
    """Mark every unread notification of *user_id* read; returns how many changed."""
    result = session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True, updated_at=datetime.now(UTC))
    )
    session.commit()
    logger.debug("Marked %d notifications read for %s", result.rowcount, user_id)
    return result.rowcount


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def list_recent(session: Session, user_id: str, limit: int) -> list[dict]:
    """Newest-first, fixed-size page of *user_id*'s notifications."""
    rows = session.scalars(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id)
        .limit(limit)
    ).all()
    return [notification_dict(n) for n in rows]


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------
def get_preferences(session: Session, user_id: str) -> dict[str, bool]:
    stored = session.scalar(
        select(User.notification_settings).where(User.id == user_id)
    )
    return {**DEFAULT_NOTIFICATION_SETTINGS, **(stored or {})}


def update_preferences(
    session: Session, user_id: str, changes: dict[str, bool]
) -> dict[str, bool] | None:
    """Merge known keys of *changes* into the stored preferences.

    Returns the resulting preferences, or ``None`` if the user is gone.
    """
    user = session.get(User, user_id)
    if user is None:
        return None
    merged = {**DEFAULT_NOTIFICATION_SETTINGS, **(user.notification_settings or {})}
    for key, value in changes.items():
        if key in DEFAULT_NOTIFICATION_SETTINGS:
            merged[key] = bool(value)
    user.notification_settings = merged
    session.commit()
    return merged
