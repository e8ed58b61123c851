"""
gravitas.services.profile_service — The caller's own profile
=============================================================

Profile fields plus activity counters derived on read:

* ``communitiesOwned``  — communities the user administers
* ``communitiesJoined`` — memberships that are not also admin links
* ``eventsCreated``     — events the user created
* ``eventsAttended``    — ``attending`` RSVPs
* ``followingCount``    — followed communities
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gravitas.constants import (
    BIO_MAX_LENGTH,
    LOCATION_MAX_LENGTH,
    URL_MAX_LENGTH,
    USER_NAME_MAX_LENGTH,
)
from gravitas.database.models import (
    CommunityAdmin,
    CommunityMember,
    Event,
    EventRsvp,
    Follow,
    RsvpStatus,
    User,
)

logger = logging.getLogger(__name__)

# Editable field → max length
EDITABLE_FIELDS: dict[str, int] = {
    "name": USER_NAME_MAX_LENGTH,
    "bio": BIO_MAX_LENGTH,
    "location": LOCATION_MAX_LENGTH,
    "website": URL_MAX_LENGTH,
    "image": URL_MAX_LENGTH,
}


def _count(session: Session, stmt) -> int:
    return session.scalar(select(func.count()).select_from(stmt.subquery())) or 0


def _stats(session: Session, user_id: str) -> dict[str, int]:
    admin_of = select(CommunityAdmin.community_id).where(CommunityAdmin.user_id == user_id)
    return {
        "communitiesOwned": _count(session, admin_of),
        "communitiesJoined": _count(
            session,
            select(CommunityMember.community_id).where(
                CommunityMember.user_id == user_id,
                CommunityMember.community_id.not_in(admin_of),
            ),
        ),
        "eventsCreated": _count(session, select(Event.id).where(Event.creator_id == user_id)),
        "eventsAttended": _count(
            session,
            select(EventRsvp.event_id).where(
                EventRsvp.user_id == user_id, EventRsvp.status == RsvpStatus.ATTENDING
            ),
        ),
        "followingCount": _count(
            session, select(Follow.community_id).where(Follow.user_id == user_id)
        ),
    }


def get_profile(session: Session, user_id: str) -> dict:
    user = session.get(User, user_id)
    if user is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found")
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "image": user.image,
        "bio": user.bio,
        "location": user.location,
        "website": user.website,
        "emailVerified": user.email_verified.isoformat() if user.email_verified else None,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "stats": _stats(session, user_id),
    }


def update_profile(session: Session, user_id: str, changes: dict) -> None:
    """Apply the editable keys present in *changes*; blank optional fields clear."""
    user = session.get(User, user_id)
    if user is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found")

    for field, max_length in EDITABLE_FIELDS.items():
        if field not in changes:
            continue
        value = (changes[field] or "").strip()
        if len(value) > max_length:
            raise HTTPException(
                status.HTTP_400_BAD_REQUEST,
                f"{field.capitalize()} must be at most {max_length} characters",
            )
        if field == "name":
            if not value:
                raise HTTPException(status.HTTP_400_BAD_REQUEST, "Name cannot be empty")
            user.name = value
        else:
            setattr(user, field, value or None)

    session.commit()
    logger.info("Profile updated for %s (%s)", user_id, ", ".join(sorted(changes)))
