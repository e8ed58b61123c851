"""
gravitas.services.discovery_service — Explore, Search & Home Feed
==================================================================

Read-only views across communities.  Only ``approved`` communities (and
their events and updates) are ever surfaced to people outside them; the
signed-in feed additionally includes communities the caller administers
or belongs to, whatever their review status.
"""

from __future__ import annotations

from datetime import date

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from gravitas.constants import FEED_LIMIT, FEED_SECTION_LIMIT, SEARCH_RESULT_LIMIT
from gravitas.database.models import (
    Community,
    CommunityAdmin,
    CommunityMember,
    CommunityStatus,
    Event,
    EventRsvp,
    Follow,
    RsvpStatus,
    Update,
)
from gravitas.services.community_service import member_counts, upcoming_event_counts


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _community_ref(c: Community) -> dict:
    return {"id": c.id, "name": c.name, "handle": c.handle, "avatar": c.avatar}


# ---------------------------------------------------------------------------
# Explore
# ---------------------------------------------------------------------------
def explore_communities(session: Session, viewer_id: str | None, today: date) -> list[dict]:
    """Approved communities, largest first, tagged with the viewer's relation."""
    communities = session.scalars(
        select(Community).where(Community.status == CommunityStatus.APPROVED)
    ).all()
    ids = [c.id for c in communities]
    members = member_counts(session, ids)
    upcoming = upcoming_event_counts(session, ids, today)

    admin_of: set[str] = set()
    member_of: set[str] = set()
    following: set[str] = set()
    if viewer_id:
        admin_of = set(session.scalars(
            select(CommunityAdmin.community_id).where(CommunityAdmin.user_id == viewer_id)
        ).all())
        member_of = set(session.scalars(
            select(CommunityMember.community_id).where(CommunityMember.user_id == viewer_id)
        ).all())
        following = set(session.scalars(
            select(Follow.community_id).where(Follow.user_id == viewer_id)
        ).all())

    def relation(cid: str) -> str:
        if cid in admin_of:
            return "admin"
        if cid in member_of:
            return "member"
        if cid in following:
            return "follower"
        return "none"

    rows = [
        {
            "id": c.id,
            "name": c.name,
            "handle": c.handle,
            "description": c.description,
            "avatar": c.avatar,
            "banner": c.banner,
            "location": c.location,
            "website": c.website,
            "membersCount": members.get(c.id, 0),
            "followersCount": c.followers_count or 0,
            "upcomingEventsCount": upcoming.get(c.id, 0),
            "isVerified": bool(c.is_verified),
            "status": c.status,
            "createdAt": _iso(c.created_at),
            "userRelation": relation(c.id),
        }
        for c in communities
    ]
    rows.sort(key=lambda r: (-r["membersCount"], -r["followersCount"], r["name"].casefold()))
    return rows


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------
def search(session: Session, query: str | None) -> list[dict]:
    """Case-insensitive substring match over events, then communities."""
    query = (query or "").strip()
    if not query:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Query parameter is required")

    events = session.scalars(
        select(Event)
        .join(Community, Community.id == Event.community_id)
        .where(
            Community.status == CommunityStatus.APPROVED,
            or_(
                Event.title.icontains(query, autoescape=True),
                Event.description.icontains(query, autoescape=True),
            ),
        )
        .order_by(Event.event_date, Event.id)
        .limit(SEARCH_RESULT_LIMIT)
    ).all()
    communities = session.scalars(
        select(Community)
        .where(
            Community.status == CommunityStatus.APPROVED,
            or_(
                Community.name.icontains(query, autoescape=True),
                Community.handle.icontains(query, autoescape=True),
                Community.description.icontains(query, autoescape=True),
            ),
        )
        .order_by(Community.name, Community.id)
        .limit(SEARCH_RESULT_LIMIT)
    ).all()

    return [
        {
            "id": e.id,
            "title": e.title,
            "type": "event",
            "url": f"/events/{e.id}",
            "communityId": e.community_id,
        }
        for e in events
    ] + [
        {
            "id": c.id,
            "title": c.name,
            "type": "community",
            "url": f"/communities/{c.handle}",
            "handle": c.handle,
        }
        for c in communities
    ]


# ---------------------------------------------------------------------------
# Home feed
# ---------------------------------------------------------------------------
def _event_item(e: Event, c: Community) -> dict:
    return {
        "id": e.id,
        "type": "event",
        "title": e.title,
        "content": e.description,
        "image": e.image,
        "eventDate": e.event_date.isoformat(),
        "eventTime": e.time,
        "community": _community_ref(c),
        "createdAt": e.created_at,
    }


def _update_item(u: Update, c: Community) -> dict:
    return {
        "id": u.id,
        "type": "update",
        "content": u.content,
        "images": u.images or [],
        "community": _community_ref(c),
        "createdAt": u.created_at,
    }


def _feed_community_ids(session: Session, user_id: str) -> list[str]:
    """Communities the user is linked to, minus followed ones that are not public."""
    linked = set(session.scalars(
        select(CommunityAdmin.community_id).where(CommunityAdmin.user_id == user_id)
    ).all()) | set(session.scalars(
        select(CommunityMember.community_id).where(CommunityMember.user_id == user_id)
    ).all())
    followed = set(session.scalars(
        select(Follow.community_id)
        .join(Community, Community.id == Follow.community_id)
        .where(Follow.user_id == user_id, Community.status == CommunityStatus.APPROVED)
    ).all())
    return list(linked | followed)


def feed(session: Session, viewer_id: str | None, today: date) -> list[dict]:
    """Recent upcoming events and updates, newest first.

    Signed in: from the viewer's own and followed communities.  Anonymous:
    the most attended upcoming events and the latest public updates.
    """
    if viewer_id:
        ids = _feed_community_ids(session, viewer_id)
        if not ids:
            return []
        events = session.execute(
            select(Event, Community)
            .join(Community, Community.id == Event.community_id)
            .where(Event.community_id.in_(ids), Event.event_date >= today)
            .order_by(Event.created_at.desc(), Event.id)
            .limit(FEED_SECTION_LIMIT)
        ).all()
        updates = session.execute(
            select(Update, Community)
            .join(Community, Community.id == Update.community_id)
            .where(Update.community_id.in_(ids))
            .order_by(Update.created_at.desc(), Update.id)
            .limit(FEED_SECTION_LIMIT)
        ).all()
    else:
        attending = (
            select(EventRsvp.event_id, func.count().label("n"))
            .where(EventRsvp.status == RsvpStatus.ATTENDING)
            .group_by(EventRsvp.event_id)
            .subquery()
        )
        events = session.execute(
            select(Event, Community)
            .join(Community, Community.id == Event.community_id)
            .outerjoin(attending, attending.c.event_id == Event.id)
            .where(Community.status == CommunityStatus.APPROVED, Event.event_date >= today)
            .order_by(func.coalesce(attending.c.n, 0).desc(), Event.event_date, Event.id)
            .limit(FEED_SECTION_LIMIT // 2)
        ).all()
        updates = session.execute(
            select(Update, Community)
            .join(Community, Community.id == Update.community_id)
            .where(Community.status == CommunityStatus.APPROVED)
            .order_by(Update.created_at.desc(), Update.id)
            .limit(FEED_SECTION_LIMIT // 2)
        ).all()

    items = [_event_item(e, c) for e, c in events] + [_update_item(u, c) for u, c in updates]
    items.sort(key=lambda i: i["createdAt"], reverse=True)
    items = items[:FEED_LIMIT]
    for item in items:
        item["createdAt"] = _iso(item["createdAt"])
    return items
