"""
gravitas.services.event_service — Community Events & RSVPs
===========================================================

Attendance lives in ``event_rsvps`` (one row per user and event); the
``attendees`` / ``interested`` lists in responses are rebuilt from it.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from gravitas.constants import is_valid_id
from gravitas.database.models import Community, Event, EventRsvp, Follow, RsvpStatus
from gravitas.services.community_service import (
    can_view,
    is_admin,
    is_member,
    require_by_handle,
)

logger = logging.getLogger(__name__)

RSVP_NONE = "none"


def _rsvp_lists(session: Session, event_ids: list[str]) -> dict[str, dict[str, list[str]]]:
    lists: dict[str, dict[str, list[str]]] = defaultdict(
        lambda: {RsvpStatus.ATTENDING: [], RsvpStatus.INTERESTED: []}
    )
    if not event_ids:
        return lists
    rows = session.execute(
        select(EventRsvp.event_id, EventRsvp.user_id, EventRsvp.status)
        .where(EventRsvp.event_id.in_(event_ids))
        .order_by(EventRsvp.created_at, EventRsvp.user_id)
    ).all()
    for event_id, user_id, rsvp in rows:
        if rsvp in (RsvpStatus.ATTENDING, RsvpStatus.INTERESTED):
            lists[event_id][rsvp].append(user_id)
    return lists


def event_dict(e: Event, attendees: list[str], interested: list[str]) -> dict:
    return {
        "id": e.id,
        "title": e.title,
        "description": e.description,
        "date": e.event_date.isoformat(),
        "time": e.time,
        "location": e.location,
        "capacity": e.capacity,
        "image": e.image,
        "attendees": attendees,
        "interested": interested,
    }


# ---------------------------------------------------------------------------
# Community events
# ---------------------------------------------------------------------------
def list_events(session: Session, handle: str) -> list[dict]:
    community = require_by_handle(session, handle)
    events = session.scalars(
        select(Event)
        .where(Event.community_id == community.id)
        .order_by(Event.event_date, Event.time, Event.id)
    ).all()
    rsvps = _rsvp_lists(session, [e.id for e in events])
    return [
        event_dict(
            e,
            rsvps[e.id][RsvpStatus.ATTENDING],
            rsvps[e.id][RsvpStatus.INTERESTED],
        )
        for e in events
    ]


def _parse_date(value) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid event date")


def create_event(session: Session, handle: str, user_id: str, data: dict) -> dict:
    community = require_by_handle(session, handle)
    if not (is_member(session, community.id, user_id) or is_admin(session, community.id, user_id)):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not authorized to create events")

    title = (data.get("title") or "").strip()
    if not title or not data.get("date"):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Title and date are required")
    capacity = data.get("capacity")
    if capacity is not None:
        try:
            capacity = int(capacity)
        except (TypeError, ValueError):
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Capacity must be a number")

    event = Event(
        community_id=community.id,
        creator_id=user_id,
        title=title,
        description=data.get("description"),
        event_date=_parse_date(data["date"]),
        time=data.get("time"),
        location=data.get("location"),
        capacity=capacity,
        image=data.get("image"),
    )
    session.add(event)
    session.commit()
    logger.info("Event %s created in %s by %s", event.id, handle, user_id)
    return event_dict(event, [], [])


# ---------------------------------------------------------------------------
# Event detail
# ---------------------------------------------------------------------------
def get_event(session: Session, event_id: str, viewer_id: str | None) -> dict:
    """One event with its community; hidden with its community when unapproved."""
    if not is_valid_id(event_id):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid event ID")
    event = session.get(Event, event_id)
    if event is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Event not found")
    community = session.get(Community, event.community_id)
    if community is None or not can_view(session, community, viewer_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Event not found")

    lists = _rsvp_lists(session, [event.id])[event.id]
    item = event_dict(event, lists[RsvpStatus.ATTENDING], lists[RsvpStatus.INTERESTED])
    item["community"] = {
        "id": community.id,
        "name": community.name,
        "handle": community.handle,
        "avatar": community.avatar,
    }
    return item


# ---------------------------------------------------------------------------
# RSVP
# ---------------------------------------------------------------------------
def set_rsvp(session: Session, event_id: str, user_id: str, choice: str | None) -> dict:
    """Set, change or clear (``"none"``) the caller's RSVP; returns the counts."""
    if not is_valid_id(event_id):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid event ID")
    if choice not in (RsvpStatus.ATTENDING, RsvpStatus.INTERESTED, RSVP_NONE):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid RSVP status")
    if session.get(Event, event_id) is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Event not found")

    existing = session.get(EventRsvp, (event_id, user_id))
    if choice == RSVP_NONE:
        if existing is not None:
            session.delete(existing)
    elif existing is None:
        session.add(EventRsvp(event_id=event_id, user_id=user_id, status=choice))
    else:
        existing.status = choice
    session.commit()

    lists = _rsvp_lists(session, [event_id])[event_id]
    return {
        "attendees": len(lists[RsvpStatus.ATTENDING]),
        "interested": len(lists[RsvpStatus.INTERESTED]),
    }


# ---------------------------------------------------------------------------
# Following feed
# ---------------------------------------------------------------------------
def followed_events(session: Session, user_id: str, today: date) -> list[dict]:
    """Upcoming events of every community *user_id* follows, soonest first."""
    rows = session.execute(
        select(Event, Community)
        .join(Community, Community.id == Event.community_id)
        .join(Follow, Follow.community_id == Event.community_id)
        .where(Follow.user_id == user_id, Event.event_date >= today)
        .order_by(Event.event_date, Event.time, Event.id)
    ).all()
    rsvps = _rsvp_lists(session, [e.id for e, _ in rows])

    feed = []
    for event, community in rows:
        attendees = rsvps[event.id][RsvpStatus.ATTENDING]
        item = event_dict(event, attendees, rsvps[event.id][RsvpStatus.INTERESTED])
        item["community"] = {
            "id": community.id,
            "name": community.name,
            "handle": community.handle,
            "avatar": community.avatar,
        }
        item["attendeesCount"] = len(attendees)
        item["isAttending"] = user_id in attendees
        feed.append(item)
    return feed


# ---------------------------------------------------------------------------
# The caller's events
# ---------------------------------------------------------------------------
def user_events(session: Session, user_id: str, today: date) -> list[dict]:
    """Events *user_id* is attending, by date, each tagged ``upcoming`` or ``past``."""
    rows = session.execute(
        select(Event, Community)
        .join(Community, Community.id == Event.community_id)
        .join(EventRsvp, EventRsvp.event_id == Event.id)
        .where(EventRsvp.user_id == user_id, EventRsvp.status == RsvpStatus.ATTENDING)
        .order_by(Event.event_date, Event.time, Event.id)
    ).all()
    return [
        {
            "id": event.id,
            "title": event.title,
            "description": event.description,
            "date": event.event_date.isoformat(),
            "time": event.time,
            "location": event.location,
            "image": event.image,
            "community": {
                "id": community.id,
                "name": community.name,
                "handle": community.handle,
                "avatar": community.avatar,
            },
            "status": "upcoming" if event.event_date >= today else "past",
            "userRegistered": True,
        }
        for event, community in rows
    ]
