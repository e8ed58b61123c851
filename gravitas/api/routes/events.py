"""
gravitas.api.routes.events — Event detail & RSVPs
==================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from gravitas.api.deps import get_current_user, get_session
from gravitas.services import event_service

router = APIRouter(prefix="/events", tags=["events"])


class RsvpBody(BaseModel):
    status: str | None = None


@router.post("/{event_id}/rsvp")
def rsvp(
    event_id: str,
    body: RsvpBody,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Set ``attending`` / ``interested``, or clear with ``none``."""
    return event_service.set_rsvp(session, event_id, user_id, body.status)


@router.get("/{event_id}")
def get_event(
    event_id: str,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return event_service.get_event(session, event_id, user_id)
