"""
gravitas.api.routes.following — The caller's followed communities and their events
====================================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gravitas.api.deps import get_current_user, get_session
from gravitas.database.models import utc_today
from gravitas.services import community_service, event_service

router = APIRouter(prefix="/following", tags=["following"])


@router.get("/communities")
def followed_communities(
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return community_service.followed_communities(session, user_id, utc_today())


@router.get("/events")
def followed_events(
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return event_service.followed_events(session, user_id, utc_today())
