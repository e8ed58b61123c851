"""
gravitas.api.routes.discovery — Explore, search and the home feed
==================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gravitas.api.deps import get_current_user, get_optional_user, get_session
from gravitas.database.models import utc_today
from gravitas.services import discovery_service

router = APIRouter(tags=["discovery"])


@router.get("/explore/communities")
def explore_communities(
    viewer: str | None = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    return discovery_service.explore_communities(session, viewer, utc_today())


@router.get("/search")
def search(
    q: str | None = Query(None),
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return discovery_service.search(session, q)


@router.get("/feed")
def feed(
    viewer: str | None = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    return discovery_service.feed(session, viewer, utc_today())
