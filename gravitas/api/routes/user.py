"""
gravitas.api.routes.user — The caller's profile, events, communities & notifications
=====================================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from gravitas.api.deps import get_config, get_current_user, get_session
from gravitas.config import GravitasConfig
from gravitas.constants import is_valid_id
from gravitas.database.models import utc_today
from gravitas.services import (
    community_service,
    event_service,
    notification_service,
    profile_service,
)

router = APIRouter(prefix="/user", tags=["user"])


class ProfileUpdate(BaseModel):
    name: str | None = None
    bio: str | None = None
    location: str | None = None
    website: str | None = None
    image: str | None = None


# ---------------------------------------------------------------------------
# Profile & activity
# ---------------------------------------------------------------------------
@router.get("/profile")
def get_profile(
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return profile_service.get_profile(session, user_id)


@router.patch("/profile")
def update_profile(
    body: ProfileUpdate,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Only the fields present in the body change."""
    profile_service.update_profile(session, user_id, body.model_dump(exclude_unset=True))
    return {"success": True}


@router.get("/events")
def my_events(
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return event_service.user_events(session, user_id, utc_today())


@router.get("/communities")
def my_communities(
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return community_service.user_communities(session, user_id)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
@router.get("/notifications/list")
def list_notifications(
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
    cfg: GravitasConfig = Depends(get_config),
):
    return notification_service.list_recent(session, user_id, cfg.page_limit)


@router.post("/notifications/read-all")
def read_all(
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    count = notification_service.mark_all_read(session, user_id)
    return {"success": True, "count": count}


@router.post("/notifications/{notification_id}/read")
def read_one(
    notification_id: str,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if not is_valid_id(notification_id):
        raise HTTPException(400, "Invalid notification ID")
    if not notification_service.mark_read(session, user_id, notification_id):
        raise HTTPException(404, "Notification not found")
    return {"success": True, "id": notification_id}


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------
@router.get("/notifications")
def get_preferences(
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return notification_service.get_preferences(session, user_id)


@router.patch("/notifications")
def update_preferences(
    changes: dict[str, bool] = Body(...),
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    merged = notification_service.update_preferences(session, user_id, changes)
    if merged is None:
        raise HTTPException(404, "User not found")
    return merged
