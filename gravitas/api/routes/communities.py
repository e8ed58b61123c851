"""
gravitas.api.routes.communities — Community profiles, membership & content
===========================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from gravitas.api.deps import get_current_user, get_optional_user, get_session
from gravitas.services import community_service, event_service

router = APIRouter(prefix="/communities", tags=["communities"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class CommunityCreate(BaseModel):
    name: str | None = None
    handle: str | None = None
    description: str | None = None
    banner: str | None = None
    avatar: str | None = None
    website: str | None = None
    location: str | None = None


class MemberBody(BaseModel):
    userId: str | None = None


class EventCreate(BaseModel):
    title: str | None = None
    description: str | None = None
    date: str | None = None
    time: str | None = None
    location: str | None = None
    capacity: int | None = None
    image: str | None = None


class UpdateCreate(BaseModel):
    content: str | None = None
    images: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------
@router.post("")
def create_community(
    body: CommunityCreate,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return community_service.create_community(session, user_id, body.model_dump())


@router.get("/user")
def my_administered(
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return community_service.administered_communities(session, user_id)


@router.get("/{handle}")
def get_community(
    handle: str,
    viewer: str | None = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    return community_service.get_profile(session, handle, viewer)


@router.get("/{handle}/permissions")
def get_permissions(
    handle: str,
    viewer: str | None = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    """Community summary and the caller's capability flags."""
    return community_service.permissions(session, handle, viewer)


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------
@router.get("/{handle}/members")
def list_members(handle: str, session: Session = Depends(get_session)):
    return community_service.list_members(session, handle)


@router.post("/{handle}/join")
def add_member(
    handle: str,
    body: MemberBody,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    community_service.add_member(session, handle, user_id, body.userId)
    return {"success": True, "message": "Member added successfully"}


@router.delete("/{handle}/join")
def remove_member(
    handle: str,
    body: MemberBody | None = None,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    target = body.userId if body and body.userId else user_id
    community_service.remove_member(session, handle, user_id, target)
    return {"success": True, "message": "Member removed successfully"}


# ---------------------------------------------------------------------------
# Follows
# ---------------------------------------------------------------------------
@router.get("/{handle}/follow")
def follow_state(
    handle: str,
    viewer: str | None = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    return {"following": community_service.is_following(session, handle, viewer)}


@router.post("/{handle}/follow")
def toggle_follow(
    handle: str,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return {"following": community_service.toggle_follow(session, handle, user_id)}


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
@router.get("/{handle}/events")
def list_events(
    handle: str,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return event_service.list_events(session, handle)


@router.post("/{handle}/events")
def create_event(
    handle: str,
    body: EventCreate,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return event_service.create_event(session, handle, user_id, body.model_dump())


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------
@router.get("/{handle}/updates")
def list_updates(handle: str, session: Session = Depends(get_session)):
    return community_service.list_updates(session, handle)


@router.post("/{handle}/updates")
def post_update(
    handle: str,
    body: UpdateCreate,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return community_service.create_update(session, handle, user_id, body.content, body.images)
