"""
gravitas.services.community_service — Community Views, Membership & Follows
============================================================================

Every relational view is composed from a few flat queries plus Python:

1. fetch the driving rows (follows, admin/member links, …);
2. fetch the communities they point at in one ``IN`` query;
3. fetch derived counts (members, upcoming events) grouped by community;
4. merge, annotate and sort in Python.

Reads take an open :class:`Session`; writes commit on it before returning.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date

from fastapi import HTTPException, status
from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gravitas.constants import (
    DESCRIPTION_MAX_LENGTH,
    HANDLE_MAX_LENGTH,
    HANDLE_PATTERN,
    NAME_MAX_LENGTH,
    RESERVED_HANDLES,
)
from gravitas.database.models import (
    Community,
    CommunityAdmin,
    CommunityMember,
    CommunityRole,
    CommunityStatus,
    Event,
    Follow,
    NotificationType,
    Update,
    User,
)
from gravitas.services import notification_service

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------
def get_by_handle(session: Session, handle: str) -> Community | None:
    return session.scalar(select(Community).where(Community.handle == handle))


def require_by_handle(session: Session, handle: str) -> Community:
    community = get_by_handle(session, handle)
    if community is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Community not found")
    return community


def admin_ids(session: Session, community_id: str) -> list[str]:
    return list(session.scalars(
        select(CommunityAdmin.user_id)
        .where(CommunityAdmin.community_id == community_id)
        .order_by(CommunityAdmin.added_at, CommunityAdmin.user_id)
    ).all())


def member_ids(session: Session, community_id: str) -> list[str]:
    return list(session.scalars(
        select(CommunityMember.user_id)
        .where(CommunityMember.community_id == community_id)
        .order_by(CommunityMember.joined_at, CommunityMember.user_id)
    ).all())


def is_admin(session: Session, community_id: str, user_id: str | None) -> bool:
    if not user_id:
        return False
    return session.get(CommunityAdmin, (community_id, user_id)) is not None


def is_member(session: Session, community_id: str, user_id: str | None) -> bool:
    if not user_id:
        return False
    return session.get(CommunityMember, (community_id, user_id)) is not None


def member_counts(session: Session, community_ids: Iterable[str]) -> dict[str, int]:
    ids = list(community_ids)
    if not ids:
        return {}
    rows = session.execute(
        select(CommunityMember.community_id, func.count())
        .where(CommunityMember.community_id.in_(ids))
        .group_by(CommunityMember.community_id)
    ).all()
    return {cid: cnt for cid, cnt in rows}


def upcoming_event_counts(
    session: Session, community_ids: Iterable[str], today: date
) -> dict[str, int]:
    ids = list(community_ids)
    if not ids:
        return {}
    rows = session.execute(
        select(Event.community_id, func.count())
        .where(Event.community_id.in_(ids), Event.event_date >= today)
        .group_by(Event.community_id)
    ).all()
    return {cid: cnt for cid, cnt in rows}


def creator_of(session: Session, community: Community) -> str | None:
    """Creator id, falling back to the earliest admin for legacy rows."""
    if community.creator_id:
        return community.creator_id
    admins = admin_ids(session, community.id)
    return admins[0] if admins else None


# ---------------------------------------------------------------------------
# Shapers
# ---------------------------------------------------------------------------
def _iso(value) -> str | None:
    return value.isoformat() if value else None


def community_dict(c: Community, *, admins: list[str], members: list[str]) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "handle": c.handle,
        "description": c.description,
        "banner": c.banner,
        "avatar": c.avatar,
        "website": c.website,
        "location": c.location,
        "members": members,
        "admins": admins,
        "isVerified": bool(c.is_verified),
        "status": c.status,
        "followersCount": c.followers_count or 0,
        "createdAt": _iso(c.created_at),
    }


# ---------------------------------------------------------------------------
# Community profile
# ---------------------------------------------------------------------------
def _validate_profile(data: dict) -> None:
    name = (data.get("name") or "").strip()
    handle = (data.get("handle") or "").strip()
    if not name or not handle:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Name and handle are required")
    if len(name) > NAME_MAX_LENGTH:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            f"Name must be at most {NAME_MAX_LENGTH} characters",
        )
    if len(handle) > HANDLE_MAX_LENGTH or not HANDLE_PATTERN.match(handle):
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            "Handle may only contain lowercase letters, numbers and hyphens "
            f"(max {HANDLE_MAX_LENGTH} characters)",
        )
    if handle in RESERVED_HANDLES:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "This handle is reserved")
    if len(data.get("description") or "") > DESCRIPTION_MAX_LENGTH:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters",
        )


def create_community(session: Session, user_id: str, data: dict) -> dict:
    """Create a ``pending`` community with the caller as admin and member."""
    _validate_profile(data)
    handle = data["handle"].strip()
    if get_by_handle(session, handle) is not None:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Community handle already exists")

    community = Community(
        name=data["name"].strip(),
        handle=handle,
        description=data.get("description"),
        banner=data.get("banner"),
        avatar=data.get("avatar"),
        website=data.get("website"),
        location=data.get("location"),
        status=CommunityStatus.PENDING,
        creator_id=user_id,
    )
    community.admin_links.append(CommunityAdmin(user_id=user_id))
    community.member_links.append(CommunityMember(user_id=user_id))
    session.add(community)
    session.commit()
    logger.info("Community %s created by %s (pending review)", handle, user_id)
    return community_dict(community, admins=[user_id], members=[user_id])


def can_view(session: Session, community: Community, viewer_id: str | None) -> bool:
    """Approved communities are public; others only to their admins and creator."""
    if community.status == CommunityStatus.APPROVED:
        return True
    if viewer_id is None:
        return False
    return viewer_id == community.creator_id or is_admin(session, community.id, viewer_id)


def get_profile(session: Session, handle: str, viewer_id: str | None) -> dict:
    """Public profile. Unapproved communities are visible to their admins and creator only."""
    community = require_by_handle(session, handle)
    if not can_view(session, community, viewer_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Community not found")
    return community_dict(
        community,
        admins=admin_ids(session, community.id),
        members=member_ids(session, community.id),
    )


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------
def list_members(session: Session, handle: str) -> list[dict]:
    community = require_by_handle(session, handle)
    admins = set(admin_ids(session, community.id))
    users = session.scalars(
        select(User)
        .join(CommunityMember, CommunityMember.user_id == User.id)
        .where(CommunityMember.community_id == community.id)
        .order_by(CommunityMember.joined_at, User.id)
    ).all()
    return [
        {
            "id": u.id,
            "name": u.name,
            "image": u.image,
            "email": u.email,
            "isAdmin": u.id in admins,
        }
        for u in users
    ]


def add_member(session: Session, handle: str, actor_id: str, user_id: str | None) -> None:
    """Admin adds *user_id* as a member; other admins are notified."""
    community = require_by_handle(session, handle)
    admins = admin_ids(session, community.id)
    if actor_id not in admins:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Only admins can add members")
    if not user_id:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "userId is required")
    if is_member(session, community.id, user_id):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "User is already a member")
    new_member = session.get(User, user_id)
    if new_member is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found")

    session.add(CommunityMember(community_id=community.id, user_id=user_id))
    session.commit()

    # Notifying is best effort; the membership is already committed.
    try:
        for admin_id in admins:
            if admin_id == actor_id:
                continue
            notification_service.notify(
                session,
                user_id=admin_id,
                type=NotificationType.COMMUNITY_JOINED,
                title=f"New Member in {community.name}",
                description=f"{new_member.name} joined {community.name}",
                link_url=f"/communities/{community.handle}",
                community_id=community.id,
                sender_id=actor_id,
            )
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error sending community join notifications for %s", handle)


def remove_member(session: Session, handle: str, actor_id: str, user_id: str | None) -> None:
    """Admins may remove anyone; members may only remove themselves."""
    community = require_by_handle(session, handle)
    if not user_id:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "userId is required")
    if user_id != actor_id and not is_admin(session, community.id, actor_id):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not authorized to remove members")

    session.execute(
        delete(CommunityMember).where(
            CommunityMember.community_id == community.id,
            CommunityMember.user_id == user_id,
        )
    )
    unfollowed = session.execute(
        delete(Follow).where(Follow.community_id == community.id, Follow.user_id == user_id)
    )
    if unfollowed.rowcount:
        _bump_followers(session, community.id, -unfollowed.rowcount)
    session.commit()


# ---------------------------------------------------------------------------
# Follows
# ---------------------------------------------------------------------------
def _bump_followers(session: Session, community_id: str, delta: int) -> None:
    session.execute(
        update(Community)
        .where(Community.id == community_id)
        .values(followers_count=case(
            (Community.followers_count + delta < 0, 0),
            else_=Community.followers_count + delta,
        ))
    )


def is_following(session: Session, handle: str, user_id: str | None) -> bool:
    community = require_by_handle(session, handle)
    if not user_id:
        return False
    return session.get(Follow, (user_id, community.id)) is not None


def toggle_follow(session: Session, handle: str, user_id: str) -> bool:
    """Follow or unfollow; returns the new following state."""
    community = require_by_handle(session, handle)
    existing = session.get(Follow, (user_id, community.id))
    if existing is not None:
        session.delete(existing)
        _bump_followers(session, community.id, -1)
        following = False
    else:
        session.add(Follow(user_id=user_id, community_id=community.id))
        _bump_followers(session, community.id, 1)
        following = True
    session.commit()
    return following


def followed_communities(session: Session, user_id: str, today: date) -> list[dict]:
    """Followed communities with derived counts, most recently followed first."""
    follows = session.execute(
        select(Follow.community_id, Follow.created_at).where(Follow.user_id == user_id)
    ).all()
    followed_at = {cid: ts for cid, ts in follows}
    if not followed_at:
        return []

    communities = session.scalars(
        select(Community).where(Community.id.in_(list(followed_at)))
    ).all()
    members = member_counts(session, followed_at)
    upcoming = upcoming_event_counts(session, followed_at, today)

    rows = [
        {
            "id": c.id,
            "name": c.name,
            "handle": c.handle,
            "description": c.description,
            "avatar": c.avatar,
            "banner": c.banner,
            "isVerified": bool(c.is_verified),
            "followersCount": c.followers_count or 0,
            "membersCount": members.get(c.id, 0),
            "upcomingEventsCount": upcoming.get(c.id, 0),
            "followedAt": followed_at[c.id],
        }
        for c in communities
    ]
    rows.sort(key=lambda r: r["followedAt"], reverse=True)
    for r in rows:
        r["followedAt"] = _iso(r["followedAt"])
    return rows


# ---------------------------------------------------------------------------
# Permissions — capability flags derived from the viewer's role
# ---------------------------------------------------------------------------
def permissions(session: Session, handle: str, viewer_id: str | None) -> dict:
    """Community summary plus what *viewer_id* may do there.

    Flags mirror the checks the write operations enforce: admins manage
    members and post updates, members and admins create events, and only
    signed-in outsiders who do not follow yet are offered a follow.
    """
    community = require_by_handle(session, handle)
    if not can_view(session, community, viewer_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Community not found")

    admin = is_admin(session, community.id, viewer_id)
    member = is_member(session, community.id, viewer_id)
    follower = bool(viewer_id) and session.get(Follow, (viewer_id, community.id)) is not None
    flags = {
        "isVisitor": viewer_id is None,
        "isUser": viewer_id is not None,
        "isMember": member,
        "isFollower": follower,
        "isAdmin": admin,
        "canCreateEvents": admin or member,
        "canCreateUpdates": admin,
        "canManageMembers": admin,
        "canViewMembers": True,
        "canFollow": viewer_id is not None and not (admin or member or follower),
    }
    return {
        "community": {
            "id": community.id,
            "name": community.name,
            "handle": community.handle,
            "description": community.description,
            "banner": community.banner,
            "avatar": community.avatar,
            "website": community.website,
            "location": community.location,
            "membersCount": member_counts(session, [community.id]).get(community.id, 0),
            "followersCount": community.followers_count or 0,
            "isVerified": bool(community.is_verified),
            "createdAt": _iso(community.created_at),
        },
        "userPermissions": flags,
    }


# ---------------------------------------------------------------------------
# "My communities" views
# ---------------------------------------------------------------------------
def administered_communities(session: Session, user_id: str) -> list[dict]:
    """Communities where *user_id* is an admin."""
    communities = session.scalars(
        select(Community)
        .join(CommunityAdmin, CommunityAdmin.community_id == Community.id)
        .where(CommunityAdmin.user_id == user_id)
        .order_by(Community.name)
    ).all()
    members = member_counts(session, [c.id for c in communities])
    return [
        {
            "id": c.id,
            "name": c.name,
            "handle": c.handle,
            "avatar": c.avatar,
            "description": c.description,
            "membersCount": members.get(c.id, 0),
            "isVerified": bool(c.is_verified),
        }
        for c in communities
    ]


def user_communities(session: Session, user_id: str) -> list[dict]:
    """Role-annotated communities of *user_id*: admins first, then by name.

    A ``rejected`` community is listed only for its creator.
    """
    admin_of = set(session.scalars(
        select(CommunityAdmin.community_id).where(CommunityAdmin.user_id == user_id)
    ).all())
    member_of = set(session.scalars(
        select(CommunityMember.community_id).where(CommunityMember.user_id == user_id)
    ).all())

    communities = session.scalars(
        select(Community).where(
            or_(
                Community.id.in_(list(admin_of | member_of)),
                (Community.status == CommunityStatus.REJECTED)
                & (Community.creator_id == user_id),
            )
        )
    ).all()
    communities = [
        c for c in communities
        if c.status != CommunityStatus.REJECTED or c.creator_id == user_id
    ]
    members = member_counts(session, [c.id for c in communities])

    rows = [
        {
            "id": c.id,
            "name": c.name,
            "handle": c.handle,
            "description": c.description,
            "avatar": c.avatar,
            "membersCount": members.get(c.id, 0),
            "isVerified": bool(c.is_verified),
            "status": c.status,
            "userRole": CommunityRole.ADMIN if c.id in admin_of else CommunityRole.MEMBER,
        }
        for c in communities
    ]
    rows.sort(key=lambda r: (r["userRole"] != CommunityRole.ADMIN, r["name"].casefold(), r["id"]))
    return rows


# ---------------------------------------------------------------------------
# Updates — community posts, author joined on read
# ---------------------------------------------------------------------------
def list_updates(session: Session, handle: str) -> list[dict]:
    community = require_by_handle(session, handle)
    rows = session.execute(
        select(Update, User)
        .outerjoin(User, Update.author_id == User.id)
        .where(Update.community_id == community.id)
        .order_by(Update.created_at.desc(), Update.id)
    ).all()
    return [
        {
            "id": u.id,
            "content": u.content,
            "images": u.images or [],
            "createdAt": _iso(u.created_at),
            "updatedAt": _iso(u.updated_at),
            "author": {
                "id": u.author_id,
                "name": author.name if author else None,
                "image": author.image if author else None,
            },
        }
        for u, author in rows
    ]


def create_update(
    session: Session, handle: str, author_id: str, content: str | None, images: list[str]
) -> dict:
    community = require_by_handle(session, handle)
    if not is_admin(session, community.id, author_id):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Only admins can post updates")
    if not content or not content.strip():
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Content is required")

    row = Update(
        community_id=community.id,
        author_id=author_id,
        content=content.strip(),
        images=list(images),
    )
    session.add(row)
    session.commit()
    author = session.get(User, author_id)
    return {
        "id": row.id,
        "content": row.content,
        "images": row.images,
        "createdAt": _iso(row.created_at),
        "updatedAt": _iso(row.updated_at),
        "author": {
            "id": author_id,
            "name": author.name if author else None,
            "image": author.image if author else None,
        },
    }
