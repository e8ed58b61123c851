"""
gravitas.services.admin_service — Community Review & Platform Stats
====================================================================

Site-admin operations.  A review follows the same pattern every time:
  1. Load the community (400 bad id, 404 unknown)
  2. Refuse anything that is not ``pending`` (409)
  3. Apply the transition and reviewer metadata
  4. Queue a notification to the creator
  5. Commit
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gravitas.constants import RECENT_ITEMS_LIMIT, is_valid_id
from gravitas.database.models import (
    Community,
    CommunityStatus,
    Event,
    NotificationType,
    User,
)
from gravitas.services import notification_service
from gravitas.services.community_service import creator_of

logger = logging.getLogger(__name__)


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _review_dict(session: Session, c: Community) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "handle": c.handle,
        "description": c.description,
        "avatar": c.avatar,
        "banner": c.banner,
        "creatorId": creator_of(session, c),
        "createdAt": _iso(c.created_at),
        "status": c.status,
    }


# ---------------------------------------------------------------------------
# Review queue
# ---------------------------------------------------------------------------
def pending_communities(session: Session) -> list[dict]:
    rows = session.scalars(
        select(Community)
        .where(Community.status == CommunityStatus.PENDING)
        .order_by(Community.created_at.desc(), Community.id)
    ).all()
    return [_review_dict(session, c) for c in rows]


def _load_pending(session: Session, community_id: str) -> Community:
    if not is_valid_id(community_id):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid community ID")
    community = session.get(Community, community_id)
    if community is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Community not found")
    if community.status != CommunityStatus.PENDING:
        raise HTTPException(
            status.HTTP_409_CONFLICT,
            f"Community has already been {community.status}",
        )
    return community


def approve_community(session: Session, community_id: str, reviewer: str) -> dict:
    community = _load_pending(session, community_id)
    community.status = CommunityStatus.APPROVED
    community.approved_at = datetime.now(UTC)
    community.reviewed_by = reviewer

    creator = creator_of(session, community)
    if creator:
        notification_service.notify(
            session,
            user_id=creator,
            type=NotificationType.COMMUNITY,
            title="Community Approved",
            description=f'Your community "{community.name}" has been approved and is now public.',
            link_url=f"/communities/{community.handle}",
            community_id=community.id,
        )
    session.commit()
    logger.info("Community %s approved by %s", community.handle, reviewer)
    return _review_dict(session, community)


def reject_community(
    session: Session, community_id: str, reviewer: str, reason: str | None
) -> dict:
    if not reason or not reason.strip():
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Rejection reason is required")
    community = _load_pending(session, community_id)
    community.status = CommunityStatus.REJECTED
    community.rejected_at = datetime.now(UTC)
    community.reviewed_by = reviewer
    community.rejection_reason = reason.strip()

    creator = creator_of(session, community)
    if creator:
        notification_service.notify(
            session,
            user_id=creator,
            type=NotificationType.COMMUNITY,
            title="Community Rejected",
            description=(
                f'Your community "{community.name}" has been rejected. '
                f"Reason: {community.rejection_reason}"
            ),
            link_url=f"/communities/{community.handle}",
            community_id=community.id,
        )
    session.commit()
    logger.info("Community %s rejected by %s", community.handle, reviewer)
    return _review_dict(session, community)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------
def community_stats(session: Session) -> dict:
    counts = dict(session.execute(
        select(Community.status, func.count()).group_by(Community.status)
    ).all())
    recent = session.scalars(
        select(Community)
        .order_by(Community.created_at.desc(), Community.id)
        .limit(RECENT_ITEMS_LIMIT)
    ).all()
    return {
        "totalCommunities": sum(counts.values()),
        "pendingCommunities": counts.get(CommunityStatus.PENDING, 0),
        "approvedCommunities": counts.get(CommunityStatus.APPROVED, 0),
        "rejectedCommunities": counts.get(CommunityStatus.REJECTED, 0),
        "recentCommunities": [_review_dict(session, c) for c in recent],
    }


def dashboard_stats(session: Session) -> dict:
    recent_users = session.scalars(
        select(User).order_by(User.created_at.desc(), User.id).limit(RECENT_ITEMS_LIMIT)
    ).all()
    return {
        "totalUsers": session.scalar(select(func.count()).select_from(User)) or 0,
        "totalCommunities": session.scalar(select(func.count()).select_from(Community)) or 0,
        "totalEvents": session.scalar(select(func.count()).select_from(Event)) or 0,
        "recentUsers": [
            {
                "id": u.id,
                "name": u.name,
                "email": u.email,
                "image": u.image,
                "createdAt": _iso(u.created_at),
            }
            for u in recent_users
        ],
    }
