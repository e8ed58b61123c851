"""
gravitas.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables (named after the collections the web client knows):
- users               — Accounts (credentials, profile, verification state, preferences)
- communities         — Community profiles with approval status
- community_admins    — Community ↔ User admin links
- community_members   — Community ↔ User membership links
- events              — Community events
- event_rsvps         — Attending / interested marks per user
- updates             — Community posts (author joined on read)
- notifications       — Per-user notification feed
- follows             — User ↔ Community follow links (unique per pair)
- verification_tokens — Single-use e-mail verification link tokens
- email_otps          — Single-use numeric one-time passwords
- rate_limit_events   — Sliding-window limiter journal
"""

from __future__ import annotations

import enum
from datetime import UTC, date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from gravitas.constants import new_id


def utcnow() -> datetime:
    return datetime.now(UTC)


def utc_today() -> date:
    return utcnow().date()


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Gravitas ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class CommunityStatus(enum.StrEnum):
    """Approval lifecycle: pending → approved | rejected (both terminal)."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CommunityRole(enum.StrEnum):
    """Caller's role in a community, as shown in role-annotated views."""
    ADMIN = "admin"
    MEMBER = "member"


class RsvpStatus(enum.StrEnum):
    ATTENDING = "attending"
    INTERESTED = "interested"


class NotificationType(enum.StrEnum):
    SYSTEM = "system"
    COMMUNITY = "community"
    COMMUNITY_JOINED = "community_joined"
    EVENT = "event"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False, unique=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), default=None)
    image: Mapped[str | None] = mapped_column(String(500), default=None)
    bio: Mapped[str | None] = mapped_column(String(500), default=None)
    location: Mapped[str | None] = mapped_column(String(200), default=None)
    website: Mapped[str | None] = mapped_column(String(500), default=None)
    email_verified: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    notification_settings: Mapped[dict | None] = mapped_column(JSON, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"


# ---------------------------------------------------------------------------
# Communities
# ---------------------------------------------------------------------------
class Community(Base):
    """A community profile.

    New communities start ``pending`` and only become public once a site
    admin approves them.  ``creator_id`` is kept separately from the admin
    links so a rejected community stays visible to whoever submitted it.
    """
    __tablename__ = "communities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    handle: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(String(500), default=None)
    banner: Mapped[str | None] = mapped_column(String(500), default=None)
    avatar: Mapped[str | None] = mapped_column(String(500), default=None)
    website: Mapped[str | None] = mapped_column(String(500), default=None)
    location: Mapped[str | None] = mapped_column(String(200), default=None)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=CommunityStatus.PENDING
    )
    creator_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    followers_count: Mapped[int] = mapped_column(Integer, default=0)
    rejection_reason: Mapped[str | None] = mapped_column(Text, default=None)
    reviewed_by: Mapped[str | None] = mapped_column(String(100), default=None)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    admin_links: Mapped[list[CommunityAdmin]] = relationship(
        cascade="all, delete-orphan"
    )
    member_links: Mapped[list[CommunityMember]] = relationship(
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_communities_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Community id={self.id} handle={self.handle!r} status={self.status}>"


class CommunityAdmin(Base):
    __tablename__ = "community_admins"

    community_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("communities.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_community_admins_user", "user_id"),
    )


class CommunityMember(Base):
    __tablename__ = "community_members"

    community_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("communities.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_community_members_user", "user_id"),
    )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    community_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("communities.id", ondelete="CASCADE"), nullable=False
    )
    creator_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    event_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    time: Mapped[str | None] = mapped_column(String(10), default=None)  # "HH:MM"
    location: Mapped[str | None] = mapped_column(String(200), default=None)
    capacity: Mapped[int | None] = mapped_column(Integer, default=None)
    image: Mapped[str | None] = mapped_column(String(500), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    rsvps: Mapped[list[EventRsvp]] = relationship(cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_events_community_date", "community_id", "date"),
    )

    def __repr__(self) -> str:
        return f"<Event id={self.id} title={self.title!r} date={self.event_date}>"


class EventRsvp(Base):
    __tablename__ = "event_rsvps"

    event_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("events.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


# ---------------------------------------------------------------------------
# Updates — community posts
# ---------------------------------------------------------------------------
class Update(Base):
    """A community post.

    Only ``author_id`` is stored; author name and image are joined from
    ``users`` when listing.
    """
    __tablename__ = "updates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    community_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("communities.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    images: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_updates_community_created", "community_id", "created_at"),
    )


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    type: Mapped[str | None] = mapped_column(String(32), default=NotificationType.SYSTEM)
    link_url: Mapped[str | None] = mapped_column(String(500), default=None)
    community_id: Mapped[str | None] = mapped_column(String(36), default=None)
    sender_id: Mapped[str | None] = mapped_column(String(36), default=None)
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
        Index("ix_notifications_user_read", "user_id", "read"),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} user={self.user_id} read={self.read}>"


# ---------------------------------------------------------------------------
# Follows
# ---------------------------------------------------------------------------
class Follow(Base):
    __tablename__ = "follows"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    community_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("communities.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_follows_user_created", "user_id", "created_at"),
    )


# ---------------------------------------------------------------------------
# Verification — link tokens and OTPs (single use, hard-deleted on consume)
# ---------------------------------------------------------------------------
class VerificationToken(Base):
    __tablename__ = "verification_tokens"

    token: Mapped[str] = mapped_column(String(128), primary_key=True)
    identifier: Mapped[str] = mapped_column(String(254), nullable=False)  # e-mail
    expires: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_verification_tokens_identifier", "identifier"),
    )


class EmailOtp(Base):
    __tablename__ = "email_otps"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(254), nullable=False)
    otp: Mapped[str] = mapped_column(String(12), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(36), default=None)
    expires: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_email_otps_email_type", "email", "type"),
    )


# ---------------------------------------------------------------------------
# RateLimitEvent — durable journal for the sliding-window limiter
# ---------------------------------------------------------------------------
class RateLimitEvent(Base):
    __tablename__ = "rate_limit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(200), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_rate_limit_key_ts", "key", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<RateLimitEvent key={self.key!r} ts={self.timestamp}>"
