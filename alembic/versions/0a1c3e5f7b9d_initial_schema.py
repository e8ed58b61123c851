"""Initial Gravitas schema

Revision ID: 0a1c3e5f7b9d
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0a1c3e5f7b9d"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Create accounts, communities, content and verification tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(254), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255)),
        sa.Column("image", sa.String(500)),
        _ts("email_verified"),
        sa.Column("notification_settings", sa.JSON()),
        _ts("created_at"),
        _ts("updated_at"),
    )

    op.create_table(
        "communities",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("handle", sa.String(30), nullable=False, unique=True),
        sa.Column("description", sa.String(500)),
        sa.Column("banner", sa.String(500)),
        sa.Column("avatar", sa.String(500)),
        sa.Column("website", sa.String(500)),
        sa.Column("location", sa.String(200)),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column(
            "creator_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL")
        ),
        sa.Column("is_verified", sa.Boolean(), server_default=sa.false()),
        sa.Column("followers_count", sa.Integer(), server_default="0"),
        sa.Column("rejection_reason", sa.Text()),
        sa.Column("reviewed_by", sa.String(100)),
        _ts("approved_at"),
        _ts("rejected_at"),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index(
        "ix_communities_status_created", "communities", ["status", "created_at"]
    )

    for table, stamp in (("community_admins", "added_at"), ("community_members", "joined_at")):
        op.create_table(
            table,
            sa.Column(
                "community_id",
                sa.String(36),
                sa.ForeignKey("communities.id", ondelete="CASCADE"),
                primary_key=True,
            ),
            sa.Column(
                "user_id",
                sa.String(36),
                sa.ForeignKey("users.id", ondelete="CASCADE"),
                primary_key=True,
            ),
            _ts(stamp),
        )
        op.create_index(f"ix_{table}_user", table, ["user_id"])

    op.create_table(
        "events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "community_id",
            sa.String(36),
            sa.ForeignKey("communities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "creator_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL")
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.String(10)),
        sa.Column("location", sa.String(200)),
        sa.Column("capacity", sa.Integer()),
        sa.Column("image", sa.String(500)),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_events_community_date", "events", ["community_id", "date"])

    op.create_table(
        "event_rsvps",
        sa.Column(
            "event_id",
            sa.String(36),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("status", sa.String(16), nullable=False),
        _ts("created_at"),
    )

    op.create_table(
        "updates",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "community_id",
            sa.String(36),
            sa.ForeignKey("communities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "author_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL")
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("images", sa.JSON()),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index(
        "ix_updates_community_created", "updates", ["community_id", "created_at"]
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("type", sa.String(32), server_default="system"),
        sa.Column("link_url", sa.String(500)),
        sa.Column("community_id", sa.String(36)),
        sa.Column("sender_id", sa.String(36)),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index(
        "ix_notifications_user_created", "notifications", ["user_id", "created_at"]
    )
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])

    op.create_table(
        "follows",
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "community_id",
            sa.String(36),
            sa.ForeignKey("communities.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        _ts("created_at"),
    )
    op.create_index("ix_follows_user_created", "follows", ["user_id", "created_at"])

    op.create_table(
        "verification_tokens",
        sa.Column("token", sa.String(128), primary_key=True),
        sa.Column("identifier", sa.String(254), nullable=False),
        _ts("expires", nullable=False),
    )
    op.create_index(
        "ix_verification_tokens_identifier", "verification_tokens", ["identifier"]
    )

    op.create_table(
        "email_otps",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(254), nullable=False),
        sa.Column("otp", sa.String(12), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("user_id", sa.String(36)),
        _ts("expires", nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_email_otps_email_type", "email_otps", ["email", "type"])

    op.create_table(
        "rate_limit_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("key", sa.String(200), nullable=False),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_rate_limit_key_ts", "rate_limit_events", ["key", "timestamp"])


def downgrade() -> None:
    """Drop every Gravitas table, dependents first."""
    for table in (
        "rate_limit_events",
        "email_otps",
        "verification_tokens",
        "follows",
        "notifications",
        "updates",
        "event_rsvps",
        "events",
        "community_members",
        "community_admins",
        "communities",
        "users",
    ):
        op.drop_table(table)
