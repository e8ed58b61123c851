"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Valid signing secrets for every test run.  They are read per request, so
# individual tests can still remove them with ``monkeypatch``.
# ---------------------------------------------------------------------------
TEST_SESSION_SECRET = "test-session-secret-for-pytest-" + "s" * 40
TEST_ADMIN_SECRET = "test-admin-secret-for-pytest-" + "a" * 40
os.environ["SESSION_SECRET"] = TEST_SESSION_SECRET
os.environ["ADMIN_JWT_SECRET"] = TEST_ADMIN_SECRET
os.environ.pop("SMTP_HOST", None)
os.environ.pop("TRUSTED_PROXIES", None)

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from gravitas.api.deps import ADMIN_ROLE, issue_token  # noqa: E402
from gravitas.config import GravitasConfig  # noqa: E402
from gravitas.database.engine import init_db  # noqa: E402
from gravitas.database.models import (  # noqa: E402
    Community,
    CommunityAdmin,
    CommunityMember,
    CommunityStatus,
    User,
    utcnow,
)
from gravitas.services.passwords import hash_password  # noqa: E402

TEST_PASSWORD = "correct-horse"


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all Gravitas tables.

    StaticPool keeps a single connection so every thread (``run_db``,
    the TestClient worker pool) sees the same database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    with Session(db_engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def config() -> GravitasConfig:
    return GravitasConfig(
        site_name="Gravitas",
        app_url="http://localhost:3000",
        admin_username="admin",
        admin_password="admin123",
    )


@pytest.fixture
def client(db_engine, config):
    """TestClient wired to the in-memory engine and the fixture config."""
    from fastapi.testclient import TestClient

    from gravitas.api.deps import get_config, get_engine
    from gravitas.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: config
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def sent_mail(monkeypatch):
    """Capture outgoing mail instead of talking to SMTP."""
    from gravitas.services import mail_service

    outbox: list[dict] = []

    async def fake_send(
        to_email: str, subject: str, body_html: str, *, sender_name: str = "Gravitas"
    ) -> None:
        outbox.append(
            {"to": to_email, "subject": subject, "body": body_html, "sender": sender_name}
        )

    monkeypatch.setattr(mail_service, "send_email", fake_send)
    return outbox


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def make_user(
    engine: Engine,
    name: str = "Ada",
    email: str | None = None,
    *,
    verified: bool = True,
    password: str = TEST_PASSWORD,
) -> str:
    with Session(engine) as session:
        user = User(
            name=name,
            email=email or f"{name.lower()}@example.com",
            password_hash=hash_password(password),
            email_verified=utcnow() if verified else None,
        )
        session.add(user)
        session.commit()
        return user.id


def make_community(
    engine: Engine,
    creator_id: str,
    handle: str = "astro",
    *,
    name: str | None = None,
    status: str = CommunityStatus.APPROVED,
    members: tuple[str, ...] = (),
    admins: tuple[str, ...] = (),
) -> str:
    """Insert a community with *creator_id* as admin and member."""
    with Session(engine) as session:
        community = Community(
            name=name or handle.title(),
            handle=handle,
            status=status,
            creator_id=creator_id,
        )
        for uid in (creator_id, *admins):
            community.admin_links.append(CommunityAdmin(user_id=uid))
        for uid in dict.fromkeys((creator_id, *admins, *members)):
            community.member_links.append(CommunityMember(user_id=uid))
        session.add(community)
        session.commit()
        return community.id


def session_token(user_id: str) -> str:
    return issue_token({"sub": user_id}, TEST_SESSION_SECRET, timedelta(hours=1))


def admin_token(username: str = "admin") -> str:
    return issue_token(
        {"sub": username, "username": username, "role": ADMIN_ROLE},
        TEST_ADMIN_SECRET,
        timedelta(hours=1),
    )


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def as_user(user_id: str) -> dict:
    return auth(session_token(user_id))


def as_admin() -> dict:
    return auth(admin_token())
