"""
tests/test_admin_routes.py — Admin Console API
===============================================
Sign-in, the community review queue (pending → approved | rejected,
both terminal), platform stats and the log monitor.
"""

from __future__ import annotations

import logging

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from conftest import as_admin, as_user, make_community, make_user
from gravitas.database.models import Community, CommunityStatus, Event, Notification


# ===========================================================================
# Sign-in
# ===========================================================================
class TestAdminLogin:
    def test_login_success_sets_cookie(self, client):
        resp = client.post("/api/admin/login", json={"username": "admin", "password": "admin123"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["role"] == "admin"
        assert body["message"] == "Login successful"
        assert body["token"]
        assert "admin_token" in resp.cookies

    def test_token_from_login_passes_check_auth(self, client):
        token = client.post(
            "/api/admin/login", json={"username": "admin", "password": "admin123"}
        ).json()["token"]
        resp = client.get("/api/admin/check-auth", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json() == {"isAdmin": True}

    @pytest.mark.parametrize("username,password", [
        ("admin", "wrong"),
        ("root", "admin123"),
        ("", ""),
    ])
    def test_bad_credentials(self, client, username, password):
        resp = client.post("/api/admin/login", json={"username": username, "password": password})
        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid username or password"}

    def test_logout(self, client):
        resp = client.post("/api/admin/logout")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Admin logged out successfully"}

    def test_check_auth_without_token(self, client):
        assert client.get("/api/admin/check-auth").status_code == 401


class TestAdminGuards:
    ADMIN_GET_ENDPOINTS = [
        "/api/admin/communities/pending",
        "/api/admin/communities/stats",
        "/api/admin/dashboard/stats",
        "/api/admin/monitoring",
    ]

    @pytest.mark.parametrize("endpoint", ADMIN_GET_ENDPOINTS)
    def test_rejects_no_auth(self, client, endpoint):
        assert client.get(endpoint).status_code == 401

    @pytest.mark.parametrize("endpoint", ADMIN_GET_ENDPOINTS)
    def test_rejects_user_session(self, client, db_engine, endpoint):
        uid = make_user(db_engine)
        assert client.get(endpoint, headers=as_user(uid)).status_code == 401


# ===========================================================================
# Review queue
# ===========================================================================
class TestReview:
    @pytest.fixture
    def pending(self, db_engine):
        creator = make_user(db_engine, "Creator")
        cid = make_community(db_engine, creator, "rockets", name="Rockets",
                             status=CommunityStatus.PENDING)
        return creator, cid

    def _notifications(self, engine, user_id):
        with Session(engine) as s:
            return s.scalars(select(Notification).where(Notification.user_id == user_id)).all()

    def test_pending_list(self, client, db_engine, pending):
        creator, cid = pending
        make_community(db_engine, creator, "live", status=CommunityStatus.APPROVED)
        resp = client.get("/api/admin/communities/pending", headers=as_admin())
        assert resp.status_code == 200
        rows = resp.json()
        assert [r["id"] for r in rows] == [cid]
        assert rows[0]["creatorId"] == creator
        assert rows[0]["status"] == "pending"

    def test_approve_notifies_creator(self, client, db_engine, pending):
        creator, cid = pending
        resp = client.post(f"/api/admin/communities/approve/{cid}", headers=as_admin())
        assert resp.status_code == 200
        assert resp.json()["community"]["status"] == "approved"

        with Session(db_engine) as s:
            community = s.get(Community, cid)
            assert community.status == CommunityStatus.APPROVED
            assert community.approved_at is not None
            assert community.reviewed_by == "admin"

        [note] = self._notifications(db_engine, creator)
        assert note.title == "Community Approved"
        assert note.description == 'Your community "Rockets" has been approved and is now public.'
        assert note.type == "community"
        assert note.link_url == "/communities/rockets"
        assert note.read is False

    def test_approved_community_leaves_pending_list(self, client, pending):
        _, cid = pending
        before = client.get("/api/admin/communities/pending", headers=as_admin()).json()
        assert cid in [r["id"] for r in before]

        client.post(f"/api/admin/communities/approve/{cid}", headers=as_admin())

        after = client.get("/api/admin/communities/pending", headers=as_admin()).json()
        assert cid not in [r["id"] for r in after]

    def test_reject_requires_reason(self, client, pending):
        _, cid = pending
        resp = client.post(f"/api/admin/communities/reject/{cid}", json={}, headers=as_admin())
        assert resp.status_code == 400
        assert resp.json() == {"error": "Rejection reason is required"}

    def test_reject_without_body_requires_reason(self, client, db_engine, pending):
        _, cid = pending
        resp = client.post(f"/api/admin/communities/reject/{cid}", headers=as_admin())
        assert resp.status_code == 400
        assert resp.json() == {"error": "Rejection reason is required"}
        with Session(db_engine) as s:
            assert s.get(Community, cid).status == CommunityStatus.PENDING

    def test_reject_stores_reason_and_notifies(self, client, db_engine, pending):
        creator, cid = pending
        resp = client.post(
            f"/api/admin/communities/reject/{cid}",
            json={"reason": "Off topic"},
            headers=as_admin(),
        )
        assert resp.status_code == 200
        with Session(db_engine) as s:
            community = s.get(Community, cid)
            assert community.status == CommunityStatus.REJECTED
            assert community.rejection_reason == "Off topic"
            assert community.rejected_at is not None

        [note] = self._notifications(db_engine, creator)
        assert note.title == "Community Rejected"
        assert note.description.endswith("has been rejected. Reason: Off topic")

    def test_decisions_are_terminal(self, client, pending):
        _, cid = pending
        assert client.post(
            f"/api/admin/communities/approve/{cid}", headers=as_admin()
        ).status_code == 200
        again = client.post(
            f"/api/admin/communities/reject/{cid}", json={"reason": "late"}, headers=as_admin()
        )
        assert again.status_code == 409
        assert client.post(
            f"/api/admin/communities/approve/{cid}", headers=as_admin()
        ).status_code == 409

    def test_invalid_id(self, client):
        resp = client.post("/api/admin/communities/approve/not-an-id", headers=as_admin())
        assert resp.status_code == 400

    def test_unknown_id(self, client):
        resp = client.post(
            "/api/admin/communities/approve/00000000-0000-4000-8000-000000000000",
            headers=as_admin(),
        )
        assert resp.status_code == 404
        assert resp.json() == {"error": "Community not found"}


# ===========================================================================
# Stats
# ===========================================================================
class TestStats:
    def test_community_stats(self, client, db_engine):
        uid = make_user(db_engine)
        make_community(db_engine, uid, "a", status=CommunityStatus.PENDING)
        make_community(db_engine, uid, "b", status=CommunityStatus.APPROVED)
        make_community(db_engine, uid, "c", status=CommunityStatus.APPROVED)
        make_community(db_engine, uid, "d", status=CommunityStatus.REJECTED)

        body = client.get("/api/admin/communities/stats", headers=as_admin()).json()
        assert body["totalCommunities"] == 4
        assert body["pendingCommunities"] == 1
        assert body["approvedCommunities"] == 2
        assert body["rejectedCommunities"] == 1
        assert len(body["recentCommunities"]) == 4

    def test_recent_lists_are_capped(self, client, db_engine):
        uid = make_user(db_engine, "Owner")
        for i in range(7):
            make_user(db_engine, f"User{i}")
            make_community(db_engine, uid, f"c{i}")

        stats = client.get("/api/admin/communities/stats", headers=as_admin()).json()
        assert len(stats["recentCommunities"]) == 5

        dash = client.get("/api/admin/dashboard/stats", headers=as_admin()).json()
        assert dash["totalUsers"] == 8
        assert dash["totalCommunities"] == 7
        assert dash["totalEvents"] == 0
        assert len(dash["recentUsers"]) == 5

    def test_dashboard_counts_events(self, client, db_engine):
        from datetime import date

        uid = make_user(db_engine)
        cid = make_community(db_engine, uid)
        with Session(db_engine) as s:
            s.add(Event(community_id=cid, title="Launch", event_date=date(2030, 1, 1)))
            s.commit()
        assert client.get(
            "/api/admin/dashboard/stats", headers=as_admin()
        ).json()["totalEvents"] == 1


# ===========================================================================
# Monitoring
# ===========================================================================
class TestMonitoring:
    @pytest.fixture(autouse=True)
    def _buffer(self):
        from gravitas.services import log_buffer

        log_buffer.install_handler()
        log_buffer.clear()
        yield
        log_buffer.clear()

    def test_returns_captured_entries(self, client):
        logging.getLogger("gravitas.tests").warning("disk nearly full")
        body = client.get("/api/admin/monitoring", headers=as_admin()).json()
        assert any(e["message"] == "disk nearly full" for e in body["entries"])
        assert body["rateLimits"]["adminLogin"] == {"maxRequests": 10, "windowSeconds": 900}

    def test_level_filter(self, client):
        logging.getLogger("gravitas.tests").info("just info")
        logging.getLogger("gravitas.tests").error("real problem")
        body = client.get(
            "/api/admin/monitoring", params={"level": "ERROR"}, headers=as_admin()
        ).json()
        assert [e["message"] for e in body["entries"]] == ["real problem"]

    def test_invalid_level(self, client):
        resp = client.get("/api/admin/monitoring", params={"level": "LOUD"}, headers=as_admin())
        assert resp.status_code == 400

    def test_clear(self, client):
        logging.getLogger("gravitas.tests").warning("to be cleared")
        resp = client.delete("/api/admin/monitoring", headers=as_admin())
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        body = client.get(
            "/api/admin/monitoring", params={"level": "WARNING"}, headers=as_admin()
        ).json()
        assert all(e["message"] != "to be cleared" for e in body["entries"])
