"""
tests/test_user_routes.py — Following Feeds, Profile, "My Communities" & Notifications
=======================================================================================
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from conftest import as_user, make_community, make_user
from gravitas.database.models import (
    CommunityStatus,
    Event,
    EventRsvp,
    Follow,
    Notification,
)


def _follow(engine, user_id, community_id, when):
    with Session(engine) as s:
        s.add(Follow(user_id=user_id, community_id=community_id, created_at=when))
        s.commit()


def _event(engine, community_id, title, day, time=None):
    with Session(engine) as s:
        event = Event(community_id=community_id, title=title, event_date=day, time=time)
        s.add(event)
        s.commit()
        return event.id


# ===========================================================================
# Following
# ===========================================================================
class TestFollowing:
    def test_followed_communities_newest_follow_first(self, client, db_engine):
        owner = make_user(db_engine, "Owner")
        fan = make_user(db_engine, "Fan")
        first = make_community(db_engine, owner, "first", members=(fan,))
        second = make_community(db_engine, owner, "second")
        now = datetime.now(UTC)
        _follow(db_engine, fan, first, now - timedelta(days=2))
        _follow(db_engine, fan, second, now)

        today = datetime.now(UTC).date()
        _event(db_engine, first, "Past", today - timedelta(days=1))
        _event(db_engine, first, "Today", today)
        _event(db_engine, first, "Later", today + timedelta(days=3))

        rows = client.get("/api/following/communities", headers=as_user(fan)).json()
        assert [r["handle"] for r in rows] == ["second", "first"]
        by_handle = {r["handle"]: r for r in rows}
        assert by_handle["first"]["membersCount"] == 2
        assert by_handle["first"]["upcomingEventsCount"] == 2
        assert by_handle["second"]["upcomingEventsCount"] == 0
        assert by_handle["second"]["followedAt"]

    def test_followed_events_are_upcoming_only(self, client, db_engine):
        owner = make_user(db_engine, "Owner")
        fan = make_user(db_engine, "Fan")
        followed = make_community(db_engine, owner, "followed")
        ignored = make_community(db_engine, owner, "ignored")
        _follow(db_engine, fan, followed, datetime.now(UTC))

        today = datetime.now(UTC).date()
        _event(db_engine, followed, "Yesterday", today - timedelta(days=1))
        soon = _event(db_engine, followed, "Soon", today + timedelta(days=1), "10:00")
        _event(db_engine, followed, "Sooner", today + timedelta(days=1), "08:00")
        _event(db_engine, ignored, "Elsewhere", today + timedelta(days=1))
        with Session(db_engine) as s:
            s.add(EventRsvp(event_id=soon, user_id=fan, status="attending"))
            s.commit()

        rows = client.get("/api/following/events", headers=as_user(fan)).json()
        assert [r["title"] for r in rows] == ["Sooner", "Soon"]
        assert rows[1]["isAttending"] is True
        assert rows[1]["attendeesCount"] == 1
        assert rows[0]["isAttending"] is False
        assert rows[0]["community"]["handle"] == "followed"

    def test_requires_session(self, client):
        assert client.get("/api/following/communities").status_code == 401
        assert client.get("/api/following/events").status_code == 401


# ===========================================================================
# My communities
# ===========================================================================
class TestUserCommunities:
    def test_roles_and_order(self, client, db_engine):
        me = make_user(db_engine, "Me")
        other = make_user(db_engine, "Other")
        make_community(db_engine, other, "zeta", name="Zeta", admins=(me,))
        make_community(db_engine, other, "alpha", name="Alpha", members=(me,))
        make_community(db_engine, me, "beta", name="Beta")
        make_community(db_engine, other, "unrelated", name="Unrelated")

        rows = client.get("/api/user/communities", headers=as_user(me)).json()
        assert [(r["name"], r["userRole"]) for r in rows] == [
            ("Beta", "admin"),
            ("Zeta", "admin"),
            ("Alpha", "member"),
        ]

    def test_rejected_visible_only_to_creator(self, client, db_engine):
        creator = make_user(db_engine, "Creator")
        co_admin = make_user(db_engine, "Coadmin")
        make_community(db_engine, creator, "denied", admins=(co_admin,),
                       status=CommunityStatus.REJECTED)

        mine = client.get("/api/user/communities", headers=as_user(creator)).json()
        assert [r["handle"] for r in mine] == ["denied"]
        assert mine[0]["status"] == "rejected"

        theirs = client.get("/api/user/communities", headers=as_user(co_admin)).json()
        assert theirs == []

    def test_pending_listed_for_admin(self, client, db_engine):
        me = make_user(db_engine)
        make_community(db_engine, me, "waiting", status=CommunityStatus.PENDING)
        rows = client.get("/api/user/communities", headers=as_user(me)).json()
        assert rows[0]["status"] == "pending"


# ===========================================================================
# Notifications
# ===========================================================================
class TestNotifications:
    def _seed(self, engine, user_id, count, read=False):
        now = datetime.now(UTC)
        with Session(engine) as s:
            rows = [
                Notification(
                    user_id=user_id,
                    title=f"n{i}",
                    read=read,
                    created_at=now - timedelta(minutes=count - i),
                )
                for i in range(count)
            ]
            s.add_all(rows)
            s.commit()
            return [r.id for r in rows]

    def test_list_newest_first_capped_at_20(self, client, db_engine):
        me = make_user(db_engine)
        self._seed(db_engine, me, 25)
        rows = client.get("/api/user/notifications/list", headers=as_user(me)).json()
        assert len(rows) == 20
        assert rows[0]["title"] == "n24"
        assert rows[0]["type"] == "system"
        assert rows[0]["read"] is False

    def test_mark_one_read(self, client, db_engine):
        me = make_user(db_engine)
        [nid] = self._seed(db_engine, me, 1)
        resp = client.post(f"/api/user/notifications/{nid}/read", headers=as_user(me))
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "id": nid}
        with Session(db_engine) as s:
            assert s.get(Notification, nid).read is True

    def test_cannot_read_someone_elses(self, client, db_engine):
        me = make_user(db_engine, "Me")
        other = make_user(db_engine, "Other")
        [nid] = self._seed(db_engine, other, 1)
        resp = client.post(f"/api/user/notifications/{nid}/read", headers=as_user(me))
        assert resp.status_code == 404
        assert resp.json() == {"error": "Notification not found"}
        with Session(db_engine) as s:
            assert s.get(Notification, nid).read is False

    def test_invalid_id(self, client, db_engine):
        me = make_user(db_engine)
        resp = client.post("/api/user/notifications/xyz/read", headers=as_user(me))
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid notification ID"}

    def test_read_all_counts_only_unread(self, client, db_engine):
        me = make_user(db_engine, "Me")
        other = make_user(db_engine, "Other")
        self._seed(db_engine, me, 3)
        self._seed(db_engine, me, 2, read=True)
        self._seed(db_engine, other, 4)

        resp = client.post("/api/user/notifications/read-all", headers=as_user(me))
        assert resp.json() == {"success": True, "count": 3}
        listed = client.get("/api/user/notifications/list", headers=as_user(me)).json()
        assert len(listed) == 5
        assert all(n["read"] for n in listed)
        with Session(db_engine) as s:
            unread = s.scalars(select(Notification).where(Notification.read.is_(False))).all()
        assert {n.user_id for n in unread} == {other}


class TestPreferences:
    def test_defaults(self, client, db_engine):
        me = make_user(db_engine)
        prefs = client.get("/api/user/notifications", headers=as_user(me)).json()
        assert prefs == {
            "emailNotifications": True,
            "eventReminders": True,
            "communityUpdates": True,
            "newFollowers": False,
            "eventInvitations": True,
            "weeklyDigest": False,
        }

    def test_patch_merges_known_keys(self, client, db_engine):
        me = make_user(db_engine)
        resp = client.patch(
            "/api/user/notifications",
            json={"weeklyDigest": True, "madeUp": True},
            headers=as_user(me),
        )
        assert resp.status_code == 200
        assert resp.json()["weeklyDigest"] is True
        assert "madeUp" not in resp.json()

        prefs = client.get("/api/user/notifications", headers=as_user(me)).json()
        assert prefs["weeklyDigest"] is True
        assert prefs["emailNotifications"] is True

    def test_patch_for_vanished_user(self, client):
        from conftest import session_token

        resp = client.patch(
            "/api/user/notifications",
            json={"weeklyDigest": True},
            headers={"Authorization": f"Bearer {session_token('ghost')}"},
        )
        assert resp.status_code == 404


# ===========================================================================
# Profile
# ===========================================================================
class TestProfile:
    def test_profile_with_activity_stats(self, client, db_engine):
        me = make_user(db_engine, "Me")
        other = make_user(db_engine, "Other")
        mine = make_community(db_engine, me, "mine")
        make_community(db_engine, other, "theirs", members=(me,))
        followed = make_community(db_engine, other, "followed")
        _follow(db_engine, me, followed, datetime.now(UTC))
        event_id = _event(db_engine, mine, "Launch", date(2031, 1, 1))
        with Session(db_engine) as s:
            s.get(Event, event_id).creator_id = me
            s.add(EventRsvp(event_id=event_id, user_id=me, status="attending"))
            s.commit()

        resp = client.get("/api/user/profile", headers=as_user(me))
        assert resp.status_code == 200
        body = resp.json()
        assert body["email"] == "me@example.com"
        assert body["emailVerified"] is not None
        assert "password_hash" not in body and "passwordHash" not in body
        assert body["stats"] == {
            "communitiesOwned": 1,
            "communitiesJoined": 1,
            "eventsCreated": 1,
            "eventsAttended": 1,
            "followingCount": 1,
        }

    def test_patch_changes_only_given_fields(self, client, db_engine):
        me = make_user(db_engine, "Me")
        client.patch("/api/user/profile", json={"bio": "Stargazer", "location": "Leiden"},
                     headers=as_user(me))
        resp = client.patch("/api/user/profile", json={"name": "  Renamed  ", "location": ""},
                            headers=as_user(me))
        assert resp.json() == {"success": True}

        body = client.get("/api/user/profile", headers=as_user(me)).json()
        assert body["name"] == "Renamed"
        assert body["bio"] == "Stargazer"
        assert body["location"] is None

    def test_patch_validation(self, client, db_engine):
        me = make_user(db_engine, "Me")
        empty = client.patch("/api/user/profile", json={"name": " "}, headers=as_user(me))
        assert empty.status_code == 400
        assert empty.json() == {"error": "Name cannot be empty"}
        long_bio = client.patch("/api/user/profile", json={"bio": "b" * 501}, headers=as_user(me))
        assert long_bio.status_code == 400

    def test_vanished_user(self, client):
        resp = client.get("/api/user/profile", headers=as_user("ghost"))
        assert resp.status_code == 404
        assert resp.json() == {"error": "User not found"}


class TestMyEvents:
    def test_attending_events_by_date_with_status(self, client, db_engine):
        me = make_user(db_engine, "Me")
        cid = make_community(db_engine, me, "club")
        today = datetime.now(UTC).date()
        past = _event(db_engine, cid, "Past", today - timedelta(days=3))
        soon = _event(db_engine, cid, "Soon", today + timedelta(days=1))
        maybe = _event(db_engine, cid, "Maybe", today + timedelta(days=2))
        with Session(db_engine) as s:
            s.add(EventRsvp(event_id=soon, user_id=me, status="attending"))
            s.add(EventRsvp(event_id=past, user_id=me, status="attending"))
            s.add(EventRsvp(event_id=maybe, user_id=me, status="interested"))
            s.commit()

        rows = client.get("/api/user/events", headers=as_user(me)).json()
        assert [(r["title"], r["status"]) for r in rows] == [("Past", "past"), ("Soon", "upcoming")]
        assert rows[0]["community"]["handle"] == "club"

    def test_requires_session(self, client):
        assert client.get("/api/user/events").status_code == 401
