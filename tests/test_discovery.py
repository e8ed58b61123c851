"""
tests/test_discovery.py — Explore, Search & Home Feed
======================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from sqlalchemy.orm import Session

from conftest import as_user, make_community, make_user
from gravitas.database.models import CommunityStatus, Event, EventRsvp, Follow, Update


def _today():
    return datetime.now(UTC).date()


def _event(engine, community_id, title, *, days_ahead=1, created=None, description=None):
    with Session(engine) as s:
        event = Event(
            community_id=community_id,
            title=title,
            description=description,
            event_date=_today() + timedelta(days=days_ahead),
            created_at=created or datetime.now(UTC),
        )
        s.add(event)
        s.commit()
        return event.id


def _update(engine, community_id, author_id, content, created=None):
    with Session(engine) as s:
        row = Update(community_id=community_id, author_id=author_id, content=content,
                     created_at=created or datetime.now(UTC))
        s.add(row)
        s.commit()
        return row.id


# ===========================================================================
# Explore
# ===========================================================================
class TestExplore:
    def test_only_approved_largest_first(self, client, db_engine):
        owner = make_user(db_engine, "Owner")
        a, b = make_user(db_engine, "A"), make_user(db_engine, "B")
        make_community(db_engine, owner, "small")
        make_community(db_engine, owner, "big", members=(a, b))
        make_community(db_engine, owner, "waiting", status=CommunityStatus.PENDING)
        make_community(db_engine, owner, "refused", status=CommunityStatus.REJECTED)

        rows = client.get("/api/explore/communities").json()
        assert [r["handle"] for r in rows] == ["big", "small"]
        assert rows[0]["membersCount"] == 3
        assert all(r["userRelation"] == "none" for r in rows)

    def test_user_relation(self, client, db_engine):
        owner = make_user(db_engine, "Owner")
        me = make_user(db_engine, "Me")
        make_community(db_engine, me, "run")
        make_community(db_engine, owner, "joined", members=(me,))
        followed = make_community(db_engine, owner, "watched")
        make_community(db_engine, owner, "other")
        with Session(db_engine) as s:
            s.add(Follow(user_id=me, community_id=followed))
            s.commit()

        rows = client.get("/api/explore/communities", headers=as_user(me)).json()
        relation = {r["handle"]: r["userRelation"] for r in rows}
        assert relation == {
            "run": "admin", "joined": "member", "watched": "follower", "other": "none",
        }

    def test_upcoming_events_count(self, client, db_engine):
        cid = make_community(db_engine, make_user(db_engine), "club")
        _event(db_engine, cid, "Soon", days_ahead=2)
        _event(db_engine, cid, "Gone", days_ahead=-2)
        [row] = client.get("/api/explore/communities").json()
        assert row["upcomingEventsCount"] == 1


# ===========================================================================
# Search
# ===========================================================================
class TestSearch:
    def test_matches_events_and_communities(self, client, db_engine):
        me = make_user(db_engine, "Me")
        cid = make_community(db_engine, me, "comets", name="Comet Chasers")
        make_community(db_engine, me, "tides", name="Tide Pools")
        event_id = _event(db_engine, cid, "Night walk", description="Spot a COMET")

        resp = client.get("/api/search", params={"q": "comet"}, headers=as_user(me))
        assert resp.status_code == 200
        results = resp.json()
        assert results[0] == {
            "id": event_id, "title": "Night walk", "type": "event",
            "url": f"/events/{event_id}", "communityId": cid,
        }
        assert [r["handle"] for r in results if r["type"] == "community"] == ["comets"]

    def test_hidden_communities_are_not_found(self, client, db_engine):
        me = make_user(db_engine, "Me")
        make_community(db_engine, me, "secret", name="Secret Club", status=CommunityStatus.PENDING)
        assert client.get("/api/search", params={"q": "secret"}, headers=as_user(me)).json() == []

    def test_wildcards_are_literal(self, client, db_engine):
        me = make_user(db_engine, "Me")
        make_community(db_engine, me, "club")
        assert client.get("/api/search", params={"q": "%"}, headers=as_user(me)).json() == []

    def test_query_required(self, client, db_engine):
        me = make_user(db_engine, "Me")
        resp = client.get("/api/search", headers=as_user(me))
        assert resp.status_code == 400
        assert resp.json() == {"error": "Query parameter is required"}

    def test_requires_session(self, client):
        assert client.get("/api/search", params={"q": "x"}).status_code == 401


# ===========================================================================
# Feed
# ===========================================================================
class TestFeed:
    def test_signed_in_feed_from_own_and_followed_communities(self, client, db_engine):
        owner = make_user(db_engine, "Owner")
        me = make_user(db_engine, "Me")
        joined = make_community(db_engine, owner, "joined", members=(me,))
        followed = make_community(db_engine, owner, "followed")
        stranger = make_community(db_engine, owner, "stranger")
        with Session(db_engine) as s:
            s.add(Follow(user_id=me, community_id=followed))
            s.commit()

        now = datetime.now(UTC)
        _event(db_engine, joined, "Member meetup", created=now - timedelta(hours=3))
        _event(db_engine, joined, "Old news", days_ahead=-1, created=now)
        _update(db_engine, followed, owner, "Followed news", created=now - timedelta(hours=1))
        _update(db_engine, stranger, owner, "Not for me", created=now)

        items = client.get("/api/feed", headers=as_user(me)).json()
        assert [(i["type"], i.get("title") or i.get("content")) for i in items] == [
            ("update", "Followed news"),
            ("event", "Member meetup"),
        ]
        assert items[1]["community"]["handle"] == "joined"

    def test_signed_in_without_communities(self, client, db_engine):
        me = make_user(db_engine, "Me")
        assert client.get("/api/feed", headers=as_user(me)).json() == []

    def test_anonymous_feed_prefers_well_attended_public_events(self, client, db_engine):
        owner = make_user(db_engine, "Owner")
        guests = [make_user(db_engine, f"Guest{i}") for i in range(2)]
        cid = make_community(db_engine, owner, "club")
        hidden = make_community(db_engine, owner, "hidden", status=CommunityStatus.PENDING)
        quiet = [_event(db_engine, cid, f"Quiet {i}", days_ahead=1) for i in range(5)]
        busy = _event(db_engine, cid, "Busy", days_ahead=30)
        _event(db_engine, hidden, "Private", days_ahead=1)
        _update(db_engine, hidden, owner, "Private update")
        with Session(db_engine) as s:
            for guest in guests:
                s.add(EventRsvp(event_id=busy, user_id=guest, status="attending"))
            s.commit()

        items = client.get("/api/feed").json()
        assert all(i["type"] == "event" for i in items)
        ids = [i["id"] for i in items]
        assert len(ids) == 5
        assert busy in ids
        assert set(ids) <= {busy, *quiet}
