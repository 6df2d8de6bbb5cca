"""Shared test fixtures for the reaction analytics test suite."""

import pytest
import fakeredis
from datetime import datetime, timedelta, timezone

from reaction_analytics.models.events import (
    Group,
    GroupSnapshot,
    LikeEvent,
    Member,
    ReactionEvent,
    Share,
)
from reaction_analytics.models.window import AnalysisWindow


# ── Redis ────────────────────────────────────────────────────────────────

@pytest.fixture
def r():
    """Fresh fakeredis instance per test (decode_responses=True like production)."""
    return fakeredis.FakeRedis(decode_responses=True)


# ── Time Freezing ───────────────────────────────────────────────────────

@pytest.fixture
def frozen_now():
    """Return a fixed 'now' datetime for deterministic window tests.

    Default: 2026-02-15T12:00:00Z (noon UTC on a Sunday).
    """
    return datetime(2026, 2, 15, 12, 0, 0, tzinfo=timezone.utc)


# ── Factories ───────────────────────────────────────────────────────────

@pytest.fixture
def make_reaction(frozen_now):
    """Factory for ReactionEvents defined by their latency.

    Usage:
        event = make_reaction("alice", latency_ms=30_000)
    """
    def _factory(user_id, latency_ms, share_id="s1", shared_at=None, group_id="g1"):
        shared_at = shared_at or frozen_now - timedelta(days=1)
        return ReactionEvent(
            user_id=user_id,
            share_id=share_id,
            group_id=group_id,
            shared_at=shared_at,
            reacted_at=shared_at + timedelta(milliseconds=latency_ms),
            latency_ms=float(latency_ms),
        )

    return _factory


@pytest.fixture
def make_share(frozen_now):
    """Factory for Share records with listens/likes given as offsets.

    ``listens`` is a list of (user_id, seconds after share); ``likes`` a
    list of user ids. Counters default to the entry counts.
    """
    _counter = 0

    def _factory(sharer_id, age=timedelta(days=1), listens=(), likes=(),
                 artist_name="Artist", group_id="g1", **overrides):
        nonlocal _counter
        _counter += 1
        created = frozen_now - age
        defaults = {
            "share_id": f"share-{_counter}",
            "group_id": group_id,
            "sharer_id": sharer_id,
            "created_at": created,
            "track_name": f"Track {_counter}",
            "artist_name": artist_name,
            "like_count": len(likes),
            "listen_count": len(listens),
            "listens": [
                {"user_id": uid, "listened_at": created + timedelta(seconds=secs)}
                for uid, secs in listens
            ],
            "likes": [
                {"user_id": uid, "liked_at": created + timedelta(minutes=5)}
                for uid in likes
            ],
        }
        defaults.update(overrides)
        return Share(**defaults)

    return _factory


@pytest.fixture
def make_snapshot(frozen_now):
    """Build a GroupSnapshot in memory, deriving reactions and likes from shares."""
    def _factory(member_ids, shares, window=AnalysisWindow.LAST_7D, now=None):
        members = [Member(uid, uid.capitalize()) for uid in member_ids]
        reactions, likes = [], []
        for s in shares:
            reactions.extend(ReactionEvent.from_listen(s, entry) for entry in s.listens)
            likes.extend(LikeEvent.from_like(s, entry) for entry in s.likes)
        reactions = [e for e in reactions if e is not None]
        likes = [lk for lk in likes if lk is not None]
        return GroupSnapshot(
            group=Group("g1", "Test Group", list(member_ids)),
            members=members,
            shares=sorted(shares, key=lambda s: s.created_at),
            reactions=reactions,
            likes=likes,
            window=window,
            now=now or frozen_now,
        )

    return _factory


# ── Seeded scenario ─────────────────────────────────────────────────────

@pytest.fixture
def trio_shares(make_share):
    """Alice shares two tracks (~30s reactions), Bob one (instant for everyone).

    Likes received: Alice 3, Bob 1. Likes given: Charlie 2, Alice 1, Bob 1.
    """
    return [
        make_share("alice", age=timedelta(days=3), artist_name="Phoebe Bridgers",
                   listens=[("bob", 30), ("charlie", 30)], likes=["bob", "charlie"]),
        make_share("alice", age=timedelta(days=2), artist_name="Frank Ocean",
                   listens=[("bob", 25), ("charlie", 35)], likes=["charlie"]),
        make_share("bob", age=timedelta(days=1), artist_name="Frank Ocean",
                   listens=[("alice", 20), ("charlie", 20)], likes=["alice"]),
    ]


@pytest.fixture
def seeded_group(r, trio_shares):
    """Persist the Alice/Bob/Charlie scenario to fakeredis; returns the group id."""
    for uid, name in [("alice", "Alice"), ("bob", "Bob"), ("charlie", "Charlie")]:
        Member(uid, name, f"https://img.test/{uid}.png").to_redis(r)
    Group("g1", "Test Group", ["alice", "bob", "charlie"]).to_redis(r)
    for share in trio_shares:
        share.to_redis(r)
    return "g1"
