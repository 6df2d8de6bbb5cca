"""Seed Redis with a demo group feed: four members, two weeks of shares.

Run: python -m reaction_analytics.scripts.seed_demo (from backend/)
"""

from datetime import datetime, timedelta, timezone

import redis

from reaction_analytics.config.settings import REDIS_URL
from reaction_analytics.models.events import (
    GROUP_PREFIX,
    SHARE_PREFIX,
    Group,
    Member,
    Share,
)

DEMO_GROUP = "demo"

MEMBERS = [
    Member("alice", "Alice", "https://i.pravatar.cc/150?u=alice"),
    Member("bob", "Bob", "https://i.pravatar.cc/150?u=bob"),
    Member("charlie", "Charlie", "https://i.pravatar.cc/150?u=charlie"),
    Member("dana", "Dana", ""),
]

# (sharer, track, artist, days ago, [(listener, minutes after share)], [likers])
FEED = [
    ("alice", "Motion Sickness", "Phoebe Bridgers", 13, [("bob", 2), ("charlie", 95), ("dana", 1400)], ["bob"]),
    ("bob", "Nights", "Frank Ocean", 12, [("alice", 1), ("charlie", 1), ("dana", 3)], ["alice", "charlie", "dana"]),
    ("charlie", "Kyoto", "Phoebe Bridgers", 10, [("alice", 40), ("bob", 6)], ["alice"]),
    ("alice", "Pink + White", "Frank Ocean", 8, [("bob", 1), ("charlie", 300)], ["bob", "charlie"]),
    ("dana", "Redbone", "Childish Gambino", 6, [("alice", 720), ("bob", 4)], []),
    ("bob", "Solo", "Frank Ocean", 5, [("alice", 1), ("charlie", 2), ("dana", 2)], ["alice", "dana"]),
    ("alice", "Garden Song", "Phoebe Bridgers", 3, [("bob", 3), ("dana", 2900)], ["dana"]),
    ("charlie", "Ivy", "Frank Ocean", 2, [("alice", 30), ("bob", 31), ("dana", 33)], ["bob"]),
    ("alice", "Punisher", "Phoebe Bridgers", 1, [("bob", 2), ("charlie", 8)], []),
    ("bob", "Self Control", "Frank Ocean", 0, [("alice", 5)], ["alice"]),
]


def clear_group(r: redis.Redis, group_id: str) -> None:
    """Remove a group's hash, membership and every share in its feed."""
    for sid in r.zrange(f"{GROUP_PREFIX}{group_id}:shares", 0, -1):
        r.delete(f"{SHARE_PREFIX}{sid}", f"{SHARE_PREFIX}{sid}:listens", f"{SHARE_PREFIX}{sid}:likes")
    r.delete(f"{GROUP_PREFIX}{group_id}", f"{GROUP_PREFIX}{group_id}:members", f"{GROUP_PREFIX}{group_id}:shares")


def seed(r: redis.Redis | None = None, now: datetime | None = None) -> int:
    r = r or redis.Redis.from_url(REDIS_URL, decode_responses=True)
    now = now or datetime.now(timezone.utc)
    clear_group(r, DEMO_GROUP)

    for member in MEMBERS:
        member.to_redis(r)
    Group(DEMO_GROUP, "Demo Listening Club", [m.user_id for m in MEMBERS]).to_redis(r)

    for i, (sharer, track, artist, days_ago, listens, likers) in enumerate(FEED, start=1):
        created = now - timedelta(days=days_ago, hours=2)
        Share(
            share_id=f"demo-share-{i}",
            group_id=DEMO_GROUP,
            sharer_id=sharer,
            created_at=created,
            track_name=track,
            artist_name=artist,
            like_count=len(likers),
            listen_count=len(listens),
            listens=[
                {"user_id": uid, "listened_at": created + timedelta(minutes=m)}
                for uid, m in listens
            ],
            likes=[
                {"user_id": uid, "liked_at": created + timedelta(minutes=10)}
                for uid in likers
            ],
        ).to_redis(r)

    return len(FEED)


if __name__ == "__main__":
    count = seed()
    print(f"Seeded group '{DEMO_GROUP}' with {len(MEMBERS)} members and {count} shares")
