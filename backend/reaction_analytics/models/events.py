"""Share / reaction records read from the event store.

Redis-backed models for the group feed (Share, Member, Group) plus the
immutable reaction events the analytics engine consumes. The engine never
writes these; ``to_redis`` exists for the upstream writers and for seeding.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import redis

from reaction_analytics.models.window import AnalysisWindow

logger = logging.getLogger(__name__)

GROUP_PREFIX = "group:"
USER_PREFIX = "user:"
SHARE_PREFIX = "share:"


def members_key(group_id: str) -> str:
    return f"{GROUP_PREFIX}{group_id}:members"


def shares_key(group_id: str) -> str:
    return f"{GROUP_PREFIX}{group_id}:shares"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 string / datetime into an aware UTC datetime.

    Returns None for missing or malformed values so callers can skip the
    record instead of failing the whole query.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except (ValueError, TypeError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _decode(data: dict) -> dict:
    return {k.decode() if isinstance(k, bytes) else k:
            v.decode() if isinstance(v, bytes) else v
            for k, v in data.items()}


# ═══════════════════════════════════════════════════════════════════════════
# Directory records
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class Member:
    user_id: str
    display_name: str = ""
    avatar: str = ""

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "display_name": self.display_name,
            "avatar": self.avatar,
        }

    def to_redis(self, r: redis.Redis) -> None:
        r.hset(f"{USER_PREFIX}{self.user_id}", mapping=self.to_dict())

    @classmethod
    def from_redis(cls, r: redis.Redis, user_id: str) -> Optional[Member]:
        data = r.hgetall(f"{USER_PREFIX}{user_id}")
        if not data:
            return None
        data = _decode(data)
        return cls(
            user_id=data.get("user_id", user_id),
            display_name=data.get("display_name", ""),
            avatar=data.get("avatar", ""),
        )


@dataclass
class Group:
    group_id: str
    name: str = ""
    member_ids: list[str] = field(default_factory=list)

    def to_redis(self, r: redis.Redis) -> None:
        r.hset(f"{GROUP_PREFIX}{self.group_id}",
               mapping={"group_id": self.group_id, "name": self.name})
        if self.member_ids:
            r.sadd(members_key(self.group_id), *self.member_ids)

    @classmethod
    def from_redis(cls, r: redis.Redis, group_id: str) -> Optional[Group]:
        data = r.hgetall(f"{GROUP_PREFIX}{group_id}")
        if not data:
            return None
        data = _decode(data)
        ids = r.smembers(members_key(group_id))
        member_ids = sorted(i.decode() if isinstance(i, bytes) else i for i in ids)
        return cls(group_id=group_id, name=data.get("name", ""), member_ids=member_ids)


# ═══════════════════════════════════════════════════════════════════════════
# Share
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class Share:
    share_id: str
    group_id: str
    sharer_id: str
    created_at: datetime
    track_name: str = ""
    artist_name: str = ""
    genres: list = field(default_factory=list)
    like_count: int = 0
    listen_count: int = 0
    listens: list = field(default_factory=list)   # [{"user_id", "listened_at"}]
    likes: list = field(default_factory=list)     # [{"user_id", "liked_at"}]

    def to_dict(self) -> dict:
        return {
            "share_id": self.share_id,
            "group_id": self.group_id,
            "sharer_id": self.sharer_id,
            "created_at": self.created_at.isoformat(),
            "track_name": self.track_name,
            "artist_name": self.artist_name,
            "genres": json.dumps(self.genres),
            "like_count": int(self.like_count),
            "listen_count": int(self.listen_count),
        }

    def to_redis(self, r: redis.Redis) -> None:
        """Persist share hash, its reaction lists, and group feed membership."""
        key = f"{SHARE_PREFIX}{self.share_id}"
        pipe = r.pipeline(transaction=False)
        pipe.hset(key, mapping=self.to_dict())
        pipe.delete(f"{key}:listens", f"{key}:likes")
        for entry in self.listens:
            pipe.rpush(f"{key}:listens", json.dumps(_serialize_entry(entry)))
        for entry in self.likes:
            pipe.rpush(f"{key}:likes", json.dumps(_serialize_entry(entry)))
        pipe.zadd(shares_key(self.group_id), {self.share_id: self.created_at.timestamp()})
        pipe.execute()

    @classmethod
    def from_redis(cls, r: redis.Redis, share_id: str) -> Optional[Share]:
        """Load a share by ID. Returns None when missing or lacking a valid timestamp."""
        key = f"{SHARE_PREFIX}{share_id}"
        data = r.hgetall(key)
        if not data:
            return None
        data = _decode(data)

        created_at = parse_timestamp(data.get("created_at"))
        if created_at is None:
            logger.warning("Skipping share %s: missing or invalid created_at", share_id)
            return None

        try:
            genres = json.loads(data.get("genres") or "[]")
        except (json.JSONDecodeError, TypeError):
            genres = []

        return cls(
            share_id=data.get("share_id", share_id),
            group_id=data.get("group_id", ""),
            sharer_id=data.get("sharer_id", ""),
            created_at=created_at,
            track_name=data.get("track_name", ""),
            artist_name=data.get("artist_name", ""),
            genres=genres,
            like_count=int(data.get("like_count") or 0),
            listen_count=int(data.get("listen_count") or 0),
            listens=_load_entries(r, f"{key}:listens"),
            likes=_load_entries(r, f"{key}:likes"),
        )


def _serialize_entry(entry: dict) -> dict:
    return {k: v.isoformat() if isinstance(v, datetime) else v for k, v in entry.items()}


def _load_entries(r: redis.Redis, key: str) -> list[dict]:
    entries = []
    for raw in r.lrange(key, 0, -1):
        try:
            entries.append(json.loads(raw))
        except (json.JSONDecodeError, TypeError):
            logger.warning("Skipping malformed entry in %s", key)
    return entries


# ═══════════════════════════════════════════════════════════════════════════
# Reaction events (engine input)
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ReactionEvent:
    """One listen on a share, with its latency from share creation."""
    user_id: str
    share_id: str
    group_id: str
    shared_at: datetime
    reacted_at: datetime
    latency_ms: float

    @classmethod
    def from_listen(cls, share: Share, entry: dict) -> Optional[ReactionEvent]:
        """Build from a share's listen entry; None if the entry is unusable."""
        reacted_at = parse_timestamp(entry.get("listened_at"))
        user_id = entry.get("user_id")
        if reacted_at is None or not user_id:
            return None
        latency_ms = (reacted_at - share.created_at).total_seconds() * 1000
        if latency_ms < 0:
            return None
        return cls(
            user_id=str(user_id),
            share_id=share.share_id,
            group_id=share.group_id,
            shared_at=share.created_at,
            reacted_at=reacted_at,
            latency_ms=latency_ms,
        )


@dataclass(frozen=True)
class LikeEvent:
    user_id: str
    share_id: str
    liked_at: datetime

    @classmethod
    def from_like(cls, share: Share, entry: dict) -> Optional[LikeEvent]:
        liked_at = parse_timestamp(entry.get("liked_at"))
        user_id = entry.get("user_id")
        if liked_at is None or not user_id:
            return None
        return cls(user_id=str(user_id), share_id=share.share_id, liked_at=liked_at)


@dataclass
class GroupSnapshot:
    """Point-in-time view of one group's feed, as read for a single query."""
    group: Group
    members: list[Member]
    shares: list[Share]
    reactions: list[ReactionEvent]
    likes: list[LikeEvent]
    window: AnalysisWindow
    now: datetime

    @property
    def member_ids(self) -> list[str]:
        return [m.user_id for m in self.members]

    def share_by_id(self) -> dict[str, Share]:
        return {s.share_id: s for s in self.shares}

    def reactions_by_user(self) -> dict[str, list[ReactionEvent]]:
        """Reactions each member made (to anyone's shares)."""
        grouped: dict[str, list[ReactionEvent]] = {uid: [] for uid in self.member_ids}
        for event in self.reactions:
            grouped.setdefault(event.user_id, []).append(event)
        return grouped

    def reactions_to_sharer(self) -> dict[str, list[ReactionEvent]]:
        """Reactions *other* members made to each member's shares."""
        sharer_of = {s.share_id: s.sharer_id for s in self.shares}
        grouped: dict[str, list[ReactionEvent]] = defaultdict(list)
        for uid in self.member_ids:
            grouped[uid] = []
        for event in self.reactions:
            sharer = sharer_of.get(event.share_id)
            if sharer is None or sharer == event.user_id:
                continue
            grouped[sharer].append(event)
        return dict(grouped)
