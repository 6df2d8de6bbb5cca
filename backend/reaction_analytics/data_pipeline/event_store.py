"""Redis-backed event store and group directory reads.

Read-only: the analytics engine loads a point-in-time snapshot of one
group's feed per query and never writes. Records with missing or
unparseable timestamps are logged and skipped; the query still succeeds.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

import redis

from reaction_analytics.config.settings import REDIS_URL
from reaction_analytics.engine.errors import NotFound
from reaction_analytics.models.events import (
    Group,
    GroupSnapshot,
    LikeEvent,
    Member,
    ReactionEvent,
    Share,
    shares_key,
)
from reaction_analytics.models.window import AnalysisWindow

logger = logging.getLogger(__name__)


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_group(group_id: str, r: redis.Redis | None = None) -> Group:
    """Load a group or raise NotFound."""
    r = r or _get_redis()
    group = Group.from_redis(r, group_id)
    if group is None:
        raise NotFound("group", group_id)
    return group


def get_members(group: Group, r: redis.Redis | None = None) -> list[Member]:
    """Directory members in stable id order, including members with no profile hash."""
    r = r or _get_redis()
    members = []
    for uid in group.member_ids:
        member = Member.from_redis(r, uid)
        if member is None:
            logger.warning("Group %s lists member %s with no profile", group.group_id, uid)
            member = Member(user_id=uid)
        members.append(member)
    return members


def load_shares(
    group_id: str,
    since: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> list[Share]:
    """Shares created at or after ``since`` (all shares if None), oldest first."""
    r = r or _get_redis()
    low = since.timestamp() if since is not None else "-inf"
    share_ids = r.zrangebyscore(shares_key(group_id), low, "+inf")

    shares = []
    for sid in share_ids:
        share = Share.from_redis(r, sid)
        if share is None:
            continue
        if since is not None and share.created_at < since:
            continue
        shares.append(share)
    shares.sort(key=lambda s: (s.created_at, s.share_id))
    return shares


def _reaction_events(shares: list[Share]) -> tuple[list[ReactionEvent], list[LikeEvent]]:
    reactions: list[ReactionEvent] = []
    likes: list[LikeEvent] = []
    skipped = 0
    for share in shares:
        for entry in share.listens:
            event = ReactionEvent.from_listen(share, entry)
            if event is None:
                skipped += 1
                continue
            reactions.append(event)
        for entry in share.likes:
            like = LikeEvent.from_like(share, entry)
            if like is None:
                skipped += 1
                continue
            likes.append(like)
    if skipped:
        logger.warning("Skipped %d reaction records without a usable timestamp", skipped)
    return reactions, likes


def load_snapshot(
    group_id: str,
    window: AnalysisWindow,
    now: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> GroupSnapshot:
    """Read one group's directory and the window's shares and reactions.

    Raises NotFound before touching the feed if the group does not exist.
    """
    r = r or _get_redis()
    now = now or _utcnow()
    group = get_group(group_id, r)
    members = get_members(group, r)
    shares = load_shares(group_id, window.start(now), r)
    reactions, likes = _reaction_events(shares)

    logger.info(
        "Loaded group %s (%s): %d members, %d shares, %d reactions, %d likes",
        group_id, window.value, len(members), len(shares), len(reactions), len(likes),
    )
    return GroupSnapshot(
        group=group,
        members=members,
        shares=shares,
        reactions=reactions,
        likes=likes,
        window=window,
        now=now,
    )
