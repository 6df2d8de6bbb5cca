"""Group Aggregation Engine: timelines, engagement, superlatives, vibes, gravity.

Operates over a group's share / listen / like records rather than the
per-member latency profiles. Every member of the directory appears in the
per-member outputs, including members with no activity.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from itertools import combinations
from typing import Callable, Iterable, Optional, Sequence

from reaction_analytics.config.settings import (
    ALL_TIME_CAP_DAYS,
    GRAVITY_REASON_ARTISTS,
    TOP_ARTISTS_PER_MEMBER,
)
from reaction_analytics.engine.latency_stats import round_half_up
from reaction_analytics.models.events import GroupSnapshot, Member, Share
from reaction_analytics.models.results import (
    GravityLink,
    GravityNode,
    MemberEngagement,
    MemberVibes,
    SuperlativeResult,
    TasteGravityGraph,
    TimelineBucket,
)
from reaction_analytics.models.window import DAY_MS, HOUR_MS, AnalysisWindow

logger = logging.getLogger(__name__)


def _epoch_ms(ts: datetime) -> int:
    return int(ts.timestamp() * 1000)


def _from_epoch_ms(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _score(value: float, cohort_max: float) -> int:
    return round_half_up(value / cohort_max * 100) if cohort_max > 0 else 0


# ═══════════════════════════════════════════════════════════════════════════
# Activity timeline
# ═══════════════════════════════════════════════════════════════════════════

def bucket_interval_ms(window: AnalysisWindow) -> int:
    return HOUR_MS if window is AnalysisWindow.LAST_24H else DAY_MS


def timeline_start(window: AnalysisWindow, shares: Sequence[Share], now: datetime) -> datetime:
    """First instant covered by the timeline.

    All-time starts at the earliest share but never more than
    ALL_TIME_CAP_DAYS back.
    """
    bounded = window.start(now)
    if bounded is not None:
        return bounded
    cap = now - timedelta(days=ALL_TIME_CAP_DAYS)
    if not shares:
        return cap
    return max(min(s.created_at for s in shares), cap)


def activity_timeline(
    shares: Sequence[Share],
    window: AnalysisWindow,
    now: datetime,
) -> list[TimelineBucket]:
    """Contiguous buckets from window start to now, aligned to epoch multiples.

    Likes and listens are summed from each share's counters and land in the
    bucket of the share's creation.
    """
    interval = bucket_interval_ms(window)
    start = timeline_start(window, shares, now)
    start_ms, end_ms = _epoch_ms(start), _epoch_ms(now)

    aligned_start = start_ms - start_ms % interval
    aligned_end = end_ms - end_ms % interval

    buckets = {
        t: TimelineBucket(timestamp=_from_epoch_ms(t))
        for t in range(aligned_start, aligned_end + 1, interval)
    }

    for share in shares:
        if share.created_at < start:
            continue
        ts = _epoch_ms(share.created_at)
        bucket = buckets.get(ts - ts % interval)
        if bucket is None:
            continue
        bucket.shares += 1
        bucket.likes += share.like_count
        bucket.listens += share.listen_count

    return [buckets[t] for t in sorted(buckets)]


# ═══════════════════════════════════════════════════════════════════════════
# Member engagement
# ═══════════════════════════════════════════════════════════════════════════

def member_engagement(members: Iterable[Member], shares: Iterable[Share]) -> list[MemberEngagement]:
    stats = {
        m.user_id: MemberEngagement(user_id=m.user_id, display_name=m.display_name, avatar=m.avatar)
        for m in members
    }
    for share in shares:
        entry = stats.get(share.sharer_id)
        if entry is None:
            continue
        entry.share_count += 1
        entry.likes_received += share.like_count
        entry.listens_received += share.listen_count
        if entry.last_shared_at is None or share.created_at > entry.last_shared_at:
            entry.last_shared_at = share.created_at
    return list(stats.values())


# ═══════════════════════════════════════════════════════════════════════════
# Superlatives
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SuperlativeRule:
    key: str
    label: str
    description: str
    icon: str
    tally: Callable[[GroupSnapshot], Counter]


def _likes_given(snapshot: GroupSnapshot) -> Counter:
    return Counter(like.user_id for like in snapshot.likes)


def _likes_received(snapshot: GroupSnapshot) -> Counter:
    totals: Counter = Counter()
    for share in snapshot.shares:
        totals[share.sharer_id] += share.like_count
    return totals


def _tracks_shared(snapshot: GroupSnapshot) -> Counter:
    return Counter(share.sharer_id for share in snapshot.shares)


def _tracks_listened(snapshot: GroupSnapshot) -> Counter:
    return Counter(event.user_id for event in snapshot.reactions)


SUPERLATIVE_RULES: list[SuperlativeRule] = [
    SuperlativeRule("hypeMan", "The Hype Man", "Most likes given", "❤️", _likes_given),
    SuperlativeRule("trendsetter", "The Trendsetter", "Most likes received", "✨", _likes_received),
    SuperlativeRule("dj", "The DJ", "Most tracks shared", "🎧", _tracks_shared),
    SuperlativeRule("diehard", "The Diehard", "Most tracks listened", "👂", _tracks_listened),
]


def pick_winner(tally: Counter, member_ids: Iterable[str]) -> Optional[tuple[str, int]]:
    """Highest value among directory members; ties go to the smaller user id.

    Returns None when no member has a positive value.
    """
    candidates = [(uid, tally.get(uid, 0)) for uid in member_ids]
    candidates = [c for c in candidates if c[1] > 0]
    if not candidates:
        return None
    return min(candidates, key=lambda c: (-c[1], c[0]))


def superlatives(snapshot: GroupSnapshot) -> dict[str, SuperlativeResult]:
    """Evaluate each rule independently; rules without a winner are omitted."""
    results: dict[str, SuperlativeResult] = {}
    for rule in SUPERLATIVE_RULES:
        winner = pick_winner(rule.tally(snapshot), snapshot.member_ids)
        if winner is None:
            continue
        user_id, value = winner
        results[rule.key] = SuperlativeResult(
            key=rule.key,
            winning_user_id=user_id,
            value=value,
            label=rule.label,
            description=rule.description,
            icon=rule.icon,
        )
    return results


# ═══════════════════════════════════════════════════════════════════════════
# Member vibes
# ═══════════════════════════════════════════════════════════════════════════

FRESHNESS_DECAY_PER_DAY = 5


def freshness_score(last_shared_at: Optional[datetime], now: datetime) -> int:
    """100 right after sharing, minus 5 points per day, floored at 0."""
    if last_shared_at is None:
        return 0
    days = (now - last_shared_at).total_seconds() / 86400
    return max(0, round_half_up(100 - days * FRESHNESS_DECAY_PER_DAY))


def member_vibes(snapshot: GroupSnapshot) -> list[MemberVibes]:
    """Five 0-100 personality scores per member, most active first."""
    engagement = {e.user_id: e for e in member_engagement(snapshot.members, snapshot.shares)}
    likes_given = _likes_given(snapshot)

    artists: dict[str, set[str]] = {uid: set() for uid in snapshot.member_ids}
    for share in snapshot.shares:
        if share.sharer_id in artists and share.artist_name:
            artists[share.sharer_id].add(share.artist_name)

    def avg_likes(uid: str) -> float:
        e = engagement[uid]
        return e.likes_received / e.share_count if e.share_count else 0.0

    ids = snapshot.member_ids
    max_activity = max((engagement[u].share_count for u in ids), default=0)
    max_popularity = max((avg_likes(u) for u in ids), default=0.0)
    max_support = max((likes_given.get(u, 0) for u in ids), default=0)
    max_variety = max((len(artists[u]) for u in ids), default=0)

    vibes = []
    for member in snapshot.members:
        uid = member.user_id
        e = engagement[uid]
        vibes.append(MemberVibes(
            user_id=uid,
            display_name=member.display_name,
            avatar=member.avatar,
            stats={
                "activity": _score(e.share_count, max_activity),
                "popularity": _score(avg_likes(uid), max_popularity),
                "support": _score(likes_given.get(uid, 0), max_support),
                "variety": _score(len(artists[uid]), max_variety),
                "freshness": freshness_score(e.last_shared_at, snapshot.now),
            },
            share_count=e.share_count,
            likes_given=likes_given.get(uid, 0),
            avg_likes_received=avg_likes(uid),
        ))

    vibes.sort(key=lambda v: -v.stats["activity"])
    return vibes


# ═══════════════════════════════════════════════════════════════════════════
# Taste gravity
# ═══════════════════════════════════════════════════════════════════════════

def _artist_counts(snapshot: GroupSnapshot) -> dict[str, Counter]:
    """Artists each member shared or listened to, with frequencies."""
    counts: dict[str, Counter] = {uid: Counter() for uid in snapshot.member_ids}
    by_id = snapshot.share_by_id()
    for share in snapshot.shares:
        if share.sharer_id in counts and share.artist_name:
            counts[share.sharer_id][share.artist_name] += 1
    for event in snapshot.reactions:
        share = by_id.get(event.share_id)
        if share is not None and event.user_id in counts and share.artist_name:
            counts[event.user_id][share.artist_name] += 1
    return counts


def _ranked(counter: Counter) -> list[str]:
    return [name for name, _ in sorted(counter.items(), key=lambda kv: (-kv[1], kv[0]))]


def jaccard(a: set, b: set) -> float:
    union = a | b
    return len(a & b) / len(union) if union else 0.0


def taste_gravity(snapshot: GroupSnapshot) -> TasteGravityGraph:
    """Affinity graph: node mass from activity, links from shared-artist overlap."""
    artist_counts = _artist_counts(snapshot)
    names = {m.user_id: m.display_name or m.user_id for m in snapshot.members}

    listened_to: dict[str, set[str]] = {uid: set() for uid in snapshot.member_ids}
    sharer_of = {s.share_id: s.sharer_id for s in snapshot.shares}
    for event in snapshot.reactions:
        sharer = sharer_of.get(event.share_id)
        if sharer and sharer != event.user_id and event.user_id in listened_to:
            listened_to[event.user_id].add(sharer)

    activity = Counter(s.sharer_id for s in snapshot.shares)
    activity.update(e.user_id for e in snapshot.reactions)
    max_activity = max((activity.get(uid, 0) for uid in snapshot.member_ids), default=0)

    nodes = [
        GravityNode(
            user_id=m.user_id,
            name=names[m.user_id],
            img=m.avatar or None,
            mass=round(activity.get(m.user_id, 0) / max_activity, 4) if max_activity else 0.0,
            top_artists=_ranked(artist_counts[m.user_id])[:TOP_ARTISTS_PER_MEMBER],
        )
        for m in snapshot.members
    ]

    links = []
    for a, b in combinations(snapshot.member_ids, 2):
        set_a, set_b = set(artist_counts[a]), set(artist_counts[b])
        gravity = round(jaccard(set_a, set_b), 4)
        if gravity <= 0:
            continue
        shared = artist_counts[a] + artist_counts[b]
        overlap = _ranked(Counter({name: shared[name] for name in set_a & set_b}))
        reasons = [f"Shared Artists: {', '.join(overlap[:GRAVITY_REASON_ARTISTS])}"]
        if b in listened_to[a] and a in listened_to[b]:
            reasons.append("Mutual Listening")
        links.append(GravityLink(source=a, target=b, gravity=gravity, reasons=reasons))

    return TasteGravityGraph(nodes=nodes, links=links, insights=_gravity_insights(nodes, links, names))


def _gravity_insights(nodes: list[GravityNode], links: list[GravityLink], names: dict[str, str]) -> list[str]:
    if not links:
        return ["No shared artists yet. Keep sharing to discover the group's taste gravity."]

    insights = []
    strongest = sorted(links, key=lambda link: (-link.gravity, link.source, link.target))[0]
    insights.append(
        f"{names[strongest.source]} and {names[strongest.target]} have the strongest pull "
        f"({round_half_up(strongest.gravity * 100)}% artist overlap)."
    )
    center = sorted(nodes, key=lambda n: (-n.mass, n.user_id))[0]
    if center.mass > 0:
        insights.append(f"{center.name} is the group's center of gravity.")
    return insights
