"""Analytics queries for one group: the orchestration layer under the API.

Each query validates its arguments, loads its own snapshot from the event
store (raising NotFound for an unknown group before any computation), runs
the pure engine functions and returns JSON-ready dicts.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

import redis

from reaction_analytics.config.settings import RADAR_MIN_SAMPLES
from reaction_analytics.data_pipeline.event_store import get_group, load_snapshot
from reaction_analytics.engine.archetypes import (
    classify_influence_style,
    classify_listening_style,
)
from reaction_analytics.engine.errors import NotFound
from reaction_analytics.engine.group_aggregation import (
    activity_timeline,
    member_engagement,
    member_vibes,
    superlatives,
    taste_gravity,
)
from reaction_analytics.engine.latency_stats import mean
from reaction_analytics.engine.radar import build_radar_profiles
from reaction_analytics.engine.reflex_bucketer import bucket_members
from reaction_analytics.models.events import GroupSnapshot, ReactionEvent
from reaction_analytics.models.window import AnalysisWindow, ReflexMode

logger = logging.getLogger(__name__)


def _snapshot(
    group_id: str,
    time_range: str | AnalysisWindow,
    now: Optional[datetime],
    r: redis.Redis | None,
) -> GroupSnapshot:
    window = AnalysisWindow.parse(time_range)
    return load_snapshot(group_id, window, now=now, r=r)


def _reactions_for_mode(snapshot: GroupSnapshot, mode: str) -> dict[str, list[ReactionEvent]]:
    if mode == ReflexMode.SHARED:
        return snapshot.reactions_to_sharer()
    return snapshot.reactions_by_user()


# ── Group aggregation ────────────────────────────────────────────────────

def get_group_activity(
    group_id: str,
    time_range: str = "7d",
    now: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> list[dict]:
    """Activity waveform: one bucket per hour (24h) or day, zero-filled."""
    snap = _snapshot(group_id, time_range, now, r)
    return [b.to_dict() for b in activity_timeline(snap.shares, snap.window, snap.now)]


def get_member_stats(
    group_id: str,
    time_range: str = "all",
    now: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> list[dict]:
    snap = _snapshot(group_id, time_range, now, r)
    return [e.to_dict() for e in member_engagement(snap.members, snap.shares)]


def get_superlatives(
    group_id: str,
    time_range: str = "all",
    now: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> dict[str, dict]:
    """Hall of fame. Rules with no positive value are absent from the result."""
    snap = _snapshot(group_id, time_range, now, r)
    return {key: result.to_dict() for key, result in superlatives(snap).items()}


def get_member_vibes(
    group_id: str,
    time_range: str = "all",
    now: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> list[dict]:
    snap = _snapshot(group_id, time_range, now, r)
    return [v.to_dict() for v in member_vibes(snap)]


def get_taste_gravity(
    group_id: str,
    time_range: str = "7d",
    now: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> dict:
    snap = _snapshot(group_id, time_range, now, r)
    return taste_gravity(snap).to_dict()


# ── Listener reflex ──────────────────────────────────────────────────────

def _reflex_payload(snap: GroupSnapshot, mode: str) -> dict:
    reactions = _reactions_for_mode(snap, mode)
    profiles, summary = bucket_members(snap.members, reactions)
    window_ms = snap.window.duration_ms
    group_mean = mean(len(reactions.get(uid, [])) for uid in snap.member_ids)

    entries = []
    for profile in profiles:
        events = reactions.get(profile.user_id, [])
        if mode == ReflexMode.SHARED:
            archetype = classify_influence_style(profile.user_id, events, len(snap.members))
        else:
            archetype = classify_listening_style(profile.user_id, events, window_ms, group_mean)
        entries.append(profile.to_dict() | {"archetype": archetype.to_dict()})

    return {
        "mode": mode,
        "window": snap.window.value,
        "profiles": entries,
        "summary": summary.to_dict(),
    }


def get_listener_reflex(
    group_id: str,
    time_range: str = "30d",
    mode: str = ReflexMode.RECEIVED,
    now: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> dict:
    """Latency profiles, bucket summary and archetype for every member.

    ``received`` reads the reactions each member made (listening style);
    ``shared`` reads other members' reactions to each member's shares
    (influence style).
    """
    mode = ReflexMode.parse(mode)
    snap = _snapshot(group_id, time_range, now, r)
    return _reflex_payload(snap, mode)


def get_member_reflex(
    group_id: str,
    user_id: str,
    time_range: str = "30d",
    mode: str = ReflexMode.RECEIVED,
    now: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> dict:
    """Single member's reflex profile. NotFound if they are not in the group."""
    mode = ReflexMode.parse(mode)
    snap = _snapshot(group_id, time_range, now, r)
    if user_id not in snap.member_ids:
        raise NotFound("user", user_id)
    payload = _reflex_payload(snap, mode)
    return next(p for p in payload["profiles"] if p["userId"] == user_id)


def get_listener_reflex_radar(
    group_id: str,
    time_range: str = "30d",
    mode: str = ReflexMode.RECEIVED,
    now: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> dict:
    mode = ReflexMode.parse(mode)
    snap = _snapshot(group_id, time_range, now, r)
    profiles = build_radar_profiles(
        snap.members,
        _reactions_for_mode(snap, mode),
        snap.shares,
        snap.window.duration_ms,
    )
    return {
        "mode": mode,
        "window": snap.window.value,
        "minSamples": RADAR_MIN_SAMPLES,
        "profiles": [p.to_dict() for p in profiles],
    }


# ── Overview (fan-out / fan-in) ──────────────────────────────────────────

async def get_overview(
    group_id: str,
    time_range: str = "7d",
    mode: str = ReflexMode.RECEIVED,
    now: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> dict:
    """Run the group's independent analytics queries concurrently.

    Each query reads its own snapshot of the event store, so the sections of
    one response may reflect writes a few milliseconds apart. Consistency
    across sections is best-effort, not transactional.
    """
    window = AnalysisWindow.parse(time_range)
    mode = ReflexMode.parse(mode)
    await asyncio.to_thread(get_group, group_id, r)

    activity, members, hall_of_fame, reflex, radar = await asyncio.gather(
        asyncio.to_thread(get_group_activity, group_id, window, now, r),
        asyncio.to_thread(get_member_stats, group_id, window, now, r),
        asyncio.to_thread(get_superlatives, group_id, window, now, r),
        asyncio.to_thread(get_listener_reflex, group_id, window, mode, now, r),
        asyncio.to_thread(get_listener_reflex_radar, group_id, window, mode, now, r),
    )
    logger.info("Overview for group %s (%s, %s) assembled", group_id, window.value, mode)
    return {
        "window": window.value,
        "mode": mode,
        "activity": activity,
        "members": members,
        "superlatives": hall_of_fame,
        "reflex": reflex,
        "radar": radar,
    }
