"""Radar Profile Normalizer: five-axis comparative scores, 0-100 per cohort.

Raw metrics per member:

    speed        1 / (1 + median latency in seconds)
    consistency  1 / (1 + IQR in seconds)
    recency      mean recency weight of the shares reacted to
    volume       reaction count
    burstiness   clustered adjacent triples / (n - 2)

Each axis is divided by the cohort maximum and scaled to 0-100, so scores
only compare members of the same group and window.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence

from reaction_analytics.config.settings import RADAR_MIN_SAMPLES
from reaction_analytics.engine.latency_stats import (
    clustered_triples,
    interquartile_range,
    median,
    round_half_up,
)
from reaction_analytics.engine.threshold_policy import cluster_window_for
from reaction_analytics.models.events import Member, ReactionEvent, Share
from reaction_analytics.models.results import RadarProfile

logger = logging.getLogger(__name__)

AXES = ("speed", "consistency", "recency", "volume", "burstiness")


def recency_weights(shares: Iterable[Share]) -> dict[str, float]:
    """Weight each share by its age rank: oldest 1/n, newest 1."""
    ordered = sorted(shares, key=lambda s: (s.created_at, s.share_id))
    n = len(ordered)
    return {s.share_id: (rank + 1) / n for rank, s in enumerate(ordered)}


def raw_metrics(
    events: Sequence[ReactionEvent],
    weights: Mapping[str, float],
    cluster_window_ms: float,
) -> dict[str, float]:
    if not events:
        return {axis: 0.0 for axis in AXES} | {"median_s": 0.0, "iqr_s": 0.0}

    latencies = [e.latency_ms for e in events]
    median_s = median(latencies) / 1000
    iqr_s = interquartile_range(latencies) / 1000
    n = len(events)

    burstiness = 0.0
    if n >= 3:
        burstiness = clustered_triples([e.reacted_at for e in events], cluster_window_ms) / (n - 2)

    return {
        "speed": 1 / (1 + median_s),
        "consistency": 1 / (1 + iqr_s),
        "recency": sum(weights.get(e.share_id, 0.0) for e in events) / n,
        "volume": float(n),
        "burstiness": burstiness,
        "median_s": median_s,
        "iqr_s": iqr_s,
    }


def normalize(value: float, cohort_max: float) -> int:
    if cohort_max <= 0:
        return 0
    return max(0, min(100, round_half_up(value / cohort_max * 100)))


def build_radar_profiles(
    members: Iterable[Member],
    reactions_by_member: Mapping[str, list[ReactionEvent]],
    shares: Iterable[Share],
    window_ms: float,
    min_samples: int = RADAR_MIN_SAMPLES,
) -> list[RadarProfile]:
    """One RadarProfile per member, in member order.

    ``reactions_by_member`` decides the mode: reactions each member made, or
    reactions others made to each member's shares.
    """
    weights = recency_weights(shares)
    cluster_window_ms = cluster_window_for(window_ms)

    members = list(members)
    raws = {
        m.user_id: raw_metrics(reactions_by_member.get(m.user_id, []), weights, cluster_window_ms)
        for m in members
    }
    cohort_max = {
        axis: max((raw[axis] for raw in raws.values()), default=0.0)
        for axis in AXES
    }

    profiles = []
    for m in members:
        raw = raws[m.user_id]
        count = int(raw["volume"])
        profiles.append(RadarProfile(
            user_id=m.user_id,
            axes={axis: normalize(raw[axis], cohort_max[axis]) for axis in AXES},
            reaction_count=count,
            median_latency_seconds=raw["median_s"],
            iqr_seconds=raw["iqr_s"],
            low_data=count < min_samples,
        ))

    logger.debug("Built %d radar profiles (window %d ms)", len(profiles), window_ms)
    return profiles
