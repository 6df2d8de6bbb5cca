"""Reflex Bucketer: per-member latency profiles and fixed speed buckets.

Bucket cutoffs are absolute and do not depend on the analysis window:

    instant   <= 1 min
    quick     <= 1 h
    slow      <= 12 h
    long_tail  > 12 h

A member with no reactions in the window keeps a profile (reaction_count 0,
category None) but is left out of every bucket count.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from reaction_analytics.engine.latency_stats import (
    coefficient_of_variation,
    median,
    percentile,
    standard_deviation,
    tier_for,
    trimmed_median,
)
from reaction_analytics.models.events import Member, ReactionEvent
from reaction_analytics.models.results import ReflexSummary, UserLatencyProfile

BUCKETS: tuple[str, str, str, str] = ("instant", "quick", "slow", "long_tail")


def build_profile(
    user_id: str,
    latencies_ms: Iterable[float],
    display_name: str = "",
) -> UserLatencyProfile:
    """Compute a UserLatencyProfile from one member's reaction latencies."""
    samples = list(latencies_ms)
    if not samples:
        return UserLatencyProfile(user_id=user_id, display_name=display_name)

    med = median(samples)
    return UserLatencyProfile(
        user_id=user_id,
        display_name=display_name,
        reaction_count=len(samples),
        median_ms=med,
        p25_ms=percentile(samples, 25),
        p75_ms=percentile(samples, 75),
        std_dev_ms=standard_deviation(samples),
        coefficient_of_variation=coefficient_of_variation(samples),
        trimmed_median_ms=trimmed_median(samples),
        category=tier_for(med, BUCKETS),
    )


def bucket_members(
    members: Iterable[Member],
    reactions_by_user: Mapping[str, list[ReactionEvent]],
) -> tuple[list[UserLatencyProfile], ReflexSummary]:
    """Profile every member and summarise the group.

    Returns (profiles in member order, summary). The group median is taken
    over every reaction latency in the window, not over member medians.
    """
    profiles: list[UserLatencyProfile] = []
    all_latencies: list[float] = []
    counts = {b: 0 for b in BUCKETS}

    for member in members:
        latencies = [e.latency_ms for e in reactions_by_user.get(member.user_id, [])]
        profile = build_profile(member.user_id, latencies, member.display_name)
        profiles.append(profile)
        all_latencies.extend(latencies)
        if profile.category is not None:
            counts[profile.category] += 1

    summary = ReflexSummary(
        group_median_ms=median(all_latencies),
        instant_count=counts["instant"],
        bucket_counts=counts,
    )
    return profiles, summary
