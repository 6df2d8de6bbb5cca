"""Latency statistics: pure functions, no Redis dependency.

Every routine accepts 0, 1 or N latency samples (ms from share creation to
reaction) and degrades to a neutral value instead of raising.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable, Sequence

import numpy as np

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS

# Fastest share of a sample set's range that counts as "instant"
CONSENSUS_RANGE_FRACTION = 0.1
CONSENSUS_MIN_SHARE = 0.5

# Slowest fraction dropped by the trimmed median
TRIM_FRACTION = 0.2

# Absolute reaction-speed cutoffs (ms). Upper bounds are inclusive.
SPEED_CUTOFFS_MS: tuple[int, int, int] = (MINUTE_MS, HOUR_MS, 12 * HOUR_MS)


def tier_for(value_ms: float, labels: Sequence[str],
             cutoffs_ms: Sequence[float] = SPEED_CUTOFFS_MS) -> str:
    """Map a latency onto ``labels`` using inclusive upper cutoffs.

    ``labels`` has one more entry than ``cutoffs_ms``; a value exactly on a
    cutoff belongs to the faster tier (60_000 ms is still the first tier).
    """
    for label, cutoff in zip(labels, cutoffs_ms):
        if value_ms <= cutoff:
            return label
    return labels[len(cutoffs_ms)]


def round_half_up(value: float) -> int:
    """Nearest integer with halves rounded up (12.5 -> 13), unlike ``round``."""
    return math.floor(value + 0.5)


def median(samples: Iterable[float]) -> float:
    values = list(samples)
    if not values:
        return 0.0
    return float(np.median(np.asarray(values, dtype=float)))


def mean(samples: Iterable[float]) -> float:
    values = list(samples)
    if not values:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=float)))


def percentile(samples: Iterable[float], q: float) -> float:
    """Linear-interpolated percentile (q in 0-100). 0 for an empty set."""
    values = list(samples)
    if not values:
        return 0.0
    return float(np.percentile(np.asarray(values, dtype=float), q))


def interquartile_range(samples: Iterable[float]) -> float:
    values = list(samples)
    return percentile(values, 75) - percentile(values, 25)


def standard_deviation(samples: Iterable[float]) -> float:
    """Population standard deviation. 0 for N <= 1."""
    values = list(samples)
    if len(values) <= 1:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float)))


def coefficient_of_variation(samples: Iterable[float]) -> float:
    """stdDev / mean. 0 for N <= 1; 1 when the mean is 0 (N > 1)."""
    values = list(samples)
    if len(values) <= 1:
        return 0.0
    mu = mean(values)
    if mu == 0:
        return 1.0
    return standard_deviation(values) / mu


def trimmed_median(samples: Iterable[float]) -> float:
    """Median after dropping the slowest 20% (floor) of samples.

    Keeps a handful of very slow "ghost" reactors from dragging the central
    tendency. Falls back to the full-set median if nothing survives.
    """
    values = sorted(samples)
    if not values:
        return 0.0
    trim_count = math.floor(len(values) * TRIM_FRACTION)
    trimmed = values[: len(values) - trim_count]
    if not trimmed:
        return median(values)
    return median(trimmed)


def has_consensus(samples: Iterable[float]) -> bool:
    """True when at least half the samples sit in the fastest 10% of the range.

    Detects an instant mass reaction even when a minority straggles.
    """
    values = sorted(samples)
    n = len(values)
    if n == 0:
        return False
    lo, hi = values[0], values[-1]
    spread = hi - lo
    if n == 1 or spread == 0:
        return True
    threshold = lo + spread * CONSENSUS_RANGE_FRACTION
    fast = sum(1 for v in values if v <= threshold)
    return fast / n >= CONSENSUS_MIN_SHARE


# ── Burst detection (chronological, not latency-ordered) ────────────────

def _epoch_ms(ts: datetime | float) -> float:
    if isinstance(ts, datetime):
        return ts.timestamp() * 1000
    return float(ts)


def clustered_triples(timestamps: Iterable[datetime | float], cluster_window_ms: float) -> int:
    """Count adjacent reaction triples spanning at most ``cluster_window_ms``."""
    ordered = sorted(_epoch_ms(t) for t in timestamps)
    return sum(
        1 for i in range(len(ordered) - 2)
        if ordered[i + 2] - ordered[i] <= cluster_window_ms
    )


def has_clustered_reactions(timestamps: Iterable[datetime | float], cluster_window_ms: float) -> bool:
    """True if any three chronologically adjacent reactions form one burst."""
    return clustered_triples(timestamps, cluster_window_ms) > 0
