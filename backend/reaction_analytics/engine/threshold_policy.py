"""Windowed threshold policy: pure functions of the analysis window length.

Short windows are judged more strictly than long ones: a few hours of data
cannot support the same tolerance for spread as three months.

    window        consistency  erratic  normalization  cluster window
    < 24h         25°          120°     1.5            5 min
    24h – 48h     25°          120°     1.5            10 min
    48h – 7d      30°          150°     1.0            10 min
    > 7d          50°          200°     0.7            20 min
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from reaction_analytics.engine.latency_stats import coefficient_of_variation

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS

STRICT_WINDOW_MS = 48 * HOUR_MS
SHORT_WINDOW_MS = DAY_MS
LENIENT_WINDOW_MS = 7 * DAY_MS

BASE_CLUSTER_WINDOW_MS = 10 * 60 * 1000

MIN_ARC_DEGREES = 20.0
MAX_ARC_DEGREES = 330.0


@dataclass(frozen=True)
class WindowThresholds:
    consistency_threshold_deg: float   # arc span below this ⇒ ritualist
    erratic_threshold_deg: float       # arc span above this ⇒ erratic
    normalization_factor: float        # CV → 0-1 variance scaling
    cluster_window_ms: float           # max span of a 3-reaction burst


def thresholds_for(window_ms: float) -> WindowThresholds:
    """Return the threshold set for an analysis window of ``window_ms``."""
    if window_ms < STRICT_WINDOW_MS:
        consistency, erratic, factor = 25.0, 120.0, 1.5
    elif window_ms > LENIENT_WINDOW_MS:
        consistency, erratic, factor = 50.0, 200.0, 0.7
    else:
        consistency, erratic, factor = 30.0, 150.0, 1.0

    return WindowThresholds(
        consistency_threshold_deg=consistency,
        erratic_threshold_deg=erratic,
        normalization_factor=factor,
        cluster_window_ms=cluster_window_for(window_ms),
    )


def cluster_window_for(window_ms: float) -> float:
    """Base 10 minutes, halved under 24h, doubled over 7 days."""
    if window_ms < SHORT_WINDOW_MS:
        return BASE_CLUSTER_WINDOW_MS * 0.5
    if window_ms > LENIENT_WINDOW_MS:
        return BASE_CLUSTER_WINDOW_MS * 2
    return float(BASE_CLUSTER_WINDOW_MS)


def normalized_variance(samples: Iterable[float], window_ms: float) -> float:
    """Coefficient of variation mapped to 0-1, scaled by the window factor."""
    values = list(samples)
    if len(values) <= 1:
        return 0.0
    cv = coefficient_of_variation(values)
    factor = thresholds_for(window_ms).normalization_factor
    return min((cv / 2) * factor, 1.0)


def arc_span_degrees(samples: Iterable[float], window_ms: float) -> float:
    """Project the variance score onto a 20°–330° arc.

    0 for no samples and the minimum arc for a single sample.
    """
    values = list(samples)
    if not values:
        return 0.0
    if len(values) == 1:
        return MIN_ARC_DEGREES
    variance = normalized_variance(values, window_ms)
    return MIN_ARC_DEGREES + variance * (MAX_ARC_DEGREES - MIN_ARC_DEGREES)
