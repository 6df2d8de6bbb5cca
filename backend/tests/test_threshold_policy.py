"""Tests for the windowed threshold policy."""

import pytest

from reaction_analytics.engine.threshold_policy import (
    DAY_MS,
    HOUR_MS,
    MAX_ARC_DEGREES,
    MIN_ARC_DEGREES,
    arc_span_degrees,
    cluster_window_for,
    normalized_variance,
    thresholds_for,
)


class TestThresholdsFor:
    def test_short_window_is_strict(self):
        t = thresholds_for(DAY_MS)
        assert (t.consistency_threshold_deg, t.erratic_threshold_deg, t.normalization_factor) == (25, 120, 1.5)

    def test_default_range(self):
        for window in (48 * HOUR_MS, 3 * DAY_MS, 7 * DAY_MS):
            t = thresholds_for(window)
            assert (t.consistency_threshold_deg, t.erratic_threshold_deg, t.normalization_factor) == (30, 150, 1.0)

    def test_long_window_is_lenient(self):
        t = thresholds_for(7 * DAY_MS + 1)
        assert (t.consistency_threshold_deg, t.erratic_threshold_deg, t.normalization_factor) == (50, 200, 0.7)

    def test_thresholds_are_frozen(self):
        t = thresholds_for(DAY_MS)
        with pytest.raises(AttributeError):
            t.consistency_threshold_deg = 99


class TestClusterWindow:
    def test_halved_under_a_day(self):
        assert cluster_window_for(23 * HOUR_MS) == 5 * 60 * 1000

    def test_base_at_one_day(self):
        assert cluster_window_for(DAY_MS) == 10 * 60 * 1000

    def test_doubled_over_a_week(self):
        assert cluster_window_for(30 * DAY_MS) == 20 * 60 * 1000

    def test_carried_on_thresholds(self):
        assert thresholds_for(30 * DAY_MS).cluster_window_ms == 20 * 60 * 1000


class TestArcSpan:
    def test_no_samples(self):
        assert arc_span_degrees([], 7 * DAY_MS) == 0

    def test_single_sample_is_minimum_arc(self):
        assert arc_span_degrees([1234], 7 * DAY_MS) == MIN_ARC_DEGREES

    def test_constant_samples_are_minimum_arc(self):
        assert arc_span_degrees([5, 5, 5], 7 * DAY_MS) == MIN_ARC_DEGREES

    def test_variance_scales_arc(self):
        """cv 0.4 with factor 1.0 → variance 0.2 → 20 + 0.2 * 310."""
        samples = [2, 4, 4, 4, 5, 5, 7, 9]
        assert normalized_variance(samples, 7 * DAY_MS) == pytest.approx(0.2)
        assert arc_span_degrees(samples, 7 * DAY_MS) == pytest.approx(82.0)

    def test_variance_capped_at_max_arc(self):
        assert arc_span_degrees([0, 0, 0, 1000], DAY_MS) == pytest.approx(MAX_ARC_DEGREES)

    def test_longer_windows_shrink_the_arc(self):
        samples = [2, 4, 4, 4, 5, 5, 7, 9]
        assert arc_span_degrees(samples, 30 * DAY_MS) < arc_span_degrees(samples, DAY_MS)
