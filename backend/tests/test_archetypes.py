"""Tests for the archetype classifier: taxonomies, precedence, titles."""

import itertools
import pytest
from datetime import datetime, timedelta, timezone

from reaction_analytics.engine.archetypes import (
    BALANCED_INFLUENCER,
    BALANCED_LISTENER,
    INFLUENCE_ARCHETYPES,
    INFLUENCE_RULES,
    LISTENING_ARCHETYPES,
    LISTENING_RULES,
    HabitCategory,
    InfluenceFeatures,
    Level,
    ListeningArchetype,
    ListeningFeatures,
    SpeedCategory,
    VolumeCategory,
    classify_influence_style,
    classify_listening_style,
    contextual_title,
    habit_category,
    day_of_week_pattern,
    influence_features,
    match_rule,
    speed_category,
    time_of_day_pattern,
    variant_index,
    volume_category,
)

HOUR = 3_600_000
DAY = 24 * HOUR
MINUTE = 60_000


@pytest.fixture
def spaced_reactions(make_reaction, frozen_now):
    """One reaction per day on separate shares, so nothing clusters."""
    def _factory(user_id, latencies):
        return [
            make_reaction(user_id, lat, share_id=f"s{i}", shared_at=frozen_now - timedelta(days=i + 1))
            for i, lat in enumerate(latencies)
        ]
    return _factory


# ═══════════════════════════════════════════════════════════════════════════
# Taxonomy structure
# ═══════════════════════════════════════════════════════════════════════════


class TestTaxonomy:
    def test_every_archetype_has_three_descriptions(self):
        everything = list(LISTENING_ARCHETYPES.values()) + list(INFLUENCE_ARCHETYPES.values())
        for archetype in everything + [BALANCED_LISTENER, BALANCED_INFLUENCER]:
            assert len(archetype.descriptions) == 3
            assert len(set(archetype.descriptions)) == 3
            assert set(archetype.badge) == {"icon", "color", "bgColor", "borderColor"}

    def test_listening_rules_cover_every_feature_vector(self):
        for speed, habit, volume in itertools.product(SpeedCategory, HabitCategory, VolumeCategory):
            key = match_rule(LISTENING_RULES, ListeningFeatures(speed, habit, volume))
            assert key is not None

    def test_influence_rules_may_fall_through(self):
        features = InfluenceFeatures(Level.MEDIUM, Level.MEDIUM, Level.MEDIUM, Level.MEDIUM, False)
        assert match_rule(INFLUENCE_RULES, features) is None

    def test_rule_order_is_precedence(self):
        """instant+batcher wins before the high-frequency rules are reached."""
        features = ListeningFeatures(SpeedCategory.INSTANT, HabitCategory.BATCHER, VolumeCategory.HIGH_FREQ)
        assert match_rule(LISTENING_RULES, features) == ListeningArchetype.LIGHTNING_COLLECTOR

    def test_listening_rule_order(self):
        ids = [key.value for _, key in LISTENING_RULES]
        assert ids[:3] == ["lightning_collector", "first_responder", "the_spark"]
        assert ids[-3:] == ["group_pulse", "sniper", "enthusiast"]


class TestVariants:
    def test_variant_from_first_character(self):
        assert variant_index("alice") == 1
        assert variant_index("bob") == 2
        assert variant_index("charlie") == 0

    def test_empty_id_uses_first_variant(self):
        assert variant_index("") == 0

    def test_same_member_same_description(self, spaced_reactions):
        events = spaced_reactions("alice", [HOUR, HOUR, HOUR])
        first = classify_listening_style("alice", events, 7 * DAY, 3)
        second = classify_listening_style("alice", events, 7 * DAY, 3)
        assert first.description == second.description
        archetype = LISTENING_ARCHETYPES[ListeningArchetype(first.archetype_id)]
        assert first.description == archetype.descriptions[1]


# ═══════════════════════════════════════════════════════════════════════════
# Listening style
# ═══════════════════════════════════════════════════════════════════════════


class TestListeningFeatures:
    @pytest.mark.parametrize("median_ms, expected", [
        (MINUTE, SpeedCategory.INSTANT),
        (MINUTE + 1, SpeedCategory.FAST),
        (HOUR, SpeedCategory.FAST),
        (HOUR + 1, SpeedCategory.STEADY),
        (12 * HOUR, SpeedCategory.STEADY),
        (12 * HOUR + 1, SpeedCategory.DELAYED),
    ])
    def test_speed_boundaries(self, median_ms, expected):
        assert speed_category(median_ms) == expected

    def test_volume_relative_to_group(self):
        assert volume_category(6, 4) == VolumeCategory.HIGH_FREQ
        assert volume_category(1, 4) == VolumeCategory.SELECTIVE
        assert volume_category(4, 4) == VolumeCategory.CASUAL

    def test_volume_with_empty_group_mean(self):
        assert volume_category(3, 0) == VolumeCategory.CASUAL

    def test_mid_arc_without_bursts_is_erratic(self, frozen_now):
        # CV 1/3 over 7d puts the arc near 72 degrees, between 30 and 150
        reacted_at = [frozen_now - timedelta(days=3), frozen_now - timedelta(days=1)]
        assert habit_category([HOUR, 2 * HOUR], reacted_at, 7 * DAY) == HabitCategory.ERRATIC

    def test_mid_arc_with_burst_is_batcher(self, frozen_now):
        reacted_at = [frozen_now, frozen_now + timedelta(minutes=1), frozen_now + timedelta(minutes=2)]
        assert habit_category([HOUR, 2 * HOUR, HOUR], reacted_at, 7 * DAY) == HabitCategory.BATCHER


class TestClassifyListening:
    def test_exactly_one_hour_is_fast(self, spaced_reactions):
        events = spaced_reactions("alice", [HOUR, HOUR, HOUR])
        result = classify_listening_style("alice", events, 7 * DAY, 3)
        assert result.archetype_id == "ritualist"

    def test_just_over_one_hour_is_steady(self, spaced_reactions):
        events = spaced_reactions("alice", [HOUR + 1, HOUR + 1, HOUR + 1])
        result = classify_listening_style("alice", events, 7 * DAY, 3)
        assert result.archetype_id == "clockwork_listener"

    def test_zero_reactions_fall_back(self):
        result = classify_listening_style("dana", [], 7 * DAY, 3)
        assert result.archetype_id == "balanced_listener"
        assert result.title == "The Balanced Listener"
        assert result.description == BALANCED_LISTENER.describe("dana")

    def test_burst_listener_is_batcher(self, make_reaction):
        """Instant reactions, varied latency, all within one cluster window."""
        events = [make_reaction("alice", lat, share_id=f"s{lat}") for lat in (1_000, 30_000, 59_000)]
        result = classify_listening_style("alice", events, 7 * DAY, 3)
        assert result.archetype_id == "lightning_collector"

    def test_scattered_instant_listener_is_erratic(self, spaced_reactions):
        events = spaced_reactions("alice", [1_000, 30_000, 59_000])
        result = classify_listening_style("alice", events, 7 * DAY, 3)
        assert result.archetype_id == "the_spark"

    def test_result_dict(self, spaced_reactions):
        data = classify_listening_style("alice", spaced_reactions("alice", [HOUR]), 2 * DAY, 1).to_dict()
        assert set(data) == {"id", "title", "description", "badge"}


# ═══════════════════════════════════════════════════════════════════════════
# Influence style
# ═══════════════════════════════════════════════════════════════════════════


class TestClassifyInfluence:
    def test_single_instant_reaction_is_main_stage(self, make_reaction):
        """Consensus forces high gravity even with one sample."""
        result = classify_influence_style("bob", [make_reaction("alice", 20_000)], group_size=3)
        assert result.archetype_id == "main_stage"

    def test_consensus_forces_high_gravity(self):
        features = influence_features([20 * HOUR], group_size=3)
        assert features.has_consensus is True
        assert features.gravity == Level.HIGH

    def test_slow_but_wide_reach_is_slow_burn(self, spaced_reactions):
        events = spaced_reactions("x", [13 * HOUR, 20 * HOUR, 25 * HOUR, 30 * HOUR])
        assert classify_influence_style("bob", events, group_size=4).archetype_id == "slow_burn"

    def test_fast_but_narrow_reach_is_flash_point(self, spaced_reactions):
        events = spaced_reactions("x", [m * MINUTE for m in (1, 30, 50, 55, 180)])
        assert classify_influence_style("bob", events, group_size=30).archetype_id == "flash_point"

    def test_spread_out_popular_is_discovery_zone(self, spaced_reactions):
        events = spaced_reactions("x", [1_000, 1_000, 1_000, 100 * HOUR])
        assert classify_influence_style("bob", events, group_size=7).archetype_id == "discovery_zone"

    def test_middling_profile_falls_back(self, spaced_reactions):
        events = spaced_reactions("x", [2 * HOUR, 4 * HOUR, 8 * HOUR, 10 * HOUR])
        result = classify_influence_style("bob", events, group_size=10)
        assert result.archetype_id == "balanced_influencer"
        assert result.title == "The Balanced Influencer"

    def test_no_reactions_fall_back(self):
        assert classify_influence_style("bob", [], group_size=3).archetype_id == "balanced_influencer"

    def test_reach_percent_is_capped(self):
        features = influence_features([1_000] * 10, group_size=2)
        assert features.magnetism == Level.HIGH
        assert features.volume == Level.HIGH


# ═══════════════════════════════════════════════════════════════════════════
# Contextual titles
# ═══════════════════════════════════════════════════════════════════════════


def _at(day, hour, minute=0):
    return datetime(2026, 2, day, hour, minute, tzinfo=timezone.utc)


class TestPatterns:
    def test_night_pattern(self):
        stamps = [_at(14, 23), _at(14, 23, 30), _at(15, 2)]
        assert time_of_day_pattern(stamps, timezone.utc)["night"] is True

    def test_patterns_follow_timezone(self):
        stamps = [_at(14, 20), _at(14, 20, 30)]
        tokyo = timezone(timedelta(hours=9))
        assert time_of_day_pattern(stamps, timezone.utc)["night"] is False
        assert time_of_day_pattern(stamps, tokyo)["night"] is True

    def test_empty_patterns(self):
        assert time_of_day_pattern([], timezone.utc) == {"night": False, "afternoon": False, "morning": False}
        assert day_of_week_pattern([], timezone.utc)["dominant_day"] is None

    def test_weekend_and_dominant_day(self):
        stamps = [_at(14, 10), _at(14, 18), _at(11, 9)]   # Sat, Sat, Wed
        pattern = day_of_week_pattern(stamps, timezone.utc)
        assert pattern["weekend"] is True
        assert pattern["dominant_day"] == "Saturday"


class TestContextualTitle:
    def test_weekend_archivist_becomes_sunday_regular(self):
        archetype = LISTENING_ARCHETYPES[ListeningArchetype.ARCHIVIST]
        features = ListeningFeatures(SpeedCategory.STEADY, HabitCategory.BATCHER, VolumeCategory.CASUAL)
        stamps = [_at(14, 10), _at(15, 11), _at(8, 12)]
        assert contextual_title(archetype, features, stamps, 30 * DAY, timezone.utc) == "The Sunday Regular"

    def test_weekend_warrior_on_weekends(self):
        archetype = LISTENING_ARCHETYPES[ListeningArchetype.WEEKEND_WARRIOR]
        features = ListeningFeatures(SpeedCategory.DELAYED, HabitCategory.BATCHER, VolumeCategory.CASUAL)
        stamps = [_at(14, 10), _at(15, 11)]
        assert contextual_title(archetype, features, stamps, 30 * DAY, timezone.utc) == "The Weekend Archivist"

    def test_ritualist_named_after_dominant_day(self):
        archetype = LISTENING_ARCHETYPES[ListeningArchetype.RITUALIST]
        features = ListeningFeatures(SpeedCategory.FAST, HabitCategory.RITUALIST, VolumeCategory.CASUAL)
        stamps = [_at(11, 9), _at(11, 10), _at(4, 9)]
        assert contextual_title(archetype, features, stamps, 7 * DAY, timezone.utc) == "The Wednesday Regular"

    def test_short_window_night_batcher(self):
        archetype = LISTENING_ARCHETYPES[ListeningArchetype.ARCHIVIST]
        features = ListeningFeatures(SpeedCategory.STEADY, HabitCategory.BATCHER, VolumeCategory.CASUAL)
        stamps = [_at(14, 23), _at(14, 23, 30), _at(15, 2)]
        assert contextual_title(archetype, features, stamps, 12 * HOUR, timezone.utc) == "The Midnight Archivist"

    def test_exactly_one_day_gets_no_hour_framing(self):
        archetype = LISTENING_ARCHETYPES[ListeningArchetype.ARCHIVIST]
        features = ListeningFeatures(SpeedCategory.STEADY, HabitCategory.BATCHER, VolumeCategory.CASUAL)
        stamps = [_at(14, 23), _at(14, 23, 30), _at(15, 2)]
        assert contextual_title(archetype, features, stamps, DAY, timezone.utc) == "The Archivist"

    def test_title_only_changes_label(self, make_reaction):
        """The matched archetype id stays the same when the title is refined."""
        events = [
            make_reaction("alice", HOUR, share_id=f"s{d}", shared_at=_at(d, 8))
            for d in (4, 11)
        ]
        result = classify_listening_style("alice", events, 7 * DAY, 2, tz=timezone.utc)
        assert result.archetype_id == "ritualist"
        assert result.title == "The Wednesday Regular"
