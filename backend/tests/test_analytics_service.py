"""Tests for the analytics service layer against a seeded fakeredis group."""

import pytest
from datetime import timedelta
from unittest.mock import patch

from reaction_analytics.engine.errors import InvalidWindow, NotFound
from reaction_analytics.services import analytics_service as svc


# ═══════════════════════════════════════════════════════════════════════════
# End-to-end scenario
# ═══════════════════════════════════════════════════════════════════════════


class TestTrioScenario:
    """Alice shares two tracks (~30s reactions), Bob one (instant for all)."""

    def test_dj_is_alice(self, r, seeded_group, frozen_now):
        result = svc.get_superlatives(seeded_group, "all", now=frozen_now, r=r)
        assert result["dj"]["winningUserId"] == "alice"

    def test_trendsetter_has_most_likes_received(self, r, seeded_group, frozen_now):
        result = svc.get_superlatives(seeded_group, "all", now=frozen_now, r=r)
        assert result["trendsetter"]["winningUserId"] == "alice"
        assert result["trendsetter"]["value"] == 3

    def test_bob_is_main_stage(self, r, seeded_group, frozen_now):
        reflex = svc.get_listener_reflex(seeded_group, "7d", "shared", now=frozen_now, r=r)
        bob = next(p for p in reflex["profiles"] if p["userId"] == "bob")
        assert bob["reactionCount"] == 2
        assert bob["archetype"]["id"] == "main_stage"

    def test_shared_mode_excludes_self_reactions(self, r, seeded_group, frozen_now):
        reflex = svc.get_listener_reflex(seeded_group, "7d", "shared", now=frozen_now, r=r)
        counts = {p["userId"]: p["reactionCount"] for p in reflex["profiles"]}
        assert counts == {"alice": 4, "bob": 2, "charlie": 0}
        charlie = next(p for p in reflex["profiles"] if p["userId"] == "charlie")
        assert charlie["category"] is None
        assert charlie["archetype"]["id"] == "balanced_influencer"

    def test_received_mode_profiles_listening(self, r, seeded_group, frozen_now):
        reflex = svc.get_listener_reflex(seeded_group, "7d", "received", now=frozen_now, r=r)
        assert reflex["mode"] == "received"
        assert reflex["window"] == "7d"
        counts = {p["userId"]: p["reactionCount"] for p in reflex["profiles"]}
        assert counts == {"alice": 1, "bob": 2, "charlie": 3}
        assert reflex["summary"]["instantCount"] == 3
        assert reflex["summary"]["groupMedianMs"] == 27_500

    def test_radar_profiles(self, r, seeded_group, frozen_now):
        radar = svc.get_listener_reflex_radar(seeded_group, "7d", now=frozen_now, r=r)
        assert radar["minSamples"] == 3
        profiles = {p["userId"]: p for p in radar["profiles"]}
        assert profiles["charlie"]["axes"]["volume"] == 100
        assert profiles["charlie"]["lowData"] is False
        assert profiles["alice"]["lowData"] is True

    def test_member_stats(self, r, seeded_group, frozen_now):
        stats = {m["userId"]: m for m in svc.get_member_stats(seeded_group, now=frozen_now, r=r)}
        assert stats["charlie"]["shareCount"] == 0
        assert stats["alice"]["likesReceived"] == 3

    def test_activity_timeline(self, r, seeded_group, frozen_now):
        buckets = svc.get_group_activity(seeded_group, "7d", now=frozen_now, r=r)
        assert len(buckets) == 8
        assert sum(b["shares"] for b in buckets) == 3
        assert sum(b["activity"] for b in buckets) == 3 + 4 + 6

    def test_vibes_and_gravity(self, r, seeded_group, frozen_now):
        vibes = svc.get_member_vibes(seeded_group, now=frozen_now, r=r)
        assert vibes[0]["userId"] == "alice"
        graph = svc.get_taste_gravity(seeded_group, "7d", now=frozen_now, r=r)
        assert len(graph["nodes"]) == 3
        assert graph["links"]

    def test_member_reflex(self, r, seeded_group, frozen_now):
        profile = svc.get_member_reflex(seeded_group, "charlie", "7d", now=frozen_now, r=r)
        assert profile["reactionCount"] == 3

    def test_group_mean_counts_directory_members_only(self, r, seeded_group, make_share, frozen_now):
        # Five listens from someone outside the directory must not raise the mean
        make_share("alice", age=timedelta(hours=3), listens=[("mallory", 10 * i) for i in range(1, 6)]).to_redis(r)
        with patch.object(svc, "classify_listening_style", wraps=svc.classify_listening_style) as spy:
            reflex = svc.get_listener_reflex(seeded_group, "7d", "received", now=frozen_now, r=r)
        assert {p["userId"] for p in reflex["profiles"]} == {"alice", "bob", "charlie"}
        assert [c.args[3] for c in spy.call_args_list] == [2.0, 2.0, 2.0]


# ═══════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════


class TestErrors:
    def test_unknown_group(self, r, frozen_now):
        with pytest.raises(NotFound):
            svc.get_group_activity("missing", "7d", now=frozen_now, r=r)

    def test_invalid_window(self, r, seeded_group):
        with pytest.raises(InvalidWindow) as exc:
            svc.get_group_activity(seeded_group, "1y", r=r)
        assert exc.value.status_code == 400

    def test_window_checked_before_group(self, r):
        with pytest.raises(InvalidWindow):
            svc.get_superlatives("missing", "forever", r=r)

    def test_invalid_mode(self, r, seeded_group):
        with pytest.raises(InvalidWindow):
            svc.get_listener_reflex(seeded_group, "7d", "sideways", r=r)

    def test_unknown_member(self, r, seeded_group, frozen_now):
        with pytest.raises(NotFound) as exc:
            svc.get_member_reflex(seeded_group, "mallory", "7d", now=frozen_now, r=r)
        assert exc.value.kind == "user"


# ═══════════════════════════════════════════════════════════════════════════
# Overview fan-out
# ═══════════════════════════════════════════════════════════════════════════


class TestOverview:
    @pytest.mark.asyncio
    async def test_overview_sections(self, r, seeded_group, frozen_now):
        overview = await svc.get_overview(seeded_group, "7d", now=frozen_now, r=r)
        assert set(overview) == {"window", "mode", "activity", "members", "superlatives", "reflex", "radar"}
        assert overview["superlatives"]["dj"]["winningUserId"] == "alice"
        assert len(overview["reflex"]["profiles"]) == 3

    @pytest.mark.asyncio
    async def test_overview_unknown_group(self, r, frozen_now):
        with pytest.raises(NotFound):
            await svc.get_overview("missing", "7d", now=frozen_now, r=r)

    @pytest.mark.asyncio
    async def test_overview_invalid_window(self, r):
        with pytest.raises(InvalidWindow):
            await svc.get_overview("missing", "2w", r=r)
