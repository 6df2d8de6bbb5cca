"""Archetype Classifier: rule-based listening-style and influence labels.

Two closed taxonomies share one mechanism:

1. Listening style: how a member reacts to the group's shares
   (speed × habit × volume).
2. Influence style: how the group reacts to a member's shares
   (gravity × urgency × magnetism × volume, plus consensus).

Each taxonomy is an ordered list of ``(predicate, archetype)`` pairs scanned
top-to-bottom in a single pass. The first match wins; order is precedence.
A predicate-free fallback closes every list, so classification is total.

Description variants are picked by ``ord(user_id[0]) % 3``: the same member
always reads the same phrasing for a stable profile.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence, TypeVar
from zoneinfo import ZoneInfo

from reaction_analytics.config.settings import REPORT_TIMEZONE
from reaction_analytics.engine.latency_stats import (
    SPEED_CUTOFFS_MS,
    coefficient_of_variation,
    has_clustered_reactions,
    has_consensus,
    median,
    tier_for,
    trimmed_median,
)
from reaction_analytics.engine.threshold_policy import (
    DAY_MS,
    arc_span_degrees,
    thresholds_for,
)
from reaction_analytics.models.events import ReactionEvent
from reaction_analytics.models.results import ArchetypeResult

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Feature vocabulary
# ═══════════════════════════════════════════════════════════════════════════

class SpeedCategory(str, Enum):
    INSTANT = "instant"
    FAST = "fast"
    STEADY = "steady"
    DELAYED = "delayed"


class HabitCategory(str, Enum):
    RITUALIST = "ritualist"
    BATCHER = "batcher"
    ERRATIC = "erratic"


class VolumeCategory(str, Enum):
    HIGH_FREQ = "high_freq"
    CASUAL = "casual"
    SELECTIVE = "selective"


class Level(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class ListeningFeatures:
    speed: SpeedCategory
    habit: HabitCategory
    volume: VolumeCategory


@dataclass(frozen=True)
class InfluenceFeatures:
    gravity: Level
    urgency: Level
    magnetism: Level
    volume: Level
    has_consensus: bool


# ═══════════════════════════════════════════════════════════════════════════
# Archetype definitions
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Archetype:
    archetype_id: str
    title: str
    descriptions: tuple[str, str, str]
    badge: dict

    def describe(self, user_id: str) -> str:
        return self.descriptions[variant_index(user_id)]

    def result(self, user_id: str, title: Optional[str] = None) -> ArchetypeResult:
        return ArchetypeResult(
            archetype_id=self.archetype_id,
            title=title or self.title,
            description=self.describe(user_id),
            badge=dict(self.badge),
        )


def variant_index(user_id: str) -> int:
    """Stable 0-2 description index for a member."""
    if not user_id:
        return 0
    return ord(user_id[0]) % 3


def _badge(icon: str, tone: str) -> dict:
    return {
        "icon": icon,
        "color": f"text-{tone}-400",
        "bgColor": f"bg-{tone}-500/20",
        "borderColor": f"border-{tone}-500/30",
    }


_PRIMARY_BADGE = {
    "icon": "flame",
    "color": "text-primary",
    "bgColor": "bg-primary/20",
    "borderColor": "border-primary/30",
}


def _muted_badge(icon: str) -> dict:
    return {
        "icon": icon,
        "color": "text-muted-foreground",
        "bgColor": "bg-muted/20",
        "borderColor": "border-border",
    }


class ListeningArchetype(str, Enum):
    LIGHTNING_COLLECTOR = "lightning_collector"
    FIRST_RESPONDER = "first_responder"
    THE_SPARK = "the_spark"
    COLLECTOR = "collector"
    RITUALIST = "ritualist"
    WANDERER = "wanderer"
    ARCHIVIST = "archivist"
    CLOCKWORK_LISTENER = "clockwork_listener"
    PATIENT_LISTENER = "patient_listener"
    WEEKEND_WARRIOR = "weekend_warrior"
    DEPENDABLE = "dependable"
    SLOW_WANDERER = "slow_wanderer"
    GROUP_PULSE = "group_pulse"
    SNIPER = "sniper"
    ENTHUSIAST = "enthusiast"
    BALANCED = "balanced_listener"


class InfluenceArchetype(str, Enum):
    MAIN_STAGE = "main_stage"
    SLOW_BURN = "slow_burn"
    FLASH_POINT = "flash_point"
    DISCOVERY_ZONE = "discovery_zone"
    BALANCED = "balanced_influencer"


LISTENING_ARCHETYPES: dict[ListeningArchetype, Archetype] = {
    ListeningArchetype.LIGHTNING_COLLECTOR: Archetype(
        "lightning_collector", "The Lightning Collector",
        (
            "You let the songs stack up like lightning in a bottle, then crack them all open in one electric moment.",
            "The music waits for you, and when you're ready you devour it all at once. Fast, focused, unstoppable.",
            "You save up the beats like energy, then release them all in one brilliant flash of listening.",
        ),
        _badge("zap", "yellow"),
    ),
    ListeningArchetype.FIRST_RESPONDER: Archetype(
        "first_responder", "First Responder",
        (
            "The moment a song drops you're already there, listening and reacting before anyone else.",
            "You move at the speed of sound, always first to catch what the group shares.",
            "When music calls, you answer instantly. The group knows you're always listening.",
        ),
        _PRIMARY_BADGE,
    ),
    ListeningArchetype.THE_SPARK: Archetype(
        "the_spark", "The Spark",
        (
            "You react instantly but unpredictably, a spark that ignites at random moments and lights up the feed.",
            "When you listen you listen fast, but your timing is your own. Electric and always surprising.",
            "You're lightning-fast when you catch something, but you move to your own spontaneous rhythm.",
        ),
        _badge("sparkles", "purple"),
    ),
    ListeningArchetype.COLLECTOR: Archetype(
        "collector", "The Collector",
        (
            "You save up the music like treasures, then dive into them all in one binge session.",
            "The songs pile up waiting for you, and when you're ready you take them all in at once.",
            "You let the music accumulate like a collection, then enjoy it all together in one sitting.",
        ),
        _badge("archive", "amber"),
    ),
    ListeningArchetype.RITUALIST: Archetype(
        "ritualist", "The Ritualist",
        (
            "You've found your rhythm and you stick to it. Reliable and steady whenever the music calls.",
            "Your listening is a ritual, predictable and comforting. The group can count on your timing.",
            "You move at a steady pace and never break it. Your rhythm is your signature.",
        ),
        _badge("clock", "blue"),
    ),
    ListeningArchetype.WANDERER: Archetype(
        "wanderer", "The Wanderer",
        (
            "You listen when the mood strikes, following your own unpredictable path through the group's music.",
            "You move fast when you move, but your timing is your own.",
            "You're quick to listen but you follow your own path, free and always on your own schedule.",
        ),
        _badge("eye", "indigo"),
    ),
    ListeningArchetype.ARCHIVIST: Archetype(
        "archivist", "The Archivist",
        (
            "You let the songs pile up during the day just to enjoy them all at once when the world goes quiet.",
            "You archive the music until the perfect moment to listen to everything together.",
            "The songs wait for you, and when you're ready you open the archive and play it all.",
        ),
        _badge("book-open", "purple"),
    ),
    ListeningArchetype.CLOCKWORK_LISTENER: Archetype(
        "clockwork_listener", "The Clockwork Listener",
        (
            "You move like clockwork. The group knows exactly when you'll listen.",
            "Your timing is precise and reliable. You listen at your own pace but never miss a beat.",
            "You've built a rhythm that works and you stick to it, always there when expected.",
        ),
        _badge("radio", "cyan"),
    ),
    ListeningArchetype.PATIENT_LISTENER: Archetype(
        "patient_listener", "The Patient Listener",
        (
            "You take your time, but you always come back to the music.",
            "You move slowly and unpredictably, but the music waits and you always return.",
            "You listen at your own pace and on your own rhythm, and you always come back.",
        ),
        _badge("compass", "teal"),
    ),
    ListeningArchetype.WEEKEND_WARRIOR: Archetype(
        "weekend_warrior", "The Weekend Warrior",
        (
            "You let the week's music build up, then dive into it when you finally have time to listen.",
            "The songs accumulate like weekend plans, and you enjoy them all at once.",
            "You save the music for when you can truly appreciate it, batching it for the perfect moment.",
        ),
        _badge("calendar", "orange"),
    ),
    ListeningArchetype.DEPENDABLE: Archetype(
        "dependable", "The Dependable",
        (
            "You move at your own pace, but you never miss a beat. The group can count on you.",
            "You take your time, but you're always consistent and always coming back.",
            "You listen slowly but predictably. The group knows you'll always get there.",
        ),
        _badge("shield", "green"),
    ),
    ListeningArchetype.SLOW_WANDERER: Archetype(
        "slow_wanderer", "The Slow Wanderer",
        (
            "You listen when you listen, following your own unpredictable rhythm through the group's music.",
            "You take your time, and your timing is your own.",
            "You move slowly and unpredictably, but you always find your way back to the music.",
        ),
        _badge("waves", "slate"),
    ),
    ListeningArchetype.GROUP_PULSE: Archetype(
        "group_pulse", "The Group's Pulse",
        (
            "You're always there, feeling the beat of what the group shares in real time.",
            "You listen to everything, instantly. The group's most engaged member.",
            "You're the heartbeat of the group: fast, frequent, there when the music drops.",
        ),
        {**_PRIMARY_BADGE, "icon": "heart"},
    ),
    ListeningArchetype.SNIPER: Archetype(
        "sniper", "The Sniper",
        (
            "You don't listen to everything, but when you do you're lightning fast.",
            "You pick your moments carefully, then strike. Selective and precise.",
            "You wait for the right song, then listen immediately. Quality over quantity.",
        ),
        _badge("target", "red"),
    ),
    ListeningArchetype.ENTHUSIAST: Archetype(
        "enthusiast", "The Enthusiast",
        (
            "You listen to everything, steadily. Always there, always listening.",
            "You listen to it all and the group knows you're always engaged.",
            "You listen to everything at a steady pace, the group's most enthusiastic member.",
        ),
        _badge("music", "pink"),
    ),
}

BALANCED_LISTENER = Archetype(
    "balanced_listener", "The Balanced Listener",
    (
        "You move through the group's music at your own pace, finding your way through each shared song.",
        "You meet the group's music where it is, never rushed and never absent.",
        "Your listening has no single pattern. You take each shared song as it comes.",
    ),
    _muted_badge("heart"),
)

INFLUENCE_ARCHETYPES: dict[InfluenceArchetype, Archetype] = {
    InfluenceArchetype.MAIN_STAGE: Archetype(
        "main_stage", "The Main Stage",
        (
            "The group treats your shares like a scheduled ritual. Everyone drops everything to listen.",
            "Your music commands instant attention. The group clears its schedule when you share.",
            "When you post, the group stops scrolling. Your shares are appointment listening.",
        ),
        _badge("megaphone", "yellow"),
    ),
    InfluenceArchetype.SLOW_BURN: Archetype(
        "slow_burn", "The Slow Burn",
        (
            "The group respects your curation and savors your shares later, knowing they're worth the wait.",
            "Your music doesn't demand immediate attention, but it always gets it eventually.",
            "The group treats your shares like fine wine and takes its time with them.",
        ),
        _badge("magnet", "purple"),
    ),
    InfluenceArchetype.FLASH_POINT: Archetype(
        "flash_point", "The Flash Point",
        (
            "You share rarely, but when you do the group reacts instantly.",
            "The group knows your shares are special and reacts the moment they appear.",
            "Your shares are lightning strikes: rare, powerful, impossible to ignore.",
        ),
        _badge("zap", "amber"),
    ),
    InfluenceArchetype.DISCOVERY_ZONE: Archetype(
        "discovery_zone", "The Discovery Zone",
        (
            "Different people react to your shares at different times; there's always something new to find.",
            "The group sees you as a musical explorer. Reactions to your variety spread out over time.",
            "Your shares create waves: some dive in immediately, others discover them days later.",
        ),
        _badge("compass", "cyan"),
    ),
}

BALANCED_INFLUENCER = Archetype(
    "balanced_influencer", "The Balanced Influencer",
    (
        "The group engages with your shares at a steady pace, finding value in your music over time.",
        "Your shares find their audience at a natural pace.",
        "The group comes to your music in its own time, and it keeps coming back.",
    ),
    _muted_badge("radio"),
)


# ═══════════════════════════════════════════════════════════════════════════
# Ordered rules (precedence is significant)
# ═══════════════════════════════════════════════════════════════════════════

S, H, V = SpeedCategory, HabitCategory, VolumeCategory

LISTENING_RULES: list[tuple[Callable[[ListeningFeatures], bool], ListeningArchetype]] = [
    (lambda f: f.speed == S.INSTANT and f.habit == H.BATCHER, ListeningArchetype.LIGHTNING_COLLECTOR),
    (lambda f: f.speed == S.INSTANT and f.habit == H.RITUALIST, ListeningArchetype.FIRST_RESPONDER),
    (lambda f: f.speed == S.INSTANT and f.habit == H.ERRATIC, ListeningArchetype.THE_SPARK),
    (lambda f: f.speed == S.FAST and f.habit == H.BATCHER, ListeningArchetype.COLLECTOR),
    (lambda f: f.speed == S.FAST and f.habit == H.RITUALIST, ListeningArchetype.RITUALIST),
    (lambda f: f.speed == S.FAST and f.habit == H.ERRATIC, ListeningArchetype.WANDERER),
    (lambda f: f.speed == S.STEADY and f.habit == H.BATCHER, ListeningArchetype.ARCHIVIST),
    (lambda f: f.speed == S.STEADY and f.habit == H.RITUALIST, ListeningArchetype.CLOCKWORK_LISTENER),
    (lambda f: f.speed == S.STEADY and f.habit == H.ERRATIC, ListeningArchetype.PATIENT_LISTENER),
    (lambda f: f.speed == S.DELAYED and f.habit == H.BATCHER, ListeningArchetype.WEEKEND_WARRIOR),
    (lambda f: f.speed == S.DELAYED and f.habit == H.RITUALIST, ListeningArchetype.DEPENDABLE),
    (lambda f: f.speed == S.DELAYED and f.habit == H.ERRATIC, ListeningArchetype.SLOW_WANDERER),
    (lambda f: f.volume == V.HIGH_FREQ and f.speed == S.INSTANT, ListeningArchetype.GROUP_PULSE),
    (lambda f: f.volume == V.SELECTIVE and f.speed == S.FAST, ListeningArchetype.SNIPER),
    (lambda f: f.volume == V.HIGH_FREQ and f.speed == S.STEADY, ListeningArchetype.ENTHUSIAST),
]

INFLUENCE_RULES: list[tuple[Callable[[InfluenceFeatures], bool], InfluenceArchetype]] = [
    (lambda f: (f.gravity == Level.HIGH and f.urgency == Level.HIGH)
     or (f.has_consensus and f.urgency == Level.HIGH), InfluenceArchetype.MAIN_STAGE),
    (lambda f: f.gravity == Level.LOW and f.magnetism == Level.HIGH, InfluenceArchetype.SLOW_BURN),
    (lambda f: f.gravity == Level.HIGH and f.volume == Level.LOW, InfluenceArchetype.FLASH_POINT),
    (lambda f: f.urgency == Level.LOW and f.volume == Level.HIGH, InfluenceArchetype.DISCOVERY_ZONE),
]

F = TypeVar("F")
K = TypeVar("K")


def match_rule(rules: Sequence[tuple[Callable[[F], bool], K]], features: F) -> Optional[K]:
    """Return the key of the first rule whose predicate matches, else None."""
    for predicate, key in rules:
        if predicate(features):
            return key
    return None


# ═══════════════════════════════════════════════════════════════════════════
# Feature extraction
# ═══════════════════════════════════════════════════════════════════════════

HIGH_FREQ_RATIO = 1.2
SELECTIVE_RATIO = 0.5

# Gravity reuses the 1 h / 12 h speed cutoffs
GRAVITY_LEVELS = ["high", "medium", "low"]
GRAVITY_CUTOFFS_MS = SPEED_CUTOFFS_MS[1:]


def speed_category(median_ms: float) -> SpeedCategory:
    return SpeedCategory(tier_for(median_ms, [s.value for s in SpeedCategory]))


def habit_category(
    latencies_ms: Sequence[float],
    reacted_at: Sequence[datetime],
    window_ms: float,
) -> HabitCategory:
    """Ritualist / batcher / erratic from the dynamic arc span and bursts."""
    thresholds = thresholds_for(window_ms)
    arc = arc_span_degrees(latencies_ms, window_ms)
    clustered = has_clustered_reactions(reacted_at, thresholds.cluster_window_ms)

    if arc < thresholds.consistency_threshold_deg:
        return HabitCategory.RITUALIST
    if clustered:
        return HabitCategory.BATCHER
    # Between the consistency and erratic thresholds without bursts is erratic too
    return HabitCategory.ERRATIC


def volume_category(reaction_count: int, group_mean_count: float) -> VolumeCategory:
    relative = reaction_count / group_mean_count if group_mean_count > 0 else 1.0
    if relative > HIGH_FREQ_RATIO:
        return VolumeCategory.HIGH_FREQ
    if relative < SELECTIVE_RATIO:
        return VolumeCategory.SELECTIVE
    return VolumeCategory.CASUAL


def listening_features(
    events: Sequence[ReactionEvent],
    window_ms: float,
    group_mean_count: float,
) -> ListeningFeatures:
    latencies = [e.latency_ms for e in events]
    return ListeningFeatures(
        speed=speed_category(median(latencies)),
        habit=habit_category(latencies, [e.reacted_at for e in events], window_ms),
        volume=volume_category(len(events), group_mean_count),
    )


def _percent_level(pct: float, high_above: float, medium_from: float) -> Level:
    if pct > high_above:
        return Level.HIGH
    if pct >= medium_from:
        return Level.MEDIUM
    return Level.LOW


def influence_features(latencies_ms: Sequence[float], group_size: int) -> InfluenceFeatures:
    """Features of the group's response to one member's shares.

    Gravity reads the trimmed median so a single slow outlier cannot
    downgrade an otherwise instant response; consensus forces it high.
    """
    consensus = has_consensus(latencies_ms)
    if consensus:
        gravity = Level.HIGH
    else:
        gravity = Level(tier_for(trimmed_median(latencies_ms), GRAVITY_LEVELS, GRAVITY_CUTOFFS_MS))

    cv = coefficient_of_variation(latencies_ms)
    if cv < 0.5:
        urgency = Level.HIGH
    elif cv < 1.5:
        urgency = Level.MEDIUM
    else:
        urgency = Level.LOW

    reach_pct = min(len(latencies_ms) / group_size * 100, 100.0) if group_size > 0 else 0.0

    return InfluenceFeatures(
        gravity=gravity,
        urgency=urgency,
        magnetism=_percent_level(reach_pct, high_above=70, medium_from=40),
        volume=_percent_level(reach_pct, high_above=50, medium_from=20),
        has_consensus=consensus,
    )


# ═══════════════════════════════════════════════════════════════════════════
# Contextual title refinement
# ═══════════════════════════════════════════════════════════════════════════

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
PATTERN_SHARE = 0.4


def _report_tz() -> tzinfo:
    try:
        return ZoneInfo(REPORT_TIMEZONE)
    except (KeyError, ValueError):
        logger.warning("Unknown REPORT_TIMEZONE %r, falling back to UTC", REPORT_TIMEZONE)
        return timezone.utc


def _local(timestamps: Iterable[datetime], tz: Optional[tzinfo]) -> list[datetime]:
    zone = tz or _report_tz()
    return [t.astimezone(zone) for t in timestamps]


def time_of_day_pattern(timestamps: Sequence[datetime], tz: Optional[tzinfo] = None) -> dict[str, bool]:
    """Which parts of the day hold more than 40% of the reactions."""
    if not timestamps:
        return {"night": False, "afternoon": False, "morning": False}
    hours = [t.hour for t in _local(timestamps, tz)]
    threshold = len(hours) * PATTERN_SHARE
    return {
        "night": sum(1 for h in hours if h >= 22 or h <= 6) > threshold,
        "afternoon": sum(1 for h in hours if 12 <= h < 18) > threshold,
        "morning": sum(1 for h in hours if 6 <= h < 12) > threshold,
    }


def day_of_week_pattern(timestamps: Sequence[datetime], tz: Optional[tzinfo] = None) -> dict:
    if not timestamps:
        return {"weekend": False, "weekday": False, "dominant_day": None}
    days = Counter(DAY_NAMES[t.weekday()] for t in _local(timestamps, tz))
    weekend = days["Saturday"] + days["Sunday"]
    threshold = len(timestamps) * PATTERN_SHARE
    return {
        "weekend": weekend > threshold,
        "weekday": len(timestamps) - weekend > threshold,
        "dominant_day": days.most_common(1)[0][0],
    }


def contextual_title(
    archetype: Archetype,
    features: ListeningFeatures,
    reacted_at: Sequence[datetime],
    window_ms: float,
    tz: Optional[tzinfo] = None,
) -> str:
    """Reframe the display title for long (day-of-week) or short (time-of-day) windows.

    Only the label text changes; the matched archetype does not.
    """
    if window_ms > 5 * DAY_MS:
        days = day_of_week_pattern(reacted_at, tz)
        if days["weekend"] and archetype.archetype_id == ListeningArchetype.ARCHIVIST.value:
            return "The Sunday Regular"
        if days["weekend"] and archetype.archetype_id == ListeningArchetype.WEEKEND_WARRIOR.value:
            return "The Weekend Archivist"
        if days["dominant_day"] and features.habit == HabitCategory.RITUALIST:
            return f"The {days['dominant_day']} Regular"

    if window_ms < DAY_MS:
        tod = time_of_day_pattern(reacted_at, tz)
        if tod["night"] and features.habit == HabitCategory.BATCHER:
            return "The Midnight Archivist"
        if tod["afternoon"] and features.speed == SpeedCategory.INSTANT:
            return "The Afternoon Spark"
        if tod["night"] and features.speed == SpeedCategory.FAST:
            return "The Night Owl"
        if tod["morning"] and features.habit == HabitCategory.RITUALIST:
            return "The Morning Ritual"

    return archetype.title


# ═══════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════

def classify_listening_style(
    user_id: str,
    events: Sequence[ReactionEvent],
    window_ms: float,
    group_mean_count: float,
    tz: Optional[tzinfo] = None,
) -> ArchetypeResult:
    """Label how a member reacts to the group's shares.

    A member with no reactions resolves straight to the balanced fallback.
    """
    if not events:
        return BALANCED_LISTENER.result(user_id)

    features = listening_features(events, window_ms, group_mean_count)
    key = match_rule(LISTENING_RULES, features)
    if key is None:
        return BALANCED_LISTENER.result(user_id)

    archetype = LISTENING_ARCHETYPES[key]
    title = contextual_title(archetype, features, [e.reacted_at for e in events], window_ms, tz)
    return archetype.result(user_id, title=title)


def classify_influence_style(
    user_id: str,
    events: Sequence[ReactionEvent],
    group_size: int,
) -> ArchetypeResult:
    """Label how the group reacts to a member's shares.

    ``events`` must already exclude the member's own reactions.
    """
    if not events:
        return BALANCED_INFLUENCER.result(user_id)

    features = influence_features([e.latency_ms for e in events], group_size)
    key = match_rule(INFLUENCE_RULES, features)
    if key is None:
        return BALANCED_INFLUENCER.result(user_id)
    return INFLUENCE_ARCHETYPES[key].result(user_id)
