"""Derived, presentation-ready structures returned by the analytics engine.

Everything here is recomputed per request and never persisted. ``to_dict``
emits the camelCase field names the frontend already consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


@dataclass
class UserLatencyProfile:
    user_id: str
    display_name: str = ""
    reaction_count: int = 0
    median_ms: float = 0.0
    p25_ms: float = 0.0
    p75_ms: float = 0.0
    std_dev_ms: float = 0.0
    coefficient_of_variation: float = 0.0
    trimmed_median_ms: float = 0.0
    category: Optional[str] = None   # instant | quick | slow | long_tail

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "displayName": self.display_name,
            "reactionCount": self.reaction_count,
            "medianMs": round(self.median_ms, 2),
            "p25Ms": round(self.p25_ms, 2),
            "p75Ms": round(self.p75_ms, 2),
            "stdDevMs": round(self.std_dev_ms, 2),
            "coefficientOfVariation": round(self.coefficient_of_variation, 4),
            "trimmedMedianMs": round(self.trimmed_median_ms, 2),
            "category": self.category,
        }


@dataclass
class ReflexSummary:
    group_median_ms: float = 0.0
    instant_count: int = 0
    bucket_counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "groupMedianMs": round(self.group_median_ms, 2),
            "instantCount": self.instant_count,
            "buckets": dict(self.bucket_counts),
        }


@dataclass
class RadarProfile:
    user_id: str
    axes: dict[str, int]
    reaction_count: int = 0
    median_latency_seconds: float = 0.0
    iqr_seconds: float = 0.0
    low_data: bool = False

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "axes": dict(self.axes),
            "raw": {
                "reactionCount": self.reaction_count,
                "medianLatencySeconds": round(self.median_latency_seconds, 2),
                "iqrSeconds": round(self.iqr_seconds, 2),
            },
            "lowData": self.low_data,
        }


@dataclass
class ArchetypeResult:
    archetype_id: str
    title: str
    description: str
    badge: dict[str, str]

    def to_dict(self) -> dict:
        return {
            "id": self.archetype_id,
            "title": self.title,
            "description": self.description,
            "badge": dict(self.badge),
        }


@dataclass
class SuperlativeResult:
    key: str
    winning_user_id: str
    value: float
    label: str
    description: str
    icon: str = ""

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "winningUserId": self.winning_user_id,
            "value": self.value,
            "label": self.label,
            "description": self.description,
            "icon": self.icon,
        }


@dataclass
class TimelineBucket:
    timestamp: datetime
    shares: int = 0
    likes: int = 0
    listens: int = 0

    @property
    def activity(self) -> int:
        return self.shares + self.likes + self.listens

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "shares": self.shares,
            "likes": self.likes,
            "listens": self.listens,
            "activity": self.activity,
        }


@dataclass
class MemberEngagement:
    user_id: str
    display_name: str = ""
    avatar: str = ""
    share_count: int = 0
    likes_received: int = 0
    listens_received: int = 0
    last_shared_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "displayName": self.display_name,
            "avatar": self.avatar,
            "shareCount": self.share_count,
            "likesReceived": self.likes_received,
            "listensReceived": self.listens_received,
            "lastSharedAt": _iso(self.last_shared_at),
        }


@dataclass
class MemberVibes:
    user_id: str
    display_name: str = ""
    avatar: str = ""
    stats: dict[str, int] = field(default_factory=dict)
    share_count: int = 0
    likes_given: int = 0
    avg_likes_received: float = 0.0

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "displayName": self.display_name,
            "avatar": self.avatar,
            "stats": dict(self.stats),
            "raw": {
                "shares": self.share_count,
                "likesGiven": self.likes_given,
                "avgLikesReceived": round(self.avg_likes_received, 1),
            },
        }


@dataclass
class GravityNode:
    user_id: str
    name: str
    img: Optional[str]
    mass: float
    top_artists: list[str]

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "name": self.name,
            "img": self.img,
            "mass": self.mass,
            "topArtists": list(self.top_artists),
        }


@dataclass
class GravityLink:
    source: str
    target: str
    gravity: float
    reasons: list[str]

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "target": self.target,
            "gravity": self.gravity,
            "reasons": list(self.reasons),
        }


@dataclass
class TasteGravityGraph:
    nodes: list[GravityNode] = field(default_factory=list)
    links: list[GravityLink] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "links": [link.to_dict() for link in self.links],
            "insights": list(self.insights),
        }
