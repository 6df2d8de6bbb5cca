"""Analysis windows: the fixed time ranges statistics are computed over."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from reaction_analytics.config.settings import ALL_TIME_CAP_DAYS
from reaction_analytics.engine.errors import InvalidWindow

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


class AnalysisWindow(str, Enum):
    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"
    LAST_90D = "90d"
    ALL = "all"

    @property
    def duration_ms(self) -> int:
        """Window length in ms. ``all`` reports the nominal all-time cap."""
        return _DURATIONS_MS[self]

    @property
    def is_bounded(self) -> bool:
        return self is not AnalysisWindow.ALL

    def start(self, now: datetime) -> datetime | None:
        """Earliest share creation time included, or None for all-time."""
        if not self.is_bounded:
            return None
        return now - timedelta(milliseconds=self.duration_ms)

    @classmethod
    def parse(cls, value: str | AnalysisWindow) -> AnalysisWindow:
        """Resolve a query-string value, raising InvalidWindow if unsupported."""
        if isinstance(value, AnalysisWindow):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidWindow(str(value), [w.value for w in cls]) from None


_DURATIONS_MS: dict[AnalysisWindow, int] = {
    AnalysisWindow.LAST_24H: DAY_MS,
    AnalysisWindow.LAST_7D: 7 * DAY_MS,
    AnalysisWindow.LAST_30D: 30 * DAY_MS,
    AnalysisWindow.LAST_90D: 90 * DAY_MS,
    AnalysisWindow.ALL: ALL_TIME_CAP_DAYS * DAY_MS,
}


class ReflexMode:
    """Which side of a share the reactions are read from."""
    RECEIVED = "received"  # reactions the member made to others' shares
    SHARED = "shared"      # reactions others made to the member's shares

    ALL = (RECEIVED, SHARED)

    @classmethod
    def parse(cls, value: str) -> str:
        if value not in cls.ALL:
            raise InvalidWindow(value, cls.ALL)
        return value
