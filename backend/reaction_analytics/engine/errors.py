"""Error conditions surfaced to callers of the analytics engine.

Both conditions are raised before any aggregation runs, so a caller never
receives partial results. Sparse data is *not* an error: the engine returns
zeroed / neutral values instead.
"""

from __future__ import annotations


class AnalyticsError(Exception):
    """Base class for analytics request failures."""

    status_code: int = 500


class NotFound(AnalyticsError):
    """The requested group (or a referenced user) does not exist."""

    status_code = 404

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} not found: {identifier}")


class InvalidWindow(AnalyticsError):
    """A caller-supplied window, range or mode is outside the supported set."""

    status_code = 400

    def __init__(self, value: str, allowed: list[str] | tuple[str, ...]):
        self.value = value
        self.allowed = list(allowed)
        super().__init__(
            f"Invalid value '{value}'. Must be one of: {', '.join(self.allowed)}"
        )
