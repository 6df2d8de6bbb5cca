"""Application-wide configuration loaded from environment variables."""

import os

from dotenv import load_dotenv

load_dotenv()

# Redis (event store + group directory)
REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")

# ── Analytics Engine ─────────────────────────────────────────────────────

# Hour-of-day / day-of-week framing is read in this timezone
REPORT_TIMEZONE: str = os.getenv("REPORT_TIMEZONE", "UTC")

# Radar profiles below this many reactions are flagged lowData
RADAR_MIN_SAMPLES: int = int(os.getenv("RADAR_MIN_SAMPLES", "3"))

# All-time window: nominal duration for thresholds and timeline cap
ALL_TIME_CAP_DAYS: int = int(os.getenv("ALL_TIME_CAP_DAYS", "365"))

# Taste gravity
TOP_ARTISTS_PER_MEMBER: int = int(os.getenv("TOP_ARTISTS_PER_MEMBER", "5"))
GRAVITY_REASON_ARTISTS: int = int(os.getenv("GRAVITY_REASON_ARTISTS", "3"))

# ── Server Configuration ─────────────────────────────────────────────────

SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
