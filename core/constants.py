"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines all system-wide constants.

- Provides single source of truth for magic values
- Keeps scoring, windowing and storage limits consistent
- Documents the meaning of each constant

============================================================
"""

# ============================================================
# SYSTEM CONSTANTS
# ============================================================

SYSTEM_NAME = "polimetric"
SYSTEM_VERSION = "2.0.0"

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

# ============================================================
# SCORING CONSTANTS
# ============================================================

# Every reconstructed series starts from this score
BASELINE_SCORE = 100.0

# Plausible band for week-ahead predictions
PREDICTION_MIN_SCORE = 80.0
PREDICTION_MAX_SCORE = 120.0

# Single live event impact (always non-negative)
EVENT_IMPACT_MIN = 0.1
EVENT_IMPACT_MAX = 3.0
DEFAULT_EVENT_IMPACT = 0.5

# Historical event impact (signed)
HISTORY_IMPACT_MIN = -5.0
HISTORY_IMPACT_MAX = 5.0

# Suggested source credibility weight
SOURCE_WEIGHT_MIN = 1.0
SOURCE_WEIGHT_MAX = 3.0
DEFAULT_SOURCE_WEIGHT = 1.5

# ============================================================
# HISTORY / FEED CONSTANTS
# ============================================================

DEFAULT_HISTORY_WINDOW_DAYS = 60
MAX_LIVE_HISTORY_POINTS = 50
MAX_FEED_EVENTS = 200
LEGACY_FEED_SUMMARY_SIZE = 50

# ============================================================
# SCHEDULER CONSTANTS
# ============================================================

DEFAULT_FETCH_INTERVAL_MINUTES = 60
DEFAULT_INTER_ENTITY_DELAY_SECONDS = 2.0
SCHEDULED_SOURCE_ID = "hourly-schedule"

# ============================================================
# RETRY CONSTANTS
# ============================================================

RETRY_MAX_ATTEMPTS = 4  # initial call + 3 retries
RETRY_BASE_DELAY_SECONDS = 2.0
RETRY_BACKOFF_MULTIPLIER = 2.0

# ============================================================
# STORAGE CONSTANTS
# ============================================================

DEFAULT_DATABASE_URL = "sqlite:///polimetric.db"
DEFAULT_LEGACY_PATH = "polimetric_db.json"
LEGACY_MAX_BYTES = 5 * 1024 * 1024
EXPORT_KEY = "polimetric_export_v2"

PLACEHOLDER_AVATAR_URL = "https://ui-avatars.com/api/?name={name}&background=random&size=200"

ENTITY_COLORS = [
    "#fbbf24",
    "#3b82f6",
    "#a855f7",
    "#ef4444",
    "#10b981",
    "#f97316",
    "#06b6d4",
    "#ec4899",
    "#8b5cf6",
    "#14b8a6",
]
