"""
config.py

Central configuration for DailyPli.

This file intentionally contains ONLY:
- Constants
- Tunable defaults
- Title patterns
- API scopes / endpoints

It must NOT contain:
- Business logic
- API calls
- Reading environment variables

Runtime configuration (env vars) belongs in env/.
"""

from __future__ import annotations

from typing import List

# ============================================================
# YOUTUBE API - SCOPES / ENDPOINTS
# ============================================================

YOUTUBE_API_SERVICE = "youtube"
YOUTUBE_API_VERSION = "v3"

YOUTUBE_OAUTH_SCOPES = ["https://www.googleapis.com/auth/youtube"]

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"

# YouTube API max page size for search.list / playlistItems.list / videos.list
YOUTUBE_BATCH_SIZE = 50

# ============================================================
# PLAYLIST DEFAULTS
# ============================================================

DEFAULT_MAX_PLAYLIST_SIZE = 20

DEFAULT_PLAYLIST_TITLE = "Daily Picks"
DEFAULT_PLAYLIST_DESCRIPTION = "Latest music videos, refreshed daily by DailyPli"
DEFAULT_PLAYLIST_PRIVACY = "private"

PLAYLIST_PRIVACY_VALUES = ("private", "public", "unlisted")

# ============================================================
# CANDIDATE SELECTION
# ============================================================

# Literal, case-insensitive title fragments. Prefix with "re:" for a regex.
DEFAULT_INCLUDE_PATTERNS: List[str] = [
    "[MV]",
    "[Official Audio]",
]

DEFAULT_PUBLISHED_WITHIN_DAYS = 10

# Search paging safety ceiling for quiet channels
DEFAULT_MAX_SEARCH_PAGES = 4

DEFAULT_MIN_DURATION_SEC = 0

# ============================================================
# REQUEST THROTTLING / RETRY DEFAULTS (env may override)
# ============================================================

DEFAULT_SLEEP_BETWEEN_CALLS_SEC = 1.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE_SEC = 1.0
DEFAULT_BACKOFF_MAX_SEC = 10.0

# In-run playlist state cache
DEFAULT_CACHE_TTL_SECONDS = 5 * 60

# ============================================================
# ERROR PAYLOAD REASONS
# ============================================================

QUOTA_REASONS = ("quotaExceeded", "dailyLimitExceeded")
RATE_LIMIT_REASONS = ("rateLimitExceeded", "userRateLimitExceeded")

# ============================================================
# LOGGING DEFAULTS (logger/ and env/ control actual behavior)
# ============================================================

DEFAULT_LOG_RETENTION = 30
DEFAULT_LOG_LEVEL = "INFO"
