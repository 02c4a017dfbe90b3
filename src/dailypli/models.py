"""
models.py

Value objects passed between the selector and the reconciler, plus the
wire-format parsers they need (RFC 3339 timestamps, ISO 8601 durations).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import isodate

from dailypli.logger import get_logger

logger = get_logger(__name__)

# Sort key for entries whose publish time is unknown (deleted/private videos)
OLDEST = datetime.min.replace(tzinfo=timezone.utc)


# ============================================================
# Parsers
# ============================================================


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an API timestamp such as ``2024-05-01T10:00:00Z``.

    Returns a timezone-aware datetime, or None when the value is missing
    or malformed.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = isodate.parse_datetime(value.strip())
    except (ValueError, TypeError) as e:
        logger.debug(f"Unparseable timestamp {value!r}: {e}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_duration(iso_duration: Any) -> int:
    """
    Convert an ISO 8601 duration (``PT1H2M3S``) to whole seconds.

    Malformed or calendar-based durations count as 0.
    """
    if not isinstance(iso_duration, str) or not iso_duration:
        return 0
    try:
        return int(isodate.parse_duration(iso_duration).total_seconds())
    except (ValueError, TypeError, AttributeError) as e:
        logger.warning(f"Failed to parse duration '{iso_duration}': {e}")
        return 0


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# ============================================================
# Data model
# ============================================================


@dataclass(frozen=True)
class VideoCandidate:
    """A channel upload that passed the inclusion filters."""

    id: str
    title: str
    channel_name: str
    published_at: datetime
    duration_sec: Optional[int] = None

    @classmethod
    def from_api(
        cls, item: Dict[str, Any], duration_sec: Optional[int] = None
    ) -> Optional["VideoCandidate"]:
        """
        Build from a search.list or videos.list item; None if it is not a
        usable video (missing id or publish time).
        """
        raw_id = item.get("id")
        if isinstance(raw_id, dict):
            if raw_id.get("kind", "youtube#video") != "youtube#video":
                return None
            video_id = raw_id.get("videoId")
        else:
            video_id = raw_id

        snippet = item.get("snippet") or {}
        published_at = parse_timestamp(snippet.get("publishedAt"))
        if not isinstance(video_id, str) or not video_id or published_at is None:
            return None

        return cls(
            id=video_id,
            title=str(snippet.get("title") or ""),
            channel_name=str(snippet.get("channelTitle") or ""),
            published_at=published_at,
            duration_sec=duration_sec,
        )


@dataclass(frozen=True)
class PlaylistEntry:
    """One playlist membership record (distinct from the video itself)."""

    entry_id: str
    video_id: str
    position: int
    published_at: Optional[datetime] = None

    @property
    def sort_key(self) -> datetime:
        return self.published_at or OLDEST

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> Optional["PlaylistEntry"]:
        """Build from a playlistItems.list item; None if ids are missing."""
        entry_id = item.get("id")
        snippet = item.get("snippet") or {}
        details = item.get("contentDetails") or {}

        video_id = details.get("videoId") or (snippet.get("resourceId") or {}).get(
            "videoId"
        )
        if not isinstance(entry_id, str) or not isinstance(video_id, str):
            return None

        try:
            position = int(snippet.get("position", 0))
        except (TypeError, ValueError):
            position = 0

        return cls(
            entry_id=entry_id,
            video_id=video_id,
            position=position,
            published_at=parse_timestamp(details.get("videoPublishedAt")),
        )
