"""
select.py

Candidate selection: a channel's recent uploads, filtered by title pattern
(and optionally by minimum duration), newest first, capped.

It does NOT:
- touch the playlist
- know which videos are already present
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from dailypli import config
from dailypli.errors import NotFoundError
from dailypli.logger import get_logger
from dailypli.models import VideoCandidate, format_timestamp, parse_duration
from dailypli.providers.youtube.api_manager import YouTubeGateway, iter_pages
from dailypli.providers.youtube.filters import (
    compile_patterns,
    matching_pattern,
    meets_min_duration,
    normalize_title,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class SelectorSettings:
    include_patterns: List[str]
    max_results: int = config.DEFAULT_MAX_PLAYLIST_SIZE
    page_size: int = config.YOUTUBE_BATCH_SIZE
    max_pages: int = config.DEFAULT_MAX_SEARCH_PAGES
    published_within_days: int = config.DEFAULT_PUBLISHED_WITHIN_DAYS
    min_duration_sec: int = config.DEFAULT_MIN_DURATION_SEC

    @classmethod
    def from_env(cls, env: Any) -> "SelectorSettings":
        return cls(
            include_patterns=list(env.include_patterns),
            max_results=env.max_playlist_size,
            page_size=env.page_size,
            max_pages=env.max_pages,
            published_within_days=env.published_within_days,
            min_duration_sec=env.min_duration_sec,
        )


@dataclass
class SelectionStats:
    """Counters from one selection pass."""

    pages: int = 0
    scanned: int = 0
    rejected_title: int = 0
    rejected_duration: int = 0
    selected: int = 0


class CandidateSelector:
    def __init__(
        self,
        gateway: YouTubeGateway,
        settings: SelectorSettings,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.gateway = gateway
        self.settings = settings
        self.patterns = compile_patterns(settings.include_patterns)
        self._now = now
        self.stats = SelectionStats()

    def published_after(self) -> Optional[str]:
        days = self.settings.published_within_days
        if days <= 0:
            return None
        return format_timestamp(self._now() - timedelta(days=days))

    def select(self, channel_id: str) -> List[VideoCandidate]:
        """
        Newest-first candidates for ``channel_id``, at most max_results.

        Raises:
            NotFoundError: channel does not exist
            QuotaExceededError / AuthError / TransientNetworkError: API failure
        """
        self.stats = SelectionStats()

        if not self.gateway.channel_exists(channel_id).unwrap():
            raise NotFoundError(f"Channel not found: {channel_id}")

        published_after = self.published_after()
        logger.debug(
            f"Scanning uploads of {channel_id} "
            f"(published after {published_after or 'any time'})"
        )

        pages = iter_pages(
            lambda token: self.gateway.search_channel_videos(
                channel_id,
                page_token=token,
                published_after=published_after,
                page_size=self.settings.page_size,
            ),
            max_pages=self.settings.max_pages,
        )

        matches: Dict[str, VideoCandidate] = {}
        for page in pages:
            self.stats.pages += 1
            items = page.get("items") or []
            self.stats.scanned += len(items)

            page_matches = self._filter_titles(items)
            if self.settings.min_duration_sec > 0 and page_matches:
                page_matches = self._filter_durations(page_matches)

            for c in page_matches:
                matches.setdefault(c.id, c)

            if len(matches) >= self.settings.max_results:
                break

        ordered = sorted(matches.values(), key=lambda c: c.published_at, reverse=True)
        selected = ordered[: self.settings.max_results]
        self.stats.selected = len(selected)

        logger.info(
            f"Selected {len(selected)} video(s) from {self.stats.scanned} upload(s) "
            f"across {self.stats.pages} page(s)"
        )
        for i, c in enumerate(selected, start=1):
            logger.debug(f"  {i}. {c.title} ({format_timestamp(c.published_at)})")

        return selected

    def _filter_titles(self, items: Iterable[Dict[str, Any]]) -> List[VideoCandidate]:
        out: List[VideoCandidate] = []
        for item in items:
            cand = VideoCandidate.from_api(item)
            if cand is None:
                continue

            title = normalize_title(cand.title)
            pattern = matching_pattern(title, self.patterns)
            if pattern is None:
                self.stats.rejected_title += 1
                logger.debug(f"Filtered by title: {title[:80]}")
                continue

            out.append(replace(cand, title=title))
        return out

    def _filter_durations(self, candidates: List[VideoCandidate]) -> List[VideoCandidate]:
        details = self.gateway.get_video_details([c.id for c in candidates]).unwrap()

        durations: Dict[str, int] = {}
        for item in details:
            vid = item.get("id")
            if isinstance(vid, str):
                cd = item.get("contentDetails") or {}
                durations[vid] = parse_duration(cd.get("duration"))

        out: List[VideoCandidate] = []
        for c in candidates:
            seconds = durations.get(c.id, 0)
            if not meets_min_duration(seconds, self.settings.min_duration_sec):
                self.stats.rejected_duration += 1
                logger.debug(f"Filtered by duration ({seconds}s): {c.title[:80]}")
                continue
            out.append(replace(c, duration_sec=seconds))
        return out
