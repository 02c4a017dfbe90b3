#!/usr/bin/env python3
"""
reconcile.py

Converges the target playlist onto the selected candidates.

Phases (linear, no branching back):
  FetchExisting -> ComputeDiff -> ApplyInserts -> ApplyEvictions
  -> (optional) ApplyReorder -> Done

Rules:
1) Never add a videoId that is already in the playlist.
2) Never keep more than max_size entries; evict the oldest by publish time.
3) Never keep two entries for the same videoId; the lowest position wins.
4) Entries already present are never re-filtered.
5) Reordering never moves an entry only because of a publish-time tie.

Failures while reading the baseline abort the run. Failures of a single
insert/delete/update are recorded as PartialApplyWarning and skipped; the
next run sees the same diff and finishes the job. Quota and auth failures
are always fatal.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from dailypli import config
from dailypli.errors import (
    AuthError,
    DailyPliError,
    NotFoundError,
    PartialApplyWarning,
    PermanentRequestError,
    QuotaExceededError,
)
from dailypli.logger import get_logger
from dailypli.models import PlaylistEntry, VideoCandidate, parse_timestamp
from dailypli.providers.youtube.api_manager import (
    YouTubeGateway,
    is_ambiguous,
    iter_pages,
)

logger = get_logger(__name__)


# ----------------------------
# Settings / results
# ----------------------------


@dataclass(frozen=True)
class ReconcileSettings:
    max_size: int = config.DEFAULT_MAX_PLAYLIST_SIZE
    reorder: bool = False
    dry_run: bool = False
    playlist_title: str = config.DEFAULT_PLAYLIST_TITLE
    playlist_description: str = config.DEFAULT_PLAYLIST_DESCRIPTION
    playlist_privacy: str = config.DEFAULT_PLAYLIST_PRIVACY
    page_size: int = config.YOUTUBE_BATCH_SIZE

    @classmethod
    def from_env(cls, env: Any) -> "ReconcileSettings":
        return cls(
            max_size=env.max_playlist_size,
            reorder=env.reorder,
            dry_run=env.dry_run,
            playlist_title=env.playlist_title,
            playlist_description=env.playlist_description,
            playlist_privacy=env.playlist_privacy,
            page_size=env.page_size,
        )


@dataclass
class ReconcilePlan:
    entries: List[PlaylistEntry]
    to_add: List[VideoCandidate] = field(default_factory=list)
    to_evict: List[PlaylistEntry] = field(default_factory=list)
    already_present: int = 0
    outside_window: List[VideoCandidate] = field(default_factory=list)


@dataclass
class ReconcileReport:
    playlist_id: Optional[str]
    created: bool = False
    existing: int = 0
    inserted: List[str] = field(default_factory=list)
    evicted: List[str] = field(default_factory=list)
    moved: int = 0
    duplicates_removed: int = 0
    final_size: int = 0
    warnings: List[PartialApplyWarning] = field(default_factory=list)

    @property
    def mutations(self) -> int:
        return (
            int(self.created)
            + len(self.inserted)
            + len(self.evicted)
            + self.moved
            + self.duplicates_removed
        )

    def warn(self, warning: PartialApplyWarning) -> None:
        self.warnings.append(warning)
        logger.warning(f"{warning}; continuing")


# ----------------------------
# In-run playlist cache
# ----------------------------


class PlaylistCache:
    """Short-lived, in-memory view of playlist entries within one run."""

    def __init__(
        self,
        ttl_seconds: float = config.DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: Dict[str, Tuple[float, List[PlaylistEntry]]] = {}

    def get(self, playlist_id: str) -> Optional[List[PlaylistEntry]]:
        hit = self._store.get(playlist_id)
        if hit is None:
            return None
        fetched_at, entries = hit
        if self._clock() - fetched_at > self.ttl_seconds:
            self._store.pop(playlist_id, None)
            return None
        return list(entries)

    def put(self, playlist_id: str, entries: Sequence[PlaylistEntry]) -> None:
        self._store[playlist_id] = (self._clock(), list(entries))

    def invalidate(self, playlist_id: str) -> None:
        self._store.pop(playlist_id, None)


# ----------------------------
# Helpers
# ----------------------------


def _renumber(entries: Sequence[PlaylistEntry]) -> List[PlaylistEntry]:
    return [
        e if e.position == i else replace(e, position=i)
        for i, e in enumerate(entries)
    ]


def _by_recency(entries: Sequence[PlaylistEntry]) -> List[PlaylistEntry]:
    # sorted() is stable: ties keep their current relative order.
    return sorted(entries, key=lambda e: e.sort_key, reverse=True)


def _raise_if_fatal(error: Optional[Exception]) -> None:
    if isinstance(error, (QuotaExceededError, AuthError)):
        raise error


# ----------------------------
# Reconciler
# ----------------------------


class PlaylistReconciler:
    def __init__(
        self,
        gateway: YouTubeGateway,
        settings: ReconcileSettings,
        cache: Optional[PlaylistCache] = None,
    ):
        self.gateway = gateway
        self.settings = settings
        self.cache = cache or PlaylistCache()
        self._published: Dict[str, datetime] = {}

    # ---------- FetchExisting ----------

    def ensure_playlist(
        self, playlist_id: Optional[str], exists: Optional[bool] = None
    ) -> Tuple[Optional[str], bool]:
        """
        Return (playlist_id, created). Creates the playlist when no id is
        configured or the configured one no longer exists.

        ``exists`` is the result of an earlier playlist_exists() check;
        None looks the playlist up now.
        """
        if playlist_id:
            if exists is None:
                exists = self.playlist_exists(playlist_id)
            if exists:
                return playlist_id, False
            logger.warning(f"Playlist {playlist_id} not found; a new one is needed")

        s = self.settings
        if s.dry_run:
            logger.info(
                f"[DRY-RUN] Would create {s.playlist_privacy} playlist '{s.playlist_title}'"
            )
            return None, False

        new_id = self.gateway.create_playlist(
            s.playlist_title, s.playlist_description, s.playlist_privacy
        ).unwrap()
        if not new_id:
            raise PermanentRequestError("playlists.insert returned no playlist id")

        logger.info(f"Created playlist {new_id}")
        return new_id, True

    def playlist_exists(self, playlist_id: str) -> bool:
        result = self.gateway.get_playlist(playlist_id)
        if result.ok:
            return bool(result.value)
        if isinstance(result.error, NotFoundError):
            return False
        raise result.error

    def fetch_existing(self, playlist_id: str, *, force: bool = False) -> List[PlaylistEntry]:
        """All entries of the playlist in position order (every page)."""
        if not force:
            cached = self.cache.get(playlist_id)
            if cached is not None:
                logger.debug("Using cached playlist state")
                return cached

        logger.debug(f"Fetching playlist state for {playlist_id}...")
        entries: List[PlaylistEntry] = []
        pages = iter_pages(
            lambda token: self.gateway.list_playlist_entries(
                playlist_id, page_token=token, page_size=self.settings.page_size
            )
        )
        for page in pages:
            for item in page.get("items") or []:
                entry = PlaylistEntry.from_api(item)
                if entry is not None:
                    entries.append(entry)

        entries = _renumber(sorted(entries, key=lambda e: e.position))
        self.cache.put(playlist_id, entries)
        logger.debug(f"Playlist has {len(entries)} item(s)")
        return entries

    # ---------- ComputeDiff ----------

    def plan(
        self, entries: Sequence[PlaylistEntry], candidates: Sequence[VideoCandidate]
    ) -> ReconcilePlan:
        existing_ids = {e.video_id for e in entries}

        to_add: List[VideoCandidate] = []
        seen: set[str] = set()
        already_present = 0
        for c in candidates:
            if c.id in existing_ids:
                already_present += 1
                continue
            if c.id in seen:
                continue
            seen.add(c.id)
            to_add.append(c)

        plan = ReconcilePlan(
            entries=list(entries), to_add=to_add, already_present=already_present
        )

        if len(entries) + len(to_add) <= self.settings.max_size:
            return plan

        # Rank everything that would exist after inserting; existing entries
        # come first so they win publish-time ties against newcomers.
        plan.entries = self._with_publish_times(entries)
        ranked: List[Tuple[datetime, Any]] = [(e.sort_key, e) for e in plan.entries]
        ranked += [(c.published_at, c) for c in to_add]
        ranked.sort(key=lambda pair: pair[0], reverse=True)

        dropped = [obj for _, obj in ranked[self.settings.max_size :]]
        dropped_ids = {id(obj) for obj in dropped}

        plan.to_add = [c for c in to_add if id(c) not in dropped_ids]
        plan.outside_window = [c for c in to_add if id(c) in dropped_ids]
        plan.to_evict = [obj for obj in dropped if isinstance(obj, PlaylistEntry)]
        return plan

    # ---------- Entry point ----------

    def reconcile(
        self,
        playlist_id: Optional[str],
        candidates: Sequence[VideoCandidate],
        *,
        playlist_exists: Optional[bool] = None,
    ) -> ReconcileReport:
        self._published = {c.id: c.published_at for c in candidates}

        playlist_id, created = self.ensure_playlist(playlist_id, playlist_exists)
        report = ReconcileReport(playlist_id=playlist_id, created=created)

        entries: List[PlaylistEntry] = []
        if playlist_id and not created:
            entries = self.fetch_existing(playlist_id)
        report.existing = len(entries)

        entries = self._resolve_duplicates(playlist_id, entries, report)

        plan = self.plan(entries, candidates)
        self._log_plan(plan)

        if self.settings.dry_run:
            report.final_size = len(plan.entries) + len(plan.to_add) - len(plan.to_evict)
            return report

        assert playlist_id is not None
        model = self._apply_inserts(playlist_id, plan.entries, plan.to_add, report)
        model = self._apply_evictions(playlist_id, model, report)
        if self.settings.reorder:
            model = self._apply_reorder(playlist_id, model, report)

        self.cache.put(playlist_id, model)
        report.final_size = len(model)
        return report

    # ---------- ApplyInserts ----------

    def _apply_inserts(
        self,
        playlist_id: str,
        entries: Sequence[PlaylistEntry],
        to_add: Sequence[VideoCandidate],
        report: ReconcileReport,
    ) -> List[PlaylistEntry]:
        model = list(entries)
        if to_add:
            logger.debug("Executing additions...")

        for c in to_add:
            result = self.gateway.insert_playlist_entry(playlist_id, c.id)

            if result.ok and result.value:
                model.append(
                    PlaylistEntry(
                        entry_id=result.value,
                        video_id=c.id,
                        position=len(model),
                        published_at=c.published_at,
                    )
                )
                report.inserted.append(c.id)
                logger.info(f"Added: {c.title}")
                continue

            _raise_if_fatal(result.error)

            if is_ambiguous(result.error):
                confirmed = self._confirm_insert(playlist_id, c)
                if confirmed is not None:
                    model.append(replace(confirmed, position=len(model)))
                    report.inserted.append(c.id)
                    logger.info(f"Added (confirmed after error): {c.title}")
                    continue

            report.warn(PartialApplyWarning("insert", c.id, result.error))

        return model

    def _confirm_insert(
        self, playlist_id: str, candidate: VideoCandidate
    ) -> Optional[PlaylistEntry]:
        """Re-read the playlist to see whether an ambiguous insert landed."""
        self.cache.invalidate(playlist_id)
        try:
            remote = self.fetch_existing(playlist_id, force=True)
        except (QuotaExceededError, AuthError):
            raise
        except DailyPliError as e:
            logger.warning(f"Could not re-read playlist after failed insert: {e}")
            return None

        for e in remote:
            if e.video_id == candidate.id:
                return replace(e, published_at=candidate.published_at)
        return None

    # ---------- ApplyEvictions ----------

    def _apply_evictions(
        self,
        playlist_id: str,
        entries: Sequence[PlaylistEntry],
        report: ReconcileReport,
    ) -> List[PlaylistEntry]:
        model = list(entries)
        excess = len(model) - self.settings.max_size
        if excess <= 0:
            return _renumber(model)

        model = self._with_publish_times(model)
        victims = _by_recency(model)[self.settings.max_size :]
        logger.debug(f"Evicting {len(victims)} oldest item(s)...")

        removed: set[str] = set()
        for e in victims:
            if self._delete_entry(e, "evict", report):
                removed.add(e.entry_id)
                report.evicted.append(e.video_id)
                logger.info(f"Evicted {e.video_id} (published {e.published_at})")

        return _renumber([e for e in model if e.entry_id not in removed])

    def _delete_entry(
        self, entry: PlaylistEntry, action: str, report: ReconcileReport
    ) -> bool:
        result = self.gateway.delete_playlist_entry(entry.entry_id)
        if result.ok or isinstance(result.error, NotFoundError):
            # Already gone counts as done.
            return True
        _raise_if_fatal(result.error)
        report.warn(PartialApplyWarning(action, entry.video_id, result.error))
        return False

    # ---------- ApplyReorder ----------

    def _apply_reorder(
        self,
        playlist_id: str,
        entries: Sequence[PlaylistEntry],
        report: ReconcileReport,
    ) -> List[PlaylistEntry]:
        work = self._with_publish_times(entries)
        desired = _by_recency(work)

        # Simulate each move locally so only out-of-place entries are updated.
        for target, entry in enumerate(desired):
            current = next(i for i, e in enumerate(work) if e.entry_id == entry.entry_id)
            if current == target:
                continue

            result = self.gateway.update_playlist_entry_position(
                entry.entry_id, playlist_id, entry.video_id, target
            )
            if not result.ok:
                _raise_if_fatal(result.error)
                report.warn(PartialApplyWarning("move", entry.video_id, result.error))
                continue

            work.insert(target, work.pop(current))
            report.moved += 1
            logger.debug(f"Moved {entry.video_id} {current} -> {target}")

        return _renumber(work)

    # ---------- Duplicates ----------

    def _resolve_duplicates(
        self,
        playlist_id: Optional[str],
        entries: Sequence[PlaylistEntry],
        report: ReconcileReport,
    ) -> List[PlaylistEntry]:
        kept: List[PlaylistEntry] = []
        first: Dict[str, PlaylistEntry] = {}

        for e in sorted(entries, key=lambda e: e.position):
            original = first.get(e.video_id)
            if original is None:
                first[e.video_id] = e
                kept.append(e)
                continue

            logger.warning(
                f"Duplicate {e.video_id} at position {e.position} "
                f"(keeping position {original.position}) in playlist {playlist_id}"
            )
            if self.settings.dry_run:
                continue
            if self._delete_entry(e, "remove duplicate", report):
                report.duplicates_removed += 1
            else:
                kept.append(e)

        return _renumber(kept)

    # ---------- Publish times ----------

    def _with_publish_times(self, entries: Sequence[PlaylistEntry]) -> List[PlaylistEntry]:
        """
        Attach publish times from a bulk videos.list lookup, falling back
        to the playlist item's own videoPublishedAt.
        """
        missing = [e.video_id for e in entries if e.video_id not in self._published]
        if missing:
            result = self.gateway.get_video_details(missing)
            if result.ok:
                for item in result.value or []:
                    ts = parse_timestamp((item.get("snippet") or {}).get("publishedAt"))
                    if isinstance(item.get("id"), str) and ts is not None:
                        self._published[item["id"]] = ts
            else:
                _raise_if_fatal(result.error)
                logger.warning(
                    f"Video details lookup failed; using playlist metadata ({result.error})"
                )

        return [
            replace(e, published_at=self._published.get(e.video_id, e.published_at))
            for e in entries
        ]

    # ---------- Reporting ----------

    def _log_plan(self, plan: ReconcilePlan) -> None:
        prefix = "[DRY-RUN] " if self.settings.dry_run else ""
        logger.info(
            f"{prefix}Plan: {len(plan.to_add)} to add, {len(plan.to_evict)} to evict, "
            f"{plan.already_present} already present"
        )
        for c in plan.to_add:
            logger.debug(f"{prefix}  + {c.id}  {c.title[:80]}")
        for e in plan.to_evict:
            logger.debug(f"{prefix}  - {e.video_id}  (published {e.published_at})")
        for c in plan.outside_window:
            logger.debug(
                f"{prefix}  skip {c.id}: older than every entry kept under the cap"
            )
