from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

from dailypli import config
from dailypli.errors import ConfigurationError

# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------


def _as_bool(v: str) -> bool:
    return v.strip().lower() in {"1", "true", "yes", "on"}


def _as_int(v: str, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return default


def _as_float(v: str, default: float) -> float:
    try:
        return float(v)
    except Exception:
        return default


def _as_list(v: str) -> List[str]:
    return [p.strip() for p in v.split(",") if p.strip()]


# ------------------------------------------------------------
# Logging environment (SAFE ANYWHERE)
# ------------------------------------------------------------


@dataclass(frozen=True)
class LoggingEnvironment:
    log_level: str
    log_retention: int
    verbose: bool
    quiet: bool


def get_logging_env() -> LoggingEnvironment:
    log_level = os.environ.get("LOG_LEVEL", config.DEFAULT_LOG_LEVEL)
    log_retention = _as_int(
        os.environ.get("LOG_RETENTION", str(config.DEFAULT_LOG_RETENTION)),
        config.DEFAULT_LOG_RETENTION,
    )

    verbose = _as_bool(os.environ.get("DAILYPLI_VERBOSE", "0"))
    quiet = _as_bool(os.environ.get("DAILYPLI_QUIET", "0"))

    return LoggingEnvironment(
        log_level=log_level,
        log_retention=log_retention,
        verbose=verbose,
        quiet=quiet,
    )


# ------------------------------------------------------------
# Full runtime environment
# ------------------------------------------------------------


class Environment:
    """
    Snapshot of every runtime setting.

    Built once from os.environ and passed explicitly to the gateway,
    the stages and the auth provider.
    """

    def __init__(self):
        # Logging snapshot (immutable)
        self._logging = get_logging_env()

        # ---- TARGETS ----
        self.channel_id = os.environ.get("YOUTUBE_CHANNEL_ID", "").strip()
        self.playlist_id = os.environ.get("YOUTUBE_PLAYLIST_ID", "").strip()

        # ---- CREDENTIALS ----
        self.client_id = os.environ.get("YOUTUBE_CLIENT_ID", "").strip()
        self.client_secret = os.environ.get("YOUTUBE_CLIENT_SECRET", "").strip()
        self.access_token = os.environ.get("YOUTUBE_ACCESS_TOKEN", "").strip()
        self.refresh_token = os.environ.get("YOUTUBE_REFRESH_TOKEN", "").strip()

        # ---- SELECTION ----
        patterns = os.environ.get("DAILYPLI_INCLUDE_PATTERNS", "")
        self.include_patterns = (
            _as_list(patterns) if patterns.strip() else list(config.DEFAULT_INCLUDE_PATTERNS)
        )
        self.max_playlist_size = _as_int(
            os.environ.get("DAILYPLI_MAX_PLAYLIST_SIZE", ""),
            config.DEFAULT_MAX_PLAYLIST_SIZE,
        )
        self.page_size = _as_int(
            os.environ.get("DAILYPLI_PAGE_SIZE", ""), config.YOUTUBE_BATCH_SIZE
        )
        self.max_pages = _as_int(
            os.environ.get("DAILYPLI_MAX_PAGES", ""), config.DEFAULT_MAX_SEARCH_PAGES
        )
        self.published_within_days = _as_int(
            os.environ.get("DAILYPLI_PUBLISHED_WITHIN_DAYS", ""),
            config.DEFAULT_PUBLISHED_WITHIN_DAYS,
        )
        self.min_duration_sec = _as_int(
            os.environ.get("DAILYPLI_MIN_DURATION_SEC", ""),
            config.DEFAULT_MIN_DURATION_SEC,
        )

        # ---- PLAYLIST CREATION ----
        self.playlist_title = (
            os.environ.get("DAILYPLI_PLAYLIST_TITLE") or config.DEFAULT_PLAYLIST_TITLE
        )
        self.playlist_description = (
            os.environ.get("DAILYPLI_PLAYLIST_DESCRIPTION")
            or config.DEFAULT_PLAYLIST_DESCRIPTION
        )
        self.playlist_privacy = (
            os.environ.get("DAILYPLI_PLAYLIST_PRIVACY") or config.DEFAULT_PLAYLIST_PRIVACY
        ).strip().lower()

        # ---- REQUEST POLICY ----
        self.sleep_sec = _as_float(
            os.environ.get("YT_SLEEP_SEC", ""), config.DEFAULT_SLEEP_BETWEEN_CALLS_SEC
        )
        self.max_retries = _as_int(
            os.environ.get("YT_MAX_RETRIES", ""), config.DEFAULT_MAX_RETRIES
        )
        self.backoff_base_sec = _as_float(
            os.environ.get("YT_BACKOFF_BASE_SEC", ""), config.DEFAULT_BACKOFF_BASE_SEC
        )
        self.backoff_max_sec = _as_float(
            os.environ.get("YT_BACKOFF_MAX_SEC", ""), config.DEFAULT_BACKOFF_MAX_SEC
        )

        # ---- PIPELINE FLAGS ----
        self.command = os.environ.get("DAILYPLI_COMMAND", "sync")
        self.reorder = _as_bool(os.environ.get("DAILYPLI_REORDER", "0"))
        self.dry_run = _as_bool(os.environ.get("DAILYPLI_DRY_RUN", "0"))

    def validate(self) -> None:
        """Raise ConfigurationError for settings a sync run cannot work without."""
        if not self.channel_id:
            raise ConfigurationError(
                "Missing required environment variable: YOUTUBE_CHANNEL_ID"
            )
        if not self.include_patterns:
            raise ConfigurationError("DAILYPLI_INCLUDE_PATTERNS is empty")
        if self.max_playlist_size <= 0:
            raise ConfigurationError(
                f"DAILYPLI_MAX_PLAYLIST_SIZE must be positive, got {self.max_playlist_size}"
            )
        if not 1 <= self.page_size <= config.YOUTUBE_BATCH_SIZE:
            raise ConfigurationError(
                f"DAILYPLI_PAGE_SIZE must be within 1..{config.YOUTUBE_BATCH_SIZE}, "
                f"got {self.page_size}"
            )
        if self.max_pages <= 0:
            raise ConfigurationError(
                f"DAILYPLI_MAX_PAGES must be positive, got {self.max_pages}"
            )
        if self.max_retries <= 0:
            raise ConfigurationError(
                f"YT_MAX_RETRIES must be positive, got {self.max_retries}"
            )
        if self.playlist_privacy not in config.PLAYLIST_PRIVACY_VALUES:
            raise ConfigurationError(
                f"DAILYPLI_PLAYLIST_PRIVACY must be one of "
                f"{', '.join(config.PLAYLIST_PRIVACY_VALUES)}, got {self.playlist_privacy!r}"
            )

    def as_dict(self) -> dict:
        return {
            "Logging": {
                "log_level": self.log_level,
                "log_retention": self.log_retention,
                "verbose": self.verbose,
                "quiet": self.quiet,
            },
            "Targets": {
                "channel_id": self.channel_id,
                "playlist_id": self.playlist_id or "(create)",
            },
            "Selection": {
                "include_patterns": self.include_patterns,
                "max_playlist_size": self.max_playlist_size,
                "page_size": self.page_size,
                "max_pages": self.max_pages,
                "published_within_days": self.published_within_days,
                "min_duration_sec": self.min_duration_sec,
            },
            "Behavior": {
                "reorder": self.reorder,
                "dry_run": self.dry_run,
            },
            "API": {
                "credentials": "env" if self.refresh_token else "token file",
                "sleep_sec": self.sleep_sec,
                "max_retries": self.max_retries,
            },
        }

    # ---- logging passthrough ----
    @property
    def log_level(self) -> str:
        return self._logging.log_level

    @property
    def log_retention(self) -> int:
        return self._logging.log_retention

    @property
    def verbose(self) -> bool:
        return self._logging.verbose

    @property
    def quiet(self) -> bool:
        return self._logging.quiet


_ENV: Optional[Environment] = None


def reset_env_caches() -> None:
    """Invalidate cached views of environment variables."""
    global _ENV
    _ENV = None


def get_env() -> Environment:
    global _ENV
    if _ENV is None:
        _ENV = Environment()
    return _ENV
