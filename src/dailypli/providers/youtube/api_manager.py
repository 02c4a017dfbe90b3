"""
api_manager.py

Remote API gateway for the YouTube Data API.

Responsibilities:
- HTTP → domain error translation
- Retry policy with exponential backoff
- Minimum spacing between calls
- Lazy pagination
- One method per remote operation the job needs

Every operation returns a CallResult instead of raising; callers decide
whether a failure aborts the run (unwrap) or is recorded and skipped.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterator,
    List,
    Optional,
    Sequence,
    TypeVar,
)

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.errors import HttpError

from dailypli import config
from dailypli.errors import (
    AuthError,
    GatewayError,
    NotFound,
    PermanentRequestError,
    QuotaExceededError,
    RateLimited,
    TransientNetworkError,
    TransientServerError,
    Unauthorized,
)
from dailypli.logger import get_logger

logger = get_logger(__name__)
T = TypeVar("T")

YouTubeClient = Any


# ============================================================
# Error detection helpers
# ============================================================


def _error_reasons(e: HttpError) -> set[str]:
    """
    YouTube signals the failure kind in error.errors[].reason.
    googleapiclient exposes that list as error_details; fall back to
    the raw body when it did not.
    """
    reasons: set[str] = set()

    details = getattr(e, "error_details", None)
    if isinstance(details, list):
        for d in details:
            if isinstance(d, dict) and d.get("reason"):
                reasons.add(str(d["reason"]))
    if reasons:
        return reasons

    content = getattr(e, "content", b"") or b""
    try:
        if isinstance(content, bytes):
            content = content.decode("utf-8", errors="ignore")
        data = json.loads(content)
    except (ValueError, TypeError):
        return reasons

    if isinstance(data, dict):
        for d in (data.get("error") or {}).get("errors") or []:
            if isinstance(d, dict) and d.get("reason"):
                reasons.add(str(d["reason"]))
    return reasons


def _status_code(e: HttpError) -> Optional[int]:
    status = getattr(getattr(e, "resp", None), "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def classify_http_error(e: HttpError) -> Exception:
    """Map an HttpError onto the gateway failure taxonomy."""
    status = _status_code(e)
    reasons = _error_reasons(e)
    message = f"HTTP {status}: {getattr(e, 'reason', '') or e}"

    if reasons & set(config.QUOTA_REASONS):
        error: Exception = QuotaExceededError(message)
    elif status == 429 or reasons & set(config.RATE_LIMIT_REASONS):
        error = RateLimited(message)
    elif status == 401:
        error = Unauthorized(message)
    elif status == 404:
        error = NotFound(message)
    elif status is not None and status >= 500:
        error = TransientServerError(message)
    else:
        error = PermanentRequestError(message)

    error.__cause__ = e
    return error


def is_read_retryable(error: Exception) -> bool:
    return isinstance(error, (TransientNetworkError, Unauthorized))


def is_mutation_retryable(error: Exception) -> bool:
    # Only failures that prove the write was rejected; a 5xx or a timeout
    # may have applied it already.
    return isinstance(error, (RateLimited, Unauthorized))


def is_ambiguous(error: Optional[Exception]) -> bool:
    return isinstance(error, TransientServerError)


# ============================================================
# Result type
# ============================================================


@dataclass(frozen=True)
class CallResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[Exception] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


# ============================================================
# Retry engine
# ============================================================


@dataclass
class RetryPolicy:
    max_attempts: int = config.DEFAULT_MAX_RETRIES
    initial_delay: float = config.DEFAULT_BACKOFF_BASE_SEC
    max_delay: float = config.DEFAULT_BACKOFF_MAX_SEC
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def delay_for(self, attempt: int) -> float:
        """Backoff before the retry that follows ``attempt`` (1-based)."""
        return min(self.initial_delay * (2 ** (attempt - 1)), self.max_delay)

    def run(
        self,
        operation: Callable[[], T],
        retryable: Callable[[Exception], bool],
        name: str = "",
    ) -> CallResult[T]:
        last_error: Optional[Exception] = None
        attempt = 0

        for attempt in range(1, self.max_attempts + 1):
            try:
                return CallResult(value=operation(), attempts=attempt)
            except HttpError as e:
                last_error = classify_http_error(e)
            except GatewayError as e:
                last_error = e
            except RefreshError as e:
                last_error = AuthError(f"credential refresh failed: {e}")
                last_error.__cause__ = e
            except (TransportError, httplib2.HttpLib2Error, OSError) as e:
                last_error = TransientServerError(f"network error: {e}")
                last_error.__cause__ = e

            if attempt == self.max_attempts or not retryable(last_error):
                break

            delay = self.delay_for(attempt)
            logger.warning(
                f"{name} failed (attempt {attempt}/{self.max_attempts}), "
                f"retrying in {delay}s: {last_error}"
            )
            self.sleep(delay)

        logger.debug(f"{name} gave up after {attempt} attempt(s): {last_error}")
        return CallResult(error=last_error, attempts=attempt)


# ============================================================
# Throttle
# ============================================================


class Throttle:
    """Enforces a minimum spacing between consecutive API calls."""

    def __init__(
        self,
        min_interval: float = config.DEFAULT_SLEEP_BETWEEN_CALLS_SEC,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock
        self._sleep = sleep
        self._last: Optional[float] = None

    def wait(self) -> None:
        if self._last is not None and self.min_interval > 0:
            remaining = self.min_interval - (self._clock() - self._last)
            if remaining > 0:
                self._sleep(remaining)
        self._last = self._clock()


# ============================================================
# Pagination
# ============================================================


def iter_pages(
    fetch_page: Callable[[Optional[str]], CallResult[Dict[str, Any]]],
    max_pages: Optional[int] = None,
) -> Iterator[Dict[str, Any]]:
    """
    Lazily yield response pages until nextPageToken runs out or
    ``max_pages`` is reached. A failed page raises its typed error.

    Each call starts again from the first page.
    """
    page_token: Optional[str] = None
    pages = 0

    while True:
        page = fetch_page(page_token).unwrap() or {}
        pages += 1
        yield page

        page_token = page.get("nextPageToken")
        if not page_token:
            return
        if max_pages is not None and pages >= max_pages:
            logger.debug(f"Stopped paging after {pages} page(s)")
            return


# ============================================================
# Gateway
# ============================================================


class YouTubeGateway:
    """Throttled, retrying access to the YouTube Data API."""

    def __init__(
        self,
        youtube: YouTubeClient,
        policy: Optional[RetryPolicy] = None,
        throttle: Optional[Throttle] = None,
    ):
        self.youtube = youtube
        self.policy = policy or RetryPolicy()
        self.throttle = throttle or Throttle()
        self._quota_exhausted = False

    @classmethod
    def from_env(cls, youtube: YouTubeClient, env: Any) -> "YouTubeGateway":
        return cls(
            youtube,
            policy=RetryPolicy(
                max_attempts=env.max_retries,
                initial_delay=env.backoff_base_sec,
                max_delay=env.backoff_max_sec,
            ),
            throttle=Throttle(env.sleep_sec),
        )

    @property
    def quota_exhausted(self) -> bool:
        return self._quota_exhausted

    def execute(
        self,
        name: str,
        build_request: Callable[[], Any],
        *,
        mutating: bool = False,
    ) -> CallResult[Any]:
        """
        Run one remote operation. ``build_request`` returns a fresh
        googleapiclient request on every attempt.
        """
        # Tripwire: once the quota is gone every further call would fail too.
        if self._quota_exhausted:
            return CallResult(
                error=QuotaExceededError("YouTube API quota exhausted"), attempts=0
            )

        def _op() -> Any:
            self.throttle.wait()
            return build_request().execute()

        result = self.policy.run(
            _op,
            is_mutation_retryable if mutating else is_read_retryable,
            name,
        )

        if isinstance(result.error, QuotaExceededError):
            self._quota_exhausted = True
            logger.warning("YouTube API quota exhausted")

        return result

    # ----------------------------
    # Read operations
    # ----------------------------

    def search_channel_videos(
        self,
        channel_id: str,
        page_token: Optional[str] = None,
        published_after: Optional[str] = None,
        page_size: int = config.YOUTUBE_BATCH_SIZE,
    ) -> CallResult[Dict[str, Any]]:
        params: Dict[str, Any] = {
            "part": "snippet",
            "channelId": channel_id,
            "type": "video",
            "order": "date",
            "maxResults": page_size,
        }
        if page_token:
            params["pageToken"] = page_token
        if published_after:
            params["publishedAfter"] = published_after

        return self.execute(
            "search.list", lambda: self.youtube.search().list(**params)
        )

    def get_video_details(
        self, video_ids: Sequence[str]
    ) -> CallResult[List[Dict[str, Any]]]:
        """
        Batch-fetch videos.list (up to 50 ids per call).
        Unknown, private or deleted ids are simply absent from the result.
        """
        ids = [v for v in dict.fromkeys(video_ids) if isinstance(v, str) and v]
        items: List[Dict[str, Any]] = []
        attempts = 0

        for i in range(0, len(ids), config.YOUTUBE_BATCH_SIZE):
            chunk = ids[i : i + config.YOUTUBE_BATCH_SIZE]

            result = self.execute(
                "videos.list",
                lambda: self.youtube.videos().list(
                    part="snippet,contentDetails",
                    id=",".join(chunk),
                    maxResults=config.YOUTUBE_BATCH_SIZE,
                ),
            )
            attempts += result.attempts
            if not result.ok:
                return CallResult(error=result.error, attempts=attempts)
            items.extend((result.value or {}).get("items", []))

        return CallResult(value=items, attempts=max(attempts, 1))

    def channel_exists(self, channel_id: str) -> CallResult[bool]:
        result = self.execute(
            "channels.list",
            lambda: self.youtube.channels().list(
                part="id", id=channel_id, maxResults=1
            ),
        )
        if not result.ok:
            return result
        return CallResult(
            value=bool((result.value or {}).get("items")), attempts=result.attempts
        )

    def get_playlist(self, playlist_id: str) -> CallResult[bool]:
        result = self.execute(
            "playlists.list",
            lambda: self.youtube.playlists().list(
                part="id", id=playlist_id, maxResults=1
            ),
        )
        if not result.ok:
            return result
        return CallResult(
            value=bool((result.value or {}).get("items")), attempts=result.attempts
        )

    def list_playlist_entries(
        self,
        playlist_id: str,
        page_token: Optional[str] = None,
        page_size: int = config.YOUTUBE_BATCH_SIZE,
    ) -> CallResult[Dict[str, Any]]:
        return self.execute(
            "playlistItems.list",
            lambda: self.youtube.playlistItems().list(
                part="snippet,contentDetails",
                playlistId=playlist_id,
                maxResults=page_size,
                pageToken=page_token,
            ),
        )

    # ----------------------------
    # Write operations
    # ----------------------------

    def create_playlist(
        self, title: str, description: str, privacy: str
    ) -> CallResult[str]:
        result = self.execute(
            "playlists.insert",
            lambda: self.youtube.playlists().insert(
                part="snippet,status",
                body={
                    "snippet": {"title": title, "description": description},
                    "status": {"privacyStatus": privacy},
                },
            ),
            mutating=True,
        )
        if not result.ok:
            return result
        return CallResult(value=(result.value or {}).get("id"), attempts=result.attempts)

    def insert_playlist_entry(self, playlist_id: str, video_id: str) -> CallResult[str]:
        """Append a video to the playlist. Returns the new playlistItemId."""
        result = self.execute(
            f"insert {video_id}",
            lambda: self.youtube.playlistItems().insert(
                part="snippet",
                body={
                    "snippet": {
                        "playlistId": playlist_id,
                        "resourceId": {"kind": "youtube#video", "videoId": video_id},
                    }
                },
            ),
            mutating=True,
        )
        if not result.ok:
            return result
        return CallResult(value=(result.value or {}).get("id"), attempts=result.attempts)

    def delete_playlist_entry(self, entry_id: str) -> CallResult[None]:
        return self.execute(
            f"delete playlistItemId={entry_id}",
            lambda: self.youtube.playlistItems().delete(id=entry_id),
            mutating=True,
        )

    def update_playlist_entry_position(
        self, entry_id: str, playlist_id: str, video_id: str, position: int
    ) -> CallResult[None]:
        return self.execute(
            f"move {video_id} -> {position}",
            lambda: self.youtube.playlistItems().update(
                part="snippet",
                body={
                    "id": entry_id,
                    "snippet": {
                        "playlistId": playlist_id,
                        "position": int(position),
                        "resourceId": {"kind": "youtube#video", "videoId": video_id},
                    },
                },
            ),
            mutating=True,
        )


__all__ = [
    "CallResult",
    "RetryPolicy",
    "Throttle",
    "YouTubeGateway",
    "classify_http_error",
    "is_ambiguous",
    "iter_pages",
]
