import json
import logging
from types import SimpleNamespace

import pytest
from googleapiclient.errors import HttpError


@pytest.fixture(autouse=True)
def clean_env_and_modules(monkeypatch, tmp_path):
    """
    Ensure tests don't leak env, logger state, or cached env views.
    """

    keys = [
        "DAILYPLI_LOGS_DIR",
        "DAILYPLI_AUTH_DIR",
        "DAILYPLI_COMMAND",
        "DAILYPLI_RUN_ID",
        "DAILYPLI_VERBOSE",
        "DAILYPLI_QUIET",
        "DAILYPLI_INCLUDE_PATTERNS",
        "DAILYPLI_MAX_PLAYLIST_SIZE",
        "DAILYPLI_PAGE_SIZE",
        "DAILYPLI_MAX_PAGES",
        "DAILYPLI_PUBLISHED_WITHIN_DAYS",
        "DAILYPLI_MIN_DURATION_SEC",
        "DAILYPLI_REORDER",
        "DAILYPLI_DRY_RUN",
        "DAILYPLI_PLAYLIST_TITLE",
        "DAILYPLI_PLAYLIST_DESCRIPTION",
        "DAILYPLI_PLAYLIST_PRIVACY",
        "YOUTUBE_CHANNEL_ID",
        "YOUTUBE_PLAYLIST_ID",
        "YOUTUBE_CLIENT_ID",
        "YOUTUBE_CLIENT_SECRET",
        "YOUTUBE_ACCESS_TOKEN",
        "YOUTUBE_REFRESH_TOKEN",
        "YT_MAX_RETRIES",
        "YT_BACKOFF_BASE_SEC",
        "YT_BACKOFF_MAX_SEC",
        "YT_SLEEP_SEC",
        "LOG_LEVEL",
        "LOG_RETENTION",
    ]
    for k in keys:
        # setenv first so teardown also drops values the CLI writes directly
        monkeypatch.setenv(k, "")
        monkeypatch.delenv(k)

    # Never write logs or tokens into the source tree
    monkeypatch.setenv("DAILYPLI_LOGS_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("DAILYPLI_AUTH_DIR", str(tmp_path / "auth"))

    from dailypli.env import reset_env_caches

    reset_env_caches()

    # Reset logger global state
    import dailypli.logger.state

    dailypli.logger.state.INITIALIZED = False
    dailypli.logger.state.COMMAND = None
    dailypli.logger.state.RUN_ID = None
    dailypli.logger.state.LOG_DIR = None
    dailypli.logger.state.LOG_FILE_PATH = None

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    yield

    reset_env_caches()


# ------------------------------------------------------------
# HttpError factory
# ------------------------------------------------------------


def http_error(status, reason=""):
    """An HttpError shaped like the YouTube API's JSON error body."""
    body = {
        "error": {
            "code": status,
            "message": reason or f"HTTP {status}",
            "errors": [{"reason": reason}] if reason else [],
        }
    }
    resp = SimpleNamespace(status=status, reason=reason or "error")
    return HttpError(resp, json.dumps(body).encode("utf-8"))


# ------------------------------------------------------------
# In-memory YouTube client
# ------------------------------------------------------------

MUTATING_OPS = {
    "playlists.insert",
    "playlistItems.insert",
    "playlistItems.delete",
    "playlistItems.update",
}


class _Request:
    def __init__(self, youtube, op, params):
        self._youtube = youtube
        self._op = op
        self._params = params

    def execute(self):
        return self._youtube._dispatch(self._op, self._params)


class _Resource:
    def __init__(self, youtube, name):
        self._youtube = youtube
        self._name = name

    def _request(self, verb, params):
        return _Request(self._youtube, f"{self._name}.{verb}", params)

    def list(self, **params):
        return self._request("list", params)

    def insert(self, **params):
        return self._request("insert", params)

    def delete(self, **params):
        return self._request("delete", params)

    def update(self, **params):
        return self._request("update", params)


class FakeYouTube:
    """
    Mimics the chained googleapiclient surface:
    youtube.playlistItems().list(...).execute()

    fail(op, *errors) queues exceptions raised by the next calls of op.
    With apply_before_failure the mutation is applied and then the error
    raised (a write that landed but whose response was lost).
    """

    def __init__(self, channel_id="UC_test"):
        self.channel_ids = {channel_id}
        self.video_meta = {}
        self.uploads = []
        self.playlist_items = {}
        self.created_playlists = []
        self.calls = []
        self._failures = {}
        self._apply_before_failure = set()
        self._seq = 0

    # ---- resources ----

    def search(self):
        return _Resource(self, "search")

    def videos(self):
        return _Resource(self, "videos")

    def channels(self):
        return _Resource(self, "channels")

    def playlists(self):
        return _Resource(self, "playlists")

    def playlistItems(self):
        return _Resource(self, "playlistItems")

    # ---- setup helpers ----

    def add_video(self, video_id, title, published_at, duration="PT3M30S", upload=True):
        self.video_meta[video_id] = {
            "title": title,
            "publishedAt": published_at,
            "duration": duration,
        }
        if upload:
            self.uploads.append(video_id)

    def add_playlist(self, playlist_id, video_ids=()):
        self.playlist_items[playlist_id] = []
        for vid in video_ids:
            self._append_item(playlist_id, vid)

    def playlist_video_ids(self, playlist_id):
        return [item["videoId"] for item in self.playlist_items[playlist_id]]

    def fail(self, op, *errors, apply_before_failure=False):
        self._failures.setdefault(op, []).extend(errors)
        if apply_before_failure:
            self._apply_before_failure.add(op)

    def count(self, op):
        return sum(1 for name, _ in self.calls if name == op)

    @property
    def mutations(self):
        return sum(1 for name, _ in self.calls if name in MUTATING_OPS)

    # ---- dispatch ----

    def _dispatch(self, op, params):
        self.calls.append((op, params))
        queue = self._failures.get(op)
        if queue:
            error = queue.pop(0)
            if op in self._apply_before_failure:
                self._handler(op)(**params)
            raise error
        return self._handler(op)(**params)

    def _handler(self, op):
        return getattr(self, "_" + op.replace(".", "_"))

    def _next_id(self, prefix):
        self._seq += 1
        return f"{prefix}{self._seq}"

    def _append_item(self, playlist_id, video_id):
        entry_id = self._next_id("PLI")
        self.playlist_items[playlist_id].append({"id": entry_id, "videoId": video_id})
        return entry_id

    @staticmethod
    def _page(items, max_results, page_token):
        start = int(page_token or 0)
        end = start + int(max_results)
        page = {"items": items[start:end]}
        if end < len(items):
            page["nextPageToken"] = str(end)
        return page

    # ---- search / videos / channels ----

    def _search_list(self, part, channelId, type, order, maxResults, pageToken=None, publishedAfter=None):
        if channelId not in self.channel_ids:
            return {"items": []}

        ids = sorted(self.uploads, key=lambda v: self.video_meta[v]["publishedAt"], reverse=True)
        if publishedAfter:
            ids = [v for v in ids if self.video_meta[v]["publishedAt"] > publishedAfter]

        items = [
            {
                "kind": "youtube#searchResult",
                "id": {"kind": "youtube#video", "videoId": v},
                "snippet": {
                    "title": self.video_meta[v]["title"],
                    "publishedAt": self.video_meta[v]["publishedAt"],
                    "channelTitle": "Test Channel",
                },
            }
            for v in ids
        ]
        return self._page(items, maxResults, pageToken)

    def _videos_list(self, part, id, maxResults=50):
        items = []
        for v in id.split(","):
            meta = self.video_meta.get(v)
            if meta is None:
                continue
            items.append(
                {
                    "id": v,
                    "snippet": {"title": meta["title"], "publishedAt": meta["publishedAt"]},
                    "contentDetails": {"duration": meta["duration"]},
                }
            )
        return {"items": items}

    def _channels_list(self, part, id=None, mine=None, maxResults=1):
        if mine or id in self.channel_ids:
            return {"items": [{"id": id or next(iter(self.channel_ids))}]}
        return {"items": []}

    # ---- playlists ----

    def _playlists_list(self, part, id, maxResults=1):
        return {"items": [{"id": id}] if id in self.playlist_items else []}

    def _playlists_insert(self, part, body):
        playlist_id = self._next_id("PL")
        self.playlist_items[playlist_id] = []
        self.created_playlists.append(body)
        return {"id": playlist_id}

    # ---- playlist items ----

    def _playlistItems_list(self, part, playlistId, maxResults, pageToken=None):
        if playlistId not in self.playlist_items:
            raise http_error(404, "playlistNotFound")

        items = []
        for position, item in enumerate(self.playlist_items[playlistId]):
            meta = self.video_meta.get(item["videoId"]) or {}
            items.append(
                {
                    "id": item["id"],
                    "snippet": {
                        "position": position,
                        "resourceId": {"kind": "youtube#video", "videoId": item["videoId"]},
                    },
                    "contentDetails": {
                        "videoId": item["videoId"],
                        "videoPublishedAt": meta.get("publishedAt"),
                    },
                }
            )
        return self._page(items, maxResults, pageToken)

    def _playlistItems_insert(self, part, body):
        snippet = body["snippet"]
        entry_id = self._append_item(snippet["playlistId"], snippet["resourceId"]["videoId"])
        return {"id": entry_id}

    def _playlistItems_delete(self, id):
        for items in self.playlist_items.values():
            for i, item in enumerate(items):
                if item["id"] == id:
                    del items[i]
                    return ""
        raise http_error(404, "playlistItemNotFound")

    def _playlistItems_update(self, part, body):
        snippet = body["snippet"]
        items = self.playlist_items[snippet["playlistId"]]
        for i, item in enumerate(items):
            if item["id"] == body["id"]:
                items.insert(int(snippet["position"]), items.pop(i))
                return {"id": body["id"], "snippet": snippet}
        raise http_error(404, "playlistItemNotFound")


@pytest.fixture
def youtube():
    return FakeYouTube()


@pytest.fixture
def make_gateway():
    from dailypli.providers.youtube.api_manager import RetryPolicy, Throttle, YouTubeGateway

    def _make(client, max_attempts=3):
        return YouTubeGateway(
            client,
            RetryPolicy(max_attempts=max_attempts, sleep=lambda _s: None),
            Throttle(0),
        )

    return _make


@pytest.fixture
def gateway(youtube, make_gateway):
    return make_gateway(youtube)
