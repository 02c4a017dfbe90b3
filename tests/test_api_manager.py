import pytest

from conftest import http_error


@pytest.mark.parametrize(
    "status, reason, expected",
    [
        (403, "quotaExceeded", "QuotaExceededError"),
        (403, "dailyLimitExceeded", "QuotaExceededError"),
        (403, "rateLimitExceeded", "RateLimited"),
        (429, "", "RateLimited"),
        (401, "authError", "Unauthorized"),
        (404, "playlistNotFound", "NotFound"),
        (500, "backendError", "TransientServerError"),
        (503, "", "TransientServerError"),
        (400, "invalidValue", "PermanentRequestError"),
        (403, "forbidden", "PermanentRequestError"),
    ],
)
def test_http_errors_are_classified(status, reason, expected):
    from dailypli.providers.youtube.api_manager import classify_http_error

    err = classify_http_error(http_error(status, reason))
    assert type(err).__name__ == expected
    assert err.__cause__ is not None


def test_quota_reason_read_from_raw_body_when_details_missing():
    from dailypli.errors import QuotaExceededError
    from dailypli.providers.youtube.api_manager import classify_http_error

    e = http_error(403, "quotaExceeded")
    e.error_details = ""

    assert isinstance(classify_http_error(e), QuotaExceededError)


def test_backoff_delay_doubles_and_caps():
    from dailypli.providers.youtube.api_manager import RetryPolicy

    policy = RetryPolicy(max_attempts=6, initial_delay=1.0, max_delay=5.0)
    assert [policy.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_transient_failure_then_success_succeeds_on_second_attempt(youtube, gateway):
    youtube.add_playlist("PL1")
    youtube.fail("playlistItems.list", http_error(503, "backendError"))

    result = gateway.list_playlist_entries("PL1")

    assert result.ok
    assert result.attempts == 2
    assert youtube.count("playlistItems.list") == 2


def test_dns_failure_is_retried_like_a_network_error(youtube, gateway):
    import httplib2

    youtube.add_playlist("PL1")
    youtube.fail(
        "playlistItems.list",
        httplib2.ServerNotFoundError("Unable to find the server at youtube.googleapis.com"),
    )

    result = gateway.list_playlist_entries("PL1")

    assert result.ok
    assert result.attempts == 2


def test_dns_failure_on_every_attempt_returns_result(youtube, make_gateway):
    import httplib2

    from dailypli.errors import TransientServerError

    gw = make_gateway(youtube, max_attempts=2)
    youtube.fail("search.list", *[httplib2.ServerNotFoundError("no dns")] * 2)

    result = gw.search_channel_videos("UC_test")

    assert isinstance(result.error, TransientServerError)
    assert isinstance(result.error.__cause__, httplib2.ServerNotFoundError)
    assert result.attempts == 2


def test_read_gives_up_after_max_attempts(youtube, make_gateway):
    from dailypli.errors import TransientServerError

    gw = make_gateway(youtube, max_attempts=3)
    youtube.fail("search.list", *[http_error(500, "backendError")] * 5)

    result = gw.search_channel_videos("UC_test")

    assert not result.ok
    assert isinstance(result.error, TransientServerError)
    assert result.attempts == 3


def test_retry_sleeps_with_backoff(youtube):
    from dailypli.providers.youtube.api_manager import RetryPolicy, Throttle, YouTubeGateway

    slept = []
    gw = YouTubeGateway(
        youtube,
        RetryPolicy(max_attempts=3, initial_delay=0.5, max_delay=10, sleep=slept.append),
        Throttle(0),
    )
    youtube.fail("search.list", http_error(503), http_error(503))

    assert gw.search_channel_videos("UC_test").ok
    assert slept == [0.5, 1.0]


def test_mutation_not_retried_on_server_error(youtube, gateway):
    from dailypli.errors import TransientServerError

    youtube.add_playlist("PL1")
    youtube.fail("playlistItems.insert", http_error(500, "backendError"))

    result = gateway.insert_playlist_entry("PL1", "vid1")

    assert isinstance(result.error, TransientServerError)
    assert youtube.count("playlistItems.insert") == 1


def test_mutation_retried_when_rate_limited(youtube, gateway):
    youtube.add_playlist("PL1")
    youtube.fail("playlistItems.insert", http_error(429))

    result = gateway.insert_playlist_entry("PL1", "vid1")

    assert result.ok
    assert youtube.playlist_video_ids("PL1") == ["vid1"]


def test_quota_is_never_retried_and_trips_the_gateway(youtube, gateway):
    from dailypli.errors import QuotaExceededError

    youtube.fail("search.list", http_error(403, "quotaExceeded"))

    first = gateway.search_channel_videos("UC_test")
    second = gateway.channel_exists("UC_test")

    assert isinstance(first.error, QuotaExceededError)
    assert first.attempts == 1
    assert isinstance(second.error, QuotaExceededError)
    assert gateway.quota_exhausted
    # Tripwire short-circuits without touching the client
    assert youtube.count("channels.list") == 0


def test_unwrap_raises_typed_error(youtube, gateway):
    from dailypli.errors import NotFoundError

    with pytest.raises(NotFoundError):
        gateway.list_playlist_entries("missing").unwrap()


def test_throttle_spaces_calls():
    from dailypli.providers.youtube.api_manager import Throttle

    now = [100.0]
    slept = []

    def fake_sleep(s):
        slept.append(s)
        now[0] += s

    t = Throttle(1.0, clock=lambda: now[0], sleep=fake_sleep)
    t.wait()
    now[0] += 0.25
    t.wait()
    now[0] += 2.0
    t.wait()

    assert slept == [0.75]


def test_iter_pages_is_lazy_and_respects_ceiling(youtube, gateway):
    from dailypli.providers.youtube.api_manager import iter_pages

    for i in range(7):
        youtube.add_video(f"v{i}", f"Song {i} [MV]", f"2024-05-0{i + 1}T00:00:00Z")

    pages = iter_pages(
        lambda token: gateway.search_channel_videos("UC_test", page_token=token, page_size=2),
        max_pages=3,
    )
    assert youtube.count("search.list") == 0

    first = next(pages)
    assert len(first["items"]) == 2
    assert youtube.count("search.list") == 1

    rest = list(pages)
    assert len(rest) == 2
    assert youtube.count("search.list") == 3


def test_video_details_batches_by_fifty(youtube, gateway):
    for i in range(120):
        youtube.add_video(f"v{i}", "x", "2024-05-01T00:00:00Z", upload=False)

    result = gateway.get_video_details([f"v{i}" for i in range(120)] + ["unknown"])

    assert result.ok
    assert len(result.value) == 120
    assert youtube.count("videos.list") == 3
