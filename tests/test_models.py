from datetime import datetime, timezone

from dailypli.models import (
    OLDEST,
    PlaylistEntry,
    VideoCandidate,
    format_timestamp,
    parse_duration,
    parse_timestamp,
)


def test_parse_timestamp_is_timezone_aware():
    ts = parse_timestamp("2024-05-01T10:00:00Z")
    assert ts == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def test_parse_timestamp_rejects_garbage():
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None


def test_format_timestamp_round_trips_api_format():
    assert format_timestamp(datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)) == (
        "2024-05-01T10:00:00Z"
    )


def test_parse_duration():
    assert parse_duration("PT1H2M3S") == 3723
    assert parse_duration("PT45S") == 45
    assert parse_duration("garbage") == 0
    assert parse_duration(None) == 0


def test_candidate_from_search_item():
    item = {
        "id": {"kind": "youtube#video", "videoId": "abc"},
        "snippet": {
            "title": "Song [MV]",
            "publishedAt": "2024-05-01T10:00:00Z",
            "channelTitle": "Label",
        },
    }
    c = VideoCandidate.from_api(item)

    assert c.id == "abc"
    assert c.channel_name == "Label"
    assert c.published_at.year == 2024


def test_candidate_skips_non_video_search_results():
    item = {
        "id": {"kind": "youtube#playlist", "playlistId": "PL"},
        "snippet": {"title": "x", "publishedAt": "2024-05-01T10:00:00Z"},
    }
    assert VideoCandidate.from_api(item) is None


def test_candidate_from_videos_item():
    item = {"id": "abc", "snippet": {"title": "t", "publishedAt": "2024-05-01T10:00:00Z"}}
    assert VideoCandidate.from_api(item, duration_sec=200).duration_sec == 200


def test_playlist_entry_from_api():
    item = {
        "id": "PLI1",
        "snippet": {"position": 3, "resourceId": {"videoId": "abc"}},
        "contentDetails": {"videoId": "abc", "videoPublishedAt": "2024-05-01T10:00:00Z"},
    }
    e = PlaylistEntry.from_api(item)

    assert e.entry_id == "PLI1"
    assert e.video_id == "abc"
    assert e.position == 3
    assert e.published_at is not None


def test_unknown_publish_time_sorts_oldest():
    e = PlaylistEntry(entry_id="PLI1", video_id="gone", position=0)
    assert e.sort_key == OLDEST
