"""Tests for the YouTube client with a mocked discovery service."""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from googleapiclient.errors import HttpError

from yt_playlist_migrator.clients.youtube import (
    YouTubeAPIError,
    YouTubeClient,
    YouTubeQuotaExceededError,
)
from yt_playlist_migrator.core.models import ErrorKind


def _http_error(status: int, reason: str = "", message: str = "") -> HttpError:
    body = {"error": {"code": status, "message": message,
                      "errors": [{"reason": reason, "message": message}] if reason else []}}
    resp = SimpleNamespace(status=status, reason=message or "error")
    return HttpError(resp, json.dumps(body).encode("utf-8"))


@pytest.fixture
def service():
    return MagicMock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def client(service, sleeps):
    return YouTubeClient(service=service, sleep=sleeps.append)


def _insert_execute(service):
    return service.playlistItems.return_value.insert.return_value.execute


def test_add_success(client, service):
    result = client.add_to_playlist("PLdst", "v1")

    assert result.ok
    body = service.playlistItems.return_value.insert.call_args.kwargs["body"]
    assert body["snippet"]["playlistId"] == "PLdst"
    assert body["snippet"]["resourceId"] == {"kind": "youtube#video", "videoId": "v1"}


@pytest.mark.parametrize("error, kind", [
    (_http_error(404, "videoNotFound", "Video not found."), ErrorKind.REFERENCE_NOT_FOUND),
    (_http_error(404, "", "Video not found."), ErrorKind.REFERENCE_NOT_FOUND),
    (_http_error(400, "failedPrecondition", "Precondition check failed."), ErrorKind.PRECONDITION_FAILED),
    (_http_error(403, "quotaExceeded", "The request cannot be completed."), ErrorKind.QUOTA_EXCEEDED),
    (_http_error(404, "playlistNotFound", "Playlist not found."), ErrorKind.TRANSPORT),
    (_http_error(400, "invalidValue", "Bad value."), ErrorKind.TRANSPORT),
])
def test_add_failures_are_classified(client, service, error, kind):
    _insert_execute(service).side_effect = error

    result = client.add_to_playlist("PLdst", "v1")

    assert not result.ok
    assert result.kind is kind


def test_server_error_on_insert_is_not_retried(client, service, sleeps):
    _insert_execute(service).side_effect = _http_error(503, "backendError", "Backend Error")

    result = client.add_to_playlist("PLdst", "v1")

    assert result.kind is ErrorKind.TRANSPORT
    assert _insert_execute(service).call_count == 1
    assert sleeps == []


def test_server_error_after_insert_is_transport(client, service):
    # The first insert may have landed; a second call would duplicate the item
    _insert_execute(service).side_effect = [_http_error(500, "backendError", "oops"), {"id": "x"}]

    result = client.add_to_playlist("PLdst", "v1")

    assert not result.ok
    assert result.kind is ErrorKind.TRANSPORT
    assert _insert_execute(service).call_count == 1


def test_network_error_becomes_transport(client, service, sleeps):
    _insert_execute(service).side_effect = ConnectionError("reset")

    result = client.add_to_playlist("PLdst", "v1")

    assert result.kind is ErrorKind.TRANSPORT
    assert _insert_execute(service).call_count == 1
    assert sleeps == []


def test_rate_limited_insert_waits_and_retries(client, service, sleeps):
    _insert_execute(service).side_effect = [_http_error(403, "rateLimitExceeded", "slow down"), {"id": "x"}]

    assert client.add_to_playlist("PLdst", "v1").ok
    assert sleeps == [60]


def test_listing_server_error_is_retried(client, service, sleeps):
    execute = service.playlists.return_value.list.return_value.execute
    execute.side_effect = [_http_error(503, "backendError", "Backend Error"),
                           {"items": [{"id": "PL1", "snippet": {"title": "Music"}}]}]

    playlists = client.get_my_playlists()

    assert [p.playlist_id for p in playlists] == ["PL1"]
    assert execute.call_count == 2
    assert sleeps == [1]


def test_get_playlist_items_follows_pages(client, service):
    execute = service.playlistItems.return_value.list.return_value.execute
    execute.side_effect = [
        {"items": [{"id": "i1", "snippet": {"title": "One", "position": 0},
                    "contentDetails": {"videoId": "v1"}}],
         "nextPageToken": "t1"},
        {"nextPageToken": "t2"},
        {"items": [{"id": "i2", "snippet": {"title": "Two", "position": 1,
                                            "resourceId": {"videoId": "v2"}},
                    "contentDetails": {}}]},
    ]

    items = client.get_playlist_items("PLsrc")

    assert [i.video_id for i in items] == ["v1", "v2"]
    assert [i.position for i in items] == [0, 1]
    tokens = [c.kwargs["pageToken"] for c in service.playlistItems.return_value.list.call_args_list]
    assert tokens == [None, "t1", "t2"]


def test_listing_quota_error_raises(client, service):
    service.playlists.return_value.list.return_value.execute.side_effect = \
        _http_error(403, "quotaExceeded", "quota")

    with pytest.raises(YouTubeQuotaExceededError):
        client.get_my_playlists()


def test_listing_api_error_raises(client, service):
    service.playlists.return_value.list.return_value.execute.side_effect = \
        _http_error(401, "authError", "Invalid Credentials")

    with pytest.raises(YouTubeAPIError):
        client.get_my_playlists()


def test_find_playlist_by_title(client, service):
    service.playlists.return_value.list.return_value.execute.return_value = {
        "items": [
            {"id": "PL1", "snippet": {"title": "Music"}, "contentDetails": {"itemCount": 4}},
            {"id": "PL2", "snippet": {"title": "Migrated - Music"}, "status": {"privacyStatus": "private"}},
        ]
    }

    found = client.find_playlist_by_title("Migrated - Music")

    assert found.playlist_id == "PL2"
    assert found.privacy == "private"
    assert client.find_playlist_by_title("Nope") is None


def test_create_playlist(client, service):
    service.playlists.return_value.insert.return_value.execute.return_value = {
        "id": "PLnew", "snippet": {"title": "Migrated - Music", "description": "d"},
        "status": {"privacyStatus": "unlisted"},
    }

    playlist = client.create_playlist("Migrated - Music", "d", "unlisted")

    assert playlist.playlist_id == "PLnew"
    body = service.playlists.return_value.insert.call_args.kwargs["body"]
    assert body == {"snippet": {"title": "Migrated - Music", "description": "d"},
                    "status": {"privacyStatus": "unlisted"}}


def test_create_playlist_server_error_is_not_retried(client, service, sleeps):
    execute = service.playlists.return_value.insert.return_value.execute
    execute.side_effect = _http_error(500, "backendError", "oops")

    with pytest.raises(YouTubeAPIError):
        client.create_playlist("Migrated - Music", "d", "private")

    assert execute.call_count == 1
    assert sleeps == []
