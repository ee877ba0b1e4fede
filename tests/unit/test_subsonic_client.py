"""Unit tests for the Subsonic client (HTTP layer mocked)."""
import hashlib
from unittest.mock import MagicMock

import pytest
import requests

from daylist.retry_helper import NetworkError, ServerError
from daylist.subsonic_client import SubsonicAPIError, SubsonicAuthError, SubsonicClient


def _response(body=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = {"subsonic-response": body if body is not None else {"status": "ok"}}
    return response


def _ok(**payload):
    return _response({"status": "ok", "version": "1.16.1", **payload})


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.setattr("daylist.retry_helper.time.sleep", lambda _delay: None)
    c = SubsonicClient("http://music.local:4533/", "alice", "s3cret")
    c.session = MagicMock()
    return c


def _query(call):
    return call.kwargs["params"]


class TestAuthentication:
    def test_token_is_md5_of_password_and_salt(self, client):
        client.session.get.return_value = _ok()

        client.ping()

        query = dict(_query(client.session.get.call_args))
        assert query["u"] == "alice"
        assert query["t"] == hashlib.md5(f"s3cret{query['s']}".encode()).hexdigest()
        assert query["f"] == "json"
        assert "p" not in query
        assert client.session.get.call_args.args[0] == "http://music.local:4533/rest/ping"

    def test_fresh_salt_per_request(self, client):
        client.session.get.return_value = _ok()

        client.ping()
        client.ping()

        salts = [dict(_query(call))["s"] for call in client.session.get.call_args_list]
        assert salts[0] != salts[1]

    @pytest.mark.parametrize("code", [40, 41])
    def test_auth_failures(self, client, code):
        client.session.get.return_value = _response(
            {"status": "failed", "error": {"code": code, "message": "Wrong username or password"}}
        )
        with pytest.raises(SubsonicAuthError):
            client.ping()
        assert client.session.get.call_count == 1


class TestErrors:
    def test_api_error_is_not_retried(self, client):
        client.session.get.return_value = _response(
            {"status": "failed", "error": {"code": 70, "message": "Not found"}}
        )
        with pytest.raises(SubsonicAPIError) as exc_info:
            client.get_playlists()
        assert exc_info.value.code == 70
        assert client.session.get.call_count == 1

    def test_server_error_retried_then_succeeds(self, client):
        client.session.get.side_effect = [_response(status_code=503), _ok()]
        assert client.ping() is True
        assert client.session.get.call_count == 2

    def test_server_error_gives_up(self, client):
        client.session.get.return_value = _response(status_code=502)
        with pytest.raises(ServerError):
            client.ping()
        assert client.session.get.call_count == 3

    def test_connection_error_becomes_network_error(self, client):
        client.session.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(NetworkError):
            client.ping()

    def test_client_error_status(self, client):
        client.session.get.return_value = _response(status_code=404)
        with pytest.raises(SubsonicAPIError):
            client.ping()

    def test_malformed_body(self, client):
        response = MagicMock(status_code=200)
        response.json.side_effect = ValueError("not json")
        client.session.get.return_value = response
        with pytest.raises(SubsonicAPIError):
            client.ping()


class TestSongs:
    def test_random_songs_are_parsed(self, client):
        client.session.get.return_value = _ok(randomSongs={"song": [
            {"id": "1", "title": "A", "artist": "X", "genre": "Jazz", "bpm": 0, "playCount": 3},
            {"title": "no id"},
            {"id": "2", "title": "B", "starred": "2024-01-01T00:00:00Z"},
        ]})

        songs = client.get_random_songs(size=2000, genre="Jazz")

        assert [s.id for s in songs] == ["1", "2"]
        assert songs[0].bpm is None
        assert songs[1].starred is True
        query = _query(client.session.get.call_args)
        assert ("size", 500) in query
        assert ("genre", "Jazz") in query

    def test_empty_library(self, client):
        client.session.get.return_value = _ok(randomSongs={})
        assert client.get_random_songs() == []


class TestPlaylists:
    def test_create_sends_repeated_song_ids(self, client):
        client.session.get.return_value = _ok(playlist={"id": 77})

        playlist_id = client.create_playlist("Evening", ["a", "b", "c"])

        assert playlist_id == "77"
        query = _query(client.session.get.call_args)
        assert [v for k, v in query if k == "songId"] == ["a", "b", "c"]
        assert ("name", "Evening") in query

    def test_replace_deletes_matching_versions(self, client):
        client.session.get.side_effect = [
            _ok(playlists={"playlist": [
                {"id": "1", "name": "Focus"},
                {"id": "2", "name": "Focus - Jazz & Soul"},
                {"id": "3", "name": "Focus Flow"},
            ]}),
            _ok(),
            _ok(),
            _ok(playlist={"id": "9"}),
        ]

        new_id = client.replace_playlist("Focus - Jazz", "Focus", ["s1"])

        assert new_id == "9"
        endpoints = [call.args[0].rsplit("/", 1)[-1] for call in client.session.get.call_args_list]
        assert endpoints == ["getPlaylists", "deletePlaylist", "deletePlaylist", "createPlaylist"]
        deleted = [dict(_query(call))["id"] for call in client.session.get.call_args_list[1:3]]
        assert deleted == ["1", "2"]

    def test_replace_skips_empty_playlists(self, client):
        assert client.replace_playlist("Focus", "Focus", []) is None
        client.session.get.assert_not_called()
