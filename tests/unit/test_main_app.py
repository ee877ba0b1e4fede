"""Tests for the command-line entry point."""
import json
import logging
from unittest.mock import MagicMock

import pytest

import daylist.logging_utils as logging_utils
import main_app
from daylist.config_loader import Config
from daylist.retry_helper import NetworkError
from daylist.subsonic_client import SubsonicAuthError

CONFIG = """
subsonic:
  url: "http://music.local"
  username: "alice"
  password: "s3cret"
playlists:
  random_seed: 11
"""


@pytest.fixture()
def config_path(tmp_path, monkeypatch):
    for name in ("SUBSONIC_URL", "SUBSONIC_USER", "SUBSONIC_PASSWORD"):
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG, encoding="utf-8")
    return path


@pytest.fixture()
def playlists_path(tmp_path):
    path = tmp_path / "playlists.json"
    path.write_text(json.dumps([
        {"name": "Jazz", "target_length": 5, "acceptable_genres": ["jazz"], "genre_suffix": 1},
        {"name": "Polka", "acceptable_genres": ["polka"]},
    ]), encoding="utf-8")
    return str(path)


@pytest.fixture()
def client(make_song):
    mock = MagicMock()
    mock.get_random_songs.return_value = [
        make_song(i, genre="jazz" if i % 2 else "rock") for i in range(20)
    ]
    return mock


class TestPlaylistApp:
    def test_publishes_non_empty_playlists(self, config_path, playlists_path, client):
        app = main_app.PlaylistApp(Config(str(config_path)), client=client)

        assert app.run(playlists_path=playlists_path) == main_app.EXIT_OK

        client.ping.assert_called_once()
        client.replace_playlist.assert_called_once()
        name, base_name, song_ids = client.replace_playlist.call_args.args
        assert name == "Jazz - Jazz"
        assert base_name == "Jazz"
        assert len(song_ids) == 5

    def test_dry_run_publishes_nothing(self, config_path, playlists_path, client):
        app = main_app.PlaylistApp(Config(str(config_path)), client=client)

        assert app.run(playlists_path=playlists_path, dry_run=True) == main_app.EXIT_OK

        client.replace_playlist.assert_not_called()

    def test_dry_run_log_lists_tracks_and_run_summary(
        self, config_path, playlists_path, client, caplog, monkeypatch
    ):
        """Track lines carry their genres and the summary names the run."""
        monkeypatch.setattr(logging_utils, "_run_id", "abc12345")
        caplog.set_level(logging.INFO, logger="daylist.app")
        app = main_app.PlaylistApp(Config(str(config_path)), client=client)

        app.run(playlists_path=playlists_path, dry_run=True)

        messages = [record.getMessage() for record in caplog.records]
        assert any(m.endswith("[120 bpm] jazz") for m in messages)
        assert "  Run Id: abc12345" in messages
        assert "  Playlists: 2" in messages

    def test_publish_failure_does_not_abort(self, config_path, playlists_path, client):
        client.replace_playlist.side_effect = NetworkError("down")
        app = main_app.PlaylistApp(Config(str(config_path)), client=client)

        assert app.run(playlists_path=playlists_path) == main_app.EXIT_OK

    def test_no_playlists_generated(self, config_path, tmp_path, client):
        path = tmp_path / "only_polka.json"
        path.write_text(json.dumps([{"name": "Polka", "acceptable_genres": ["polka"]}]), encoding="utf-8")
        app = main_app.PlaylistApp(Config(str(config_path)), client=client)

        assert app.run(playlists_path=str(path)) == main_app.EXIT_NO_PLAYLISTS

    def test_auth_failure_is_a_setup_failure(self, config_path, playlists_path, client):
        client.ping.side_effect = SubsonicAuthError(40, "Wrong username or password")
        app = main_app.PlaylistApp(Config(str(config_path)), client=client)

        assert app.run(playlists_path=playlists_path) == main_app.EXIT_SETUP_FAILED
        client.get_random_songs.assert_not_called()

    def test_missing_playlists_file(self, config_path, tmp_path, client):
        app = main_app.PlaylistApp(Config(str(config_path)), client=client)
        assert app.run(playlists_path=str(tmp_path / "nope.json")) == main_app.EXIT_SETUP_FAILED


class TestMain:
    @pytest.fixture(autouse=True)
    def no_logging_setup(self, monkeypatch):
        monkeypatch.setattr(main_app, "configure_logging", lambda **kwargs: None)

    def test_missing_config_exits_with_setup_failure(self, tmp_path):
        assert main_app.main(["--config", str(tmp_path / "missing.yaml")]) == main_app.EXIT_SETUP_FAILED

    def test_cli_flags_reach_the_run(self, config_path, playlists_path, client, monkeypatch):
        monkeypatch.setattr(main_app, "SubsonicClient", lambda *args, **kwargs: client)

        code = main_app.main([
            "--config", str(config_path),
            "--playlists", playlists_path,
            "--dry-run",
            "--seed", "3",
        ])

        assert code == main_app.EXIT_OK
        client.replace_playlist.assert_not_called()
        client.get_random_songs.assert_called_once_with(500)
