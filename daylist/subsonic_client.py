"""
Subsonic / OpenSubsonic client: candidate retrieval and playlist publishing.

Uses token authentication (``t = md5(password + salt)``) with a fresh salt
on every request, so the password never travels over the wire.
"""
from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from .logging_utils import format_count
from .playlist.models import Song
from .playlist.naming import matches_base_name
from .retry_helper import NetworkError, ServerError, retry_with_backoff

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "1.16.1"
DEFAULT_CLIENT_NAME = "daylist"
# getRandomSongs refuses sizes above this
MAX_RANDOM_SONGS = 500


class SubsonicAPIError(Exception):
    """The server answered with ``status="failed"``."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"Subsonic error {code}: {message}")


class SubsonicAuthError(SubsonicAPIError):
    """Wrong username or password (codes 40 and 41)."""
    pass


class SubsonicClient:
    """Talks to a Subsonic-compatible server over its REST API."""

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        *,
        client_name: str = DEFAULT_CLIENT_NAME,
        api_version: str = DEFAULT_API_VERSION,
        timeout: int = 15,
        verify_ssl: bool = True,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.client_name = client_name
        self.api_version = api_version
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.session = requests.Session()

    def _auth_params(self) -> Dict[str, str]:
        salt = secrets.token_hex(8)
        token = hashlib.md5(f"{self.password}{salt}".encode("utf-8")).hexdigest()
        return {
            "u": self.username,
            "t": token,
            "s": salt,
            "v": self.api_version,
            "c": self.client_name,
            "f": "json",
        }

    @retry_with_backoff(max_retries=2, initial_delay=1.0, exceptions=(ServerError, NetworkError))
    def _request(
        self,
        endpoint: str,
        params: Optional[Sequence[Tuple[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Call ``/rest/<endpoint>`` and return the ``subsonic-response`` body.

        Params are a list of pairs so repeated keys (``songId``) survive.

        Raises:
            SubsonicAuthError: Credentials rejected
            SubsonicAPIError: Any other API-level failure
            ServerError: 5xx response (retried)
            NetworkError: Connection failure or timeout (retried)
        """
        url = f"{self.base_url}/rest/{endpoint}"
        query = list(self._auth_params().items()) + list(params or [])
        try:
            response = self.session.get(url, params=query, timeout=self.timeout, verify=self.verify_ssl)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise NetworkError(f"{endpoint}: {e}") from e

        if response.status_code >= 500:
            raise ServerError(f"{endpoint}: HTTP {response.status_code}")
        if response.status_code >= 400:
            raise SubsonicAPIError(0, f"{endpoint}: HTTP {response.status_code}")

        try:
            body = response.json()["subsonic-response"]
        except (ValueError, KeyError) as e:
            raise SubsonicAPIError(0, f"{endpoint}: malformed response") from e

        if body.get("status") != "ok":
            error = body.get("error") or {}
            code = int(error.get("code", 0))
            message = error.get("message", "unknown error")
            if code in (40, 41):
                raise SubsonicAuthError(code, message)
            raise SubsonicAPIError(code, message)
        return body

    def ping(self) -> bool:
        """Check connectivity and credentials; raises on failure."""
        body = self._request("ping")
        logger.info("Connected to %s (API %s)", self.base_url, body.get("version", "?"))
        return True

    def get_random_songs(self, size: int = MAX_RANDOM_SONGS, genre: Optional[str] = None) -> List[Song]:
        """
        Fetch a random sample of the library as Song snapshots.

        Args:
            size: Number of songs (capped at 500 by the API)
            genre: Optional server-side genre filter
        """
        params: List[Tuple[str, Any]] = [("size", min(max(size, 1), MAX_RANDOM_SONGS))]
        if genre:
            params.append(("genre", genre))
        body = self._request("getRandomSongs", params)
        now = datetime.now(timezone.utc)
        entries = (body.get("randomSongs") or {}).get("song") or []
        songs = [Song.from_subsonic(entry, now=now) for entry in entries if entry.get("id")]
        logger.info("Fetched %s", format_count(len(songs), "candidate song"))
        return songs

    def get_playlists(self) -> List[Dict[str, Any]]:
        body = self._request("getPlaylists")
        return list((body.get("playlists") or {}).get("playlist") or [])

    def delete_playlist(self, playlist_id: str) -> None:
        self._request("deletePlaylist", [("id", playlist_id)])
        logger.debug("Deleted playlist %s", playlist_id)

    def create_playlist(self, name: str, song_ids: Sequence[str]) -> Optional[str]:
        """Create a playlist and return its server id (None if the server omits it)."""
        params: List[Tuple[str, Any]] = [("name", name)]
        params.extend(("songId", song_id) for song_id in song_ids)
        body = self._request("createPlaylist", params)
        playlist = body.get("playlist") or {}
        playlist_id = playlist.get("id")
        logger.info("Created playlist '%s' with %s", name, format_count(len(song_ids), "song"))
        return str(playlist_id) if playlist_id is not None else None

    def replace_playlist(self, name: str, base_name: str, song_ids: Sequence[str]) -> Optional[str]:
        """
        Delete earlier versions of a playlist, then create the new one.

        Earlier versions are playlists named ``base_name`` or
        ``"<base_name> - <suffix>"``.
        """
        if not song_ids:
            logger.warning("Skipping publish of '%s' (no songs)", name)
            return None

        for playlist in self.get_playlists():
            existing = str(playlist.get("name") or "")
            if matches_base_name(existing, base_name):
                logger.info("Replacing existing playlist '%s' (id=%s)", existing, playlist.get("id"))
                self.delete_playlist(str(playlist["id"]))

        return self.create_playlist(name, song_ids)
