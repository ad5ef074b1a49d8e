"""Spotify Web API Client - playlist reads and refresh-token exchange"""

import logging
import time

import requests

from playlist_migrator.core.models import TokenGrant, Track

logger = logging.getLogger(__name__)

API_URL = "https://api.spotify.com/v1"
TOKEN_URL = "https://accounts.spotify.com/api/token"
TRACK_FIELDS = "items(track(name,duration_ms,artists(name))),next"
PAGE_SIZE = 50


class SpotifyAuthError(Exception):
    pass


class SpotifyAPIError(Exception):
    pass


class SpotifyClient:
    def __init__(self, client_id: str, client_secret: str, timeout: float = 15.0,
                 session: requests.Session | None = None):
        self._client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout
        self._session = session or requests.Session()

    def _get(self, url: str, access_token: str, params: dict | None = None) -> dict:
        try:
            response = self._session.get(
                url,
                headers={"Authorization": f"Bearer {access_token}"},
                params=params,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise SpotifyAPIError(f"Request to {url} failed: {e}")

        if response.status_code == 401:
            raise SpotifyAuthError(f"Access token rejected: {response.text[:200]}")
        if response.status_code != 200:
            logger.error(f"Spotify error {response.status_code}: {response.text[:200]}")
            raise SpotifyAPIError(f"Spotify returned {response.status_code} for {url}")

        try:
            return response.json()
        except ValueError as e:
            raise SpotifyAPIError(f"Malformed response from {url}: {e}")

    def get_tracks_page(self, access_token: str, playlist_id: str,
                        cursor: str | None = None) -> tuple[list[Track], str | None]:
        """Fetch one page of playlist tracks. Returns (tracks, next cursor)."""
        if cursor:
            data = self._get(cursor, access_token)
        else:
            data = self._get(
                f"{API_URL}/playlists/{playlist_id}/tracks",
                access_token,
                params={"fields": TRACK_FIELDS, "limit": PAGE_SIZE},
            )

        items = data.get("items")
        if not isinstance(items, list):
            raise SpotifyAPIError("Response missing 'items'")

        tracks = []
        for item in items:
            track = self._extract_track(item)
            if track:
                tracks.append(track)
            else:
                logger.debug(f"Skipping item without track data: {item}")

        return tracks, data.get("next")

    def _extract_track(self, item: dict) -> Track | None:
        if not isinstance(item, dict):
            return None
        track_data = item.get("track")
        if not isinstance(track_data, dict):
            return None

        name = track_data.get("name")
        artists = track_data.get("artists") or []
        artist = artists[0].get("name") if artists and isinstance(artists[0], dict) else None
        if not name or not artist:
            return None

        return Track(name=name, artist=artist, duration_ms=track_data.get("duration_ms"))

    def get_playlists(self, access_token: str) -> list[dict]:
        """List the current user's playlists."""
        playlists = []
        url = f"{API_URL}/me/playlists"
        params = {"limit": PAGE_SIZE}

        while url:
            data = self._get(url, access_token, params=params)
            for item in data.get("items") or []:
                playlists.append({
                    "id": item.get("id"),
                    "name": item.get("name"),
                    "trackCount": (item.get("tracks") or {}).get("total", 0),
                })
            url = data.get("next")
            params = None

        logger.info(f"Retrieved {len(playlists)} playlists from Spotify")
        return playlists

    def refresh(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token for a new access token."""
        try:
            response = self._session.post(
                TOKEN_URL,
                data={"grant_type": "refresh_token", "refresh_token": refresh_token},
                auth=(self._client_id, self._client_secret),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise SpotifyAuthError(f"Token request failed: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200 or "access_token" not in data:
            description = data.get("error_description") or data.get("error") or "Unknown error"
            raise SpotifyAuthError(f"Failed to refresh Spotify token: {description}")

        expires_in = data.get("expires_in")
        return TokenGrant(
            access_token=data["access_token"],
            expires_at=time.time() + expires_in if expires_in else None,
            refresh_token=data.get("refresh_token"),
        )
