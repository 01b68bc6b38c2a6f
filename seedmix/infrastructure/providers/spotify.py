import logging
from typing import Any, Callable, Dict, List, Sequence, TypeVar

import requests
import spotipy
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from seedmix.domain.entities import Track, Playlist, PlaylistRequest
from seedmix.domain.errors import AuthFailure, TransportFailure
from seedmix.domain.ports import MusicService

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SpotifyProvider(MusicService):
    """Spotify Web API adapter bound to one access token."""

    def __init__(self, access_token: str, requests_timeout: float = 10):
        """Initialize Spotify provider.

        Args:
            access_token: Bearer token from the code exchange
            requests_timeout: Per-request timeout in seconds
        """
        self.access_token = access_token
        # Library retries are off: a failed call is reported once, not repeated
        self._client = spotipy.Spotify(
            auth=access_token,
            requests_timeout=requests_timeout,
            retries=0,
            status_retries=0,
        )

    def _call(self, operation: str, method, *args, **kwargs):
        """Invoke a spotipy method, mapping its failures onto domain errors."""
        try:
            return method(*args, **kwargs)
        except spotipy.SpotifyException as e:
            status = getattr(e, 'http_status', None)
            logger.warning(f"Spotify {operation} failed with status {status}: {e.msg}")
            if status in (401, 403):
                raise AuthFailure(f"Spotify rejected the token during {operation}: {e.msg}")
            raise TransportFailure(f"Spotify {operation} failed: {e.msg}", status=status)
        except (requests.RequestException, Urllib3HTTPError) as e:
            logger.warning(f"Spotify {operation} transport error: {e}")
            raise TransportFailure(f"Spotify {operation} failed: {e}")

    @staticmethod
    def _items(payload: Any, key: str, operation: str) -> List[Dict[str, Any]]:
        if not isinstance(payload, dict):
            raise TransportFailure(f"Malformed {operation} response")
        items = payload.get(key)
        if items is None:
            return []
        if not isinstance(items, list):
            raise TransportFailure(f"Malformed {operation} response: '{key}' is not a list")
        return [item for item in items if item]

    @staticmethod
    def _map(operation: str, convert: Callable[[Dict[str, Any]], T],
             items: List[Dict[str, Any]]) -> List[T]:
        """Convert payload items to entities; a malformed item fails the whole call."""
        try:
            return [convert(item) for item in items]
        except (AttributeError, TypeError, KeyError, ValueError) as e:
            logger.warning(f"Spotify {operation} returned a malformed item: {e}")
            raise TransportFailure(f"Malformed {operation} response: {e}")

    @staticmethod
    def _playlist(item: Dict[str, Any]) -> Playlist:
        return Playlist(id=item.get('id', ''), name=item.get('name') or '')

    def current_user_id(self) -> str:
        """Return the id of the current user (GET /v1/me)."""
        profile = self._call('current_user', self._client.current_user)
        user_id = profile.get('id') if isinstance(profile, dict) else None
        if not user_id:
            raise TransportFailure("Profile response without id")
        return user_id

    def top_tracks(self, limit: int = 5, time_range: str = 'short_term') -> List[Track]:
        """Return the user's top tracks (GET /v1/me/top/tracks)."""
        payload = self._call(
            'top_tracks', self._client.current_user_top_tracks,
            limit=limit, time_range=time_range,
        )
        return self._map('top_tracks', Track.from_api, self._items(payload, 'items', 'top_tracks'))

    def recommendations(self, seed_track_ids: Sequence[str]) -> List[Track]:
        """Return recommendations for the seeds (GET /v1/recommendations)."""
        payload = self._call(
            'recommendations', self._client.recommendations,
            seed_tracks=list(seed_track_ids),
        )
        return self._map('recommendations', Track.from_api,
                         self._items(payload, 'tracks', 'recommendations'))

    def list_playlists(self) -> List[Playlist]:
        """Return the first page of the user's playlists (GET /v1/me/playlists)."""
        payload = self._call('list_playlists', self._client.current_user_playlists)
        return self._map('list_playlists', self._playlist,
                         self._items(payload, 'items', 'list_playlists'))

    def create_playlist(self, user_id: str, request: PlaylistRequest) -> str:
        """Create a playlist for the user and return its id."""
        result = self._call(
            'create_playlist', self._client.user_playlist_create,
            user_id, request.name, public=request.public,
        )
        playlist_id = result.get('id') if isinstance(result, dict) else None
        if not playlist_id:
            raise TransportFailure("Playlist creation response without id")
        return playlist_id

    def add_tracks(self, playlist_id: str, track_uris: Sequence[str]) -> None:
        """Append tracks to the playlist (POST /v1/playlists/{id}/tracks)."""
        self._call('add_tracks', self._client.playlist_add_items, playlist_id, list(track_uris))
