from __future__ import annotations

from typing import List, Protocol, Sequence

from .entities import Playlist, PlaylistRequest, Track


class MusicService(Protocol):
    """Port for the remote music API, bound to one access token.

    Implementations raise ``AuthFailure`` or ``TransportFailure`` and map
    provider payloads into domain entities.
    """

    def current_user_id(self) -> str:
        """Return the id of the user owning the token."""

    def top_tracks(self, limit: int = 5, time_range: str = 'short_term') -> List[Track]:
        """Return the user's most played tracks, most played first."""

    def recommendations(self, seed_track_ids: Sequence[str]) -> List[Track]:
        """Return recommendations seeded from the given track ids."""

    def list_playlists(self) -> List[Playlist]:
        """Return the first page of the user's playlists."""

    def create_playlist(self, user_id: str, request: PlaylistRequest) -> str:
        """Create a playlist and return its id."""

    def add_tracks(self, playlist_id: str, track_uris: Sequence[str]) -> None:
        """Append tracks to a playlist."""
