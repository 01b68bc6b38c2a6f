from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class SessionState(str, Enum):
    """Lifecycle of one browser session."""

    ANONYMOUS = "anonymous"
    EXCHANGING = "exchanging"
    AUTHENTICATED = "authenticated"
    READY = "ready"


@dataclass
class Session:
    """In-memory session for one browser; never persisted."""

    access_token: Optional[str] = None
    is_logged_in: bool = False
    user_id: Optional[str] = None
    state: SessionState = SessionState.ANONYMOUS


@dataclass(frozen=True)
class Track:
    """Read-only projection of a track returned by the music service."""

    id: str
    name: str = ""
    artists: Tuple[str, ...] = ()
    image_url: Optional[str] = None
    uri: Optional[str] = None

    @property
    def artist_line(self) -> str:
        return ", ".join(self.artists)

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Track":
        """Build a track from a raw API track object.

        Artist and image entries that are not objects are skipped.
        """
        track_id = payload.get('id') or ''
        album = payload.get('album') or {}
        images = (album.get('images') or []) if isinstance(album, dict) else []
        first_image = images[0] if images else None
        image_url = first_image.get('url') if isinstance(first_image, dict) else None
        artists = tuple(
            artist['name'] for artist in payload.get('artists') or []
            if isinstance(artist, dict) and artist.get('name')
        )
        uri = payload.get('uri') or (f"spotify:track:{track_id}" if track_id else None)
        return cls(
            id=track_id,
            name=payload.get('name', ''),
            artists=artists,
            image_url=image_url,
            uri=uri,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'artists': list(self.artists),
            'artist_line': self.artist_line,
            'image_url': self.image_url,
            'uri': self.uri,
        }


@dataclass(frozen=True)
class Playlist:
    """Playlist already present on the user's account."""

    id: str
    name: str


@dataclass(frozen=True)
class PlaylistRequest:
    """Body of a playlist creation call."""

    name: str
    public: bool = True


@dataclass(frozen=True)
class PlaylistCreation:
    """Outcome of the create-playlist flow."""

    name: str
    playlist_id: str
    track_count: int
    tracks_added: bool

    @property
    def message(self) -> str:
        return f'Playlist "{self.name}" created successfully!'
