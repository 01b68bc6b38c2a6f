import os
import sys
from datetime import date
from typing import List, Optional
from unittest.mock import Mock

import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()

from seedmix.domain.entities import Playlist, Track  # noqa: E402
from seedmix.domain.errors import TransportFailure  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_spotify_env():
    """Keep Spotify/SeedMix settings from leaking in from the developer's shell."""
    keys = [
        'SPOTIFY_CLIENT_ID', 'SPOTIFY_CLIENT_SECRET', 'SPOTIFY_REDIRECT_URI',
        'SEEDMIX_PLAYLIST_PREFIX', 'SEEDMIX_SECRET_KEY', 'SEEDMIX_REQUEST_TIMEOUT',
    ]
    backup = {k: os.environ.get(k) for k in keys}
    for k in keys:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k, v in backup.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


def make_track(n: int) -> Track:
    return Track(
        id=f"t{n}",
        name=f"Song {n}",
        artists=(f"Artist {n}",),
        image_url=f"https://img/{n}.jpg",
        uri=f"spotify:track:t{n}",
    )


class FakeMusicService:
    """In-memory MusicService that records every call in order."""

    def __init__(self,
                 user_id: str = 'user_1',
                 top: Optional[List[Track]] = None,
                 recommended: Optional[List[Track]] = None,
                 playlists: Optional[List[Playlist]] = None):
        self.user_id = user_id
        self.top = [make_track(n) for n in range(1, 6)] if top is None else top
        self.recommended = [make_track(n) for n in range(10, 13)] if recommended is None else recommended
        self.playlists = playlists or []
        self.calls = []
        self.fail = {}
        self.on_call = None

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.on_call:
            self.on_call(name)
        if name in self.fail:
            raise self.fail[name]

    def call_names(self):
        return [call[0] for call in self.calls]

    def current_user_id(self):
        self._record('current_user_id')
        return self.user_id

    def top_tracks(self, limit=5, time_range='short_term'):
        self._record('top_tracks', limit, time_range)
        return list(self.top)

    def recommendations(self, seed_track_ids):
        self._record('recommendations', list(seed_track_ids))
        return list(self.recommended)

    def list_playlists(self):
        self._record('list_playlists')
        return list(self.playlists)

    def create_playlist(self, user_id, request):
        self._record('create_playlist', user_id, request)
        return 'pl_new'

    def add_tracks(self, playlist_id, track_uris):
        self._record('add_tracks', playlist_id, list(track_uris))


@pytest.fixture
def fake_service():
    return FakeMusicService()


@pytest.fixture
def oauth_client():
    oauth = Mock()
    oauth.exchange_code.return_value = {'access_token': 'AT', 'token_type': 'Bearer'}
    oauth.authorize_url.return_value = 'https://accounts.spotify.com/authorize?client_id=cid'
    return oauth


@pytest.fixture
def make_orchestrator(oauth_client):
    from seedmix.application.orchestrator import SessionOrchestrator

    def _make(service, prefix='DDPM', today=date(2024, 1, 1), metrics=None):
        return SessionOrchestrator(
            oauth=oauth_client,
            provider_factory=lambda token: service,
            playlist_prefix=prefix,
            metrics=metrics,
            today=lambda: today,
        )

    return _make


@pytest.fixture
def transport_failure():
    return TransportFailure("boom", status=500)


@pytest.fixture
def track_factory():
    return make_track


@pytest.fixture
def service_factory():
    return FakeMusicService


@pytest.fixture
def post_action():
    """POST a page form the way the browser does, with the token from the session cookie."""

    def _post(client, path, follow_redirects=False):
        with client.session_transaction() as sess:
            token = sess.get('csrf_token')
        if token is None:
            client.get('/')
            with client.session_transaction() as sess:
                token = sess['csrf_token']
        return client.post(path, data={'csrf_token': token}, follow_redirects=follow_redirects)

    return _post
