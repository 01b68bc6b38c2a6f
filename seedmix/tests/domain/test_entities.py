from seedmix.domain.entities import PlaylistCreation, Session, SessionState, Track
from seedmix.domain.errors import AuthFailure, SessionNotReady, TransportFailure
from seedmix.domain.results import RemoteResult


class TestTrack:
    """Projection of API track objects."""

    def test_from_api_full_payload(self):
        payload = {
            'id': 'abc',
            'name': 'Song',
            'uri': 'spotify:track:abc',
            'album': {'images': [{'url': 'https://img/large.jpg'}, {'url': 'https://img/small.jpg'}]},
            'artists': [{'name': 'One'}, {'name': 'Two'}],
        }

        track = Track.from_api(payload)

        assert track.id == 'abc'
        assert track.name == 'Song'
        assert track.image_url == 'https://img/large.jpg'
        assert track.artists == ('One', 'Two')
        assert track.artist_line == 'One, Two'
        assert track.uri == 'spotify:track:abc'

    def test_from_api_without_images_or_uri(self):
        track = Track.from_api({'id': 'xyz', 'name': 'Bare', 'album': {'images': []}, 'artists': []})

        assert track.image_url is None
        assert track.artists == ()
        assert track.uri == 'spotify:track:xyz'

    def test_from_api_without_album(self):
        track = Track.from_api({'id': 'xyz', 'name': 'No album'})

        assert track.image_url is None

    def test_from_api_skips_entries_that_are_not_objects(self):
        track = Track.from_api({
            'id': 'xyz',
            'name': 'Odd',
            'album': {'images': [None]},
            'artists': [None, 'loose', {'name': 'Real'}],
        })

        assert track.artists == ('Real',)
        assert track.image_url is None

    def test_to_dict(self):
        track = Track(id='a', name='n', artists=('x',), image_url=None, uri='spotify:track:a')

        assert track.to_dict() == {
            'id': 'a', 'name': 'n', 'artists': ['x'], 'artist_line': 'x', 'image_url': None,
            'uri': 'spotify:track:a',
        }


def test_new_session_is_anonymous():
    session = Session()

    assert session.access_token is None
    assert session.is_logged_in is False
    assert session.user_id is None
    assert session.state == SessionState.ANONYMOUS


def test_playlist_creation_message():
    creation = PlaylistCreation(name='DDPM - 2024-01-01 - 1', playlist_id='p', track_count=0,
                                tracks_added=False)

    assert creation.message == 'Playlist "DDPM - 2024-01-01 - 1" created successfully!'


class TestRemoteResult:
    """Tagged results."""

    def test_success(self):
        result = RemoteResult.success([1, 2])

        assert result.ok is True
        assert result.value == [1, 2]
        assert result.error is None
        assert result.error_kind is None

    def test_failure_kinds(self):
        assert RemoteResult.failure(AuthFailure("x")).error_kind == 'auth'
        assert RemoteResult.failure(TransportFailure("x")).error_kind == 'transport'
        assert RemoteResult.failure(SessionNotReady("x")).error_kind == 'not_ready'

    def test_transport_failure_keeps_status(self):
        error = TransportFailure("bad gateway", status=502)

        assert error.status == 502
        assert str(error) == 'bad gateway'
