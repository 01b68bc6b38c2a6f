from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from seedmix.application.events import EventBus, TOKEN_ACQUIRED, TOP_TRACKS_UPDATED
from seedmix.crosscutting.logging import (
    CorrelationContext, log_error, log_playlist_created, log_session_transition, log_with_fields
)
from seedmix.crosscutting.metrics import MetricsCollector
from seedmix.domain.entities import (
    PlaylistCreation, PlaylistRequest, Session, SessionState, Track
)
from seedmix.domain.errors import FlowInProgress, SeedMixError, SessionNotReady
from seedmix.domain.naming import DEFAULT_PREFIX, next_playlist_name
from seedmix.domain.ports import MusicService
from seedmix.domain.results import RemoteResult
from seedmix.infrastructure.oauth import OAuthClient, parse_query_string

logger = logging.getLogger(__name__)

TOP_TRACK_LIMIT = 5
TOP_TRACK_TIME_RANGE = 'short_term'


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class SessionOrchestrator:
    """Drives the login handshake and the dependent reads and writes for one session.

    Field ownership: the code exchange writes ``access_token``/``is_logged_in``,
    the identity fetch writes ``user_id``, the top-track and recommendation
    fetches write their own track tuples, and only this class changes
    ``session.state``. Reactions to state changes go through ``events``:

        token_acquired      -> fetch identity, fetch top tracks
        top_tracks_updated  -> fetch recommendations (non-empty list only)
    """

    def __init__(self,
                 oauth: OAuthClient,
                 provider_factory: Callable[[str], MusicService],
                 playlist_prefix: str = DEFAULT_PREFIX,
                 metrics: Optional[MetricsCollector] = None,
                 events: Optional[EventBus] = None,
                 today: Callable[[], date] = utc_today):
        self.oauth = oauth
        self.provider_factory = provider_factory
        self.playlist_prefix = playlist_prefix
        self.metrics = metrics or MetricsCollector()
        self.events = events or EventBus()
        self._today = today

        self.session = Session()
        self.top_tracks: Tuple[Track, ...] = ()
        self.recommendations: Tuple[Track, ...] = ()
        self.is_creating_playlist = False
        self.is_shuffling = False
        self.last_errors: Dict[str, str] = {}

        self._lock = threading.RLock()
        self._provider: Optional[MusicService] = None
        self._attempted_codes = set()
        self._top_tracks_loaded = False
        self._sequence = {'top_tracks': 0, 'recommendations': 0}

        self.events.subscribe(TOKEN_ACQUIRED, self._on_token_acquired)
        self.events.subscribe(TOP_TRACKS_UPDATED, self._on_top_tracks_updated)

    # Internal helpers

    def _transition(self, new_state: SessionState) -> None:
        with self._lock:
            previous = self.session.state
            if previous == new_state:
                return
            self.session.state = new_state
        log_session_transition(logger, previous.value, new_state.value)

    def _attempt(self, operation: str, fn: Callable[..., Any], *args, **kwargs) -> RemoteResult:
        """Run one remote call and tag its outcome. Domain errors are logged, not raised."""
        with CorrelationContext(stage=operation, user_id=self.session.user_id):
            try:
                with self.metrics.call_context(operation):
                    value = fn(*args, **kwargs)
            except SeedMixError as e:
                log_error(logger, f"{operation} failed", e, kind=e.kind)
                with self._lock:
                    self.last_errors[operation] = e.kind
                return RemoteResult.failure(e)

        with self._lock:
            self.last_errors.pop(operation, None)
        return RemoteResult.success(value)

    def _current_provider(self) -> Optional[MusicService]:
        with self._lock:
            if not self.session.access_token:
                return None
            return self._provider

    def _next_sequence(self, field: str) -> int:
        with self._lock:
            self._sequence[field] += 1
            return self._sequence[field]

    def _apply(self, field: str, sequence: int, tracks: Tuple[Track, ...]) -> bool:
        """Store a fetch result unless a newer request for the same field was issued."""
        with self._lock:
            if sequence != self._sequence[field]:
                logger.info(f"Discarding stale {field} response #{sequence} "
                            f"(latest is #{self._sequence[field]})")
                return False
            setattr(self, field, tracks)
            return True

    def _maybe_ready(self) -> None:
        with self._lock:
            ready = (self.session.state == SessionState.AUTHENTICATED
                     and bool(self.session.user_id)
                     and self._top_tracks_loaded)
        if ready:
            self._transition(SessionState.READY)

    # Event handlers

    def _on_token_acquired(self, token: str) -> None:
        self.fetch_identity()
        self.fetch_top_tracks()
        self._maybe_ready()

    def _on_top_tracks_updated(self, tracks: Tuple[Track, ...]) -> None:
        if tracks:
            self.fetch_recommendations()

    # Operations

    def login_url(self) -> str:
        """Authorization URL for the login redirect. No state changes."""
        return self.oauth.authorize_url()

    def resume_from_redirect(self, query: str) -> Optional[RemoteResult]:
        """Handle a page load; exchanges the 'code' parameter when one is present.

        Returns None when there was nothing to exchange.
        """
        code = parse_query_string(query).get('code')
        if not code:
            return None
        with self._lock:
            if self.session.access_token or code in self._attempted_codes:
                return None
        return self.exchange_code(code)

    def exchange_code(self, code: str) -> RemoteResult:
        """Exchange an authorization code once; a held token or a reused code makes this a no-op."""
        with self._lock:
            if self.session.access_token:
                return RemoteResult.failure(SessionNotReady("Session already holds a token"))
            if code in self._attempted_codes:
                return RemoteResult.failure(SessionNotReady("Authorization code already used"))
            self._attempted_codes.add(code)
        self._transition(SessionState.EXCHANGING)

        result = self._attempt('exchange_code', self.oauth.exchange_code, code)
        if not result.ok:
            self._transition(SessionState.ANONYMOUS)
            return result

        token = result.value['access_token']
        with self._lock:
            self.session.access_token = token
            self.session.is_logged_in = True
            self._provider = self.provider_factory(token)
        self._transition(SessionState.AUTHENTICATED)

        self.events.publish(TOKEN_ACQUIRED, token=token)
        return RemoteResult.success(token)

    def fetch_identity(self) -> RemoteResult:
        provider = self._current_provider()
        if provider is None:
            return RemoteResult.failure(SessionNotReady("Not logged in"))

        result = self._attempt('fetch_identity', provider.current_user_id)
        if result.ok:
            with self._lock:
                self.session.user_id = result.value
        return result

    def fetch_top_tracks(self) -> RemoteResult:
        provider = self._current_provider()
        if provider is None:
            return RemoteResult.failure(SessionNotReady("Not logged in"))

        sequence = self._next_sequence('top_tracks')
        result = self._attempt('fetch_top_tracks', provider.top_tracks,
                               limit=TOP_TRACK_LIMIT, time_range=TOP_TRACK_TIME_RANGE)
        if not result.ok:
            return result

        tracks = tuple(result.value)
        with self._lock:
            self._top_tracks_loaded = True
        if not tracks:
            log_with_fields(logger, 'WARNING', 'No top tracks returned')
        if self._apply('top_tracks', sequence, tracks):
            self.events.publish(TOP_TRACKS_UPDATED, tracks=tracks)
        return result

    def fetch_recommendations(self) -> RemoteResult:
        provider = self._current_provider()
        if provider is None:
            return RemoteResult.failure(SessionNotReady("Not logged in"))

        with self._lock:
            seeds = [track.id for track in self.top_tracks if track.id]
        if not seeds:
            return RemoteResult.failure(SessionNotReady("No top tracks to seed recommendations"))

        sequence = self._next_sequence('recommendations')
        result = self._attempt('fetch_recommendations', provider.recommendations, seeds)
        if result.ok:
            self._apply('recommendations', sequence, tuple(result.value))
        return result

    def shuffle(self) -> RemoteResult:
        """Ask for recommendations again with the same seeds."""
        with self._lock:
            if self.is_shuffling:
                return RemoteResult.failure(FlowInProgress("Shuffle already running"))
            self.is_shuffling = True
        try:
            return self.fetch_recommendations()
        finally:
            with self._lock:
                self.is_shuffling = False

    def create_playlist(self) -> RemoteResult:
        """Save the current recommendations as a new public playlist.

        Listing or creation failures end the flow without a playlist. A failed
        track insertion still reports success: the playlist exists, empty.
        """
        with self._lock:
            if self.is_creating_playlist:
                return RemoteResult.failure(FlowInProgress("Playlist creation already running"))
            if not self.recommendations:
                return RemoteResult.failure(SessionNotReady("No recommendations to save"))
            if not self.session.access_token or not self.session.user_id:
                return RemoteResult.failure(SessionNotReady("Missing access token or user id"))
            self.is_creating_playlist = True
            provider = self._provider
            user_id = self.session.user_id
            uris = [track.uri for track in self.recommendations if track.uri]

        try:
            return self._run_playlist_flow(provider, user_id, uris)
        finally:
            with self._lock:
                self.is_creating_playlist = False

    def _run_playlist_flow(self, provider: MusicService, user_id: str, uris: List[str]) -> RemoteResult:
        listing = self._attempt('list_playlists', provider.list_playlists)
        if not listing.ok:
            return listing

        name = next_playlist_name(self.playlist_prefix, self._today(),
                                  [playlist.name for playlist in listing.value])

        created = self._attempt('create_playlist', provider.create_playlist,
                                user_id, PlaylistRequest(name=name, public=True))
        if not created.ok:
            return created
        playlist_id = created.value

        with CorrelationContext(playlist_id=playlist_id):
            added = self._attempt('add_tracks', provider.add_tracks, playlist_id, uris)

        creation = PlaylistCreation(
            name=name,
            playlist_id=playlist_id,
            track_count=len(uris) if added.ok else 0,
            tracks_added=added.ok,
        )
        log_playlist_created(logger, playlist_id, name, creation.track_count, creation.tracks_added)
        return RemoteResult.success(creation)

    def snapshot(self) -> Dict[str, Any]:
        """Point-in-time view of the session for rendering; never includes the token."""
        with self._lock:
            return {
                'state': self.session.state.value,
                'is_logged_in': self.session.is_logged_in,
                'user_id': self.session.user_id,
                'top_tracks': [track.to_dict() for track in self.top_tracks],
                'recommendations': [track.to_dict() for track in self.recommendations],
                'is_creating_playlist': self.is_creating_playlist,
                'is_shuffling': self.is_shuffling,
                'last_errors': dict(self.last_errors),
            }
