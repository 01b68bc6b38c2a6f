import os
import uuid
import secrets
import threading
import logging
from collections import OrderedDict
from typing import Callable, Dict, Any, Optional
from datetime import datetime
from flask import (
    Flask, request, session, jsonify, redirect, url_for, flash, g, abort, render_template_string
)

from seedmix.application.orchestrator import SessionOrchestrator
from seedmix.crosscutting.config import ConfigError, SettingsManager, get_settings_manager
from seedmix.crosscutting.logging import CorrelationContext
from seedmix.crosscutting.metrics import MetricsCollector
from seedmix.domain.entities import Session
from seedmix.infrastructure.oauth import OAuthClient
from seedmix.infrastructure.providers.spotify import SpotifyProvider
from seedmix.interfaces.page import INDEX_TEMPLATE

VERSION = "0.1.0"

# Keys in Flask's signed session cookie
SESSION_ID_KEY = 'sid'
CSRF_KEY = 'csrf_token'

MAX_SESSIONS = 100

OrchestratorFactory = Callable[[MetricsCollector], SessionOrchestrator]


def _empty_state() -> Dict[str, Any]:
    session = Session()
    return {
        'state': session.state.value,
        'is_logged_in': session.is_logged_in,
        'user_id': session.user_id,
        'top_tracks': [],
        'recommendations': [],
        'is_creating_playlist': False,
        'is_shuffling': False,
        'last_errors': {},
    }


class HTTPServer:
    """HTTP server for SeedMix: the single page, the OAuth redirect and the playlist actions.

    Each browser gets its own orchestrator, found through an id kept in the
    signed session cookie. The least recently used ones are dropped past
    ``max_sessions``.
    """

    def __init__(self, host: str = 'localhost', port: int = 3000, debug: bool = False,
                 settings: Optional[SettingsManager] = None,
                 orchestrator_factory: Optional[OrchestratorFactory] = None,
                 max_sessions: int = MAX_SESSIONS):
        """Initialize HTTP server."""
        self.host = host
        self.port = port
        self.debug = debug
        self.settings = settings or get_settings_manager()
        self.metrics = MetricsCollector()
        self.max_sessions = max_sessions
        self.app = Flask(__name__)
        self.app.secret_key = self.settings.get_secret_key()
        self.logger = logging.getLogger(__name__)

        # Version info
        self.version = VERSION
        self.commit = os.getenv('GIT_COMMIT', 'unknown')

        self._orchestrator_factory = orchestrator_factory or self._build_orchestrator
        self._orchestrators: "OrderedDict[str, SessionOrchestrator]" = OrderedDict()
        self._orchestrators_lock = threading.Lock()

        self._setup_request_context()
        self._setup_routes()

    def _build_orchestrator(self, metrics: MetricsCollector) -> SessionOrchestrator:
        """Build an orchestrator from settings; raises ConfigError when the client is not configured."""
        oauth = OAuthClient.from_settings(self.settings)
        timeout = self.settings.get_request_timeout()
        return SessionOrchestrator(
            oauth=oauth,
            provider_factory=lambda token: SpotifyProvider(token, requests_timeout=timeout),
            playlist_prefix=self.settings.get_playlist_prefix(),
            metrics=metrics,
        )

    def get_orchestrator(self, create: bool = False) -> Optional[SessionOrchestrator]:
        """Return the orchestrator of the requesting browser.

        With ``create`` a new one is made (and its id stored in the cookie)
        when the browser has none yet.
        """
        sid = session.get(SESSION_ID_KEY)
        with self._orchestrators_lock:
            orchestrator = self._orchestrators.get(sid) if sid else None
            if orchestrator is not None:
                self._orchestrators.move_to_end(sid)
                return orchestrator
            if not create:
                return None

            orchestrator = self._orchestrator_factory(self.metrics)
            sid = secrets.token_urlsafe(16)
            self._orchestrators[sid] = orchestrator
            while len(self._orchestrators) > self.max_sessions:
                self._orchestrators.popitem(last=False)
                self.logger.info("Dropped least recently used session")

        session[SESSION_ID_KEY] = sid
        return orchestrator

    def _current_state(self) -> Dict[str, Any]:
        orchestrator = self.get_orchestrator()
        if orchestrator is None:
            return _empty_state()
        return orchestrator.snapshot()

    def _csrf_token(self) -> str:
        token = session.get(CSRF_KEY)
        if not token:
            token = secrets.token_hex(16)
            session[CSRF_KEY] = token
        return token

    def _check_csrf(self) -> None:
        """Reject a form post whose token does not match the one in the cookie."""
        expected = session.get(CSRF_KEY)
        supplied = request.form.get(CSRF_KEY)
        if not expected or not supplied or not secrets.compare_digest(expected, supplied):
            self.logger.warning(f"Rejected {request.path} without a valid form token")
            abort(400)

    def _setup_request_context(self) -> None:
        """Tag every log line of a request with a request id."""

        @self.app.before_request
        def open_correlation():
            context = CorrelationContext(request_id=uuid.uuid4().hex[:12])
            context.__enter__()
            g.correlation = context

        @self.app.teardown_request
        def close_correlation(exc):
            context = g.pop('correlation', None)
            if context is not None:
                context.__exit__(None, None, None)

    def _setup_routes(self) -> None:
        """Setup Flask routes."""

        @self.app.route('/', methods=['GET'])
        def index():
            """Render the page, completing the OAuth redirect when a code is present."""
            query = request.query_string.decode('utf-8')
            error = request.args.get('error')
            if error:
                self.logger.error(f"OAuth error: {error}")

            if request.args.get('code'):
                try:
                    self.get_orchestrator(create=True).resume_from_redirect(query)
                except ConfigError as e:
                    self.logger.error(f"Cannot complete login: {e}")

            return render_template_string(INDEX_TEMPLATE, state=self._current_state(),
                                          csrf_token=self._csrf_token())

        @self.app.route('/login', methods=['GET'])
        def login():
            """Send the browser to the Spotify authorization page."""
            try:
                auth_url = self.get_orchestrator(create=True).login_url()
            except ConfigError as e:
                self.logger.error(f"Spotify login not configured: {e}")
                return jsonify({
                    'error': 'Spotify client not configured',
                    'details': str(e)
                }), 500
            return redirect(auth_url)

        @self.app.route('/playlist', methods=['POST'])
        def create_playlist():
            """Save the current recommendations as a playlist."""
            self._check_csrf()
            orchestrator = self.get_orchestrator()
            if orchestrator is not None:
                result = orchestrator.create_playlist()
                if result.ok:
                    flash(result.value.message)
                else:
                    self.logger.info(f"Playlist not created: {result.error_kind}")
            return redirect(url_for('index'))

        @self.app.route('/shuffle', methods=['POST'])
        def shuffle():
            """Request a fresh set of recommendations."""
            self._check_csrf()
            orchestrator = self.get_orchestrator()
            if orchestrator is not None:
                orchestrator.shuffle()
            return redirect(url_for('index'))

        @self.app.route('/api/session', methods=['GET'])
        def session_state():
            """JSON view of this browser's session."""
            return jsonify(self._current_state()), 200

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'version': self.version,
                'commit': self.commit,
                'timestamp': datetime.now().isoformat()
            }), 200

        @self.app.route('/metrics', methods=['GET'])
        def metrics():
            """Remote call metrics."""
            return jsonify(self.metrics.to_dict()), 200

    def run(self) -> None:
        """Run the HTTP server."""
        self.logger.info(f"Starting SeedMix HTTP server on {self.host}:{self.port}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug,
            threaded=True
        )


def create_app(settings: Optional[SettingsManager] = None) -> Flask:
    """Create Flask app (used by WSGI servers and tests)."""
    server = HTTPServer(settings=settings)
    return server.app
