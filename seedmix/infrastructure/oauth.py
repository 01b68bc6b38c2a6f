import logging
from typing import Dict, Any, Iterable, Optional
from urllib.parse import unquote, urlencode

import requests

from seedmix.domain.errors import AuthFailure, TransportFailure

logger = logging.getLogger(__name__)

AUTH_ENDPOINT = 'https://accounts.spotify.com/authorize'
TOKEN_ENDPOINT = 'https://accounts.spotify.com/api/token'
RESPONSE_TYPE = 'code'


def parse_query_string(query: str) -> Dict[str, str]:
    """Parse a raw query string into a dict.

    Pairs are split on the first '=', values are percent-decoded ('+' is
    left alone) and a repeated key keeps its last value.
    """
    params: Dict[str, str] = {}
    if not query:
        return params
    if query.startswith('?'):
        query = query[1:]

    for pair in query.split('&'):
        if not pair:
            continue
        key, _, value = pair.partition('=')
        params[key] = unquote(value)
    return params


class OAuthClient:
    """Authorization-code flow against the Spotify accounts service."""

    def __init__(self,
                 client_id: str,
                 client_secret: str,
                 redirect_uri: str,
                 scopes: Iterable[str],
                 timeout: float = 10):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = list(scopes)
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "OAuthClient":
        config = settings.get_spotify_client_config()
        return cls(
            client_id=config['client_id'],
            client_secret=config['client_secret'],
            redirect_uri=config['redirect_uri'],
            scopes=settings.get_spotify_scopes(),
            timeout=settings.get_request_timeout(),
        )

    def authorize_url(self, state: Optional[str] = None) -> str:
        """URL the browser is sent to for login."""
        params = {
            'client_id': self.client_id,
            'redirect_uri': self.redirect_uri,
            'response_type': RESPONSE_TYPE,
            'scope': ' '.join(self.scopes),
        }
        if state:
            params['state'] = state
        return f"{AUTH_ENDPOINT}?{urlencode(params)}"

    def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for a token response.

        Raises:
            AuthFailure: the response carries no access_token
            TransportFailure: the request itself failed
        """
        data = {
            'grant_type': 'authorization_code',
            'code': code,
            'redirect_uri': self.redirect_uri,
        }
        headers = {
            'Content-Type': 'application/x-www-form-urlencoded'
        }

        try:
            response = requests.post(
                TOKEN_ENDPOINT,
                data=data,
                headers=headers,
                auth=(self.client_id, self.client_secret),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportFailure(f"Token request failed: {e}")

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if not isinstance(payload, dict) or not payload.get('access_token'):
            logger.error(f"Token exchange failed: {response.status_code} - {response.text}")
            raise AuthFailure(f"Token response without access_token (status {response.status_code})")

        return payload
