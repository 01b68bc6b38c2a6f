from unittest.mock import Mock, patch
from urllib.parse import parse_qs, quote, urlparse

import pytest
import requests

from seedmix.domain.errors import AuthFailure, TransportFailure
from seedmix.infrastructure.oauth import OAuthClient, parse_query_string, TOKEN_ENDPOINT


class TestParseQueryString:
    """Query string parsing for the OAuth redirect."""

    def test_parses_code_and_state(self):
        assert parse_query_string('?code=abc&state=xyz') == {'code': 'abc', 'state': 'xyz'}

    def test_leading_question_mark_is_optional(self):
        assert parse_query_string('code=abc') == {'code': 'abc'}

    def test_empty_query(self):
        assert parse_query_string('') == {}
        assert parse_query_string('?') == {}

    def test_values_are_percent_decoded(self):
        params = parse_query_string('?redirect=http%3A%2F%2Flocalhost%3A3000%2F&name=a%20b')
        assert params['redirect'] == 'http://localhost:3000/'
        assert params['name'] == 'a b'

    def test_plus_is_not_a_space(self):
        assert parse_query_string('?q=a+b') == {'q': 'a+b'}

    def test_split_on_first_equals_only(self):
        assert parse_query_string('?token=abc==') == {'token': 'abc=='}

    def test_missing_value_is_empty_string(self):
        assert parse_query_string('?flag&code=1') == {'flag': '', 'code': '1'}

    def test_repeated_key_keeps_last_value(self):
        assert parse_query_string('?code=first&code=second') == {'code': 'second'}

    def test_empty_segments_are_ignored(self):
        assert parse_query_string('?&code=abc&&') == {'code': 'abc'}

    @pytest.mark.parametrize('value', [
        'plain',
        'with space',
        'slash/and?question',
        'ampersand&equals=',
        'percent%25literal',
        'unicode-é-★',
        '',
    ])
    def test_reencoding_parsed_values_round_trips(self, value):
        parsed = parse_query_string(f"?v={quote(value, safe='')}")
        reparsed = parse_query_string(f"?v={quote(parsed['v'], safe='')}")

        assert parsed['v'] == value
        assert reparsed['v'] == parsed['v']


class TestOAuthClient:
    """Authorization URL and code exchange."""

    def setup_method(self):
        self.client = OAuthClient(
            client_id='cid',
            client_secret='sec',
            redirect_uri='http://localhost:3000/',
            scopes=['user-top-read', 'playlist-modify-public'],
            timeout=7,
        )

    def test_authorize_url_parameters(self):
        url = self.client.authorize_url()

        parsed = urlparse(url)
        params = parse_qs(parsed.query)

        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == 'https://accounts.spotify.com/authorize'
        assert params['client_id'] == ['cid']
        assert params['redirect_uri'] == ['http://localhost:3000/']
        assert params['response_type'] == ['code']
        assert params['scope'] == ['user-top-read playlist-modify-public']
        assert 'state' not in params

    def test_authorize_url_with_state(self):
        params = parse_qs(urlparse(self.client.authorize_url(state='s1')).query)

        assert params['state'] == ['s1']

    @patch('seedmix.infrastructure.oauth.requests.post')
    def test_exchange_code_posts_form_with_basic_auth(self, mock_post):
        mock_response = Mock()
        mock_response.status_code = 200
        mock_response.json.return_value = {'access_token': 'AT', 'token_type': 'Bearer', 'expires_in': 3600}
        mock_post.return_value = mock_response

        payload = self.client.exchange_code('the-code')

        assert payload['access_token'] == 'AT'
        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        assert args[0] == TOKEN_ENDPOINT
        assert kwargs['data'] == {
            'grant_type': 'authorization_code',
            'code': 'the-code',
            'redirect_uri': 'http://localhost:3000/',
        }
        assert kwargs['auth'] == ('cid', 'sec')
        assert kwargs['headers']['Content-Type'] == 'application/x-www-form-urlencoded'
        assert kwargs['timeout'] == 7

    @patch('seedmix.infrastructure.oauth.requests.post')
    def test_exchange_code_without_token_raises_auth_failure(self, mock_post):
        mock_response = Mock()
        mock_response.status_code = 400
        mock_response.text = '{"error": "invalid_grant"}'
        mock_response.json.return_value = {'error': 'invalid_grant'}
        mock_post.return_value = mock_response

        with pytest.raises(AuthFailure):
            self.client.exchange_code('bad')

    @patch('seedmix.infrastructure.oauth.requests.post')
    def test_exchange_code_non_json_response_raises_auth_failure(self, mock_post):
        mock_response = Mock()
        mock_response.status_code = 502
        mock_response.text = '<html>Bad Gateway</html>'
        mock_response.json.side_effect = ValueError("not json")
        mock_post.return_value = mock_response

        with pytest.raises(AuthFailure):
            self.client.exchange_code('code')

    @patch('seedmix.infrastructure.oauth.requests.post')
    def test_exchange_code_network_error_raises_transport_failure(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("refused")

        with pytest.raises(TransportFailure):
            self.client.exchange_code('code')

    def test_from_settings(self):
        settings = Mock()
        settings.get_spotify_client_config.return_value = {
            'client_id': 'cid', 'client_secret': 'sec', 'redirect_uri': 'http://r/',
        }
        settings.get_spotify_scopes.return_value = ['user-top-read']
        settings.get_request_timeout.return_value = 3.0

        client = OAuthClient.from_settings(settings)

        assert client.client_id == 'cid'
        assert client.redirect_uri == 'http://r/'
        assert client.scopes == ['user-top-read']
        assert client.timeout == 3.0
