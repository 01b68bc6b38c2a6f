import os
import json
import secrets
from typing import Dict, Any, Optional
from pathlib import Path

from dotenv import dotenv_values

from seedmix.domain.naming import DEFAULT_PREFIX


class ConfigError(Exception):
    """Configuration error."""
    pass


# Keys of the legacy web-app config.json mapped onto environment names
LEGACY_KEYS = {
    'Client_Id': 'SPOTIFY_CLIENT_ID',
    'Client_Secret': 'SPOTIFY_CLIENT_SECRET',
    'WebAppUrl': 'SPOTIFY_REDIRECT_URI',
}


class SettingsManager:
    """Resolves application settings from the environment, .env and config.json."""

    def __init__(self, config_dir: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        """Initialize settings manager.

        Args:
            config_dir: Directory holding .env and config.json (defaults to cwd)
            environ: Mapping consulted before the files (defaults to os.environ)
        """
        self.config_dir = Path(config_dir) if config_dir else Path.cwd()
        self.env_file = self.config_dir / '.env'
        self.legacy_file = self.config_dir / 'config.json'
        self._environ = environ if environ is not None else os.environ
        self._generated_secret_key: Optional[str] = None

    def get_spotify_scopes(self) -> list:
        """Get the scopes requested at login."""
        return [
            'user-top-read',            # Read top tracks
            'playlist-modify-public',   # Create/modify public playlists
        ]

    def load_env_vars(self) -> Dict[str, str]:
        """Load variables from the .env file."""
        if not self.env_file.exists():
            return {}
        try:
            values = dotenv_values(self.env_file)
        except (IOError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to load .env file {self.env_file}: {e}")
        return {key: value for key, value in values.items() if value is not None}

    def load_legacy_config(self) -> Dict[str, str]:
        """Load config.json written for the original web app (Client_Id, Client_Secret, WebAppUrl)."""
        if not self.legacy_file.exists():
            return {}

        try:
            with open(self.legacy_file, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Failed to load config from {self.legacy_file}: {e}")

        return {
            env_key: str(data[legacy_key])
            for legacy_key, env_key in LEGACY_KEYS.items()
            if data.get(legacy_key)
        }

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Look a setting up: environment first, then .env, then config.json."""
        value = self._environ.get(key)
        if value:
            return value
        value = self.load_env_vars().get(key)
        if value:
            return value
        value = self.load_legacy_config().get(key)
        if value:
            return value
        return default

    def get_spotify_client_config(self) -> Dict[str, str]:
        """Get Spotify client configuration."""
        client_id = self.get('SPOTIFY_CLIENT_ID')
        client_secret = self.get('SPOTIFY_CLIENT_SECRET')
        redirect_uri = self.get('SPOTIFY_REDIRECT_URI')

        if not client_id:
            raise ConfigError("SPOTIFY_CLIENT_ID not found in environment")
        if not client_secret:
            raise ConfigError("SPOTIFY_CLIENT_SECRET not found in environment")
        if not redirect_uri:
            raise ConfigError("SPOTIFY_REDIRECT_URI not found in environment")

        return {
            'client_id': client_id,
            'client_secret': client_secret,
            'redirect_uri': redirect_uri
        }

    def get_playlist_prefix(self) -> str:
        return self.get('SEEDMIX_PLAYLIST_PREFIX', DEFAULT_PREFIX)

    def get_request_timeout(self) -> float:
        raw = self.get('SEEDMIX_REQUEST_TIMEOUT', '10')
        try:
            timeout = float(raw)
        except (TypeError, ValueError):
            raise ConfigError(f"SEEDMIX_REQUEST_TIMEOUT must be a number, got {raw!r}")
        if timeout <= 0:
            raise ConfigError("SEEDMIX_REQUEST_TIMEOUT must be positive")
        return timeout

    def get_secret_key(self) -> str:
        """Key used to sign flash messages; generated once per process when unset."""
        key = self.get('SEEDMIX_SECRET_KEY')
        if key:
            return key
        if self._generated_secret_key is None:
            self._generated_secret_key = secrets.token_hex(32)
        return self._generated_secret_key

    def validate_configuration(self) -> Dict[str, bool]:
        """Validate that all required configuration is present."""
        return {
            'spotify_client_id': bool(self.get('SPOTIFY_CLIENT_ID')),
            'spotify_client_secret': bool(self.get('SPOTIFY_CLIENT_SECRET')),
            'spotify_redirect_uri': bool(self.get('SPOTIFY_REDIRECT_URI')),
            'secret_key': bool(self.get('SEEDMIX_SECRET_KEY')),
        }

    def get_config_summary(self) -> Dict[str, Any]:
        """Get configuration summary (without sensitive data)."""
        validation = self.validate_configuration()

        return {
            'config_dir': str(self.config_dir),
            'env_file': str(self.env_file),
            'legacy_file': str(self.legacy_file),
            'validation': validation,
            'spotify_scopes': self.get_spotify_scopes(),
            'redirect_uri': self.get('SPOTIFY_REDIRECT_URI'),
            'playlist_prefix': self.get_playlist_prefix(),
        }


# Global instance
settings_manager = SettingsManager()


def get_settings_manager() -> SettingsManager:
    """Get global settings manager instance."""
    return settings_manager


def setup_config(config_dir: Optional[str] = None) -> SettingsManager:
    """Setup configuration with custom directory."""
    global settings_manager
    settings_manager = SettingsManager(config_dir)
    return settings_manager
