import json
import logging
import re
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from contextvars import ContextVar

# Context variables for correlation
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
stage_var: ContextVar[Optional[str]] = ContextVar('stage', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)
playlist_id_var: ContextVar[Optional[str]] = ContextVar('playlist_id', default=None)


class SecretMasker:
    """Masks sensitive information in log messages."""

    def __init__(self):
        """Initialize secret masker with patterns."""
        # Patterns for sensitive data
        self.patterns = [
            # API tokens and keys
            r'(?i)(token|key|secret|password|auth)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?',
            # Spotify access tokens
            r'(?i)(spotify_access_token|access_token)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{50,})["\']?',
            # Client secrets
            r'(?i)(client_secret)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
            # Bearer credentials
            r'(?i)(bearer|basic)[\s]+([a-zA-Z0-9\-_\.=+/]{20,})',
            # OAuth codes
            r'(?i)(code|authorization_code)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
        ]

        self.compiled_patterns = [re.compile(pattern) for pattern in self.patterns]

    def mask_secrets(self, text: str) -> str:
        """Mask sensitive information in text."""
        if not text:
            return text

        masked_text = text

        for pattern in self.compiled_patterns:
            def replace_match(match):
                prefix = match.group(1)
                secret = match.group(2)
                # Keep first 4 and last 4 characters, mask the rest
                if len(secret) > 8:
                    masked_secret = secret[:4] + '*' * (len(secret) - 8) + secret[-4:]
                else:
                    masked_secret = '*' * len(secret)
                return f"{prefix}: {masked_secret}"

            masked_text = pattern.sub(replace_match, masked_text)

        return masked_text

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive information in dictionary."""
        if not data:
            return data

        masked_data = {}

        for key, value in data.items():
            if isinstance(value, str):
                masked_data[key] = self.mask_secrets(value)
            elif isinstance(value, dict):
                masked_data[key] = self.mask_dict(value)
            elif isinstance(value, list):
                masked_data[key] = [self.mask_dict(item) if isinstance(item, dict)
                                  else self.mask_secrets(item) if isinstance(item, str)
                                  else item for item in value]
            else:
                masked_data[key] = value

        return masked_data


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self):
        """Initialize formatter."""
        super().__init__()
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': self.mask_secrets(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        # Add correlation fields if available
        request_id = request_id_var.get()
        stage = stage_var.get()
        user_id = user_id_var.get()
        playlist_id = playlist_id_var.get()
        if request_id:
            log_entry['requestId'] = request_id
        if stage:
            log_entry['stage'] = stage
        if user_id:
            log_entry['userId'] = user_id
        if playlist_id:
            log_entry['playlistId'] = playlist_id

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        if getattr(record, 'fields', None):
            log_entry['fields'] = self.masker.mask_dict(record.fields)

        return json.dumps(log_entry, ensure_ascii=False)

    def mask_secrets(self, text: str) -> str:
        """Mask secrets in text."""
        return self.masker.mask_secrets(text)


class CorrelationContext:
    """Context manager for correlation data."""

    _VARS = {
        'request_id': request_id_var,
        'stage': stage_var,
        'user_id': user_id_var,
        'playlist_id': playlist_id_var,
    }

    def __init__(self, request_id: Optional[str] = None,
                 stage: Optional[str] = None,
                 user_id: Optional[str] = None,
                 playlist_id: Optional[str] = None):
        """Initialize correlation context."""
        self._values = {
            'request_id': request_id,
            'stage': stage,
            'user_id': user_id,
            'playlist_id': playlist_id,
        }
        self._tokens = {}

    def __enter__(self):
        """Set correlation context."""
        for name, value in self._values.items():
            if value is not None:
                self._tokens[name] = self._VARS[name].set(value)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Restore correlation context."""
        for name, token in self._tokens.items():
            self._VARS[name].reset(token)
        self._tokens = {}


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None) -> logging.Logger:
    """Setup structured logging."""
    logger = logging.getLogger('seedmix')
    logger.setLevel(getattr(logging, level.upper()))

    logger.handlers.clear()

    formatter = StructuredFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None, exc_info=None, **kwargs):
    """Log message with additional fields."""
    merged = dict(fields or {})
    merged.update(kwargs)
    extra = {'fields': merged} if merged else None
    logger.log(getattr(logging, level.upper()), message, exc_info=exc_info, extra=extra,
               stacklevel=2)


def log_session_transition(logger: logging.Logger, previous: str, current: str, **kwargs):
    """Log a session state change."""
    with CorrelationContext(stage=current):
        log_with_fields(logger, 'INFO', 'Session state changed', {
            'from': previous,
            'to': current,
            **kwargs
        })


def log_playlist_created(logger: logging.Logger, playlist_id: str, name: str,
                         track_count: int, tracks_added: bool, **kwargs):
    """Log completion of the playlist flow."""
    with CorrelationContext(playlist_id=playlist_id, stage='playlist_created'):
        log_with_fields(logger, 'INFO', 'Playlist created', {
            'name': name,
            'track_count': track_count,
            'tracks_added': tracks_added,
            **kwargs
        })


def log_error(logger: logging.Logger, message: str, error: Exception, **kwargs):
    """Log error with exception details."""
    log_with_fields(logger, 'ERROR', message, {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    })
