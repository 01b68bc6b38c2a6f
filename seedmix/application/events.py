from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

TOKEN_ACQUIRED = 'token_acquired'
TOP_TRACKS_UPDATED = 'top_tracks_updated'

Handler = Callable[..., Any]


class EventBus:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, event: str, handler: Handler) -> None:
        with self._lock:
            self._subscribers.setdefault(event, []).append(handler)

    def subscriptions(self) -> List[Tuple[str, str]]:
        """Return (event, handler name) pairs in registration order."""
        with self._lock:
            return [
                (event, getattr(handler, '__name__', repr(handler)))
                for event, handlers in self._subscribers.items()
                for handler in handlers
            ]

    def publish(self, event: str, **payload: Any) -> None:
        """Run the handlers for an event synchronously, in registration order."""
        with self._lock:
            handlers = list(self._subscribers.get(event, ()))
        logger.debug(f"Publishing {event} to {len(handlers)} handler(s)")
        for handler in handlers:
            handler(**payload)


__all__ = ["EventBus", "TOKEN_ACQUIRED", "TOP_TRACKS_UPDATED"]
