from typing import Optional


class SeedMixError(Exception):
    """Base class for failures surfaced by remote calls and flows."""

    kind = "error"


class AuthFailure(SeedMixError):
    """Token exchange yielded no token, or the service rejected the credential."""

    kind = "auth"


class TransportFailure(SeedMixError):
    """Network error, timeout, non-auth HTTP error or malformed response."""

    kind = "transport"

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class FlowInProgress(SeedMixError):
    """A gated flow is already running; the new invocation was ignored."""

    kind = "in_progress"


class SessionNotReady(SeedMixError):
    """The session lacks what the operation needs (token, user id, seeds or tracks)."""

    kind = "not_ready"
