from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from .errors import SeedMixError

T = TypeVar('T')


@dataclass(frozen=True)
class RemoteResult(Generic[T]):
    """Tagged outcome of a remote call: either a value or the error that stopped it."""

    ok: bool
    value: Optional[T] = None
    error: Optional[SeedMixError] = None

    @classmethod
    def success(cls, value: T = None) -> "RemoteResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: SeedMixError) -> "RemoteResult[T]":
        return cls(ok=False, error=error)

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error is not None else None
