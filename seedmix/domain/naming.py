from __future__ import annotations

from datetime import date
from typing import Iterable


DEFAULT_PREFIX = "DDPM"


def playlist_stem(prefix: str, day: date) -> str:
    return f"{prefix} - {day.isoformat()}"


def base_playlist_name(prefix: str, day: date) -> str:
    """First name tried for a day: '<prefix> - <YYYY-MM-DD> - 1'."""
    return f"{playlist_stem(prefix, day)} - 1"


def next_playlist_name(prefix: str, day: date, existing_names: Iterable[str]) -> str:
    """Return the name for a new playlist given the names already on the account.

    Every existing name starting with '<prefix> - <date>' counts, so
    'P - 2024-01-01' and 'P - 2024-01-01 - 2' yield 'P - 2024-01-01 - 3'.
    """
    stem = playlist_stem(prefix, day)
    taken = sum(1 for name in existing_names if name and name.startswith(stem))
    if taken == 0:
        return base_playlist_name(prefix, day)
    return f"{stem} - {taken + 1}"
