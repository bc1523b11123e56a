# fleetdesk/listing.py
"""
Load state for list pages.

A server-rendered view fetches once per request, so this is just the
state the template renders from. Overlapping fetches only happen in the
browser: the day-end list page tags each JSON request with a `seq` and
drops any response that is not for the latest one (see
`admin.day_end_json`, which echoes the number back).
"""
from __future__ import annotations

import enum
from typing import Any, Sequence


class LoadState(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    POPULATED = "populated"
    ERROR = "error"


class ListState:
    """idle -> loading -> populated | error."""

    def __init__(self) -> None:
        self.state = LoadState.IDLE
        self.items: Sequence[Any] = []
        self.error: str | None = None

    @property
    def busy(self) -> bool:
        # Disables the control that triggered the fetch
        return self.state is LoadState.LOADING

    def begin(self) -> None:
        self.state = LoadState.LOADING
        self.error = None

    def resolve(self, items: Sequence[Any]) -> None:
        self.items = items
        self.state = LoadState.POPULATED

    def fail(self, message: str) -> None:
        self.error = message
        self.state = LoadState.ERROR


def parse_seq(raw: Any) -> int | None:
    """Client-supplied sequence number echoed by JSON list endpoints."""
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value if value >= 0 else None
