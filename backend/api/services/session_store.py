"""In-memory session data store.

Each session holds the normalized (not resampled) reference lap and the
optional live lap.  Everything else is recomputed from these on request,
so the store never holds derived state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

import pandas as pd


@dataclass
class SessionData:
    """Raw laps loaded for one reference/live comparison."""

    session_id: str
    reference_name: str
    reference: pd.DataFrame
    live_name: str | None = None
    live: pd.DataFrame | None = None
    rows_dropped: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    recorded_laps: int = 0


# Module-level in-memory store
_store: dict[str, SessionData] = {}


def store_session(session_id: str, data: SessionData) -> None:
    """Persist a session in the in-memory store."""
    _store[session_id] = data


def get_session(session_id: str) -> SessionData | None:
    """Retrieve a session by ID, or None if not found."""
    return _store.get(session_id)


def delete_session(session_id: str) -> bool:
    """Delete a session by ID. Returns True if it existed."""
    return _store.pop(session_id, None) is not None


def list_sessions() -> list[SessionData]:
    """Return all stored sessions, newest first."""
    return sorted(_store.values(), key=lambda s: s.created_at, reverse=True)


def clear_all() -> int:
    """Delete all sessions. Returns the count of deleted sessions."""
    count = len(_store)
    _store.clear()
    return count
