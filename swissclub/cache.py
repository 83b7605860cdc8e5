"""Short-lived read cache for tournament standings."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from swissclub.core.constants import STANDINGS_CACHE_TTL

if TYPE_CHECKING:
    from swissclub.tournament.models import TournamentResult


class StandingsCache:
    """In-process TTL cache of result rows keyed by tournament id.

    Reads served from here may be up to ``ttl`` seconds stale. Anything that
    writes standings must call :meth:`invalidate` afterwards, and must not
    read through the cache before a write. Expired entries are dropped on
    the next lookup.
    """

    def __init__(
        self,
        ttl: float = STANDINGS_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, list[TournamentResult]]] = {}
        self._lock = threading.Lock()

    def get(self, tournament_id: str) -> list[TournamentResult] | None:
        with self._lock:
            entry = self._entries.get(tournament_id)
            if entry is None:
                return None
            expires_at, rows = entry
            if self._clock() >= expires_at:
                del self._entries[tournament_id]
                return None
            return [r.copy() for r in rows]

    def set(self, tournament_id: str, rows: list[TournamentResult]) -> None:
        if self.ttl <= 0:
            return
        with self._lock:
            self._entries[tournament_id] = (
                self._clock() + self.ttl,
                [r.copy() for r in rows],
            )

    def invalidate(self, tournament_id: str) -> None:
        with self._lock:
            self._entries.pop(tournament_id, None)
