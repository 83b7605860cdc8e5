"""Flask extensions for the application."""

from __future__ import annotations

from typing import TYPE_CHECKING

from flask import current_app

from swissclub.cache import StandingsCache
from swissclub.storage import MemoryStore, TournamentStore

if TYPE_CHECKING:
    from flask import Flask

    from swissclub.tournament.services import TournamentService


class SwissEngine:
    """Wires a storage backend and standings cache into a TournamentService."""

    def __init__(self, app: Flask | None = None, store: TournamentStore | None = None):
        self.store = store
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        from swissclub.tournament.services import TournamentService

        store = (
            self.store
            or app.config.get("TOURNAMENT_STORE")
            or self._create_store(app)
        )
        cache = StandingsCache(ttl=app.config["STANDINGS_CACHE_TTL"])
        app.extensions["swiss_engine"] = TournamentService(store, cache)

    @staticmethod
    def _create_store(app: Flask) -> TournamentStore:
        backend = app.config["STORAGE_BACKEND"]
        if backend == "memory":
            app.logger.info("Using in-memory tournament storage.")
            return MemoryStore()
        if backend == "firestore":
            from swissclub.storage.firestore import FirestoreStore

            return FirestoreStore(timeout=app.config["FIRESTORE_TIMEOUT"])
        raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")


def get_service() -> TournamentService:
    """Return the TournamentService of the current app."""
    return current_app.extensions["swiss_engine"]


engine = SwissEngine()
