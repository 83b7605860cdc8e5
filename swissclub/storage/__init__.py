"""Storage adapters for tournaments, standings, games and the roster."""

from .base import TournamentStore
from .memory import MemoryStore

__all__ = ["MemoryStore", "TournamentStore"]
