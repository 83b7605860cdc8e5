"""In-process storage adapter, used for local development and tests."""

from __future__ import annotations

import threading
import uuid
from collections.abc import Sequence
from typing import TYPE_CHECKING

from swissclub.errors import ConcurrentModificationError

from .base import TournamentStore

if TYPE_CHECKING:
    from swissclub.tournament.models import Game, Player, Tournament, TournamentResult


class MemoryStore(TournamentStore):
    """Keeps everything in dictionaries; records are copied on the way in and out."""

    def __init__(self, players: list[Player] | None = None) -> None:
        self._tournaments: dict[str, Tournament] = {}
        self._results: dict[str, dict[str, TournamentResult]] = {}
        self.games: list[dict] = []
        self.players: dict[str, Player] = {p.id: p for p in players or []}
        self._lock = threading.Lock()

    def add_player(self, player: Player) -> None:
        self.players[player.id] = player

    def get_tournament(self, tournament_id: str) -> Tournament | None:
        with self._lock:
            tournament = self._tournaments.get(tournament_id)
            return tournament.copy() if tournament else None

    def list_tournaments(self, status: str | None = None) -> list[Tournament]:
        with self._lock:
            return [
                t.copy()
                for t in self._tournaments.values()
                if status is None or t.status == status
            ]

    def create_tournament(
        self, tournament: Tournament, results: Sequence[TournamentResult]
    ) -> Tournament:
        with self._lock:
            if not tournament.id:
                tournament.id = uuid.uuid4().hex
            tournament.version = 1
            self._tournaments[tournament.id] = tournament.copy()
            self._results[tournament.id] = {r.player_id: r.copy() for r in results}
            return tournament

    def commit(
        self,
        tournament: Tournament,
        expected_version: int,
        results: Sequence[TournamentResult] | None = None,
        games: Sequence[Game] = (),
    ) -> list[str]:
        with self._lock:
            stored = self._tournaments.get(tournament.id)
            current = stored.version if stored else 0
            if current != expected_version:
                raise ConcurrentModificationError(
                    f"Tournament {tournament.id} is at version {current}, "
                    f"expected {expected_version}."
                )
            tournament.version = expected_version + 1
            self._tournaments[tournament.id] = tournament.copy()
            if results is not None:
                self._results[tournament.id] = {r.player_id: r.copy() for r in results}
            ids = []
            for game in games:
                game_id = uuid.uuid4().hex
                self.games.append({"id": game_id, **game.to_dict()})
                ids.append(game_id)
            return ids

    def delete_tournament(self, tournament_id: str) -> None:
        with self._lock:
            self._tournaments.pop(tournament_id, None)
            self._results.pop(tournament_id, None)

    def get_results(self, tournament_id: str) -> list[TournamentResult]:
        with self._lock:
            return [r.copy() for r in self._results.get(tournament_id, {}).values()]

    def get_players(self, player_ids: list[str]) -> dict[str, Player]:
        return {pid: self.players[pid] for pid in player_ids if pid in self.players}

    def list_members(self) -> list[Player]:
        return list(self.players.values())
