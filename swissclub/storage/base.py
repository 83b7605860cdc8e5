"""Storage interface used by the tournament engine."""

from __future__ import annotations

import abc
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from swissclub.tournament.models import Game, Player, Tournament, TournamentResult


class TournamentStore(abc.ABC):
    """Durable home of tournaments, their standings, games and the roster.

    Exactly one implementation is chosen when the app starts. Adapters raise
    :class:`~swissclub.errors.BackendUnavailableError` for timeouts and quota
    errors and return ``None``/empty values for missing records; deciding
    what "missing" means is left to the service layer.

    Every write goes through :meth:`create_tournament` or :meth:`commit`, and
    each of those lands completely or not at all.
    """

    @abc.abstractmethod
    def get_tournament(self, tournament_id: str) -> Tournament | None:
        """Load a tournament by id."""

    @abc.abstractmethod
    def list_tournaments(self, status: str | None = None) -> list[Tournament]:
        """List tournaments, optionally only those with ``status``."""

    @abc.abstractmethod
    def create_tournament(
        self, tournament: Tournament, results: Sequence[TournamentResult]
    ) -> Tournament:
        """Persist a new tournament and its initial result rows.

        Assigns an id when the tournament has none and sets version 1.
        """

    @abc.abstractmethod
    def commit(
        self,
        tournament: Tournament,
        expected_version: int,
        results: Sequence[TournamentResult] | None = None,
        games: Sequence[Game] = (),
    ) -> list[str]:
        """Write a tournament together with its result rows and new games.

        ``results``, when given, replaces every result row of the tournament.
        Nothing is written unless the stored version is ``expected_version``;
        otherwise :class:`~swissclub.errors.ConcurrentModificationError` is
        raised. On success the tournament's version is bumped and the ids of
        the recorded games are returned.
        """

    @abc.abstractmethod
    def delete_tournament(self, tournament_id: str) -> None:
        """Delete a tournament and all of its result rows."""

    @abc.abstractmethod
    def get_results(self, tournament_id: str) -> list[TournamentResult]:
        """Load every result row of a tournament, withdrawn players included."""

    @abc.abstractmethod
    def get_players(self, player_ids: list[str]) -> dict[str, Player]:
        """Look up roster entries; unknown ids are left out of the result."""

    @abc.abstractmethod
    def list_members(self) -> list[Player]:
        """Every club member on the roster."""
