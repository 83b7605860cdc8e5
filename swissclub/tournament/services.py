"""Service layer for tournament business logic."""

from __future__ import annotations

import datetime
import logging
import threading
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from swissclub.cache import StandingsCache
from swissclub.core.constants import (
    MIN_PLAYERS,
    STATUS_ACTIVE,
    STATUS_CANCELLED,
    STATUS_UPCOMING,
)
from swissclub.errors import InvalidStateError, NotFoundError, ValidationError
from swissclub.utils import utc_now

from .byes import apply_half_point_bye, revert_forced_byes
from .models import (
    TOURNAMENT_STATUSES,
    Game,
    PairingResult,
    Player,
    RoundOutcome,
    RoundPairings,
    Tournament,
    TournamentResult,
)
from .pairing import SwissPairingGenerator
from .results import RoundResultProcessor
from .utils import compute_standings

if TYPE_CHECKING:
    from swissclub.storage.base import TournamentStore

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"name", "description", "start_date", "total_rounds"})


def _require_positive_int(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{label} must be a positive integer.")
    return value


def _require_date(value: Any) -> str:
    if isinstance(value, datetime.datetime):
        return value.date().isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, str) and value:
        try:
            return datetime.date.fromisoformat(value[:10]).isoformat()
        except ValueError:
            pass
    raise ValidationError("Start date is required (YYYY-MM-DD).")


def _require_player_ids(player_ids: Any) -> list[str]:
    """Validate a non-empty list of distinct player ids, keeping its order."""
    if not isinstance(player_ids, (list, tuple)) or not player_ids:
        raise ValidationError("Player IDs are required.")
    if not all(isinstance(pid, str) and pid for pid in player_ids):
        raise ValidationError("Player IDs must be non-empty strings.")
    duplicates = sorted({pid for pid in player_ids if player_ids.count(pid) > 1})
    if duplicates:
        raise ValidationError(f"Duplicate player IDs: {', '.join(duplicates)}")
    return list(player_ids)


class TournamentService:
    """Handles the tournament lifecycle, rounds and standings.

    One admin at a time is expected to drive a tournament, but writes are
    still serialised per tournament and every tournament save is checked
    against the version that was loaded.
    """

    def __init__(
        self,
        store: TournamentStore,
        cache: StandingsCache | None = None,
        clock: Callable[[], str] = utc_now,
    ) -> None:
        self.store = store
        self.cache = cache if cache is not None else StandingsCache()
        self._now = clock
        self.pairing_generator = SwissPairingGenerator()
        self.result_processor = RoundResultProcessor()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # -- plumbing -----------------------------------------------------------

    @contextmanager
    def _locked(self, tournament_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(tournament_id, threading.Lock())
        with lock:
            yield

    def _load(self, tournament_id: str) -> Tournament:
        tournament = self.store.get_tournament(tournament_id)
        if tournament is None:
            raise NotFoundError(f"Tournament {tournament_id} not found.")
        return tournament

    def _commit(
        self,
        tournament: Tournament,
        results: list[TournamentResult] | None = None,
        games: Sequence[Game] = (),
    ) -> list[str]:
        """Write the tournament with its rows and games as one versioned unit."""
        tournament.updated_at = self._now()
        try:
            return self.store.commit(tournament, tournament.version, results, games)
        finally:
            self.cache.invalidate(tournament.id)

    def _cached_results(self, tournament_id: str) -> list[TournamentResult]:
        rows = self.cache.get(tournament_id)
        if rows is None:
            rows = self.store.get_results(tournament_id)
            self.cache.set(tournament_id, rows)
        return rows

    # -- lifecycle ----------------------------------------------------------

    def create_tournament(
        self,
        name: str,
        start_date: Any,
        total_rounds: int,
        player_ids: list[str],
        description: str = "",
    ) -> Tournament:
        """Create an upcoming tournament with a zeroed standings row per player."""
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Tournament name is required.")
        start = _require_date(start_date)
        rounds = _require_positive_int(total_rounds, "Total rounds")
        ids = _require_player_ids(player_ids)
        if len(ids) < MIN_PLAYERS:
            raise ValidationError(
                f"A Swiss tournament needs at least {MIN_PLAYERS} players."
            )

        roster = self.store.get_players(ids)
        unknown = [pid for pid in ids if pid not in roster]
        if unknown:
            raise NotFoundError(f"Unknown players: {', '.join(unknown)}")

        now = self._now()
        tournament = Tournament(
            id="",
            name=name.strip(),
            description=(description or "").strip(),
            start_date=start,
            total_rounds=rounds,
            player_ids=ids,
            created_at=now,
            updated_at=now,
        )
        tournament = self.store.create_tournament(
            tournament,
            [
                TournamentResult(
                    player_id=pid, player_name=roster[pid].name, last_updated=now
                )
                for pid in ids
            ],
        )
        self.cache.invalidate(tournament.id)
        logger.info(
            "Created tournament %s (%s) with %d players",
            tournament.id,
            tournament.name,
            len(ids),
        )
        return tournament

    def list_tournaments(self, status: str | None = None) -> list[Tournament]:
        """List tournaments, newest start date first."""
        if status is not None and status not in TOURNAMENT_STATUSES:
            raise ValidationError(f"Unknown tournament status: {status}")
        tournaments = self.store.list_tournaments(status)
        tournaments.sort(key=lambda t: (t.start_date, t.name), reverse=True)
        return tournaments

    def get_tournament(self, tournament_id: str) -> Tournament:
        return self._load(tournament_id)

    def update_tournament(
        self, tournament_id: str, updates: dict[str, Any]
    ) -> Tournament:
        """Edit the descriptive fields and the number of rounds."""
        unknown = set(updates) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}"
            )
        with self._locked(tournament_id):
            tournament = self._load(tournament_id)
            if "name" in updates:
                name = updates["name"]
                if not isinstance(name, str) or not name.strip():
                    raise ValidationError("Tournament name is required.")
                tournament.name = name.strip()
            if "description" in updates:
                tournament.description = str(updates["description"] or "").strip()
            if "start_date" in updates:
                tournament.start_date = _require_date(updates["start_date"])
            if "total_rounds" in updates:
                if tournament.is_terminal:
                    raise InvalidStateError(
                        f"Cannot change rounds of a {tournament.status} tournament."
                    )
                rounds = _require_positive_int(updates["total_rounds"], "Total rounds")
                if rounds < tournament.current_round:
                    raise ValidationError(
                        f"Total rounds cannot be less than the current round "
                        f"({tournament.current_round})."
                    )
                tournament.total_rounds = rounds
            self._commit(tournament)
            return tournament

    def cancel_tournament(self, tournament_id: str) -> Tournament:
        with self._locked(tournament_id):
            tournament = self._load(tournament_id)
            if tournament.is_terminal:
                raise InvalidStateError(
                    f"Cannot cancel a {tournament.status} tournament."
                )
            tournament.status = STATUS_CANCELLED
            tournament.clear_round()
            self._commit(tournament)
            logger.info("Tournament %s cancelled", tournament_id)
            return tournament

    def delete_tournament(self, tournament_id: str) -> None:
        with self._locked(tournament_id):
            tournament = self._load(tournament_id)
            if tournament.status == STATUS_ACTIVE:
                raise InvalidStateError(
                    "Cannot delete active tournaments. Please complete or cancel first."
                )
            self.store.delete_tournament(tournament_id)
            self.cache.invalidate(tournament_id)
        with self._locks_guard:
            self._locks.pop(tournament_id, None)
        logger.info("Tournament %s deleted", tournament_id)

    # -- roster -------------------------------------------------------------

    def get_player_overview(self, tournament_id: str) -> dict[str, Any]:
        """Current players, withdrawn ones included, and members who could join."""
        tournament = self._load(tournament_id)
        current = sorted(
            self.store.get_results(tournament_id),
            key=lambda r: (r.player_name.lower(), r.player_id),
        )
        taken = set(tournament.player_ids) | {r.player_id for r in current}
        available: list[Player] = sorted(
            (m for m in self.store.list_members() if m.id not in taken),
            key=lambda m: (m.name.lower(), m.id),
        )
        return {
            "tournament": tournament,
            "current_players": current,
            "available_players": available,
        }

    def add_players(
        self,
        tournament_id: str,
        player_ids: list[str],
        bye_rounds: Iterable[int] = (),
    ) -> list[str]:
        """Add players, optionally crediting half-point byes for missed rounds.

        A previously withdrawn player is reinstated with their standings.
        """
        ids = _require_player_ids(player_ids)
        with self._locked(tournament_id):
            tournament = self._load(tournament_id)
            if tournament.is_terminal:
                raise InvalidStateError(
                    f"Cannot modify players in {tournament.status} tournaments."
                )
            duplicates = [pid for pid in ids if pid in tournament.player_ids]
            if duplicates:
                raise ValidationError(
                    f"Players already in tournament: {', '.join(duplicates)}"
                )
            missed = sorted(set(bye_rounds))
            for round_number in missed:
                _require_positive_int(round_number, "Bye round")
                if round_number > tournament.current_round:
                    raise ValidationError(
                        f"Bye round {round_number} has not started yet."
                    )

            roster = self.store.get_players(ids)
            unknown = [pid for pid in ids if pid not in roster]
            if unknown:
                raise NotFoundError(f"Unknown players: {', '.join(unknown)}")

            now = self._now()
            rows = self.store.get_results(tournament_id)
            by_id = {r.player_id: r for r in rows}
            for pid in ids:
                row = by_id.get(pid)
                if row is None:
                    row = TournamentResult(player_id=pid, player_name=roster[pid].name)
                    rows.append(row)
                row.withdrawn = False
                row.withdrawn_at = None
                row.last_updated = now
                for round_number in missed:
                    if round_number not in row.bye_rounds:
                        apply_half_point_bye(row, round_number, now)

            tournament.player_ids.extend(ids)
            if tournament.status == STATUS_ACTIVE:
                tournament.clear_round()
            self._commit(tournament, rows)
            logger.info("Added players %s to tournament %s", ids, tournament_id)
            return ids

    def remove_players(
        self,
        tournament_id: str,
        player_ids: list[str],
        remove_completely: bool = False,
    ) -> list[str]:
        """Withdraw players, or delete their standings outright."""
        ids = _require_player_ids(player_ids)
        with self._locked(tournament_id):
            tournament = self._load(tournament_id)
            if tournament.is_terminal:
                raise InvalidStateError(
                    f"Cannot modify players in {tournament.status} tournaments."
                )
            missing = [pid for pid in ids if pid not in tournament.player_ids]
            if missing:
                raise NotFoundError(f"Players not in tournament: {', '.join(missing)}")

            now = self._now()
            rows = self.store.get_results(tournament_id)
            if remove_completely:
                rows = [r for r in rows if r.player_id not in ids]
            else:
                for row in rows:
                    if row.player_id in ids:
                        row.withdrawn = True
                        row.withdrawn_at = now
                        row.last_updated = now

            tournament.player_ids = [p for p in tournament.player_ids if p not in ids]
            if tournament.status == STATUS_ACTIVE:
                tournament.clear_round()
            self._commit(tournament, rows)
            logger.info(
                "%s players %s from tournament %s",
                "Removed" if remove_completely else "Withdrew",
                ids,
                tournament_id,
            )
            return ids

    # -- rounds -------------------------------------------------------------

    def generate_round(self, tournament_id: str, round_number: int) -> RoundPairings:
        """Pair the round in progress and award its forced bye.

        Generating the same round again replaces the pairings; a forced bye
        already awarded for the round is taken back first.
        """
        _require_positive_int(round_number, "Round number")
        with self._locked(tournament_id):
            tournament = self._load(tournament_id)
            if tournament.status not in (STATUS_UPCOMING, STATUS_ACTIVE):
                raise InvalidStateError(
                    "Cannot generate pairings for completed or cancelled tournaments."
                )
            expected = tournament.round_in_progress
            if round_number != expected:
                raise ValidationError(
                    f"Round {round_number} cannot be generated; "
                    f"the round in progress is {expected}."
                )
            if round_number > tournament.total_rounds:
                raise ValidationError(
                    f"Tournament only has {tournament.total_rounds} rounds."
                )

            now = self._now()
            rows = self.store.get_results(tournament_id)
            revert_forced_byes(rows, round_number, now)
            pairings = self.pairing_generator.generate(
                round_number, rows, tournament.player_ids, now
            )

            tournament.status = STATUS_ACTIVE
            tournament.current_round = round_number
            tournament.current_pairings = list(pairings.pairings)
            tournament.current_forced_byes = list(pairings.forced_byes)
            tournament.current_half_point_byes = list(pairings.half_point_byes)
            self._commit(tournament, rows)
            return pairings

    def get_current_round(self, tournament_id: str) -> RoundPairings | None:
        """Return the generated but unfinished round, if any."""
        tournament = self._load(tournament_id)
        if not tournament.has_generated_round:
            return None
        return RoundPairings(
            round_number=tournament.current_round,
            pairings=list(tournament.current_pairings or []),
            forced_byes=list(tournament.current_forced_byes or []),
            half_point_byes=list(tournament.current_half_point_byes or []),
        )

    def submit_results(
        self,
        tournament_id: str,
        submissions: list[PairingResult | dict[str, Any]],
    ) -> RoundOutcome:
        """Apply a full round of results and advance or complete the tournament.

        The whole batch is validated before anything is written.
        """
        if not isinstance(submissions, list):
            raise ValidationError("Invalid round results data.")
        entries = [
            s if isinstance(s, PairingResult) else PairingResult.from_dict(s)
            for s in submissions
        ]
        with self._locked(tournament_id):
            tournament = self._load(tournament_id)
            rows = self.store.get_results(tournament_id)
            by_id = {r.player_id: r for r in rows}
            matched = self.result_processor.validate(tournament, by_id, entries)

            now = self._now()
            games = self.result_processor.apply(tournament, by_id, matched, now)
            finished_round = tournament.current_round
            outcome = self.result_processor.close_round(tournament)

            outcome.games_recorded = len(self._commit(tournament, rows, games))
            logger.info(
                "Round %s of tournament %s closed: %d games recorded",
                finished_round,
                tournament_id,
                outcome.games_recorded,
            )
            return outcome

    # -- byes ---------------------------------------------------------------

    def assign_half_point_byes(
        self, tournament_id: str, round_number: int, player_ids: list[str]
    ) -> int:
        """Credit declared absences for the upcoming round before it is paired."""
        _require_positive_int(round_number, "Round number")
        ids = _require_player_ids(player_ids)
        with self._locked(tournament_id):
            tournament = self._load(tournament_id)
            if tournament.status not in (STATUS_UPCOMING, STATUS_ACTIVE):
                raise InvalidStateError(
                    "Can only assign half-point byes to upcoming or active tournaments."
                )
            if round_number != tournament.round_in_progress:
                raise ValidationError(
                    "Can only assign half-point byes for the current round."
                )
            if tournament.has_generated_round:
                raise InvalidStateError(
                    f"Pairings for round {round_number} are already generated; "
                    "record the absence as a half-bye result instead."
                )

            rows = self.store.get_results(tournament_id)
            by_id = {r.player_id: r for r in rows}
            invalid = [
                pid
                for pid in ids
                if pid not in tournament.player_ids
                or pid not in by_id
                or by_id[pid].withdrawn
            ]
            if invalid:
                raise NotFoundError(f"Invalid player IDs: {', '.join(invalid)}")
            already = [pid for pid in ids if round_number in by_id[pid].bye_rounds]
            if already:
                raise ValidationError(
                    f"Players already have a bye for round {round_number}: "
                    f"{', '.join(already)}"
                )

            now = self._now()
            for pid in ids:
                apply_half_point_bye(by_id[pid], round_number, now)
            self._commit(tournament, rows)
            logger.info(
                "Half-point byes for round %s of %s: %s", round_number, tournament_id, ids
            )
            return len(ids)

    def list_half_point_byes(
        self, tournament_id: str, round_number: int
    ) -> list[TournamentResult]:
        _require_positive_int(round_number, "Round number")
        self._load(tournament_id)
        return [
            r
            for r in compute_standings(self._cached_results(tournament_id))
            if round_number in r.bye_rounds
        ]

    # -- standings ----------------------------------------------------------

    def get_standings(
        self, tournament_id: str, include_withdrawn: bool = False
    ) -> list[TournamentResult]:
        """Ranked standings with freshly computed Buchholz scores.

        Served from the read cache, so possibly a few seconds stale.
        """
        self._load(tournament_id)
        return compute_standings(
            self._cached_results(tournament_id), include_withdrawn=include_withdrawn
        )
