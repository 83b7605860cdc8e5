"""Applying submitted round results to tournament standings."""

from __future__ import annotations

import logging

from swissclub.core.constants import (
    DRAW_POINTS,
    LOSS_POINTS,
    RESULT_DRAW,
    RESULT_HALF_BYE_P1,
    RESULT_PLAYER1,
    RESULT_PLAYER2,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    WIN_POINTS,
)
from swissclub.errors import (
    InvalidStateError,
    NotFoundError,
    UnknownPairingError,
    ValidationError,
)

from .byes import apply_half_point_bye
from .models import Game, Pairing, PairingResult, RoundOutcome, Tournament, TournamentResult

logger = logging.getLogger(__name__)


class RoundResultProcessor:
    """Validates and applies one round of results, then closes the round."""

    def validate(
        self,
        tournament: Tournament,
        results: dict[str, TournamentResult],
        submissions: list[PairingResult],
    ) -> list[tuple[Pairing, PairingResult]]:
        """Check the whole batch before anything is mutated.

        Returns the submissions matched with their pairings, in the order
        submitted.
        """
        if tournament.status != STATUS_ACTIVE:
            raise InvalidStateError("Cannot submit results for non-active tournaments.")
        if not tournament.has_generated_round:
            raise InvalidStateError(
                f"No pairings have been generated for round {tournament.current_round}."
            )

        by_id = {p.id: p for p in tournament.current_pairings or []}
        matched: list[tuple[Pairing, PairingResult]] = []
        seen: set[str] = set()
        for submission in submissions:
            submission.validate()
            pairing = by_id.get(submission.pairing_id)
            if pairing is None:
                raise UnknownPairingError(
                    f"Pairing {submission.pairing_id} is not part of the current round."
                )
            if submission.pairing_id in seen:
                raise ValidationError(
                    f"Pairing {submission.pairing_id} was submitted more than once."
                )
            for player_id in pairing.player_ids:
                if player_id not in results:
                    raise NotFoundError(f"No standings found for player {player_id}.")
            seen.add(submission.pairing_id)
            matched.append((pairing, submission))

        missing = [pid for pid in by_id if pid not in seen]
        if missing:
            raise ValidationError(f"Missing results for pairings: {', '.join(missing)}")
        return matched

    def apply(
        self,
        tournament: Tournament,
        results: dict[str, TournamentResult],
        matched: list[tuple[Pairing, PairingResult]],
        timestamp: str,
    ) -> list[Game]:
        """Update the result rows in place and return the games to record."""
        round_number = tournament.current_round
        games = []
        for pairing, submission in matched:
            p1 = results[pairing.player1_id]
            p2 = results[pairing.player2_id]
            outcome = submission.result

            if submission.is_bye:
                absent = p1 if outcome == RESULT_HALF_BYE_P1 else p2
                apply_half_point_bye(absent, round_number, timestamp)
                continue

            if outcome == RESULT_PLAYER1:
                self._record_decisive(winner=p1, loser=p2)
            elif outcome == RESULT_PLAYER2:
                self._record_decisive(winner=p2, loser=p1)
            elif outcome == RESULT_DRAW:
                for player in (p1, p2):
                    player.points += DRAW_POINTS
                    player.draws += 1

            p1.games_played += 1
            p2.games_played += 1
            p1.opponents_faced.append(p2.player_id)
            p2.opponents_faced.append(p1.player_id)
            p1.last_updated = p2.last_updated = timestamp

            games.append(
                Game(
                    player1_id=p1.player_id,
                    player1_name=p1.player_name,
                    player2_id=p2.player_id,
                    player2_name=p2.player_name,
                    result=outcome,
                    event_id=tournament.id,
                    round=round_number,
                    recorded_at=timestamp,
                )
            )
        return games

    @staticmethod
    def _record_decisive(winner: TournamentResult, loser: TournamentResult) -> None:
        winner.points += WIN_POINTS
        winner.wins += 1
        loser.points += LOSS_POINTS
        loser.losses += 1

    @staticmethod
    def close_round(tournament: Tournament) -> RoundOutcome:
        """Advance to the next round or complete the tournament."""
        tournament.clear_round()
        if tournament.current_round >= tournament.total_rounds:
            tournament.status = STATUS_COMPLETED
            logger.info("Tournament %s completed", tournament.id)
            return RoundOutcome(tournament_status=STATUS_COMPLETED, next_round=None)

        tournament.current_round += 1
        return RoundOutcome(
            tournament_status=tournament.status, next_round=tournament.current_round
        )
