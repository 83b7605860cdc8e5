"""Half-point and forced bye bookkeeping."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from swissclub.core.constants import FORCED_BYE_POINTS, HALF_POINT_BYE_POINTS
from swissclub.errors import NoEligiblePlayerForByeError

from .models import TournamentResult

logger = logging.getLogger(__name__)


def players_with_half_point_bye(
    results: Iterable[TournamentResult], round_number: int
) -> list[str]:
    """Return ids of players holding a half-point bye for ``round_number``."""
    return [r.player_id for r in results if round_number in r.bye_rounds]


def apply_half_point_bye(
    result: TournamentResult, round_number: int, timestamp: str
) -> None:
    """Award half a point for a declared absence.

    The round counts as a bye, not a game: ``games_played`` is unchanged and
    no opponent is recorded.
    """
    result.points += HALF_POINT_BYE_POINTS
    result.bye_rounds.append(round_number)
    result.last_updated = timestamp


def select_forced_bye(ranked_pool: Sequence[TournamentResult]) -> TournamentResult:
    """Pick the lowest-ranked player who has not had a forced bye yet.

    ``ranked_pool`` must be ordered best first.
    """
    for candidate in reversed(ranked_pool):
        if not candidate.forced_bye_rounds:
            return candidate
    raise NoEligiblePlayerForByeError(
        "Every remaining player has already received a forced bye."
    )


def award_forced_bye(
    result: TournamentResult, round_number: int, timestamp: str
) -> None:
    """Award the full point for sitting out an odd-sized round.

    A forced bye counts as a played game but adds no opponent.
    """
    if round_number in result.forced_bye_rounds:
        return
    result.points += FORCED_BYE_POINTS
    result.games_played += 1
    result.forced_bye_rounds.append(round_number)
    result.last_updated = timestamp
    logger.info(
        "Forced bye for round %s awarded to %s", round_number, result.player_id
    )


def revert_forced_byes(
    results: Iterable[TournamentResult], round_number: int, timestamp: str
) -> list[str]:
    """Undo forced-bye awards already made for ``round_number``.

    Used before pairings for a round are regenerated so the award is made at
    most once per round. Returns the ids whose award was reverted.
    """
    reverted = []
    for result in results:
        if round_number not in result.forced_bye_rounds:
            continue
        result.points = max(0.0, result.points - FORCED_BYE_POINTS)
        result.games_played = max(0, result.games_played - 1)
        result.forced_bye_rounds.remove(round_number)
        result.last_updated = timestamp
        reverted.append(result.player_id)
    if reverted:
        logger.info(
            "Reverted superseded forced byes for round %s: %s", round_number, reverted
        )
    return reverted
