"""Standings and tie-break calculation for Swiss tournaments."""

from __future__ import annotations

from collections.abc import Iterable

from .models import TournamentResult


def calculate_buchholz(
    result: TournamentResult, points_by_player: dict[str, float]
) -> float:
    """Sum the current points of every opponent the player has faced.

    Byes never appear in ``opponents_faced`` and so contribute nothing.
    Opponents with no result row (removed from the tournament) count as 0.
    """
    return sum(points_by_player.get(pid, 0.0) for pid in result.opponents_faced)


def standings_sort_key(result: TournamentResult) -> tuple[float, float, str, str]:
    """Sort by points (desc), Buchholz (desc), then name and id (asc)."""
    return (
        -result.points,
        -result.buchholz_score,
        result.player_name.lower(),
        result.player_id,
    )


def compute_standings(
    results: Iterable[TournamentResult], include_withdrawn: bool = True
) -> list[TournamentResult]:
    """Return ranked copies of ``results`` with Buchholz scores filled in.

    Buchholz is always computed over every row, including withdrawn players,
    since their points still count for the opponents who met them. The input
    rows are left untouched.
    """
    rows = [r.copy() for r in results]
    points_by_player = {r.player_id: r.points for r in rows}
    for row in rows:
        row.buchholz_score = calculate_buchholz(row, points_by_player)

    if not include_withdrawn:
        rows = [r for r in rows if not r.withdrawn]

    rows.sort(key=standings_sort_key)
    for index, row in enumerate(rows, start=1):
        row.rank = index
    return rows


def rank_order(results: Iterable[TournamentResult]) -> dict[str, int]:
    """Map player id to current 1-based rank."""
    return {r.player_id: r.rank for r in compute_standings(results)}
