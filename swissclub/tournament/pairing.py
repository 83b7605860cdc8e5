"""Swiss-system pairing generation."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from swissclub.core.constants import MIN_PLAYERS
from swissclub.errors import InsufficientPlayersError

from .byes import award_forced_bye, players_with_half_point_bye, select_forced_bye
from .models import Pairing, RoundPairings, TournamentResult
from .utils import rank_order

logger = logging.getLogger(__name__)

PlayerPair = tuple[TournamentResult, TournamentResult]


def have_met(a: TournamentResult, b: TournamentResult) -> bool:
    """Check whether two players have already faced each other."""
    return a.has_played(b.player_id) or b.has_played(a.player_id)


class SwissPairingGenerator:
    """Pair players of similar score, avoiding rematches where possible."""

    MIN_PLAYERS = MIN_PLAYERS
    # Pairing attempts allowed when searching the whole pool for a rematch-free draw
    SEARCH_LIMIT = 10000

    def generate(
        self,
        round_number: int,
        results: list[TournamentResult],
        player_ids: Iterable[str],
        timestamp: str,
    ) -> RoundPairings:
        """Produce the pairings for ``round_number``.

        ``results`` rows are mutated in place when a forced bye is awarded;
        callers are expected to pass copies and persist them afterwards.
        """
        roster = set(player_ids)
        active = [r for r in results if r.player_id in roster and not r.withdrawn]
        if len(active) < self.MIN_PLAYERS:
            raise InsufficientPlayersError(
                f"Swiss pairing needs at least {self.MIN_PLAYERS} players; "
                f"tournament has {len(active)}."
            )

        ranks = rank_order(results)
        half_point_byes = players_with_half_point_bye(active, round_number)
        pool = sorted(
            (r for r in active if r.player_id not in half_point_byes),
            key=lambda r: ranks[r.player_id],
        )
        if not pool:
            raise InsufficientPlayersError(
                f"Every player has a half-point bye for round {round_number}."
            )

        forced_byes = []
        if len(pool) % 2 == 1:
            bye_player = select_forced_bye(pool)
            pool = [r for r in pool if r is not bye_player]
            award_forced_bye(bye_player, round_number, timestamp)
            forced_byes.append(bye_player.player_id)

        pairings = [
            self._create_pairing(round_number, p1, p2, timestamp)
            for p1, p2 in self.pair_pool(pool)
        ]
        logger.info(
            "Round %s: %d pairings, forced byes %s, half-point byes %s",
            round_number,
            len(pairings),
            forced_byes,
            half_point_byes,
        )
        return RoundPairings(
            round_number=round_number,
            pairings=pairings,
            forced_byes=forced_byes,
            half_point_byes=half_point_byes,
        )

    @staticmethod
    def group_by_score(
        players: list[TournamentResult],
    ) -> list[list[TournamentResult]]:
        """Split a rank-ordered pool into score groups, highest score first."""
        groups: dict[float, list[TournamentResult]] = {}
        for player in players:
            groups.setdefault(player.points, []).append(player)
        return [groups[score] for score in sorted(groups, reverse=True)]

    def pair_pool(self, pool: list[TournamentResult]) -> list[PlayerPair]:
        """Pair an even, rank-ordered pool group by group.

        A player with no fresh opponent left in their group floats down and
        leads the next group. Whoever is still unpaired after the last group
        is paired in :meth:`_pair_leftovers`. If that still leaves a rematch,
        the whole pool is searched for a pairing without one.
        """
        pairs: list[PlayerPair] = []
        floaters: list[TournamentResult] = []
        for group in self.group_by_score(pool):
            queue = floaters + group
            floaters = []
            while queue:
                player = queue.pop(0)
                opponent = next((o for o in queue if not have_met(player, o)), None)
                if opponent is None:
                    floaters.append(player)
                    continue
                queue.remove(opponent)
                pairs.append((player, opponent))

        if floaters:
            pairs.extend(self._pair_leftovers(floaters, pairs))

        rematches = [(a, b) for a, b in pairs if have_met(a, b)]
        if not rematches:
            return pairs
        fresh = self._search_without_rematches(pool)
        if fresh is not None:
            return fresh
        for a, b in rematches:
            logger.warning("Rematch unavoidable: %s vs %s", a.player_id, b.player_id)
        return pairs

    def _pair_leftovers(
        self, leftovers: list[TournamentResult], pairs: list[PlayerPair]
    ) -> list[PlayerPair]:
        """Pair players who floated past the lowest score group.

        A fresh opponent is preferred; failing that, an existing pairing
        (lowest first) is split if both resulting pairings are fresh. Only
        then is a rematch accepted.
        """
        extra: list[PlayerPair] = []
        queue = list(leftovers)
        while len(queue) >= 2:
            player = queue.pop(0)
            opponent = next((o for o in queue if not have_met(player, o)), None)
            if opponent is not None:
                queue.remove(opponent)
                extra.append((player, opponent))
                continue

            opponent = queue.pop(0)
            if self._swap_into_existing(player, opponent, pairs):
                continue
            extra.append((player, opponent))
        return extra

    def _search_without_rematches(
        self, pool: list[TournamentResult]
    ) -> list[PlayerPair] | None:
        """Backtrack over the rank-ordered pool for a draw with no rematch.

        The top remaining player takes the nearest-ranked fresh opponent
        that still lets everyone below be paired. Returns None when no such
        draw exists or :attr:`SEARCH_LIMIT` attempts have been spent.
        """
        attempts = 0

        def search(remaining: list[TournamentResult]) -> list[PlayerPair] | None:
            nonlocal attempts
            if not remaining:
                return []
            player, rest = remaining[0], remaining[1:]
            for index, opponent in enumerate(rest):
                if have_met(player, opponent):
                    continue
                attempts += 1
                if attempts > self.SEARCH_LIMIT:
                    return None
                found = search(rest[:index] + rest[index + 1 :])
                if found is not None:
                    return [(player, opponent), *found]
            return None

        return search(list(pool))

    @staticmethod
    def _swap_into_existing(
        a: TournamentResult, b: TournamentResult, pairs: list[PlayerPair]
    ) -> bool:
        for index in range(len(pairs) - 1, -1, -1):
            c, d = pairs[index]
            if not have_met(c, a) and not have_met(d, b):
                pairs[index] = (c, a)
                pairs.append((d, b))
                return True
            if not have_met(c, b) and not have_met(d, a):
                pairs[index] = (c, b)
                pairs.append((d, a))
                return True
        return False

    @staticmethod
    def _create_pairing(
        round_number: int,
        player1: TournamentResult,
        player2: TournamentResult,
        timestamp: str,
    ) -> Pairing:
        return Pairing(
            id=uuid.uuid4().hex,
            round=round_number,
            player1_id=player1.player_id,
            player2_id=player2.player_id,
            player1_name=player1.player_name,
            player2_name=player2.player_name,
            created_at=timestamp,
        )
