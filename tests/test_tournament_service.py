"""Tests for TournamentService against the in-memory store."""

from __future__ import annotations

import unittest
from unittest.mock import patch

from swissclub.cache import StandingsCache
from swissclub.core.constants import (
    STATUS_ACTIVE,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_UPCOMING,
)
from swissclub.errors import (
    BackendUnavailableError,
    ConcurrentModificationError,
    InsufficientPlayersError,
    InvalidStateError,
    NotFoundError,
    UnknownPairingError,
    ValidationError,
)
from swissclub.tournament.services import TournamentService
from tests.conftest import make_store

NOW = "2024-03-01T19:30:00+00:00"


class TournamentServiceTestCase(unittest.TestCase):
    """Test case for the tournament lifecycle."""

    def setUp(self) -> None:
        self.store = make_store(8)
        self.cache = StandingsCache(ttl=30)
        self.service = TournamentService(self.store, self.cache, clock=lambda: NOW)

    def create(self, count: int = 4, rounds: int = 3) -> str:
        tournament = self.service.create_tournament(
            name="Spring Swiss",
            start_date="2024-03-01",
            total_rounds=rounds,
            player_ids=[f"p{i}" for i in range(1, count + 1)],
        )
        return tournament.id

    def rows(self, tournament_id: str) -> dict:
        return {r.player_id: r for r in self.store.get_results(tournament_id)}

    def play_round(self, tournament_id: str, result: str = "player1"):
        tournament = self.service.get_tournament(tournament_id)
        pairings = self.service.generate_round(
            tournament_id, tournament.round_in_progress
        )
        outcome = self.service.submit_results(
            tournament_id,
            [{"pairingId": p.id, "result": result} for p in pairings.pairings],
        )
        return pairings, outcome

    # -- creation -------------------------------------------------------------

    def test_create_tournament(self) -> None:
        tournament_id = self.create()
        tournament = self.service.get_tournament(tournament_id)

        self.assertEqual(tournament.status, STATUS_UPCOMING)
        self.assertEqual(tournament.current_round, 0)
        self.assertIsNone(tournament.current_pairings)
        self.assertEqual(tournament.version, 1)
        rows = self.rows(tournament_id)
        self.assertEqual(set(rows), {"p1", "p2", "p3", "p4"})
        self.assertEqual(rows["p1"].player_name, "Player 01")
        self.assertEqual(rows["p1"].points, 0.0)

    def test_create_validation(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.create_tournament("", "2024-03-01", 3, ["p1", "p2", "p3", "p4"])
        with self.assertRaises(ValidationError):
            self.service.create_tournament("X", "someday", 3, ["p1", "p2", "p3", "p4"])
        with self.assertRaises(ValidationError):
            self.service.create_tournament("X", "2024-03-01", 0, ["p1", "p2", "p3", "p4"])
        with self.assertRaises(ValidationError):
            self.service.create_tournament("X", "2024-03-01", 3, ["p1", "p2", "p3"])
        with self.assertRaises(ValidationError):
            self.service.create_tournament("X", "2024-03-01", 3, ["p1", "p1", "p2", "p3"])

    def test_create_with_unknown_player(self) -> None:
        with self.assertRaises(NotFoundError):
            self.service.create_tournament(
                "X", "2024-03-01", 3, ["p1", "p2", "p3", "ghost"]
            )
        self.assertEqual(self.service.list_tournaments(), [])

    def test_list_tournaments_by_status(self) -> None:
        first = self.create()
        second = self.create()
        self.service.generate_round(second, 1)

        self.assertEqual(len(self.service.list_tournaments()), 2)
        self.assertEqual(
            [t.id for t in self.service.list_tournaments(STATUS_UPCOMING)], [first]
        )
        self.assertEqual(
            [t.id for t in self.service.list_tournaments(STATUS_ACTIVE)], [second]
        )
        with self.assertRaises(ValidationError):
            self.service.list_tournaments("paused")

    def test_get_missing_tournament(self) -> None:
        with self.assertRaises(NotFoundError):
            self.service.get_tournament("nope")

    # -- full run ---------------------------------------------------------------

    def test_four_player_tournament_runs_to_completion(self) -> None:
        tournament_id = self.create(count=4, rounds=3)
        seen_pairs = set()

        for round_number in (1, 2, 3):
            pairings, outcome = self.play_round(tournament_id)
            self.assertEqual(pairings.round_number, round_number)
            self.assertEqual(len(pairings.pairings), 2)
            for pairing in pairings.pairings:
                pair = frozenset(pairing.player_ids)
                self.assertNotIn(pair, seen_pairs)
                seen_pairs.add(pair)
            self.assertEqual(outcome.games_recorded, 2)

        self.assertEqual(outcome.tournament_status, STATUS_COMPLETED)
        self.assertIsNone(outcome.next_round)

        tournament = self.service.get_tournament(tournament_id)
        self.assertEqual(tournament.status, STATUS_COMPLETED)
        self.assertEqual(tournament.current_round, 3)
        self.assertIsNone(tournament.current_pairings)

        standings = self.service.get_standings(tournament_id)
        self.assertEqual([r.player_id for r in standings], ["p1", "p2", "p3", "p4"])
        self.assertEqual([r.points for r in standings], [3.0, 2.0, 1.0, 0.0])
        self.assertTrue(all(r.games_played == 3 for r in standings))
        self.assertEqual(len(self.store.games), 6)
        self.assertEqual(self.store.games[0]["eventId"], tournament_id)

        with self.assertRaises(InvalidStateError):
            self.service.generate_round(tournament_id, 4)

    def test_round_one_example(self) -> None:
        tournament_id = self.create(count=4)
        pairings = self.service.generate_round(tournament_id, 1)
        first, second = pairings.pairings
        self.service.submit_results(
            tournament_id,
            [
                {"pairingId": first.id, "result": "player1"},
                {"pairingId": second.id, "result": "draw"},
            ],
        )

        rows = self.rows(tournament_id)
        self.assertEqual(rows[first.player1_id].points, 1.0)
        self.assertEqual(rows[first.player2_id].points, 0.0)
        self.assertEqual(rows[second.player1_id].points, 0.5)
        self.assertEqual(rows[second.player2_id].points, 0.5)
        for row in rows.values():
            self.assertEqual(row.games_played, 1)
            self.assertEqual(len(row.opponents_faced), 1)

        tournament = self.service.get_tournament(tournament_id)
        self.assertEqual(tournament.status, STATUS_ACTIVE)
        self.assertEqual(tournament.current_round, 2)

    def test_points_per_round_match_outcomes(self) -> None:
        tournament_id = self.create(count=7, rounds=3)
        before = 0.0
        for result in ("player1", "draw", "player2"):
            pairings, _ = self.play_round(tournament_id, result)
            after = sum(r.points for r in self.rows(tournament_id).values())
            expected = len(pairings.pairings) * 1.0 + len(pairings.forced_byes) * 1.0
            self.assertEqual(after - before, expected)
            before = after

    # -- generation rules ---------------------------------------------------------

    def test_round_number_must_be_round_in_progress(self) -> None:
        tournament_id = self.create(rounds=2)
        with self.assertRaises(ValidationError):
            self.service.generate_round(tournament_id, 2)
        self.play_round(tournament_id)
        with self.assertRaises(ValidationError):
            self.service.generate_round(tournament_id, 1)
        with self.assertRaises(ValidationError):
            self.service.generate_round(tournament_id, 0)

    def test_five_players_forced_bye_awarded_at_generation(self) -> None:
        tournament_id = self.create(count=5)
        pairings = self.service.generate_round(tournament_id, 1)

        self.assertEqual(len(pairings.pairings), 2)
        self.assertEqual(pairings.forced_byes, ["p5"])
        row = self.rows(tournament_id)["p5"]
        self.assertEqual(row.points, 1.0)
        self.assertEqual(row.games_played, 1)

        current = self.service.get_current_round(tournament_id)
        self.assertEqual(current.forced_byes, ["p5"])
        self.assertEqual(current.pairings, pairings.pairings)

    def test_regenerating_a_round_does_not_double_award_forced_bye(self) -> None:
        tournament_id = self.create(count=5)
        first = self.service.generate_round(tournament_id, 1)
        second = self.service.generate_round(tournament_id, 1)

        self.assertEqual(second.forced_byes, first.forced_byes)
        rows = self.rows(tournament_id)
        self.assertEqual(sum(r.points for r in rows.values()), 1.0)
        self.assertEqual(rows["p5"].forced_bye_rounds, [1])
        self.assertNotEqual(
            {p.id for p in first.pairings}, {p.id for p in second.pairings}
        )

    def test_generation_failure_leaves_state_intact(self) -> None:
        tournament_id = self.create(count=4)
        self.service.assign_half_point_byes(tournament_id, 1, ["p1", "p2", "p3", "p4"])
        with self.assertRaises(InsufficientPlayersError):
            self.service.generate_round(tournament_id, 1)

        tournament = self.service.get_tournament(tournament_id)
        self.assertEqual(tournament.status, STATUS_UPCOMING)
        self.assertIsNone(tournament.current_pairings)

    # -- results ----------------------------------------------------------------

    def test_invalid_submission_changes_nothing(self) -> None:
        tournament_id = self.create(count=4)
        pairings = self.service.generate_round(tournament_id, 1)
        version = self.service.get_tournament(tournament_id).version

        with self.assertRaises(UnknownPairingError):
            self.service.submit_results(
                tournament_id,
                [
                    {"pairingId": pairings.pairings[0].id, "result": "player1"},
                    {"pairingId": "bogus", "result": "draw"},
                ],
            )
        with self.assertRaises(ValidationError):
            self.service.submit_results(
                tournament_id,
                [{"pairingId": pairings.pairings[0].id, "result": "player1"}],
            )

        tournament = self.service.get_tournament(tournament_id)
        self.assertEqual(tournament.version, version)
        self.assertEqual(tournament.current_pairings, pairings.pairings)
        self.assertTrue(all(r.points == 0 for r in self.rows(tournament_id).values()))
        self.assertEqual(self.store.games, [])

    def test_submit_without_generated_round(self) -> None:
        tournament_id = self.create(count=4)
        with self.assertRaises(InvalidStateError):
            self.service.submit_results(tournament_id, [])

    # -- half-point byes ---------------------------------------------------------

    def test_half_point_bye_for_round_two(self) -> None:
        tournament_id = self.create(count=5)
        self.play_round(tournament_id)
        points_before = self.rows(tournament_id)["p3"].points
        games_before = self.rows(tournament_id)["p3"].games_played

        self.assertEqual(self.service.assign_half_point_byes(tournament_id, 2, ["p3"]), 1)
        pairings = self.service.generate_round(tournament_id, 2)

        paired = {pid for p in pairings.pairings for pid in p.player_ids}
        self.assertNotIn("p3", paired)
        self.assertNotIn("p3", pairings.forced_byes)
        self.assertEqual(pairings.half_point_byes, ["p3"])
        row = self.rows(tournament_id)["p3"]
        self.assertEqual(row.points, points_before + 0.5)
        self.assertIn(2, row.bye_rounds)
        self.assertEqual(row.games_played, games_before)

        listed = self.service.list_half_point_byes(tournament_id, 2)
        self.assertEqual([r.player_id for r in listed], ["p3"])

    def test_half_point_bye_rules(self) -> None:
        tournament_id = self.create(count=4)
        with self.assertRaises(ValidationError):
            self.service.assign_half_point_byes(tournament_id, 2, ["p1"])
        with self.assertRaises(NotFoundError):
            self.service.assign_half_point_byes(tournament_id, 1, ["p7"])

        self.service.assign_half_point_byes(tournament_id, 1, ["p1"])
        with self.assertRaises(ValidationError):
            self.service.assign_half_point_byes(tournament_id, 1, ["p1"])

        self.service.generate_round(tournament_id, 1)
        with self.assertRaises(InvalidStateError):
            self.service.assign_half_point_byes(tournament_id, 1, ["p2"])

    # -- roster changes ------------------------------------------------------------

    def test_player_overview(self) -> None:
        tournament_id = self.create(count=5)
        self.service.remove_players(tournament_id, ["p2"])

        overview = self.service.get_player_overview(tournament_id)

        self.assertEqual(overview["tournament"].id, tournament_id)
        current = overview["current_players"]
        self.assertEqual([r.player_id for r in current], ["p1", "p2", "p3", "p4", "p5"])
        self.assertTrue(current[1].withdrawn)
        self.assertEqual(current[1].withdrawn_at, NOW)
        self.assertEqual(
            [m.id for m in overview["available_players"]], ["p6", "p7", "p8"]
        )

    def test_player_overview_of_missing_tournament(self) -> None:
        with self.assertRaises(NotFoundError):
            self.service.get_player_overview("nope")

    def test_remove_player_withdraws_and_clears_round(self) -> None:
        tournament_id = self.create(count=5)
        self.service.generate_round(tournament_id, 1)
        self.service.remove_players(tournament_id, ["p2"])

        tournament = self.service.get_tournament(tournament_id)
        self.assertNotIn("p2", tournament.player_ids)
        self.assertIsNone(tournament.current_pairings)
        self.assertIsNone(tournament.current_forced_byes)
        row = self.rows(tournament_id)["p2"]
        self.assertTrue(row.withdrawn)
        self.assertEqual(row.withdrawn_at, NOW)

        standings = self.service.get_standings(tournament_id)
        self.assertNotIn("p2", [r.player_id for r in standings])
        everyone = self.service.get_standings(tournament_id, include_withdrawn=True)
        self.assertIn("p2", [r.player_id for r in everyone])

        # Four players left: the forced bye from the cleared pairing is taken back
        pairings = self.service.generate_round(tournament_id, 1)
        self.assertEqual(pairings.forced_byes, [])
        self.assertEqual(sum(r.points for r in self.rows(tournament_id).values()), 0.0)

    def test_remove_player_completely(self) -> None:
        tournament_id = self.create(count=5)
        self.service.remove_players(tournament_id, ["p5"], remove_completely=True)
        self.assertNotIn("p5", self.rows(tournament_id))
        with self.assertRaises(NotFoundError):
            self.service.remove_players(tournament_id, ["p5"])

    def test_add_late_player_with_byes(self) -> None:
        tournament_id = self.create(count=4)
        self.play_round(tournament_id)
        self.service.add_players(tournament_id, ["p6"], bye_rounds=[1])

        row = self.rows(tournament_id)["p6"]
        self.assertEqual(row.points, 0.5)
        self.assertEqual(row.bye_rounds, [1])
        self.assertEqual(row.games_played, 0)
        self.assertIn("p6", self.service.get_tournament(tournament_id).player_ids)

        with self.assertRaises(ValidationError):
            self.service.add_players(tournament_id, ["p6"])
        with self.assertRaises(ValidationError):
            self.service.add_players(tournament_id, ["p7"], bye_rounds=[3])
        with self.assertRaises(NotFoundError):
            self.service.add_players(tournament_id, ["ghost"])

    def test_withdrawn_player_is_reinstated(self) -> None:
        tournament_id = self.create(count=4)
        self.play_round(tournament_id)
        points = self.rows(tournament_id)["p1"].points
        self.service.remove_players(tournament_id, ["p1"])
        self.service.add_players(tournament_id, ["p1"])

        row = self.rows(tournament_id)["p1"]
        self.assertFalse(row.withdrawn)
        self.assertIsNone(row.withdrawn_at)
        self.assertEqual(row.points, points)

    def test_roster_changes_rejected_when_completed(self) -> None:
        tournament_id = self.create(count=4, rounds=1)
        self.play_round(tournament_id)
        with self.assertRaises(InvalidStateError):
            self.service.add_players(tournament_id, ["p5"])
        with self.assertRaises(InvalidStateError):
            self.service.remove_players(tournament_id, ["p1"])

    # -- editing, cancelling, deleting -------------------------------------------

    def test_update_tournament(self) -> None:
        tournament_id = self.create(rounds=3)
        self.play_round(tournament_id)
        updated = self.service.update_tournament(
            tournament_id, {"name": "Autumn Swiss", "total_rounds": 5}
        )
        self.assertEqual(updated.name, "Autumn Swiss")
        self.assertEqual(updated.total_rounds, 5)

        with self.assertRaises(ValidationError):
            self.service.update_tournament(tournament_id, {"total_rounds": 1})
        with self.assertRaises(ValidationError):
            self.service.update_tournament(tournament_id, {"status": "completed"})

    def test_cancel_and_delete(self) -> None:
        tournament_id = self.create()
        self.service.generate_round(tournament_id, 1)
        with self.assertRaises(InvalidStateError):
            self.service.delete_tournament(tournament_id)

        cancelled = self.service.cancel_tournament(tournament_id)
        self.assertEqual(cancelled.status, STATUS_CANCELLED)
        self.assertIsNone(cancelled.current_pairings)
        with self.assertRaises(InvalidStateError):
            self.service.cancel_tournament(tournament_id)
        with self.assertRaises(InvalidStateError):
            self.service.generate_round(tournament_id, 1)

        self.service.delete_tournament(tournament_id)
        with self.assertRaises(NotFoundError):
            self.service.get_tournament(tournament_id)
        self.assertEqual(self.store.get_results(tournament_id), [])

    # -- concurrency and caching ---------------------------------------------------

    def test_stale_save_is_rejected(self) -> None:
        tournament_id = self.create()
        stale = self.store.get_tournament(tournament_id)
        self.service.update_tournament(tournament_id, {"name": "Renamed"})

        with self.assertRaises(ConcurrentModificationError) as cm:
            self.store.commit(stale, stale.version)
        self.assertTrue(cm.exception.retryable)
        self.assertEqual(cm.exception.status_code, 409)

    def test_failed_commit_can_be_resubmitted(self) -> None:
        tournament_id = self.create(count=4)
        pairings = self.service.generate_round(tournament_id, 1)
        submission = [{"pairingId": p.id, "result": "player1"} for p in pairings.pairings]

        with patch.object(
            self.store,
            "commit",
            side_effect=BackendUnavailableError("Firestore quota exceeded."),
        ):
            with self.assertRaises(BackendUnavailableError):
                self.service.submit_results(tournament_id, submission)

        tournament = self.service.get_tournament(tournament_id)
        self.assertEqual(tournament.current_pairings, pairings.pairings)
        self.assertTrue(all(r.points == 0 for r in self.rows(tournament_id).values()))
        self.assertEqual(self.store.games, [])

        outcome = self.service.submit_results(tournament_id, submission)
        self.assertEqual(outcome.games_recorded, 2)
        self.assertEqual(sum(r.points for r in self.rows(tournament_id).values()), 2.0)
        self.assertEqual(len(self.store.games), 2)

    def test_losing_a_race_writes_nothing(self) -> None:
        tournament_id = self.create(count=4)
        pairings = self.service.generate_round(tournament_id, 1)
        real_get_results = self.store.get_results

        def rename_then_read(tid):
            rival = self.store.get_tournament(tid)
            rival.name = "Renamed elsewhere"
            self.store.commit(rival, rival.version)
            return real_get_results(tid)

        with patch.object(self.store, "get_results", side_effect=rename_then_read):
            with self.assertRaises(ConcurrentModificationError):
                self.service.submit_results(
                    tournament_id,
                    [{"pairingId": p.id, "result": "draw"} for p in pairings.pairings],
                )

        tournament = self.service.get_tournament(tournament_id)
        self.assertEqual(tournament.name, "Renamed elsewhere")
        self.assertEqual(tournament.current_pairings, pairings.pairings)
        self.assertTrue(all(r.points == 0 for r in self.rows(tournament_id).values()))
        self.assertTrue(all(r.games_played == 0 for r in self.rows(tournament_id).values()))
        self.assertEqual(self.store.games, [])

    def test_delete_releases_the_tournament_lock(self) -> None:
        tournament_id = self.create()
        self.service.update_tournament(tournament_id, {"name": "Renamed"})
        self.assertIn(tournament_id, self.service._locks)

        self.service.delete_tournament(tournament_id)
        self.assertNotIn(tournament_id, self.service._locks)

    def test_standings_are_cached_until_a_write(self) -> None:
        tournament_id = self.create(count=4)
        self.service.get_standings(tournament_id)

        with patch.object(
            self.store, "get_results", wraps=self.store.get_results
        ) as get_results:
            self.service.get_standings(tournament_id)
            get_results.assert_not_called()

            self.play_round(tournament_id)
            get_results.reset_mock()
            standings = self.service.get_standings(tournament_id)
            get_results.assert_called_once_with(tournament_id)

        self.assertEqual(sum(r.points for r in standings), 2.0)

    def test_cache_disabled(self) -> None:
        service = TournamentService(self.store, StandingsCache(ttl=0), clock=lambda: NOW)
        tournament_id = self.create()
        with patch.object(
            self.store, "get_results", wraps=self.store.get_results
        ) as get_results:
            service.get_standings(tournament_id)
            service.get_standings(tournament_id)
            self.assertEqual(get_results.call_count, 2)


class StandingsCacheTestCase(unittest.TestCase):
    def test_entries_expire(self) -> None:
        now = [100.0]
        cache = StandingsCache(ttl=30, clock=lambda: now[0])
        cache.set("t1", [])
        self.assertEqual(cache.get("t1"), [])
        now[0] = 130.0
        self.assertIsNone(cache.get("t1"))

    def test_invalidate(self) -> None:
        cache = StandingsCache(ttl=30)
        cache.set("t1", [])
        cache.invalidate("t1")
        self.assertIsNone(cache.get("t1"))


if __name__ == "__main__":
    unittest.main()
