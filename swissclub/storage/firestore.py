"""Firestore storage adapter."""

from __future__ import annotations

import functools
import logging
import uuid
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

from swissclub.core.constants import (
    FIRESTORE_BATCH_LIMIT,
    GAMES_COLLECTION,
    MEMBERS_COLLECTION,
    RESULTS_COLLECTION,
    TOURNAMENTS_COLLECTION,
)
from swissclub.errors import (
    BackendUnavailableError,
    ConcurrentModificationError,
    ValidationError,
)
from swissclub.tournament.models import Player, Tournament, TournamentResult
from swissclub.utils import display_name

from .base import TournamentStore

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.collection import CollectionReference

    from swissclub.tournament.models import Game

logger = logging.getLogger(__name__)

# Errors that mean "try again later" rather than "no such record".
UNAVAILABLE_ERRORS = (
    google_exceptions.DeadlineExceeded,
    google_exceptions.ResourceExhausted,
    google_exceptions.ServiceUnavailable,
    google_exceptions.RetryError,
)


def backend_call(func):
    """Translate timeouts and quota errors into BackendUnavailableError."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except UNAVAILABLE_ERRORS as e:
            logger.error(f"Firestore unavailable in {func.__name__}: {e}")
            raise BackendUnavailableError(
                "The tournament database is busy or unreachable. "
                "Please try again in a few minutes."
            ) from e

    return wrapper


class FirestoreStore(TournamentStore):
    """Stores tournaments in Firestore.

    Layout::

        tournaments/{tournamentId}
        tournamentResults/{tournamentId}_{playerId}   (field tournamentId)
        games/{gameId}
        members/{playerId}
    """

    def __init__(self, db: Client | None = None, timeout: float | None = None) -> None:
        self.db = db if db is not None else firestore.client()
        self.timeout = timeout

    @property
    def _opts(self) -> dict[str, Any]:
        return {"timeout": self.timeout} if self.timeout else {}

    def _tournaments(self) -> CollectionReference:
        return self.db.collection(TOURNAMENTS_COLLECTION)

    def _result_ref(self, tournament_id: str, player_id: str) -> Any:
        return self.db.collection(RESULTS_COLLECTION).document(
            f"{tournament_id}_{player_id}"
        )

    def _result_docs(self, tournament_id: str) -> Any:
        return (
            self.db.collection(RESULTS_COLLECTION)
            .where(filter=firestore.FieldFilter("tournamentId", "==", tournament_id))
            .stream(**self._opts)
        )

    @backend_call
    def get_tournament(self, tournament_id: str) -> Tournament | None:
        doc = cast(Any, self._tournaments().document(tournament_id).get(**self._opts))
        if not doc.exists:
            return None
        data = doc.to_dict() or {}
        data["id"] = doc.id
        return Tournament.from_dict(data)

    @backend_call
    def list_tournaments(self, status: str | None = None) -> list[Tournament]:
        query: Any = self._tournaments()
        if status is not None:
            query = query.where(filter=firestore.FieldFilter("status", "==", status))
        tournaments = []
        for doc in query.stream(**self._opts):
            data = doc.to_dict()
            if data:
                data["id"] = doc.id
                tournaments.append(Tournament.from_dict(data))
        return tournaments

    def _commit_batch(self, writes: list[tuple[Any, dict[str, Any] | None]]) -> None:
        """Apply ``writes`` in one batch so they land together or not at all."""
        if len(writes) > FIRESTORE_BATCH_LIMIT:
            raise ValidationError(
                f"Tournament update needs {len(writes)} writes; "
                f"Firestore allows {FIRESTORE_BATCH_LIMIT} per batch."
            )
        batch = self.db.batch()
        for ref, data in writes:
            if data is None:
                batch.delete(ref)
            else:
                batch.set(ref, data)
        batch.commit(**self._opts)

    def _result_writes(
        self, tournament_id: str, results: Sequence[TournamentResult]
    ) -> list[tuple[Any, dict[str, Any] | None]]:
        keep = {r.player_id for r in results}
        stale = [
            data["playerId"]
            for data in (doc.to_dict() or {} for doc in self._result_docs(tournament_id))
            if data.get("playerId") and data["playerId"] not in keep
        ]
        writes: list[tuple[Any, dict[str, Any] | None]] = [
            (
                self._result_ref(tournament_id, r.player_id),
                {**r.to_dict(), "tournamentId": tournament_id},
            )
            for r in results
        ]
        writes.extend((self._result_ref(tournament_id, pid), None) for pid in stale)
        return writes

    @backend_call
    def create_tournament(
        self, tournament: Tournament, results: Sequence[TournamentResult]
    ) -> Tournament:
        if not tournament.id:
            tournament.id = uuid.uuid4().hex
        tournament.version = 1
        writes: list[tuple[Any, dict[str, Any] | None]] = [
            (self._tournaments().document(tournament.id), dict(tournament.to_dict()))
        ]
        writes.extend(self._result_writes(tournament.id, results))
        self._commit_batch(writes)
        return tournament

    @backend_call
    def commit(
        self,
        tournament: Tournament,
        expected_version: int,
        results: Sequence[TournamentResult] | None = None,
        games: Sequence[Game] = (),
    ) -> list[str]:
        ref = self._tournaments().document(tournament.id)
        doc = cast(Any, ref.get(**self._opts))
        current = int((doc.to_dict() or {}).get("version") or 0) if doc.exists else 0
        if current != expected_version:
            raise ConcurrentModificationError(
                f"Tournament {tournament.id} is at version {current}, "
                f"expected {expected_version}."
            )

        data = {**tournament.to_dict(), "version": expected_version + 1}
        writes: list[tuple[Any, dict[str, Any] | None]] = [(ref, data)]
        if results is not None:
            writes.extend(self._result_writes(tournament.id, results))
        game_refs = [self.db.collection(GAMES_COLLECTION).document() for _ in games]
        writes.extend(
            (game_ref, game.to_dict()) for game_ref, game in zip(game_refs, games)
        )
        self._commit_batch(writes)

        tournament.version = expected_version + 1
        return [str(game_ref.id) for game_ref in game_refs]

    @backend_call
    def delete_tournament(self, tournament_id: str) -> None:
        writes: list[tuple[Any, dict[str, Any] | None]] = [
            (doc.reference, None) for doc in self._result_docs(tournament_id)
        ]
        writes.append((self._tournaments().document(tournament_id), None))
        self._commit_batch(writes)

    @backend_call
    def get_results(self, tournament_id: str) -> list[TournamentResult]:
        rows = []
        for doc in self._result_docs(tournament_id):
            data = doc.to_dict()
            if data and data.get("playerId"):
                rows.append(TournamentResult.from_dict(data))
        return rows

    @backend_call
    def get_players(self, player_ids: list[str]) -> dict[str, Player]:
        members = self.db.collection(MEMBERS_COLLECTION)
        players = {}
        for player_id in player_ids:
            doc = cast(Any, members.document(player_id).get(**self._opts))
            if not doc.exists:
                continue
            data = doc.to_dict() or {}
            players[doc.id] = Player(
                id=doc.id, name=display_name(data), grade=data.get("grade")
            )
        return players

    @backend_call
    def list_members(self) -> list[Player]:
        members = []
        for doc in self.db.collection(MEMBERS_COLLECTION).stream(**self._opts):
            data = doc.to_dict()
            if data:
                members.append(
                    Player(id=doc.id, name=display_name(data), grade=data.get("grade"))
                )
        return members
