"""Common utilities for tests."""

import unittest.mock
from typing import Any, Optional

from mockfirestore import CollectionReference, Query

from swissclub.storage import MemoryStore
from swissclub.tournament.models import Player, TournamentResult


class MockFieldFilter:
    def __init__(self, field_path: str, op_string: str, value: Any) -> None:
        self.field_path = field_path
        self.op_string = op_string
        self.value = value


def patch_mockfirestore() -> None:
    """Apply monkeypatches to mockfirestore to support FieldFilter."""

    def collection_where(
        self: Any,
        field_path: Optional[str] = None,
        op_string: Optional[str] = None,
        value: Any = None,
        filter: Any = None,
    ) -> Any:
        if filter:
            return self._where(filter.field_path, filter.op_string, filter.value)
        return self._where(field_path, op_string, value)

    if not hasattr(CollectionReference, "_where"):
        CollectionReference._where = CollectionReference.where
        CollectionReference.where = collection_where

    def query_where(
        self: Any,
        field_path: Optional[str] = None,
        op_string: Optional[str] = None,
        value: Any = None,
        filter: Any = None,
    ) -> Any:
        if filter:
            return self._where(filter.field_path, filter.op_string, filter.value)
        return self._where(field_path, op_string, value)

    if not hasattr(Query, "_where"):
        Query._where = Query.where
        Query.where = query_where


class MockBatch:
    def __init__(self, db: Any) -> None:
        self.db = db
        self.writes: list[tuple[Any, Any]] = []
        self.commit = unittest.mock.MagicMock(side_effect=self._real_commit)

    def set(self, ref: Any, data: Any, merge: bool = False) -> None:
        self.writes.append((ref, data))

    def delete(self, ref: Any) -> None:
        self.writes.append((ref, "DELETE"))

    def _real_commit(self, **kwargs: Any) -> None:
        for ref, data in self.writes:
            if data == "DELETE":
                ref.delete()
            else:
                ref.set(data)
        self.writes = []


def make_players(count: int) -> list[Player]:
    """Club members p1..pN named Player 01..Player NN."""
    return [Player(id=f"p{i}", name=f"Player {i:02d}") for i in range(1, count + 1)]


def make_store(count: int) -> MemoryStore:
    return MemoryStore(players=make_players(count))


def make_row(player_id: str, points: float = 0.0, **kwargs: Any) -> TournamentResult:
    """A standings row whose name sorts the same way as its id."""
    name = kwargs.pop("player_name", f"Player {player_id}")
    return TournamentResult(
        player_id=player_id, player_name=name, points=points, **kwargs
    )
