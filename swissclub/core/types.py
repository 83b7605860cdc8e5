"""Core data types for the swissclub application."""

from typing import Any, Dict, List, Optional, TypedDict  # noqa: UP035


class _FirestoreDocumentBase(TypedDict):
    id: str
    created_at: Any


class FirestoreDocument(_FirestoreDocumentBase, total=False):
    """Generic Firestore document structure."""

    path: str
    updated_at: Any


class TournamentDocument(FirestoreDocument, total=False):
    """A tournament document as stored in Firestore."""

    name: str
    description: str
    startDate: str
    totalRounds: int
    currentRound: int
    status: str
    playerIds: List[str]  # noqa: UP006
    currentPairings: Optional[List[Dict[str, Any]]]  # noqa: UP006
    currentForcedByes: Optional[List[str]]  # noqa: UP006
    currentHalfPointByes: Optional[List[str]]  # noqa: UP006
    version: int


class ResultDocument(TypedDict, total=False):
    """A per-player standings document in the tournamentResults collection."""

    tournamentId: str
    playerId: str
    playerName: str
    points: float
    gamesPlayed: int
    wins: int
    losses: int
    draws: int
    opponentsFaced: List[str]  # noqa: UP006
    byeRounds: List[int]  # noqa: UP006
    forcedByeRounds: List[int]  # noqa: UP006
    withdrawn: bool
    withdrawnAt: Optional[str]
    lastUpdated: Optional[str]
