"""Data models for the tournament blueprint."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Optional

from swissclub.core.constants import (
    GAME_TYPE_TOURNAMENT,
    RESULT_DRAW,
    RESULT_HALF_BYE_P1,
    RESULT_HALF_BYE_P2,
    RESULT_PLAYER1,
    RESULT_PLAYER2,
    STATUS_ACTIVE,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_UPCOMING,
)
from swissclub.core.types import ResultDocument, TournamentDocument
from swissclub.errors import InvalidResultError, ValidationError

TOURNAMENT_STATUSES = (
    STATUS_UPCOMING,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
)
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CANCELLED})

VALID_RESULTS = (
    RESULT_PLAYER1,
    RESULT_PLAYER2,
    RESULT_DRAW,
    RESULT_HALF_BYE_P1,
    RESULT_HALF_BYE_P2,
)
BYE_RESULTS = frozenset({RESULT_HALF_BYE_P1, RESULT_HALF_BYE_P2})


@dataclass
class Player:
    """A club member as seen by the roster."""

    id: str
    name: str
    grade: Optional[str] = None


@dataclass(frozen=True)
class Pairing:
    """Two players paired against each other for one round."""

    id: str
    round: int
    player1_id: str
    player2_id: str
    player1_name: str = ""
    player2_name: str = ""
    created_at: Optional[str] = None

    @property
    def player_ids(self) -> tuple[str, str]:
        return (self.player1_id, self.player2_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "round": self.round,
            "player1Id": self.player1_id,
            "player1Name": self.player1_name,
            "player2Id": self.player2_id,
            "player2Name": self.player2_name,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Pairing:
        return cls(
            id=data["id"],
            round=int(data.get("round", 0)),
            player1_id=data["player1Id"],
            player2_id=data["player2Id"],
            player1_name=data.get("player1Name", ""),
            player2_name=data.get("player2Name", ""),
            created_at=data.get("createdAt"),
        )


@dataclass
class PairingResult:
    """A submitted outcome for a single pairing."""

    pairing_id: str
    result: str

    def validate(self) -> None:
        """Validate the submission values."""
        if not self.pairing_id:
            raise ValidationError("Each result must have a pairingId.")
        if self.result not in VALID_RESULTS:
            raise InvalidResultError(
                f"Invalid result: {self.result}. "
                f"Must be one of: {', '.join(VALID_RESULTS)}"
            )

    @property
    def is_bye(self) -> bool:
        return self.result in BYE_RESULTS

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PairingResult:
        if not isinstance(data, dict):
            raise ValidationError("Each result must be an object.")
        return cls(
            pairing_id=str(data.get("pairingId") or data.get("pairing_id") or ""),
            result=str(data.get("result") or ""),
        )


@dataclass
class TournamentResult:
    """Cumulative standing of one player in one tournament."""

    player_id: str
    player_name: str
    points: float = 0.0
    games_played: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    opponents_faced: list[str] = field(default_factory=list)
    bye_rounds: list[int] = field(default_factory=list)
    forced_bye_rounds: list[int] = field(default_factory=list)
    withdrawn: bool = False
    withdrawn_at: Optional[str] = None
    last_updated: Optional[str] = None

    # Derived on every read; never stored as authoritative.
    buchholz_score: float = 0.0
    rank: int = 0

    def copy(self) -> TournamentResult:
        """Return a copy whose lists can be mutated independently."""
        return replace(
            self,
            opponents_faced=list(self.opponents_faced),
            bye_rounds=list(self.bye_rounds),
            forced_bye_rounds=list(self.forced_bye_rounds),
        )

    def has_played(self, player_id: str) -> bool:
        return player_id in self.opponents_faced

    def to_dict(self, derived: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "playerId": self.player_id,
            "playerName": self.player_name,
            "points": self.points,
            "gamesPlayed": self.games_played,
            "wins": self.wins,
            "losses": self.losses,
            "draws": self.draws,
            "opponentsFaced": list(self.opponents_faced),
            "byeRounds": list(self.bye_rounds),
            "forcedByeRounds": list(self.forced_bye_rounds),
            "withdrawn": self.withdrawn,
            "withdrawnAt": self.withdrawn_at,
            "lastUpdated": self.last_updated,
        }
        if derived:
            data["buchholzScore"] = self.buchholz_score
            data["rank"] = self.rank
        return data

    @classmethod
    def from_dict(cls, data: ResultDocument | dict[str, Any]) -> TournamentResult:
        return cls(
            player_id=data["playerId"],
            player_name=data.get("playerName") or "Unknown Player",
            points=float(data.get("points") or 0),
            games_played=int(data.get("gamesPlayed") or 0),
            wins=int(data.get("wins") or 0),
            losses=int(data.get("losses") or 0),
            draws=int(data.get("draws") or 0),
            opponents_faced=list(data.get("opponentsFaced") or []),
            bye_rounds=[int(r) for r in data.get("byeRounds") or []],
            forced_bye_rounds=[int(r) for r in data.get("forcedByeRounds") or []],
            withdrawn=bool(data.get("withdrawn", False)),
            withdrawn_at=data.get("withdrawnAt"),
            last_updated=data.get("lastUpdated"),
        )


@dataclass
class Tournament:
    """A Swiss tournament and its round-scoped state."""

    id: str
    name: str
    start_date: str
    total_rounds: int
    player_ids: list[str] = field(default_factory=list)
    description: str = ""
    current_round: int = 0
    status: str = STATUS_UPCOMING
    current_pairings: Optional[list[Pairing]] = None
    current_forced_byes: Optional[list[str]] = None
    current_half_point_byes: Optional[list[str]] = None
    version: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def round_in_progress(self) -> int:
        """The round that pairings or byes would currently apply to."""
        return max(self.current_round, 1)

    @property
    def has_generated_round(self) -> bool:
        return self.current_pairings is not None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def clear_round(self) -> None:
        """Drop the round-scoped fields together."""
        self.current_pairings = None
        self.current_forced_byes = None
        self.current_half_point_byes = None

    def copy(self) -> Tournament:
        return replace(
            self,
            player_ids=list(self.player_ids),
            current_pairings=(
                list(self.current_pairings)
                if self.current_pairings is not None
                else None
            ),
            current_forced_byes=(
                list(self.current_forced_byes)
                if self.current_forced_byes is not None
                else None
            ),
            current_half_point_byes=(
                list(self.current_half_point_byes)
                if self.current_half_point_byes is not None
                else None
            ),
        )

    def to_dict(self) -> TournamentDocument:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "startDate": self.start_date,
            "totalRounds": self.total_rounds,
            "currentRound": self.current_round,
            "status": self.status,
            "playerIds": list(self.player_ids),
            "currentPairings": (
                [p.to_dict() for p in self.current_pairings]
                if self.current_pairings is not None
                else None
            ),
            "currentForcedByes": (
                list(self.current_forced_byes)
                if self.current_forced_byes is not None
                else None
            ),
            "currentHalfPointByes": (
                list(self.current_half_point_byes)
                if self.current_half_point_byes is not None
                else None
            ),
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: TournamentDocument | dict[str, Any]) -> Tournament:
        pairings = data.get("currentPairings")
        forced = data.get("currentForcedByes")
        half = data.get("currentHalfPointByes")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            description=data.get("description") or "",
            start_date=str(data.get("startDate") or ""),
            total_rounds=int(data.get("totalRounds") or 1),
            current_round=int(data.get("currentRound") or 0),
            status=data.get("status") or STATUS_UPCOMING,
            player_ids=list(data.get("playerIds") or []),
            current_pairings=(
                [Pairing.from_dict(p) for p in pairings] if pairings is not None else None
            ),
            current_forced_byes=list(forced) if forced is not None else None,
            current_half_point_byes=list(half) if half is not None else None,
            version=int(data.get("version") or 0),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass
class Game:
    """A permanent game record produced by a non-bye tournament result."""

    player1_id: str
    player1_name: str
    player2_id: str
    player2_name: str
    result: str
    event_id: str
    round: int
    recorded_at: str
    recorded_by: str = "admin"
    game_type: str = GAME_TYPE_TOURNAMENT

    @property
    def notes(self) -> str:
        return f"Tournament game - Round {self.round}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "player1Id": self.player1_id,
            "player1Name": self.player1_name,
            "player2Id": self.player2_id,
            "player2Name": self.player2_name,
            "result": self.result,
            "gameDate": self.recorded_at[:10],
            "gameType": self.game_type,
            "eventId": self.event_id,
            "round": self.round,
            "notes": self.notes,
            "recordedBy": self.recorded_by,
            "recordedAt": self.recorded_at,
        }


@dataclass
class RoundPairings:
    """Output of pairing generation for one round."""

    round_number: int
    pairings: list[Pairing]
    forced_byes: list[str]
    half_point_byes: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "roundNumber": self.round_number,
            "pairings": [p.to_dict() for p in self.pairings],
            "forcedByes": list(self.forced_byes),
            "halfPointByes": list(self.half_point_byes),
        }


@dataclass
class RoundOutcome:
    """Tournament position after a round's results were applied."""

    tournament_status: str
    next_round: Optional[int]
    games_recorded: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "tournamentStatus": self.tournament_status,
            "nextRound": self.next_round,
            "gamesRecorded": self.games_recorded,
        }
