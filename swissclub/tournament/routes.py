"""Routes for the tournament blueprint."""

from __future__ import annotations

from typing import Any

from flask import current_app, jsonify, request

from swissclub.errors import ValidationError
from swissclub.extensions import get_service

from . import bp

# JSON field name -> service keyword for editable tournament fields.
UPDATE_FIELDS = {
    "name": "name",
    "description": "description",
    "startDate": "start_date",
    "totalRounds": "total_rounds",
}


def _json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def _flag(name: str) -> bool:
    return request.args.get(name, "").lower() in ["true", "1", "t"]


def _round_arg() -> int:
    value = request.args.get("round", "")
    if not value.isdigit():
        raise ValidationError("Query parameter 'round' must be a positive integer.")
    return int(value)


@bp.route("", methods=["GET"])
def list_tournaments() -> Any:
    """List tournaments, optionally filtered by ``?status=``."""
    status = request.args.get("status") or None
    tournaments = get_service().list_tournaments(status)
    return jsonify({"tournaments": [t.to_dict() for t in tournaments]})


@bp.route("", methods=["POST"])
def create_tournament() -> Any:
    """Create a new tournament."""
    data = _json_body()
    tournament = get_service().create_tournament(
        name=data.get("name", ""),
        start_date=data.get("startDate"),
        total_rounds=data.get("totalRounds"),
        player_ids=data.get("playerIds"),
        description=data.get("description", ""),
    )
    current_app.logger.info(f"Tournament {tournament.id} created.")
    return jsonify(tournament.to_dict()), 201


@bp.route("/<string:tournament_id>", methods=["GET"])
def view_tournament(tournament_id: str) -> Any:
    """View a single tournament."""
    return jsonify(get_service().get_tournament(tournament_id).to_dict())


@bp.route("/<string:tournament_id>", methods=["PATCH"])
def update_tournament(tournament_id: str) -> Any:
    """Edit a tournament's details."""
    data = _json_body()
    unknown = sorted(set(data) - set(UPDATE_FIELDS))
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}")
    updates = {UPDATE_FIELDS[key]: value for key, value in data.items()}
    tournament = get_service().update_tournament(tournament_id, updates)
    return jsonify(tournament.to_dict())


@bp.route("/<string:tournament_id>", methods=["DELETE"])
def delete_tournament(tournament_id: str) -> Any:
    """Delete a tournament that is not in progress."""
    get_service().delete_tournament(tournament_id)
    current_app.logger.info(f"Tournament {tournament_id} deleted.")
    return jsonify({"status": "success"})


@bp.route("/<string:tournament_id>/cancel", methods=["POST"])
def cancel_tournament(tournament_id: str) -> Any:
    tournament = get_service().cancel_tournament(tournament_id)
    return jsonify(tournament.to_dict())


@bp.route("/<string:tournament_id>/players", methods=["POST"])
def add_players(tournament_id: str) -> Any:
    """Add players, with optional half-point byes for rounds they missed."""
    data = _json_body()
    added = get_service().add_players(
        tournament_id,
        data.get("playerIds"),
        bye_rounds=data.get("byeRounds") or (),
    )
    return jsonify({"added": added})


@bp.route("/<string:tournament_id>/players", methods=["DELETE"])
def remove_players(tournament_id: str) -> Any:
    """Withdraw players, or delete them outright with ``?removeCompletely=true``."""
    data = _json_body()
    removed = get_service().remove_players(
        tournament_id,
        data.get("playerIds"),
        remove_completely=_flag("removeCompletely"),
    )
    return jsonify({"removed": removed})


@bp.route("/<string:tournament_id>/rounds", methods=["POST"])
def generate_round(tournament_id: str) -> Any:
    """Generate pairings for the round in progress."""
    data = _json_body()
    round_pairings = get_service().generate_round(
        tournament_id, data.get("roundNumber")
    )
    current_app.logger.info(
        f"Round {round_pairings.round_number} generated for {tournament_id}: "
        f"{len(round_pairings.pairings)} pairings, "
        f"forced byes {round_pairings.forced_byes}."
    )
    return jsonify(round_pairings.to_dict()), 201


@bp.route("/<string:tournament_id>/rounds/current", methods=["GET"])
def current_round(tournament_id: str) -> Any:
    round_pairings = get_service().get_current_round(tournament_id)
    if round_pairings is None:
        return jsonify({"round": None})
    return jsonify({"round": round_pairings.to_dict()})


@bp.route("/<string:tournament_id>/pairings", methods=["POST"])
def submit_results(tournament_id: str) -> Any:
    """Submit the results of every pairing in the current round."""
    data = _json_body()
    results = data.get("results")
    if not isinstance(results, list):
        raise ValidationError("Invalid round results data.")
    outcome = get_service().submit_results(tournament_id, results)
    return jsonify(outcome.to_dict())


@bp.route("/<string:tournament_id>/standings", methods=["GET"])
def standings(tournament_id: str) -> Any:
    """Ranked standings; withdrawn players only with ``?includeWithdrawn=true``."""
    rows = get_service().get_standings(
        tournament_id, include_withdrawn=_flag("includeWithdrawn")
    )
    return jsonify({"standings": [r.to_dict(derived=True) for r in rows]})


@bp.route("/<string:tournament_id>/half-point-byes", methods=["POST"])
def assign_half_point_byes(tournament_id: str) -> Any:
    data = _json_body()
    count = get_service().assign_half_point_byes(
        tournament_id, data.get("roundNumber"), data.get("playerIds")
    )
    return jsonify({"assigned": count})


@bp.route("/<string:tournament_id>/half-point-byes", methods=["GET"])
def list_half_point_byes(tournament_id: str) -> Any:
    rows = get_service().list_half_point_byes(tournament_id, _round_arg())
    return jsonify({"players": [r.to_dict(derived=True) for r in rows]})


@bp.route("/<string:tournament_id>/players", methods=["GET"])
def list_players(tournament_id: str) -> Any:
    """Players in the tournament and club members who are not."""
    overview = get_service().get_player_overview(tournament_id)
    tournament = overview["tournament"]
    return jsonify(
        {
            "tournament": {
                "id": tournament.id,
                "name": tournament.name,
                "status": tournament.status,
                "currentRound": tournament.current_round,
                "totalRounds": tournament.total_rounds,
            },
            "currentPlayers": [
                {
                    "playerId": r.player_id,
                    "playerName": r.player_name,
                    "withdrawn": r.withdrawn,
                    "withdrawnAt": r.withdrawn_at,
                }
                for r in overview["current_players"]
            ],
            "availablePlayers": [
                {"playerId": m.id, "playerName": m.name}
                for m in overview["available_players"]
            ],
        }
    )
