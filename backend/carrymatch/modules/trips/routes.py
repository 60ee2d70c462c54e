from __future__ import annotations

from flask import Blueprint, jsonify, request

from ...security import require_user_id
from ...serializers import trip_to_dict
from ...services import listings

bp = Blueprint("trips", __name__, url_prefix="/trips")


def _limit_arg(default: int = 50) -> int:
    try:
        return int(request.args.get("limit", default))
    except ValueError:
        return default


@bp.get("")
def list_trips():
    """Open upcoming trips of other travelers, or the caller's own with ?mine=1."""
    uid = require_user_id()
    if request.args.get("mine") in ("1", "true", "yes"):
        rows = listings.list_own_trips(uid, limit=_limit_arg())
    else:
        rows = listings.list_open_trips(exclude_user_id=uid, limit=_limit_arg())
    return jsonify({"trips": [trip_to_dict(t, include_traveler=True) for t in rows]})


@bp.post("")
def create_trip():
    uid = require_user_id()
    t = listings.create_trip(uid, request.get_json(silent=True))
    return jsonify({"trip": trip_to_dict(t)}), 201


@bp.get("/<int:trip_id>")
def get_trip(trip_id: int):
    require_user_id()
    return jsonify({"trip": trip_to_dict(listings.get_trip(trip_id), include_traveler=True)})


@bp.post("/<int:trip_id>/close")
def close_trip(trip_id: int):
    uid = require_user_id()
    return jsonify({"trip": trip_to_dict(listings.close_trip(uid, trip_id))})
