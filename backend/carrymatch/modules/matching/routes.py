from __future__ import annotations

from flask import Blueprint, jsonify, request

from ...errors import ValidationError
from ...matching.candidates import date_tolerance, compatible_shipments_for_traveler, compatible_trips_for_sender
from ...matching.compatibility import CompatibilityCandidate, evaluate_shipment_for_trip, evaluate_trip_for_shipment
from ...security import require_user_id
from ...serializers import shipment_to_dict, trip_to_dict
from ...services import listings, reviews

bp = Blueprint("matching", __name__, url_prefix="/compatible")


def _candidate_to_dict(c: CompatibilityCandidate, ratings: dict) -> dict:
    out = c.to_dict()
    out["trip"] = trip_to_dict(c.trip, include_traveler=True)
    out["shipmentRequest"] = shipment_to_dict(c.shipment, include_sender=True)
    # Reputation of the other party, as shown on the listing cards
    if out["trip"]["traveler"] is not None:
        out["trip"]["traveler"].update(ratings.get(c.trip.traveler_id, {}))
    if out["shipmentRequest"]["sender"] is not None:
        out["shipmentRequest"]["sender"].update(ratings.get(c.shipment.sender_id, {}))
    return out


def _candidates_view(found: list[CompatibilityCandidate]) -> list[dict]:
    found = found[: _limit_arg()]
    ratings = reviews.ratings_for({c.trip.traveler_id for c in found} | {c.shipment.sender_id for c in found})
    return [_candidate_to_dict(c, ratings) for c in found]


def _limit_arg(default: int = 50) -> int:
    try:
        return max(1, min(200, int(request.args.get("limit", default))))
    except ValueError:
        return default


@bp.get("/trips")
def compatible_trips():
    """Trips that can carry one of the caller's open shipment requests, best first."""
    uid = require_user_id()
    found = compatible_trips_for_sender(uid)
    return jsonify({"candidates": _candidates_view(found)})


@bp.get("/shipments")
def compatible_shipments():
    """Shipment requests one of the caller's open trips can carry, best first."""
    uid = require_user_id()
    found = compatible_shipments_for_traveler(uid)
    return jsonify({"candidates": _candidates_view(found)})


@bp.get("/check")
def check_pair():
    """Evaluate one trip against one shipment request in both browse directions.

    Query params: tripId, shipmentRequestId (both required)
    """
    require_user_id()
    try:
        trip_id = int(request.args.get("tripId", ""))
        shipment_id = int(request.args.get("shipmentRequestId", ""))
    except ValueError:
        raise ValidationError("tripId and shipmentRequestId must be integers")
    trip = listings.get_trip(trip_id)
    shipment = listings.get_shipment(shipment_id)
    tolerance = date_tolerance()

    def _view(c: CompatibilityCandidate | None) -> dict | None:
        return c.to_dict() if c is not None else None

    return jsonify({
        "tripId": trip.id,
        "shipmentRequestId": shipment.id,
        "senderView": _view(evaluate_trip_for_shipment(trip, shipment, tolerance)),
        "travelerView": _view(evaluate_shipment_for_trip(trip, shipment, tolerance)),
    })
