from __future__ import annotations

from flask import Blueprint, jsonify, request

from ...security import require_user_id
from ...serializers import shipment_to_dict
from ...services import listings

bp = Blueprint("shipments", __name__, url_prefix="/shipments")


def _limit_arg(default: int = 50) -> int:
    try:
        return int(request.args.get("limit", default))
    except ValueError:
        return default


@bp.get("")
def list_shipments():
    uid = require_user_id()
    if request.args.get("mine") in ("1", "true", "yes"):
        rows = listings.list_own_shipments(uid, limit=_limit_arg())
    else:
        rows = listings.list_open_shipments(exclude_user_id=uid, limit=_limit_arg())
    return jsonify({"shipmentRequests": [shipment_to_dict(s, include_sender=True) for s in rows]})


@bp.post("")
def create_shipment():
    uid = require_user_id()
    s = listings.create_shipment(uid, request.get_json(silent=True))
    return jsonify({"shipmentRequest": shipment_to_dict(s)}), 201


@bp.get("/<int:shipment_id>")
def get_shipment(shipment_id: int):
    require_user_id()
    return jsonify({"shipmentRequest": shipment_to_dict(listings.get_shipment(shipment_id), include_sender=True)})


@bp.post("/<int:shipment_id>/close")
def close_shipment(shipment_id: int):
    uid = require_user_id()
    return jsonify({"shipmentRequest": shipment_to_dict(listings.close_shipment(uid, shipment_id))})
