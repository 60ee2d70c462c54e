from __future__ import annotations

from flask import Blueprint, jsonify, request

from ...security import require_user_id
from ...serializers import alert_to_dict
from ...services import alerts

bp = Blueprint("alerts", __name__, url_prefix="/alerts")


@bp.get("")
def list_alerts():
    """The caller's alerts; ?all=1 includes deactivated ones."""
    uid = require_user_id()
    include_inactive = request.args.get("all") in ("1", "true", "yes")
    rows = alerts.list_alerts(uid, include_inactive=include_inactive)
    return jsonify({"alerts": [alert_to_dict(a) for a in rows]})


@bp.post("")
def create_alert():
    """Subscribe to new shipment requests on a route.

    Body: { fromCountry, fromCity?, toCountry, toCity? }
    """
    uid = require_user_id()
    alert = alerts.create_alert(uid, request.get_json(silent=True))
    return jsonify({"alert": alert_to_dict(alert)}), 201


@bp.post("/<int:alert_id>/deactivate")
def deactivate_alert(alert_id: int):
    uid = require_user_id()
    return jsonify({"alert": alert_to_dict(alerts.deactivate_alert(uid, alert_id))})
