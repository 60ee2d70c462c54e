"""Trips and shipment requests: the listings the matcher works on."""
from __future__ import annotations

from datetime import date
import logging

from marshmallow import ValidationError as SchemaError

from ..errors import NotFound, Unauthorized, ValidationError
from ..extensions import db
from ..models.enums import ACTIVE_LISTING_STATUSES
from ..models.shipment_request import ShipmentRequest
from ..models.trip import Trip
from ..schemas.listing import ShipmentRequestSchema, TripSchema
from . import alerts, audit, notifier

logger = logging.getLogger(__name__)

_trip_schema = TripSchema()
_shipment_schema = ShipmentRequestSchema()


def _load(schema, data: dict | None, what: str) -> dict:
    try:
        return schema.load(data or {})
    except SchemaError as err:
        raise ValidationError(f"Invalid {what}", details=err.messages)


def _clean(data: dict) -> dict:
    for key in ("from_country", "from_city", "to_country", "to_city", "item_type"):
        if key in data:
            data[key] = data[key].strip()
    data["notes"] = (data.get("notes") or "").strip() or None
    return data


def create_trip(actor_id: int, data: dict | None) -> Trip:
    fields = _clean(_load(_trip_schema, data, "trip"))
    t = Trip(traveler_id=actor_id, status="open", **fields)
    db.session.add(t)
    db.session.flush()
    audit.record(actor_id, "trip_created", "trip", t.id)
    db.session.commit()
    logger.info("Trip %s created by user %s (%s)", t.id, actor_id, t.route_description)
    return t


def create_shipment(actor_id: int, data: dict | None) -> ShipmentRequest:
    fields = _clean(_load(_shipment_schema, data, "shipment request"))
    s = ShipmentRequest(sender_id=actor_id, status="open", **fields)
    db.session.add(s)
    db.session.flush()
    audit.record(actor_id, "shipment_created", "shipment_request", s.id)
    covering = alerts.matching_alerts(s)
    staged = notifier.stage_new_shipment(s, [a.user_id for a in covering])
    db.session.commit()
    logger.info(
        "Shipment request %s created by user %s (%s), %s alert(s) notified",
        s.id, actor_id, s.route_description, len(staged),
    )

    notifier.dispatch(staged)
    return s


def get_trip(trip_id: int) -> Trip:
    t = db.session.get(Trip, trip_id)
    if t is None:
        raise NotFound("Trip not found")
    return t


def get_shipment(shipment_request_id: int) -> ShipmentRequest:
    s = db.session.get(ShipmentRequest, shipment_request_id)
    if s is None:
        raise NotFound("Shipment request not found")
    return s


def _limit(limit: int) -> int:
    return max(1, min(200, limit))


def list_open_trips(exclude_user_id: int | None = None, today: date | None = None, limit: int = 50) -> list[Trip]:
    today = today or date.today()
    q = Trip.query.filter(Trip.status == "open", Trip.departure_date >= today)
    if exclude_user_id is not None:
        q = q.filter(Trip.traveler_id != exclude_user_id)
    return q.order_by(Trip.departure_date.asc(), Trip.id.asc()).limit(_limit(limit)).all()


def list_open_shipments(exclude_user_id: int | None = None, today: date | None = None, limit: int = 50) -> list[ShipmentRequest]:
    today = today or date.today()
    q = ShipmentRequest.query.filter(ShipmentRequest.status == "open", ShipmentRequest.latest_date >= today)
    if exclude_user_id is not None:
        q = q.filter(ShipmentRequest.sender_id != exclude_user_id)
    return q.order_by(ShipmentRequest.earliest_date.asc(), ShipmentRequest.id.asc()).limit(_limit(limit)).all()


def list_own_trips(user_id: int, limit: int = 50) -> list[Trip]:
    return (
        Trip.query
        .filter(Trip.traveler_id == user_id)
        .order_by(Trip.created_at.desc(), Trip.id.desc())
        .limit(_limit(limit))
        .all()
    )


def list_own_shipments(user_id: int, limit: int = 50) -> list[ShipmentRequest]:
    return (
        ShipmentRequest.query
        .filter(ShipmentRequest.sender_id == user_id)
        .order_by(ShipmentRequest.created_at.desc(), ShipmentRequest.id.desc())
        .limit(_limit(limit))
        .all()
    )


def _close(listing, owner_id: int, actor_id: int, entity_type: str):
    if owner_id != actor_id:
        raise Unauthorized("Only the owner can close this listing")
    if listing.status not in ACTIVE_LISTING_STATUSES:
        raise ValidationError(f"A {listing.status} listing cannot be closed")
    previous = listing.status
    listing.status = "closed"
    audit.record(actor_id, f"{entity_type}_closed", entity_type, listing.id, fromStatus=previous)
    db.session.commit()
    logger.info("%s %s closed by user %s", entity_type, listing.id, actor_id)
    return listing


def close_trip(actor_id: int, trip_id: int) -> Trip:
    t = get_trip(trip_id)
    return _close(t, t.traveler_id, actor_id, "trip")


def close_shipment(actor_id: int, shipment_request_id: int) -> ShipmentRequest:
    s = get_shipment(shipment_request_id)
    return _close(s, s.sender_id, actor_id, "shipment_request")
