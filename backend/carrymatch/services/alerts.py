"""Shipment alerts: travelers subscribe to a route and hear about new requests on it."""
from __future__ import annotations

import logging

from marshmallow import ValidationError as SchemaError
from sqlalchemy.exc import IntegrityError

from ..errors import AlreadyExists, NotFound, Unauthorized, ValidationError
from ..extensions import db
from ..matching import regions
from ..models.shipment_alert import ShipmentAlert
from ..models.shipment_request import ShipmentRequest
from ..schemas.listing import ShipmentAlertSchema
from . import audit

logger = logging.getLogger(__name__)

_alert_schema = ShipmentAlertSchema()


def _blank_to_none(value: str | None) -> str | None:
    return (value or "").strip() or None


def route_key(from_country: str, from_city: str | None, to_country: str, to_city: str | None) -> str:
    """Spelling-independent key of a route: "Algérie"/"Algeria" and "PARIS"/"Paris" collapse."""
    def _country(name: str) -> str:
        return regions.country_code(name) or regions.normalize_name(name)

    return "|".join(
        (_country(from_country), regions.normalize_name(from_city), _country(to_country), regions.normalize_name(to_city))
    )


def _find_by_key(user_id: int, key: str) -> ShipmentAlert | None:
    return ShipmentAlert.query.filter_by(user_id=user_id, route_key=key).first()


def create_alert(actor_id: int, data: dict | None) -> ShipmentAlert:
    try:
        fields = _alert_schema.load(data or {})
    except SchemaError as err:
        raise ValidationError("Invalid alert", details=err.messages)
    from_country = fields["from_country"].strip()
    to_country = fields["to_country"].strip()
    from_city = _blank_to_none(fields.get("from_city"))
    to_city = _blank_to_none(fields.get("to_city"))
    key = route_key(from_country, from_city, to_country, to_city)

    existing = _find_by_key(actor_id, key)
    if existing is not None:
        if existing.is_active:
            raise AlreadyExists("You already have an alert for this route", details={"alertId": existing.id})
        # A deactivated alert for the same route comes back instead of a second row
        existing.is_active = True
        audit.record(actor_id, "alert_reactivated", "shipment_alert", existing.id)
        db.session.commit()
        logger.info("Alert %s reactivated by user %s", existing.id, actor_id)
        return existing

    alert = ShipmentAlert(
        user_id=actor_id,
        from_country=from_country,
        from_city=from_city,
        to_country=to_country,
        to_city=to_city,
        route_key=key,
        is_active=True,
    )
    db.session.add(alert)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        existing = _find_by_key(actor_id, key)
        details = {"alertId": existing.id} if existing else None
        raise AlreadyExists("You already have an alert for this route", details=details)
    audit.record(actor_id, "alert_created", "shipment_alert", alert.id)
    db.session.commit()
    logger.info("Alert %s created by user %s (%s)", alert.id, actor_id, alert.route_description)
    return alert


def list_alerts(user_id: int, include_inactive: bool = False) -> list[ShipmentAlert]:
    q = ShipmentAlert.query.filter(ShipmentAlert.user_id == user_id)
    if not include_inactive:
        q = q.filter(ShipmentAlert.is_active.is_(True))
    return q.order_by(ShipmentAlert.created_at.desc(), ShipmentAlert.id.desc()).all()


def deactivate_alert(actor_id: int, alert_id: int) -> ShipmentAlert:
    alert = db.session.get(ShipmentAlert, alert_id)
    if alert is None:
        raise NotFound("Alert not found")
    if alert.user_id != actor_id:
        raise Unauthorized("Only the owner can change this alert")
    if alert.is_active:
        alert.is_active = False
        audit.record(actor_id, "alert_deactivated", "shipment_alert", alert.id)
        db.session.commit()
        logger.info("Alert %s deactivated by user %s", alert.id, actor_id)
    return alert


def _covers(alert: ShipmentAlert, shipment: ShipmentRequest) -> bool:
    if not regions.same_country(alert.from_country, shipment.from_country):
        return False
    if not regions.same_country(alert.to_country, shipment.to_country):
        return False
    if alert.from_city and not regions.cities_match(alert.from_city, shipment.from_city, shipment.from_country):
        return False
    if alert.to_city and not regions.cities_match(alert.to_city, shipment.to_city, shipment.to_country):
        return False
    return True


def matching_alerts(shipment: ShipmentRequest) -> list[ShipmentAlert]:
    """Active alerts of other users whose route covers ``shipment``.

    Countries go through the synonym table, so the store only narrows on
    ownership and activity.
    """
    if shipment.status != "open":
        return []
    candidates = (
        ShipmentAlert.query
        .filter(ShipmentAlert.is_active.is_(True), ShipmentAlert.user_id != shipment.sender_id)
        .order_by(ShipmentAlert.id.asc())
        .all()
    )
    return [a for a in candidates if _covers(a, shipment)]
