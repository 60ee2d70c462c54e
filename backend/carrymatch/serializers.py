"""camelCase JSON views of the models, shared by the blueprints and the bus."""
from __future__ import annotations

from .models.match import Match
from .models.message import Message
from .models.notification import Notification
from .models.review import Review
from .models.shipment_alert import ShipmentAlert
from .models.shipment_request import ShipmentRequest
from .models.trip import Trip
from .models.user import User


def _iso(value):
    return value.isoformat() if value else None


def _num(value):
    return float(value) if value is not None else None


def user_to_dict(u: User | None) -> dict | None:
    if u is None:
        return None
    return {"id": u.id, "displayName": u.display_name}


def trip_to_dict(t: Trip, include_traveler: bool = False) -> dict:
    base = {
        "id": t.id,
        "travelerId": t.traveler_id,
        "fromCountry": t.from_country,
        "fromCity": t.from_city,
        "toCountry": t.to_country,
        "toCity": t.to_city,
        "departureDate": _iso(t.departure_date),
        "arrivalDate": _iso(t.arrival_date),
        "maxWeightKg": _num(t.max_weight_kg),
        "notes": t.notes,
        "status": t.status,
        "createdAt": _iso(t.created_at),
    }
    if include_traveler:
        base["traveler"] = user_to_dict(t.traveler)
    return base


def shipment_to_dict(s: ShipmentRequest, include_sender: bool = False) -> dict:
    base = {
        "id": s.id,
        "senderId": s.sender_id,
        "fromCountry": s.from_country,
        "fromCity": s.from_city,
        "toCountry": s.to_country,
        "toCity": s.to_city,
        "earliestDate": _iso(s.earliest_date),
        "latestDate": _iso(s.latest_date),
        "weightKg": _num(s.weight_kg),
        "itemType": s.item_type,
        "notes": s.notes,
        "status": s.status,
        "createdAt": _iso(s.created_at),
    }
    if include_sender:
        base["sender"] = user_to_dict(s.sender)
    return base


def match_to_dict(m: Match, include_listings: bool = False) -> dict:
    base = {
        "id": m.id,
        "tripId": m.trip_id,
        "shipmentRequestId": m.shipment_request_id,
        "proposedBy": m.proposed_by,
        "status": m.status,
        "notes": m.notes,
        "senderHandedOver": bool(m.sender_handed_over),
        "travelerPickedUp": bool(m.traveler_picked_up),
        "travelerDelivered": bool(m.traveler_delivered),
        "senderReceived": bool(m.sender_received),
        "completedAt": _iso(m.completed_at),
        "createdAt": _iso(m.created_at),
    }
    if include_listings:
        base["trip"] = trip_to_dict(m.trip, include_traveler=True) if m.trip else None
        base["shipmentRequest"] = shipment_to_dict(m.shipment_request, include_sender=True) if m.shipment_request else None
    return base


def message_to_dict(msg: Message) -> dict:
    return {
        "id": msg.id,
        "matchId": msg.match_id,
        "senderId": msg.sender_id,
        "content": msg.content,
        "createdAt": _iso(msg.created_at),
    }


def alert_to_dict(a: ShipmentAlert) -> dict:
    return {
        "id": a.id,
        "userId": a.user_id,
        "fromCountry": a.from_country,
        "fromCity": a.from_city,
        "toCountry": a.to_country,
        "toCity": a.to_city,
        "isActive": bool(a.is_active),
        "createdAt": _iso(a.created_at),
    }


def review_to_dict(r: Review) -> dict:
    return {
        "id": r.id,
        "matchId": r.match_id,
        "reviewerId": r.reviewer_id,
        "reviewedId": r.reviewed_id,
        "rating": r.rating,
        "comment": r.comment,
        "createdAt": _iso(r.created_at),
    }


def notification_to_dict(n: Notification) -> dict:
    return {
        "id": n.id,
        "userId": n.user_id,
        "kind": n.kind,
        "matchId": n.match_id,
        "title": n.title,
        "message": n.body,
        "payload": n.payload,
        "read": bool(n.read_at),
        "createdAt": _iso(n.created_at),
        "readAt": _iso(n.read_at),
    }
