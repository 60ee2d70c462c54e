"""Compatible-listing discovery against the store.

The store narrows the catalog by status, ownership and date; the evaluator
makes the final decision in Python. Each counterpart listing is surfaced once,
paired with the anchor listing that fits it best, and the result is ranked.
"""
from __future__ import annotations

from datetime import date, timedelta
import logging

from flask import current_app

from ..models.match import Match
from ..models.shipment_request import ShipmentRequest
from ..models.trip import Trip
from ..models.enums import LIVE_MATCH_STATUSES
from .compatibility import (
    DEFAULT_DATE_TOLERANCE_DAYS,
    CompatibilityCandidate,
    evaluate_shipment_for_trip,
    evaluate_trip_for_shipment,
)
from .ranking import pick_best, rank

logger = logging.getLogger(__name__)


def date_tolerance() -> int:
    try:
        return int(current_app.config.get("MATCH_DATE_TOLERANCE_DAYS", DEFAULT_DATE_TOLERANCE_DAYS))
    except (RuntimeError, TypeError, ValueError):
        return DEFAULT_DATE_TOLERANCE_DAYS


def _pair_matches(trip_ids: list[int], shipment_ids: list[int]) -> dict[tuple[int, int], list[Match]]:
    if not trip_ids or not shipment_ids:
        return {}
    rows = (
        Match.query
        .filter(Match.trip_id.in_(trip_ids), Match.shipment_request_id.in_(shipment_ids))
        .order_by(Match.created_at.asc(), Match.id.asc())
        .all()
    )
    out: dict[tuple[int, int], list[Match]] = {}
    for m in rows:
        out.setdefault((m.trip_id, m.shipment_request_id), []).append(m)
    return out


def _annotate(candidate: CompatibilityCandidate, existing: list[Match]) -> CompatibilityCandidate | None:
    """Attach the live match for the pair; drop pairs that were only ever rejected."""
    if not existing:
        return candidate
    live = [m for m in existing if m.status in LIVE_MATCH_STATUSES]
    if live:
        candidate.match_id = live[-1].id
        candidate.match_status = live[-1].status
        return candidate
    if any(m.status == "rejected" for m in existing):
        return None
    latest = existing[-1]
    candidate.match_id = latest.id
    candidate.match_status = latest.status
    return candidate


def compatible_trips_for_sender(sender_id: int, today: date | None = None, tolerance_days: int | None = None) -> list[CompatibilityCandidate]:
    """Open trips of other travelers that fit one of the sender's open shipments."""
    today = today or date.today()
    tolerance = date_tolerance() if tolerance_days is None else tolerance_days

    shipments = (
        ShipmentRequest.query
        .filter(
            ShipmentRequest.sender_id == sender_id,
            ShipmentRequest.status == "open",
            ShipmentRequest.latest_date >= today,
        )
        .order_by(ShipmentRequest.created_at.asc(), ShipmentRequest.id.asc())
        .all()
    )
    if not shipments:
        return []

    horizon = max(s.latest_date for s in shipments) + timedelta(days=tolerance)
    trips = (
        Trip.query
        .filter(
            Trip.status == "open",
            Trip.traveler_id != sender_id,
            Trip.departure_date >= today,
            Trip.departure_date <= horizon,
        )
        .order_by(Trip.departure_date.asc(), Trip.id.asc())
        .all()
    )
    existing = _pair_matches([t.id for t in trips], [s.id for s in shipments])

    found: list[CompatibilityCandidate] = []
    for trip in trips:
        options = []
        for shipment in shipments:
            candidate = evaluate_trip_for_shipment(trip, shipment, tolerance)
            if candidate is None:
                continue
            candidate = _annotate(candidate, existing.get((trip.id, shipment.id), []))
            if candidate is not None:
                options.append(candidate)
        best = pick_best(options)
        if best is not None:
            found.append(best)
    logger.debug("Sender %s: %d compatible trips out of %d open", sender_id, len(found), len(trips))
    return rank(found)


def compatible_shipments_for_traveler(traveler_id: int, today: date | None = None, tolerance_days: int | None = None) -> list[CompatibilityCandidate]:
    """Open shipments of other senders that one of the traveler's open trips can carry."""
    today = today or date.today()
    tolerance = date_tolerance() if tolerance_days is None else tolerance_days

    trips = (
        Trip.query
        .filter(
            Trip.traveler_id == traveler_id,
            Trip.status == "open",
            Trip.departure_date >= today,
        )
        .order_by(Trip.departure_date.asc(), Trip.id.asc())
        .all()
    )
    if not trips:
        return []

    shipments = (
        ShipmentRequest.query
        .filter(
            ShipmentRequest.status == "open",
            ShipmentRequest.sender_id != traveler_id,
            ShipmentRequest.latest_date >= today,
        )
        .order_by(ShipmentRequest.created_at.asc(), ShipmentRequest.id.asc())
        .all()
    )
    existing = _pair_matches([t.id for t in trips], [s.id for s in shipments])

    found: list[CompatibilityCandidate] = []
    for shipment in shipments:
        options = []
        for trip in trips:
            candidate = evaluate_shipment_for_trip(trip, shipment, tolerance)
            if candidate is None:
                continue
            candidate = _annotate(candidate, existing.get((trip.id, shipment.id), []))
            if candidate is not None:
                options.append(candidate)
        best = pick_best(options)
        if best is not None:
            found.append(best)
    logger.debug("Traveler %s: %d compatible shipments out of %d open", traveler_id, len(found), len(shipments))
    return rank(found)
