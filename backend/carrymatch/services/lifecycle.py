"""Match lifecycle: propose, accept, reject.

    pending --accept--> accepted --(fulfillment only)--> completed
    pending --reject--> rejected

``rejected`` and ``completed`` are terminal. Status writes are conditional
updates on the expected current status, so a stale read can never move a
match out of a state it has already left.
"""
from __future__ import annotations

import logging

from sqlalchemy import update, or_
from sqlalchemy.exc import IntegrityError

from ..errors import Conflict, DuplicateProposal, NotFound, Unauthorized, ValidationError
from ..extensions import db
from ..models.enums import ACTIVE_LISTING_STATUSES, LIVE_MATCH_STATUSES, MATCH_STATUSES, TERMINAL_MATCH_STATUSES
from ..models.match import Match
from ..models.shipment_request import ShipmentRequest
from ..models.trip import Trip
from . import audit, notifier

logger = logging.getLogger(__name__)


def load_match(match_id: int) -> Match:
    m = db.session.get(Match, match_id)
    if m is None:
        raise NotFound("Match not found")
    return m


def role_of(match: Match, user_id: int | None) -> str | None:
    if user_id is None:
        return None
    if user_id == match.traveler_id:
        return "traveler"
    if user_id == match.sender_id:
        return "sender"
    return None


def get_for_participant(user_id: int, match_id: int) -> Match:
    m = load_match(match_id)
    if role_of(m, user_id) is None:
        raise Unauthorized("You are not a participant in this match")
    return m


def responder_id(match: Match) -> int | None:
    """The participant expected to answer the proposal."""
    if match.proposed_by is not None and match.proposed_by == match.sender_id:
        return match.traveler_id
    # Traveler proposals, and legacy rows without a proposer, are answered by the sender
    return match.sender_id


def find_live_match(trip_id: int, shipment_request_id: int) -> Match | None:
    return (
        Match.query
        .filter(
            Match.trip_id == trip_id,
            Match.shipment_request_id == shipment_request_id,
            Match.status.in_(LIVE_MATCH_STATUSES),
        )
        .first()
    )


def propose(actor_id: int, trip_id: int, shipment_request_id: int, notes: str | None = None) -> Match:
    trip = db.session.get(Trip, trip_id)
    if trip is None or trip.status not in ACTIVE_LISTING_STATUSES:
        raise NotFound("Trip not found or no longer available")
    shipment = db.session.get(ShipmentRequest, shipment_request_id)
    if shipment is None or shipment.status not in ACTIVE_LISTING_STATUSES:
        raise NotFound("Shipment request not found or no longer available")
    if actor_id not in (trip.traveler_id, shipment.sender_id):
        raise Unauthorized("Only the traveler or the sender can propose this pairing")
    if trip.traveler_id == shipment.sender_id:
        raise ValidationError("A trip cannot be matched with your own shipment request")

    existing = find_live_match(trip.id, shipment.id)
    if existing is not None:
        raise DuplicateProposal("This pairing has already been proposed", details={"matchId": existing.id})

    m = Match(
        trip_id=trip.id,
        shipment_request_id=shipment.id,
        proposed_by=actor_id,
        status="pending",
        notes=(notes or "").strip() or None,
    )
    db.session.add(m)
    try:
        db.session.flush()
    except IntegrityError:
        # Lost a race against another proposal for the same pair
        db.session.rollback()
        existing = find_live_match(trip_id, shipment_request_id)
        details = {"matchId": existing.id} if existing else None
        raise DuplicateProposal("This pairing has already been proposed", details=details)

    audit.record(actor_id, "match_proposed", "match", m.id, tripId=trip.id, shipmentRequestId=shipment.id)
    staged = notifier.stage(m, "proposed", actor_id)
    db.session.commit()
    logger.info("Match %s proposed by user %s (trip %s, shipment %s)", m.id, actor_id, trip.id, shipment.id)

    notifier.dispatch(staged)
    notifier.publish_match(m)
    return m


def _check_responder(m: Match, actor_id: int) -> None:
    role = role_of(m, actor_id)
    if role is None:
        raise Unauthorized("You are not a participant in this match")
    if actor_id != responder_id(m):
        logger.warning("User %s tried to answer their own proposal on match %s", actor_id, m.id)
        raise Unauthorized("Only the other party can answer this proposal")


def _transition(m: Match, from_status: str, to_status: str) -> bool:
    result = db.session.execute(
        update(Match)
        .where(Match.id == m.id, Match.status == from_status)
        .values(status=to_status)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _answer(actor_id: int, match_id: int, to_status: str) -> tuple[Match, bool]:
    """Move a pending proposal to ``to_status``; returns (match, changed).

    A lost conditional update is retried once against a fresh read, so a
    concurrent write that left the proposal answerable does not surface as an
    error. Only a second lost update raises Conflict.
    """
    for attempt in (1, 2):
        m = load_match(match_id)
        _check_responder(m, actor_id)
        if m.status in TERMINAL_MATCH_STATUSES:
            raise NotFound("This proposal is no longer active")
        if m.status == to_status:
            return m, False
        if m.status != "pending":
            raise ValidationError("Only pending proposals can be rejected")
        if _transition(m, "pending", to_status):
            return m, True
        db.session.rollback()
        logger.info("Match %s changed under a %s by user %s (attempt %s)", match_id, to_status, actor_id, attempt)
    logger.warning("Giving up on %s for match %s after a repeated concurrent update", to_status, match_id)
    raise Conflict("The proposal changed while answering; reload and retry")


def accept(actor_id: int, match_id: int) -> Match:
    m, changed = _answer(actor_id, match_id, "accepted")
    if not changed:
        return m

    # Listings follow the match in the same transaction
    db.session.execute(
        update(Trip)
        .where(Trip.id == m.trip_id, Trip.status == "open")
        .values(status="matched")
        .execution_options(synchronize_session=False)
    )
    db.session.execute(
        update(ShipmentRequest)
        .where(ShipmentRequest.id == m.shipment_request_id, ShipmentRequest.status == "open")
        .values(status="matched")
        .execution_options(synchronize_session=False)
    )
    audit.record(actor_id, "match_accepted", "match", m.id, fromStatus="pending", toStatus="accepted")
    db.session.expire(m)
    staged = notifier.stage(m, "accepted", actor_id)
    db.session.commit()
    logger.info("Match %s accepted by user %s", m.id, actor_id)

    notifier.dispatch(staged)
    notifier.publish_match(m)
    return m


def reject(actor_id: int, match_id: int) -> Match:
    m, changed = _answer(actor_id, match_id, "rejected")
    if not changed:
        return m

    audit.record(actor_id, "match_rejected", "match", m.id, fromStatus="pending", toStatus="rejected")
    db.session.expire(m)
    staged = notifier.stage(m, "rejected", actor_id)
    db.session.commit()
    logger.info("Match %s rejected by user %s", m.id, actor_id)

    notifier.dispatch(staged)
    notifier.publish_match(m)
    return m


def list_for_user(user_id: int, role: str | None = None, status: str | None = None, limit: int = 200) -> list[Match]:
    q = Match.query.join(Trip, Match.trip_id == Trip.id).join(ShipmentRequest, Match.shipment_request_id == ShipmentRequest.id)
    if role == "traveler":
        q = q.filter(Trip.traveler_id == user_id)
    elif role == "sender":
        q = q.filter(ShipmentRequest.sender_id == user_id)
    elif role is None:
        q = q.filter(or_(Trip.traveler_id == user_id, ShipmentRequest.sender_id == user_id))
    else:
        raise ValidationError("role must be 'traveler' or 'sender'")
    if status:
        if status not in MATCH_STATUSES:
            raise ValidationError(f"Unknown match status: {status}")
        q = q.filter(Match.status == status)
    return q.order_by(Match.created_at.desc(), Match.id.desc()).limit(max(1, min(500, limit))).all()
