"""Four-checkpoint handoff protocol for accepted matches.

    1. sender_handed_over   (sender)
    2. traveler_picked_up   (traveler, after 1)
    3. traveler_delivered   (traveler, after 2)
    4. sender_received      (sender, after 2)

When both 3 and 4 are true the match completes, once, together with its trip
and shipment request. Completion is a single conditional update executed by
the store, so concurrent confirmations cannot complete a match twice or skip
it: whichever transaction commits the second delivery flag performs it.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging

from sqlalchemy import update

from ..errors import Conflict, NotFound, Unauthorized, ValidationError
from ..extensions import db
from ..models.match import Match
from ..models.shipment_request import ShipmentRequest
from ..models.trip import Trip
from . import audit, notifier
from .lifecycle import load_match, role_of

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Checkpoint:
    name: str
    role: str
    requires: str | None
    label: str


CHECKPOINTS = {
    cp.name: cp
    for cp in (
        Checkpoint("sender_handed_over", "sender", None, "Remise du colis"),
        Checkpoint("traveler_picked_up", "traveler", "sender_handed_over", "Récupération"),
        Checkpoint("traveler_delivered", "traveler", "traveler_picked_up", "Livraison (voyageur)"),
        Checkpoint("sender_received", "sender", "traveler_picked_up", "Réception (expéditeur)"),
    )
}


def complete_if_ready(match_id: int) -> bool:
    """Complete the match iff it is still accepted and both delivery flags are set.

    Runs inside the caller's transaction; returns True for the one call that
    performed the completion.
    """
    result = db.session.execute(
        update(Match)
        .where(
            Match.id == match_id,
            Match.status == "accepted",
            Match.traveler_delivered.is_(True),
            Match.sender_received.is_(True),
        )
        .values(status="completed", completed_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False

    m = db.session.get(Match, match_id)
    db.session.execute(
        update(Trip)
        .where(Trip.id == m.trip_id)
        .values(status="completed")
        .execution_options(synchronize_session=False)
    )
    db.session.execute(
        update(ShipmentRequest)
        .where(ShipmentRequest.id == m.shipment_request_id)
        .values(status="completed")
        .execution_options(synchronize_session=False)
    )
    return True


def _write_flag(m: Match, cp: Checkpoint) -> bool:
    """Set the checkpoint flag iff the match is still accepted and the flag unset."""
    conditions = [Match.id == m.id, Match.status == "accepted", getattr(Match, cp.name).is_(False)]
    if cp.requires:
        conditions.append(getattr(Match, cp.requires).is_(True))
    result = db.session.execute(
        update(Match)
        .where(*conditions)
        .values({cp.name: True})
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _checked(actor_id: int, match_id: int, cp: Checkpoint) -> Match:
    m = load_match(match_id)
    role = role_of(m, actor_id)
    if role is None:
        raise Unauthorized("You are not a participant in this match")
    if role != cp.role:
        raise Unauthorized(f"Only the {cp.role} can confirm this step")
    return m


def confirm(actor_id: int, match_id: int, checkpoint: str) -> Match:
    cp = CHECKPOINTS.get(checkpoint)
    if cp is None:
        raise ValidationError(f"Unknown checkpoint: {checkpoint}")

    for attempt in (1, 2):
        m = _checked(actor_id, match_id, cp)
        # Re-confirming is a no-op, even after completion
        if getattr(m, cp.name):
            return m
        if m.status == "pending":
            raise ValidationError("The proposal has not been accepted yet")
        if m.status != "accepted":
            raise NotFound("This match is no longer active")
        if cp.requires and not getattr(m, cp.requires):
            raise ValidationError(f"{CHECKPOINTS[cp.requires].label} must be confirmed first")
        if _write_flag(m, cp):
            break
        # Lost to a concurrent write; the next read decides
        db.session.rollback()
        logger.info("Checkpoint %s on match %s lost a concurrent update (attempt %s)", cp.name, match_id, attempt)
    else:
        logger.warning("Checkpoint %s on match %s lost a concurrent update twice", cp.name, match_id)
        raise Conflict("The match changed while confirming; reload and retry")

    completed = complete_if_ready(m.id)
    audit.record(actor_id, "match_checkpoint", "match", m.id, checkpoint=cp.name, completed=completed)
    db.session.expire(m)
    staged = []
    if completed:
        staged = notifier.stage(m, "completed", actor_id, recipients=[m.traveler_id, m.sender_id])
    db.session.commit()
    logger.info("Match %s: %s confirmed by user %s%s", m.id, cp.name, actor_id, " (completed)" if completed else "")

    notifier.dispatch(staged)
    notifier.publish_match(m)
    return m


def progress(m: Match) -> dict:
    """Per-step state for display: done, locked (prerequisite missing)."""
    steps = []
    for cp in CHECKPOINTS.values():
        done = bool(getattr(m, cp.name))
        prerequisite_missing = bool(cp.requires and not getattr(m, cp.requires))
        locked = not done and (m.status != "accepted" or prerequisite_missing)
        steps.append({"checkpoint": cp.name, "role": cp.role, "label": cp.label, "done": done, "locked": locked})
    return {
        "status": m.status,
        "steps": steps,
        "deliveryConfirmed": bool(m.traveler_delivered and m.sender_received),
        "completedAt": m.completed_at.isoformat() if m.completed_at else None,
    }
