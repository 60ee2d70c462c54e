"""Outbound notification trigger for match events and shipment alerts.

A notification is staged as a row in the caller's transaction (it doubles as
the server-side read receipt), then dispatched after commit: pushed on the
in-process bus and, when enabled, handed to the Celery email job. Dispatch is
fire-and-forget and never fails the request that caused it.
"""
from __future__ import annotations

from datetime import datetime, timezone
import logging

from flask import current_app

from ..extensions import db
from ..models.match import Match
from ..models.notification import Notification
from ..models.shipment_request import ShipmentRequest
from ..models.user import User
from ..modules.notifications.bus import match_channel, publish, user_channel
from ..serializers import match_to_dict, notification_to_dict

logger = logging.getLogger(__name__)

EVENT_KINDS = {
    "proposed": "match_proposed",
    "accepted": "match_accepted",
    "rejected": "match_rejected",
    "completed": "match_completed",
    "message": "new_message",
    "new_shipment": "new_shipment",
}
# Events raised by a listing; they carry no match
LISTING_EVENTS = ("new_shipment",)

_TEMPLATES = {
    "proposed": ("Nouvelle proposition", "{name} vous a envoyé une proposition pour le trajet {route}."),
    "accepted": ("Proposition acceptée", "{name} a accepté votre proposition pour le trajet {route}."),
    "rejected": ("Proposition refusée", "{name} a refusé votre proposition pour le trajet {route}."),
    "completed": ("Transaction complétée", "La remise avec {name} sur le trajet {route} est terminée."),
    "message": ("Nouveau message", "{name} vous a écrit au sujet du trajet {route}."),
    "new_shipment": (
        "Nouvelle demande d'expédition {route}",
        "{name} cherche un voyageur pour {weight} kg ({item}) sur {route}, entre le {earliest} et le {latest}.",
    ),
}


def route_description(match: Match) -> str:
    listing = match.shipment_request or match.trip
    return listing.route_description if listing else ""


def build_payload(match: Match, event: str, recipient_id: int) -> dict:
    """Fields the email handler needs, all derivable from the match."""
    counterpart_id = match.counterpart_of(recipient_id)
    counterpart = db.session.get(User, counterpart_id) if counterpart_id is not None else None
    return {
        "match_id": match.id,
        "recipient_id": recipient_id,
        "counterpart_name": counterpart.display_name if counterpart else "Utilisateur",
        "route_description": route_description(match),
        "event": event,
    }


def stage(match: Match, event: str, actor_id: int | None, recipients: list[int] | None = None) -> list[Notification]:
    """Add notification rows for ``event``; defaults to the actor's counterpart."""
    if event not in EVENT_KINDS or event in LISTING_EVENTS:
        raise ValueError(f"Unknown match event: {event}")
    if recipients is None:
        recipients = [match.counterpart_of(actor_id)]
    staged: list[Notification] = []
    for recipient_id in recipients:
        if recipient_id is None:
            continue
        payload = build_payload(match, event, recipient_id)
        title, body = _TEMPLATES[event]
        n = Notification(
            user_id=recipient_id,
            kind=EVENT_KINDS[event],
            match_id=match.id,
            title=title,
            body=body.format(name=payload["counterpart_name"], route=payload["route_description"]),
            payload=payload,
        )
        db.session.add(n)
        staged.append(n)
    db.session.flush()
    return staged


def build_shipment_payload(shipment: ShipmentRequest, recipient_id: int) -> dict:
    """Fields for a notification about a listing rather than a match."""
    sender = shipment.sender
    return {
        "match_id": None,
        "shipment_request_id": shipment.id,
        "recipient_id": recipient_id,
        "counterpart_name": sender.display_name if sender else "Utilisateur",
        "route_description": shipment.route_description,
        "event": "new_shipment",
    }


def stage_new_shipment(shipment: ShipmentRequest, recipient_ids) -> list[Notification]:
    """Tell travelers whose alerts cover the route about a new shipment request."""
    title, body = _TEMPLATES["new_shipment"]
    staged: list[Notification] = []
    for recipient_id in dict.fromkeys(recipient_ids):
        if recipient_id is None or recipient_id == shipment.sender_id:
            continue
        payload = build_shipment_payload(shipment, recipient_id)
        n = Notification(
            user_id=recipient_id,
            kind=EVENT_KINDS["new_shipment"],
            match_id=None,
            title=title.format(route=payload["route_description"]),
            body=body.format(
                name=payload["counterpart_name"],
                route=payload["route_description"],
                weight=f"{float(shipment.weight_kg):g}",
                item=shipment.item_type,
                earliest=shipment.earliest_date.strftime("%d/%m/%Y"),
                latest=shipment.latest_date.strftime("%d/%m/%Y"),
            ),
            payload=payload,
        )
        db.session.add(n)
        staged.append(n)
    db.session.flush()
    return staged


def _queue_email(n: Notification) -> None:
    recipient = db.session.get(User, n.user_id)
    if recipient is None or not recipient.email:
        return
    from ..tasks.jobs.notify import send_match_notification_email

    job_payload = dict(n.payload or {})
    job_payload.update(
        {
            "recipient_email": recipient.email,
            "title": n.title,
            "body": n.body,
            "app_url": current_app.config.get("PUBLIC_APP_URL"),
        }
    )
    send_match_notification_email.delay(job_payload)
    n.email_queued_at = datetime.now(timezone.utc)


def dispatch(notifications: list[Notification]) -> None:
    """Push committed notifications to live subscribers and the email job."""
    email_enabled = bool(current_app.config.get("NOTIFY_EMAIL_ENABLED"))
    queued = False
    for n in notifications:
        publish(user_channel(n.user_id), {"type": "notification", "notification": notification_to_dict(n)})
        if not email_enabled:
            continue
        try:
            _queue_email(n)
            queued = True
        except Exception:
            logger.exception("Could not queue email for notification %s", n.id)
    if queued:
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.exception("Could not record email queue time")


def publish_match(match: Match) -> None:
    publish(match_channel(match.id), {"type": "match.updated", "match": match_to_dict(match)})
