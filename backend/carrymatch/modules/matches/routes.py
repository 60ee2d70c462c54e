from __future__ import annotations

import json
import time
from queue import Empty

from flask import Blueprint, Response, jsonify, request, stream_with_context
from marshmallow import ValidationError as SchemaError

from ...errors import ValidationError
from ...schemas.listing import ProposalSchema
from ...security import require_user_id
from ...serializers import match_to_dict, message_to_dict, review_to_dict
from ...services import fulfillment, lifecycle, messages, reviews
from ..notifications.bus import match_channel, subscribe, unsubscribe

bp = Blueprint("matches", __name__, url_prefix="/matches")

_proposal_schema = ProposalSchema()


def _match_view(m, include_listings: bool = True) -> dict:
    out = match_to_dict(m, include_listings=include_listings)
    out["respondentId"] = lifecycle.responder_id(m)
    return out


@bp.get("")
def list_matches():
    # Optional filters: role (traveler|sender), status
    uid = require_user_id()
    try:
        limit = int(request.args.get("limit", 200))
    except ValueError:
        limit = 200
    rows = lifecycle.list_for_user(
        uid,
        role=request.args.get("role") or None,
        status=request.args.get("status") or None,
        limit=limit,
    )
    include = request.args.get("includeListings", "1") in ("1", "true", "yes")
    return jsonify({"matches": [_match_view(m, include) for m in rows]})


@bp.post("")
def propose_match():
    """Propose a trip / shipment pairing to the other party.

    Body: { tripId, shipmentRequestId, notes? }
    """
    uid = require_user_id()
    try:
        data = _proposal_schema.load(request.get_json(silent=True) or {})
    except SchemaError as err:
        raise ValidationError("Invalid proposal", details=err.messages)
    m = lifecycle.propose(uid, data["trip_id"], data["shipment_request_id"], notes=data.get("notes"))
    return jsonify({"match": _match_view(m)}), 201


@bp.get("/<int:match_id>")
def get_match(match_id: int):
    uid = require_user_id()
    m = lifecycle.get_for_participant(uid, match_id)
    return jsonify({"match": _match_view(m), "progress": fulfillment.progress(m)})


@bp.post("/<int:match_id>/accept")
def accept_match(match_id: int):
    uid = require_user_id()
    m = lifecycle.accept(uid, match_id)
    return jsonify({"match": _match_view(m)})


@bp.post("/<int:match_id>/reject")
def reject_match(match_id: int):
    uid = require_user_id()
    m = lifecycle.reject(uid, match_id)
    return jsonify({"match": _match_view(m)})


@bp.post("/<int:match_id>/checkpoints/<checkpoint>")
def confirm_checkpoint(match_id: int, checkpoint: str):
    uid = require_user_id()
    m = fulfillment.confirm(uid, match_id, checkpoint)
    return jsonify({"match": _match_view(m), "progress": fulfillment.progress(m)})


@bp.get("/<int:match_id>/messages")
def list_match_messages(match_id: int):
    uid = require_user_id()
    rows = messages.list_messages(uid, match_id)
    return jsonify({"messages": [message_to_dict(msg) for msg in rows]})


@bp.post("/<int:match_id>/messages")
def post_match_message(match_id: int):
    uid = require_user_id()
    msg = messages.post_message(uid, match_id, request.get_json(silent=True))
    return jsonify({"message": message_to_dict(msg)}), 201


@bp.get("/<int:match_id>/reviews")
def list_match_reviews(match_id: int):
    uid = require_user_id()
    rows = reviews.list_for_match(uid, match_id)
    return jsonify({"reviews": [review_to_dict(r) for r in rows]})


@bp.post("/<int:match_id>/reviews")
def review_match(match_id: int):
    """Rate the other participant of a completed match.

    Body: { rating (1-5), comment? }
    """
    uid = require_user_id()
    review = reviews.leave_review(uid, match_id, request.get_json(silent=True))
    return jsonify({"review": review_to_dict(review)}), 201


@bp.get("/<int:match_id>/stream")
def stream_match(match_id: int):
    """Server-Sent Events stream of updates for one match.

    Delivery is at-most-once; clients re-fetch the match when they (re)connect.
    """
    uid = require_user_id()
    lifecycle.get_for_participant(uid, match_id)
    channel = match_channel(match_id)
    q = subscribe(channel)

    def event_stream():
        try:
            yield ": connected\n\n"
            while True:
                try:
                    # Keep below gunicorn's timeout to ensure periodic yields
                    evt = q.get(timeout=15)
                except Empty:
                    yield "event: ping\n" + f"data: {json.dumps({'ts': int(time.time())})}\n\n"
                    continue
                yield f"event: {evt.get('type', 'match.updated')}\n" + f"data: {json.dumps(evt)}\n\n"
        finally:
            unsubscribe(channel, q)

    headers = {
        "Content-Type": "text/event-stream",
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }
    return Response(stream_with_context(event_stream()), headers=headers)
