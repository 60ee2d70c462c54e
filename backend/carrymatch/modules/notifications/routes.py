from __future__ import annotations

from datetime import datetime, timezone
import json
import time
from queue import Empty

from flask import Blueprint, jsonify, request, Response, stream_with_context
from sqlalchemy import update

from ...errors import NotFound, Unauthorized
from ...extensions import db
from ...models.notification import Notification
from ...security import require_user_id
from ...serializers import notification_to_dict
from .bus import subscribe, unsubscribe, user_channel

bp = Blueprint("notifications", __name__, url_prefix="/notifications")


def _unread_count(uid: int) -> int:
    return Notification.query.filter(Notification.user_id == uid, Notification.read_at.is_(None)).count()


@bp.get("")
def list_notifications():
    uid = require_user_id()
    try:
        limit = int(request.args.get("limit", 20))
    except ValueError:
        limit = 20
    q = Notification.query.filter(Notification.user_id == uid)
    if request.args.get("unread") in ("1", "true", "yes"):
        q = q.filter(Notification.read_at.is_(None))
    rows = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(max(1, min(100, limit))).all()
    return jsonify({"notifications": [notification_to_dict(n) for n in rows], "unread": _unread_count(uid)})


@bp.get("/unread-count")
def unread_count():
    uid = require_user_id()
    return jsonify({"unread": _unread_count(uid)})


@bp.patch("/<int:notif_id>/read")
def mark_read(notif_id: int):
    uid = require_user_id()
    n = db.session.get(Notification, notif_id)
    if not n:
        raise NotFound("Notification not found")
    if n.user_id != uid:
        raise Unauthorized("This notification belongs to another user")
    if not n.read_at:
        n.read_at = datetime.now(timezone.utc)
        db.session.commit()
    return jsonify({"notification": notification_to_dict(n)})


@bp.post("/read-all")
def mark_all_read():
    uid = require_user_id()
    result = db.session.execute(
        update(Notification)
        .where(Notification.user_id == uid, Notification.read_at.is_(None))
        .values(read_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return jsonify({"updated": result.rowcount, "unread": 0})


@bp.get("/stream")
def stream_notifications():
    """Server-Sent Events stream of the caller's notifications."""
    uid = require_user_id()
    channel = user_channel(uid)
    q = subscribe(channel)

    def event_stream():
        try:
            # Initial comment to establish stream
            yield ": connected\n\n"
            while True:
                try:
                    # Keep below gunicorn's timeout to ensure periodic yields
                    evt = q.get(timeout=15)
                except Empty:
                    # Keep-alive
                    yield "event: ping\n" + f"data: {json.dumps({'ts': int(time.time())})}\n\n"
                    continue
                yield "event: notification\n" + f"data: {json.dumps(evt)}\n\n"
        finally:
            unsubscribe(channel, q)

    headers = {
        "Content-Type": "text/event-stream",
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }
    return Response(stream_with_context(event_stream()), headers=headers)
