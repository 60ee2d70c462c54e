from __future__ import annotations

import logging

from marshmallow import ValidationError as SchemaError

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..models.message import Message
from ..modules.notifications.bus import match_channel, publish
from ..schemas.listing import MessageSchema
from ..serializers import message_to_dict
from . import notifier
from .lifecycle import get_for_participant

logger = logging.getLogger(__name__)

_message_schema = MessageSchema()


def list_messages(user_id: int, match_id: int) -> list[Message]:
    m = get_for_participant(user_id, match_id)
    return (
        Message.query
        .filter(Message.match_id == m.id)
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )


def post_message(user_id: int, match_id: int, data: dict | None) -> Message:
    m = get_for_participant(user_id, match_id)
    if m.status == "rejected":
        raise NotFound("This proposal is no longer active")
    try:
        content = _message_schema.load(data or {})["content"].strip()
    except SchemaError as err:
        raise ValidationError("Invalid message", details=err.messages)

    msg = Message(match_id=m.id, sender_id=user_id, content=content)
    db.session.add(msg)
    staged = notifier.stage(m, "message", user_id)
    db.session.commit()
    logger.debug("Message %s posted on match %s by user %s", msg.id, m.id, user_id)

    notifier.dispatch(staged)
    publish(match_channel(m.id), {"type": "message.created", "message": message_to_dict(msg)})
    return msg
