from __future__ import annotations

from flask import Blueprint, jsonify, request

from ...errors import NotFound
from ...extensions import db
from ...models.user import User
from ...security import require_user_id
from ...serializers import review_to_dict, user_to_dict
from ...services import reviews

bp = Blueprint("users", __name__, url_prefix="/users")


def _get_user(user_id: int) -> User:
    u = db.session.get(User, user_id)
    if u is None:
        raise NotFound("User not found")
    return u


@bp.get("/<int:user_id>/rating")
def user_rating(user_id: int):
    require_user_id()
    u = _get_user(user_id)
    out = user_to_dict(u)
    out.update(reviews.rating_for(u.id))
    return jsonify({"user": out})


@bp.get("/<int:user_id>/reviews")
def user_reviews(user_id: int):
    """Reviews a user received, newest first. Query params: limit (default 50, max 200)."""
    require_user_id()
    u = _get_user(user_id)
    try:
        limit = int(request.args.get("limit", 50))
    except ValueError:
        limit = 50
    rows = reviews.list_received(u.id, limit=limit)
    return jsonify({"reviews": [review_to_dict(r) for r in rows], **reviews.rating_for(u.id)})
