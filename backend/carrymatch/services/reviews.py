"""Ratings left by participants of completed matches."""
from __future__ import annotations

import logging

from marshmallow import ValidationError as SchemaError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import AlreadyExists, ValidationError
from ..extensions import db
from ..models.review import Review
from ..schemas.listing import ReviewSchema
from . import audit
from .lifecycle import get_for_participant

logger = logging.getLogger(__name__)

_review_schema = ReviewSchema()


def _existing(match_id: int, reviewer_id: int) -> Review | None:
    return Review.query.filter_by(match_id=match_id, reviewer_id=reviewer_id).first()


def leave_review(actor_id: int, match_id: int, data: dict | None) -> Review:
    m = get_for_participant(actor_id, match_id)
    if m.status != "completed":
        raise ValidationError("Only completed matches can be reviewed")
    try:
        fields = _review_schema.load(data or {})
    except SchemaError as err:
        raise ValidationError("Invalid review", details=err.messages)

    existing = _existing(m.id, actor_id)
    if existing is not None:
        raise AlreadyExists("You already reviewed this match", details={"reviewId": existing.id})

    review = Review(
        match_id=m.id,
        reviewer_id=actor_id,
        reviewed_id=m.counterpart_of(actor_id),
        rating=fields["rating"],
        comment=(fields.get("comment") or "").strip() or None,
    )
    db.session.add(review)
    try:
        db.session.flush()
    except IntegrityError:
        # Double submit from another request
        db.session.rollback()
        existing = _existing(match_id, actor_id)
        details = {"reviewId": existing.id} if existing else None
        raise AlreadyExists("You already reviewed this match", details=details)

    audit.record(actor_id, "review_created", "match", m.id, rating=review.rating, reviewedId=review.reviewed_id)
    db.session.commit()
    logger.info("User %s rated user %s %s/5 on match %s", actor_id, review.reviewed_id, review.rating, m.id)
    return review


def list_for_match(user_id: int, match_id: int) -> list[Review]:
    m = get_for_participant(user_id, match_id)
    return Review.query.filter_by(match_id=m.id).order_by(Review.created_at.asc(), Review.id.asc()).all()


def list_received(user_id: int, limit: int = 50) -> list[Review]:
    return (
        Review.query
        .filter(Review.reviewed_id == user_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .limit(max(1, min(200, limit)))
        .all()
    )


def ratings_for(user_ids) -> dict[int, dict]:
    """Average rating and review count per user; users without reviews get (None, 0)."""
    ids = {uid for uid in user_ids if uid is not None}
    out = {uid: {"averageRating": None, "reviewsCount": 0} for uid in ids}
    if not ids:
        return out
    rows = (
        db.session.query(Review.reviewed_id, func.avg(Review.rating), func.count(Review.id))
        .filter(Review.reviewed_id.in_(ids))
        .group_by(Review.reviewed_id)
        .all()
    )
    for uid, average, count in rows:
        out[uid] = {"averageRating": round(float(average), 2), "reviewsCount": int(count)}
    return out


def rating_for(user_id: int) -> dict:
    return ratings_for([user_id])[user_id]
