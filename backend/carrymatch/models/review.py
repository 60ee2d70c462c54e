from sqlalchemy import CheckConstraint, Index, UniqueConstraint, func
from ..extensions import db
from .enums import id_type


class Review(db.Model):
    """A participant's rating of the other party once a match is completed."""

    __tablename__ = "reviews"

    id = db.Column(id_type, primary_key=True)
    match_id = db.Column(id_type, db.ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    reviewer_id = db.Column(id_type, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reviewed_id = db.Column(id_type, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating = db.Column(db.SmallInteger, nullable=False)
    comment = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    match = db.relationship("Match")
    reviewer = db.relationship("User", foreign_keys=[reviewer_id])
    reviewed = db.relationship("User", foreign_keys=[reviewed_id])

    __table_args__ = (
        # One review per participant per match
        UniqueConstraint("match_id", "reviewer_id", name="uq_reviews_match_reviewer"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
        Index("idx_reviews_reviewed", "reviewed_id"),
    )
