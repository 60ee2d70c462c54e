from sqlalchemy import func, Index
from ..extensions import db
from .enums import id_type


class Message(db.Model):
    __tablename__ = "messages"

    id = db.Column(id_type, primary_key=True)
    match_id = db.Column(id_type, db.ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    sender_id = db.Column(id_type, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    match = db.relationship("Match", back_populates="messages")

    __table_args__ = (
        Index("idx_messages_match_created", "match_id", "created_at"),
    )
