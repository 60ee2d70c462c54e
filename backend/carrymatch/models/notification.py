from sqlalchemy import Index, func
from ..extensions import db
from .enums import id_type, json_type, notification_kind_enum


class Notification(db.Model):
    """In-app notification; read_at is the server-side read receipt."""

    __tablename__ = "notifications"

    id = db.Column(id_type, primary_key=True)
    user_id = db.Column(id_type, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    kind = db.Column(notification_kind_enum, nullable=False)
    match_id = db.Column(id_type, db.ForeignKey("matches.id", ondelete="CASCADE"))
    title = db.Column(db.String(200))
    body = db.Column(db.Text)
    payload = db.Column(json_type)
    email_queued_at = db.Column(db.DateTime(timezone=True))
    read_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    user = db.relationship("User", back_populates="notifications")

    __table_args__ = (
        Index("idx_notifications_user_read", "user_id", "read_at"),
    )
