from sqlalchemy import Index, func
from ..extensions import db
from .enums import id_type, json_type


class AuditLog(db.Model):
    """Who moved a listing or match, and from which state.

    action is "<entity>_<verb>" (match_proposed, match_checkpoint, trip_closed...).
    """

    __tablename__ = "audit_logs"

    id = db.Column(id_type, primary_key=True)
    actor_user_id = db.Column(id_type, db.ForeignKey("users.id", ondelete="SET NULL"))
    action = db.Column(db.String(64), nullable=False)
    # "trip", "shipment_request", "match" or "shipment_alert"
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(id_type, nullable=False)
    details = db.Column(json_type)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    actor = db.relationship("User", foreign_keys=[actor_user_id])

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_actor", "actor_user_id"),
    )
