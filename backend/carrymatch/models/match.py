from sqlalchemy import func, Index, false
from ..extensions import db
from .enums import id_type, match_status_enum, LIVE_MATCH_STATUSES


class Match(db.Model):
    __tablename__ = "matches"

    id = db.Column(id_type, primary_key=True)
    trip_id = db.Column(id_type, db.ForeignKey("trips.id", ondelete="RESTRICT"), nullable=False)
    shipment_request_id = db.Column(id_type, db.ForeignKey("shipment_requests.id", ondelete="RESTRICT"), nullable=False)
    # User who created the proposal; the other participant accepts or rejects
    proposed_by = db.Column(id_type, db.ForeignKey("users.id", ondelete="SET NULL"))
    status = db.Column(match_status_enum, nullable=False, server_default="pending")
    notes = db.Column(db.Text)

    # Handoff checkpoints, each flipped once
    sender_handed_over = db.Column(db.Boolean, nullable=False, default=False, server_default=false())
    traveler_picked_up = db.Column(db.Boolean, nullable=False, default=False, server_default=false())
    traveler_delivered = db.Column(db.Boolean, nullable=False, default=False, server_default=false())
    sender_received = db.Column(db.Boolean, nullable=False, default=False, server_default=false())
    completed_at = db.Column(db.DateTime(timezone=True))

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    trip = db.relationship("Trip", back_populates="matches")
    shipment_request = db.relationship("ShipmentRequest", back_populates="matches")
    messages = db.relationship(
        "Message",
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="Message.created_at",
    )

    __table_args__ = (
        # Only live matches are unique per pair; a rejected pair can be proposed again
        Index(
            "uq_matches_live_pair",
            "trip_id",
            "shipment_request_id",
            unique=True,
            postgresql_where=status.in_(LIVE_MATCH_STATUSES),
            sqlite_where=status.in_(LIVE_MATCH_STATUSES),
        ),
        Index("idx_matches_trip", "trip_id"),
        Index("idx_matches_shipment", "shipment_request_id"),
        Index("idx_matches_status", "status"),
    )

    @property
    def traveler_id(self):
        return self.trip.traveler_id if self.trip else None

    @property
    def sender_id(self):
        return self.shipment_request.sender_id if self.shipment_request else None

    def participant_ids(self) -> tuple:
        return (self.traveler_id, self.sender_id)

    def counterpart_of(self, user_id):
        """Return the other participant's id, or None if user_id is not a participant."""
        if user_id == self.traveler_id:
            return self.sender_id
        if user_id == self.sender_id:
            return self.traveler_id
        return None
