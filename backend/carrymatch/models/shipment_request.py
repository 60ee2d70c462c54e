from sqlalchemy import func, Index
from ..extensions import db
from .enums import id_type, listing_status_enum


class ShipmentRequest(db.Model):
    __tablename__ = "shipment_requests"

    id = db.Column(id_type, primary_key=True)
    sender_id = db.Column(id_type, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    from_country = db.Column(db.String(120), nullable=False)
    from_city = db.Column(db.String(120), nullable=False)
    to_country = db.Column(db.String(120), nullable=False)
    to_city = db.Column(db.String(120), nullable=False)
    earliest_date = db.Column(db.Date, nullable=False)
    latest_date = db.Column(db.Date, nullable=False)
    weight_kg = db.Column(db.Numeric(6, 2), nullable=False)
    item_type = db.Column(db.String(80), nullable=False)
    notes = db.Column(db.Text)
    status = db.Column(listing_status_enum, nullable=False, server_default="open")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    sender = db.relationship("User", back_populates="shipment_requests")
    matches = db.relationship("Match", back_populates="shipment_request", lazy=True)

    __table_args__ = (
        Index("idx_shipments_status_route", "status", "from_country", "to_country"),
        Index("idx_shipments_window", "earliest_date", "latest_date"),
        Index("idx_shipments_sender", "sender_id"),
    )

    @property
    def route_description(self) -> str:
        return f"{self.from_city} → {self.to_city}"
