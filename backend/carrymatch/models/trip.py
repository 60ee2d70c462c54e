from sqlalchemy import func, Index
from ..extensions import db
from .enums import id_type, listing_status_enum


class Trip(db.Model):
    __tablename__ = "trips"

    id = db.Column(id_type, primary_key=True)
    traveler_id = db.Column(id_type, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    from_country = db.Column(db.String(120), nullable=False)
    from_city = db.Column(db.String(120), nullable=False)
    to_country = db.Column(db.String(120), nullable=False)
    to_city = db.Column(db.String(120), nullable=False)
    departure_date = db.Column(db.Date, nullable=False)
    arrival_date = db.Column(db.Date)
    # 0 means the traveler did not state a capacity
    max_weight_kg = db.Column(db.Numeric(6, 2), nullable=False, server_default="0")
    notes = db.Column(db.Text)
    status = db.Column(listing_status_enum, nullable=False, server_default="open")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    traveler = db.relationship("User", back_populates="trips")
    matches = db.relationship("Match", back_populates="trip", lazy=True)

    __table_args__ = (
        Index("idx_trips_status_route", "status", "from_country", "to_country"),
        Index("idx_trips_departure", "departure_date"),
        Index("idx_trips_traveler", "traveler_id"),
    )

    @property
    def route_description(self) -> str:
        return f"{self.from_city} → {self.to_city}"
