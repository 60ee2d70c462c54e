from sqlalchemy import Index, UniqueConstraint, func, true
from ..extensions import db
from .enums import id_type


class ShipmentAlert(db.Model):
    """A traveler's standing interest in new shipment requests on a route.

    Cities are optional: an alert without a city covers the whole country.
    route_key is the normalized route (country codes, folded city names) and
    keeps one alert per user and route even when cities are NULL.
    """

    __tablename__ = "shipment_alerts"

    id = db.Column(id_type, primary_key=True)
    user_id = db.Column(id_type, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    from_country = db.Column(db.String(120), nullable=False)
    from_city = db.Column(db.String(120))
    to_country = db.Column(db.String(120), nullable=False)
    to_city = db.Column(db.String(120))
    route_key = db.Column(db.String(500), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default=true())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    user = db.relationship("User")

    __table_args__ = (
        UniqueConstraint("user_id", "route_key", name="uq_shipment_alerts_user_route"),
        Index("idx_shipment_alerts_active", "is_active", "user_id"),
    )

    @property
    def route_description(self) -> str:
        return f"{self.from_city or self.from_country} → {self.to_city or self.to_country}"
