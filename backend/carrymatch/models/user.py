from sqlalchemy import func
from ..extensions import db
from .enums import id_type, role_enum


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(id_type, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    first_name = db.Column(db.String(120), nullable=True)
    last_name = db.Column(db.String(120), nullable=True)
    role = db.Column(role_enum, nullable=False, server_default="sender")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    trips = db.relationship("Trip", back_populates="traveler", lazy=True)
    shipment_requests = db.relationship("ShipmentRequest", back_populates="sender", lazy=True)
    notifications = db.relationship(
        "Notification",
        back_populates="user",
        lazy=True,
        cascade="all, delete-orphan",
    )

    @property
    def display_name(self) -> str:
        """First name plus last initial, falling back to the email local part."""
        if self.first_name:
            if self.last_name:
                return f"{self.first_name} {self.last_name[0]}."
            return self.first_name
        if self.email:
            return self.email.split("@", 1)[0]
        return "Utilisateur"
