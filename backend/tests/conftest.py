"""
Pytest configuration and shared fixtures for the carrymatch backend.

Every test that touches the store gets a fresh in-memory SQLite database.
"""

from datetime import date, timedelta

import pytest

from carrymatch import create_app
from carrymatch.extensions import db
from carrymatch.models.shipment_request import ShipmentRequest
from carrymatch.models.trip import Trip
from carrymatch.models.user import User


# ==============================================================================
# APPLICATION FIXTURES
# ==============================================================================

@pytest.fixture
def app():
    app = create_app("testing", overrides={"SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def as_user(client):
    """Request helper that authenticates with the X-User-Id header."""

    def _request(method, url, user, **kwargs):
        headers = kwargs.pop("headers", {})
        headers["X-User-Id"] = str(user.id if hasattr(user, "id") else user)
        return client.open(url, method=method.upper(), headers=headers, **kwargs)

    return _request


# ==============================================================================
# DATA FIXTURES
# ==============================================================================

@pytest.fixture
def today():
    return date.today()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(first_name="Test", last_name=None, role="sender", email=None):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.test",
            first_name=first_name,
            last_name=last_name,
            role=role,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_trip(app, today):
    def _make(traveler, **overrides):
        fields = {
            "from_country": "France",
            "from_city": "Paris",
            "to_country": "Algérie",
            "to_city": "Alger",
            "departure_date": today + timedelta(days=10),
            "max_weight_kg": 20,
            "status": "open",
        }
        fields.update(overrides)
        trip = Trip(traveler_id=traveler.id, **fields)
        db.session.add(trip)
        db.session.commit()
        return trip

    return _make


@pytest.fixture
def make_shipment(app, today):
    def _make(sender, **overrides):
        fields = {
            "from_country": "France",
            "from_city": "Paris",
            "to_country": "Algérie",
            "to_city": "Alger",
            "earliest_date": today + timedelta(days=8),
            "latest_date": today + timedelta(days=12),
            "weight_kg": 5,
            "item_type": "documents",
            "status": "open",
        }
        fields.update(overrides)
        shipment = ShipmentRequest(sender_id=sender.id, **fields)
        db.session.add(shipment)
        db.session.commit()
        return shipment

    return _make


@pytest.fixture
def pair(make_user, make_trip, make_shipment):
    """A traveler, a sender and a compatible trip / shipment request."""
    traveler = make_user("Karim", "Benali", role="traveler")
    sender = make_user("Sophie", "Martin", role="sender")
    trip = make_trip(traveler)
    shipment = make_shipment(sender)
    return traveler, sender, trip, shipment


# ==============================================================================
# CONCURRENCY HELPERS
# ==============================================================================

_MATCH_STATE = (
    "status",
    "sender_handed_over",
    "traveler_picked_up",
    "traveler_delivered",
    "sender_received",
    "completed_at",
)


@pytest.fixture
def concurrent_write(monkeypatch):
    """Interleave another request between a service's read and its conditional write.

    Patches ``module.load_match`` so that its first call reads the match,
    lets ``competitor(match_id)`` change and commit the row, then hands the
    service the values it read before the competitor ran. Later calls read
    the store normally. Returns the list of loaded match ids.
    """
    from sqlalchemy.orm.attributes import set_committed_value

    from carrymatch.services import lifecycle

    real_load = lifecycle.load_match

    def _install(module, competitor):
        loads = []

        def _load(match_id):
            loads.append(match_id)
            m = real_load(match_id)
            if len(loads) > 1:
                return m
            before = {key: getattr(m, key) for key in _MATCH_STATE}
            competitor(match_id)
            db.session.commit()
            for key, value in before.items():
                set_committed_value(m, key, value)
            return m

        monkeypatch.setattr(module, "load_match", _load)
        return loads

    return _install
