"""Trip / shipment compatibility rules.

The marketplace is browsed in two directions. A sender looks for trips that
can carry one of their shipments (``evaluate_trip_for_shipment``) and a
traveler looks for shipments their trip can carry
(``evaluate_shipment_for_trip``). Both share the structural checks and
``evaluate_flexible_match`` for the destination and dates. They differ on the
origin: the sender's view accepts a same-region origin, the traveler's view
only a literal city match.

None of these functions raise. Anything incompatible or malformed yields None.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, NamedTuple

from . import regions

DEFAULT_DATE_TOLERANCE_DAYS = 3

EXACT = "exact"
FLEXIBLE_DATE = "flexible_date"
FLEXIBLE_LOCATION = "flexible_location"
FLEXIBLE_BOTH = "flexible_both"
MATCH_TYPES = (EXACT, FLEXIBLE_DATE, FLEXIBLE_LOCATION, FLEXIBLE_BOTH)


class DateCheck(NamedTuple):
    compatible: bool
    exact: bool
    difference_days: int


@dataclass
class CompatibilityCandidate:
    trip: Any
    shipment: Any
    match_type: str
    date_difference_days: int = 0
    region_name: str | None = None
    # Filled in by candidate discovery when a match already exists for the pair
    match_id: int | None = None
    match_status: str | None = None

    @property
    def is_exact(self) -> bool:
        return self.match_type == EXACT

    @property
    def is_exact_date(self) -> bool:
        return self.match_type in (EXACT, FLEXIBLE_LOCATION)

    @property
    def is_exact_location(self) -> bool:
        return self.match_type in (EXACT, FLEXIBLE_DATE)

    def to_dict(self) -> dict:
        return {
            "tripId": getattr(self.trip, "id", None),
            "shipmentRequestId": getattr(self.shipment, "id", None),
            "matchType": self.match_type,
            "isExactDate": self.is_exact_date,
            "isExactLocation": self.is_exact_location,
            "dateDifferenceDays": self.date_difference_days,
            "regionName": self.region_name,
            "matchId": self.match_id,
            "matchStatus": self.match_status,
        }


def _as_date(value) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _as_weight(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def evaluate_date(departure, earliest, latest, tolerance_days: int = DEFAULT_DATE_TOLERANCE_DAYS) -> DateCheck:
    """Place a departure date against a shipment window widened by ``tolerance_days``.

    ``difference_days`` is the distance to the nearest boundary of the original
    window, 0 when the departure falls inside it.
    """
    dep, lo, hi = _as_date(departure), _as_date(earliest), _as_date(latest)
    if dep is None or lo is None or hi is None or lo > hi:
        return DateCheck(False, False, 0)
    if lo <= dep <= hi:
        return DateCheck(True, True, 0)
    tolerance = timedelta(days=max(0, int(tolerance_days)))
    if dep < lo:
        difference = (lo - dep).days
    else:
        difference = (dep - hi).days
    compatible = lo - tolerance <= dep <= hi + tolerance
    return DateCheck(compatible, False, difference if compatible else 0)


def weight_fits(trip, shipment) -> bool:
    # Unset or zero capacity is treated as unconstrained
    capacity = _as_weight(getattr(trip, "max_weight_kg", None))
    if capacity <= 0:
        return True
    return capacity >= _as_weight(getattr(shipment, "weight_kg", None))


def same_route_countries(trip, shipment) -> bool:
    return regions.same_country(trip.from_country, shipment.from_country) and regions.same_country(
        trip.to_country, shipment.to_country
    )


def _classify(exact_date: bool, exact_location: bool) -> str:
    if exact_date and exact_location:
        return EXACT
    if not exact_date and not exact_location:
        return FLEXIBLE_BOTH
    if not exact_date:
        return FLEXIBLE_DATE
    return FLEXIBLE_LOCATION


def evaluate_flexible_match(trip, shipment, tolerance_days: int = DEFAULT_DATE_TOLERANCE_DAYS) -> CompatibilityCandidate | None:
    """Destination and date side of a pairing, shared by both browse directions."""
    date_check = evaluate_date(trip.departure_date, shipment.earliest_date, shipment.latest_date, tolerance_days)
    if not date_check.compatible:
        return None
    if not regions.same_country(trip.to_country, shipment.to_country):
        return None

    exact_city = regions.cities_match(trip.to_city, shipment.to_city, shipment.to_country)
    in_region = not exact_city and regions.same_region(
        trip.to_city, trip.to_country, shipment.to_city, shipment.to_country
    )
    if not exact_city and not in_region:
        return None

    return CompatibilityCandidate(
        trip=trip,
        shipment=shipment,
        match_type=_classify(date_check.exact, exact_city),
        date_difference_days=date_check.difference_days,
        region_name=regions.region_name(shipment.to_city, shipment.to_country) if in_region else None,
    )


def evaluate_trip_for_shipment(trip, shipment, tolerance_days: int = DEFAULT_DATE_TOLERANCE_DAYS) -> CompatibilityCandidate | None:
    """Sender browsing trips: the origin may match by city or by region."""
    if not same_route_countries(trip, shipment):
        return None
    origin_ok = regions.cities_match(trip.from_city, shipment.from_city, shipment.from_country) or regions.same_region(
        trip.from_city, trip.from_country, shipment.from_city, shipment.from_country
    )
    if not origin_ok:
        return None
    if not weight_fits(trip, shipment):
        return None
    return evaluate_flexible_match(trip, shipment, tolerance_days)


def evaluate_shipment_for_trip(trip, shipment, tolerance_days: int = DEFAULT_DATE_TOLERANCE_DAYS) -> CompatibilityCandidate | None:
    """Traveler browsing shipments: the origin must match by city, no region fallback."""
    if not same_route_countries(trip, shipment):
        return None
    if not regions.cities_match(trip.from_city, shipment.from_city, shipment.from_country):
        return None
    if not weight_fits(trip, shipment):
        return None
    return evaluate_flexible_match(trip, shipment, tolerance_days)
