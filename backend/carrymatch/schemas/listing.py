from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate, validates_schema


def _not_blank(value: str) -> None:
    if not value or not value.strip():
        raise ValidationError("Must not be blank.")


def _place(key: str):
    return fields.Str(required=True, data_key=key, validate=[validate.Length(max=120), _not_blank])


class _ListingSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    from_country = _place("fromCountry")
    from_city = _place("fromCity")
    to_country = _place("toCountry")
    to_city = _place("toCity")
    notes = fields.Str(allow_none=True, validate=validate.Length(max=2000))


class TripSchema(_ListingSchema):
    departure_date = fields.Date(required=True, data_key="departureDate")
    arrival_date = fields.Date(allow_none=True, data_key="arrivalDate")
    max_weight_kg = fields.Float(load_default=0, data_key="maxWeightKg", validate=validate.Range(min=0, max=1000))

    @validates_schema
    def _arrival_after_departure(self, data, **kwargs):
        arrival = data.get("arrival_date")
        if arrival and arrival < data["departure_date"]:
            raise ValidationError("Arrival date cannot be before departure date.", "arrivalDate")


class ShipmentRequestSchema(_ListingSchema):
    earliest_date = fields.Date(required=True, data_key="earliestDate")
    latest_date = fields.Date(required=True, data_key="latestDate")
    weight_kg = fields.Float(required=True, data_key="weightKg", validate=validate.Range(min=0, min_inclusive=False, max=1000))
    item_type = fields.Str(required=True, data_key="itemType", validate=[validate.Length(max=80), _not_blank])

    @validates_schema
    def _window_ordered(self, data, **kwargs):
        if data["earliest_date"] > data["latest_date"]:
            raise ValidationError("Earliest date must be on or before latest date.", "latestDate")


class ProposalSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    trip_id = fields.Int(required=True, data_key="tripId")
    shipment_request_id = fields.Int(required=True, data_key="shipmentRequestId")
    notes = fields.Str(allow_none=True, validate=validate.Length(max=2000))


class MessageSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    content = fields.Str(required=True, validate=[validate.Length(max=2000), _not_blank])


class ReviewSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    rating = fields.Int(required=True, strict=True, validate=validate.Range(min=1, max=5))
    comment = fields.Str(allow_none=True, validate=validate.Length(max=2000))


def _optional_place(key: str):
    return fields.Str(allow_none=True, data_key=key, validate=validate.Length(max=120))


class ShipmentAlertSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    from_country = _place("fromCountry")
    from_city = _optional_place("fromCity")
    to_country = _place("toCountry")
    to_city = _optional_place("toCity")
