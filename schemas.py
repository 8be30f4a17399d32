import re
from typing import Any, Dict

from marshmallow import Schema, ValidationError, fields, pre_load, validate, validates, validates_schema


def _strip_strings(data: Dict[str, Any], keys):
    if isinstance(data, dict):
        data = dict(data)
        for key in keys:
            if isinstance(data.get(key), str):
                data[key] = data[key].strip()
    return data


class SeatSchema(Schema):
    row = fields.Int(required=True, strict=True, validate=validate.Range(min=0))
    number = fields.Int(required=True, strict=True, validate=validate.Range(min=0))


class HoldRequestSchema(Schema):
    screening_id = fields.Int(required=True)
    seats = fields.List(fields.Nested(SeatSchema), required=True, validate=validate.Length(min=1))

    @validates_schema
    def validate_unique_seats(self, data: Dict[str, Any], **kwargs):
        seats = [(seat["row"], seat["number"]) for seat in data.get("seats", [])]
        if len(seats) != len(set(seats)):
            raise ValidationError("Each seat may only be selected once", "seats")


class BuyerSchema(Schema):
    first_name = fields.Str(required=True, validate=validate.Length(min=2, max=100))
    last_name = fields.Str(required=True, validate=validate.Length(min=2, max=100))
    email = fields.Email(required=True)
    phone = fields.Str(required=True)

    @pre_load
    def strip_fields(self, data: Dict[str, Any], **kwargs):
        return _strip_strings(data, ("first_name", "last_name", "email", "phone"))

    @validates("phone")
    def validate_phone(self, value: str, **kwargs):
        if len(value) < 9:
            raise ValidationError("Phone number must have at least 9 characters")
        if not re.fullmatch(r"\+?[0-9 ]+", value):
            raise ValidationError("Phone number may only contain digits and spaces")


class TicketSchema(SeatSchema):
    ticket_type = fields.Str(load_default="normal")


class PaymentRequestSchema(Schema):
    method = fields.Str(load_default="card", validate=validate.OneOf(["card", "blik", "transfer"]))
    outcome = fields.Str(load_default="approved", validate=validate.OneOf(["approved", "declined"]))
    buyer = fields.Nested(BuyerSchema, required=True)
    tickets = fields.List(fields.Nested(TicketSchema), load_default=list)


class HallSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    rows = fields.Int(required=True, validate=validate.Range(min=1, max=50))
    seats_per_row = fields.Int(required=True, validate=validate.Range(min=1, max=50))

    @pre_load
    def strip_name(self, data: Dict[str, Any], **kwargs):
        return _strip_strings(data, ("name",))


class MovieSchema(Schema):
    imdb_id = fields.Str(load_default=None)
    title = fields.Str(load_default=None, validate=validate.Length(min=1, max=200))
    year = fields.Str(load_default=None)
    poster = fields.Str(load_default=None)
    description = fields.Str(load_default=None)
    duration_minutes = fields.Int(load_default=None, validate=validate.Range(min=1))
    release_date = fields.Date(load_default=None)
    expiration = fields.Date(load_default=None)

    @validates_schema
    def validate_title_or_imdb(self, data: Dict[str, Any], **kwargs):
        if not data.get("title") and not data.get("imdb_id"):
            raise ValidationError("Either title or imdb_id is required", "title")


class ScreeningSchema(Schema):
    movie_id = fields.Int(required=True)
    hall_id = fields.Int(required=True)
    start_time = fields.DateTime(required=True)


hold_request_schema = HoldRequestSchema()
payment_request_schema = PaymentRequestSchema()
hall_schema = HallSchema()
movie_schema = MovieSchema()
screening_schema = ScreeningSchema()
