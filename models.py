import enum
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class HoldStatus(str, enum.Enum):
    ACTIVE = "active"
    CONFIRMED = "confirmed"
    RELEASED = "released"
    EXPIRED = "expired"

    @property
    def is_terminal(self):
        return self is not HoldStatus.ACTIVE


class SeatState(str, enum.Enum):
    AVAILABLE = "available"
    HELD = "held"
    BOOKED = "booked"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"


class TicketType(str, enum.Enum):
    NORMAL = "normal"
    REDUCED = "reduced"


class Hall(db.Model):
    __tablename__ = 'halls'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    rows = db.Column(db.Integer, nullable=False)
    seats_per_row = db.Column(db.Integer, nullable=False)

    @property
    def capacity(self):
        return self.rows * self.seats_per_row

    def contains(self, row, number):
        return 0 <= row < self.rows and 0 <= number < self.seats_per_row


class Movie(db.Model):
    __tablename__ = 'movies'
    id = db.Column(db.Integer, primary_key=True)
    imdb_id = db.Column(db.String(20), unique=True)
    title = db.Column(db.String(200), nullable=False)
    year = db.Column(db.String(10))
    poster = db.Column(db.String(300))
    description = db.Column(db.Text)
    duration_minutes = db.Column(db.Integer)
    release_date = db.Column(db.Date)
    expiration = db.Column(db.Date)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class Screening(db.Model):
    __tablename__ = 'screenings'
    id = db.Column(db.Integer, primary_key=True)
    movie_id = db.Column(db.Integer, db.ForeignKey('movies.id'), nullable=False, index=True)
    hall_id = db.Column(db.Integer, db.ForeignKey('halls.id'), nullable=False)
    start_time = db.Column(db.DateTime, nullable=False)

    movie = db.relationship("Movie", lazy="joined")
    hall = db.relationship("Hall", lazy="joined")


class Hold(db.Model):
    __tablename__ = 'holds'
    id = db.Column(db.String(36), primary_key=True)
    screening_id = db.Column(db.Integer, db.ForeignKey('screenings.id'), nullable=False, index=True)
    buyer_token = db.Column(db.String(255), nullable=False)
    # list of [row, number] pairs
    seats = db.Column(db.JSON, nullable=False)
    status = db.Column(db.Enum(HoldStatus), nullable=False, default=HoldStatus.ACTIVE, index=True)
    created_at = db.Column(db.DateTime, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    closed_at = db.Column(db.DateTime)

    @property
    def seat_pairs(self):
        return [(row, number) for row, number in self.seats]


class SeatClaim(db.Model):
    """A seat that is not available. No row means the seat is free."""

    __tablename__ = 'seat_claims'
    __table_args__ = (
        db.UniqueConstraint('screening_id', 'row', 'number', name='uq_screening_seat'),
    )
    id = db.Column(db.Integer, primary_key=True)
    screening_id = db.Column(db.Integer, db.ForeignKey('screenings.id'), nullable=False, index=True)
    row = db.Column(db.Integer, nullable=False)
    number = db.Column(db.Integer, nullable=False)
    state = db.Column(db.Enum(SeatState), nullable=False)
    hold_id = db.Column(db.String(36), db.ForeignKey('holds.id'), nullable=False, index=True)
    reservation_id = db.Column(db.String(36), db.ForeignKey('reservations.id'))
    expires_at = db.Column(db.DateTime)


class Reservation(db.Model):
    __tablename__ = 'reservations'
    id = db.Column(db.String(36), primary_key=True)
    hold_id = db.Column(db.String(36), db.ForeignKey('holds.id'), unique=True, nullable=False)
    screening_id = db.Column(db.Integer, db.ForeignKey('screenings.id'), nullable=False, index=True)
    buyer_token = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(50), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)
    payment_status = db.Column(db.Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    payment_method = db.Column(db.String(20))
    payment_reference = db.Column(db.String(64))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    paid_at = db.Column(db.DateTime)

    seats = db.relationship("ReservationSeat", cascade="all, delete-orphan", lazy="selectin")


class ReservationSeat(db.Model):
    __tablename__ = 'reservation_seats'
    id = db.Column(db.Integer, primary_key=True)
    reservation_id = db.Column(db.String(36), db.ForeignKey('reservations.id'), nullable=False, index=True)
    row = db.Column(db.Integer, nullable=False)
    number = db.Column(db.Integer, nullable=False)
    ticket_type = db.Column(db.Enum(TicketType), nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)


class PaymentAttempt(db.Model):
    __tablename__ = 'payment_attempts'
    id = db.Column(db.Integer, primary_key=True)
    hold_id = db.Column(db.String(36), db.ForeignKey('holds.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    method = db.Column(db.String(20), nullable=False)
    outcome = db.Column(db.String(20), nullable=False)
    reference = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
