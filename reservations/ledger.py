import logging
import uuid

from errors import NotFoundError
from models import Hold, PaymentStatus, Reservation, ReservationSeat, db, utcnow
from reservations.pricing import parse_ticket_type

logger = logging.getLogger(__name__)


class ReservationLedger:
    def __init__(self, pricing):
        self.pricing = pricing

    def record(self, hold_id, buyer, seats_with_types, total, created_at=None):
        """Add a pending reservation for a confirmed hold.

        Flushes but does not commit; the caller owns the transaction so the
        reservation and the hold confirmation land together.
        """
        hold = db.session.get(Hold, hold_id)
        if hold is None:
            raise NotFoundError("Hold", hold_id)

        reservation = Reservation(
            id=str(uuid.uuid4()),
            hold_id=hold.id,
            screening_id=hold.screening_id,
            buyer_token=hold.buyer_token,
            first_name=buyer["first_name"],
            last_name=buyer["last_name"],
            email=buyer["email"],
            phone=buyer["phone"],
            total_price=total,
            payment_status=PaymentStatus.PENDING,
            created_at=created_at or utcnow(),
        )
        for (row, number), ticket_type in seats_with_types:
            ticket_type = parse_ticket_type(ticket_type)
            reservation.seats.append(
                ReservationSeat(
                    row=row,
                    number=number,
                    ticket_type=ticket_type,
                    price=self.pricing.price(ticket_type),
                )
            )
        db.session.add(reservation)
        db.session.flush()
        return reservation

    def get(self, reservation_id):
        reservation = db.session.get(Reservation, reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation", reservation_id)
        return reservation

    def mark_paid(self, reservation_id, method=None, reference=None):
        reservation = self.get(reservation_id)
        if reservation.payment_status is PaymentStatus.PAID:
            return reservation

        reservation.payment_status = PaymentStatus.PAID
        reservation.payment_method = method
        reservation.payment_reference = reference
        reservation.paid_at = utcnow()
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.info("Reservation %s marked as paid", reservation.id)
        return reservation

    def list_reservations(self, screening_id=None):
        query = Reservation.query
        if screening_id is not None:
            query = query.filter_by(screening_id=screening_id)
        return query.order_by(Reservation.created_at.desc()).all()
