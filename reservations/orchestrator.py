import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Tuple

from errors import AuthorizationError, HoldExpiredError, InvalidRequestError, InvalidStateError, PaymentDeclinedError
from models import HoldStatus, SeatState, TicketType
from reservations.pricing import parse_ticket_type

logger = logging.getLogger(__name__)


@dataclass
class HoldView:
    hold_id: str
    screening_id: int
    seats: List[Tuple[int, int]]
    status: HoldStatus
    created_at: datetime
    expires_at: datetime
    seconds_remaining: int

    @classmethod
    def from_hold(cls, hold, now):
        remaining = 0
        if hold.status is HoldStatus.ACTIVE:
            remaining = max(0, int((hold.expires_at - now).total_seconds()))
        return cls(
            hold_id=hold.id,
            screening_id=hold.screening_id,
            seats=hold.seat_pairs,
            status=hold.status,
            created_at=hold.created_at,
            expires_at=hold.expires_at,
            seconds_remaining=remaining,
        )

    def to_dict(self):
        return {
            "hold_id": self.hold_id,
            "screening_id": self.screening_id,
            "seats": [{"row": row, "number": number} for row, number in self.seats],
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "seconds_remaining": self.seconds_remaining,
        }


class BookingOrchestrator:
    def __init__(self, catalog, seat_map, holds, pricing, ledger, gateway):
        self.catalog = catalog
        self.seat_map = seat_map
        self.holds = holds
        self.pricing = pricing
        self.ledger = ledger
        self.gateway = gateway

    def _view(self, hold):
        return HoldView.from_hold(hold, self.holds.clock())

    @staticmethod
    def _check_owner(hold_or_reservation, buyer_token):
        if buyer_token is not None and hold_or_reservation.buyer_token != buyer_token:
            raise AuthorizationError("This hold belongs to another buyer")

    def select_seats(self, screening_id, seats, buyer_token):
        hold = self.holds.create_hold(screening_id, seats, buyer_token)
        return self._view(hold)

    def get_hold(self, hold_id, buyer_token=None):
        hold = self.holds.refresh(hold_id)
        self._check_owner(hold, buyer_token)
        return self._view(hold)

    def submit_payment(self, hold_id, method, outcome, buyer, tickets=None, buyer_token=None):
        """Charge for an active hold and turn it into a paid reservation.

        A declined payment leaves the hold active so the buyer can retry
        until it expires.
        """
        hold = self.holds.refresh(hold_id)
        self._check_owner(hold, buyer_token)
        if hold.status is HoldStatus.EXPIRED:
            raise HoldExpiredError(hold_id)
        if hold.status is not HoldStatus.ACTIVE:
            raise InvalidStateError(hold_id, hold.status, "pay for")

        seats_with_types = self._assign_ticket_types(hold, tickets or [])
        total = self.pricing.total(seats_with_types)

        results = []

        def charge():
            result = self.gateway.charge(hold_id, total, method, outcome)
            results.append(result)
            if not result.approved:
                logger.warning("Payment declined for hold %s, hold stays active", hold_id)
                raise PaymentDeclinedError(hold_id, result.reference)

        try:
            reservation = self.holds.confirm_hold(hold_id, buyer, seats_with_types, total, charge=charge)
        except Exception:
            # money was taken but the hold did not become a reservation
            if results and results[0].approved:
                self.gateway.void(results[0].reference)
            raise

        result = results[0]
        return self.ledger.mark_paid(reservation.id, method=result.method.value, reference=result.reference)

    def cancel(self, hold_id, buyer_token=None):
        hold = self.holds.get_hold(hold_id)
        self._check_owner(hold, buyer_token)
        return self._view(self.holds.cancel_hold(hold_id))

    def get_reservation(self, reservation_id, buyer_token=None):
        reservation = self.ledger.get(reservation_id)
        self._check_owner(reservation, buyer_token)
        return reservation

    def seat_map_view(self, screening_id, include_ids=False):
        screening = self.catalog.get_screening(screening_id)
        hall = screening.hall
        statuses = self.seat_map.get_status(screening_id, now=self.holds.clock())
        seats = []
        for row in range(hall.rows):
            for number in range(hall.seats_per_row):
                status = statuses[(row, number)]
                entry = {"row": row, "number": number, "status": status.state.value}
                if status.state is SeatState.HELD:
                    entry["expires_at"] = status.expires_at.isoformat() if status.expires_at else None
                if include_ids:
                    entry["hold_id"] = status.hold_id
                    entry["reservation_id"] = status.reservation_id
                seats.append(entry)
        return {
            "screening_id": screening.id,
            "hall": {"id": hall.id, "name": hall.name, "rows": hall.rows, "seats_per_row": hall.seats_per_row},
            "available": sum(1 for seat in seats if seat["status"] == SeatState.AVAILABLE.value),
            "seats": seats,
        }

    def _assign_ticket_types(self, hold, tickets):
        # seats without a ticket entry are priced as normal
        held = hold.seat_pairs
        types = {seat: TicketType.NORMAL for seat in held}
        for ticket in tickets:
            seat = (ticket["row"], ticket["number"])
            if seat not in types:
                raise InvalidRequestError(
                    f"Seat ({seat[0]}, {seat[1]}) is not part of this hold", field="tickets"
                )
            types[seat] = parse_ticket_type(ticket.get("ticket_type", TicketType.NORMAL))
        return [(seat, types[seat]) for seat in held]
