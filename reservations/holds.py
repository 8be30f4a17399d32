"""
Time-boxed seat holds.

A hold is ``active`` until it is confirmed, released or expires. Expiry is
checked lazily whenever a hold is touched and eagerly by ``sweep``, which
pops due holds off a heap ordered by ``expires_at``.
"""

import heapq
import logging
import threading
import uuid
from datetime import timedelta

from errors import (
    HoldExpiredError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
    ScreeningClosedError,
)
from models import Hold, HoldStatus, db, utcnow

logger = logging.getLogger(__name__)


class HoldManager:
    def __init__(self, seat_map, ledger, hold_duration=180, max_seats=10, clock=utcnow):
        self.seat_map = seat_map
        self.ledger = ledger
        self.hold_duration = timedelta(seconds=hold_duration)
        self.max_seats = max_seats
        self.clock = clock
        self._expiry_heap = []
        self._heap_lock = threading.Lock()

    # -----------------------
    # Lookups
    # -----------------------
    def get_hold(self, hold_id):
        hold = db.session.get(Hold, hold_id)
        if hold is None:
            raise NotFoundError("Hold", hold_id)
        return hold

    def refresh(self, hold_id):
        """Return the hold, expiring it first if its time is up."""
        hold = self.get_hold(hold_id)
        if hold.status is HoldStatus.ACTIVE and self._is_past_due(hold):
            with self.seat_map.transaction(hold.screening_id):
                hold = self._reload(hold_id)
                if hold.status is HoldStatus.ACTIVE and self._is_past_due(hold):
                    self._expire(hold)
        return hold

    def list_holds(self, status=None, screening_id=None):
        query = Hold.query
        if status is not None:
            query = query.filter_by(status=HoldStatus(status))
        if screening_id is not None:
            query = query.filter_by(screening_id=screening_id)
        return query.order_by(Hold.created_at.desc()).all()

    # -----------------------
    # State transitions
    # -----------------------
    def create_hold(self, screening_id, seats, buyer_token):
        seats = list(seats)
        if len(seats) > self.max_seats:
            raise InvalidRequestError(
                f"A hold may contain at most {self.max_seats} seats", field="seats"
            )

        screening = self.seat_map.catalog.get_screening(screening_id)
        now = self.clock()
        if screening.start_time <= now:
            raise ScreeningClosedError(screening_id)

        hold = Hold(
            id=str(uuid.uuid4()),
            screening_id=screening_id,
            buyer_token=buyer_token,
            seats=[],
            status=HoldStatus.ACTIVE,
            created_at=now,
            expires_at=now + self.hold_duration,
        )
        # committed on its own so a conflict below does not undo it
        with self.seat_map.transaction(screening_id):
            self._expire_stale(screening_id, now)

        with self.seat_map.transaction(screening_id):
            db.session.add(hold)
            reserved = self.seat_map.try_reserve(screening_id, seats, hold.id, hold.expires_at)
            hold.seats = [[row, number] for row, number in reserved]

        self._schedule(hold)
        logger.info(
            "Hold %s created for screening %s seats=%s expires_at=%s",
            hold.id, screening_id, reserved, hold.expires_at.isoformat(),
        )
        return hold

    def confirm_hold(self, hold_id, buyer, seats_with_types, total, charge=None):
        """Confirm an active hold and record its reservation in one transaction.

        ``charge`` runs under the screening lock once the hold is known to be
        active and within its time, so a payment is only taken for a hold that
        can still be confirmed. It raises to abort the confirmation.
        """
        hold = self.get_hold(hold_id)
        reservation = None
        expired = False

        with self.seat_map.transaction(hold.screening_id):
            hold = self._reload(hold_id)
            now = self.clock()
            if hold.status is HoldStatus.EXPIRED:
                expired = True
            elif hold.status is not HoldStatus.ACTIVE:
                raise InvalidStateError(hold_id, hold.status, "confirm")
            elif self._is_past_due(hold, now):
                self._expire(hold, now)
                expired = True
            else:
                if charge is not None:
                    charge()
                self._transition(hold, HoldStatus.CONFIRMED, "confirm", now)
                reservation = self.ledger.record(hold.id, buyer, seats_with_types, total, created_at=now)
                self.seat_map.confirm(hold.screening_id, hold.id, reservation.id)

        if expired:
            raise HoldExpiredError(hold_id)

        logger.info("Hold %s confirmed as reservation %s", hold_id, reservation.id)
        return reservation

    def cancel_hold(self, hold_id):
        hold = self.get_hold(hold_id)
        with self.seat_map.transaction(hold.screening_id):
            hold = self._reload(hold_id)
            self._transition(hold, HoldStatus.RELEASED, "cancel", self.clock())
            self.seat_map.release(hold.screening_id, hold.id)
        logger.info("Hold %s released by buyer", hold_id)
        return hold

    # -----------------------
    # Expiry
    # -----------------------
    def sweep(self, now=None):
        """Expire every active hold whose time is up. Returns their ids."""
        now = now or self.clock()
        due = []
        with self._heap_lock:
            while self._expiry_heap and self._expiry_heap[0][0] < now:
                due.append(heapq.heappop(self._expiry_heap))

        expired = []
        for expires_at, hold_id in due:
            try:
                if self._expire_if_due(hold_id, now):
                    expired.append(hold_id)
            except Exception:
                logger.exception("Failed to expire hold %s, will retry", hold_id)
                with self._heap_lock:
                    heapq.heappush(self._expiry_heap, (expires_at, hold_id))

        if expired:
            logger.info("Sweep expired %d hold(s)", len(expired))
        return expired

    def restore(self):
        active = Hold.query.filter_by(status=HoldStatus.ACTIVE).all()
        with self._heap_lock:
            self._expiry_heap = [(hold.expires_at, hold.id) for hold in active]
            heapq.heapify(self._expiry_heap)
        return len(active)

    def pending_expiries(self):
        with self._heap_lock:
            return len(self._expiry_heap)

    def _schedule(self, hold):
        with self._heap_lock:
            heapq.heappush(self._expiry_heap, (hold.expires_at, hold.id))

    def _expire_if_due(self, hold_id, now):
        hold = db.session.get(Hold, hold_id)
        if hold is None or hold.status is not HoldStatus.ACTIVE:
            return False
        with self.seat_map.transaction(hold.screening_id):
            hold = self._reload(hold_id)
            if hold.status is not HoldStatus.ACTIVE or not self._is_past_due(hold, now):
                return False
            self._expire(hold, now)
        return True

    def _expire_stale(self, screening_id, now):
        stale = Hold.query.filter(
            Hold.screening_id == screening_id,
            Hold.status == HoldStatus.ACTIVE,
            Hold.expires_at < now,
        ).all()
        for hold in stale:
            self._expire(hold, now)

    def _expire(self, hold, now=None):
        now = now or self.clock()
        self._transition(hold, HoldStatus.EXPIRED, "expire", now)
        self.seat_map.release(hold.screening_id, hold.id)
        logger.info("Hold %s expired, seats %s released", hold.id, hold.seat_pairs)

    # -----------------------
    # Helpers
    # -----------------------
    def _is_past_due(self, hold, now=None):
        return (now or self.clock()) > hold.expires_at

    def _reload(self, hold_id):
        hold = db.session.get(Hold, hold_id, populate_existing=True)
        if hold is None:
            raise NotFoundError("Hold", hold_id)
        return hold

    def _transition(self, hold, new_status, action, now):
        # Conditional update so a writer in another process cannot apply a
        # second transition to the same hold.
        updated = Hold.query.filter_by(id=hold.id, status=HoldStatus.ACTIVE).update(
            {"status": new_status, "closed_at": now}, synchronize_session=False
        )
        if not updated:
            db.session.refresh(hold)
            raise InvalidStateError(hold.id, hold.status, action)
        hold.status = new_status
        hold.closed_at = now
