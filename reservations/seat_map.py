import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError

from errors import InvalidRequestError, NotFoundError, SeatConflictError, SeatMapBusyError
from models import SeatClaim, SeatState, db

logger = logging.getLogger(__name__)


@dataclass
class SeatStatus:
    state: SeatState
    hold_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    reservation_id: Optional[str] = None

    @classmethod
    def from_claim(cls, claim):
        if claim.state is SeatState.BOOKED:
            return cls(SeatState.BOOKED, reservation_id=claim.reservation_id)
        return cls(SeatState.HELD, hold_id=claim.hold_id, expires_at=claim.expires_at)


AVAILABLE = SeatStatus(SeatState.AVAILABLE)


class SeatStatusMap(dict):
    # seats without a claim read as available
    def __missing__(self, key):
        return AVAILABLE


class ScreeningLocks:
    """Re-entrant lock per screening with bounded acquisition.

    An entry lives only while some thread holds or waits on it.
    """

    def __init__(self, timeout=5.0):
        self.timeout = timeout
        self._locks = {}
        self._guard = threading.Lock()

    def __len__(self):
        with self._guard:
            return len(self._locks)

    @contextmanager
    def acquire(self, screening_id):
        with self._guard:
            entry = self._locks.get(screening_id)
            if entry is None:
                entry = self._locks[screening_id] = [threading.RLock(), 0]
            entry[1] += 1
        lock = entry[0]
        try:
            if not lock.acquire(timeout=self.timeout):
                logger.warning("Timed out waiting for seat lock on screening %s", screening_id)
                raise SeatMapBusyError(screening_id)
            try:
                yield
            finally:
                lock.release()
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[screening_id]


def normalize_seats(seats, hall):
    requested = []
    for seat in seats:
        if isinstance(seat, dict):
            row, number = seat.get("row"), seat.get("number")
        else:
            row, number = seat
        if not isinstance(row, int) or not isinstance(number, int):
            raise InvalidRequestError("Seat row and number must be integers", field="seats")
        if not hall.contains(row, number):
            raise InvalidRequestError(f"Seat ({row}, {number}) is outside the hall", field="seats")
        requested.append((row, number))

    if not requested:
        raise InvalidRequestError("Select at least one seat", field="seats")
    if len(set(requested)) != len(requested):
        raise InvalidRequestError("Each seat may only be selected once", field="seats")
    return requested


class SeatMap:
    def __init__(self, catalog, locks=None):
        self.catalog = catalog
        self.locks = locks if locks is not None else ScreeningLocks()

    @contextmanager
    def transaction(self, screening_id):
        with self.locks.acquire(screening_id):
            try:
                yield
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise

    def get_status(self, screening_id, now=None):
        """Seat -> SeatStatus for a screening.

        With ``now``, held seats whose hold ran out but has not been swept
        yet read as available.
        """
        statuses = SeatStatusMap()
        for claim in SeatClaim.query.filter_by(screening_id=screening_id):
            if (
                now is not None
                and claim.state is SeatState.HELD
                and claim.expires_at is not None
                and now > claim.expires_at
            ):
                continue
            statuses[(claim.row, claim.number)] = SeatStatus.from_claim(claim)
        return statuses

    def try_reserve(self, screening_id, seats, hold_id, expires_at):
        """Mark every seat as held by ``hold_id`` or change nothing.

        Raises SeatConflictError listing the seats that are not available.
        """
        screening = self.catalog.get_screening(screening_id)
        requested = normalize_seats(seats, screening.hall)

        with self.locks.acquire(screening_id):
            taken = set(self._claimed(screening_id))
            conflicts = [seat for seat in requested if seat in taken]
            if conflicts:
                raise SeatConflictError(conflicts)

            for row, number in requested:
                db.session.add(
                    SeatClaim(
                        screening_id=screening_id,
                        row=row,
                        number=number,
                        state=SeatState.HELD,
                        hold_id=hold_id,
                        expires_at=expires_at,
                    )
                )
            try:
                db.session.flush()
            except IntegrityError:
                # another process claimed one of the seats first
                db.session.rollback()
                taken = set(self._claimed(screening_id))
                raise SeatConflictError([seat for seat in requested if seat in taken] or requested)
        return requested

    def release(self, screening_id, hold_id):
        with self.locks.acquire(screening_id):
            released = SeatClaim.query.filter_by(
                screening_id=screening_id, hold_id=hold_id, state=SeatState.HELD
            ).delete(synchronize_session=False)
            db.session.flush()
        return released

    def confirm(self, screening_id, hold_id, reservation_id):
        with self.locks.acquire(screening_id):
            claims = SeatClaim.query.filter_by(
                screening_id=screening_id, hold_id=hold_id, state=SeatState.HELD
            ).all()
            if not claims:
                raise NotFoundError("Held seats for hold", hold_id)
            for claim in claims:
                claim.state = SeatState.BOOKED
                claim.reservation_id = reservation_id
                claim.expires_at = None
            db.session.flush()
        return len(claims)

    def _claimed(self, screening_id):
        rows = db.session.query(SeatClaim.row, SeatClaim.number).filter_by(screening_id=screening_id)
        return [(row, number) for row, number in rows]
