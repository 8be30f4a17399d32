import threading
from decimal import Decimal

from errors import InvalidStateError, SeatConflictError
from models import Hold, HoldStatus, PaymentAttempt, Reservation, SeatClaim, SeatState, db
from reservations.sweeper import HoldSweeper


def _run_together(app, workers):
    """Start every worker at the same moment, each in its own app context."""
    barrier = threading.Barrier(len(workers))
    results = [None] * len(workers)

    def run(index, work):
        with app.app_context():
            barrier.wait(timeout=5)
            try:
                results[index] = ("ok", work())
            except Exception as exc:
                results[index] = ("error", exc)

    threads = [threading.Thread(target=run, args=(i, work)) for i, work in enumerate(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)
    # rows were changed by other sessions
    db.session.expire_all()
    return results


def test_overlapping_holds_only_one_wins(app, booking, screening):
    screening_id = screening.id
    selections = [
        [(0, 0), (0, 1)],
        [(0, 1), (0, 2)],
        [(0, 1)],
        [(0, 3), (0, 1), (0, 4)],
        [(0, 1), (0, 5)],
        [(0, 6), (0, 1)],
    ]
    workers = [
        (lambda seats=seats, n=n: booking.select_seats(screening_id, seats, f"buyer-{n}").hold_id)
        for n, seats in enumerate(selections)
    ]

    results = _run_together(app, workers)

    winners = [value for kind, value in results if kind == "ok"]
    losers = [value for kind, value in results if kind == "error"]
    assert len(winners) == 1
    assert len(losers) == len(selections) - 1
    assert all(isinstance(exc, SeatConflictError) for exc in losers)
    assert all((0, 1) in exc.seats for exc in losers)

    claim = SeatClaim.query.filter_by(screening_id=screening_id, row=0, number=1).one()
    assert claim.hold_id == winners[0]
    assert Hold.query.count() == 1
    assert SeatClaim.query.count() == len(Hold.query.one().seats)


def test_disjoint_holds_all_succeed(app, booking, screening):
    screening_id = screening.id
    workers = [
        (lambda row=row: booking.select_seats(screening_id, [(row, 0), (row, 1)], f"buyer-{row}").hold_id)
        for row in range(5)
    ]

    results = _run_together(app, workers)

    assert all(kind == "ok" for kind, _ in results)
    assert SeatClaim.query.count() == 10


def test_confirm_racing_cancel_applies_one_transition(app, booking, screening, buyer):
    hold = booking.holds.create_hold(screening.id, [(3, 3), (3, 4)], "buyer-a")
    hold_id = hold.id
    seats = [((3, 3), "normal"), ((3, 4), "normal")]

    results = _run_together(
        app,
        [
            lambda: booking.holds.confirm_hold(hold_id, buyer, seats, Decimal("50.00")).id,
            lambda: booking.holds.cancel_hold(hold_id).id,
        ],
    )

    outcomes = sorted(kind for kind, _ in results)
    assert outcomes == ["error", "ok"]
    error = next(value for kind, value in results if kind == "error")
    assert isinstance(error, InvalidStateError)

    final = booking.holds.get_hold(hold_id)
    statuses = booking.seat_map.get_status(screening.id)
    if final.status is HoldStatus.CONFIRMED:
        assert Reservation.query.count() == 1
        assert statuses[(3, 3)].state is SeatState.BOOKED
    else:
        assert final.status is HoldStatus.RELEASED
        assert Reservation.query.count() == 0
        assert statuses[(3, 3)].state is SeatState.AVAILABLE


def test_sweeper_thread_expires_in_its_own_context(app, booking, screening, clock):
    hold = booking.holds.create_hold(screening.id, [(7, 7)], "buyer-a")
    clock.advance(181)

    sweeper = HoldSweeper(app, booking.holds, interval=60)
    results = _run_together(app, [sweeper.sweep_once])

    assert results == [("ok", [hold.id])]
    assert booking.holds.get_hold(hold.id).status is HoldStatus.EXPIRED
    assert booking.seat_map.get_status(screening.id)[(7, 7)].state is SeatState.AVAILABLE


def test_sweeper_stops_promptly(app, booking):
    sweeper = HoldSweeper(app, booking.holds, interval=30)
    sweeper.start()
    sweeper.stop(timeout=2)
    assert not sweeper.is_alive()


#two approved payments for the same hold at once
def test_simultaneous_payments_charge_once(app, booking, screening, buyer):
    hold = booking.holds.create_hold(screening.id, [(6, 6)], "buyer-a")
    hold_id = hold.id

    results = _run_together(
        app,
        [
            lambda: booking.submit_payment(hold_id, "card", "approved", buyer).id,
            lambda: booking.submit_payment(hold_id, "card", "approved", buyer).id,
        ],
    )

    assert sorted(kind for kind, _ in results) == ["error", "ok"]
    error = next(value for kind, value in results if kind == "error")
    assert isinstance(error, InvalidStateError)
    assert PaymentAttempt.query.filter_by(hold_id=hold_id, outcome="approved").count() == 1
    assert PaymentAttempt.query.filter_by(hold_id=hold_id).count() == 1
    assert Reservation.query.count() == 1
