import logging

from flask import Blueprint, current_app, jsonify, request

from errors import AuthorizationError
from identity import current_buyer_token, is_admin
from schemas import hold_request_schema, payment_request_schema

booking_bp = Blueprint("booking_api", __name__)

logger = logging.getLogger(__name__)


def _booking():
    return current_app.extensions["booking"]


def reservation_payload(reservation):
    seats = sorted(reservation.seats, key=lambda s: (s.row, s.number))
    return {
        "id": reservation.id,
        "hold_id": reservation.hold_id,
        "screening_id": reservation.screening_id,
        "buyer": {
            "first_name": reservation.first_name,
            "last_name": reservation.last_name,
            "email": reservation.email,
            "phone": reservation.phone,
        },
        "seats": [
            {
                "row": seat.row,
                "number": seat.number,
                "ticket_type": seat.ticket_type.value,
                "price": str(seat.price),
            }
            for seat in seats
        ],
        "total_price": str(reservation.total_price),
        "payment_status": reservation.payment_status.value,
        "payment_method": reservation.payment_method,
        "created_at": reservation.created_at.isoformat() if reservation.created_at else None,
        "paid_at": reservation.paid_at.isoformat() if reservation.paid_at else None,
    }


@booking_bp.route("/api/holds", methods=["POST"])
def create_hold():
    buyer_token = current_buyer_token()
    payload = hold_request_schema.load(request.get_json(silent=True) or {})

    hold = _booking().select_seats(
        payload["screening_id"],
        [(seat["row"], seat["number"]) for seat in payload["seats"]],
        buyer_token,
    )
    return jsonify({"message": "Seats held", "hold": hold.to_dict()}), 201


@booking_bp.route("/api/holds/<hold_id>", methods=["GET"])
def get_hold(hold_id):
    buyer_token = current_buyer_token()
    hold = _booking().get_hold(hold_id, buyer_token=None if is_admin() else buyer_token)
    return jsonify({"hold": hold.to_dict()})


@booking_bp.route("/api/holds/<hold_id>/payment", methods=["POST"])
def pay_for_hold(hold_id):
    buyer_token = current_buyer_token()
    payload = payment_request_schema.load(request.get_json(silent=True) or {})

    reservation = _booking().submit_payment(
        hold_id,
        method=payload["method"],
        outcome=payload["outcome"],
        buyer=payload["buyer"],
        tickets=payload["tickets"],
        buyer_token=buyer_token,
    )
    return (
        jsonify({"message": "Payment accepted", "reservation": reservation_payload(reservation)}),
        201,
    )


@booking_bp.route("/api/holds/<hold_id>", methods=["DELETE"])
def cancel_hold(hold_id):
    buyer_token = current_buyer_token()
    hold = _booking().cancel(hold_id, buyer_token=None if is_admin() else buyer_token)
    return jsonify({"message": "Hold released", "hold": hold.to_dict()})


@booking_bp.route("/api/reservations/<reservation_id>", methods=["GET"])
def get_reservation(reservation_id):
    buyer_token = current_buyer_token()
    try:
        reservation = _booking().get_reservation(
            reservation_id, buyer_token=None if is_admin() else buyer_token
        )
    except AuthorizationError:
        logger.warning("Buyer %s asked for reservation %s of another buyer", buyer_token, reservation_id)
        raise
    return jsonify({"reservation": reservation_payload(reservation)})
