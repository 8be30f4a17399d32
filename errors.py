
class BookingError(Exception):
    """Base class for reservation errors"""

    def __init__(self, message, code, status_code=400, details=None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        return {"message": self.message, "code": self.code, "details": self.details}


class NotFoundError(BookingError):
    def __init__(self, resource, identifier=None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} {identifier} not found"
        super().__init__(message=message, code="NOT_FOUND", status_code=404)


class InvalidRequestError(BookingError):
    def __init__(self, message, field=None, code="INVALID_REQUEST"):
        details = {"field": field} if field else {}
        super().__init__(message=message, code=code, status_code=400, details=details)


class InvalidTicketTypeError(InvalidRequestError):
    def __init__(self, ticket_type):
        super().__init__(
            message=f"Unknown ticket type: {ticket_type}",
            field="ticket_type",
            code="INVALID_TICKET_TYPE",
        )
        self.ticket_type = ticket_type


class SeatConflictError(BookingError):
    """Some of the requested seats are already held or booked"""

    def __init__(self, seats):
        self.seats = sorted(tuple(seat) for seat in seats)
        super().__init__(
            message="Selected seats are no longer available",
            code="SEATS_UNAVAILABLE",
            status_code=409,
            details={"conflicting_seats": [{"row": row, "number": number} for row, number in self.seats]},
        )


class HoldExpiredError(BookingError):
    def __init__(self, hold_id):
        super().__init__(
            message="Hold has expired",
            code="HOLD_EXPIRED",
            status_code=410,
            details={"hold_id": hold_id},
        )
        self.hold_id = hold_id


class InvalidStateError(BookingError):
    def __init__(self, hold_id, status, action):
        status_name = getattr(status, "value", status)
        super().__init__(
            message=f"Cannot {action} a hold that is {status_name}",
            code="INVALID_STATE",
            status_code=409,
            details={"hold_id": hold_id, "status": status_name},
        )


class PaymentDeclinedError(BookingError):
    def __init__(self, hold_id, reference=None):
        super().__init__(
            message="Payment was declined",
            code="PAYMENT_DECLINED",
            status_code=402,
            details={"hold_id": hold_id, "reference": reference},
        )


class ScreeningClosedError(BookingError):
    def __init__(self, screening_id):
        super().__init__(
            message="Screening has already started",
            code="SCREENING_CLOSED",
            status_code=400,
            details={"screening_id": screening_id},
        )


class SeatMapBusyError(BookingError):
    def __init__(self, screening_id):
        super().__init__(
            message="Seat map is busy, try again",
            code="SEAT_MAP_BUSY",
            status_code=503,
            details={"screening_id": screening_id},
        )


class AuthenticationError(BookingError):
    def __init__(self, message="Authentication required"):
        super().__init__(message=message, code="AUTH_REQUIRED", status_code=401)


class AuthorizationError(BookingError):
    def __init__(self, message="Not authorized"):
        super().__init__(message=message, code="FORBIDDEN", status_code=403)


class CatalogLookupError(BookingError):
    def __init__(self, message, details=None):
        super().__init__(
            message=message,
            code="CATALOG_LOOKUP_FAILED",
            status_code=502,
            details=details,
        )
