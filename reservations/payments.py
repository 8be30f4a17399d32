import enum
import logging
import uuid
from dataclasses import dataclass

from errors import InvalidRequestError
from models import PaymentAttempt, db

logger = logging.getLogger(__name__)


class PaymentMethod(str, enum.Enum):
    CARD = "card"
    BLIK = "blik"
    TRANSFER = "transfer"


class PaymentOutcome(str, enum.Enum):
    APPROVED = "approved"
    DECLINED = "declined"


# stored outcome of an approved attempt that was reversed
VOIDED = "voided"


def _coerce(enum_cls, value, field):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        raise InvalidRequestError(f"Unsupported {field}: {value}", field=field) from None


@dataclass(frozen=True)
class PaymentResult:
    outcome: PaymentOutcome
    method: PaymentMethod
    reference: str

    @property
    def approved(self):
        return self.outcome is PaymentOutcome.APPROVED


class SimulatedPaymentGateway:
    """Stands in for a card processor: the caller picks the outcome.

    Every attempt is stored so declined retries stay visible.
    """

    def charge(self, hold_id, amount, method, outcome):
        method = _coerce(PaymentMethod, method, "method")
        outcome = _coerce(PaymentOutcome, outcome, "outcome")
        reference = uuid.uuid4().hex

        attempt = PaymentAttempt(
            hold_id=hold_id,
            amount=amount,
            method=method.value,
            outcome=outcome.value,
            reference=reference,
        )
        try:
            db.session.add(attempt)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(
            "Payment %s for hold %s: %s via %s (%s)",
            reference, hold_id, outcome.value, method.value, amount,
        )
        return PaymentResult(outcome=outcome, method=method, reference=reference)

    def void(self, reference):
        """Reverse an approved attempt whose hold could not be confirmed."""
        attempt = PaymentAttempt.query.filter_by(reference=reference).first()
        if attempt is None:
            return None
        attempt.outcome = VOIDED
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.warning("Payment %s for hold %s voided", reference, attempt.hold_id)
        return attempt

    def attempts_for(self, hold_id):
        return (
            PaymentAttempt.query.filter_by(hold_id=hold_id)
            .order_by(PaymentAttempt.created_at.asc(), PaymentAttempt.id.asc())
            .all()
        )
