import logging
from decimal import Decimal, InvalidOperation

from errors import InvalidTicketTypeError
from models import TicketType

logger = logging.getLogger(__name__)

DEFAULT_PRICES = {
    TicketType.NORMAL: Decimal("25.00"),
    TicketType.REDUCED: Decimal("18.00"),
}


def parse_ticket_type(value):
    if isinstance(value, TicketType):
        return value
    try:
        return TicketType(str(value).strip().lower())
    except ValueError:
        raise InvalidTicketTypeError(value) from None


class PricingEngine:
    def __init__(self, prices=None):
        table = dict(DEFAULT_PRICES)
        for key, amount in (prices or {}).items():
            ticket_type = parse_ticket_type(key)
            try:
                price = Decimal(str(amount)).quantize(Decimal("0.01"))
            except InvalidOperation:
                logger.warning("Invalid %s price %r, using %s", ticket_type.value, amount, table[ticket_type])
                continue
            if price < 0:
                logger.warning("Negative %s price %r, using %s", ticket_type.value, amount, table[ticket_type])
                continue
            table[ticket_type] = price
        self._prices = table

    def price(self, ticket_type):
        return self._prices[parse_ticket_type(ticket_type)]

    def total(self, seats_with_types):
        amount = Decimal("0.00")
        for _seat, ticket_type in seats_with_types:
            amount += self.price(ticket_type)
        return amount

    def ticket_types(self):
        return [(ticket_type, self._prices[ticket_type]) for ticket_type in TicketType]
