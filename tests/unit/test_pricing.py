from decimal import Decimal

import pytest

from app import create_app
from config import _decimal_env
from errors import InvalidTicketTypeError
from models import TicketType
from reservations.pricing import PricingEngine


def test_default_prices():
    pricing = PricingEngine()
    assert pricing.price(TicketType.NORMAL) == Decimal("25.00")
    assert pricing.price("reduced") == Decimal("18.00")


def test_total_sums_ticket_prices():
    pricing = PricingEngine()
    seats = [((0, 0), "normal"), ((0, 1), TicketType.NORMAL), ((0, 2), "reduced")]
    assert pricing.total(seats) == Decimal("68.00")


def test_total_of_nothing_is_zero():
    assert PricingEngine().total([]) == Decimal("0")


def test_unknown_ticket_type_rejected():
    pricing = PricingEngine()
    with pytest.raises(InvalidTicketTypeError) as exc_info:
        pricing.total([((0, 0), "student")])
    assert exc_info.value.code == "INVALID_TICKET_TYPE"
    assert exc_info.value.status_code == 400


def test_prices_come_from_configuration():
    pricing = PricingEngine({"normal": "30", "reduced": 20.5})
    assert pricing.price("normal") == Decimal("30.00")
    assert pricing.price("reduced") == Decimal("20.50")
    assert pricing.ticket_types() == [
        (TicketType.NORMAL, Decimal("30.00")),
        (TicketType.REDUCED, Decimal("20.50")),
    ]


#bad configured prices fall back to the defaults
def test_invalid_configured_prices_use_defaults():
    pricing = PricingEngine({"normal": "abc", "reduced": "-5"})
    assert pricing.price("normal") == Decimal("25.00")
    assert pricing.price("reduced") == Decimal("18.00")


def test_ticket_price_env_parsing(monkeypatch):
    monkeypatch.setenv("TICKET_PRICE_NORMAL", "abc")
    assert _decimal_env("TICKET_PRICE_NORMAL", "25.00") == Decimal("25.00")

    monkeypatch.setenv("TICKET_PRICE_NORMAL", "30.5")
    assert _decimal_env("TICKET_PRICE_NORMAL", "25.00") == Decimal("30.5")

    monkeypatch.delenv("TICKET_PRICE_NORMAL")
    assert _decimal_env("TICKET_PRICE_NORMAL", "25.00") == Decimal("25.00")


def test_app_starts_with_invalid_price_config(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'prices.db'}",
            "TICKET_PRICES": {"normal": "abc", "reduced": "12"},
        }
    )
    pricing = app.extensions["booking"].pricing
    assert pricing.price("normal") == Decimal("25.00")
    assert pricing.price("reduced") == Decimal("12.00")
