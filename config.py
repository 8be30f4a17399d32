import os
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

load_dotenv()


def _int_env(name, default):
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _float_env(name, default):
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _decimal_env(name, default):
    try:
        value = Decimal(os.getenv(name, default))
    except InvalidOperation:
        return Decimal(default)
    if not value.is_finite() or value < 0:
        return Decimal(default)
    return value


def _bool_env(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///cinema.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv("SECRET_KEY")

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_TOKEN_LOCATION = ["cookies", "headers"]
    JWT_COOKIE_SECURE = False
    JWT_COOKIE_CSRF_PROTECT = False

    # Seat holds
    HOLD_DURATION_SECONDS = _int_env("HOLD_DURATION_SECONDS", 180)
    HOLD_SWEEP_INTERVAL_SECONDS = _float_env("HOLD_SWEEP_INTERVAL_SECONDS", 10)
    HOLD_SWEEPER_ENABLED = _bool_env("HOLD_SWEEPER_ENABLED", True)
    SEAT_LOCK_TIMEOUT_SECONDS = _float_env("SEAT_LOCK_TIMEOUT_SECONDS", 5)
    MAX_SEATS_PER_HOLD = _int_env("MAX_SEATS_PER_HOLD", 10)

    TICKET_PRICES = {
        "normal": _decimal_env("TICKET_PRICE_NORMAL", "25.00"),
        "reduced": _decimal_env("TICKET_PRICE_REDUCED", "18.00"),
    }

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    OMDB_API_KEY = os.getenv("OMDB_API_KEY")
    OMDB_URL = os.getenv("OMDB_URL", "http://www.omdbapi.com/")
    OMDB_TIMEOUT_SECONDS = _float_env("OMDB_TIMEOUT_SECONDS", 10)
