import logging
import logging.config

import click
from flask import Flask, jsonify
from flask_jwt_extended import JWTManager
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from catalog.screenings import ScreeningCatalog
from config import Config
from errors import BookingError
from models import db
from reservations.holds import HoldManager
from reservations.ledger import ReservationLedger
from reservations.orchestrator import BookingOrchestrator
from reservations.payments import SimulatedPaymentGateway
from reservations.pricing import PricingEngine
from reservations.seat_map import ScreeningLocks, SeatMap
from reservations.sweeper import HoldSweeper
from routes.admin_routes import admin_bp
from routes.booking_routes import booking_bp
from routes.catalog_routes import catalog_bp

logger = logging.getLogger(__name__)


def configure_logging(level):
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"}
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "stream": "ext://sys.stdout",
                }
            },
            "root": {"level": level, "handlers": ["console"]},
            "loggers": {
                "sqlalchemy": {"level": "WARNING"},
            },
        }
    )


def _flatten_errors(messages, prefix=""):
    errors = []
    if isinstance(messages, dict):
        for field, value in messages.items():
            name = f"{prefix}.{field}" if prefix else str(field)
            if field == "_schema":
                name = prefix or "_schema"
            errors.extend(_flatten_errors(value, name))
    elif isinstance(messages, list):
        for message in messages:
            if isinstance(message, (dict, list)):
                errors.extend(_flatten_errors(message, prefix))
            else:
                errors.append({"field": prefix, "msg": message})
    else:
        errors.append({"field": prefix, "msg": messages})
    return errors


def register_error_handlers(app):
    @app.errorhandler(BookingError)
    def handle_booking_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc):
        return jsonify({"message": "Invalid input", "errors": _flatten_errors(exc.messages)}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({"message": exc.description, "code": exc.name.upper().replace(" ", "_")}), exc.code


def init_booking(app):
    catalog = ScreeningCatalog()
    seat_map = SeatMap(catalog, ScreeningLocks(timeout=app.config["SEAT_LOCK_TIMEOUT_SECONDS"]))
    pricing = PricingEngine(app.config["TICKET_PRICES"])
    ledger = ReservationLedger(pricing)
    holds = HoldManager(
        seat_map,
        ledger,
        hold_duration=app.config["HOLD_DURATION_SECONDS"],
        max_seats=app.config["MAX_SEATS_PER_HOLD"],
    )
    orchestrator = BookingOrchestrator(catalog, seat_map, holds, pricing, ledger, SimulatedPaymentGateway())
    app.extensions["booking"] = orchestrator
    return orchestrator


def register_commands(app):
    @app.cli.command("sweep-holds")
    def sweep_holds_command():
        """Expire every hold whose time is up."""
        holds = app.extensions["booking"].holds
        holds.restore()
        expired = holds.sweep()
        click.echo(f"Expired {len(expired)} hold(s)")


def start_sweeper(app):
    sweeper = HoldSweeper(
        app,
        app.extensions["booking"].holds,
        interval=app.config["HOLD_SWEEP_INTERVAL_SECONDS"],
    )
    sweeper.start()
    app.extensions["hold_sweeper"] = sweeper
    return sweeper


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    configure_logging(app.config["LOG_LEVEL"])

    db.init_app(app)
    JWTManager(app)

    app.register_blueprint(catalog_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(admin_bp)
    register_error_handlers(app)
    register_commands(app)

    orchestrator = init_booking(app)
    with app.app_context():
        db.create_all()
        restored = orchestrator.holds.restore()
    logger.info("Booking service ready, %d active hold(s) restored", restored)

    if app.config["HOLD_SWEEPER_ENABLED"] and not app.config.get("TESTING"):
        start_sweeper(app)

    return app


if __name__ == '__main__':
    create_app().run(debug=True)
