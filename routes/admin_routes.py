import logging
from datetime import timezone

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import IntegrityError

from catalog.omdb import fetch_movie_details
from errors import BookingError, InvalidRequestError
from identity import admin_required
from models import Hall, Movie, Screening, db
from reservations.orchestrator import HoldView
from routes.booking_routes import reservation_payload
from routes.catalog_routes import movie_payload, screening_payload
from schemas import hall_schema, movie_schema, screening_schema

admin_bp = Blueprint("admin_api", __name__, url_prefix="/api/admin")

logger = logging.getLogger(__name__)


def _booking():
    return current_app.extensions["booking"]


def _optional_int_arg(name):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise InvalidRequestError(f"{name} must be an integer", field=name)


def _hall_payload(hall):
    return {
        "id": hall.id,
        "name": hall.name,
        "rows": hall.rows,
        "seats_per_row": hall.seats_per_row,
        "capacity": hall.capacity,
    }


def _commit_or_conflict(message):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise BookingError(message, code="DUPLICATE", status_code=409)


@admin_bp.route("/halls", methods=["POST"])
@admin_required
def add_hall():
    payload = hall_schema.load(request.get_json(silent=True) or {})
    hall = Hall(**payload)
    db.session.add(hall)
    _commit_or_conflict("Hall already exists")
    logger.info("Hall %s created (%sx%s)", hall.name, hall.rows, hall.seats_per_row)
    return jsonify({"message": "Hall added", "hall": _hall_payload(hall)}), 201


@admin_bp.route("/halls", methods=["GET"])
@admin_required
def list_halls():
    halls = _booking().catalog.list_halls()
    return jsonify({"halls": [_hall_payload(h) for h in halls]})


@admin_bp.route("/movies", methods=["POST"])
@admin_required
def add_movie():
    payload = movie_schema.load(request.get_json(silent=True) or {})

    imdb_id = payload.get("imdb_id")
    if imdb_id:
        if Movie.query.filter_by(imdb_id=imdb_id).first():
            return jsonify({"message": "Movie already added"}), 409
        if not payload.get("title"):
            details = fetch_movie_details(
                imdb_id,
                current_app.config.get("OMDB_API_KEY"),
                base_url=current_app.config.get("OMDB_URL"),
                timeout=current_app.config.get("OMDB_TIMEOUT_SECONDS"),
            )
            for field, value in details.items():
                if payload.get(field) is None:
                    payload[field] = value
            if not payload.get("title"):
                raise InvalidRequestError("OMDB returned no title", field="imdb_id")

    movie = Movie(**payload)
    db.session.add(movie)
    _commit_or_conflict("Movie already added")
    logger.info("Movie %s added", movie.title)
    return jsonify({"message": "Movie added", "movie": movie_payload(movie)}), 201


@admin_bp.route("/screenings", methods=["POST"])
@admin_required
def add_screening():
    payload = screening_schema.load(request.get_json(silent=True) or {})
    catalog = _booking().catalog
    movie = catalog.get_movie(payload["movie_id"])
    hall = catalog.get_hall(payload["hall_id"])

    start_time = payload["start_time"]
    if start_time.tzinfo is not None:
        start_time = start_time.astimezone(timezone.utc).replace(tzinfo=None)

    # Cannot schedule in the past
    if start_time <= _booking().holds.clock():
        raise InvalidRequestError("Screening cannot start in the past", field="start_time")
    # Cannot schedule after the movie leaves theaters
    if movie.expiration and start_time.date() > movie.expiration:
        raise InvalidRequestError(
            f"This movie is no longer in theaters after {movie.expiration}.", field="start_time"
        )

    screening = Screening(movie_id=movie.id, hall_id=hall.id, start_time=start_time)
    db.session.add(screening)
    db.session.commit()
    logger.info("Screening %s of %s scheduled in %s", screening.id, movie.title, hall.name)
    return jsonify({"message": "Screening added", "screening": screening_payload(screening)}), 201


@admin_bp.route("/screenings/<int:screening_id>/seats", methods=["GET"])
@admin_required
def screening_seats(screening_id):
    return jsonify(_booking().seat_map_view(screening_id, include_ids=True))


@admin_bp.route("/holds", methods=["GET"])
@admin_required
def list_holds():
    status = request.args.get("status")
    if status and status not in ("active", "confirmed", "released", "expired"):
        raise InvalidRequestError("Unknown hold status", field="status")

    holds = _booking().holds.list_holds(status=status, screening_id=_optional_int_arg("screening_id"))
    now = _booking().holds.clock()
    payload = []
    for hold in holds:
        entry = HoldView.from_hold(hold, now).to_dict()
        entry["buyer_token"] = hold.buyer_token
        payload.append(entry)
    return jsonify({"holds": payload})


@admin_bp.route("/holds/sweep", methods=["POST"])
@admin_required
def sweep_holds():
    expired = _booking().holds.sweep()
    return jsonify({"message": "Sweep complete", "expired": expired, "count": len(expired)})


@admin_bp.route("/reservations", methods=["GET"])
@admin_required
def list_reservations():
    reservations = _booking().ledger.list_reservations(screening_id=_optional_int_arg("screening_id"))
    return jsonify({"reservations": [reservation_payload(r) for r in reservations]})
