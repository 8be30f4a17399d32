from flask import Blueprint, current_app, jsonify, request

from errors import InvalidRequestError

catalog_bp = Blueprint("catalog_api", __name__)


def _booking():
    return current_app.extensions["booking"]


def movie_payload(movie):
    return {
        "id": movie.id,
        "imdb_id": movie.imdb_id,
        "title": movie.title,
        "year": movie.year,
        "poster": movie.poster,
        "description": movie.description,
        "duration_minutes": movie.duration_minutes,
        "release_date": movie.release_date.isoformat() if movie.release_date else None,
        "expiration": movie.expiration.isoformat() if movie.expiration else None,
    }


def screening_payload(screening):
    return {
        "id": screening.id,
        "movie_id": screening.movie_id,
        "movie_title": screening.movie.title if screening.movie else None,
        "hall_id": screening.hall_id,
        "hall": screening.hall.name if screening.hall else None,
        "start_time": screening.start_time.isoformat(),
    }


@catalog_bp.route("/api/movies", methods=["GET"])
def list_movies():
    movies = _booking().catalog.list_movies()
    return jsonify({"movies": [movie_payload(m) for m in movies]})


@catalog_bp.route("/api/movies/<int:movie_id>", methods=["GET"])
def get_movie(movie_id):
    movie = _booking().catalog.get_movie(movie_id)
    return jsonify({"movie": movie_payload(movie)})


@catalog_bp.route("/api/screenings", methods=["GET"])
def list_screenings():
    movie_id_raw = request.args.get("movie_id") or request.args.get("movieId")
    movie_id = None
    if movie_id_raw:
        try:
            movie_id = int(movie_id_raw)
        except ValueError:
            raise InvalidRequestError("movie_id must be an integer", field="movie_id")

    screenings = _booking().catalog.list_screenings(movie_id=movie_id)
    return jsonify({"screenings": [screening_payload(s) for s in screenings]})


@catalog_bp.route("/api/screenings/<int:screening_id>", methods=["GET"])
def get_screening(screening_id):
    screening = _booking().catalog.get_screening(screening_id)
    return jsonify({"screening": screening_payload(screening)})


@catalog_bp.route("/api/screenings/<int:screening_id>/seats", methods=["GET"])
def screening_seats(screening_id):
    return jsonify(_booking().seat_map_view(screening_id))


@catalog_bp.route("/api/ticket-types", methods=["GET"])
def ticket_types():
    payload = [
        {"ticket_type": ticket_type.value, "price": str(price)}
        for ticket_type, price in _booking().pricing.ticket_types()
    ]
    return jsonify({"ticket_types": payload})
