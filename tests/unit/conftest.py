import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("SECRET_KEY", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-with-enough-bytes")
os.environ.setdefault("HOLD_SWEEPER_ENABLED", "false")

from flask_jwt_extended import create_access_token

from app import create_app
from models import Hall, Movie, Screening, db


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def clock():
    return FakeClock(datetime(2025, 4, 10, 12, 0, 0))


@pytest.fixture()
def app(tmp_path, clock):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'unit.db'}",
            "HOLD_SWEEPER_ENABLED": False,
            "SEAT_LOCK_TIMEOUT_SECONDS": 5,
            "OMDB_API_KEY": "test-key",
        }
    )
    app.extensions["booking"].holds.clock = clock
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def booking(app):
    return app.extensions["booking"]


@pytest.fixture()
def screening(app, clock):
    hall = Hall(name="Hall 1", rows=8, seats_per_row=10)
    movie = Movie(title="Interstellar", year="2014")
    db.session.add_all([hall, movie])
    db.session.flush()
    screening = Screening(movie_id=movie.id, hall_id=hall.id, start_time=clock.now + timedelta(days=1))
    db.session.add(screening)
    db.session.commit()
    return screening


@pytest.fixture()
def buyer():
    return {
        "first_name": "Jan",
        "last_name": "Kowalski",
        "email": "jan.kowalski@example.com",
        "phone": "123456789",
    }


@pytest.fixture()
def auth_headers(app):
    def make_headers(identity, admin=False):
        claims = {"is_admin": True} if admin else {}
        token = create_access_token(identity=identity, additional_claims=claims)
        return {"Authorization": f"Bearer {token}"}

    return make_headers
