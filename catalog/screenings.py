from errors import NotFoundError
from models import Hall, Movie, Screening, db


class ScreeningCatalog:
    """Read-only view of movies, halls and screenings."""

    def get_screening(self, screening_id):
        screening = db.session.get(Screening, screening_id)
        if screening is None:
            raise NotFoundError("Screening", screening_id)
        return screening

    def get_hall(self, hall_id):
        hall = db.session.get(Hall, hall_id)
        if hall is None:
            raise NotFoundError("Hall", hall_id)
        return hall

    def get_movie(self, movie_id):
        movie = db.session.get(Movie, movie_id)
        if movie is None:
            raise NotFoundError("Movie", movie_id)
        return movie

    def list_movies(self):
        return Movie.query.order_by(Movie.created_at.desc(), Movie.id.desc()).all()

    def list_halls(self):
        return Hall.query.order_by(Hall.id.asc()).all()

    def list_screenings(self, movie_id=None):
        query = Screening.query
        if movie_id is not None:
            query = query.filter_by(movie_id=movie_id)
        return query.order_by(Screening.start_time.asc(), Screening.id.asc()).all()
