import logging

import requests

from errors import CatalogLookupError

logger = logging.getLogger(__name__)


def fetch_movie_details(imdb_id, api_key, base_url="http://www.omdbapi.com/", timeout=10):
    """Look up a movie on OMDB and return the fields the catalog stores."""
    if not api_key:
        raise CatalogLookupError("OMDB is not configured")

    try:
        res = requests.get(
            base_url,
            params={"apikey": api_key, "i": imdb_id, "plot": "short"},
            timeout=timeout,
        )
        res.raise_for_status()
        data = res.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("OMDB lookup for %s failed: %s", imdb_id, exc)
        raise CatalogLookupError("Could not reach OMDB", {"imdb_id": imdb_id}) from exc

    if not data or data.get("Response") == "False":
        raise CatalogLookupError(
            data.get("Error", "Movie not found on OMDB") if data else "Movie not found on OMDB",
            {"imdb_id": imdb_id},
        )

    runtime = data.get("Runtime") or ""
    duration = None
    if runtime.split(" ")[0].isdigit():
        duration = int(runtime.split(" ")[0])

    poster = data.get("Poster")
    return {
        "imdb_id": data.get("imdbID", imdb_id),
        "title": data.get("Title"),
        "year": data.get("Year"),
        "poster": poster if poster and poster != "N/A" else None,
        "description": data.get("Plot") if data.get("Plot") != "N/A" else None,
        "duration_minutes": duration,
    }
