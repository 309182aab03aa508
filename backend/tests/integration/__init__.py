"""
Integration tests package.

Integration tests talk to the real third-party services (Letterboxd,
Goodreads, Open Library, MyAnimeList). They require:
- Network access
- MAL_CLIENT_ID for the MyAnimeList tests

To run integration tests:
    pytest backend/tests/integration/ -v --run-integration

To skip integration tests (default):
    pytest -v
"""
