"""HTML scrapers for public Letterboxd and Goodreads profiles."""

from app.services.scrapers.goodreads import GoodreadsScraper
from app.services.scrapers.letterboxd import LetterboxdScraper

__all__ = ["GoodreadsScraper", "LetterboxdScraper"]
