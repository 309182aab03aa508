"""
Source integrations: CSV exports, MyAnimeList and Spotify.

All of them normalise their data to ImportItem and go through ImportPipeline.
"""

from app.services.integrations.base import ImportItem, ImportPipeline, ImportResult, OAuthTokens

__all__ = ["ImportItem", "ImportPipeline", "ImportResult", "OAuthTokens"]
