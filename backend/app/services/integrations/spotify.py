"""
Spotify Web API integration (authorization code flow).

A sync pulls four views of the user's listening and merges them per track:

    saved              /me/tracks (paged by 50)
    top_track_short    /me/top/tracks?time_range=short_term
    top_track_medium   ... medium_term
    top_track_long     ... long_term
    recently_played    /me/player/recently-played

Saved and recently-played responses wrap tracks as items[].track; top
tracks are returned bare in items[].
"""

import base64
from datetime import timedelta
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ExternalServiceError, UnauthorizedError, with_retry
from app.core.logging import get_logger
from app.db.base import as_utc, utcnow
from app.models.media import MediaType
from app.models.source import Source, SourceName
from app.services.http import HTTPClientOwner
from app.services.integrations.base import ImportItem, ImportPipeline, OAuthTokens
from app.services.integrations.csv_utils import parse_date

logger = get_logger(__name__)

SPOTIFY_ACCOUNTS_URL = "https://accounts.spotify.com"
SPOTIFY_API_URL = "https://api.spotify.com/v1"

SCOPES = [
    "user-read-private",
    "user-library-read",
    "user-top-read",
    "user-read-recently-played",
]

PAGE_SIZE = 50
TOP_TRACK_RANGES = {
    "short_term": "top_track_short",
    "medium_term": "top_track_medium",
    "long_term": "top_track_long",
}
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)


def _basic_auth_header() -> str:
    credentials = f"{settings.SPOTIFY_CLIENT_ID or ''}:{settings.SPOTIFY_CLIENT_SECRET or ''}"
    return "Basic " + base64.b64encode(credentials.encode("utf-8")).decode("ascii")


class SpotifyClient(HTTPClientOwner):
    retry_delay_seconds: float = 1.0

    def __init__(
        self,
        access_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.access_token = access_token
        self._init_client(client)

    # ================================
    # OAuth
    # ================================

    @staticmethod
    def get_auth_url(state: str, redirect_uri: Optional[str] = None) -> str:
        params = {
            "response_type": "code",
            "client_id": settings.SPOTIFY_CLIENT_ID or "",
            "scope": " ".join(SCOPES),
            "redirect_uri": redirect_uri or settings.SPOTIFY_REDIRECT_URI,
            "state": state,
            "show_dialog": "false",
        }
        return f"{SPOTIFY_ACCOUNTS_URL}/authorize?{urlencode(params)}"

    async def _token_request(self, form: dict[str, str]) -> OAuthTokens:
        try:
            response = await self.client.post(
                f"{SPOTIFY_ACCOUNTS_URL}/api/token",
                data=form,
                headers={"Authorization": _basic_auth_header()},
            )
        except httpx.HTTPError as e:
            raise ExternalServiceError("Spotify", str(e)) from e

        if response.status_code != 200:
            raise ExternalServiceError("Spotify", "token request failed", details=response.text[:500])
        return OAuthTokens(**response.json())

    async def exchange_code(self, code: str, redirect_uri: Optional[str] = None) -> OAuthTokens:
        return await self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri or settings.SPOTIFY_REDIRECT_URI,
        })

    async def refresh_token(self, refresh_token: str) -> OAuthTokens:
        return await self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })

    async def get_valid_access_token(self, db: AsyncSession, source: Source) -> Optional[str]:
        expires_at = as_utc(source.expires_at)
        if source.access_token and expires_at and expires_at > utcnow() + TOKEN_REFRESH_MARGIN:
            return source.access_token
        if not source.refresh_token:
            return source.access_token

        tokens = await self.refresh_token(source.refresh_token)
        source.access_token = tokens.access_token
        # Spotify only sometimes rotates the refresh token
        source.refresh_token = tokens.refresh_token or source.refresh_token
        source.expires_at = tokens.expires_at()
        await db.commit()
        logger.info("spotify_token_refreshed", user_id=source.user_id)
        return tokens.access_token

    # ================================
    # Web API
    # ================================

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        if not self.access_token:
            raise UnauthorizedError("Spotify access token required")

        async def request() -> dict[str, Any]:
            try:
                response = await self.client.get(
                    f"{SPOTIFY_API_URL}{path}",
                    params=params,
                    headers={"Authorization": f"Bearer {self.access_token}"},
                )
            except httpx.HTTPError as e:
                raise ExternalServiceError("Spotify", str(e)) from e

            if response.status_code == 401:
                raise UnauthorizedError("Spotify access token expired or revoked")
            if response.status_code >= 400:
                raise ExternalServiceError(
                    "Spotify",
                    f"{path} failed with status {response.status_code}",
                    details=response.text[:500],
                )
            return response.json()

        return await with_retry(request, delay_seconds=self.retry_delay_seconds)

    async def get_current_user(self) -> dict[str, Any]:
        return await self._get("/me")

    async def get_saved_tracks(self) -> list[dict[str, Any]]:
        """All saved tracks as {"added_at", "track"} items."""
        items: list[dict[str, Any]] = []
        offset = 0
        while True:
            page = await self._get("/me/tracks", {"limit": PAGE_SIZE, "offset": offset})
            batch = page.get("items") or []
            items.extend(batch)
            if not batch or not page.get("next"):
                break
            offset += PAGE_SIZE
        return items

    async def get_top_tracks(self, time_range: str = "medium_term", limit: int = PAGE_SIZE) -> list[dict[str, Any]]:
        if time_range not in TOP_TRACK_RANGES:
            raise ValueError(f"Unknown time range: {time_range}")
        page = await self._get("/me/top/tracks", {"time_range": time_range, "limit": limit})
        return page.get("items") or []

    async def get_recently_played(self, limit: int = PAGE_SIZE) -> list[dict[str, Any]]:
        page = await self._get("/me/player/recently-played", {"limit": limit})
        return page.get("items") or []


# ================================
# Import
# ================================

def _track_item(track: dict[str, Any]) -> ImportItem:
    artists = [artist["name"] for artist in track.get("artists") or [] if artist.get("name")]
    album = track.get("album") or {}
    images = album.get("images") or []

    return ImportItem(
        source_item_id=track["id"],
        title=track.get("name") or track["id"],
        genre=artists,
        poster_url=images[0].get("url") if images else None,
        extra={
            "artist": ", ".join(artists) or None,
            "album": album.get("name") or None,
            "duration_ms": track.get("duration_ms") or None,
        },
    )


def merge_tracks(
    saved: list[dict[str, Any]],
    top: dict[str, list[dict[str, Any]]],
    recent: list[dict[str, Any]],
) -> list[ImportItem]:
    """
    Merge the listening views into one ImportItem per track id.

    Tags accumulate across views. consumed_at is played_at, else added_at,
    else now.
    """
    merged: dict[str, ImportItem] = {}
    added_at: dict[str, Any] = {}
    played_at: dict[str, Any] = {}

    def add(track: Optional[dict[str, Any]], tag: str) -> Optional[str]:
        if not track or not track.get("id"):
            return None
        item = merged.get(track["id"])
        if item is None:
            item = merged[track["id"]] = _track_item(track)
        if tag not in item.tags:
            item.tags.append(tag)
        return track["id"]

    for entry in saved:
        track_id = add(entry.get("track"), "saved")
        if track_id and entry.get("added_at"):
            added_at.setdefault(track_id, parse_date(entry["added_at"]))

    for time_range, tracks in top.items():
        for track in tracks:
            add(track, TOP_TRACK_RANGES[time_range])

    for entry in recent:
        track_id = add(entry.get("track"), "recently_played")
        if track_id and entry.get("played_at"):
            # Newest play first in Spotify's response
            played_at.setdefault(track_id, parse_date(entry["played_at"]))

    now = utcnow()
    for track_id, item in merged.items():
        item.consumed_at = played_at.get(track_id) or added_at.get(track_id) or now
    return list(merged.values())


async def sync_spotify_data(
    db: AsyncSession,
    user_id: int,
    source: Source,
    client: Optional[httpx.AsyncClient] = None,
) -> dict[str, Any]:
    """
    Import saved, top and recently played tracks for a connected account.

    Returns {"tracks_imported", "errors"}. A view that fails to download is
    recorded in errors; the others are still imported.
    """
    errors: list[str] = []
    saved: list[dict[str, Any]] = []
    top: dict[str, list[dict[str, Any]]] = {}
    recent: list[dict[str, Any]] = []

    async with SpotifyClient(client=client) as spotify:
        spotify.access_token = await spotify.get_valid_access_token(db, source)
        if not spotify.access_token:
            raise UnauthorizedError("Spotify is not connected")

        try:
            saved = await spotify.get_saved_tracks()
        except ExternalServiceError as e:
            errors.append(f"Failed to fetch saved tracks: {e.message}")

        for time_range in TOP_TRACK_RANGES:
            try:
                top[time_range] = await spotify.get_top_tracks(time_range)
            except ExternalServiceError as e:
                errors.append(f"Failed to fetch top tracks ({time_range}): {e.message}")

        try:
            recent = await spotify.get_recently_played()
        except ExternalServiceError as e:
            errors.append(f"Failed to fetch recently played tracks: {e.message}")

    items = merge_tracks(saved, top, recent)

    pipeline = ImportPipeline(db, user_id)
    result = await pipeline.import_items(MediaType.MUSIC, SourceName.SPOTIFY.value, items)
    errors.extend(result.errors)
    await pipeline.finalize(SourceName.SPOTIFY)

    logger.info(
        "spotify_sync_completed",
        user_id=user_id,
        tracks=len(items),
        tracks_imported=result.imported,
        errors=len(errors),
    )
    return {"tracks_imported": result.imported, "errors": errors}
