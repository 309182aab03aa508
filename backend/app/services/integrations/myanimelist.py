"""
MyAnimeList API v2 integration.

Public lists only need the app's client id (X-MAL-CLIENT-ID header). Once a
user has connected through OAuth (PKCE, S256) the Bearer token is used
instead, which also exposes private lists.

List responses look like:

    {
        "data": [{"node": {"id": 1, "title": ...}, "list_status": {"score": 9, ...}}],
        "paging": {"next": "https://api.myanimelist.net/v2/users/.../animelist?offset=100"}
    }

Usage:
------
    async with MyAnimeListClient(access_token=token) as mal:
        entries = await mal.get_all_anime("some_user")
"""

import base64
import hashlib
import secrets
from datetime import timedelta
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ExternalServiceError, NotFoundError, UnauthorizedError, with_retry
from app.core.logging import get_logger
from app.db.base import as_utc, utcnow
from app.models.library import MediaStatus
from app.models.media import MediaType
from app.models.source import Source, SourceName
from app.services.cache import cache, mal_user_list_key
from app.services.http import HTTPClientOwner
from app.services.integrations.base import ImportItem, ImportPipeline, OAuthTokens
from app.services.integrations.csv_utils import parse_date

logger = get_logger(__name__)

MAL_API_URL = "https://api.myanimelist.net/v2"
MAL_AUTH_URL = "https://myanimelist.net/v1/oauth2"

ANIME_FIELDS = (
    "id,title,main_picture,mean,genres,media_type,num_episodes,status,"
    "list_status{score,status,updated_at,num_episodes_watched}"
)
MANGA_FIELDS = (
    "id,title,main_picture,mean,genres,media_type,num_chapters,status,"
    "list_status{score,status,updated_at,num_chapters_read}"
)
PAGE_SIZE = 100
LIST_CACHE_TTL = 3600
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)

STATUS_MAP = {
    "watching": MediaStatus.WATCHING,
    "reading": MediaStatus.READING,
    "completed": MediaStatus.COMPLETED,
    "on_hold": MediaStatus.ON_HOLD,
    "dropped": MediaStatus.DROPPED,
    "plan_to_watch": MediaStatus.PLAN_TO_WATCH,
    "plan_to_read": MediaStatus.PLAN_TO_READ,
}


def generate_pkce() -> tuple[str, str]:
    """Return (code_verifier, code_challenge) for the S256 method."""
    verifier = base64.urlsafe_b64encode(secrets.token_bytes(32)).rstrip(b"=").decode("ascii")
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return verifier, challenge


class MyAnimeListClient(HTTPClientOwner):
    retry_delay_seconds: float = 1.0

    def __init__(
        self,
        access_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.access_token = access_token
        self._init_client(client)

    def _headers(self) -> dict[str, str]:
        if self.access_token:
            return {"Authorization": f"Bearer {self.access_token}"}
        return {"X-MAL-CLIENT-ID": settings.MAL_CLIENT_ID or ""}

    async def _get(self, url: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        async def request() -> dict[str, Any]:
            try:
                response = await self.client.get(url, params=params, headers=self._headers())
            except httpx.HTTPError as e:
                raise ExternalServiceError("MyAnimeList", str(e)) from e

            if response.status_code == 404:
                raise NotFoundError("MyAnimeList user")
            if response.status_code == 401:
                raise UnauthorizedError("MyAnimeList rejected the credentials")
            if response.status_code >= 400:
                raise ExternalServiceError(
                    "MyAnimeList",
                    f"request failed with status {response.status_code}",
                    details=response.text[:500],
                )
            return response.json()

        return await with_retry(request, delay_seconds=self.retry_delay_seconds)

    # ================================
    # Lists
    # ================================

    async def _get_list(
        self,
        list_type: str,
        username: str,
        limit: int,
        offset: int,
        status: Optional[str],
    ) -> dict[str, Any]:
        fields = ANIME_FIELDS if list_type == "anime" else MANGA_FIELDS
        params: dict[str, Any] = {"fields": fields, "limit": limit, "offset": offset}
        if status:
            params["status"] = status

        key = f"{mal_user_list_key(username, list_type)}:{limit}:{offset}"
        if status:
            key += f":{status}"
        if self.access_token:
            key += ":oauth"

        return await cache.cached_fetch(
            key,
            lambda: self._get(f"{MAL_API_URL}/users/{username}/{list_type}list", params),
            ttl=LIST_CACHE_TTL,
        )

    async def get_anime_list(
        self,
        username: str,
        limit: int = PAGE_SIZE,
        offset: int = 0,
        status: Optional[str] = None,
    ) -> dict[str, Any]:
        return await self._get_list("anime", username, limit, offset, status)

    async def get_manga_list(
        self,
        username: str,
        limit: int = PAGE_SIZE,
        offset: int = 0,
        status: Optional[str] = None,
    ) -> dict[str, Any]:
        return await self._get_list("manga", username, limit, offset, status)

    async def _get_all(self, list_type: str, username: str) -> list[dict[str, Any]]:
        entries: list[dict[str, Any]] = []
        offset = 0
        while True:
            page = await self._get_list(list_type, username, PAGE_SIZE, offset, None)
            data = page.get("data") or []
            entries.extend(entry for entry in data if (entry.get("node") or {}).get("id"))
            if not data or not (page.get("paging") or {}).get("next"):
                break
            offset += PAGE_SIZE
        return entries

    async def get_all_anime(self, username: str) -> list[dict[str, Any]]:
        return await self._get_all("anime", username)

    async def get_all_manga(self, username: str) -> list[dict[str, Any]]:
        return await self._get_all("manga", username)

    async def get_current_user(self) -> dict[str, Any]:
        if not self.access_token:
            raise UnauthorizedError("MyAnimeList access token required")
        return await self._get(f"{MAL_API_URL}/users/@me")

    # ================================
    # OAuth (PKCE)
    # ================================

    @staticmethod
    def generate_pkce() -> tuple[str, str]:
        return generate_pkce()

    @staticmethod
    def get_auth_url(state: str, code_challenge: str, redirect_uri: Optional[str] = None) -> str:
        params = {
            "response_type": "code",
            "client_id": settings.MAL_CLIENT_ID or "",
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
            "redirect_uri": redirect_uri or settings.MAL_REDIRECT_URI,
        }
        return f"{MAL_AUTH_URL}/authorize?{urlencode(params)}"

    async def _token_request(self, form: dict[str, str]) -> OAuthTokens:
        form = {
            "client_id": settings.MAL_CLIENT_ID or "",
            "client_secret": settings.MAL_CLIENT_SECRET or "",
            **form,
        }
        try:
            response = await self.client.post(f"{MAL_AUTH_URL}/token", data=form)
        except httpx.HTTPError as e:
            raise ExternalServiceError("MyAnimeList", str(e)) from e

        if response.status_code != 200:
            raise ExternalServiceError(
                "MyAnimeList",
                "token request failed",
                details=response.text[:500],
            )
        return OAuthTokens(**response.json())

    async def exchange_code(
        self,
        code: str,
        code_verifier: str,
        redirect_uri: Optional[str] = None,
    ) -> OAuthTokens:
        return await self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "code_verifier": code_verifier,
            "redirect_uri": redirect_uri or settings.MAL_REDIRECT_URI,
        })

    async def refresh_token(self, refresh_token: str) -> OAuthTokens:
        return await self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })

    async def get_valid_access_token(self, db: AsyncSession, source: Source) -> Optional[str]:
        """
        Return a usable access token for the source, refreshing it when it
        expires within five minutes. None when there is nothing to use.
        """
        expires_at = as_utc(source.expires_at)
        if source.access_token and expires_at and expires_at > utcnow() + TOKEN_REFRESH_MARGIN:
            return source.access_token

        if not source.refresh_token:
            return None

        try:
            tokens = await self.refresh_token(source.refresh_token)
        except ExternalServiceError as e:
            logger.warning("mal_token_refresh_failed", user_id=source.user_id, error=e.message)
            return None

        source.access_token = tokens.access_token
        source.refresh_token = tokens.refresh_token or source.refresh_token
        source.expires_at = tokens.expires_at()
        await db.commit()
        logger.info("mal_token_refreshed", user_id=source.user_id)
        return tokens.access_token


# ================================
# Import
# ================================

def to_import_item(entry: dict[str, Any], media_type: MediaType) -> ImportItem:
    node = entry["node"]
    list_status = entry.get("list_status") or {}

    score = list_status.get("score") or 0
    status = list_status.get("status")
    picture = node.get("main_picture") or {}

    if media_type == MediaType.ANIME:
        extra = {"num_episodes": node.get("num_episodes") or None}
        progress = list_status.get("num_episodes_watched")
        progress_total = node.get("num_episodes") or None
    else:
        extra = {"num_chapters": node.get("num_chapters") or None}
        progress = list_status.get("num_chapters_read")
        progress_total = node.get("num_chapters") or None

    return ImportItem(
        source_item_id=str(node["id"]),
        title=node.get("title") or str(node["id"]),
        genre=[genre["name"] for genre in node.get("genres") or [] if genre.get("name")],
        poster_url=picture.get("medium") or picture.get("large"),
        extra=extra,
        rating=float(score) if score > 0 else None,
        status=STATUS_MAP.get(status),
        tags=[status] if status else [],
        consumed_at=parse_date(list_status.get("updated_at")) or utcnow(),
        progress=progress,
        progress_total=progress_total,
    )


async def sync_mal_data(
    db: AsyncSession,
    user_id: int,
    username: str,
    access_token: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> dict[str, Any]:
    """
    Import a user's anime and manga lists.

    Returns {"anime_imported", "manga_imported", "errors"}. A list that
    fails to download is recorded in errors and the other list still runs.
    """
    pipeline = ImportPipeline(db, user_id)
    errors: list[str] = []
    imported = {MediaType.ANIME: 0, MediaType.MANGA: 0}

    async with MyAnimeListClient(access_token=access_token, client=client) as mal:
        for media_type, fetch in (
            (MediaType.ANIME, mal.get_all_anime),
            (MediaType.MANGA, mal.get_all_manga),
        ):
            try:
                entries = await fetch(username)
            except ExternalServiceError as e:
                logger.error("mal_list_fetch_failed", user_id=user_id, media_type=media_type.value, error=e.message)
                errors.append(f"Failed to fetch {media_type.value} list: {e.message}")
                continue

            items = [to_import_item(entry, media_type) for entry in entries]
            result = await pipeline.import_items(media_type, SourceName.MYANIMELIST.value, items)
            imported[media_type] = result.imported
            errors.extend(result.errors)

    await pipeline.finalize(SourceName.MYANIMELIST)

    logger.info(
        "mal_sync_completed",
        user_id=user_id,
        username=username,
        anime_imported=imported[MediaType.ANIME],
        manga_imported=imported[MediaType.MANGA],
        errors=len(errors),
    )
    return {
        "anime_imported": imported[MediaType.ANIME],
        "manga_imported": imported[MediaType.MANGA],
        "errors": errors,
    }
