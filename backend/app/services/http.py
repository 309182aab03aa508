"""
Outbound HTTP client factory.

Every integration (MyAnimeList, Spotify, Open Library, TMDB, scrapers) talks
to the outside world through an httpx.AsyncClient built here, so timeouts
and the User-Agent are configured in one place. Callers that receive a
client from outside (tests pass one backed by httpx.MockTransport) do not
close it; clients created here are closed by whoever created them.
"""

from typing import Any, Optional

import httpx

from app.core.config import settings


def build_client(
    *,
    base_url: str = "",
    headers: Optional[dict[str, str]] = None,
    browser: bool = False,
    **kwargs: Any,
) -> httpx.AsyncClient:
    """
    Args:
        base_url: prefix for relative request URLs
        headers: extra default headers
        browser: send the browser User-Agent used for HTML scraping
    """
    default_headers = {
        "User-Agent": settings.SCRAPER_USER_AGENT if browser else f"{settings.APP_NAME}/{settings.VERSION}",
    }
    if browser:
        default_headers["Accept"] = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
        default_headers["Accept-Language"] = "en-US,en;q=0.9"
    if headers:
        default_headers.update(headers)

    return httpx.AsyncClient(
        base_url=base_url,
        headers=default_headers,
        follow_redirects=True,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        **kwargs,
    )


class HTTPClientOwner:
    """
    Mixin for API wrappers that either own their client or borrow one.

        async with MyAnimeListClient() as mal:
            ...
    """

    _client: Optional[httpx.AsyncClient] = None
    _owns_client: bool = False

    def _init_client(self, client: Optional[httpx.AsyncClient], **build_kwargs: Any) -> None:
        if client is not None:
            self._client = client
            self._owns_client = False
        else:
            self._client = build_client(**build_kwargs)
            self._owns_client = True

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False
