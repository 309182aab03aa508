"""
Integration endpoints: connecting sources and importing libraries.

Sources:
--------
- goodreads: CSV export upload, or scrape of the public "read" shelf
- letterboxd: CSV export upload, or scrape of the public films pages
- myanimelist: public list by username, or OAuth (PKCE) for a token
- spotify: OAuth authorization code flow

The OAuth callbacks are hit by the provider's browser redirect, which
carries no bearer token; the user is identified by the signed `state`
issued by the matching /authorize endpoint. Callbacks finish by
redirecting to the frontend settings page with ?connected= or ?error=.
"""

from typing import Optional
from urllib.parse import urlencode

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
    status,
)
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy import select

from app.core.auth import CurrentUser
from app.core.config import settings
from app.core.errors import AppError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.rate_limit import scrape_rate_limit
from app.core.security import create_oauth_state, decode_oauth_state
from app.db.deps import DBSession
from app.models.media import MediaType
from app.models.source import Source, SourceName
from app.schemas.integrations import (
    AuthorizeResponse,
    CoverUpdateResponse,
    ImportResponse,
    MALConnectRequest,
    MALSyncResponse,
    ScrapeConnectRequest,
    SourceListResponse,
    SourceResponse,
    SyncQueuedResponse,
)
from app.services.cache import cache
from app.services.covers import update_missing_covers
from app.services.integrations.base import ImportPipeline
from app.services.integrations.goodreads_csv import import_goodreads_csv
from app.services.integrations.letterboxd_csv import import_letterboxd_csv
from app.services.integrations.myanimelist import MyAnimeListClient, generate_pkce, sync_mal_data
from app.services.integrations.spotify import SpotifyClient, sync_spotify_data
from app.services.scrapers.goodreads import import_goodreads_profile
from app.services.scrapers.letterboxd import import_letterboxd_profile

logger = get_logger(__name__)

router = APIRouter(prefix="/integrations", tags=["integrations"])

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
MAL_VERIFIER_COOKIE = "mal_code_verifier"
OAUTH_COOKIE_MAX_AGE = 600


def _server_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail
    )


def _settings_redirect(**params: str) -> RedirectResponse:
    return RedirectResponse(
        url=f"{settings.FRONTEND_URL}/settings?{urlencode(params)}",
        status_code=status.HTTP_302_FOUND,
    )


async def _read_csv_upload(file: UploadFile) -> str:
    filename = file.filename or ""
    if not filename.lower().endswith(".csv") and file.content_type != "text/csv":
        raise ValidationError("File must be a CSV file")

    content = await file.read()
    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationError("File size must be less than 10MB")

    text = content.decode("utf-8", errors="replace")
    if not text.strip():
        raise ValidationError("CSV file is empty")
    return text


# ================================
# Connected sources
# ================================

@router.get("", response_model=SourceListResponse)
async def list_sources(current_user: CurrentUser, db: DBSession):
    try:
        result = await db.execute(
            select(Source)
            .where(Source.user_id == current_user.id)
            .order_by(Source.created_at)
        )
        return SourceListResponse(
            sources=[SourceResponse.model_validate(s) for s in result.scalars().all()]
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("source_list_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to list integrations")


@router.delete("/{source_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_source(source_id: int, current_user: CurrentUser, db: DBSession):
    """Disconnect a source. Imported library rows are kept."""
    try:
        result = await db.execute(
            select(Source).where(Source.id == source_id, Source.user_id == current_user.id)
        )
        source = result.scalar_one_or_none()
        if source is None:
            raise NotFoundError("Integration", source_id)

        await db.delete(source)
        await db.commit()
        await cache.invalidate_user(current_user.id)
        logger.info("source_disconnected", user_id=current_user.id, source=str(source.source_name))
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("source_delete_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to delete integration")


# ================================
# CSV uploads
# ================================

@router.post("/goodreads/upload", response_model=ImportResponse)
async def upload_goodreads_csv(
    current_user: CurrentUser,
    db: DBSession,
    file: UploadFile = File(...),
    profile_url: Optional[str] = Form(None),
):
    """Import a Goodreads library export (goodreads_library_export.csv)."""
    try:
        text = await _read_csv_upload(file)
        result = await import_goodreads_csv(db, current_user.id, text, profile_url=profile_url)
        return ImportResponse(source=SourceName.GOODREADS, imported=result.imported, errors=result.errors)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("goodreads_upload_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to import Goodreads CSV")


@router.post("/letterboxd/upload", response_model=ImportResponse)
async def upload_letterboxd_csv(
    current_user: CurrentUser,
    db: DBSession,
    file: UploadFile = File(...),
    username: Optional[str] = Form(None),
):
    """Import a Letterboxd export (ratings.csv, watched.csv or diary.csv)."""
    try:
        text = await _read_csv_upload(file)
        result = await import_letterboxd_csv(db, current_user.id, text, username=username)
        return ImportResponse(source=SourceName.LETTERBOXD, imported=result.imported, errors=result.errors)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("letterboxd_upload_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to import Letterboxd CSV")


# ================================
# Scrape-based connections
# ================================

@router.post(
    "/letterboxd/connect",
    response_model=ImportResponse,
    dependencies=[Depends(scrape_rate_limit)],
)
async def connect_letterboxd(
    request: ScrapeConnectRequest,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        result = await import_letterboxd_profile(
            db, current_user.id, request.username.strip(), max_pages=request.max_pages
        )
        return ImportResponse(
            source=SourceName.LETTERBOXD,
            imported=result["imported"],
            errors=result["errors"],
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("letterboxd_connect_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to import Letterboxd profile")


@router.post(
    "/goodreads/connect",
    response_model=ImportResponse,
    dependencies=[Depends(scrape_rate_limit)],
)
async def connect_goodreads(
    request: ScrapeConnectRequest,
    current_user: CurrentUser,
    db: DBSession,
):
    """Accepts a numeric Goodreads id, a vanity name or a profile URL."""
    try:
        result = await import_goodreads_profile(
            db, current_user.id, request.username, max_pages=request.max_pages
        )
        return ImportResponse(
            source=SourceName.GOODREADS,
            imported=result["imported"],
            errors=result["errors"],
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("goodreads_connect_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to import Goodreads profile")


# ================================
# MyAnimeList
# ================================

@router.post("/myanimelist/connect", response_model=MALSyncResponse)
async def connect_myanimelist(
    request: MALConnectRequest,
    current_user: CurrentUser,
    db: DBSession,
):
    """Import a public MAL list by username (client id auth, no OAuth needed)."""
    if not settings.MAL_CLIENT_ID:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="MyAnimeList integration is not configured"
        )

    try:
        username = request.username.strip()
        await ImportPipeline(db, current_user.id).ensure_source(
            SourceName.MYANIMELIST, source_user_id=username
        )
        result = await sync_mal_data(db, current_user.id, username)
        return MALSyncResponse(**result)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("mal_connect_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to import MyAnimeList data")


@router.get("/myanimelist/authorize", response_model=AuthorizeResponse)
async def authorize_myanimelist(current_user: CurrentUser):
    """
    Start the MAL OAuth flow.

    The PKCE verifier is kept in a short-lived httpOnly cookie and read back
    by the callback.
    """
    if not settings.MAL_CLIENT_ID:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="MyAnimeList integration is not configured"
        )

    verifier, challenge = generate_pkce()
    state = create_oauth_state(current_user.id, SourceName.MYANIMELIST.value)
    url = MyAnimeListClient.get_auth_url(state, challenge)

    response_body = AuthorizeResponse(authorization_url=url)
    response = JSONResponse(response_body.model_dump())
    response.set_cookie(
        MAL_VERIFIER_COOKIE,
        verifier,
        max_age=OAUTH_COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response


@router.get("/myanimelist/callback")
async def myanimelist_callback(
    request: Request,
    db: DBSession,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
):
    if error:
        return _settings_redirect(error=f"myanimelist_{error}")
    if not code:
        return _settings_redirect(error="missing_code")

    claims = decode_oauth_state(state or "", SourceName.MYANIMELIST.value)
    verifier = request.cookies.get(MAL_VERIFIER_COOKIE)
    if claims is None or not verifier:
        logger.warning("mal_callback_invalid_state")
        return _settings_redirect(error="invalid_state")

    user_id = int(claims["uid"])
    try:
        async with MyAnimeListClient() as mal:
            tokens = await mal.exchange_code(code, verifier)
            mal.access_token = tokens.access_token
            profile = await mal.get_current_user()

        username = profile.get("name") or ""
        await ImportPipeline(db, user_id).ensure_source(
            SourceName.MYANIMELIST,
            source_user_id=username,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=tokens.expires_at(),
        )
        await sync_mal_data(db, user_id, username, access_token=tokens.access_token)
    except Exception as e:
        logger.error("mal_callback_failed", user_id=user_id, error=str(e))
        response = _settings_redirect(error="myanimelist_connect_failed")
    else:
        logger.info("mal_connected", user_id=user_id)
        response = _settings_redirect(connected=SourceName.MYANIMELIST.value)

    response.delete_cookie(MAL_VERIFIER_COOKIE)
    return response


# ================================
# Spotify
# ================================

@router.get("/spotify/authorize", response_model=AuthorizeResponse)
async def authorize_spotify(current_user: CurrentUser):
    if not settings.SPOTIFY_CLIENT_ID or not settings.SPOTIFY_CLIENT_SECRET:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Spotify integration is not configured"
        )

    state = create_oauth_state(current_user.id, SourceName.SPOTIFY.value)
    return AuthorizeResponse(authorization_url=SpotifyClient.get_auth_url(state))


@router.get("/spotify/callback")
async def spotify_callback(
    db: DBSession,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
):
    if error:
        return _settings_redirect(error=f"spotify_{error}")
    if not code:
        return _settings_redirect(error="missing_code")

    claims = decode_oauth_state(state or "", SourceName.SPOTIFY.value)
    if claims is None:
        logger.warning("spotify_callback_invalid_state")
        return _settings_redirect(error="invalid_state")

    user_id = int(claims["uid"])
    try:
        async with SpotifyClient() as spotify:
            tokens = await spotify.exchange_code(code)
            spotify.access_token = tokens.access_token
            profile = await spotify.get_current_user()

        source = await ImportPipeline(db, user_id).ensure_source(
            SourceName.SPOTIFY,
            source_user_id=profile.get("id") or "",
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=tokens.expires_at(),
        )
        await sync_spotify_data(db, user_id, source)
    except Exception as e:
        logger.error("spotify_callback_failed", user_id=user_id, error=str(e))
        return _settings_redirect(error="spotify_connect_failed")

    logger.info("spotify_connected", user_id=user_id)
    return _settings_redirect(connected=SourceName.SPOTIFY.value)


# ================================
# Background sync and covers
# ================================

@router.post("/covers/update", response_model=CoverUpdateResponse)
async def update_covers(
    current_user: CurrentUser,
    db: DBSession,
    media_type: Optional[MediaType] = Query(None),
    limit: int = Query(50, ge=1, le=500),
):
    """Look up covers for books and movies that have no poster yet."""
    try:
        result = await update_missing_covers(db, media_type=media_type, limit=limit)
        return CoverUpdateResponse(**result)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("cover_update_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to update covers")


@router.post(
    "/{source}/sync",
    response_model=SyncQueuedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def sync_source(source: str, current_user: CurrentUser, db: DBSession):
    """
    Queue a re-import of a connected source on the Celery worker.

    Raises:
        ValidationError 400: unknown source name
        NotFoundError 404: the source is not connected
    """
    try:
        source_name = SourceName(source)
    except ValueError:
        raise ValidationError(
            f"Invalid source. Must be one of: {', '.join(s.value for s in SourceName)}"
        )

    connected = await ImportPipeline(db, current_user.id).get_source(source_name)
    if connected is None:
        raise NotFoundError(f"{source_name.value} integration")
    if source_name != SourceName.SPOTIFY and not connected.source_user_id:
        raise ValidationError(
            f"{source_name.value} was imported from a CSV file; upload a new export to sync"
        )

    from app.tasks.source_tasks import sync_source_task

    try:
        task = sync_source_task.delay(current_user.id, source_name.value)
    except Exception as e:
        logger.error("source_sync_queue_failed", user_id=current_user.id, source=source, error=str(e))
        raise _server_error("Failed to queue sync")

    logger.info("source_sync_queued", user_id=current_user.id, source=source, task_id=task.id)
    return SyncQueuedResponse(source=source_name, task_id=task.id)
