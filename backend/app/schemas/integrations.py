"""
Pydantic schemas for connected sources and imports.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.source import SourceName


class SourceResponse(BaseModel):
    """A connected account. Tokens are never returned."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    source_name: SourceName
    source_user_id: Optional[str] = None
    last_synced_at: Optional[datetime] = None
    created_at: datetime


class SourceListResponse(BaseModel):
    sources: List[SourceResponse]


class ImportResponse(BaseModel):
    source: SourceName
    imported: int
    errors: List[str] = Field(default_factory=list)


class ScrapeConnectRequest(BaseModel):
    """Letterboxd username, or Goodreads username / numeric id / profile URL."""

    username: str = Field(..., min_length=1, max_length=255)
    max_pages: Optional[int] = Field(None, ge=1, le=20)


class MALConnectRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=255)


class MALSyncResponse(BaseModel):
    anime_imported: int
    manga_imported: int
    errors: List[str] = Field(default_factory=list)


class AuthorizeResponse(BaseModel):
    """Where the frontend should send the browser to grant access."""

    authorization_url: str


class SyncQueuedResponse(BaseModel):
    source: SourceName
    task_id: str
    status: str = "queued"


class CoverUpdateResponse(BaseModel):
    updated: int
    failed: int
    total: int
