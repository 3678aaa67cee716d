"""Pydantic schemas for catalog songs."""

from datetime import datetime
from typing import Optional

from schemas.common import CamelModel


class SongResponse(CamelModel):
    """Schema for Song API response."""

    id: str
    title: str
    label: str
    album: Optional[str] = None
    album_artist: Optional[str] = None
    artists: list[str] = []
    genres: list[str] = []
    track: Optional[int] = None
    year: Optional[int] = None
    duration_seconds: float = 0.0
    explicit: bool = False
    size: int
    checksum: str
    checksum_algorithm: str
    created_at: datetime
    modified_at: datetime
    added_at: datetime
