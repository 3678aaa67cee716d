"""Songs API endpoints."""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from api.helpers import get_naming_service, get_song_service
from database import get_db
from schemas import SongDevicesUpdate, SongDevicesUpdateResponse, SongResponse
from services.naming_service import NamingService
from services.pending_action_service import PendingActionService
from services.song_service import SongService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/songs", tags=["songs"])


@router.get("/{song_id}", response_model=SongResponse)
def get_song(song_id: str, db: Session = Depends(get_db)):
    """Get a catalog song by ID."""
    return SongService.get_song(db, song_id)


@router.get("/{song_id}/download")
def download_song(
    song_id: str,
    device_id: Optional[str] = Query(None, alias="deviceId"),
    db: Session = Depends(get_db),
    song_service: SongService = Depends(get_song_service),
):
    """Stream a song's audio with the catalog's tags.

    With ``deviceId`` the attachment is named after the song's path on that
    device.
    """
    download = song_service.download(db, song_id, device_id)
    return Response(
        content=download.content,
        media_type=download.media_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(download.filename)}",
        },
    )


@router.put("/{song_id}/devices", response_model=SongDevicesUpdateResponse)
def update_song_devices(
    song_id: str,
    body: SongDevicesUpdate,
    db: Session = Depends(get_db),
    naming: NamingService = Depends(get_naming_service),
):
    """Set the exact devices a song should be on.

    Newly added devices get a pending Download; dropped devices get a
    pending Remove.
    """
    added, removed = PendingActionService.update_song_devices(
        db, song_id, body.device_ids, naming
    )
    return {"added": added, "removed": removed}
