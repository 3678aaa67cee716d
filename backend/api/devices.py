"""Devices API endpoints."""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session, joinedload

from api.helpers import device_response_dict, device_song_response_dict, get_naming_service
from database import get_db
from models import SongDevice
from schemas import DeviceCreate, DeviceResponse, DeviceSongResponse, DeviceUpdate
from services.device_service import DeviceService
from services.naming_service import NamingService
from services.pending_action_service import PendingActionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/devices", tags=["devices"])


@router.get("", response_model=list[DeviceResponse])
def list_devices(db: Session = Depends(get_db)):
    """List devices with the number of songs mapped to each."""
    return [
        device_response_dict(device, song_count)
        for device, song_count in DeviceService.list_devices(db)
    ]


@router.post("", response_model=DeviceResponse, status_code=201)
def create_device(
    device_data: DeviceCreate,
    db: Session = Depends(get_db),
    naming: NamingService = Depends(get_naming_service),
):
    """Register a device.

    Raises:
        409: A device with this name already exists
        422: The naming template is invalid
    """
    device = DeviceService.create_device(
        db,
        device_data.name,
        icon=device_data.icon,
        color=device_data.color,
        naming_template=device_data.naming_template,
        naming=naming,
    )
    db.commit()
    db.refresh(device)
    return device_response_dict(device, 0)


@router.get("/{device_id}", response_model=DeviceResponse)
def get_device(device_id: str, db: Session = Depends(get_db)):
    """Get a device by ID."""
    device = DeviceService.get_device(db, device_id)
    return device_response_dict(device, DeviceService.song_count(db, device_id))


@router.patch("/{device_id}", response_model=DeviceResponse)
def update_device(
    device_id: str,
    device_data: DeviceUpdate,
    db: Session = Depends(get_db),
    naming: NamingService = Depends(get_naming_service),
):
    """Update a device's icon, color or naming template.

    Paths of songs already on the device are not renamed.
    """
    update_dict = device_data.model_dump(exclude_unset=True)
    device = DeviceService.update_device(db, device_id, naming=naming, **update_dict)
    db.commit()
    db.refresh(device)
    return device_response_dict(device, DeviceService.song_count(db, device_id))


@router.delete("/{device_id}", status_code=204)
def delete_device(device_id: str, db: Session = Depends(get_db)):
    """Delete a device with its song mappings and sync history."""
    DeviceService.delete_device(db, device_id)
    db.commit()
    return Response(status_code=204)


@router.get("/{device_id}/songs", response_model=list[DeviceSongResponse])
def list_device_songs(device_id: str, db: Session = Depends(get_db)):
    """List the songs mapped to a device, ordered by device path."""
    DeviceService.get_device(db, device_id)
    mappings = (
        db.query(SongDevice)
        .options(joinedload(SongDevice.song))
        .filter(SongDevice.device_id == device_id)
        .order_by(SongDevice.device_path)
        .all()
    )
    return [device_song_response_dict(m) for m in mappings]


@router.put("/{device_id}/songs/{song_id}", response_model=DeviceSongResponse)
def add_song_to_device(
    device_id: str,
    song_id: str,
    db: Session = Depends(get_db),
    naming: NamingService = Depends(get_naming_service),
):
    """Put a song on a device; the device is asked to download it."""
    mapping = PendingActionService.add_song_to_device(db, device_id, song_id, naming)
    return device_song_response_dict(mapping)


@router.delete("/{device_id}/songs/{song_id}", status_code=204)
def remove_song_from_device(device_id: str, song_id: str, db: Session = Depends(get_db)):
    """Take a song off a device; the device is asked to delete its copy."""
    PendingActionService.remove_song_from_device(db, device_id, song_id)
    return Response(status_code=204)


@router.post("/{device_id}/songs/{song_id}/request-upload", response_model=DeviceSongResponse)
def request_upload(device_id: str, song_id: str, db: Session = Depends(get_db)):
    """Ask the device to push its copy of a song on its next sync."""
    mapping = PendingActionService.request_upload(db, device_id, song_id)
    return device_song_response_dict(mapping)
