"""Device service - manages device CRUD operations."""

import logging

from sqlalchemy import distinct, func
from sqlalchemy.exc import IntegrityError as DBIntegrityError
from sqlalchemy.orm import Session

from models import Device, SongDevice
from services.exceptions import ConflictError, NotFoundError, ValidationError
from services.naming_service import NamingService

logger = logging.getLogger(__name__)

DEFAULT_OWNER = "default"

# Sentinel so update_device can tell "clear the template" from "leave it"
UNSET = object()


class DeviceService:
    """Service for registering and editing sync target devices."""

    @staticmethod
    def list_devices(db: Session, owner: str = DEFAULT_OWNER) -> list[tuple[Device, int]]:
        """List an owner's devices by name, each with its mapped song count."""
        song_counts = dict(
            db.query(SongDevice.device_id, func.count(distinct(SongDevice.song_id)))
            .group_by(SongDevice.device_id)
            .all()
        )
        devices = db.query(Device).filter(Device.owner == owner).order_by(Device.name).all()
        return [(device, song_counts.get(device.id, 0)) for device in devices]

    @staticmethod
    def get_device(db: Session, device_id: str) -> Device:
        """Get a device by ID.

        Raises:
            NotFoundError: If the device does not exist.
        """
        device = db.get(Device, device_id)
        if device is None:
            raise NotFoundError(f"Device {device_id} not found")
        return device

    @staticmethod
    def song_count(db: Session, device_id: str) -> int:
        """Number of songs mapped to a device."""
        return (
            db.query(func.count(distinct(SongDevice.song_id)))
            .filter(SongDevice.device_id == device_id)
            .scalar()
        )

    @staticmethod
    def _validate_template(naming: NamingService, template: str | None) -> str | None:
        if template is None or not template.strip():
            return None
        naming.validate_template(template)
        return template

    @staticmethod
    def create_device(
        db: Session,
        name: str,
        *,
        owner: str = DEFAULT_OWNER,
        icon: str | None = None,
        color: str | None = None,
        naming_template: str | None = None,
        naming: NamingService | None = None,
    ) -> Device:
        """Register a device.

        Raises:
            ValidationError: If the name is blank or the template is invalid.
            ConflictError: If the owner already has a device with this name.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Device name must not be empty")
        template = DeviceService._validate_template(naming or NamingService(), naming_template)

        existing = (
            db.query(Device).filter(Device.owner == owner, Device.name == name).first()
        )
        if existing is not None:
            raise ConflictError(f"Device '{name}' already exists")

        device = Device(
            name=name,
            owner=owner,
            icon=icon,
            color=color,
            naming_template=template,
        )
        db.add(device)
        try:
            db.flush()
        except DBIntegrityError as e:
            db.rollback()
            raise ConflictError(f"Device '{name}' already exists") from e

        logger.info("Device created: %s (id=%s)", device.name, device.id)
        return device

    @staticmethod
    def update_device(
        db: Session,
        device_id: str,
        *,
        icon=UNSET,
        color=UNSET,
        naming_template=UNSET,
        naming: NamingService | None = None,
    ) -> Device:
        """Update the cosmetic fields and naming template of a device.

        Only arguments that are passed change; passing None clears a field.
        Changing the template does not rename paths already on the device.

        Raises:
            NotFoundError: If the device does not exist.
            ValidationError: If the template is invalid.
        """
        device = DeviceService.get_device(db, device_id)

        if icon is not UNSET:
            device.icon = icon
        if color is not UNSET:
            device.color = color
        if naming_template is not UNSET:
            device.naming_template = DeviceService._validate_template(
                naming or NamingService(), naming_template
            )

        db.flush()
        logger.info("Device updated: %s (id=%s)", device.name, device.id)
        return device

    @staticmethod
    def delete_device(db: Session, device_id: str) -> None:
        """Delete a device with its mappings, sessions and their records.

        Raises:
            NotFoundError: If the device does not exist.
        """
        device = DeviceService.get_device(db, device_id)
        db.delete(device)
        db.flush()
        logger.info("Device deleted: %s (id=%s)", device.name, device_id)
