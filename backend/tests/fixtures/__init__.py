"""Test fixtures and sample data."""
import pytest
from datetime import datetime

from models import Device, PendingAction, Song, SongDevice, SyncSession, SyncSessionStatus
from sqlalchemy.orm import Session

T1 = datetime(2024, 3, 1, 12, 0, 0)
T2 = datetime(2024, 3, 2, 8, 30, 0)


def create_song(
    db: Session,
    title: str = "Song",
    artist: str = "Artist",
    album: str | None = "Album",
    repository_path: str | None = None,
    checksum: str = "0" * 64,
) -> Song:
    """Create a catalog song.

    This is a helper function (not a fixture) for tests that need several
    songs. The caller commits.
    """
    song = Song(
        title=title,
        label=f"{title} - {artist}" + (f" - {album}" if album else ""),
        album=album,
        album_artist=artist,
        artists=[artist],
        genres=[],
        duration_seconds=200.0,
        size=1024,
        repository_path=repository_path or f"{artist}/{album or '(No album)'}/{title} - {artist}.mp3",
        checksum=checksum,
        checksum_algorithm="sha256",
        created_at=T1,
        modified_at=T1,
    )
    db.add(song)
    db.flush()
    return song


def map_song(
    db: Session,
    device: Device,
    song: Song,
    path: str | None = None,
    pending_action: PendingAction | None = None,
    last_synced_modified_at: datetime | None = T1,
) -> SongDevice:
    """Put ``song`` on ``device`` at ``path`` (defaults to its repository path). The caller commits."""
    mapping = SongDevice(
        song_id=song.id,
        device_id=device.id,
        device_path=path or song.repository_path,
        pending_action=pending_action,
        last_synced_modified_at=last_synced_modified_at,
    )
    db.add(mapping)
    db.flush()
    return mapping


def open_session(db: Session, device: Device, dry_run: bool = False) -> SyncSession:
    """Create an in-progress session for ``device`` and commit."""
    session = SyncSession(
        device_id=device.id,
        status=SyncSessionStatus.IN_PROGRESS,
        is_dry_run=dry_run,
    )
    db.add(session)
    db.flush()
    device.active_session_id = session.id
    db.commit()
    return session


@pytest.fixture
def device(db: Session) -> Device:
    """Create a test device."""
    device = Device(name="Phone", icon="phone", color="#3B82F6")
    db.add(device)
    db.commit()
    return device


@pytest.fixture
def other_device(db: Session) -> Device:
    """Create a second test device."""
    device = Device(name="Car Stereo")
    db.add(device)
    db.commit()
    return device


@pytest.fixture
def song(db: Session) -> Song:
    """Create a test song stored at Artist/Album/Song - Artist.mp3."""
    song = create_song(db)
    db.commit()
    return song


@pytest.fixture
def song_on_device(db: Session, device: Device, song: Song) -> SongDevice:
    """Map the test song onto the test device, in sync as of T1."""
    mapping = map_song(db, device, song)
    db.commit()
    return mapping


@pytest.fixture
def sync_session(db: Session, device: Device) -> SyncSession:
    """Open a sync session for the test device."""
    return open_session(db, device)


@pytest.fixture
def dry_run_session(db: Session, device: Device) -> SyncSession:
    """Open a dry-run sync session for the test device."""
    return open_session(db, device, dry_run=True)
