#!/usr/bin/env python
"""Cancel device sync sessions abandoned mid-sync.

A session stays InProgress until the device completes or cancels it. When a
device disappears mid-sync, its session blocks every new sync for that
device. This script cancels in-progress sessions whose last chunk or upload
is older than the staleness window (``SYNC_STALE_SESSION_MINUTES`` by
default). Records already posted are kept.

Usage:
    python -m scripts.cancel_stale_sessions
    python -m scripts.cancel_stale_sessions --older-than-minutes 60
    python -m scripts.cancel_stale_sessions --dry-run
"""

import argparse

from config import settings
from database import get_session_local
from services.sync_session_service import SyncSessionService


def cancel_stale_sessions(older_than_minutes: int | None = None, dry_run: bool = False, db=None) -> int:
    """Cancel (or list, with ``dry_run``) stale sessions.

    Returns:
        Number of stale sessions found.
    """
    owns_session = db is None
    if owns_session:
        SessionLocal = get_session_local()
        db = SessionLocal()

    minutes = older_than_minutes
    if minutes is None:
        minutes = settings.SYNC_STALE_SESSION_MINUTES
    try:
        stale = SyncSessionService.find_stale_sessions(db, minutes)
        print(f"Found {len(stale)} sync sessions with no activity for {minutes} minutes")

        for session in stale:
            print(
                f"  - {session.id} (device {session.device_id}, "
                f"started {session.started_at}, last activity {session.last_activity_at})"
            )

        if dry_run:
            print("\n[DRY RUN] No changes made. Run without --dry-run to apply.")
        elif stale:
            SyncSessionService.cancel_stale_sessions(db, minutes)
            print(f"\nCancelled {len(stale)} sessions")

        return len(stale)

    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        raise
    finally:
        if owns_session:
            db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Cancel device sync sessions with no recent activity"
    )
    parser.add_argument(
        "--older-than-minutes",
        type=int,
        default=None,
        help=f"Inactivity window in minutes (default: {settings.SYNC_STALE_SESSION_MINUTES})",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List stale sessions without cancelling them",
    )
    args = parser.parse_args()

    cancel_stale_sessions(older_than_minutes=args.older_than_minutes, dry_run=args.dry_run)
