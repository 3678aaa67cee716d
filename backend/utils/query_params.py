"""Shared query parameter parsing utilities."""

from fastapi import HTTPException

from models.enums import SyncRecordAction, SyncRecordSource


def parse_record_actions(actions: str | None) -> set[SyncRecordAction] | None:
    """Parse a comma-separated, case-insensitive list of record actions.

    Args:
        actions: e.g. ``"created,Updated"``, or None.

    Returns:
        Set of actions, or None if input is empty.

    Raises:
        HTTPException: If any entry is not a known action.
    """
    if not actions:
        return None
    result = set()
    for raw in actions.split(","):
        raw = raw.strip()
        if not raw:
            continue
        try:
            result.add(SyncRecordAction(raw))
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid record action: {raw}",
            )
    return result if result else None


def parse_record_source(source: str | None) -> SyncRecordSource | None:
    """Parse a single, case-insensitive record source.

    Raises:
        HTTPException: If the value is not a known source.
    """
    if not source or not source.strip():
        return None
    try:
        return SyncRecordSource(source.strip())
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid record source: {source}",
        )
