"""Typed exception hierarchy for the device sync engine.

Each exception carries the HTTP status the API layer maps it to, so route
handlers can let them propagate to the global handler in ``main.py``.
"""


class SyncEngineError(Exception):
    """Base exception for all sync engine errors."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(SyncEngineError):
    """Unknown device, session, song or mapping id."""

    status_code = 404


class ConflictError(SyncEngineError):
    """A session is already in progress, or a concurrent update won."""

    status_code = 409


class InvalidStateError(SyncEngineError):
    """Chunk or upload against a session that is not in progress."""

    status_code = 409


class ValidationError(SyncEngineError):
    """Malformed fingerprint entries, paths or oversized batches."""

    status_code = 422


class IntegrityError(SyncEngineError):
    """Uploaded bytes do not match the checksum the client claimed."""

    status_code = 422

    def __init__(self, message: str, expected: str = "", actual: str = ""):
        self.expected = expected
        self.actual = actual
        super().__init__(message)
