"""Typed exception hierarchy for external collaborator errors.

Raised by the metadata codec, template evaluator and audio storage
adapters. The sync engine converts them into per-file ``Error`` ledger
records or validation failures rather than letting them abort a session.
"""


class CollaboratorError(Exception):
    """Base exception for all collaborator-related errors.

    Carries the collaborator name so callers can identify which one failed.
    """

    def __init__(self, message: str, collaborator: str = ""):
        self.collaborator = collaborator
        super().__init__(message)


class MetadataReadError(CollaboratorError):
    """Audio bytes could not be parsed or carry no usable tags."""

    pass


class MetadataWriteError(CollaboratorError):
    """Tags could not be written back to the audio bytes."""

    pass


class TemplateError(CollaboratorError):
    """A naming template failed to parse or render."""

    pass


class StorageError(CollaboratorError):
    """Reading or writing audio bytes in the repository failed."""

    pass
