from typing import List, Optional, Tuple


class AnkiSyncError(Exception):
    """Base class for everything a sync pass can report."""


class AnkiConnectionError(AnkiSyncError):
    """AnkiConnect is not reachable (Anki closed, add-on missing, timeout)."""


class AnkiProtocolError(AnkiSyncError, RuntimeError):
    """AnkiConnect answered, but not with a usable `{result, error}` envelope."""


class PartialBatchError(AnkiSyncError):
    """Some sub-actions of a `multi` batch failed.

    The batch has already been applied when this is raised, so the
    sub-actions that succeeded stay applied.
    """

    def __init__(self, action: str, failures: List[Tuple[str, str]]) -> None:
        self.action = action
        self.failures = failures
        super().__init__(
            f"{len(failures)} sub-action(s) of {action} failed: "
            + "; ".join(f"{name}: {error}" for name, error in failures)
        )


class MediaResolutionError(AnkiSyncError):
    def __init__(self, filename: str, reason: Optional[str] = None) -> None:
        self.filename = filename
        message = f"Could not read media file '{filename}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class DocumentRewriteError(AnkiSyncError):
    """An id marker could not be placed in the document."""


class ReconciliationMismatch(AnkiSyncError):
    """Remote note and local card disagree on the number of fields."""

    def __init__(self, note_id: int, local_fields: List[str], remote_fields: List[str]) -> None:
        self.note_id = note_id
        self.local_fields = local_fields
        self.remote_fields = remote_fields
        super().__init__(
            f"Note {note_id} has fields {remote_fields} in Anki but the card declares "
            f"{local_fields}; change its note type in Anki or delete it"
        )
