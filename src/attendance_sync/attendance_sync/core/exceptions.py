class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class DuplicateRecordError(ValidationError):
    """Raised when an (office, level, date) triple already has a record."""


class NotFoundError(DomainError):
    """Raised when a mutation targets a record that does not exist."""


class ReferenceDataError(DomainError):
    """Raised when roster/reference lookups fail."""


class SyncError(DomainError):
    """Base exception for sync operations."""


class TransientSyncError(SyncError):
    """Network-level failure; the queued entry stays and is retried later."""


class ConflictError(SyncError):
    """Remote holds a newer or duplicate version.

    Resolved by last-writer-wins during sync; returned as a notice, not raised.
    """

    def __init__(self, message: str, *, entity_id: str, operation: str, dropped: int = 0):
        super().__init__(message)
        self.entity_id = entity_id
        self.operation = operation
        self.dropped = dropped


class StorageError(DomainError):
    """Base exception for local storage failures."""


class StorageFullError(StorageError):
    """Local storage is exhausted; the attempted write was rolled back."""


class StorageCorruptionError(StorageError):
    """Local database file is unreadable or malformed."""
