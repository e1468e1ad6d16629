"""Exception types shared by the offline queue and the sync services."""
from __future__ import annotations


class OfflineStorageError(RuntimeError):
    """Base class for failures of the local offline store."""


class StorageUnavailable(OfflineStorageError):
    """The embedded database cannot be opened on this host."""


class DuplicateKey(OfflineStorageError):
    def __init__(self, record_id: str) -> None:
        super().__init__(f"Pending record already exists: {record_id}")
        self.record_id = record_id


class RecordNotFound(OfflineStorageError, KeyError):
    def __init__(self, record_id: str) -> None:
        super().__init__(f"Pending record not found: {record_id}")
        self.record_id = record_id

    def __str__(self) -> str:
        return str(self.args[0])


class InvalidType(ValueError):
    """Raised for a pending record type outside :class:`RecordType`."""


class UserRequired(ValueError):
    """Raised when the offline queue is used without a bound user."""


class SheetError(RuntimeError):
    """The spreadsheet answered with something we cannot work with."""


__all__ = [
    "DuplicateKey",
    "InvalidType",
    "OfflineStorageError",
    "RecordNotFound",
    "SheetError",
    "StorageUnavailable",
    "UserRequired",
]
