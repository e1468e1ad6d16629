"""Models exposed by the Abastech sync core."""
from .cache_entry import CacheEntry
from .mirror import HorimeterReading, Vehicle
from .pending_record import OfflineRecord, PendingRecordRow, RecordType, new_offline_record

__all__ = [
    "CacheEntry",
    "HorimeterReading",
    "OfflineRecord",
    "PendingRecordRow",
    "RecordType",
    "Vehicle",
    "new_offline_record",
]
