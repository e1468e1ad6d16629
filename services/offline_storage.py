from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from core.errors import RecordNotFound, StorageUnavailable, UserRequired
from core.settings import OUTBOX, OutboxSettings
from models.pending_record import OfflineRecord, RecordType, new_offline_record
from services.sync_log import get_sync_logger
from storage.offline_store import OfflineStore
from utils.datetime_utils import utc_now

CountListener = Callable[[int], None]


def next_try_at(attempts: int, now: datetime, outbox: OutboxSettings = OUTBOX) -> datetime:
    delay = min(outbox.backoff_cap_sec, outbox.backoff_base_sec * 2 ** max(attempts - 1, 0))
    return now + timedelta(seconds=delay)


class OfflineStorage:
    """User-scoped offline queue used by the field forms.

    Wraps an :class:`OfflineStore` and keeps ``pending_count`` current so a
    badge can be rendered without querying the database on every refresh.
    """

    def __init__(
        self,
        store: OfflineStore,
        user_id: Optional[str] = None,
        *,
        outbox: OutboxSettings = OUTBOX,
    ) -> None:
        self.store = store
        self.user_id = user_id
        self.outbox = outbox
        self.logger = get_sync_logger()
        self._pending_count = 0
        self._listeners: List[CountListener] = []
        try:
            self.store.open()
            self.is_supported = True
        except StorageUnavailable as exc:
            self.logger.warning("Offline storage disabled: %s", exc)
            self.is_supported = False
        if self.is_supported:
            self.refresh_count()

    # ----- pending count -----
    @property
    def pending_count(self) -> int:
        return self._pending_count

    def subscribe(self, listener: CountListener) -> Callable[[], None]:
        self._listeners.append(listener)
        listener(self._pending_count)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_count(self, value: int) -> None:
        self._pending_count = value
        for listener in list(self._listeners):
            listener(value)

    def refresh_count(self) -> int:
        if not self.is_supported or not self.user_id:
            self._set_count(0)
            return 0
        self._set_count(self.store.count(self.user_id))
        return self._pending_count

    # ----- queue -----
    def save_offline_record(
        self,
        data: Dict[str, Any],
        type: RecordType | str = RecordType.FUEL_RECORD,
    ) -> str:
        if not self.user_id:
            raise UserRequired("User ID required")
        if not self.is_supported:
            raise StorageUnavailable("Offline storage is not supported on this device")

        record = new_offline_record(data, type, self.user_id)
        self.store.add(record)
        self.logger.info("Queued offline %s %s", record.type.value, record.id)
        self.refresh_count()
        return record.id

    def get_pending_records(self) -> List[OfflineRecord]:
        if not self.user_id or not self.is_supported:
            return []
        return self.store.get_by_user(self.user_id)

    def mark_record_synced(self, record_id: str) -> None:
        self.store.delete(record_id)
        self.refresh_count()

    def mark_sync_failed(self, record_id: str, error: Optional[str] = None) -> None:
        record = self.store.get(record_id)
        if record is None:
            return
        now = utc_now()
        record.register_failed_attempt(
            now,
            next_try_at(record.sync_attempts + 1, now, self.outbox),
            error,
        )
        try:
            self.store.update(record, upsert=False)
        except RecordNotFound:
            self.logger.info("Pending record %s was removed before its failure was saved", record_id)
            self.refresh_count()
            return
        if record.sync_attempts >= self.outbox.max_attempts:
            self.logger.warning(
                "Pending record %s reached %s attempts, no further retries",
                record_id,
                record.sync_attempts,
            )
        self.refresh_count()

    def clear_all_pending(self) -> None:
        self.store.clear()
        self._set_count(0)

    def due_records(self, limit: Optional[int] = None) -> List[OfflineRecord]:
        if not self.user_id or not self.is_supported:
            return []
        return self.store.due(
            limit=limit or self.outbox.batch_size,
            max_attempts=self.outbox.max_attempts,
            user_id=self.user_id,
        )

    def exhausted_records(self) -> List[OfflineRecord]:
        if not self.user_id or not self.is_supported:
            return []
        return self.store.exhausted(self.outbox.max_attempts, user_id=self.user_id)

    # ----- cache -----
    def cache_data(self, key: str, data: Any) -> None:
        self.store.cache_set(key, data)

    def get_cached_data(self, key: str) -> Any:
        if not self.is_supported:
            return None
        return self.store.cache_get(key)


__all__ = ["OfflineStorage", "next_try_at"]
