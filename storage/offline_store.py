"""Embedded SQLite store for pending field operations and cached lookups."""
from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlmodel import Session, SQLModel, create_engine, select
from sqlalchemy import func

from core.errors import DuplicateKey, RecordNotFound, StorageUnavailable
from core.settings import OFFLINE_DB_PATH
from models.cache_entry import CacheEntry
from models.pending_record import OfflineRecord, PendingRecordRow, RecordType
from storage import migrations
from utils.datetime_utils import ensure_utc, utc_now

STORE_TABLES = [PendingRecordRow.__table__, CacheEntry.__table__]


def _serialise(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, sort_keys=True, default=str)


def _deserialise(payload: Optional[str]) -> Any:
    if not payload:
        return None
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        return None


def _to_record(row: PendingRecordRow) -> OfflineRecord:
    data = _deserialise(row.payload)
    return OfflineRecord(
        id=row.id,
        type=RecordType(row.type),
        data=data if isinstance(data, dict) else {},
        user_id=row.user_id,
        created_at=ensure_utc(row.created_at),
        sync_attempts=row.sync_attempts or 0,
        last_sync_attempt=ensure_utc(row.last_sync_attempt),
        last_error=row.last_error,
        next_try_at=ensure_utc(row.next_try_at),
    )


def _apply(row: PendingRecordRow, record: OfflineRecord) -> PendingRecordRow:
    row.type = RecordType.coerce(record.type).value
    row.user_id = record.user_id
    row.payload = _serialise(record.data)
    row.created_at = record.created_at
    row.sync_attempts = record.sync_attempts
    row.last_sync_attempt = record.last_sync_attempt
    row.last_error = record.last_error
    row.next_try_at = record.next_try_at or record.created_at
    return row


class OfflineStore:
    """Pending-operations queue plus a flat key/value cache.

    Every method opens its own session, so each call is atomic on its own and
    nothing spans several calls. Construct one per database and pass it to the
    consumers; call :meth:`open` before use and :meth:`close` when done.
    """

    def __init__(
        self,
        db_path: str | Path = OFFLINE_DB_PATH,
        *,
        engine: Optional[Engine] = None,
    ) -> None:
        self.db_path = Path(db_path)
        self._engine: Optional[Engine] = engine
        self._external_engine = engine is not None
        self._opened = False

    # ----- lifecycle -----
    @property
    def is_open(self) -> bool:
        return self._opened

    def open(self) -> "OfflineStore":
        if self._opened:
            return self
        try:
            if self._engine is None:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self._engine = create_engine(
                    f"sqlite:///{self.db_path.as_posix()}", echo=False
                )
            SQLModel.metadata.create_all(self._engine, tables=STORE_TABLES)
            migrations.run_all(self._engine)
        except (ImportError, OSError, DBAPIError) as exc:
            if not self._external_engine and self._engine is not None:
                self._engine.dispose()
                self._engine = None
            raise StorageUnavailable(f"Offline storage unavailable: {exc}") from exc
        self._opened = True
        return self

    def close(self) -> None:
        if self._engine is not None and not self._external_engine:
            self._engine.dispose()
            self._engine = None
        self._opened = False

    def __enter__(self) -> "OfflineStore":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _session(self) -> Session:
        if not self._opened or self._engine is None:
            raise StorageUnavailable("Offline storage is not open")
        return Session(self._engine)

    # ----- pending records -----
    def add(self, record: OfflineRecord) -> None:
        with self._session() as session:
            if session.get(PendingRecordRow, record.id) is not None:
                raise DuplicateKey(record.id)
            session.add(_apply(PendingRecordRow(id=record.id, type="", user_id="", payload=""), record))
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateKey(record.id) from exc

    def get(self, record_id: str) -> Optional[OfflineRecord]:
        with self._session() as session:
            row = session.get(PendingRecordRow, record_id)
            return _to_record(row) if row else None

    def get_by_user(self, user_id: str) -> List[OfflineRecord]:
        with self._session() as session:
            stmt = (
                select(PendingRecordRow)
                .where(PendingRecordRow.user_id == user_id)
                .order_by(PendingRecordRow.created_at.asc())
            )
            return [_to_record(row) for row in session.exec(stmt)]

    def get_all(self) -> List[OfflineRecord]:
        with self._session() as session:
            stmt = select(PendingRecordRow).order_by(PendingRecordRow.created_at.asc())
            return [_to_record(row) for row in session.exec(stmt)]

    def count(self, user_id: Optional[str] = None) -> int:
        with self._session() as session:
            stmt = select(func.count()).select_from(PendingRecordRow)
            if user_id is not None:
                stmt = stmt.where(PendingRecordRow.user_id == user_id)
            return int(session.exec(stmt).one())

    def update(self, record: OfflineRecord, *, upsert: bool = True) -> None:
        """Replace the stored record by id.

        Put semantics by default: an absent id is inserted. With
        ``upsert=False`` an absent id raises :class:`RecordNotFound`.
        """

        with self._session() as session:
            row = session.get(PendingRecordRow, record.id)
            if row is None:
                if not upsert:
                    raise RecordNotFound(record.id)
                row = PendingRecordRow(id=record.id, type="", user_id="", payload="")
            session.add(_apply(row, record))
            session.commit()

    def delete(self, record_id: str) -> None:
        with self._session() as session:
            row = session.get(PendingRecordRow, record_id)
            if row is not None:
                session.delete(row)
                session.commit()

    def clear(self) -> None:
        with self._session() as session:
            for row in session.exec(select(PendingRecordRow)).all():
                session.delete(row)
            session.commit()

    def due(
        self,
        *,
        limit: int = 50,
        max_attempts: Optional[int] = None,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[OfflineRecord]:
        """Records whose retry time has come, oldest first."""

        moment = now or utc_now()
        with self._session() as session:
            stmt = select(PendingRecordRow).where(PendingRecordRow.next_try_at <= moment)
            if max_attempts is not None:
                stmt = stmt.where(PendingRecordRow.sync_attempts < max_attempts)
            if user_id is not None:
                stmt = stmt.where(PendingRecordRow.user_id == user_id)
            stmt = stmt.order_by(
                PendingRecordRow.next_try_at.asc(), PendingRecordRow.created_at.asc()
            ).limit(limit)
            return [_to_record(row) for row in session.exec(stmt)]

    def exhausted(self, max_attempts: int, *, user_id: Optional[str] = None) -> List[OfflineRecord]:
        with self._session() as session:
            stmt = select(PendingRecordRow).where(PendingRecordRow.sync_attempts >= max_attempts)
            if user_id is not None:
                stmt = stmt.where(PendingRecordRow.user_id == user_id)
            stmt = stmt.order_by(PendingRecordRow.created_at.asc())
            return [_to_record(row) for row in session.exec(stmt)]

    # ----- cache -----
    def cache_set(self, key: str, data: Any) -> None:
        with self._session() as session:
            entry = session.get(CacheEntry, key)
            if entry is None:
                entry = CacheEntry(key=key, payload="")
            entry.payload = _serialise(data)
            entry.updated_at = utc_now()
            session.add(entry)
            session.commit()

    def cache_get(self, key: str) -> Any:
        with self._session() as session:
            entry = session.get(CacheEntry, key)
            return _deserialise(entry.payload) if entry else None

    def cache_updated_at(self, key: str) -> Optional[datetime]:
        with self._session() as session:
            entry = session.get(CacheEntry, key)
            return ensure_utc(entry.updated_at) if entry else None

    def cache_delete(self, key: str) -> None:
        with self._session() as session:
            entry = session.get(CacheEntry, key)
            if entry is not None:
                session.delete(entry)
                session.commit()


__all__ = ["OfflineStore", "STORE_TABLES"]
