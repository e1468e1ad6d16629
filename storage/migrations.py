"""Additive schema migrations for the offline database.

Tables and indexes are only ever created or extended, never dropped.
"""

from __future__ import annotations

from sqlalchemy import text

SCHEMA_VERSION = 3


def _column_exists(conn, table: str, column: str) -> bool:
    result = conn.execute(text(f"PRAGMA table_info('{table}')"))
    return any(row[1] == column for row in result)


def ensure_pending_records_table(conn) -> None:
    conn.execute(
        text(
            """
            CREATE TABLE IF NOT EXISTS pending_records (
                id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                user_id TEXT NOT NULL,
                payload TEXT NOT NULL,
                created_at TEXT NOT NULL,
                sync_attempts INTEGER NOT NULL DEFAULT 0,
                last_sync_attempt TEXT
            )
            """
        )
    )
    # v3: outbox retry columns
    columns = {
        "last_error": "TEXT",
        "next_try_at": "TEXT",
    }
    for name, ddl_type in columns.items():
        if not _column_exists(conn, "pending_records", name):
            conn.execute(text(f"ALTER TABLE pending_records ADD COLUMN {name} {ddl_type}"))

    conn.execute(
        text(
            """
            UPDATE pending_records
            SET next_try_at = COALESCE(last_sync_attempt, created_at)
            WHERE next_try_at IS NULL
            """
        )
    )
    for column in ("user_id", "created_at", "type", "next_try_at"):
        conn.execute(
            text(
                f"CREATE INDEX IF NOT EXISTS ix_pending_records_{column} "
                f"ON pending_records ({column})"
            )
        )


def ensure_cache_table(conn) -> None:
    conn.execute(
        text(
            """
            CREATE TABLE IF NOT EXISTS cached_data (
                key TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
    )


def run_all(engine) -> None:
    with engine.begin() as conn:
        ensure_pending_records_table(conn)
        ensure_cache_table(conn)
        current = conn.execute(text("PRAGMA user_version")).scalar() or 0
        if current < SCHEMA_VERSION:
            conn.execute(text(f"PRAGMA user_version = {SCHEMA_VERSION}"))


__all__ = ["SCHEMA_VERSION", "run_all"]
