"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``."""

    platform_id = (platform or sys.platform).lower()
    environ = dict(env or os.environ)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


APP_NAME = "Abastech"


DATA_DIR = Path(os.environ.get("ABASTECH_DATA_DIR") or get_default_data_dir(APP_NAME))
SECRETS_DIR = DATA_DIR / "secrets"
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, SECRETS_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


OFFLINE_DB_PATH = DATA_DIR / "abastech_offline.db"
SYNC_LOG_PATH = LOG_DIR / "sync.log"
CREDENTIALS_PATH = SECRETS_DIR / "service_account.json"
CLIENT_SECRET_PATH = SECRETS_DIR / "client_secret.json"
TOKEN_PATH = DATA_DIR / "token.json"


@dataclass(frozen=True)
class SheetsSettings:
    spreadsheet_id: str = os.environ.get("GOOGLE_SHEET_ID", "")
    vehicles_sheet: str = "Veiculo"
    horimeters_sheet: str = "Horimetros"
    fuel_sheet: str = "AbastecimentoCanteiro01"
    service_orders_sheet: str = "Ordem_Servico"
    columns: str = "A:ZZ"
    scopes: tuple[str, ...] = ("https://www.googleapis.com/auth/spreadsheets",)


SHEETS = SheetsSettings()


@dataclass(frozen=True)
class SupabaseSettings:
    url: str = os.environ.get("SUPABASE_URL", "")
    key: str = os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or os.environ.get("SUPABASE_KEY", "")
    page_size: int = 1000


SUPABASE = SupabaseSettings()


@dataclass(frozen=True)
class OutboxSettings:
    max_attempts: int = 8
    backoff_base_sec: int = 30
    backoff_cap_sec: int = 3600
    batch_size: int = 50


OUTBOX = OutboxSettings()


@dataclass(frozen=True)
class ImportSettings:
    # Orphan deletion only runs when the sheet snapshot looks complete.
    orphan_guard_min_rows: int = 1
    orphan_guard_ratio: float = 0.5
    km_categories: tuple[str, ...] = field(
        default=("veículo", "veiculo", "caminhão", "caminhao")
    )


IMPORT = ImportSettings()


REFERENCE_TABLES = ("vehicles", "suppliers", "lubricants", "oil_types", "mechanics")


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "SECRETS_DIR",
    "LOG_DIR",
    "OFFLINE_DB_PATH",
    "SYNC_LOG_PATH",
    "CREDENTIALS_PATH",
    "CLIENT_SECRET_PATH",
    "TOKEN_PATH",
    "SHEETS",
    "SUPABASE",
    "OUTBOX",
    "IMPORT",
    "REFERENCE_TABLES",
    "ImportSettings",
    "OutboxSettings",
    "SheetsSettings",
    "SupabaseSettings",
    "get_default_data_dir",
]
