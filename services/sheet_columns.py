"""Column aliases for the spreadsheet tabs and header resolution helpers.

The sheets are edited by hand, so one logical field can appear under several
header spellings. The accepted spellings live here as data, in lookup order.
"""
from __future__ import annotations

import re
import unicodedata
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

_HEADER_STRIP = re.compile(r"[\s_.]+")

VEHICLE_COLUMNS: Dict[str, Sequence[str]] = {
    "code": ("CODIGO", "Codigo", "Código", "CÓDIGO", "COD"),
    "description": ("DESCRICAO", "Descricao", "Descrição"),
    "category": ("TIPO", "Tipo", "CATEGORIA", "Categoria"),
    "company": ("EMPRESA", "Empresa"),
    "driver": ("MOTORISTA", "Motorista", "OPERADOR", "Operador"),
}

HORIMETER_COLUMNS: Dict[str, Sequence[str]] = {
    "vehicle": ("VEICULO", "Veiculo", "EQUIPAMENTO"),
    "date": ("DATA", "Data", " Data"),
    "hor_previous": ("Hor_Anterior", "HOR_ANTERIOR", "Hor. Anterior", "HOR. ANTERIOR"),
    "hor_current": ("Hor_Atual", "HOR_ATUAL", "Hor. Atual", "HOR. ATUAL"),
    "km_previous": ("Km_Anterior", "KM_ANTERIOR", "Km. Anterior", "KM. ANTERIOR", "KM Anterior"),
    "km_current": ("Km_Atual", "KM_ATUAL", "Km. Atual", "KM. ATUAL", "KM Atual"),
    "operator": ("Operador", "OPERADOR", "Motorista", "MOTORISTA"),
    "observations": ("Observacao", "OBSERVACAO", "Observação", "OBS"),
}

# Numeric fields of a reading; a row where all of them are zero is skipped.
HORIMETER_VALUE_FIELDS = ("hor_current", "km_current")


def _present(value: Any) -> bool:
    return value is not None and value != ""


def resolve_column(row: Mapping[str, Any], aliases: Iterable[str]) -> Optional[Any]:
    """Return the first non-empty cell among ``aliases``.

    Each alias is tried as written, trimmed, and with a trailing space since
    headers in the sheets sometimes carry stray whitespace.
    """

    for alias in aliases:
        for key in (alias, alias.strip(), alias + " "):
            value = row.get(key)
            if _present(value):
                return value
    return None


def resolve_text(row: Mapping[str, Any], aliases: Iterable[str]) -> str:
    value = resolve_column(row, aliases)
    return str(value).strip() if value is not None else ""


def normalize_header(title: str) -> str:
    """Fold accents, case and separators so ``Horímetro Atual`` == ``HORIMETRO_ATUAL``."""

    decomposed = unicodedata.normalize("NFD", str(title or ""))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _HEADER_STRIP.sub("", stripped.upper())


def map_to_headers(data: Mapping[str, Any], headers: Sequence[str]) -> Dict[str, Any]:
    """Rename the keys of ``data`` to the sheet's own header spelling.

    Keys without a matching header are kept as they are.
    """

    by_normalized = {normalize_header(header): header for header in headers if header}
    mapped: Dict[str, Any] = {}
    for key, value in data.items():
        mapped[by_normalized.get(normalize_header(key), key)] = value
    return mapped


__all__ = [
    "HORIMETER_COLUMNS",
    "HORIMETER_VALUE_FIELDS",
    "VEHICLE_COLUMNS",
    "map_to_headers",
    "normalize_header",
    "resolve_column",
    "resolve_text",
]
