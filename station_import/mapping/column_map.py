from __future__ import annotations

from collections.abc import Iterable
from types import MappingProxyType
from typing import Any

from ..models.fields import CanonicalField
from .headers import normalize_header

"""Spreadsheet header → CanonicalField synonym table.

The station sheets are authored by hand, in Russian and English, with varying
punctuation. Several spellings map to the same field. Table keys go through the
same normalize_header() as incoming headers when the table is built, so a key
written with stray capitals or double spaces still matches.
"""

__all__ = [
    "SYNONYMS",
    "resolve_column",
    "unmapped_headers",
]

F = CanonicalField

_RAW_SYNONYMS: dict[F, tuple[str, ...]] = {
    F.STATION_NO: (
        "station_no", "station no", "station number",
        "№азс", "№ азс", "номер азс",
    ),
    F.NPO: ("npo", "нпо"),
    F.ADDRESS: ("address", "адрес", "адрес азс"),
    F.REGION: ("region", "регион"),
    F.LOCATION_TYPE: (
        "location_type", "location type",
        "расположение азс: город/трасса/прочая территория",
        "расположение", "тип расположения",
    ),
    F.STATION_PHONE: (
        "station_phone", "station phone", "phone",
        "номер телефона азс", "телефон азс",
    ),
    F.STATION_EMAIL: (
        "station_email", "station email", "email",
        "электронный адрес азс/ lotus", "электронный адрес азс", "email азс",
    ),
    F.MANAGER_NAME: (
        "manager_name", "manager name", "manager",
        "менеджер азс фио", "менеджер азс", "фио менеджера",
    ),
    F.MANAGER_PHONE: (
        "manager_phone", "manager phone",
        "номер телефона менеджера азс", "телефон менеджера",
    ),
    F.TERRITORY_MANAGER_NAME: (
        "territory_manager_name", "territory manager name", "territory manager",
        "территориальный менеджер фио", "территориальный менеджер",
    ),
    F.TERRITORY_MANAGER_PHONE: (
        "territory_manager_phone", "territory manager phone",
        "телефон территориального менеджера",
    ),
    F.REGIONAL_MANAGER_NAME: (
        "regional_manager_name", "regional manager name", "regional manager",
        "региональный менеджер фио", "региональный менеджер",
    ),
    F.REGIONAL_MANAGER_PHONE: (
        "regional_manager_phone", "regional manager phone",
        "телефон регионального менеджера",
    ),
    F.PRICE_CATEGORY: (
        "price_category", "price category",
        "ценовая категория бгн", "ценовая категория",
    ),
    F.MENU: ("menu", "действующее меню (petronics)", "меню"),
    F.SALES_DAY_1: ("sales_day_1", "sales day 1", "реализация в день 1"),
    F.SALES_DAY_2: ("sales_day_2", "sales day 2", "реализация в день 2"),
    F.SALES_DAY_3: ("sales_day_3", "sales day 3", "реализация в день 3"),
    F.LUK_CAFE: (
        "luk_cafe", "luk cafe", "lukcafe",
        "лук кафе", "луккафе", "признак lukcafe", "признак luk cafe",
    ),
}


def _build_synonyms(raw: dict[CanonicalField, tuple[str, ...]]) -> MappingProxyType:
    table: dict[str, CanonicalField] = {}
    for target, spellings in raw.items():
        for spelling in spellings:
            key = normalize_header(spelling)
            existing = table.get(key)
            if existing is not None and existing is not target:
                raise ValueError(f"header synonym '{key}' maps to both {existing.column} and {target.column}")
            table[key] = target
    return MappingProxyType(table)


# モジュール読み込み時に一度だけ構築 (実行時変更不可)
SYNONYMS = _build_synonyms(_RAW_SYNONYMS)


def resolve_column(raw_header: Any) -> CanonicalField | None:
    """Resolve a raw header to its CanonicalField, or None when unmapped."""
    return SYNONYMS.get(normalize_header(raw_header))


def unmapped_headers(headers: Iterable[Any]) -> list[str]:
    """Headers that the importer will ignore (for diagnostics)."""
    return [str(h) for h in headers if resolve_column(h) is None]
