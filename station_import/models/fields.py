from __future__ import annotations

from enum import Enum
from types import MappingProxyType

"""Canonical station fields and their coercion kinds.

The station table columns are fixed. Every spreadsheet column that the importer
understands resolves to exactly one CanonicalField, and the FieldKind table below
decides how the raw cell value is converted before it is written.
"""

__all__ = [
    "CanonicalField",
    "FieldKind",
    "FIELD_KINDS",
    "NATURAL_KEY",
    "BOOLEAN_FIELDS",
    "NUMERIC_FIELDS",
    "field_kind",
]


class CanonicalField(Enum):
    """Target attributes of a station (declaration order = column order)."""
    STATION_NO = "station_no"
    NPO = "npo"
    ADDRESS = "address"
    REGION = "region"
    LOCATION_TYPE = "location_type"
    STATION_PHONE = "station_phone"
    STATION_EMAIL = "station_email"
    MANAGER_NAME = "manager_name"
    MANAGER_PHONE = "manager_phone"
    TERRITORY_MANAGER_NAME = "territory_manager_name"
    TERRITORY_MANAGER_PHONE = "territory_manager_phone"
    REGIONAL_MANAGER_NAME = "regional_manager_name"
    REGIONAL_MANAGER_PHONE = "regional_manager_phone"
    PRICE_CATEGORY = "price_category"
    MENU = "menu"
    SALES_DAY_1 = "sales_day_1"
    SALES_DAY_2 = "sales_day_2"
    SALES_DAY_3 = "sales_day_3"
    LUK_CAFE = "luk_cafe"

    @property
    def column(self) -> str:
        return self.value


class FieldKind(Enum):
    TEXT_PRESERVE = "text-preserve"  # 先頭ゼロ保持 (数値変換しない)
    NUMERIC = "numeric"
    BOOLEAN = "boolean"


NATURAL_KEY = CanonicalField.STATION_NO

NUMERIC_FIELDS = frozenset({
    CanonicalField.SALES_DAY_1,
    CanonicalField.SALES_DAY_2,
    CanonicalField.SALES_DAY_3,
})

BOOLEAN_FIELDS = frozenset({CanonicalField.LUK_CAFE})


def _build_kinds() -> MappingProxyType:
    kinds: dict[CanonicalField, FieldKind] = {}
    for f in CanonicalField:
        if f in BOOLEAN_FIELDS:
            kinds[f] = FieldKind.BOOLEAN
        elif f in NUMERIC_FIELDS:
            kinds[f] = FieldKind.NUMERIC
        else:
            kinds[f] = FieldKind.TEXT_PRESERVE
    return MappingProxyType(kinds)


FIELD_KINDS = _build_kinds()


def field_kind(field: CanonicalField) -> FieldKind:
    return FIELD_KINDS.get(field, FieldKind.TEXT_PRESERVE)
