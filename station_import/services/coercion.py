from __future__ import annotations

import math
from numbers import Number
from typing import Any

import pandas as pd

from ..models.fields import CanonicalField, FieldKind, field_kind

"""Cell value → field value coercion.

Rules (evaluated in this order):
1. boolean fields: explicit token check, never Python truthiness. Never None.
2. None / NaN / "" → None (field absent on this record).
3. numeric fields: float, unparseable → None (no row rejection).
4. everything else: str + strip. No numeric parsing (keeps leading zeros).
"""

__all__ = [
    "TRUTHY_TOKENS",
    "coerce_value",
    "parse_boolean",
    "parse_number",
]

TRUTHY_TOKENS = frozenset({
    "x",
    "✓",
    "✔",
    "да",
    "yes",
    "true",
    "1",
})

# キリル文字 "х" (U+0445) はラテン "x" と見た目が同じため正規化する
_CYRILLIC_HA = "х"


def _is_missing(raw: Any) -> bool:
    if raw is None:
        return True
    if pd.api.types.is_scalar(raw) and not isinstance(raw, str):
        try:
            return bool(pd.isna(raw))
        except (TypeError, ValueError):
            return False
    return False


def parse_boolean(raw: Any) -> bool:
    if _is_missing(raw):
        return False
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, Number):
        return raw == 1
    token = str(raw).strip().lower()
    if not token:
        return False
    token = token.replace(_CYRILLIC_HA, "x")
    return token in TRUTHY_TOKENS


def parse_number(raw: Any) -> float | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, Number):
        value = float(raw)  # type: ignore[arg-type]
    else:
        # 桁区切りの空白 / NBSP ("1 234,5") を除去
        text = str(raw).strip().replace(" ", "").replace("\u00a0", "")
        if not text:
            return None
        # ロシア語ロケールの小数点カンマ ("12,5") を許容
        if "," in text and "." not in text:
            text = text.replace(",", ".")
        try:
            value = float(text)
        except ValueError:
            return None
    if not math.isfinite(value):
        return None
    return value


def _to_text(raw: Any) -> str:
    # pandas が数値セルを float で返した場合の "123.0" を避ける
    if isinstance(raw, float) and raw.is_integer():
        return str(int(raw))
    return str(raw).strip()


def coerce_value(field: CanonicalField, raw: Any) -> Any:
    """Convert a raw cell value to the field's semantic type.

    Returns None when the field should be treated as absent. Boolean fields
    always return a bool.
    """
    kind = field_kind(field)
    if kind is FieldKind.BOOLEAN:
        return parse_boolean(raw)
    if _is_missing(raw) or raw == "":
        return None
    if kind is FieldKind.NUMERIC:
        return parse_number(raw)
    return _to_text(raw)
