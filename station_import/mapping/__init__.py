from .column_map import SYNONYMS, resolve_column, unmapped_headers
from .headers import normalize_header

__all__ = [
    "SYNONYMS",
    "normalize_header",
    "resolve_column",
    "unmapped_headers",
]
