from __future__ import annotations

import re
from typing import Any

__all__ = ["normalize_header"]

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_header(header: Any) -> str:
    """Canonicalize a raw spreadsheet header into a lookup key.

    Trim, collapse internal whitespace runs (incl. newlines / NBSP inside merged
    header cells) to one space, lowercase. Idempotent.
    """
    text = "" if header is None else str(header)
    return _WHITESPACE_RUN.sub(" ", text.strip()).lower()
