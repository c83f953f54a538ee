from __future__ import annotations

from typing import Any, Tuple

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def normalize_pagination(limit: Any = None, offset: Any = None) -> Tuple[int, int]:
    """Non-numeric or non-positive limits fall back to the default; large ones are capped."""
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = DEFAULT_LIMIT
    if limit < 1:
        limit = DEFAULT_LIMIT
    limit = min(limit, MAX_LIMIT)

    try:
        offset = int(offset)
    except (TypeError, ValueError):
        offset = 0
    return limit, max(offset, 0)
