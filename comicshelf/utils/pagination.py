# comicshelf/utils/pagination.py
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Query

MAX_LIMIT = 100


def parse_limit(raw: Optional[str], default: int, maximum: int = MAX_LIMIT) -> int:
    """Anything that is not an integer in [1, maximum] falls back to ``default``."""
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    if value < 1 or value > maximum:
        return default
    return value


def parse_offset(raw: Optional[str]) -> int:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return 0
    return max(value, 0)


@dataclass
class Page:
    limit: int
    offset: int


def paging(default_limit: int) -> Callable[..., Page]:
    """
    Dependency factory. Query values come in as plain strings so a bad value
    is clamped instead of producing a validation error.
    """

    def dependency(
        limit: Optional[str] = Query(None),
        offset: Optional[str] = Query(None),
    ) -> Page:
        return Page(limit=parse_limit(limit, default_limit), offset=parse_offset(offset))

    return dependency
