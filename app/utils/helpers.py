"""Shared utility functions for services and blueprints.

normalize_pagination:  one place that clamps page / limit
Page:                  result of a paginated store query
utcnow:                timezone-aware "now" used as the default clock
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_pagination(page, limit) -> tuple[int, int]:
    """Coerce page / limit into valid 1-based values.

    Non-numeric or missing values fall back to the defaults; page < 1 becomes
    1 and limit is clamped to [1, MAX_LIMIT].
    """
    try:
        page = int(page) if page is not None else DEFAULT_PAGE
    except (ValueError, TypeError):
        page = DEFAULT_PAGE
    try:
        limit = int(limit) if limit is not None else DEFAULT_LIMIT
    except (ValueError, TypeError):
        limit = DEFAULT_LIMIT
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_LIMIT)
    return page, limit


@dataclass
class Page:
    """One page of results plus the numbers a client needs to walk the rest."""

    items: list = field(default_factory=list)
    total: int = 0
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def total_pages(self) -> int:
        if self.total <= 0:
            return 0
        return math.ceil(self.total / self.limit)

    def pagination_dict(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "total_pages": self.total_pages,
        }


def isoformat(value: datetime | None) -> str | None:
    """ISO-8601 rendering that tolerates None (matches to_dict conventions)."""
    return value.isoformat() if value else None


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
