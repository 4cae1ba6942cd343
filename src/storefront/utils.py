"""Utility functions for storefront."""

import math
from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import Any, Sequence, TypeVar

from .errors import ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class Pagination:
    """Page metadata returned alongside list results."""

    current_page: int
    total_pages: int
    total_count: int
    has_next_page: bool
    has_prev_page: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "totalCount": self.total_count,
            "hasNextPage": self.has_next_page,
            "hasPrevPage": self.has_prev_page,
        }


def paginate(items: Sequence[T], page: int, page_size: int) -> tuple[list[T], Pagination]:
    """
    Slice a sorted sequence into one page.

    totalPages = ceil(totalCount / pageSize); a page past the end is empty
    rather than an error.

    Raises:
        ValidationError: If page or page_size is below 1.
    """
    if page < 1:
        raise ValidationError.for_field("page", "Page must be at least 1")
    if page_size < 1:
        raise ValidationError.for_field("limit", "Limit must be at least 1")

    total = len(items)
    total_pages = math.ceil(total / page_size)
    start = (page - 1) * page_size
    page_items = list(items[start:start + page_size])

    return page_items, Pagination(
        current_page=page,
        total_pages=total_pages,
        total_count=total,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


def parse_date_bound(value: str, field: str, end_of_day: bool = False) -> datetime:
    """
    Parse a startDate/endDate query value.

    A bare date ("2024-05-01") means the start of that day, or its last
    instant when end_of_day is set. Naive values are taken as UTC.
    """
    try:
        if len(value) == 10:
            day = datetime.fromisoformat(value).date()
            bound = datetime.combine(day, time.max if end_of_day else time.min)
        else:
            bound = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError.for_field(field, f"Invalid date: {value}")

    if bound.tzinfo is None:
        bound = bound.replace(tzinfo=timezone.utc)
    return bound
