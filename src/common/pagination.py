"""
Pagination utilities for list endpoints and selectors.
"""

from django.db.models import QuerySet

DEFAULT_LIMIT = 50
DEFAULT_OFFSET = 0


def limit_offset(
    queryset: QuerySet,
    limit: int | None = DEFAULT_LIMIT,
    offset: int | None = DEFAULT_OFFSET,
) -> QuerySet:
    """
    Apply limit/offset pagination to a queryset.

    Missing or non-positive limits fall back to DEFAULT_LIMIT so a caller
    never receives an unbounded result set; negative offsets become 0.
    """
    if limit is None or limit <= 0:
        limit = DEFAULT_LIMIT
    if offset is None or offset < 0:
        offset = DEFAULT_OFFSET

    return queryset[offset : offset + limit]
