"""
Pagination helpers shared by the list endpoints.
"""
from math import ceil
from typing import Any, Dict, List

from sqlalchemy.orm import Query


class Page:
    """One page of results plus the numbers the JSON envelope reports."""

    def __init__(self, items: List[Any], total: int, page: int, limit: int):
        self.items = items
        self.total = total
        self.page = page
        self.limit = limit

    @property
    def total_pages(self) -> int:
        return ceil(self.total / self.limit) if self.limit else 0

    def envelope(self, data: List[Any], **extras: Any) -> Dict[str, Any]:
        return {
            "success": True,
            "count": len(data),
            "total": self.total,
            "totalPages": self.total_pages,
            "currentPage": self.page,
            **extras,
            "data": data,
        }


def paginate(query: Query, page: int = 1, limit: int = 10) -> Page:
    """
    Apply offset pagination to an ORM query.

    Args:
        query: Base query, already filtered and ordered
        page: Page number (1-indexed)
        limit: Items per page
    """
    page = max(1, page)
    limit = max(1, limit)

    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return Page(items, total, page, limit)
