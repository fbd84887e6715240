"""
Generic helper functions.

Functions:
    calculate_pagination: Page/offset metadata for list endpoints
"""

from __future__ import annotations

import math


def calculate_pagination(total: int, page: int, per_page: int) -> dict:
    """
    Calculate pagination metadata.

    Args:
        total: Total number of items
        page: Requested page number (1-indexed, clamped to at least 1)
        per_page: Items per page

    Returns:
        Dict with total, page, per_page, total_pages, offset, has_next

    Example:
        calculate_pagination(total=45, page=2, per_page=20)
        # {"total": 45, "page": 2, "per_page": 20, "total_pages": 3,
        #  "offset": 20, "has_next": True}

    Note:
        Pages past the end are not clamped; they simply yield no items.
    """
    per_page = max(1, per_page)
    page = max(1, page)
    total_pages = math.ceil(total / per_page)

    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "total_pages": total_pages,
        "offset": (page - 1) * per_page,
        "has_next": page < total_pages,
    }
