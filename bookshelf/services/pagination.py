"""
Bookshelf API — Pagination Helpers
===================================

Offset pagination arithmetic shared by every list service.

    page=1, limit=20 → offset 0
    page=3, limit=20 → offset 40
    total=57, limit=20 → total_pages 3

A page past the end is not an error: it returns no items, and the metadata
still tells the client where the real pages are.
"""

import math

from bookshelf.schemas.common import PaginationMeta


def offset_for(page: int, limit: int) -> int:
    return (page - 1) * limit


def build_pagination(page: int, limit: int, total: int) -> PaginationMeta:
    total_pages = math.ceil(total / limit) if total else 0
    return PaginationMeta(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )
