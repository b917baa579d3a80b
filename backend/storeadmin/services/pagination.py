# Overview: Shared paging for list endpoints.

from __future__ import annotations


def paginate(query, page: int, per_page: int) -> tuple[list, dict]:
    """
    Run a query one page at a time.

    Returns (rows, pagination) where pagination carries page, limit, total,
    total_pages, has_next and has_prev.
    """
    page = max(page, 1)
    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return rows, {
        "page": page,
        "limit": per_page,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def paginate_list(items: list, page: int, per_page: int) -> tuple[list, dict]:
    """Same contract as paginate() for rows already in memory."""
    page = max(page, 1)
    total = len(items)
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    start = (page - 1) * per_page
    return items[start:start + per_page], {
        "page": page,
        "limit": per_page,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
