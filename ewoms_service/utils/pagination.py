from typing import Callable, Optional

from sqlalchemy.orm import Query

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def paginate(query: Query, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE,
             serialize: Optional[Callable] = None) -> dict:
    """Run an ordered query for one page and wrap it with the total count"""
    page = max(page, 1)
    if page_size < 1:
        page_size = DEFAULT_PAGE_SIZE
    page_size = min(page_size, MAX_PAGE_SIZE)

    total = query.order_by(None).count()
    rows = query.offset((page - 1) * page_size).limit(page_size).all()
    if serialize is None:
        serialize = lambda row: row.to_dict()  # noqa: E731
    return {
        "list": [serialize(row) for row in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
    }
