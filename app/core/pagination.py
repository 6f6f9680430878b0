"""Pagination helpers."""


def paginate(limit: int | None, offset: int | None, default_limit: int = 10, max_limit: int = 100) -> tuple[int, int]:
    """Clamp count/skip style paging; missing values fall back to defaults. Returns (limit, offset)."""
    limit = default_limit if limit is None else max(1, min(limit, max_limit))
    offset = 0 if offset is None else max(0, offset)
    return limit, offset
