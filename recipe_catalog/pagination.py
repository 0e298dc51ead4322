# pagination.py
# Slices an ordered collection into 1-based pages.

import math
from typing import List, Sequence, TypeVar

from recipe_catalog.exceptions import InvalidArgumentError, PageNotFoundError

T = TypeVar("T")


def _check_size(size: int) -> None:
    if size <= 0:
        raise InvalidArgumentError(f"Page size must be positive, got {size}")


def is_page(page: int, size: int, items: Sequence) -> bool:
    _check_size(size)
    return page > 0 and (page - 1) * size < len(items)


def paginate(page: int, size: int, items: Sequence[T]) -> List[T]:
    """
    Return the items of the requested page.

    Raises PageNotFoundError when the page lies outside the collection
    (including page 0 and any page past the last one).
    """
    if not is_page(page, size, items):
        raise PageNotFoundError(page)
    items_from = (page - 1) * size
    items_to = min(page * size, len(items))
    return list(items[items_from:items_to])


def total_pages(size: int, items: Sequence) -> int:
    _check_size(size)
    return math.ceil(len(items) / size)
