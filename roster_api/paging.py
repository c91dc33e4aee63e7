"""
Pagination across armory listings.

The guild roster shows at most PAGE_CAPACITY members per page. Page 1
carries the total member count, which fixes how many pages to read; rows
are concatenated in page order and, within a page, in document order.
"""

import math
from typing import Callable, TypeVar

from .document import Document
from .logger import get_module_logger

logger = get_module_logger("paging")

T = TypeVar("T")

# Fixed page size of the armory roster
PAGE_CAPACITY = 100


def page_count(total: int, page_capacity: int = PAGE_CAPACITY) -> int:
    if page_capacity <= 0:
        raise ValueError("page_capacity must be positive")
    return math.ceil(max(total, 0) / page_capacity)


def collect_paged(
    total_size: Callable[[Document], int],
    page_fetch: Callable[[int], Document],
    page_extract: Callable[[Document], list[T]],
    page_capacity: int = PAGE_CAPACITY
) -> list[T]:
    """
    Read every page of a listing.

    Args:
        total_size: Pulls the total row count out of page 1
                    (raises ExtractionError when it is missing)
        page_fetch: Returns the parsed document for a 1-based page number
        page_extract: Returns the rows of one page in document order
        page_capacity: Rows per page

    Returns:
        All rows, page 1 first
    """
    first_page = page_fetch(1)
    total = total_size(first_page)
    pages = page_count(total, page_capacity)
    logger.info(f"Listing has {total} rows across {pages} page(s)")

    rows: list[T] = []
    for page in range(1, pages + 1):
        # Page 1 doubles as the summary view; don't fetch it twice
        doc = first_page if page == 1 else page_fetch(page)
        page_rows = page_extract(doc)
        logger.debug(f"Page {page}: {len(page_rows)} rows")
        rows.extend(page_rows)
    return rows
