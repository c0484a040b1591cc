"""Drain paginated listings into complete in-memory lists."""

import logging
from typing import Callable, Optional, TypeVar

from yt_playlist_migrator.core.models import Page

logger = logging.getLogger(__name__)

T = TypeVar("T")


def fetch_all(list_page: Callable[[Optional[str]], Page[T]]) -> list[T]:
    """
    Call list_page with each continuation token until none is returned.

    Pages without items still have their token followed. Errors raised by
    list_page propagate, so callers never see a partial collection.
    """
    items: list[T] = []
    page_token = None
    pages = 0

    while True:
        page = list_page(page_token)
        pages += 1
        items.extend(page.items or [])

        page_token = page.next_token
        if not page_token:
            break

    logger.debug(f"Fetched {len(items)} items in {pages} page(s)")
    return items
