"""Cursor pagination over Notion list endpoints."""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .models import BlockBudget
from .retry import RetryPolicy, call_with_policy

logger = logging.getLogger(__name__)

FetchPage = Callable[[Optional[str]], Awaitable[Dict[str, Any]]]

DEFAULT_PAGE_SIZE = 100


async def list_all(
    fetch_page: FetchPage,
    budget: Optional[BlockBudget] = None,
    retry: Optional[RetryPolicy] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> List[Any]:
    """
    Exhaust a cursor-paginated endpoint.

    Each call to ``fetch_page(cursor)`` goes through the backoff
    executor and must return a Notion list response (``results``,
    ``has_more``, ``next_cursor``). With a budget, a full page is
    reserved before each request and listing stops once fetched plus
    reserved blocks reach the cap; the items collected so far are
    returned. Siblings after the truncation point are therefore missing
    from the result. A run fetches at most the cap plus one page, even
    with many branches listing at once.

    Args:
        fetch_page: Coroutine function taking the start cursor (None first)
        budget: Optional global block budget
        retry: Backoff settings for each page request
        page_size: Largest page ``fetch_page`` can return

    Returns:
        All items in the order the endpoint returned them
    """
    policy = retry or RetryPolicy()
    items: List[Any] = []
    cursor: Optional[str] = None

    while True:
        if budget is not None and budget.exhausted:
            budget.record_truncation()
            logger.debug(f"Block budget reached, stopping after {len(items)} items")
            break

        reserved = budget.reserve(page_size) if budget is not None else 0
        chunk: List[Any] = []
        try:
            response = await call_with_policy(lambda: fetch_page(cursor), policy)
            chunk = response.get("results", []) or []
        finally:
            if budget is not None:
                budget.settle(reserved, len(chunk))
        items.extend(chunk)

        if not response.get("has_more"):
            break
        cursor = response.get("next_cursor")
        if not cursor:
            break

    return items
