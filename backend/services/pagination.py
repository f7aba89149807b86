"""Bounded multi-page fetching.

Two guards make every walk terminate: a hard ceiling on page requests, and
stuck-cursor detection for providers that hand back the cursor they were
just given. Both stop the walk with whatever was accumulated; neither
raises.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from config import settings
from integrations.provider_protocol import TransactionPage

logger = logging.getLogger(__name__)


class StopReason(str, Enum):
    COMPLETE = "complete"
    PAGE_LIMIT = "page_limit"
    STUCK_CURSOR = "stuck_cursor"


@dataclass
class PaginationResult:
    """Items gathered by a walk and why it stopped."""

    items: list[dict[str, Any]] = field(default_factory=list)
    pages: int = 0
    stop_reason: StopReason = StopReason.COMPLETE
    last_cursor: str | None = None

    @property
    def truncated(self) -> bool:
        return self.stop_reason != StopReason.COMPLETE


class PaginationWalker:
    """Drives ``fetch_page(cursor)`` until the provider runs out of pages."""

    def __init__(self, max_pages: int | None = None):
        self.max_pages = max_pages if max_pages is not None else settings.MAX_PAGINATION_PAGES

    def walk(
        self,
        fetch_page: Callable[[str | None], TransactionPage],
        label: str = "",
    ) -> PaginationResult:
        """Fetch pages until done, the ceiling is hit, or the cursor sticks.

        Args:
            fetch_page: Called with the continuation cursor (None first).
            label: Identifies the walk in log messages.

        Returns:
            All items from every fetched page, in order.
        """
        result = PaginationResult()
        cursor: str | None = None

        while True:
            if result.pages >= self.max_pages:
                logger.error(
                    "Pagination limit exceeded for %s: stopped after %d pages "
                    "(%d items). Last cursor: %r",
                    label, result.pages, len(result.items), cursor,
                )
                result.stop_reason = StopReason.PAGE_LIMIT
                break

            page = fetch_page(cursor)
            result.pages += 1
            result.items.extend(page.items or [])
            next_cursor = page.next_cursor

            if not next_cursor:
                result.stop_reason = StopReason.COMPLETE
                break

            if next_cursor == cursor:
                logger.error(
                    "Repeated cursor for %s: stopped after %d pages (%d items). "
                    "Repeated cursor: %r, last page had %d items",
                    label, result.pages, len(result.items), next_cursor, len(page.items or []),
                )
                result.stop_reason = StopReason.STUCK_CURSOR
                break

            cursor = next_cursor

        result.last_cursor = cursor
        return result
