"""Tests for bounded pagination."""

import logging

from integrations.provider_protocol import TransactionPage
from services.pagination import PaginationWalker, StopReason


def pages_from(pages: list[TransactionPage]):
    """fetch_page over a fixed list, chained by position."""
    requested = []

    def fetch_page(cursor):
        requested.append(cursor)
        return pages[len(requested) - 1]

    return fetch_page, requested


class TestPaginationWalker:
    def test_single_page(self):
        fetch, requested = pages_from([TransactionPage(items=[{"id": 1}], next_cursor=None)])
        result = PaginationWalker(max_pages=10).walk(fetch)

        assert result.items == [{"id": 1}]
        assert result.pages == 1
        assert result.stop_reason == StopReason.COMPLETE
        assert not result.truncated
        assert requested == [None]

    def test_follows_cursors_in_order(self):
        fetch, requested = pages_from([
            TransactionPage(items=[{"id": 1}], next_cursor="c1"),
            TransactionPage(items=[{"id": 2}], next_cursor="c2"),
            TransactionPage(items=[{"id": 3}], next_cursor=None),
        ])
        result = PaginationWalker(max_pages=10).walk(fetch)

        assert [i["id"] for i in result.items] == [1, 2, 3]
        assert requested == [None, "c1", "c2"]
        assert result.stop_reason == StopReason.COMPLETE

    def test_stuck_cursor_terminates(self, caplog):
        """A provider returning the cursor it was given stops the walk."""
        calls = []

        def fetch(cursor):
            calls.append(cursor)
            return TransactionPage(items=[{"id": len(calls)}], next_cursor="same")

        with caplog.at_level(logging.ERROR, logger="services.pagination"):
            result = PaginationWalker(max_pages=100).walk(fetch, label="acct-1")

        assert calls == [None, "same"]
        assert result.stop_reason == StopReason.STUCK_CURSOR
        assert result.truncated
        assert len(result.items) == 2
        assert "Repeated cursor for acct-1" in caplog.text

    def test_page_limit(self, caplog):
        counter = iter(range(1000))

        def fetch(cursor):
            return TransactionPage(items=[{"n": next(counter)}], next_cursor=f"c{cursor}x")

        with caplog.at_level(logging.ERROR, logger="services.pagination"):
            result = PaginationWalker(max_pages=3).walk(fetch, label="acct-2")

        assert result.pages == 3
        assert len(result.items) == 3
        assert result.stop_reason == StopReason.PAGE_LIMIT
        assert result.truncated
        assert "Pagination limit exceeded for acct-2" in caplog.text

    def test_empty_pages_tolerated(self):
        fetch, _ = pages_from([
            TransactionPage(items=[], next_cursor="c1"),
            TransactionPage(items=None, next_cursor=None),
        ])
        result = PaginationWalker(max_pages=5).walk(fetch)
        assert result.items == []
        assert result.pages == 2
