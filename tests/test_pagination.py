"""Tests for the pagination controller."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from patchset_explorer.application.pagination import PaginationController, PaginationState, total_pages
from patchset_explorer.domain.entities import Commit, FilterCriteria
from patchset_explorer.domain.errors import QueryExecutionError


def make_commit(n: int) -> Commit:
    return Commit(
        commit_id=f"{n:040d}", author="a", date="2020-01-01", message=f"m{n}",
        files_changed=1, insertions=1, deletions=0, version="5.4",
        component="inode", patch_type="bug", tags="",
    )


def page_rows(page: int, total: int = 25, size: int = 10) -> list[Commit]:
    start = (page - 1) * size
    return [make_commit(n) for n in range(start, min(start + size, total))]


class TestTotalPages:

    @pytest.mark.parametrize("total, pages", [(0, 0), (1, 1), (10, 1), (11, 2), (25, 3)])
    def test_ceil(self, total, pages):
        assert total_pages(total) == pages


class TestPaginationController:
    """Test the search/navigate state machine."""

    @pytest.fixture
    def reader(self):
        reader = MagicMock()
        reader.count = AsyncMock(return_value=25)
        reader.fetch_page = AsyncMock(side_effect=lambda criteria, page: page_rows(page))
        return reader

    @pytest.fixture
    def controller(self, reader):
        return PaginationController(reader)

    @pytest.mark.asyncio
    async def test_search_counts_then_fetches_first_page(self, controller, reader):
        criteria = FilterCriteria(component="inode")
        snapshot = await controller.search(criteria)

        reader.count.assert_awaited_once_with(criteria)
        reader.fetch_page.assert_awaited_once_with(criteria, 1)
        assert snapshot.total == 25
        assert snapshot.total_pages == 3
        assert snapshot.page == 1
        assert len(snapshot.rows) == 10
        assert snapshot.busy is False
        assert snapshot.criteria == criteria
        assert controller.state is PaginationState.IDLE

    @pytest.mark.asyncio
    async def test_search_resets_page(self, controller):
        await controller.search(FilterCriteria())
        await controller.go_to(3)
        snapshot = await controller.search(FilterCriteria(keyword="x"))
        assert snapshot.page == 1

    @pytest.mark.asyncio
    async def test_zero_matches_skip_page_query(self, controller, reader):
        reader.count.return_value = 0
        snapshot = await controller.search(FilterCriteria(keyword="nothing"))
        reader.fetch_page.assert_not_awaited()
        assert snapshot.total == 0
        assert snapshot.rows == ()
        assert snapshot.total_pages == 0

    @pytest.mark.asyncio
    async def test_go_to_fetches_page_of_current_criteria(self, controller, reader):
        criteria = FilterCriteria(patch_type="bug")
        await controller.search(criteria)
        snapshot = await controller.go_to(3)
        reader.fetch_page.assert_awaited_with(criteria, 3)
        assert snapshot.page == 3
        assert len(snapshot.rows) == 5

    @pytest.mark.asyncio
    async def test_go_to_same_page_is_deterministic(self, controller, reader):
        await controller.search(FilterCriteria())
        first  = await controller.go_to(2)
        second = await controller.go_to(2)
        assert first.rows == second.rows
        assert first.page == second.page == 2
        assert reader.fetch_page.await_count == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page", [0, -1, 4, 2.0, True])
    async def test_out_of_range_is_noop(self, controller, reader, page):
        before = await controller.search(FilterCriteria())
        after  = await controller.go_to(page)
        assert after == before
        assert reader.fetch_page.await_count == 1

    @pytest.mark.asyncio
    async def test_go_to_before_any_search_is_noop(self, controller, reader):
        snapshot = await controller.go_to(1)
        reader.fetch_page.assert_not_awaited()
        assert snapshot.rows == ()

    @pytest.mark.asyncio
    async def test_requests_while_busy_are_dropped(self, controller, reader):
        await controller.search(FilterCriteria())
        gate = asyncio.Event()

        async def slow_page(criteria, page):
            await gate.wait()
            return page_rows(page)

        reader.fetch_page = AsyncMock(side_effect=slow_page)
        navigation = asyncio.create_task(controller.go_to(2))
        await asyncio.sleep(0)
        assert controller.state is PaginationState.NAVIGATING

        rejected_nav    = await controller.go_to(3)
        rejected_search = await controller.search(FilterCriteria(keyword="x"))
        assert rejected_nav.page == 1
        assert rejected_nav.busy is True
        assert rejected_search.criteria == FilterCriteria()

        gate.set()
        snapshot = await navigation
        assert snapshot.page == 2
        assert reader.fetch_page.await_count == 1
        reader.count.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_search_failure_keeps_rows_and_reports(self, controller, reader):
        before = await controller.search(FilterCriteria())
        reader.count.side_effect = QueryExecutionError("boom", "count")

        snapshot = await controller.search(FilterCriteria(keyword="x"))
        assert snapshot.rows == before.rows
        assert snapshot.total == before.total
        assert snapshot.error.operation == "search"
        assert "boom" in snapshot.error.message
        assert controller.state is PaginationState.IDLE

    @pytest.mark.asyncio
    async def test_page_failure_after_count_keeps_previous_state(self, controller, reader):
        before = await controller.search(FilterCriteria())
        reader.count.return_value = 3
        reader.fetch_page.side_effect = QueryExecutionError("page failed")

        snapshot = await controller.search(FilterCriteria(keyword="x"))
        assert snapshot.total == before.total
        assert snapshot.criteria == FilterCriteria()
        assert snapshot.error is not None

    @pytest.mark.asyncio
    async def test_navigation_failure_reports_and_returns_to_idle(self, controller, reader):
        before = await controller.search(FilterCriteria())
        reader.fetch_page.side_effect = QueryExecutionError("nav failed")

        snapshot = await controller.go_to(2)
        assert snapshot.page == 1
        assert snapshot.rows == before.rows
        assert snapshot.error.operation == "navigate"
        assert controller.busy is False

    @pytest.mark.asyncio
    async def test_next_success_clears_error(self, controller, reader):
        await controller.search(FilterCriteria())
        reader.fetch_page.side_effect = [QueryExecutionError("once"), page_rows(2)]
        assert (await controller.go_to(2)).error is not None
        assert (await controller.go_to(2)).error is None

    @pytest.mark.asyncio
    async def test_clear_resets_everything(self, controller, reader):
        await controller.search(FilterCriteria(component="inode"))
        await controller.go_to(2)
        calls = reader.fetch_page.await_count

        snapshot = controller.clear()
        assert snapshot.total == 0
        assert snapshot.rows == ()
        assert snapshot.page == 1
        assert snapshot.criteria == FilterCriteria()
        assert reader.fetch_page.await_count == calls

    @pytest.mark.asyncio
    async def test_clear_discards_in_flight_search(self, controller, reader):
        gate = asyncio.Event()

        async def slow_count(criteria):
            await gate.wait()
            return 25

        reader.count = AsyncMock(side_effect=slow_count)
        search = asyncio.create_task(controller.search(FilterCriteria(keyword="late")))
        await asyncio.sleep(0)
        assert controller.busy

        cleared = controller.clear()
        assert cleared.total == 0
        assert cleared.busy is True

        gate.set()
        snapshot = await search

        assert snapshot.total == 0
        assert snapshot.rows == ()
        assert snapshot.criteria == FilterCriteria()
        assert controller.busy is False
        reader.fetch_page.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_search_after_clear_waits_for_in_flight_query(self, controller, reader):
        gate     = asyncio.Event()
        active   = 0
        peak     = 0

        async def slow_count(criteria):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await gate.wait()
            active -= 1
            return 25

        reader.count = AsyncMock(side_effect=slow_count)
        first = asyncio.create_task(controller.search(FilterCriteria(keyword="a")))
        await asyncio.sleep(0)

        controller.clear()
        rejected = await controller.search(FilterCriteria(keyword="b"))
        assert rejected.busy is True
        assert rejected.criteria == FilterCriteria()

        gate.set()
        await first
        assert peak == 1
        reader.count.assert_awaited_once()

        snapshot = await controller.search(FilterCriteria(keyword="b"))
        assert snapshot.criteria == FilterCriteria(keyword="b")
        assert snapshot.total == 25

    @pytest.mark.asyncio
    async def test_clear_during_navigation_drops_page(self, controller, reader):
        await controller.search(FilterCriteria())
        gate = asyncio.Event()

        async def slow_page(criteria, page):
            await gate.wait()
            return page_rows(page)

        reader.fetch_page = AsyncMock(side_effect=slow_page)
        navigation = asyncio.create_task(controller.go_to(2))
        await asyncio.sleep(0)

        controller.clear()
        assert (await controller.go_to(1)).busy is True

        gate.set()
        snapshot = await navigation
        assert snapshot.page == 1
        assert snapshot.rows == ()
        assert controller.state is PaginationState.IDLE
