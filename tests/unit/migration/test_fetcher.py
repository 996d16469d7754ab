"""
Unit tests for BatchFetcher.

Tests cover:
- Status priority (pending, failed, canceled, complete, running)
- Due jobs before future jobs
- Jobs without a schedule date
- Paging used by dry runs
- Migration batch jobs never fetched
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from jobsched.jobs import JobStatus
from jobsched.migration.fetcher import MIGRATION_HOOK, STATUS_PRIORITY, BatchFetcher


@pytest.fixture
def fetcher(legacy_store):
    return BatchFetcher(legacy_store)


class TestQueryStrategies:
    @pytest.fixture
    def fetcher(self):
        return BatchFetcher(MagicMock())

    def test_due_then_future_per_status(self, fetcher):
        strategies = fetcher.get_query_strategies(25)

        assert len(strategies) == len(STATUS_PRIORITY) * 2 + 1
        assert [(q.status, q.date_compare) for q in strategies[:4]] == [
            (JobStatus.PENDING, "<="),
            (JobStatus.PENDING, ">="),
            (JobStatus.FAILED, "<="),
            (JobStatus.FAILED, ">="),
        ]
        assert all(q.per_page == 25 for q in strategies)

    def test_last_strategy_has_no_filters(self, fetcher):
        last = fetcher.get_query_strategies(5)[-1]

        assert last.status is None
        assert last.date is None
        assert last.order_by == "id"

    def test_batch_jobs_left_out_of_every_strategy(self, fetcher):
        strategies = fetcher.get_query_strategies(5)

        assert all(q.exclude_hooks == (MIGRATION_HOOK,) for q in strategies)

    def test_excluded_hooks_can_be_replaced(self):
        fetcher = BatchFetcher(MagicMock(), exclude_hooks=())

        assert all(q.exclude_hooks == () for q in fetcher.get_query_strategies(5))


class TestFetch:
    """Tests for fetch()."""

    @pytest.mark.asyncio
    async def test_empty_source(self, fetcher):
        assert await fetcher.fetch(10) == []

    @pytest.mark.asyncio
    async def test_due_pending_jobs_first(self, fetcher, legacy_store, make_job):
        await legacy_store.save_job(make_job(offset=timedelta(hours=1)))
        later = await legacy_store.save_job(make_job(offset=timedelta(minutes=-1)))
        earlier = await legacy_store.save_job(make_job(offset=timedelta(hours=-1)))

        assert await fetcher.fetch(10) == [earlier, later]

    @pytest.mark.asyncio
    async def test_batch_size_limits_result(self, fetcher, legacy_store, make_job):
        for _ in range(3):
            await legacy_store.save_job(make_job())

        assert len(await fetcher.fetch(2)) == 2

    @pytest.mark.asyncio
    async def test_future_pending_before_history(self, fetcher, legacy_store, make_job):
        done = await legacy_store.save_job(make_job())
        await legacy_store.mark_complete(done)
        upcoming = await legacy_store.save_job(make_job(offset=timedelta(days=1)))

        assert await fetcher.fetch(10) == [upcoming]

    @pytest.mark.asyncio
    async def test_failed_before_complete(self, fetcher, legacy_store, make_job):
        done = await legacy_store.save_job(make_job())
        failed = await legacy_store.save_job(make_job())
        await legacy_store.mark_complete(done)
        await legacy_store.mark_failure(failed)

        assert await fetcher.fetch(10) == [failed]

    @pytest.mark.asyncio
    async def test_jobs_without_date(self, fetcher, legacy_store, make_job):
        undated = await legacy_store.save_job(make_job(scheduled_at=None))

        assert await fetcher.fetch(10) == [undated]


class TestFetchPage:
    @pytest.mark.asyncio
    async def test_pages_in_id_order(self, fetcher, legacy_store, make_job):
        ids = [await legacy_store.save_job(make_job(offset=timedelta(hours=-i))) for i in range(5)]

        assert await fetcher.fetch_page(2, 0) == ids[:2]
        assert await fetcher.fetch_page(2, 2) == ids[2:4]
        assert await fetcher.fetch_page(2, 4) == ids[4:]
        assert await fetcher.fetch_page(2, 6) == []

    @pytest.mark.asyncio
    async def test_skips_batch_jobs(self, fetcher, legacy_store, make_job):
        await legacy_store.save_job(make_job(hook=MIGRATION_HOOK))
        host_job = await legacy_store.save_job(make_job())

        assert await fetcher.fetch_page(10, 0) == [host_job]


class TestBatchJobsExcluded:
    """The migration's own batch job is never part of a batch."""

    @pytest.mark.asyncio
    async def test_only_batch_job_left(self, fetcher, legacy_store, make_job):
        await legacy_store.save_job(make_job(hook=MIGRATION_HOOK))

        assert await fetcher.fetch(10) == []

    @pytest.mark.asyncio
    async def test_host_jobs_still_fetched(self, fetcher, legacy_store, make_job):
        await legacy_store.save_job(make_job(hook=MIGRATION_HOOK))
        host_job = await legacy_store.save_job(make_job())

        assert await fetcher.fetch(10) == [host_job]
