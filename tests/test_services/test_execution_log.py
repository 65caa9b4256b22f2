"""Tests for the execution log store."""

import asyncio
from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError
from sqlalchemy import text

from jobledger.core.database import ConnectionPool
from jobledger.core.errors import DataCorruptionError, DuplicateExecutionError
from jobledger.core.migrations import SchemaMigrator
from jobledger.schemas.execution import ExecutionRecord
from jobledger.services.execution_log import ExecutionLogStore


class TestLogExecution:
    """Tests for ExecutionLogStore.log_execution."""

    @pytest.mark.asyncio
    async def test_logged_record_is_returned(self, execution_store, execution_factory):
        record = execution_factory(context={"partition": "2026-03-01", "rows": 1200})

        await execution_store.log_execution(record)

        assert await execution_store.get_execution_log(True) == [record]

    @pytest.mark.asyncio
    async def test_duplicate_id_is_rejected(self, execution_store, execution_factory):
        """A second record with the same id fails and leaves exactly one stored."""
        first = execution_factory(execution_id="e1", job="first")
        second = execution_factory(execution_id="e1", job="second")

        await execution_store.log_execution(first)
        with pytest.raises(DuplicateExecutionError) as exc_info:
            await execution_store.log_execution(second)

        assert exc_info.value.execution_id == "e1"
        stored = await execution_store.get_execution_log(True)
        assert [(r.id, r.job) for r in stored] == [("e1", "first")]

    @pytest.mark.asyncio
    async def test_duplicate_across_outcomes_is_rejected(self, execution_store, execution_factory):
        await execution_store.log_execution(execution_factory(execution_id="e1", success=True))

        with pytest.raises(DuplicateExecutionError):
            await execution_store.log_execution(execution_factory(execution_id="e1", success=False))

        assert await execution_store.get_execution_log(False) == []

    @pytest.mark.asyncio
    async def test_context_outside_basic_plane_round_trips(self, execution_store, execution_factory):
        record = execution_factory(context={"note": "done 🚀", "owner": "𠮷野"})

        await execution_store.log_execution(record)

        [stored] = await execution_store.get_execution_log(True)
        assert stored.context == {"note": "done 🚀", "owner": "𠮷野"}

    @pytest.mark.asyncio
    async def test_timestamps_keep_millisecond_precision(self, execution_store):
        record = ExecutionRecord(
            id="precise",
            job="nightly-export",
            start_time=datetime(2026, 3, 1, 12, 0, 0, 123000),
            end_time=datetime(2026, 3, 1, 12, 0, 5, 987000),
            context={},
            success=True,
        )

        await execution_store.log_execution(record)

        [stored] = await execution_store.get_execution_log(True)
        assert stored.start_time == record.start_time
        assert stored.end_time == record.end_time

    @pytest.mark.asyncio
    async def test_concurrent_writes_through_bounded_pool(self, tmp_path, execution_factory):
        """Concurrent callers share a small pool without losing writes."""
        pool = ConnectionPool(
            f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", pool_size=2, max_overflow=0
        )
        try:
            await SchemaMigrator(pool).migrate()
            store = ExecutionLogStore(pool)
            records = [execution_factory(start_offset_minutes=i) for i in range(10)]

            await asyncio.gather(*(store.log_execution(record) for record in records))

            stored = await store.get_execution_log(True)
            assert {r.id for r in stored} == {r.id for r in records}
        finally:
            await pool.dispose()


class TestGetExecutionLog:
    """Tests for ExecutionLogStore.get_execution_log."""

    @pytest.mark.asyncio
    async def test_filters_by_outcome_and_orders_by_end_time(
        self, execution_store, execution_factory
    ):
        """Interleaved outcomes and end times come back filtered and sorted."""
        fixture = [
            execution_factory(execution_id="s-late", success=True, start_offset_minutes=0, duration_minutes=60),
            execution_factory(execution_id="f-mid", success=False, start_offset_minutes=10, duration_minutes=20),
            execution_factory(execution_id="s-early", success=True, start_offset_minutes=5, duration_minutes=1),
            execution_factory(execution_id="f-early", success=False, start_offset_minutes=0, duration_minutes=2),
            execution_factory(execution_id="s-mid", success=True, start_offset_minutes=20, duration_minutes=10),
        ]
        for record in fixture:
            await execution_store.log_execution(record)

        successes = await execution_store.get_execution_log(True)
        failures = await execution_store.get_execution_log(False)

        assert [r.id for r in successes] == ["s-early", "s-mid", "s-late"]
        assert all(r.success for r in successes)
        assert [r.id for r in failures] == ["f-early", "f-mid"]
        assert not any(r.success for r in failures)
        assert [r.end_time for r in successes] == sorted(r.end_time for r in successes)

    @pytest.mark.asyncio
    async def test_empty_log(self, execution_store):
        assert await execution_store.get_execution_log(True) == []

    @pytest.mark.asyncio
    async def test_corrupt_context_fails_the_read(self, execution_store, migrated_pool):
        """A row whose context isn't JSON raises instead of being skipped."""
        async with migrated_pool.transaction() as conn:
            await conn.execute(
                text(
                    "INSERT INTO executions (id, job, start_time, end_time, context, success) "
                    "VALUES ('bad', 'job', '2026-03-01 12:00:00.000000', "
                    "'2026-03-01 12:05:00.000000', '{not json', 1)"
                )
            )

        with pytest.raises(DataCorruptionError):
            await execution_store.get_execution_log(True)

    @pytest.mark.asyncio
    async def test_non_object_context_fails_the_read(self, execution_store, migrated_pool):
        async with migrated_pool.transaction() as conn:
            await conn.execute(
                text(
                    "INSERT INTO executions (id, job, start_time, end_time, context, success) "
                    "VALUES ('listy', 'job', '2026-03-01 12:00:00.000000', "
                    "'2026-03-01 12:05:00.000000', '[1]', 1)"
                )
            )

        with pytest.raises(DataCorruptionError):
            await execution_store.get_execution_log(True)


class TestGetExecutionStats:
    """Tests for ExecutionLogStore.get_execution_stats."""

    @pytest.mark.asyncio
    async def test_stats_for_one_job(self, execution_store, execution_factory):
        await execution_store.log_execution(
            execution_factory(job="export", start_offset_minutes=30, duration_minutes=2, success=False)
        )
        await execution_store.log_execution(
            execution_factory(job="export", start_offset_minutes=0, duration_minutes=5)
        )
        await execution_store.log_execution(
            execution_factory(job="cleanup", start_offset_minutes=10, duration_minutes=1)
        )

        stats = await execution_store.get_execution_stats("export")

        assert [(s.duration_seconds, s.status) for s in stats] == [
            (300.0, "successful"),
            (120.0, "failure"),
        ]
        assert stats[0].start_time < stats[1].start_time

    @pytest.mark.asyncio
    async def test_unknown_job_has_no_stats(self, execution_store):
        assert await execution_store.get_execution_stats("never-ran") == []


class TestExecutionRecord:
    """Tests for ExecutionRecord validation."""

    def test_generates_id(self):
        start = datetime(2026, 3, 1, 12, 0)
        record = ExecutionRecord(job="export", start_time=start, end_time=start, success=True)

        assert len(record.id) == 36
        assert record.context == {}

    def test_end_before_start_is_rejected(self):
        start = datetime(2026, 3, 1, 12, 0)

        with pytest.raises(ValidationError):
            ExecutionRecord(
                job="export", start_time=start, end_time=start - timedelta(seconds=1), success=True
            )

    def test_job_longer_than_1000_chars_is_rejected(self):
        start = datetime(2026, 3, 1, 12, 0)

        with pytest.raises(ValidationError):
            ExecutionRecord(job="x" * 1001, start_time=start, end_time=start, success=True)

    def test_context_must_be_json(self):
        """Values json can't encode are rejected before anything is written."""
        start = datetime(2026, 3, 1, 12, 0)

        with pytest.raises(ValidationError):
            ExecutionRecord(
                job="export",
                start_time=start,
                end_time=start,
                context={"scheduled_for": datetime(2026, 3, 2)},
                success=True,
            )

    def test_context_accepts_nested_json(self):
        start = datetime(2026, 3, 1, 12, 0)
        context = {"partitions": ["a", "b"], "limits": {"rows": 10, "ratio": 0.5}, "dry": None}

        record = ExecutionRecord(
            job="export", start_time=start, end_time=start, context=context, success=True
        )

        assert record.context == context

    def test_aware_timestamps_are_normalized_to_utc(self):
        from datetime import timezone

        tz = timezone(timedelta(hours=2))
        record = ExecutionRecord(
            job="export",
            start_time=datetime(2026, 3, 1, 14, 0, tzinfo=tz),
            end_time=datetime(2026, 3, 1, 14, 30, tzinfo=tz),
            success=True,
        )

        assert record.start_time == datetime(2026, 3, 1, 12, 0)
        assert record.end_time.tzinfo is None
