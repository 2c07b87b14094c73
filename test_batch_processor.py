import asyncio

import pytest

from execution.batch_processor import BatchProcessor


def _recording_sleep():
    sleeps = []

    async def sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return sleeps, sleep


def test_create_batches_partitions_items():
    processor = BatchProcessor(batch_size=10)
    batches = processor.create_batches("campaign_1", list(range(37)))

    assert [b.id for b in batches] == [
        "campaign_1_batch_0",
        "campaign_1_batch_1",
        "campaign_1_batch_2",
        "campaign_1_batch_3",
    ]
    assert [b.total_count for b in batches] == [10, 10, 10, 7]
    assert batches[3].items == [30, 31, 32, 33, 34, 35, 36]
    assert all(b.status == "pending" for b in batches)


def test_empty_input_produces_no_batches():
    processor = BatchProcessor()
    assert processor.create_batches("job", []) == []


def test_invalid_batch_size_is_rejected():
    with pytest.raises(ValueError):
        BatchProcessor(batch_size=0)


def test_run_processes_every_item_and_isolates_failures():
    async def _run() -> None:
        sleeps, sleep = _recording_sleep()
        processor = BatchProcessor(batch_size=10, delay_seconds=1.5, sleep=sleep)

        async def dispatch(item: int) -> int:
            if item % 5 == 0:
                raise RuntimeError(f"cannot create post {item}")
            return item * 2

        run = await processor.run("campaign_1", list(range(37)), dispatch)

        assert run.total_count == 37
        assert run.processed_count == 37
        assert run.failed_count == 8
        assert run.succeeded_count == 29
        assert len(run.results) == 29
        assert run.results[:4] == [2, 4, 6, 8]
        assert "cannot create post 35" in run.errors[-1]
        assert [b.status for b in run.batches] == ["completed"] * 4
        assert sleeps == [1.5, 1.5, 1.5]

    asyncio.run(_run())


def test_batch_fails_only_when_all_items_fail():
    async def _run() -> None:
        processor = BatchProcessor(batch_size=2, delay_seconds=0)

        async def dispatch(item: str) -> str:
            if item.startswith("bad"):
                raise ValueError(item)
            return item

        run = await processor.run("job", ["bad-1", "bad-2", "bad-3", "ok"], dispatch)

        assert [b.status for b in run.batches] == ["failed", "completed"]
        assert [b.failed_count for b in run.batches] == [2, 1]
        assert run.batches[0].errors == ["item 0: bad-1", "item 1: bad-2"]

    asyncio.run(_run())


def test_items_within_a_batch_run_concurrently():
    async def _run() -> None:
        processor = BatchProcessor(batch_size=3, delay_seconds=0)
        in_flight = 0
        peak = 0

        async def dispatch(item: int) -> int:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1
            return item

        await processor.run("job", list(range(6)), dispatch)
        assert peak == 3

    asyncio.run(_run())


def test_progress_is_reported_after_each_batch():
    async def _run() -> None:
        _, sleep = _recording_sleep()
        processor = BatchProcessor(batch_size=10, sleep=sleep)
        events = []

        async def dispatch(item: int) -> int:
            return item

        await processor.run("job", list(range(25)), dispatch, progress_callback=events.append)

        assert [e["batch_index"] for e in events] == [1, 2, 3]
        assert {e["batch_count"] for e in events} == {3}
        assert [e["processed"] for e in events] == [10, 20, 25]
        assert events[-1] == {
            "event": "batch_completed",
            "job_id": "job",
            "batch_id": "job_batch_2",
            "batch_index": 3,
            "batch_count": 3,
            "status": "completed",
            "processed": 25,
            "failed": 0,
            "total": 25,
        }

    asyncio.run(_run())


def test_failing_progress_listener_does_not_stop_the_run():
    async def _run() -> None:
        processor = BatchProcessor(batch_size=1, delay_seconds=0)

        def listener(payload):
            raise RuntimeError("listener down")

        async def dispatch(item: int) -> int:
            return item

        run = await processor.run("job", [1, 2], dispatch, progress_callback=listener)
        assert run.processed_count == 2

    asyncio.run(_run())
