"""
Batch Processor — fans a large item set out into paced, fixed-size groups.

Responsibility:
- Partition items into ceil(N / batch_size) batches
- Dispatch every item of a batch concurrently and record each outcome
- Run batches one at a time with a pacing delay in between

Prohibitions:
- No cancellation once a run has started
- A batch is failed only when every one of its items failed
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from execution.progress import ProgressCallback, emit_progress
from observability.logger import Observability
from shared.models import Batch

logger = logging.getLogger(__name__)

Dispatch = Callable[[Any], Awaitable[Any]]


@dataclass
class BatchRunResult:
    job_id: str
    batches: list[Batch] = field(default_factory=list)
    results: list[Any] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return sum(b.total_count for b in self.batches)

    @property
    def processed_count(self) -> int:
        return sum(b.processed_count for b in self.batches)

    @property
    def failed_count(self) -> int:
        return sum(b.failed_count for b in self.batches)

    @property
    def succeeded_count(self) -> int:
        return self.processed_count - self.failed_count

    @property
    def errors(self) -> list[str]:
        return [err for b in self.batches for err in b.errors]


class BatchProcessor:
    """Sequential batches, concurrent items within a batch."""

    def __init__(
        self,
        batch_size: int = 10,
        delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        observability: Observability | None = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_size = batch_size
        self.delay_seconds = delay_seconds
        self._sleep = sleep
        self._obs = observability or Observability()

    def create_batches(self, job_id: str, items: list[Any]) -> list[Batch]:
        batches: list[Batch] = []
        for start in range(0, len(items), self.batch_size):
            chunk = list(items[start:start + self.batch_size])
            batches.append(
                Batch(
                    id=f"{job_id}_batch_{len(batches)}",
                    job_id=job_id,
                    items=chunk,
                    total_count=len(chunk),
                )
            )
        return batches

    async def process_batch(self, batch: Batch, dispatch: Dispatch) -> tuple[Batch, list[Any]]:
        """Dispatch all items concurrently. Returns the settled batch and per-item results."""
        batch = batch.model_copy(update={"status": "processing"})
        self._obs.batch("batch_started", batch)

        outcomes = await asyncio.gather(*(dispatch(item) for item in batch.items), return_exceptions=True)

        errors: list[str] = []
        results: list[Any] = []
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                errors.append(f"item {index}: {outcome}")
                logger.warning("Batch %s item %d failed: %s", batch.id, index, outcome)
            else:
                results.append(outcome)

        failed = len(errors)
        status = "failed" if batch.total_count and failed == batch.total_count else "completed"
        batch = batch.model_copy(
            update={
                "status": status,
                "processed_count": len(outcomes),
                "failed_count": failed,
                "errors": errors,
            }
        )
        self._obs.batch("batch_finished", batch, level="WARNING" if status == "failed" else "INFO")
        return batch, results

    async def run(
        self,
        job_id: str,
        items: list[Any],
        dispatch: Dispatch,
        progress_callback: ProgressCallback | None = None,
    ) -> BatchRunResult:
        batches = self.create_batches(job_id, items)
        run = BatchRunResult(job_id=job_id)
        logger.info("Processing %d items for %s in %d batches", len(items), job_id, len(batches))

        for index, batch in enumerate(batches):
            settled, results = await self.process_batch(batch, dispatch)
            run.batches.append(settled)
            run.results.extend(results)
            await emit_progress(
                progress_callback,
                {
                    "event": "batch_completed",
                    "job_id": job_id,
                    "batch_id": settled.id,
                    "batch_index": index + 1,
                    "batch_count": len(batches),
                    "status": settled.status,
                    "processed": run.processed_count,
                    "failed": run.failed_count,
                    "total": len(items),
                },
            )
            if index < len(batches) - 1 and self.delay_seconds > 0:
                await self._sleep(self.delay_seconds)

        return run
