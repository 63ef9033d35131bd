"""In-memory queue that runs pull request reviews one at a time."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

from iam_reviewer.logger import get_logger, log_failure, log_timing, log_with_context

from .models import PullRequestPayload, ReviewJob

logger = get_logger()

ReviewJobHandler = Callable[[ReviewJob], Awaitable[None]]


def _job_logger(job: ReviewJob):
    return log_with_context(
        logger,
        delivery_id=job.delivery_id,
        repository=job.payload.repository.full_name,
        pull_number=job.payload.pull_request.number,
    )


class _ReviewQueue:
    def __init__(self) -> None:
        self._queue: asyncio.Queue[ReviewJob] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._handler: ReviewJobHandler | None = None

    def configure_handler(self, handler: ReviewJobHandler | None) -> None:
        self._handler = handler

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            loop = asyncio.get_running_loop()
            self._worker = loop.create_task(self._worker_loop())

    async def _run_job(self, job: ReviewJob) -> None:
        ctx_logger = _job_logger(job)
        start_time = time.perf_counter()
        try:
            if self._handler is None:
                log_failure(logger, "No review job handler configured; dropping job", delivery_id=job.delivery_id)
                return
            with log_timing(ctx_logger, "process_review_job"):
                await self._handler(job)
            ctx_logger.info(f"=== QUEUE: Job completed in {time.perf_counter() - start_time:.3f}s ===")
        except Exception as exc:  # one failed job must not stop the worker
            log_failure(
                logger,
                f"Unhandled exception while processing job (failed after {time.perf_counter() - start_time:.3f}s)",
                exc,
                delivery_id=job.delivery_id,
            )
            logger.exception("Full exception traceback:")

    async def _worker_loop(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._run_job(job)
            finally:
                self._queue.task_done()

    async def enqueue(self, job: ReviewJob) -> None:
        self._ensure_worker()
        await self._queue.put(job)

    async def join(self) -> None:
        await self._queue.join()

    async def shutdown(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:  # pragma: no cover - expected during shutdown
            pass
        finally:
            self._worker = None

    def pending(self) -> int:
        return self._queue.qsize()


_QUEUE = _ReviewQueue()


def _coerce_job(job: ReviewJob | dict[str, Any]) -> ReviewJob:
    if isinstance(job, ReviewJob):
        return job
    payload = job.get("payload")
    if isinstance(payload, dict):
        job = {**job, "payload": PullRequestPayload.model_validate(payload)}
    return ReviewJob.model_validate(job)


async def enqueue_review_job(job: ReviewJob | dict[str, Any]) -> None:
    """Add a job to the in-memory queue, starting the worker if needed."""

    review_job = _coerce_job(job)
    ctx_logger = _job_logger(review_job)
    ctx_logger.debug(f"Adding job to queue (pending_jobs={_QUEUE.pending()})")
    await _QUEUE.enqueue(review_job)


def configure_review_handler(handler: ReviewJobHandler | None) -> None:
    """Configure the coroutine that processes jobs from the queue."""

    _QUEUE.configure_handler(handler)


async def wait_for_pending_jobs() -> None:
    """Block until every queued job has been processed."""

    await _QUEUE.join()


async def shutdown_queue() -> None:
    """Gracefully stop the worker task."""

    await _QUEUE.shutdown()


def pending_jobs() -> int:
    """Return the number of jobs waiting in the queue."""

    return _QUEUE.pending()
