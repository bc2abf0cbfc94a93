from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable

import httpx

from chopper.config import RunConfig
from chopper.loadgen.executor import RequestExecutor
from chopper.metrics import Aggregate, RequestOutcome, ResultCollector

logger = logging.getLogger(__name__)

# Receives (worker_id, elapsed_sec) after each outcome. Display only: errors
# raised by the hook are logged and ignored.
ProgressCallback = Callable[[int, float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class RunResult:
    aggregate: Aggregate | None
    outcomes: tuple[RequestOutcome, ...]
    duration_sec: float
    elapsed_sec: float
    started_at: datetime

    @property
    def has_data(self) -> bool:
        return self.aggregate is not None


class RunController:
    """Drives one benchmark run: N workers, one duration timer, one result consumer.

    Workers publish outcomes to a single queue and the consumer is the only
    code that touches the :class:`ResultCollector`. Stopping is cooperative:
    a worker finishes its in-flight request and then exits its loop.
    """

    def __init__(
        self,
        config: RunConfig,
        progress: ProgressCallback | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        config.validate()
        self.config = config
        self.collector = ResultCollector()
        self._progress = progress
        self._transport = transport
        self._stop: asyncio.Event | None = None
        self._stop_requested = False

    def set_progress(self, progress: ProgressCallback | None) -> None:
        self._progress = progress

    def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()
        else:
            self._stop_requested = True

    async def run(self) -> RunResult:
        stop = self._stop = asyncio.Event()
        if self._stop_requested or self.config.duration_sec <= 0:
            stop.set()
        # A stop requested between runs applies to the next run only.
        self._stop_requested = False
        try:
            return await self._run(stop)
        finally:
            self._stop = None

    async def _run(self, stop: asyncio.Event) -> RunResult:
        config = self.config
        self.collector = ResultCollector()
        queue: asyncio.Queue[RequestOutcome | None] = asyncio.Queue()
        started_at = datetime.now(timezone.utc)
        started_mono = time.perf_counter()
        logger.info(
            "Starting run: %s %s, concurrency=%d, duration=%.3fs",
            config.target.method,
            config.target.url,
            config.concurrency,
            config.duration_sec,
        )

        async with contextlib.AsyncExitStack() as stack:
            executors = [
                await stack.enter_async_context(self._build_executor(i))
                for i in range(config.concurrency)
            ]
            consumer = asyncio.create_task(self._consume(queue))
            timer = asyncio.create_task(self._timer(config.duration_sec, stop))
            workers = [
                asyncio.create_task(self._worker(executor, queue, stop, started_mono))
                for executor in executors
            ]
            try:
                await asyncio.gather(*workers)
            except BaseException:
                stop.set()
                for task in (*workers, consumer):
                    task.cancel()
                await asyncio.gather(*workers, consumer, return_exceptions=True)
                raise
            finally:
                timer.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await timer
            # Every producer has exited, so the sentinel is the last item queued.
            await queue.put(None)
            await consumer

        elapsed = time.perf_counter() - started_mono
        aggregate = self.collector.aggregate(config.duration_sec)
        logger.info(
            "Run finished after %.3fs with %d outcomes",
            elapsed,
            self.collector.total,
        )
        return RunResult(
            aggregate=aggregate,
            outcomes=self.collector.outcomes,
            duration_sec=config.duration_sec,
            elapsed_sec=elapsed,
            started_at=started_at,
        )

    def _build_executor(self, worker_id: int) -> RequestExecutor:
        config = self.config
        return RequestExecutor(
            config.target,
            follow_redirects=config.follow_redirects,
            max_redirects=config.max_redirects,
            use_cookies=config.use_cookie_jar,
            keep_alive=config.keep_alive,
            worker_id=worker_id,
            transport=self._transport,
        )

    async def _timer(self, duration_sec: float, stop: asyncio.Event) -> None:
        await asyncio.sleep(duration_sec)
        logger.debug("Duration of %.3fs elapsed, stopping workers", duration_sec)
        stop.set()

    async def _worker(
        self,
        executor: RequestExecutor,
        queue: asyncio.Queue[RequestOutcome | None],
        stop: asyncio.Event,
        started_mono: float,
    ) -> None:
        while not stop.is_set():
            outcome = await executor.execute_once()
            if outcome is not None:
                queue.put_nowait(outcome)
                await self._report_progress(executor.worker_id, time.perf_counter() - started_mono)
            # Checkpoint so the timer can run even if the transport never suspends.
            await asyncio.sleep(0)

    async def _report_progress(self, worker_id: int, elapsed_sec: float) -> None:
        if self._progress is None:
            return
        try:
            await self._progress(worker_id, elapsed_sec)
        except Exception:
            # Display only; a broken hook must not change what is measured.
            logger.debug("Progress hook failed for worker %d", worker_id, exc_info=True)

    async def _consume(self, queue: asyncio.Queue[RequestOutcome | None]) -> None:
        while True:
            outcome = await queue.get()
            if outcome is None:
                return
            self.collector.observe(outcome)


async def run(
    config: RunConfig,
    progress: ProgressCallback | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RunResult:
    controller = RunController(config, progress=progress, transport=transport)
    return await controller.run()


def run_benchmark(
    config: RunConfig,
    progress: ProgressCallback | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RunResult:
    """Blocking entry point: execute the whole run and return its result."""
    return asyncio.run(run(config, progress=progress, transport=transport))
