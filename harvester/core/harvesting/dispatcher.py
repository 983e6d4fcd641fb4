"""Dispatcher - lane queues, budget, politeness delay and bounded retries."""

import asyncio
import contextlib
import time
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog

from harvester.core.harvesting.address_normalizer import AddressNormalizer
from harvester.core.harvesting.models import (
    Address,
    CrawlTask,
    ExtractionLimits,
    ExtractionOutcome,
    FailureReport,
    HarvestResult,
    Lane,
    Platform,
    TaskState,
)
from harvester.core.harvesting.output_normalizer import RecordEmitter, build_record
from harvester.core.harvesting.reporting import FailureReporter, NullFailureReporter
from harvester.utils.exceptions import BlockDetectedError, FetchFailureError

logger = structlog.get_logger(__name__)

LaneHandler = Callable[[Address], Awaitable[ExtractionOutcome]]


@dataclass
class RetryConfig:
    """Configuration for per-task retry logic."""

    max_attempts: int = 2
    base_delay_ms: int = 1000
    backoff_multiplier: float = 2.0

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return self.base_delay_ms * (self.backoff_multiplier ** (attempt - 1)) / 1000


@dataclass
class DispatchConfig:
    """Routing, budget and politeness configuration."""

    max_requests: int = 100
    static_concurrency: int = 4
    dynamic_concurrency: int = 1
    per_host_delay_ms: int = 1000
    render_hosts: List[str] = field(default_factory=list)
    retry: RetryConfig = field(default_factory=RetryConfig)


class Budget:
    """Hard cap on tasks started across both lanes."""

    def __init__(self, limit: int):
        self.limit = limit
        self.used = 0

    @property
    def exhausted(self) -> bool:
        return self.used >= self.limit

    def try_acquire(self) -> bool:
        if self.exhausted:
            return False
        self.used += 1
        return True


class HostThrottle:
    """Minimum spacing between consecutive requests to the same host."""

    def __init__(self, delay_ms: int):
        self.delay = max(0, delay_ms) / 1000
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._last: Dict[str, float] = {}

    async def wait(self, host: str) -> None:
        if self.delay <= 0:
            return
        async with self._locks[host]:
            last = self._last.get(host)
            if last is not None:
                wait_for = last + self.delay - time.monotonic()
                if wait_for > 0:
                    await asyncio.sleep(wait_for)
            self._last[host] = time.monotonic()


class Dispatcher:
    """Route addresses to lanes and drive each lane's worker pool.

    Lanes run one after the other: the static lane drains completely
    (including links it discovers), then the dynamic lane starts with its
    seeds plus any dynamic-lane addresses discovered on static pages.
    Static-lane addresses found on rendered pages wait for the next static
    round, which the orchestrator runs once the dynamic lane drains. Lanes
    share only the address registry (through the normalizer), the budget
    and the record emitter.
    """

    def __init__(
        self,
        normalizer: AddressNormalizer,
        emitter: RecordEmitter,
        config: Optional[DispatchConfig] = None,
        limits: Optional[ExtractionLimits] = None,
        keywords: Optional[List[str]] = None,
        reporter: Optional[FailureReporter] = None,
    ):
        self.normalizer = normalizer
        self.emitter = emitter
        self.config = config or DispatchConfig()
        self.limits = limits or ExtractionLimits()
        self.keywords = keywords or []
        self.reporter = reporter or NullFailureReporter()

        self.budget = Budget(self.config.max_requests)
        self.result = HarvestResult()
        self._pending: Dict[Lane, List[CrawlTask]] = {Lane.STATIC: [], Lane.DYNAMIC: []}
        self._active: Dict[Lane, asyncio.Queue] = {}
        self._throttles: Dict[Lane, HostThrottle] = {}

    # Routing

    def route(self, address: Address) -> Lane:
        """Pick the lane for an address."""
        if address.platform in (Platform.VIDEO, Platform.PHOTO):
            return Lane.DYNAMIC
        if address.platform is Platform.GENERIC and self._needs_render(address.host):
            return Lane.DYNAMIC
        return Lane.STATIC

    def _needs_render(self, host: str) -> bool:
        return any(host == h or host.endswith("." + h) for h in self.config.render_hosts)

    def submit(self, addresses: Iterable[Address]) -> None:
        for address in addresses:
            self.submit_one(address)

    def submit_one(self, address: Address) -> CrawlTask:
        task = CrawlTask(address=address, lane=self.route(address))
        queue = self._active.get(task.lane)
        if queue is not None:
            queue.put_nowait(task)
        else:
            self._pending[task.lane].append(task)
        return task

    def throttle(self, lane: Lane) -> HostThrottle:
        """The politeness throttle shared by every navigation in a lane."""
        if lane not in self._throttles:
            self._throttles[lane] = HostThrottle(self.config.per_host_delay_ms)
        return self._throttles[lane]

    def pending(self, lane: Lane) -> int:
        return len(self._pending[lane])

    def skip_pending(self, lane: Lane) -> None:
        """Count a lane's queued tasks as skipped without running them."""
        skipped = len(self._pending[lane])
        self._pending[lane] = []
        self.result.skipped += skipped
        logger.info("lane_skipped", lane=lane.value, tasks=skipped, reason="budget exhausted")

    # Lane execution

    async def run_lane(self, lane: Lane, handler: LaneHandler) -> None:
        """Drain a lane's queue with its worker pool."""
        concurrency = (
            self.config.static_concurrency if lane is Lane.STATIC else self.config.dynamic_concurrency
        )
        queue: asyncio.Queue = asyncio.Queue()
        for task in self._pending[lane]:
            queue.put_nowait(task)
        self._pending[lane] = []

        if queue.empty():
            logger.debug("lane_empty", lane=lane.value)
            return

        logger.info("lane_started", lane=lane.value, tasks=queue.qsize(), workers=concurrency)
        throttle = self.throttle(lane)
        self._active[lane] = queue
        workers = [
            asyncio.create_task(self._worker(queue, handler, throttle))
            for _ in range(concurrency)
        ]
        try:
            await queue.join()
        finally:
            del self._active[lane]
            for worker in workers:
                worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.gather(*workers)

        logger.info("lane_finished", lane=lane.value, budget_used=self.budget.used)

    async def _worker(
        self, queue: asyncio.Queue, handler: LaneHandler, throttle: HostThrottle
    ) -> None:
        while True:
            task: CrawlTask = await queue.get()
            try:
                if not self.budget.try_acquire():
                    self.result.skipped += 1
                    logger.debug("budget_exhausted_skip", url=task.address.canonical)
                    continue
                await self._process(task, handler, throttle)
            except Exception as e:
                logger.exception("task_crashed", url=task.address.canonical, error=str(e))
            finally:
                queue.task_done()

    async def _process(self, task: CrawlTask, handler: LaneHandler, throttle: HostThrottle) -> None:
        """Attempt a task until it succeeds or runs out of attempts."""
        self.result.processed += 1
        retry = self.config.retry
        log = logger.bind(url=task.address.canonical, lane=task.lane.value)
        final_state = TaskState.FAILED

        while task.attempts < retry.max_attempts:
            task.attempts += 1
            await throttle.wait(task.address.host)
            try:
                outcome = await self._attempt(task, handler)
            except BlockDetectedError as e:
                final_state, task.last_error = TaskState.BLOCKED, e.reason
                log.warning("attempt_blocked", attempt=task.attempts, reason=e.reason)
            except FetchFailureError as e:
                final_state, task.last_error = TaskState.FAILED, e.reason
                log.warning("attempt_failed", attempt=task.attempts, reason=e.reason)
            except Exception as e:
                final_state, task.last_error = TaskState.FAILED, f"unexpected error: {e}"
                log.exception("attempt_crashed", attempt=task.attempts)
            else:
                task.state = TaskState.SUCCEEDED
                self.result.succeeded += 1
                self._enqueue_links(outcome.links)
                return

            if task.attempts < retry.max_attempts:
                await asyncio.sleep(retry.delay_after(task.attempts))

        task.state = final_state
        await self._report_failure(task)

    async def _attempt(self, task: CrawlTask, handler: LaneHandler) -> ExtractionOutcome:
        """Run one extraction attempt and emit its record.

        Raises:
            FetchFailureError: No content was obtained; nothing is emitted
            BlockDetectedError: A blocked record was emitted for this attempt
        """
        outcome = await handler(task.address)
        record = build_record(
            task.address,
            title=outcome.title,
            posts=outcome.posts,
            comments=outcome.comments,
            text=outcome.text,
            verdict=outcome.verdict,
            keywords=self.keywords,
            max_posts=self.limits.max_posts,
            max_comments=self.limits.max_comments,
        )
        await self.emitter.emit(record)
        self.result.records_emitted += 1

        if outcome.verdict.blocked:
            raise BlockDetectedError(task.address.canonical, outcome.verdict.reason or "blocked")
        return outcome

    async def _report_failure(self, task: CrawlTask) -> None:
        if task.state is TaskState.BLOCKED:
            self.result.blocked += 1
        else:
            self.result.failed += 1
        failure = FailureReport(
            url=task.address.canonical,
            platform=task.address.platform,
            lane=task.lane,
            attempts=task.attempts,
            state=task.state,
            reason=task.last_error or "unknown",
        )
        self.result.failures.append(failure)
        await self.reporter.report(failure)

    def _enqueue_links(self, links: List[str]) -> None:
        """Feed discovered links back through the normalizer; never fatal."""
        if not links or self.budget.exhausted:
            return
        queued = 0
        for link in links:
            try:
                address = self.normalizer.admit(link)
                if address is not None:
                    self.submit_one(address)
                    queued += 1
            except Exception as e:
                logger.warning("enqueue_failed", url=link, error=str(e))
        if queued:
            logger.debug("links_enqueued", count=queued)
