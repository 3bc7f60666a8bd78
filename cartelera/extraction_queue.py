"""
Bounded-concurrency, retrying extraction queue.

A fixed pool of worker coroutines pulls crawl targets from a bounded
``asyncio.Queue``. Each task runs the extraction callable with explicit
retries, hands the resulting record to ``on_record`` (persistence), then
pauses for a randomized interval whatever the outcome. A task that exhausts
its retries is counted as an error and the queue moves on.

Each attempt is bounded by ``task_timeout_s``; a timed-out attempt is
cancelled and retried like any other failure. Synchronous record hooks (the
pymongo gateway) run in a worker thread so they never block the event loop.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple

from cartelera.exceptions import ExtractionTimeoutError
from cartelera.schema_adapter import CrawlTarget, EventRecord
from cartelera.stealth_components.random_delay import human_delay

logger = logging.getLogger(__name__)

ExtractFn = Callable[[CrawlTarget], Awaitable[EventRecord]]
RecordHook = Callable[[EventRecord], object]


@dataclass
class QueueStats:
    scraped: int = 0
    errors: int = 0
    events: List[EventRecord] = field(default_factory=list)


class ExtractionQueue:
    def __init__(
        self,
        extract: ExtractFn,
        *,
        on_record: Optional[RecordHook] = None,
        concurrency: int = 1,
        retries: int = 2,
        delay_range_s: Tuple[float, float] = (2.0, 4.0),
        retry_backoff_s: Tuple[float, float] = (1.0, 2.0),
        task_timeout_s: Optional[float] = 180.0,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.extract = extract
        self.on_record = on_record
        self.concurrency = concurrency
        self.retries = max(retries, 0)
        self.delay_range_s = delay_range_s
        self.retry_backoff_s = retry_backoff_s
        self.task_timeout_s = task_timeout_s
        self.stats = QueueStats()
        self._record_lock = asyncio.Lock()

    async def _attempt(self, target: CrawlTarget) -> EventRecord:
        if not self.task_timeout_s:
            return await self.extract(target)
        try:
            return await asyncio.wait_for(self.extract(target), self.task_timeout_s)
        except asyncio.TimeoutError:
            raise ExtractionTimeoutError(target.url, self.task_timeout_s) from None

    async def _extract_with_retries(self, target: CrawlTarget) -> EventRecord:
        attempts = self.retries + 1
        for attempt in range(1, attempts):
            try:
                return await self._attempt(target)
            except Exception as e:
                logger.warning(f"Attempt {attempt}/{attempts} failed for {target.url}: {e}")
                await human_delay(*self.retry_backoff_s, multiplier=attempt)
        return await self._attempt(target)

    async def _store(self, record: EventRecord) -> None:
        if asyncio.iscoroutinefunction(self.on_record):
            await self.on_record(record)
            return
        # one write at a time; page work in other workers keeps running
        async with self._record_lock:
            await asyncio.to_thread(self.on_record, record)

    async def _run_task(self, target: CrawlTarget) -> None:
        try:
            record = await self._extract_with_retries(target)
        except Exception as e:
            self.stats.errors += 1
            logger.error(f"Failed to scrape {target.url} after {self.retries + 1} attempts: {e}")
            return

        if self.on_record is not None:
            try:
                await self._store(record)
            except Exception as e:
                self.stats.errors += 1
                logger.error(f"Failed to store {target.source}/{target.external_id}: {e}", exc_info=True)
                return

        self.stats.scraped += 1
        self.stats.events.append(record)
        logger.info(f"Scraped: {record.title} ({target.url})")

    async def _worker(self, worker_id: int, queue: "asyncio.Queue[Optional[CrawlTarget]]") -> None:
        while True:
            target = await queue.get()
            try:
                if target is None:
                    return
                logger.debug(f"Worker {worker_id} picked up {target.url}")
                await self._run_task(target)
                await human_delay(*self.delay_range_s)
            finally:
                queue.task_done()

    async def drain(self, targets: Iterable[CrawlTarget]) -> QueueStats:
        """Processes every target and returns the accumulated counts."""
        queue: "asyncio.Queue[Optional[CrawlTarget]]" = asyncio.Queue(maxsize=self.concurrency * 2)
        workers = [asyncio.create_task(self._worker(i, queue)) for i in range(self.concurrency)]

        try:
            for target in targets:
                await queue.put(target)
            for _ in workers:
                await queue.put(None)
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                if not worker.done():
                    worker.cancel()

        logger.info(f"Queue drained: {self.stats.scraped} scraped, {self.stats.errors} errors.")
        return self.stats
