import asyncio
from dataclasses import dataclass
from time import perf_counter

import aiohttp
from tqdm import tqdm

from wallfeed.application.workflows.item_pipeline import ItemPipeline
from wallfeed.application.workflows.poll_catalog import CatalogPoller
from wallfeed.config.logger_config import logger
from wallfeed.domain.models import CycleSummary, DiscoveredItem, PipelineResult


@dataclass(frozen=True)
class SchedulerConfig:
    max_concurrent_items: int = 3
    wait_seconds: float = 3600.0
    show_progress: bool = False
    connector_limit: int = 0
    connector_limit_per_host: int = 10
    connector_ttl_dns_cache: int = 300


class BatchScheduler:
    """Poll, publish the whole batch with at most K items in flight, sleep, repeat.

    `run` returns when `stop_event` is set or after `max_cycles` cycles. A stop
    request during a batch cancels the in-flight items; cancelled items are never
    committed.
    """

    def __init__(
        self,
        poller: CatalogPoller,
        pipeline: ItemPipeline,
        config: SchedulerConfig | None = None,
    ) -> None:
        self.poller = poller
        self.pipeline = pipeline
        self.config = config or SchedulerConfig()
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_items)
        self.active_items = 0
        self.peak_active_items = 0

    async def run(
        self,
        stop_event: asyncio.Event | None = None,
        max_cycles: int | None = None,
    ) -> CycleSummary | None:
        stop_event = stop_event or asyncio.Event()
        last_summary: CycleSummary | None = None
        connector = aiohttp.TCPConnector(
            limit=self.config.connector_limit,
            limit_per_host=self.config.connector_limit_per_host,
            ttl_dns_cache=self.config.connector_ttl_dns_cache,
        )
        async with aiohttp.ClientSession(connector=connector) as session:
            cycle = 0
            while not stop_event.is_set():
                cycle += 1
                last_summary = await self.run_cycle(session, cycle, stop_event)
                if max_cycles is not None and cycle >= max_cycles:
                    break
                if stop_event.is_set():
                    break
                await self._sleep(stop_event)

        logger.info("Scheduler stopped after {} cycle(s).", last_summary.cycle if last_summary else 0)
        return last_summary

    async def run_cycle(
        self,
        session: aiohttp.ClientSession,
        cycle: int,
        stop_event: asyncio.Event | None = None,
    ) -> CycleSummary:
        started = perf_counter()
        stop_event = stop_event or asyncio.Event()
        try:
            batch = await self.poller.poll(session)
        except Exception as exc:
            logger.exception("Cycle {}: poll failed with error type {}: {}", cycle, type(exc).__name__, exc)
            batch = []
        if not batch:
            logger.info("Cycle {}: no new items.", cycle)
            return CycleSummary(
                cycle=cycle,
                batch_total=0,
                committed_total=0,
                aborted_total=0,
                cancelled_total=0,
                duration_ms=int((perf_counter() - started) * 1000),
            )

        logger.info("Cycle {}: processing {} new item(s), max {} at a time...", cycle, len(batch), self.config.max_concurrent_items)
        tasks = [asyncio.create_task(self._run_item(session, item)) for item in batch]
        stop_waiter = asyncio.create_task(stop_event.wait())
        try:
            with tqdm(
                total=len(batch),
                desc=f"Cycle {cycle}",
                unit="item",
                leave=True,
                disable=not self.config.show_progress,
            ) as progress:
                for task in tasks:
                    task.add_done_callback(lambda _task: progress.update(1))
                batch_done = asyncio.gather(*tasks, return_exceptions=True)
                await asyncio.wait({batch_done, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
                if not batch_done.done():
                    in_flight = sum(1 for t in tasks if not t.done())
                    logger.warning("Cycle {}: stop requested, cancelling {} unfinished item(s).", cycle, in_flight)
                    for task in tasks:
                        task.cancel()
                results = await batch_done
        finally:
            stop_waiter.cancel()
            for task in tasks:
                if not task.done():
                    task.cancel()

        committed = sum(1 for r in results if isinstance(r, PipelineResult) and r.committed)
        cancelled = sum(1 for r in results if isinstance(r, asyncio.CancelledError))
        for r in results:
            if isinstance(r, BaseException) and not isinstance(r, asyncio.CancelledError):
                logger.opt(exception=r).error("Item task failed outside the pipeline: {}", r)
        summary = CycleSummary(
            cycle=cycle,
            batch_total=len(batch),
            committed_total=committed,
            aborted_total=len(batch) - committed - cancelled,
            cancelled_total=cancelled,
            duration_ms=int((perf_counter() - started) * 1000),
        )
        logger.info(
            "Cycle {} complete: batch_total={}, committed_total={}, aborted_total={}, cancelled_total={}, duration_ms={}",
            summary.cycle,
            summary.batch_total,
            summary.committed_total,
            summary.aborted_total,
            summary.cancelled_total,
            summary.duration_ms,
        )
        return summary

    async def _run_item(self, session: aiohttp.ClientSession, item: DiscoveredItem) -> PipelineResult:
        async with self._semaphore:
            self.active_items += 1
            self.peak_active_items = max(self.peak_active_items, self.active_items)
            try:
                return await self.pipeline.process(session, item)
            finally:
                self.active_items -= 1

    async def _sleep(self, stop_event: asyncio.Event) -> None:
        logger.info("Waiting {} seconds before next run...", self.config.wait_seconds)
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self.config.wait_seconds)
        except asyncio.TimeoutError:
            return
