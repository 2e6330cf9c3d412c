import asyncio
from pathlib import Path
from typing import Sequence

import aiohttp

from wallfeed.application.ports import PublishSink
from wallfeed.config.logger_config import logger
from wallfeed.domain.errors import SinkError
from wallfeed.domain.models import DiscoveredItem, SinkOutcome


class FanoutPublisher:
    """Runs every configured sink concurrently for one item and waits for all of them.

    A sink failure never propagates: it is logged and reported in its SinkOutcome.
    Cancellation of the caller cancels every sink still in flight.
    """

    def __init__(self, sinks: Sequence[PublishSink], sink_timeout_seconds: float | None = None) -> None:
        self.sinks = tuple(sinks)
        self.sink_timeout_seconds = sink_timeout_seconds

    async def publish(
        self,
        session: aiohttp.ClientSession,
        item: DiscoveredItem,
        description: str,
        asset_path: Path,
    ) -> tuple[SinkOutcome, ...]:
        if not self.sinks:
            logger.warning("No sinks configured; nothing published for item_id={}", item.id)
            return ()

        results = await asyncio.gather(
            *(self._run_sink(sink, session, item, description, asset_path) for sink in self.sinks),
            return_exceptions=True,
        )

        outcomes: list[SinkOutcome] = []
        for sink, result in zip(self.sinks, results):
            if isinstance(result, SinkError):
                logger.error("Failed to publish item_id={} to {}: {}", item.id, sink.name, result)
                outcomes.append(SinkOutcome(sink=sink.name, ok=False, error=str(result)))
            elif isinstance(result, BaseException):
                logger.opt(exception=result).error(
                    "Unexpected error publishing item_id={} to {}: {}", item.id, sink.name, result
                )
                outcomes.append(SinkOutcome(sink=sink.name, ok=False, error=f"{type(result).__name__}: {result}"))
            else:
                outcomes.append(SinkOutcome(sink=sink.name, ok=True))
        return tuple(outcomes)

    async def _run_sink(
        self,
        sink: PublishSink,
        session: aiohttp.ClientSession,
        item: DiscoveredItem,
        description: str,
        asset_path: Path,
    ) -> None:
        call = sink.publish(session, item, description, asset_path)
        if self.sink_timeout_seconds is None:
            await call
            return
        try:
            await asyncio.wait_for(call, timeout=self.sink_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise SinkError(f"{sink.name} timed out after {self.sink_timeout_seconds}s") from exc
