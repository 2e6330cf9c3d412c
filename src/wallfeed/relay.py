import asyncio
import signal
from datetime import datetime, timezone
from pathlib import Path

from wallfeed.application.ports import PublishSink
from wallfeed.application.workflows.batch_scheduler import BatchScheduler, SchedulerConfig
from wallfeed.application.workflows.fanout import FanoutPublisher
from wallfeed.application.workflows.item_pipeline import ItemPipeline
from wallfeed.application.workflows.poll_catalog import CatalogPoller
from wallfeed.config.logger_config import logger
from wallfeed.config.settings import DEFAULT_CONFIG_PATH, AppConfig, load_config
from wallfeed.domain.models import CycleSummary
from wallfeed.infrastructure.asset_downloader import AssetDownloader
from wallfeed.infrastructure.ledger_sqlite import SQLiteLedger
from wallfeed.infrastructure.openai_describer import OpenAIDescriber
from wallfeed.infrastructure.result_journal import ResultJsonlJournal
from wallfeed.infrastructure.sinks.mastodon_sink import MastodonSink
from wallfeed.infrastructure.sinks.matrix_sink import MatrixSink
from wallfeed.infrastructure.sinks.ntfy_sink import NtfySink
from wallfeed.infrastructure.wallhaven_client import WallhavenClient

SINK_FACTORIES = {
    "matrix": lambda config: MatrixSink(config.matrix),
    "mastodon": lambda config: MastodonSink(config.mastodon),
    "ntfy": lambda config: NtfySink(config.ntfy),
}


def build_sinks(config: AppConfig) -> list[PublishSink]:
    return [SINK_FACTORIES[name](config) for name in config.sinks]


async def run_relay_async(
    *,
    config_path: str | Path = DEFAULT_CONFIG_PATH,
    config: AppConfig | None = None,
    stop_event: asyncio.Event | None = None,
    max_cycles: int | None = None,
) -> CycleSummary | None:
    config = config or load_config(config_path)
    run_id = _build_run_id()

    ledger = SQLiteLedger(config.database)
    journal: ResultJsonlJournal | None = None
    try:
        if config.pipeline.journal_dir:
            journal = ResultJsonlJournal(config.pipeline.journal_dir, run_id=run_id)
        scheduler = _build_scheduler(config, run_id, ledger, journal)
        return await scheduler.run(stop_event=stop_event, max_cycles=max_cycles)
    finally:
        if journal is not None:
            journal.close()
        ledger.close()


def _build_scheduler(
    config: AppConfig,
    run_id: str,
    ledger: SQLiteLedger,
    journal: ResultJsonlJournal | None,
) -> BatchScheduler:
    describer = OpenAIDescriber(config.openai) if config.openai.api_key else None
    if describer is None:
        logger.warning("No OpenAI API key configured; items are published without descriptions.")

    sinks = build_sinks(config)
    logger.info(
        "Relay starting: run_id={}, ranges={}, sinks={}, max_concurrent_items={}, wait_time={}s, ledger_size={}",
        run_id,
        list(config.wallhaven.toprange),
        [s.name for s in sinks],
        config.pipeline.max_concurrent_items,
        config.wait_time,
        ledger.count(),
    )

    pipeline = ItemPipeline(
        artifacts=AssetDownloader(config.pipeline.scratch_dir, user_agent=config.wallhaven.user_agent),
        publisher=FanoutPublisher(sinks, sink_timeout_seconds=config.pipeline.sink_timeout_seconds),
        ledger=ledger,
        describer=describer,
        journal=journal,
    )
    poller = CatalogPoller(
        catalog=WallhavenClient(config.wallhaven),
        ledger=ledger,
        ranges=config.wallhaven.toprange,
    )
    return BatchScheduler(
        poller=poller,
        pipeline=pipeline,
        config=SchedulerConfig(
            max_concurrent_items=config.pipeline.max_concurrent_items,
            wait_seconds=config.wait_time,
            show_progress=config.pipeline.show_progress,
        ),
    )


def run_relay(
    *,
    config_path: str | Path = DEFAULT_CONFIG_PATH,
    max_cycles: int | None = None,
) -> CycleSummary | None:
    return asyncio.run(_run_until_signalled(config_path=config_path, max_cycles=max_cycles))


async def _run_until_signalled(*, config_path: str | Path, max_cycles: int | None) -> CycleSummary | None:
    stop_event = asyncio.Event()
    install_stop_signals(stop_event)
    return await run_relay_async(config_path=config_path, stop_event=stop_event, max_cycles=max_cycles)


def install_stop_signals(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _request_stop(signame: str) -> None:
        logger.warning("Received {}; stopping after in-flight work is cancelled.", signame)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop, sig.name)
        except (NotImplementedError, RuntimeError):
            # add_signal_handler is unavailable on Windows event loops.
            logger.debug("Signal handler for {} not installed on this platform.", sig.name)


def _build_run_id() -> str:
    return datetime.now(timezone.utc).strftime("wallfeed_%Y%m%dT%H%M%S%fZ")
