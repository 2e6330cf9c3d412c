import aiohttp

from wallfeed.application.ports import ArtifactSourcePort, DescriberPort, LedgerPort, ResultJournalPort
from wallfeed.application.workflows.fanout import FanoutPublisher
from wallfeed.config.logger_config import logger
from wallfeed.domain.errors import DescriptionError, NetworkError, StorageError
from wallfeed.domain.models import DiscoveredItem, PipelineResult, SinkOutcome

STAGE_ABORTED = "aborted"
STAGE_PUBLISHED = "published"
STAGE_COMMITTED = "committed"


class ItemPipeline:
    """Drives one item from discovered to committed.

    Stages: acquire artifacts, describe (optional), fan out to sinks, commit.
    A failed download aborts the item without touching the ledger, so it is
    picked up again on the next poll. Once the fan-out join returns, the item
    is committed whatever the individual sink outcomes were.
    """

    def __init__(
        self,
        artifacts: ArtifactSourcePort,
        publisher: FanoutPublisher,
        ledger: LedgerPort,
        describer: DescriberPort | None = None,
        journal: ResultJournalPort | None = None,
    ) -> None:
        self.artifacts = artifacts
        self.publisher = publisher
        self.ledger = ledger
        self.describer = describer
        self.journal = journal

    async def process(self, session: aiohttp.ClientSession, item: DiscoveredItem) -> PipelineResult:
        try:
            result = await self._process(session, item)
        except Exception as exc:
            logger.exception(
                "Failed processing item_id={} with error type {}: {}",
                item.id,
                type(exc).__name__,
                exc,
            )
            result = PipelineResult(
                item_id=item.id,
                stage=STAGE_ABORTED,
                described=False,
                sink_outcomes=(),
                committed=False,
                error=f"{type(exc).__name__}: {exc}",
            )
        await self._journal(result)
        return result

    async def _process(self, session: aiohttp.ClientSession, item: DiscoveredItem) -> PipelineResult:
        described = False
        outcomes: tuple[SinkOutcome, ...] = ()
        try:
            async with self.artifacts.acquire(session, item) as artifacts:
                description = ""
                if self.describer is not None:
                    try:
                        description = await self.describer.describe(session, artifacts.thumb_path)
                        described = True
                    except DescriptionError as exc:
                        logger.warning("Description failed, continuing without one: item_id={}, error={}", item.id, exc)
                    except Exception as exc:
                        logger.exception(
                            "Describer crashed, continuing without description: item_id={}, error type {}",
                            item.id,
                            type(exc).__name__,
                        )

                outcomes = await self.publisher.publish(session, item, description, artifacts.asset_path)
        except NetworkError as exc:
            logger.error("Could not download assets, item left for next poll: item_id={}, error={}", item.id, exc)
            return PipelineResult(
                item_id=item.id,
                stage=STAGE_ABORTED,
                described=described,
                sink_outcomes=outcomes,
                committed=False,
                error=str(exc),
            )

        failed = [o.sink for o in outcomes if not o.ok]
        if failed:
            logger.warning("Item published with failed sinks: item_id={}, failed={}", item.id, failed)

        try:
            self.ledger.mark_sent(item.id)
        except StorageError as exc:
            logger.error("Failed to mark item as sent: item_id={}, error={}", item.id, exc)
            return PipelineResult(
                item_id=item.id,
                stage=STAGE_PUBLISHED,
                described=described,
                sink_outcomes=outcomes,
                committed=False,
                error=str(exc),
            )

        logger.info(
            "Item committed: item_id={}, described={}, sinks_ok={}/{}",
            item.id,
            described,
            len(outcomes) - len(failed),
            len(outcomes),
        )
        return PipelineResult(
            item_id=item.id,
            stage=STAGE_COMMITTED,
            described=described,
            sink_outcomes=outcomes,
            committed=True,
        )

    async def _journal(self, result: PipelineResult) -> None:
        if self.journal is None:
            return
        try:
            await self.journal.write_result(result)
        except Exception as exc:
            logger.warning("Failed to persist pipeline result: item_id={}, error={}", result.item_id, exc)
