from typing import Sequence

import aiohttp

from wallfeed.application.ports import CatalogPort, LedgerPort
from wallfeed.config.logger_config import logger
from wallfeed.domain.errors import NetworkError, StorageError
from wallfeed.domain.models import DiscoveredItem


class CatalogPoller:
    def __init__(self, catalog: CatalogPort, ledger: LedgerPort, ranges: Sequence[str]) -> None:
        self.catalog = catalog
        self.ledger = ledger
        self.ranges = tuple(ranges)

    async def poll(self, session: aiohttp.ClientSession) -> list[DiscoveredItem]:
        batch: list[DiscoveredItem] = []
        seen_this_cycle: set[str] = set()

        for range_param in self.ranges:
            try:
                candidates = await self.catalog.search(session, range_param)
            except NetworkError as exc:
                logger.error("Failed to fetch candidates for range {}: {}", range_param, exc)
                continue
            except Exception as exc:
                logger.exception(
                    "Unexpected error searching range {} with error type {}: {}", range_param, type(exc).__name__, exc
                )
                continue

            new_in_range = 0
            for item_id in candidates:
                if item_id in seen_this_cycle:
                    continue
                seen_this_cycle.add(item_id)

                try:
                    if self.ledger.is_sent(item_id):
                        continue
                except StorageError as exc:
                    logger.error("Ledger error for item_id={}: {}", item_id, exc)
                    continue

                try:
                    item = await self.catalog.fetch_item(session, item_id)
                except NetworkError as exc:
                    logger.warning("Failed to fetch item detail, retrying next poll: item_id={}, error={}", item_id, exc)
                    continue
                except Exception as exc:
                    logger.exception(
                        "Unexpected error fetching item_id={} with error type {}: {}", item_id, type(exc).__name__, exc
                    )
                    continue

                batch.append(item)
                new_in_range += 1

            logger.info(
                "Range polled: range={}, candidates={}, new_items={}",
                range_param,
                len(candidates),
                new_in_range,
            )

        return batch
