from contextlib import AbstractAsyncContextManager
from pathlib import Path
from typing import Protocol, runtime_checkable

import aiohttp

from wallfeed.domain.models import DiscoveredItem, ItemArtifacts, PipelineResult


@runtime_checkable
class CatalogPort(Protocol):
    async def search(self, session: aiohttp.ClientSession, range_param: str) -> list[str]: ...
    """Return candidate ids for one discovery range. Raises NetworkError."""

    async def fetch_item(self, session: aiohttp.ClientSession, item_id: str) -> DiscoveredItem: ...
    """Resolve full detail for one id. Raises NetworkError or NotFoundError."""


@runtime_checkable
class LedgerPort(Protocol):
    def is_sent(self, item_id: str) -> bool: ...

    def mark_sent(self, item_id: str) -> None: ...


@runtime_checkable
class ArtifactSourcePort(Protocol):
    def acquire(
        self, session: aiohttp.ClientSession, item: DiscoveredItem
    ) -> AbstractAsyncContextManager[ItemArtifacts]: ...
    """Download thumbnail and primary asset; both files are removed on exit."""


@runtime_checkable
class DescriberPort(Protocol):
    async def describe(self, session: aiohttp.ClientSession, image_path: Path) -> str: ...
    """Raises DescriptionError."""


@runtime_checkable
class PublishSink(Protocol):
    name: str

    async def publish(
        self,
        session: aiohttp.ClientSession,
        item: DiscoveredItem,
        description: str,
        asset_path: Path,
    ) -> None: ...
    """Raises SinkError."""


@runtime_checkable
class ResultJournalPort(Protocol):
    async def write_result(self, result: PipelineResult) -> None: ...
