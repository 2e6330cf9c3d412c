import asyncio
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import AsyncIterator

import aiohttp

from wallfeed.config.logger_config import logger
from wallfeed.domain.errors import NetworkError
from wallfeed.domain.models import DiscoveredItem, ItemArtifacts
from wallfeed.domain.rules import make_scratch_name

DOWNLOAD_TIMEOUT = aiohttp.ClientTimeout(total=60, connect=10)
CHUNK_SIZE = 64 * 1024


class AssetDownloader:
    """Per-item scratch downloads. Every file it creates is owned by one `acquire` scope."""

    def __init__(self, scratch_dir: str | Path, user_agent: str = "wallfeed/0.1") -> None:
        self.scratch_dir = Path(scratch_dir)
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        self.user_agent = user_agent

    @asynccontextmanager
    async def acquire(self, session: aiohttp.ClientSession, item: DiscoveredItem) -> AsyncIterator[ItemArtifacts]:
        owned: list[Path] = []
        try:
            thumb_path = self.scratch_dir / make_scratch_name("thumb", item.id, item.thumb_url)
            owned.append(thumb_path)
            await self.download(session, item.thumb_url, thumb_path)

            asset_path = self.scratch_dir / make_scratch_name("image", item.id, item.path)
            owned.append(asset_path)
            await self.download(session, item.path, asset_path)

            yield ItemArtifacts(thumb_path=thumb_path, asset_path=asset_path)
        finally:
            for path in owned:
                with suppress(FileNotFoundError):
                    path.unlink()
            logger.debug("Scratch files removed: item_id={}, count={}", item.id, len(owned))

    async def download(self, session: aiohttp.ClientSession, url: str, target: Path) -> Path:
        headers = {"User-Agent": self.user_agent}
        try:
            async with session.get(url, headers=headers, timeout=DOWNLOAD_TIMEOUT) as resp:
                if resp.status != 200:
                    raise NetworkError(f"Download failed for {url}: HTTP {resp.status}")
                with target.open("wb") as fh:
                    async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                        fh.write(chunk)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            with suppress(FileNotFoundError):
                target.unlink()
            raise NetworkError(f"Download failed for {url}: {type(exc).__name__}: {exc}") from exc
        except NetworkError:
            with suppress(FileNotFoundError):
                target.unlink()
            raise
        return target
