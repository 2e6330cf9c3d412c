import asyncio
from contextlib import suppress
from pathlib import Path

import aiohttp

from wallfeed.config.logger_config import logger
from wallfeed.config.settings import MastodonConfig
from wallfeed.domain.errors import SinkError
from wallfeed.domain.models import DiscoveredItem
from wallfeed.domain.rules import build_status
from wallfeed.infrastructure.sinks.media import MAX_FILE_SIZE_BYTES, MAX_PIXELS, ensure_media_compliant

MASTODON_TIMEOUT = aiohttp.ClientTimeout(total=120, connect=10)


class MastodonSink:
    name = "mastodon"

    def __init__(
        self,
        config: MastodonConfig,
        max_bytes: int = MAX_FILE_SIZE_BYTES,
        max_pixels: int = MAX_PIXELS,
    ) -> None:
        self.config = config
        self.server = config.server.rstrip("/")
        self.max_bytes = max_bytes
        self.max_pixels = max_pixels

    async def publish(
        self,
        session: aiohttp.ClientSession,
        item: DiscoveredItem,
        description: str,
        asset_path: Path,
    ) -> None:
        try:
            media_id = await self.upload_media(session, Path(asset_path))
            payload = {
                "status": build_status(item, description),
                "media_ids": [media_id],
                "visibility": "public",
            }
            async with session.post(
                f"{self.server}/api/v1/statuses",
                json=payload,
                headers=self._auth_headers(),
                timeout=MASTODON_TIMEOUT,
            ) as resp:
                if resp.status >= 300:
                    body = await resp.text()
                    raise SinkError(f"Mastodon post error: HTTP {resp.status}: {body[:500]}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise SinkError(f"Mastodon transport error: {type(exc).__name__}: {exc}") from exc
        logger.info("Mastodon: posted. item_id={}", item.id)

    async def upload_media(self, session: aiohttp.ClientSession, asset_path: Path) -> str:
        processed = await asyncio.to_thread(
            ensure_media_compliant,
            asset_path,
            max_bytes=self.max_bytes,
            max_pixels=self.max_pixels,
        )
        try:
            with processed.open("rb") as fh:
                form = aiohttp.FormData()
                form.add_field("file", fh, filename=processed.name)
                async with session.post(
                    f"{self.server}/api/v2/media",
                    data=form,
                    headers=self._auth_headers(),
                    timeout=MASTODON_TIMEOUT,
                ) as resp:
                    if resp.status >= 300:
                        body = await resp.text()
                        raise SinkError(f"Mastodon upload error: HTTP {resp.status}: {body[:500]}")
                    data = await resp.json(content_type=None)
        except OSError as exc:
            raise SinkError(f"Cannot read media {processed}: {exc}") from exc
        finally:
            if processed != asset_path:
                with suppress(FileNotFoundError):
                    processed.unlink()

        media_id = str((data or {}).get("id") or "")
        if not media_id:
            raise SinkError("Mastodon upload returned no media id")
        return media_id

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.config.access_token}"}
