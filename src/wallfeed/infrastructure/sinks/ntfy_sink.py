import asyncio
import base64
from pathlib import Path

import aiohttp

from wallfeed.config.logger_config import logger
from wallfeed.config.settings import NtfyConfig
from wallfeed.domain.errors import SinkError
from wallfeed.domain.models import DiscoveredItem
from wallfeed.domain.rules import build_notification_message, compact_tags

NTFY_TIMEOUT = aiohttp.ClientTimeout(total=120, connect=10)

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
}


class NtfySink:
    name = "ntfy"

    def __init__(self, config: NtfyConfig) -> None:
        self.config = config
        self.url = f"{config.server.rstrip('/')}/{config.topic}"

    async def publish(
        self,
        session: aiohttp.ClientSession,
        item: DiscoveredItem,
        description: str,
        asset_path: Path,
    ) -> None:
        asset_path = Path(asset_path)
        headers = {
            "Filename": asset_path.name,
            "Message": header_value(build_notification_message(description)),
            "Priority": self.config.priority,
            "Title": header_value(item.url),
            "Content-Type": CONTENT_TYPES.get(asset_path.suffix.lower(), "application/octet-stream"),
        }
        tags = compact_tags(item)
        if tags:
            headers["Tags"] = header_value(",".join(tags))

        try:
            with asset_path.open("rb") as fh:
                async with session.put(self.url, data=fh, headers=headers, timeout=NTFY_TIMEOUT) as resp:
                    if resp.status >= 300:
                        body = await resp.text()
                        raise SinkError(f"ntfy image notification failed: HTTP {resp.status}: {body[:500]}")
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise SinkError(f"ntfy transport error: {type(exc).__name__}: {exc}") from exc
        logger.info("ntfy: notified. item_id={}", item.id)


def header_value(value: str) -> str:
    """ntfy decodes RFC 2047 encoded words; HTTP headers themselves must stay ASCII."""
    value = value.replace("\r", " ").replace("\n", " ")
    if value.isascii():
        return value
    encoded = base64.b64encode(value.encode("utf-8")).decode("ascii")
    return f"=?UTF-8?B?{encoded}?="
