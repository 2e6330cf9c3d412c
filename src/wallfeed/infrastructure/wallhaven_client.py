import asyncio
import json
from typing import Any

import aiohttp
from aiohttp import (
    ClientConnectorError,
    ClientPayloadError,
    ClientResponseError,
    ContentTypeError,
    ServerDisconnectedError,
)

from wallfeed.config.logger_config import logger
from wallfeed.config.settings import WallhavenConfig
from wallfeed.domain.errors import NetworkError, NotFoundError
from wallfeed.domain.models import DiscoveredItem

SEARCH_TIMEOUT = aiohttp.ClientTimeout(total=15, connect=10)
DETAIL_TIMEOUT = aiohttp.ClientTimeout(total=10, connect=10)


class WallhavenClient:
    def __init__(self, config: WallhavenConfig | None = None, retries: int = 3) -> None:
        self.config = config or WallhavenConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self.retries = retries

    async def search(self, session: aiohttp.ClientSession, range_param: str) -> list[str]:
        params = {
            "apikey": self.config.api_token,
            "categories": self.config.categories,
            "purity": self.config.purity,
            "sorting": self.config.sorting,
            "topRange": range_param,
            "order": self.config.order,
            "ai_art_filter": self.config.ai_filter,
        }
        data = await self._fetch(
            session,
            f"{self.base_url}/search",
            params,
            timeout=SEARCH_TIMEOUT,
            operation=f"search:{range_param}",
        )
        entries = data.get("data")
        if not isinstance(entries, list):
            raise NetworkError(f"Malformed search payload for range {range_param}")

        ids: list[str] = []
        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning("Skipping malformed search entry: range={}, entry={!r}", range_param, entry)
                continue
            item_id = str(entry.get("id") or "").strip()
            if item_id:
                ids.append(item_id)
        logger.debug("Search returned {} candidates: range={}", len(ids), range_param)
        return ids

    async def fetch_item(self, session: aiohttp.ClientSession, item_id: str) -> DiscoveredItem:
        data = await self._fetch(
            session,
            f"{self.base_url}/w/{item_id}",
            {"apikey": self.config.api_token},
            timeout=DETAIL_TIMEOUT,
            operation=f"detail:{item_id}",
        )
        payload = data.get("data")
        if not isinstance(payload, dict):
            raise NetworkError(f"Malformed detail payload for {item_id}")
        return self.parse_item(payload)

    @staticmethod
    def parse_item(payload: dict[str, Any]) -> DiscoveredItem:
        try:
            item_id = str(payload["id"])
            path = str(payload["path"])
        except KeyError as exc:
            raise NetworkError(f"Detail payload missing field {exc}") from exc

        try:
            uploader = payload.get("uploader") or {}
            thumbs = payload.get("thumbs") or {}
            tags = tuple(
                str(tag.get("name")).strip()
                for tag in payload.get("tags") or []
                if str(tag.get("name") or "").strip()
            )
            return DiscoveredItem(
                id=item_id,
                url=str(payload.get("url") or ""),
                uploader=str(uploader.get("username") or ""),
                resolution=str(payload.get("resolution") or ""),
                file_size=int(payload.get("file_size") or 0),
                file_type=str(payload.get("file_type") or ""),
                path=path,
                thumb_url=str(thumbs.get("original") or thumbs.get("large") or path),
                tags=tags,
            )
        except (AttributeError, TypeError, ValueError) as exc:
            raise NetworkError(f"Malformed detail payload for {item_id}: {exc}") from exc

    async def _fetch(
        self,
        session: aiohttp.ClientSession,
        url: str,
        params: dict[str, Any],
        *,
        timeout: aiohttp.ClientTimeout,
        operation: str,
    ) -> dict[str, Any]:
        headers = {"User-Agent": self.config.user_agent}
        for attempt in range(1, self.retries + 1):
            try:
                async with session.get(url, params=params, headers=headers, timeout=timeout) as resp:
                    if resp.status >= 500 or resp.status == 429:
                        logger.warning(
                            "Server error {} on {}. Attempt {}/{}",
                            resp.status,
                            operation,
                            attempt,
                            self.retries,
                        )
                        raise ClientResponseError(
                            resp.request_info,
                            resp.history,
                            status=resp.status,
                            message="Server Error",
                        )

                    if resp.status == 404:
                        raise NotFoundError(f"{operation}: not found")

                    if resp.status != 200:
                        body = await resp.text()
                        logger.error("HTTP {} on {}: {}", resp.status, operation, body[:500])
                        raise NetworkError(f"{operation}: HTTP {resp.status}")

                    try:
                        data = await resp.json()
                    except (ContentTypeError, json.JSONDecodeError, ValueError) as exc:
                        raise NetworkError(f"{operation}: undecodable response ({exc})") from exc
                    if not isinstance(data, dict):
                        raise NetworkError(f"{operation}: expected a JSON object")
                    return data

            except (
                ClientResponseError,
                ClientConnectorError,
                ServerDisconnectedError,
                asyncio.TimeoutError,
                ClientPayloadError,
            ) as exc:
                if attempt == self.retries:
                    logger.error("{} failed after {} attempts. Error: {}", operation, self.retries, exc)
                    raise NetworkError(f"{operation}: {type(exc).__name__}: {exc}") from exc
                wait_time = 2**attempt
                logger.warning("Connection unstable on {} ({}). Retrying in {}s...", operation, exc, wait_time)
                await asyncio.sleep(wait_time)
            except aiohttp.ClientError as exc:
                raise NetworkError(f"{operation}: {type(exc).__name__}: {exc}") from exc

        raise NetworkError(f"{operation}: no attempts made")
