import asyncio
import os
from pathlib import Path
from typing import Any
from urllib.parse import quote
from uuid import uuid4

import aiohttp

from wallfeed.config.logger_config import logger
from wallfeed.config.settings import MatrixConfig
from wallfeed.domain.errors import SinkError
from wallfeed.domain.models import DiscoveredItem
from wallfeed.domain.rules import build_caption

MATRIX_TIMEOUT = aiohttp.ClientTimeout(total=120, connect=10)


class MatrixSink:
    name = "matrix"

    def __init__(self, config: MatrixConfig) -> None:
        self.config = config
        self.server_url = config.server_url.rstrip("/")
        self.token_file = Path(config.token_file) if config.token_file else None
        self._access_token: str | None = None
        self._login_lock = asyncio.Lock()

    async def publish(
        self,
        session: aiohttp.ClientSession,
        item: DiscoveredItem,
        description: str,
        asset_path: Path,
    ) -> None:
        try:
            token = await self._ensure_token(session)
            caption = build_caption(item, description)
            logger.debug("Sending image to Matrix: item_id={}\n{}", item.id, caption)

            image_bytes = await asyncio.to_thread(Path(asset_path).read_bytes)
            main_uri = await self._upload(session, token, image_bytes, Path(item.path).name, item.file_type)

            async with session.get(item.thumb_url, timeout=MATRIX_TIMEOUT) as resp:
                if resp.status != 200:
                    raise SinkError(f"Matrix thumbnail download failed: HTTP {resp.status}")
                thumb_bytes = await resp.read()
            thumb_uri = await self._upload(session, token, thumb_bytes, Path(item.thumb_url).name, item.file_type)

            content = {
                "msgtype": "m.image",
                "filename": Path(item.path).name,
                "body": caption,
                "url": main_uri,
                "info": {
                    "mimetype": item.file_type,
                    "size": item.file_size,
                    "thumbnail_url": thumb_uri,
                    "thumbnail_info": {"mimetype": item.file_type},
                },
            }
            await self._send_message(session, token, content)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise SinkError(f"Matrix transport error: {type(exc).__name__}: {exc}") from exc
        logger.info("Matrix: sent. item_id={}", item.id)

    async def _ensure_token(self, session: aiohttp.ClientSession) -> str:
        async with self._login_lock:
            if self._access_token:
                return self._access_token
            token = self._load_token()
            if not token:
                token = await self._login(session)
                self._save_token(token)
            self._access_token = token
            return token

    def _load_token(self) -> str:
        if self.token_file is None or not self.token_file.exists():
            return ""
        return self.token_file.read_text(encoding="utf-8").strip()

    def _save_token(self, token: str) -> None:
        if self.token_file is None:
            return
        try:
            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            self.token_file.write_text(token, encoding="utf-8")
            os.chmod(self.token_file, 0o600)
        except OSError as exc:
            logger.warning("Could not persist Matrix token to {}: {}", self.token_file, exc)

    async def _login(self, session: aiohttp.ClientSession) -> str:
        payload = {
            "type": "m.login.password",
            "identifier": {"type": "m.id.user", "user": self.config.user},
            "password": self.config.password,
        }
        data = await self._request(session, "POST", "/_matrix/client/v3/login", json=payload)
        token = str(data.get("access_token") or "")
        if not token:
            raise SinkError("Matrix login returned no access token")
        logger.info("Matrix: logged in as {}", self.config.user)
        return token

    async def _upload(
        self, session: aiohttp.ClientSession, token: str, body: bytes, filename: str, mimetype: str
    ) -> str:
        data = await self._request(
            session,
            "POST",
            "/_matrix/media/v3/upload",
            token=token,
            params={"filename": filename},
            data=body,
            headers={"Content-Type": mimetype or "application/octet-stream"},
        )
        content_uri = str(data.get("content_uri") or "")
        if not content_uri:
            raise SinkError("Matrix upload returned no content_uri")
        return content_uri

    async def _send_message(self, session: aiohttp.ClientSession, token: str, content: dict[str, Any]) -> None:
        room = quote(self.config.room_id, safe="")
        await self._request(
            session,
            "PUT",
            f"/_matrix/client/v3/rooms/{room}/send/m.room.message/{uuid4().hex}",
            token=token,
            json=content,
        )

    async def _request(
        self,
        session: aiohttp.ClientSession,
        method: str,
        path: str,
        *,
        token: str | None = None,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        req_headers = dict(headers or {})
        if token:
            req_headers["Authorization"] = f"Bearer {token}"
        async with session.request(
            method, f"{self.server_url}{path}", headers=req_headers, timeout=MATRIX_TIMEOUT, **kwargs
        ) as resp:
            if resp.status >= 300:
                body = await resp.text()
                if resp.status == 401 and token:
                    # Stale token; force a fresh login on the next publish.
                    self._access_token = None
                    if self.token_file is not None:
                        self.token_file.unlink(missing_ok=True)
                raise SinkError(f"Matrix HTTP {resp.status} on {path}: {body[:500]}")
            return await resp.json(content_type=None)
