import asyncio
import base64
import json
import mimetypes
from pathlib import Path

import aiohttp

from wallfeed.config.logger_config import logger
from wallfeed.config.settings import OpenAIConfig
from wallfeed.domain.errors import DescriptionError

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
DESCRIBE_TIMEOUT = aiohttp.ClientTimeout(total=30, connect=10)


class OpenAIDescriber:
    def __init__(self, config: OpenAIConfig, endpoint: str = OPENAI_CHAT_URL) -> None:
        self.config = config
        self.endpoint = endpoint

    async def describe(self, session: aiohttp.ClientSession, image_path: Path) -> str:
        try:
            image_bytes = await asyncio.to_thread(Path(image_path).read_bytes)
        except OSError as exc:
            raise DescriptionError(f"Failed to read image file {image_path}: {exc}") from exc

        mime_type = mimetypes.guess_type(str(image_path))[0] or "image/jpeg"
        image_b64 = base64.b64encode(image_bytes).decode("ascii")
        payload = {
            "model": self.config.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": self.config.prompt},
                        {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{image_b64}"}},
                    ],
                }
            ],
            "max_tokens": self.config.max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.config.api_key}"}

        try:
            async with session.post(self.endpoint, json=payload, headers=headers, timeout=DESCRIBE_TIMEOUT) as resp:
                body = await resp.text()
                if resp.status != 200:
                    logger.error("OpenAI API error status {}: {}", resp.status, body[:500])
                    raise DescriptionError(f"OpenAI API error: HTTP {resp.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise DescriptionError(f"Failed to send request to OpenAI: {exc}") from exc

        try:
            data = json.loads(body)
            choices = data.get("choices") or []
        except (json.JSONDecodeError, AttributeError) as exc:
            raise DescriptionError(f"Failed to decode OpenAI response: {exc}") from exc
        if not choices:
            raise DescriptionError("No description returned from OpenAI")

        try:
            content = ((choices[0] or {}).get("message") or {}).get("content") or ""
        except (AttributeError, TypeError, KeyError) as exc:
            raise DescriptionError(f"Unexpected OpenAI response shape: {exc}") from exc
        return str(content).strip()
