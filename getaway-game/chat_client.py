"""Streaming chat completion client for NPC dialogue."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable

import httpx
import openai

import game_config as config

log = logging.getLogger(__name__)

_DATA_PREFIX = "data: "
_DONE = "[DONE]"


class ChatCompletionError(RuntimeError):
    """The completion backend failed: transport error or non-success status."""


def parse_stream_line(line: str) -> str | None:
    """Return the text fragment carried by one server-sent event line.

    Returns ``None`` for the end marker, ``""`` for lines carrying nothing
    usable (blank, non-data, malformed JSON, empty delta).
    """
    line = line.strip()
    if not line.startswith(_DATA_PREFIX):
        return ""
    data = line[len(_DATA_PREFIX):]
    if data == _DONE:
        return None
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        return ""
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    return content if isinstance(content, str) else ""


async def accumulate_stream(lines: AsyncIterable[str]) -> str:
    parts: list[str] = []
    async for line in lines:
        fragment = parse_stream_line(line)
        if fragment is None:
            break
        if fragment:
            parts.append(fragment)
    return "".join(parts)


class ChatClient:
    """OpenAI-compatible streaming chat completion call."""

    def __init__(
        self,
        base_url: str = config.CHAT_COMPLETION_BASE_URL,
        api_key: str = config.CHAT_COMPLETION_API_KEY,
        model: str = config.CHAT_COMPLETION_MODEL,
        temperature: float = config.CHAT_TEMPERATURE,
        max_tokens: int = config.CHAT_MAX_TOKENS,
        timeout: float = config.CHAT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = openai.AsyncOpenAI(
            base_url=base_url,
            api_key=api_key or "unset",
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
        )
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def complete(self, messages: list[dict[str, str]]) -> str:
        try:
            async with self._client.chat.completions.with_streaming_response.create(
                model=self.model,
                messages=messages,  # type: ignore[arg-type]
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                stream=True,
            ) as response:
                return await accumulate_stream(response.iter_lines())
        except (openai.APIError, httpx.HTTPError) as exc:
            raise ChatCompletionError(str(exc)) from exc

    async def close(self) -> None:
        await self._client.close()
