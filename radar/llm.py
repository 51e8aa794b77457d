"""LLM completion collaborator (OpenAI-compatible chat completions)."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from openai import AsyncOpenAI

from radar.config import Settings, get_settings

logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
    async def complete_json(self, messages: list[dict[str, str]]) -> str:
        """Return the raw text of one JSON-mode completion."""


class OpenAICompletionClient:
    """JSON-mode chat completions against Groq or any OpenAI-compatible API.

    One attempt per call (``max_retries=0``): extraction fails closed rather
    than retrying a slow or broken collaborator.
    """

    def __init__(self, settings: Settings | None = None, client: AsyncOpenAI | None = None) -> None:
        self.settings = settings or get_settings()
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        # AsyncOpenAI refuses to construct without an API key.
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.llm_api_key,
                base_url=self.settings.llm_base_url,
                max_retries=0,
                timeout=self.settings.llm_timeout,
            )
        return self._client

    async def complete_json(self, messages: list[dict[str, str]], **kw: Any) -> str:
        response = await self.client.chat.completions.create(
            model=self.settings.llm_model,
            messages=messages,
            temperature=self.settings.llm_temperature,
            max_tokens=self.settings.llm_max_tokens,
            response_format={"type": "json_object"},
            **kw,
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.warning("LLM returned an empty completion")
            return '{"events": []}'
        return content

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
