"""Anthropic LLM provider."""

from __future__ import annotations

import asyncio
import random
from typing import Any

import tiktoken
from anthropic import APIConnectionError, APIStatusError, AsyncAnthropic, RateLimitError

from buddy.config import LLMConfig
from buddy.core.llm.base import LLMProvider
from buddy.core.llm.types import (
    ChatTurn,
    ContentBlock,
    StopReason,
    TextBlock,
    ToolChatResponse,
    ToolUseBlock,
    turn_to_api,
)
from buddy.utils.logging import get_logger

log = get_logger(__name__)


class AnthropicProvider(LLMProvider):
    def __init__(self, config: LLMConfig, client: AsyncAnthropic | None = None) -> None:
        self._config = config
        self._client = client or AsyncAnthropic(api_key=config.api_key or None)
        self._model = config.model
        self._tokenizer: tiktoken.Encoding | None = None

    async def chat(
        self,
        system: str,
        messages: list[ChatTurn],
        max_tokens: int | None = None,
    ) -> str:
        kwargs = self._build_kwargs(system, messages, None, max_tokens or self._config.max_tokens)
        response = await self._call_with_retry(kwargs)
        return self._parse_response(response).text

    async def chat_with_tools(
        self,
        system: str,
        turns: list[ChatTurn],
        tools: list[dict[str, Any]],
        max_tokens: int | None = None,
    ) -> ToolChatResponse:
        kwargs = self._build_kwargs(
            system, turns, tools, max_tokens or self._config.tool_max_tokens
        )
        response = await self._call_with_retry(kwargs)
        return self._parse_response(response)

    def count_tokens(self, text: str) -> int:
        # cl100k approximates Claude's tokenizer
        if self._tokenizer is None:
            self._tokenizer = tiktoken.get_encoding("cl100k_base")
        return len(self._tokenizer.encode(text))

    async def close(self) -> None:
        await self._client.close()

    def _build_kwargs(
        self,
        system: str,
        turns: list[ChatTurn],
        tools: list[dict[str, Any]] | None,
        max_tokens: int,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": [turn_to_api(t) for t in turns],
            "max_tokens": max_tokens,
            "temperature": self._config.temperature,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = tools
        return kwargs

    async def _call_with_retry(
        self, kwargs: dict[str, Any], max_retries: int = 3
    ) -> Any:
        for attempt in range(max_retries + 1):
            try:
                return await self._client.messages.create(**kwargs)
            except RateLimitError:
                if attempt == max_retries:
                    raise
                wait = (2 ** attempt) + random.uniform(0, 1)
                log.warning("rate_limited", attempt=attempt, wait=wait)
                await asyncio.sleep(wait)
            except APIStatusError as e:
                if attempt == max_retries or e.status_code < 500:
                    raise
                wait = (2 ** attempt) + random.uniform(0, 1)
                log.warning("api_error_retry", status=e.status_code, attempt=attempt)
                await asyncio.sleep(wait)
            except APIConnectionError:
                if attempt == max_retries:
                    raise
                wait = (2 ** attempt) + random.uniform(0, 1)
                log.warning("api_connection_retry", attempt=attempt, wait=wait)
                await asyncio.sleep(wait)

    def _parse_response(self, response: Any) -> ToolChatResponse:
        blocks: list[ContentBlock] = []
        for block in response.content:
            if block.type == "text":
                blocks.append(TextBlock(text=block.text))
            elif block.type == "tool_use":
                blocks.append(ToolUseBlock(id=block.id, name=block.name, input=dict(block.input)))

        try:
            stop_reason = StopReason(response.stop_reason)
        except ValueError:
            # stop_sequence and friends end the turn like end_turn does
            stop_reason = StopReason.END_TURN

        return ToolChatResponse(
            content=blocks,
            stop_reason=stop_reason,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
