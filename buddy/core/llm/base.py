"""LLM provider abstract base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from buddy.core.llm.types import ChatTurn, ToolChatResponse


class LLMProvider(ABC):
    @abstractmethod
    async def chat(
        self,
        system: str,
        messages: list[ChatTurn],
        max_tokens: int | None = None,
    ) -> str:
        """Single completion without tools. Returns the reply text."""

    @abstractmethod
    async def chat_with_tools(
        self,
        system: str,
        turns: list[ChatTurn],
        tools: list[dict[str, Any]],
        max_tokens: int | None = None,
    ) -> ToolChatResponse: ...

    @abstractmethod
    def count_tokens(self, text: str) -> int: ...

    async def close(self) -> None:
        """Clean up resources. Override if needed."""
