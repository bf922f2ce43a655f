"""LLM provider subpackage."""

from buddy.config import LLMConfig
from buddy.core.llm.anthropic import AnthropicProvider
from buddy.core.llm.base import LLMProvider
from buddy.core.llm.types import (
    ChatTurn,
    ContentBlock,
    StopReason,
    TextBlock,
    ToolChatResponse,
    ToolResultBlock,
    ToolUseBlock,
)

__all__ = [
    "ChatTurn",
    "ContentBlock",
    "StopReason",
    "TextBlock",
    "ToolChatResponse",
    "ToolResultBlock",
    "ToolUseBlock",
    "LLMProvider",
    "AnthropicProvider",
    "create_provider",
]


def create_provider(config: LLMConfig) -> LLMProvider:
    """Factory to create the LLM provider from config."""
    if config.provider != "anthropic":
        raise ValueError(f"Unsupported LLM provider: {config.provider}")
    return AnthropicProvider(config)
