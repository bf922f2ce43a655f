"""Tool-use loop: model calls with iterative tool execution."""

from __future__ import annotations

from buddy.core.llm import (
    ChatTurn,
    ContentBlock,
    LLMProvider,
    StopReason,
    ToolResultBlock,
)
from buddy.core.tool_catalog import ToolDefinition
from buddy.core.tool_registry import ToolCallRequest, ToolRegistry
from buddy.core.waterfall import CapabilityRequest
from buddy.utils.logging import get_logger

log = get_logger(__name__)


class ToolExecutor:
    """Runs the model + tool-use loop for one message."""

    def __init__(self, llm: LLMProvider, tools: ToolRegistry, max_iterations: int = 5) -> None:
        self._llm = llm
        self._tools = tools
        self._max_iterations = max_iterations

    async def run(
        self,
        system: str,
        turns: list[ChatTurn],
        catalog: list[ToolDefinition],
        ctx: CapabilityRequest,
    ) -> str:
        """Drive the loop to completion. Returns the final text, possibly empty."""
        current = list(turns)
        schemas = [tool.to_anthropic_schema() for tool in catalog]
        for iteration in range(self._max_iterations):
            response = await self._llm.chat_with_tools(system, current, schemas)

            if response.stop_reason is not StopReason.TOOL_USE or not response.tool_uses:
                log.debug("tool_loop_done", iterations=iteration + 1,
                          stop_reason=response.stop_reason.value)
                return response.text

            current.append(ChatTurn(role="assistant", content=list(response.content)))

            results: list[ContentBlock] = []
            for call in response.tool_uses:
                outcome = await self._tools.execute(ToolCallRequest(call.name, call.input), ctx)
                results.append(ToolResultBlock(
                    tool_use_id=call.id,
                    content=outcome.content,
                    is_error=outcome.is_error,
                ))
            current.append(ChatTurn(role="user", content=results))

        log.warning("tool_loop_cap_reached", iterations=self._max_iterations)
        return ""
