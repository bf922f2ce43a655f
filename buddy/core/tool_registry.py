"""Name-keyed dispatch from model tool calls to capability handlers."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from buddy.capabilities import registry as slots
from buddy.capabilities.registry import CapabilityRegistry
from buddy.core.waterfall import Accepted, CapabilityRequest, Declined
from buddy.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ToolCallRequest:
    tool_name: str
    input: dict[str, Any]


@dataclass(frozen=True)
class ToolCallResult:
    content: str
    is_error: bool = False


@dataclass(frozen=True)
class ToolBinding:
    """How one tool maps onto a capability slot.

    ``declined`` is the result text when the capability declines. With
    ``sent_message`` set, a success reports that text instead of the reply
    and a failure reports ``failed_prefix`` plus the error.
    """

    slot: str
    input_key: str = "text"
    declined: str = ""
    declined_is_error: bool = True
    fallback: str = ""
    gated: bool = True
    as_argument: bool = False
    sent_message: str | None = None
    failed_prefix: str = ""


TOOL_BINDINGS: dict[str, ToolBinding] = {
    "generate_image": ToolBinding(
        slots.GENERATE_IMAGE, input_key="prompt", gated=False,
        declined="Could not generate the image.",
        sent_message="Image generated and sent successfully.",
        failed_prefix="Failed to generate image: ",
    ),
    "generate_document": ToolBinding(
        slots.GENERATE_DOCUMENT, input_key="request", gated=False,
        declined="Could not generate the document.",
        sent_message="Document generated and sent successfully.",
        failed_prefix="Failed to generate document: ",
    ),
    "summarize_url": ToolBinding(
        slots.SUMMARIZE_URL, declined="No URL found in the message.", fallback="URL summarized.",
    ),
    "web_search": ToolBinding(
        slots.WEB_SEARCH, input_key="query", gated=False, as_argument=True,
        declined="No search results found.", fallback="No search results found.",
    ),
    "set_reminder": ToolBinding(
        slots.REMINDER_CREATE, declined="Could not parse reminder request.",
        fallback="Reminder set.",
    ),
    "list_reminders": ToolBinding(
        slots.REMINDER_LIST, declined="No active reminders found.", declined_is_error=False,
        fallback="No reminders.",
    ),
    "cancel_reminder": ToolBinding(
        slots.REMINDER_CANCEL, declined="No matching reminder to cancel.",
        fallback="Reminder cancelled.",
    ),
    "create_poll": ToolBinding(
        slots.POLL_CREATE, declined="Could not create poll.", fallback="Poll created.",
    ),
    "search_memory": ToolBinding(
        slots.SEMANTIC_SEARCH, declined="No matching memories found.", declined_is_error=False,
        fallback="No results.",
    ),
    "summarize_chat": ToolBinding(
        slots.SUMMARY, declined="Could not generate summary.", fallback="Summary generated.",
    ),
    "execute_code": ToolBinding(
        slots.CODE_EXECUTION, declined="Not recognized as a code execution request.",
        fallback="Code executed.",
    ),
    "calendar_command": ToolBinding(
        slots.CALENDAR, declined="Not recognized as a calendar command.",
        fallback="Calendar updated.",
    ),
    "admin_command": ToolBinding(
        slots.GROUP_ADMIN, declined="Not recognized as an admin command.",
        fallback="Admin command executed.",
    ),
    "knowledge_base": ToolBinding(
        slots.KNOWLEDGE_BASE, declined="Not recognized as a knowledge base command.",
        fallback="Knowledge base updated.",
    ),
    "create_sticker": ToolBinding(
        slots.STICKER_COMMAND,
        declined='Could not create sticker. Reply to an image with "sticker" to convert it.',
        fallback="Sticker created and sent.",
    ),
}


class ToolRegistry:
    """Executes tool calls by handing them to the matching capability."""

    def __init__(
        self,
        capabilities: CapabilityRegistry,
        bindings: dict[str, ToolBinding] | None = None,
    ) -> None:
        self._capabilities = capabilities
        self._bindings = bindings if bindings is not None else TOOL_BINDINGS

    @property
    def names(self) -> list[str]:
        return list(self._bindings)

    async def execute(self, call: ToolCallRequest, ctx: CapabilityRequest) -> ToolCallResult:
        """Run one tool call. Never raises: failures come back as error results."""
        binding = self._bindings.get(call.tool_name)
        handler = None
        if binding is not None:
            if binding.gated:
                handler = self._capabilities.get(binding.slot)
            else:
                handler = self._capabilities.get_raw(binding.slot)
        if binding is None or handler is None:
            log.warning("unknown_tool_requested", tool=call.tool_name)
            return ToolCallResult(f'Tool "{call.tool_name}" is not available.', is_error=True)

        value = str(call.input.get(binding.input_key) or ctx.text)
        if binding.as_argument:
            request = replace(ctx, argument=value)
        else:
            request = replace(ctx, text=value)

        try:
            log.info("tool_executing", tool=call.tool_name, args=call.input)
            outcome = await handler(request)
        except Exception as e:
            log.exception("tool_execution_failed", tool=call.tool_name)
            return ToolCallResult(f"Tool execution failed: {e}", is_error=True)

        result = self._to_tool_result(binding, outcome)
        log.info("tool_executed", tool=call.tool_name, is_error=result.is_error)
        return result

    @staticmethod
    def _to_tool_result(binding: ToolBinding, outcome: Accepted | Declined) -> ToolCallResult:
        if isinstance(outcome, Declined):
            return ToolCallResult(binding.declined, is_error=binding.declined_is_error)

        result = outcome.result
        if binding.sent_message is not None:
            if result.success:
                return ToolCallResult(binding.sent_message)
            return ToolCallResult(f"{binding.failed_prefix}{result.error}", is_error=True)
        return ToolCallResult(result.response_text or binding.fallback, is_error=not result.success)
