"""Routes a classified message through its capability waterfall."""

from __future__ import annotations

from buddy.capabilities.registry import CapabilityRegistry
from buddy.core.waterfall import CapabilityRequest, run_waterfall
from buddy.models import CapabilityResult, ContentKind
from buddy.utils.logging import get_logger

log = get_logger(__name__)

APOLOGY = "Sorry, I'm having trouble processing that right now. Please try again."


class Router:
    def __init__(self, registry: CapabilityRegistry) -> None:
        self._registry = registry

    async def route(self, request: CapabilityRequest) -> CapabilityResult:
        kind = request.kind
        log.info("routing_message", kind=kind.value, chat=request.context.chat_jid,
                 sender=request.context.sender_name)

        if kind is ContentKind.STICKER:
            return CapabilityResult("", success=True, error="Stickers are not processed",
                                    content_kind=kind)
        if kind is ContentKind.UNKNOWN:
            log.warning("unknown_content_type", chat=request.context.chat_jid)
            return CapabilityResult("", success=False, error="Unknown content type",
                                    content_kind=kind)
        if kind is ContentKind.TEXT and not request.text:
            return CapabilityResult("", success=False, error="No text content found",
                                    content_kind=kind)

        try:
            accepted = await run_waterfall(self._registry.waterfall(kind), request)
        except Exception as e:
            log.exception("capability_failed", kind=kind.value, chat=request.context.chat_jid)
            return CapabilityResult(APOLOGY, success=False, error=str(e), content_kind=kind)

        if accepted is None:
            log.info("no_capability_accepted", kind=kind.value)
            return CapabilityResult("", success=False, error=f"No handler for {kind.value}",
                                    content_kind=kind)

        slot, result = accepted
        result.content_kind = kind
        log.info("capability_handled", slot=slot, success=result.success)
        return result
