"""Fallback conversational capability: single model call or the tool loop."""

from __future__ import annotations

from typing import Protocol

from buddy.capabilities import registry as slots
from buddy.capabilities.registry import CapabilityRegistry
from buddy.config import FeatureFlags
from buddy.core.llm import ChatTurn, LLMProvider
from buddy.core.system_prompt import build_system_prompt
from buddy.core.tool_catalog import build_tool_catalog
from buddy.core.tool_executor import ToolExecutor
from buddy.core.waterfall import Accepted, CapabilityRequest
from buddy.memory.history import ConversationHistory
from buddy.models import CapabilityResult
from buddy.utils.logging import get_logger

log = get_logger(__name__)


class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str) -> bytes: ...


class ConversationHandler:
    """Terminal text capability. Always accepts; errors propagate to the router."""

    def __init__(
        self,
        llm: LLMProvider,
        features: FeatureFlags,
        capabilities: CapabilityRegistry,
        tool_executor: ToolExecutor | None = None,
        history: ConversationHistory | None = None,
        synthesizer: SpeechSynthesizer | None = None,
        bot_name: str = "Buddy",
        max_tokens: int = 1024,
    ) -> None:
        self._llm = llm
        self._features = features
        self._capabilities = capabilities
        self._tool_executor = tool_executor
        self._history = history
        self._synthesizer = synthesizer
        self._bot_name = bot_name
        self._max_tokens = max_tokens

    @property
    def uses_tools(self) -> bool:
        return self._features.tool_use and self._tool_executor is not None

    async def __call__(self, request: CapabilityRequest) -> Accepted:
        ctx = request.context
        turns = await self._build_turns(request)

        await request.transport.set_presence(ctx.chat_jid, "composing")
        try:
            if self.uses_tools:
                assert self._tool_executor is not None
                catalog = build_tool_catalog(
                    self._features,
                    ctx,
                    search_available=self._capabilities.get(slots.WEB_SEARCH) is not None,
                )
                system = build_system_prompt(self._bot_name, ctx, catalog)
                reply = await self._tool_executor.run(system, turns, catalog, request)
            else:
                system = build_system_prompt(self._bot_name, ctx)
                reply = await self._llm.chat(system, turns, max_tokens=self._max_tokens)
        except Exception:
            await request.transport.set_presence(ctx.chat_jid, "paused")
            raise
        await request.transport.set_presence(ctx.chat_jid, "paused")

        if self._history is not None:
            await self._history.record_exchange(ctx.chat_jid, ctx.sender_jid, request.text, reply)

        log.info("text_message_handled", chat=ctx.chat_jid, sender=ctx.sender_name,
                 tools=self.uses_tools, reply_chars=len(reply))

        audio = await self._synthesize(reply) if ctx.respond_with_voice else None
        return Accepted(CapabilityResult(response_text=reply, success=True, audio=audio))

    async def _build_turns(self, request: CapabilityRequest) -> list[ChatTurn]:
        turns: list[ChatTurn] = []
        if self._history is not None:
            turns.extend(await self._history.get_turns(request.context.chat_jid))
        if request.context.quoted_text:
            turns.append(ChatTurn(role="assistant", content=request.context.quoted_text))
        turns.append(ChatTurn(role="user", content=request.text))
        return turns

    async def _synthesize(self, text: str) -> bytes | None:
        if self._synthesizer is None or not text:
            return None
        try:
            audio = await self._synthesizer.synthesize(text)
        except Exception:
            log.exception("voice_synthesis_failed")
            return None
        log.info("voice_response_generated", size=len(audio))
        return audio
