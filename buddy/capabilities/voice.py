"""Voice notes: transcribe, answer as text conversation, reply by voice."""

from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from buddy.core.waterfall import (
    Accepted,
    CapabilityHandler,
    CapabilityOutcome,
    CapabilityRequest,
    Declined,
)
from buddy.models import CapabilityResult, ContentKind, InboundMessage
from buddy.utils.logging import get_logger

log = get_logger(__name__)


class Transcriber(Protocol):
    async def transcribe(self, message: InboundMessage) -> str: ...


class VoiceNoteCapability:
    """Audio slot. Hands the transcript to the conversation handler with voice replies on."""

    def __init__(self, transcriber: Transcriber, conversation: CapabilityHandler) -> None:
        self._transcriber = transcriber
        self._conversation = conversation

    async def __call__(self, request: CapabilityRequest) -> CapabilityOutcome:
        if request.kind is not ContentKind.AUDIO:
            return Declined("not audio")

        ctx = request.context
        await request.transport.set_presence(ctx.chat_jid, "recording")
        transcript = (await self._transcriber.transcribe(request.message)).strip()
        if not transcript:
            return Accepted(CapabilityResult(
                "I couldn't make out that voice message.",
                success=False,
                error="empty transcription",
            ))
        log.info("voice_transcribed", chat=ctx.chat_jid, text=transcript)

        return await self._conversation(replace(
            request,
            text=transcript,
            kind=ContentKind.TEXT,
            context=replace(ctx, respond_with_voice=True),
        ))
