"""Turns a capability result into outbound sends."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import httpx

from buddy.config import ChunkerConfig
from buddy.core.chunker import chunk_message
from buddy.models import CapabilityResult, InboundMessage
from buddy.transports.base import Transport
from buddy.utils.logging import get_logger

log = get_logger(__name__)


class ResponseDispatcher:
    def __init__(
        self,
        transport: Transport,
        config: ChunkerConfig | None = None,
        chunking: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._config = config or ChunkerConfig()
        self._chunking = chunking
        self._sleep = sleep

    async def dispatch(self, message: InboundMessage, result: CapabilityResult) -> int:
        """Send a successful, non-empty result. Returns how many messages went out."""
        if not result.success or not result.response_text:
            return 0

        chat = message.chat_jid
        quoted = message if message.is_group else None

        try:
            if result.audio:
                await self._transport.send_audio(chat, result.audio, quoted=quoted)
                log.info("response_sent", chat=chat, kind="voice", group=message.is_group)
                return 1

            if self._chunking:
                chunks = chunk_message(result.response_text, self._config)
            else:
                chunks = [result.response_text]

            sent = 0
            for i, chunk in enumerate(chunks):
                if i:
                    await self._sleep(self._config.delay)
                await self._transport.send_text(chat, chunk, quoted=quoted)
                sent += 1
        except httpx.HTTPError:
            log.exception("response_send_failed", chat=chat)
            return 0

        log.info("response_sent", chat=chat, kind="text", chunks=sent, group=message.is_group)
        return sent
