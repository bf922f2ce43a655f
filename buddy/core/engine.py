"""Message pipeline: admission → classify → group gate → waterfall → dispatch."""

from __future__ import annotations

import asyncio
import time

from buddy.config import FeatureFlags
from buddy.core.admission import AdmissionGate
from buddy.core.classifier import detect_content_kind, extract_text
from buddy.core.dispatcher import ResponseDispatcher
from buddy.core.router import Router
from buddy.core.waterfall import CapabilityRequest
from buddy.group.etiquette import Etiquette
from buddy.group.mentions import MentionInfo, parse_mentions
from buddy.group.moderation import Moderator
from buddy.group.settings import GroupSettingsStore
from buddy.group.welcome import welcome_new_members
from buddy.models import (
    CapabilityResult,
    ContentKind,
    InboundMessage,
    MessageContext,
    ParticipantsUpdate,
)
from buddy.transports.base import Transport
from buddy.utils.logging import get_logger

log = get_logger(__name__)

# Media kinds that in groups are only handled when addressed to the bot
_ADDRESSED_ONLY = frozenset({ContentKind.IMAGE, ContentKind.AUDIO, ContentKind.DOCUMENT})


class Engine:
    """Runs every inbound message through the pipeline. Produces at most one reply."""

    def __init__(
        self,
        transport: Transport,
        bot_jid: str,
        features: FeatureFlags,
        admission: AdmissionGate,
        etiquette: Etiquette,
        router: Router,
        dispatcher: ResponseDispatcher,
        group_settings: GroupSettingsStore,
        moderator: Moderator | None = None,
        dry_run: bool = False,
    ) -> None:
        self._transport = transport
        self._bot_jid = bot_jid
        self._features = features
        self._admission = admission
        self._etiquette = etiquette
        self._router = router
        self._dispatcher = dispatcher
        self._group_settings = group_settings
        self._moderator = moderator
        self._dry_run = dry_run

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def handle_batch(self, messages: list[InboundMessage]) -> None:
        """Process one upsert batch, each message as its own task."""
        await asyncio.gather(*(self.process_message(m) for m in messages))

    async def handle_participants_update(self, update: ParticipantsUpdate) -> None:
        if not self._features.group_admin_controls:
            return
        try:
            await welcome_new_members(self._transport, self._group_settings, update)
        except Exception:
            log.exception("participants_update_failed", chat=update.chat_jid)

    async def process_message(self, message: InboundMessage) -> None:
        try:
            await self._process(message)
        except Exception:
            log.exception(
                "message_processing_failed",
                message_id=message.message_id,
                chat=message.chat_jid,
            )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _process(self, message: InboundMessage) -> None:
        decision = self._admission.check(message)
        if not decision.admitted:
            log.debug("message_dropped", reason=decision.reason, chat=message.chat_jid)
            return

        kind = detect_content_kind(message)
        text = extract_text(message) or ""
        mentions = parse_mentions(message, self._bot_jid)
        context = await self.build_context(message, mentions)

        log.info("message_received", chat=message.chat_jid, sender=context.sender_name,
                 kind=kind.value, group=context.is_group)

        if context.is_group and not await self._group_gate(message, kind, text, mentions):
            return

        self._admission.record(message)

        if self._dry_run:
            result = CapabilityResult(f"[DRY RUN] Would process: {text[:100]}")
        else:
            request = CapabilityRequest(
                transport=self._transport,
                message=message,
                text=text,
                context=context,
                kind=kind,
            )
            result = await self._router.route(request)

        await self._dispatcher.dispatch(message, result)

    async def build_context(self, message: InboundMessage, mentions: MentionInfo) -> MessageContext:
        sender = message.sender_jid
        group_name = None
        if message.is_group:
            try:
                group_name = (await self._transport.group_metadata(message.chat_jid)).subject
            except Exception as e:
                log.debug("group_metadata_unavailable", chat=message.chat_jid, error=str(e))
            group_name = group_name or message.chat_jid.split("@", 1)[0]

        return MessageContext(
            is_group=message.is_group,
            group_name=group_name,
            sender_name=message.push_name or sender.split("@", 1)[0],
            sender_jid=sender,
            chat_jid=message.chat_jid,
            quoted_text=mentions.quoted_text,
            mentioned_ids=mentions.mentioned_ids,
            timestamp=message.timestamp or time.time(),
        )

    async def _group_gate(
        self,
        message: InboundMessage,
        kind: ContentKind,
        text: str,
        mentions: MentionInfo,
    ) -> bool:
        """Moderation, then etiquette. True when the message should be routed."""
        chat = message.chat_jid

        if self._moderator is not None and self._features.group_admin_controls:
            verdict = await self._moderator.check(message, text)
            if verdict is not None:
                if verdict.warning:
                    await self._transport.send_text(
                        chat, verdict.warning, mentions=[message.sender_jid]
                    )
                if verdict.should_delete:
                    log.info("message_blocked_by_moderation", chat=chat,
                             sender=message.sender_jid)
                    return False

        if kind in _ADDRESSED_ONLY:
            return mentions.addresses_bot

        rate = await self._group_settings.response_rate(chat)
        decision = self._etiquette.decide(text, mentions, rate)
        log.debug("etiquette_decision", chat=chat, respond=decision.should_respond,
                  reason=decision.reason, priority=decision.priority.value)

        if decision.show_typing:
            await self._transport.set_presence(chat, "composing")
        return decision.should_respond
