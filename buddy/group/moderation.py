"""Group auto-moderation: spam, link and forward policies."""

from __future__ import annotations

import re

from buddy.core.rate_limit import SpamTracker
from buddy.group.settings import GroupSettingsStore
from buddy.models import InboundMessage, ModerationVerdict
from buddy.transports.base import Transport
from buddy.utils.jid import mention_tag
from buddy.utils.logging import get_logger

log = get_logger(__name__)

_LINK_RE = re.compile(r"(https?://|www\.)\S+", re.IGNORECASE)


def contains_link(text: str) -> bool:
    return bool(_LINK_RE.search(text))


async def is_group_admin(transport: Transport, chat_jid: str, jid: str) -> bool:
    """Whether ``jid`` administers the group. Metadata failures count as not admin."""
    try:
        metadata = await transport.group_metadata(chat_jid)
    except Exception:
        log.exception("admin_check_failed", chat=chat_jid, sender=jid)
        return False
    return metadata.is_admin(jid)


class Moderator:
    def __init__(
        self,
        transport: Transport,
        settings: GroupSettingsStore,
        spam: SpamTracker,
        max_warnings: int = 3,
    ) -> None:
        self._transport = transport
        self._settings = settings
        self._spam = spam
        self._max_warnings = max_warnings

    async def is_admin(self, chat_jid: str, sender_jid: str) -> bool:
        return await is_group_admin(self._transport, chat_jid, sender_jid)

    async def check(self, message: InboundMessage, text: str) -> ModerationVerdict | None:
        """Return a verdict for a group message, or None when no policy applies."""
        chat, sender = message.chat_jid, message.sender_jid
        settings = await self._settings.get(chat)
        if not settings.moderation_enabled:
            return None

        if await self.is_admin(chat, sender):
            return None

        tag = mention_tag(sender)

        if settings.spam_detection:
            spam = self._spam.check(chat, sender)
            if spam.is_spam:
                if spam.warnings >= self._max_warnings:
                    return ModerationVerdict(
                        should_delete=True,
                        warning=f"{tag} has been removed for spamming.",
                    )
                return ModerationVerdict(
                    should_delete=settings.auto_delete_spam,
                    warning=f"{tag} please slow down. Warning {spam.warnings}/{self._max_warnings}",
                )

        if settings.link_blocking and contains_link(text):
            return ModerationVerdict(True, f"{tag} links are not allowed in this group.")

        if settings.forward_blocking and message.is_forwarded:
            return ModerationVerdict(True, f"{tag} forwarded messages are not allowed.")

        return None
