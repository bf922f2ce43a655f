"""Mention and reply metadata parsing."""

from __future__ import annotations

from dataclasses import dataclass

from buddy.models import InboundMessage
from buddy.utils.jid import same_user


@dataclass(frozen=True)
class MentionInfo:
    mentioned_ids: tuple[str, ...] = ()
    is_bot_mentioned: bool = False
    is_reply_to_bot: bool = False
    quoted_participant: str | None = None
    quoted_text: str | None = None

    @property
    def addresses_bot(self) -> bool:
        return self.is_bot_mentioned or self.is_reply_to_bot


def parse_mentions(message: InboundMessage, bot_jid: str) -> MentionInfo:
    info = message.context_info
    if not info:
        return MentionInfo()

    mentioned = tuple(info.get("mentionedJid") or ())
    quoted_participant = info.get("participant") or None

    quoted = info.get("quotedMessage") or {}
    quoted_text = quoted.get("conversation") or (
        (quoted.get("extendedTextMessage") or {}).get("text")
    )

    return MentionInfo(
        mentioned_ids=mentioned,
        is_bot_mentioned=any(same_user(jid, bot_jid) for jid in mentioned),
        is_reply_to_bot=same_user(quoted_participant or "", bot_jid),
        quoted_participant=quoted_participant,
        quoted_text=quoted_text or None,
    )
