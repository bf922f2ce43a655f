"""Welcome messages for members joining a group."""

from __future__ import annotations

import re

from buddy.group.settings import GroupSettingsStore
from buddy.models import ParticipantsUpdate
from buddy.transports.base import Transport
from buddy.utils.jid import mention_tag
from buddy.utils.logging import get_logger

log = get_logger(__name__)

_USER_PLACEHOLDER = re.compile(r"@user\b")


def personalize(template: str, member_jid: str) -> str:
    return _USER_PLACEHOLDER.sub(mention_tag(member_jid), template)


async def welcome_new_members(
    transport: Transport,
    settings: GroupSettingsStore,
    update: ParticipantsUpdate,
) -> int:
    """Send the stored welcome text once per added member. Returns how many were sent."""
    if update.action != "add":
        return 0

    group = await settings.get(update.chat_jid)
    if not group.welcome_enabled or not group.welcome_message:
        return 0

    sent = 0
    for member in update.participants:
        try:
            await transport.send_text(
                update.chat_jid,
                personalize(group.welcome_message, member),
                mentions=[member],
            )
        except Exception:
            log.exception("welcome_send_failed", chat=update.chat_jid, member=member)
            continue
        sent += 1
        log.info("welcome_sent", chat=update.chat_jid, member=member)
    return sent
