"""Shared fixtures: message factories and a fake transport."""

from typing import Any
from unittest.mock import AsyncMock

import pytest

from buddy.core.waterfall import CapabilityRequest
from buddy.models import ContentKind, InboundMessage, MessageContext
from buddy.transports.base import GroupMetadata, GroupParticipant, Transport

BOT_JID = "15550000000@s.whatsapp.net"
USER_JID = "15551111111@s.whatsapp.net"
ADMIN_JID = "15552222222@s.whatsapp.net"
GROUP_JID = "120363000000000001@g.us"


def build_message(
    text: str | None = "hello there",
    *,
    chat: str = USER_JID,
    participant: str = "",
    from_me: bool = False,
    push_name: str = "Alice",
    context_info: dict[str, Any] | None = None,
    content: dict[str, Any] | None = None,
    message_id: str = "MSG1",
) -> InboundMessage:
    if content is None:
        if text is None:
            content = {}
        elif context_info is not None:
            content = {"extendedTextMessage": {"text": text, "contextInfo": context_info}}
        else:
            content = {"conversation": text}
    payload = {
        "key": {
            "remoteJid": chat,
            "fromMe": from_me,
            "id": message_id,
            "participant": participant,
        },
        "pushName": push_name,
        "messageTimestamp": 1_700_000_000,
        "message": content,
    }
    return InboundMessage.from_payload(payload)


def build_context(message: InboundMessage, **overrides: Any) -> MessageContext:
    values: dict[str, Any] = dict(
        is_group=message.is_group,
        sender_name=message.push_name or "Alice",
        sender_jid=message.sender_jid,
        chat_jid=message.chat_jid,
        timestamp=message.timestamp,
        group_name="Test Group" if message.is_group else None,
    )
    values.update(overrides)
    return MessageContext(**values)


def build_request(
    transport: Transport,
    text: str = "hello there",
    *,
    kind: ContentKind = ContentKind.TEXT,
    **message_kwargs: Any,
) -> CapabilityRequest:
    message = build_message(text, **message_kwargs)
    return CapabilityRequest(
        transport=transport,
        message=message,
        text=text,
        context=build_context(message),
        kind=kind,
    )


def group_metadata(*admins: str, members: tuple[str, ...] = (USER_JID,)) -> GroupMetadata:
    participants = tuple(GroupParticipant(jid, "admin") for jid in admins) + tuple(
        GroupParticipant(jid) for jid in members
    )
    return GroupMetadata(
        jid=GROUP_JID,
        subject="Test Group",
        creation=1_700_000_000,
        participants=participants,
    )


@pytest.fixture
def transport():
    t = AsyncMock(spec=Transport)
    t.group_metadata.return_value = group_metadata(ADMIN_JID)
    return t


@pytest.fixture
def make_message():
    return build_message


@pytest.fixture
def make_request(transport):
    def _make(text: str = "hello there", **kwargs: Any) -> CapabilityRequest:
        return build_request(transport, text, **kwargs)

    return _make
