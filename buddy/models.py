"""Typed message models shared by the engine stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from buddy.utils.jid import is_group_jid


class ContentKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    STICKER = "sticker"
    DOCUMENT = "document"
    UNKNOWN = "unknown"


# Envelopes whose inner "message" is the real content
_WRAPPER_KEYS = (
    "ephemeralMessage",
    "viewOnceMessage",
    "viewOnceMessageV2",
    "viewOnceMessageV2Extension",
)


def unwrap_content(content: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    """Peel disappearing-message and view-once envelopes, however deeply nested."""
    while content:
        for key in _WRAPPER_KEYS:
            inner = content.get(key)
            if isinstance(inner, Mapping) and isinstance(inner.get("message"), Mapping):
                content = inner["message"]
                break
        else:
            return content
    return content


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


@dataclass(frozen=True)
class InboundMessage:
    """Read-only view over a Baileys-shaped message payload.

    ``content`` is the inner ``message`` object (``conversation``,
    ``imageMessage`` and so on); ``None`` means the event carried no content.
    """

    chat_jid: str
    message_id: str = ""
    participant: str = ""
    from_me: bool = False
    push_name: str = ""
    timestamp: float = 0.0
    content: Mapping[str, Any] | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> InboundMessage:
        key = payload.get("key") or {}
        content = unwrap_content(payload.get("message"))
        ts = payload.get("messageTimestamp") or 0
        # protobuf Long values arrive as {"low": .., "high": ..} in some gateways
        if isinstance(ts, dict):
            ts = ts.get("low", 0)
        return cls(
            chat_jid=key.get("remoteJid") or "",
            message_id=key.get("id") or "",
            participant=key.get("participant") or "",
            from_me=bool(key.get("fromMe", False)),
            push_name=payload.get("pushName") or "",
            timestamp=float(ts),
            content=MappingProxyType(dict(content)) if content else None,
            raw=MappingProxyType(dict(payload)),
        )

    @property
    def sender_jid(self) -> str:
        # In groups the author is the participant; in DMs it is the chat itself
        return self.participant or self.chat_jid

    @property
    def is_group(self) -> bool:
        return is_group_jid(self.chat_jid)

    @property
    def context_info(self) -> Mapping[str, Any]:
        if not self.content:
            return {}
        for kind in ("extendedTextMessage", "imageMessage", "videoMessage",
                     "audioMessage", "documentMessage", "stickerMessage"):
            body = self.content.get(kind)
            if isinstance(body, Mapping) and body.get("contextInfo"):
                return body["contextInfo"]
        return {}

    @property
    def is_forwarded(self) -> bool:
        return bool(self.context_info.get("isForwarded", False))


@dataclass(frozen=True)
class MessageContext:
    is_group: bool
    sender_name: str
    sender_jid: str
    chat_jid: str
    timestamp: float
    group_name: str | None = None
    quoted_text: str | None = None
    mentioned_ids: tuple[str, ...] = ()
    respond_with_voice: bool = False


@dataclass(frozen=True)
class EtiquetteDecision:
    should_respond: bool
    reason: str
    priority: Priority = Priority.NONE

    @property
    def show_typing(self) -> bool:
        return self.should_respond and self.priority is not Priority.NONE


@dataclass(frozen=True)
class ModerationVerdict:
    should_delete: bool
    warning: str | None = None


@dataclass
class CapabilityResult:
    response_text: str
    success: bool = True
    error: str | None = None
    audio: bytes | None = None
    content_kind: ContentKind = ContentKind.TEXT


@dataclass(frozen=True)
class ParticipantsUpdate:
    chat_jid: str
    participants: tuple[str, ...]
    action: str  # "add", "remove", "promote", "demote"
