"""Content kind detection and text extraction for inbound messages."""

from __future__ import annotations

from typing import Any, Mapping

from buddy.models import ContentKind, InboundMessage

# Wrapper keys that carry no content of their own
_METADATA_KEYS = frozenset({"messageContextInfo", "senderKeyDistributionMessage"})

_KIND_BY_TYPE = {
    "conversation": ContentKind.TEXT,
    "extendedTextMessage": ContentKind.TEXT,
    "imageMessage": ContentKind.IMAGE,
    "audioMessage": ContentKind.AUDIO,
    "videoMessage": ContentKind.VIDEO,
    "stickerMessage": ContentKind.STICKER,
    "documentMessage": ContentKind.DOCUMENT,
    "documentWithCaptionMessage": ContentKind.DOCUMENT,
}


def content_type(content: Mapping[str, Any] | None) -> str | None:
    """Return the first payload key that is not pure metadata."""
    if not content:
        return None
    for key in content:
        if key not in _METADATA_KEYS:
            return key
    return None


def detect_content_kind(message: InboundMessage) -> ContentKind:
    kind = content_type(message.content)
    if kind is None:
        return ContentKind.UNKNOWN
    return _KIND_BY_TYPE.get(kind, ContentKind.UNKNOWN)


def extract_text(message: InboundMessage) -> str | None:
    """First non-empty of: plain body, extended body, image caption, video caption."""
    content = message.content
    if not content:
        return None

    if content.get("conversation"):
        return content["conversation"]

    for key, field_name in (
        ("extendedTextMessage", "text"),
        ("imageMessage", "caption"),
        ("videoMessage", "caption"),
    ):
        body = content.get(key)
        if isinstance(body, Mapping) and body.get(field_name):
            return body[field_name]

    return None
