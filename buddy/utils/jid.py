"""WhatsApp JID helpers."""

from __future__ import annotations

import re

BROADCAST_JID = "status@broadcast"
GROUP_SUFFIX = "@g.us"

_SUFFIX_RE = re.compile(r"@(?:s\.whatsapp\.net|g\.us|c\.us|lid)$")
_DEVICE_RE = re.compile(r":\d+$")


def normalize_jid(jid: str) -> str:
    """Reduce a JID to its bare user/group part, dropping device and server."""
    return jid.split(":", 1)[0].split("@", 1)[0]


def normalize_number(jid: str) -> str:
    """Strip server suffixes and a trailing device id, keeping group ids intact."""
    return _DEVICE_RE.sub("", _SUFFIX_RE.sub("", jid.strip().lower()))


def is_group_jid(jid: str) -> bool:
    return jid.endswith(GROUP_SUFFIX)


def same_user(a: str, b: str) -> bool:
    return bool(a) and bool(b) and normalize_jid(a) == normalize_jid(b)


def mention_tag(jid: str) -> str:
    return f"@{jid.split('@', 1)[0]}"
