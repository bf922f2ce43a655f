"""Group etiquette: decide whether the bot should speak up in a group chat."""

from __future__ import annotations

import random
import re
from typing import Callable

from buddy.config import GroupConfig
from buddy.group.mentions import MentionInfo
from buddy.models import EtiquetteDecision, Priority

# Short reactions that never need a reply
_BANTER = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^(lol|lmao|(?:ha)+a*h?|(?:he)+e*h?|xd+|gg|rip|bruh|nice|ok+|k+)$",
        r"^(yes|no|ya|yep|nope|wow|omg|wtf|ikr|fr|ngl|tbh)$",
    )
]

_QUESTION = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\?$",
        r"^(what|who|where|when|why|how|can|could|would|should|is|are|do|does|did|will|have|has)\b",
        r"\banyone know\b",
        r"\bdoes anyone\b",
        r"\bcan someone\b",
    )
]

_EMOJI_ONLY = re.compile(
    "^[\\s\\u200d\\ufe0f"
    "\\U0001F1E6-\\U0001F1FF"
    "\\U0001F300-\\U0001FAFF"
    "\\u2600-\\u27bf"
    "\\u2b00-\\u2bff"
    "\\U0001F000-\\U0001F2FF]+$"
)

_REPEATED_CHAR = re.compile(r"^(.)\1{2,}$")


def is_banter(text: str) -> bool:
    words = text.split()
    if not words or len(words) > 2:
        return False
    lowered = " ".join(words).lower()
    return any(p.match(lowered) for p in _BANTER)


def is_emoji_only(text: str) -> bool:
    return bool(_EMOJI_ONLY.match(text))


def is_question(text: str) -> bool:
    return any(p.search(text) for p in _QUESTION)


class Etiquette:
    """Applies the group response rules in a fixed order.

    ``rng`` returns a float in [0, 1) and is injectable so the probabilistic
    branch can be pinned in tests.
    """

    def __init__(
        self,
        config: GroupConfig,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._min_length = config.min_message_length
        self._rng = rng

    def decide(
        self,
        text: str,
        mentions: MentionInfo,
        response_rate: int,
    ) -> EtiquetteDecision:
        if mentions.is_bot_mentioned:
            return EtiquetteDecision(True, "Bot was mentioned", Priority.HIGH)
        if mentions.is_reply_to_bot:
            return EtiquetteDecision(True, "Reply to bot message", Priority.HIGH)

        stripped = text.strip()
        if len(stripped) < self._min_length:
            return EtiquetteDecision(False, "Message too short")

        if is_banter(stripped) or is_emoji_only(stripped) or _REPEATED_CHAR.match(stripped):
            return EtiquetteDecision(False, "Casual banter")

        if is_question(stripped):
            return EtiquetteDecision(True, "Question asked", Priority.MEDIUM)

        if self._rng() * 100 < response_rate:
            return EtiquetteDecision(True, "Random engagement", Priority.LOW)

        return EtiquetteDecision(False, "General group chat")
