"""Admission gate: hard short-circuits before any routing work."""

from __future__ import annotations

from dataclasses import dataclass

from buddy.core.rate_limit import RateLimiter
from buddy.core.whitelist import Whitelist
from buddy.models import InboundMessage
from buddy.utils.jid import BROADCAST_JID, same_user
from buddy.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class AdmissionDecision:
    admitted: bool
    reason: str = ""


ADMIT = AdmissionDecision(True)


class AdmissionGate:
    """Drops messages silently, in a fixed order.

    Checking the rate limit does not consume quota; the engine records the
    message once it has also passed the group gate.
    """

    def __init__(self, bot_jid: str, whitelist: Whitelist, rate_limiter: RateLimiter) -> None:
        self._bot_jid = bot_jid
        self._whitelist = whitelist
        self._rate_limiter = rate_limiter

    def is_self(self, message: InboundMessage) -> bool:
        return message.from_me or same_user(message.sender_jid, self._bot_jid)

    def check(self, message: InboundMessage) -> AdmissionDecision:
        if not message.content:
            return AdmissionDecision(False, "no_content")
        if not message.chat_jid:
            return AdmissionDecision(False, "no_chat")
        if self.is_self(message):
            return AdmissionDecision(False, "self")
        if message.chat_jid == BROADCAST_JID:
            return AdmissionDecision(False, "broadcast")

        sender = message.sender_jid
        if not self._whitelist.is_allowed(sender, message.chat_jid):
            log.debug("blocked_by_whitelist", sender=sender, chat=message.chat_jid)
            return AdmissionDecision(False, "whitelist")
        if self._rate_limiter.is_limited(sender):
            log.warning("rate_limited", sender=sender, retry_in=self._rate_limiter.reset_in(sender))
            return AdmissionDecision(False, "rate_limited")
        return ADMIT

    def record(self, message: InboundMessage) -> None:
        """Count an admitted message against its sender's window."""
        sender = message.sender_jid
        self._rate_limiter.record(sender)
        log.debug("rate_limit_recorded", sender=sender,
                  remaining=self._rate_limiter.remaining(sender))
