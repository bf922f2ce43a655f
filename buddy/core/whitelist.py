"""Contact/group whitelist."""

from __future__ import annotations

from buddy.config import WhitelistConfig
from buddy.utils.jid import GROUP_SUFFIX, normalize_number
from buddy.utils.logging import get_logger

log = get_logger(__name__)


class Whitelist:
    def __init__(self, config: WhitelistConfig) -> None:
        entries = [e.strip().lower() for e in config.allowed if e.strip()]
        self.allow_all = not entries or "all" in entries
        self._numbers: set[str] = set()
        self._groups: set[str] = set()

        if not self.allow_all:
            for entry in entries:
                # group ids look like 1203630xxxx@g.us or the legacy 123-456 form
                if GROUP_SUFFIX in entry or "-" in entry:
                    self._groups.add(normalize_number(entry))
                else:
                    self._numbers.add(normalize_number(entry.lstrip("+")))
            log.info("whitelist_configured", numbers=len(self._numbers), groups=len(self._groups))

    def is_allowed(self, sender_jid: str, chat_jid: str) -> bool:
        if self.allow_all:
            return True
        if chat_jid.endswith(GROUP_SUFFIX) and normalize_number(chat_jid) in self._groups:
            return True
        return normalize_number(sender_jid) in self._numbers
