"""Per-group moderation and etiquette settings with SQLite persistence."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from buddy.utils.logging import get_logger

log = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS group_settings (
    chat_jid TEXT PRIMARY KEY,
    spam_detection INTEGER NOT NULL,
    link_blocking INTEGER NOT NULL,
    forward_blocking INTEGER NOT NULL,
    auto_delete_spam INTEGER NOT NULL,
    welcome_enabled INTEGER NOT NULL,
    welcome_message TEXT,
    response_rate INTEGER NOT NULL,
    updated_at TEXT NOT NULL
);
"""

_COLUMNS = (
    "chat_jid, spam_detection, link_blocking, forward_blocking, auto_delete_spam, "
    "welcome_enabled, welcome_message, response_rate"
)


@dataclass(frozen=True)
class GroupSettings:
    chat_jid: str
    spam_detection: bool = True
    link_blocking: bool = False
    forward_blocking: bool = False
    auto_delete_spam: bool = True
    welcome_enabled: bool = True
    welcome_message: str | None = None
    response_rate: int = 30

    @property
    def moderation_enabled(self) -> bool:
        return self.spam_detection or self.link_blocking or self.forward_blocking


class GroupSettingsStore:
    def __init__(self, db_path: Path, default_response_rate: int = 30) -> None:
        self._db_path = db_path
        self._default_rate = default_response_rate
        self._db: aiosqlite.Connection | None = None

    async def start(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self._db_path))
        await self._db.executescript(_SCHEMA)
        await self._db.commit()

    async def stop(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def get(self, chat_jid: str) -> GroupSettings:
        """Stored settings for a group, or defaults when none were saved."""
        assert self._db is not None
        cursor = await self._db.execute(
            f"SELECT {_COLUMNS} FROM group_settings WHERE chat_jid = ?",
            (chat_jid,),
        )
        row = await cursor.fetchone()
        if row is None:
            return GroupSettings(chat_jid=chat_jid, response_rate=self._default_rate)
        return GroupSettings(
            chat_jid=row[0],
            spam_detection=bool(row[1]),
            link_blocking=bool(row[2]),
            forward_blocking=bool(row[3]),
            auto_delete_spam=bool(row[4]),
            welcome_enabled=bool(row[5]),
            welcome_message=row[6],
            response_rate=row[7],
        )

    async def save(self, settings: GroupSettings) -> None:
        assert self._db is not None
        now = datetime.now(timezone.utc).isoformat()
        await self._db.execute(
            f"INSERT OR REPLACE INTO group_settings ({_COLUMNS}, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                settings.chat_jid,
                int(settings.spam_detection),
                int(settings.link_blocking),
                int(settings.forward_blocking),
                int(settings.auto_delete_spam),
                int(settings.welcome_enabled),
                settings.welcome_message,
                settings.response_rate,
                now,
            ),
        )
        await self._db.commit()

    async def response_rate(self, chat_jid: str) -> int:
        return (await self.get(chat_jid)).response_rate

    async def set_response_rate(self, chat_jid: str, rate: int) -> GroupSettings:
        if not 0 <= rate <= 100:
            raise ValueError(f"Response rate must be between 0 and 100, got {rate}")
        settings = replace(await self.get(chat_jid), response_rate=rate)
        await self.save(settings)
        log.info("response_rate_updated", chat=chat_jid, rate=rate)
        return settings

    async def set_welcome(self, chat_jid: str, message: str | None) -> GroupSettings:
        settings = replace(await self.get(chat_jid), welcome_message=message)
        await self.save(settings)
        return settings
