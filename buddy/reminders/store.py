"""Reminder persistence backed by SQLite."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from buddy.utils.logging import get_logger

log = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS reminders (
    id TEXT PRIMARY KEY,
    chat_jid TEXT NOT NULL,
    creator_jid TEXT NOT NULL,
    creator_name TEXT NOT NULL,
    message TEXT NOT NULL,
    scheduled_at TEXT NOT NULL,
    recurrence TEXT,
    label TEXT,
    active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_reminders_due
    ON reminders (active, scheduled_at);
"""

_COLUMNS = (
    "id, chat_jid, creator_jid, creator_name, message, scheduled_at, "
    "recurrence, label, active, created_at"
)


@dataclass
class Reminder:
    id: str
    chat_jid: str
    creator_jid: str
    creator_name: str
    message: str
    scheduled_at: datetime
    recurrence: str | None
    label: str | None
    active: bool
    created_at: datetime

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None


def _iso(dt: datetime) -> str:
    # Stored in UTC so lexical order matches time order
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt.astimezone(timezone.utc).isoformat()


def _row_to_reminder(row: aiosqlite.Row | tuple) -> Reminder:
    return Reminder(
        id=row[0],
        chat_jid=row[1],
        creator_jid=row[2],
        creator_name=row[3],
        message=row[4],
        scheduled_at=datetime.fromisoformat(row[5]),
        recurrence=row[6],
        label=row[7],
        active=bool(row[8]),
        created_at=datetime.fromisoformat(row[9]),
    )


class ReminderStore:
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
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

    async def add(
        self,
        chat_jid: str,
        creator_jid: str,
        creator_name: str,
        message: str,
        scheduled_at: datetime,
        recurrence: str | None = None,
        label: str | None = None,
    ) -> Reminder:
        assert self._db is not None
        reminder_id = uuid.uuid4().hex[:8]
        now = datetime.now(timezone.utc)
        await self._db.execute(
            f"INSERT INTO reminders ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, ?)",
            (
                reminder_id, chat_jid, creator_jid, creator_name, message,
                _iso(scheduled_at), recurrence, label, now.isoformat(),
            ),
        )
        await self._db.commit()
        log.info("reminder_added", id=reminder_id, chat=chat_jid, at=_iso(scheduled_at))
        return Reminder(
            id=reminder_id,
            chat_jid=chat_jid,
            creator_jid=creator_jid,
            creator_name=creator_name,
            message=message,
            scheduled_at=datetime.fromisoformat(_iso(scheduled_at)),
            recurrence=recurrence,
            label=label,
            active=True,
            created_at=now,
        )

    async def get(self, reminder_id: str) -> Reminder | None:
        assert self._db is not None
        cursor = await self._db.execute(
            f"SELECT {_COLUMNS} FROM reminders WHERE id = ?", (reminder_id,)
        )
        row = await cursor.fetchone()
        return _row_to_reminder(row) if row else None

    async def for_chat(self, chat_jid: str) -> list[Reminder]:
        """Active reminders for a chat, oldest first."""
        assert self._db is not None
        cursor = await self._db.execute(
            f"SELECT {_COLUMNS} FROM reminders WHERE chat_jid = ? AND active = 1 "
            "ORDER BY created_at, rowid",
            (chat_jid,),
        )
        return [_row_to_reminder(row) for row in await cursor.fetchall()]

    async def find_by_prefix(self, chat_jid: str, prefix: str) -> Reminder | None:
        for reminder in await self.for_chat(chat_jid):
            if reminder.id.startswith(prefix.lower()):
                return reminder
        return None

    async def due(self, now: datetime | None = None) -> list[Reminder]:
        assert self._db is not None
        now = now or datetime.now(timezone.utc)
        cursor = await self._db.execute(
            f"SELECT {_COLUMNS} FROM reminders WHERE active = 1 AND scheduled_at <= ? "
            "ORDER BY scheduled_at",
            (_iso(now),),
        )
        return [_row_to_reminder(row) for row in await cursor.fetchall()]

    async def cancel(self, reminder_id: str) -> bool:
        assert self._db is not None
        cursor = await self._db.execute(
            "UPDATE reminders SET active = 0 WHERE id = ? AND active = 1", (reminder_id,)
        )
        await self._db.commit()
        return cursor.rowcount > 0

    async def cancel_all(self, chat_jid: str) -> int:
        assert self._db is not None
        cursor = await self._db.execute(
            "UPDATE reminders SET active = 0 WHERE chat_jid = ? AND active = 1", (chat_jid,)
        )
        await self._db.commit()
        return cursor.rowcount

    async def reschedule(self, reminder_id: str, when: datetime) -> None:
        """Move a reminder to a new time. Used for snoozes and recurrences."""
        assert self._db is not None
        await self._db.execute(
            "UPDATE reminders SET scheduled_at = ?, active = 1 WHERE id = ?",
            (_iso(when), reminder_id),
        )
        await self._db.commit()
