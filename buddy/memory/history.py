"""Per-chat conversation history with SQLite persistence and a token budget."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import aiosqlite

from buddy.core.llm import ChatTurn
from buddy.utils.logging import get_logger

log = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    chat_jid TEXT NOT NULL,
    sender_jid TEXT NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    timestamp TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_history_chat
    ON history (chat_jid, id);
"""


class ConversationHistory:
    def __init__(
        self,
        db_path: Path,
        max_messages: int = 20,
        max_context_tokens: int = 8_000,
        count_tokens: Callable[[str], int] | None = None,
    ) -> None:
        self._db_path = db_path
        self._max_messages = max_messages
        self._max_context_tokens = max_context_tokens
        self._count_tokens = count_tokens
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

    async def add_message(self, chat_jid: str, sender_jid: str, role: str, content: str) -> None:
        assert self._db is not None
        now = datetime.now(timezone.utc).isoformat()
        await self._db.execute(
            "INSERT INTO history (chat_jid, sender_jid, role, content, timestamp) "
            "VALUES (?, ?, ?, ?, ?)",
            (chat_jid, sender_jid, role, content, now),
        )
        await self._db.commit()

    async def record_exchange(
        self, chat_jid: str, sender_jid: str, user_text: str, reply: str
    ) -> None:
        await self.add_message(chat_jid, sender_jid, "user", user_text)
        if reply:
            await self.add_message(chat_jid, sender_jid, "assistant", reply)

    async def get_turns(self, chat_jid: str) -> list[ChatTurn]:
        """Recent turns for a chat, oldest first, trimmed to the token budget."""
        assert self._db is not None
        cursor = await self._db.execute(
            "SELECT role, content FROM history WHERE chat_jid = ? "
            "ORDER BY id DESC LIMIT ?",
            (chat_jid, self._max_messages),
        )
        rows = list(await cursor.fetchall())
        rows.reverse()  # Oldest first

        turns = [ChatTurn(role=row[0], content=row[1]) for row in rows]

        if self._count_tokens and turns:
            turns = self._fit_to_token_limit(turns)

        # The Messages API requires the first turn to come from the user
        while turns and turns[0].role != "user":
            turns.pop(0)
        return turns

    def _fit_to_token_limit(self, turns: list[ChatTurn]) -> list[ChatTurn]:
        assert self._count_tokens is not None
        sizes = [self._count_tokens(str(t.content)) for t in turns]
        total = sum(sizes)
        dropped = 0
        while total > self._max_context_tokens and turns:
            turns.pop(0)
            total -= sizes[dropped]
            dropped += 1
        if dropped:
            log.info("history_trimmed", dropped=dropped, tokens=total)
        return turns
