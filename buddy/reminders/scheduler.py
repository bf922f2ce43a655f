"""Background delivery of due reminders."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from croniter import croniter

from buddy.reminders.store import Reminder, ReminderStore
from buddy.reminders.time_parser import format_datetime
from buddy.transports.base import Transport
from buddy.utils.logging import get_logger

log = get_logger(__name__)


def format_reminder(reminder: Reminder) -> str:
    local = reminder.scheduled_at.astimezone()
    lines = [f"⏰ *Reminder*\n\n{reminder.message}\n\n_Set for: {format_datetime(local)}_"]
    if reminder.is_recurring:
        lines.append("_This is a recurring reminder_")
    lines.append(
        "Reply with:\n"
        '• "done" to dismiss\n'
        '• "snooze 10 minutes" to snooze\n'
        '• "cancel all reminders" to stop'
    )
    return "\n\n".join(lines)


def next_run(reminder: Reminder, now: datetime) -> datetime | None:
    """Next occurrence after ``now`` for a recurring reminder, else None."""
    if not reminder.recurrence:
        return None
    base = max(reminder.scheduled_at, now).astimezone()
    return croniter(reminder.recurrence, base).get_next(datetime)


class ReminderScheduler:
    def __init__(
        self,
        store: ReminderStore,
        transport: Transport,
        interval: float = 30.0,
    ) -> None:
        self._store = store
        self._transport = transport
        self._interval = interval
        self._running = False
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="reminders")
        log.info("reminder_scheduler_started", interval=self._interval)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        log.info("reminder_scheduler_stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.fire_due()
            except Exception:
                log.exception("reminder_loop_error")
            await asyncio.sleep(self._interval)

    async def fire_due(self, now: datetime | None = None) -> int:
        """Send every due reminder and advance or retire it. Returns how many were sent."""
        now = now or datetime.now(timezone.utc)
        sent = 0
        for reminder in await self._store.due(now):
            try:
                await self._transport.send_text(reminder.chat_jid, format_reminder(reminder))
                sent += 1
                log.info("reminder_sent", id=reminder.id, chat=reminder.chat_jid)
            except Exception:
                log.exception("reminder_send_failed", id=reminder.id)

            upcoming = next_run(reminder, now)
            if upcoming is None:
                await self._store.cancel(reminder.id)
            else:
                await self._store.reschedule(reminder.id, upcoming)
                log.info("reminder_rescheduled", id=reminder.id, next=upcoming.isoformat())
        return sent
