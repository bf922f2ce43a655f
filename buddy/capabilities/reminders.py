"""Reminder sub-commands: snooze, done, cancel, list, test and create."""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Callable

from buddy.capabilities import registry as slots
from buddy.core.waterfall import (
    Accepted,
    CapabilityHandler,
    CapabilityOutcome,
    CapabilityRequest,
    Declined,
)
from buddy.models import CapabilityResult
from buddy.reminders.store import ReminderStore
from buddy.reminders.time_parser import (
    extract_reminder_text,
    format_datetime,
    format_relative,
    parse_time,
)
from buddy.utils.logging import get_logger

log = get_logger(__name__)

_CREATE_PATTERNS = [
    re.compile(p, re.I)
    for p in (
        r"\bremind\s+me\b",
        r"\bset\s+(?:a\s+)?reminder\b",
        r"\breminder\s*(?::|to\b)",
        r"\bdon'?t\s+let\s+me\s+forget\b",
        r"\bremember\s+to\b",
    )
]
_LIST_RE = re.compile(r"^/(?:my\s*)?reminders?$", re.I)
_TEST_RE = re.compile(r"^/test\s+reminder$", re.I)
_CANCEL_ID_RE = re.compile(r"^/?(?:cancel|delete|stop)\s+reminder\s+([0-9a-f]+)$", re.I)
_CANCEL_ALL_RE = re.compile(r"\b(?:cancel|stop)\s+(?:all\s+)?(?:my\s+)?reminders\b", re.I)
_SNOOZE_RE = re.compile(r"\bsnooze\b", re.I)
_SNOOZE_FOR_RE = re.compile(
    r"\bsnooze\s+(?:for\s+)?(\d+)\s*(minutes?|mins?|hours?|hrs?)\b", re.I
)
_DONE_RE = re.compile(r"^(?:done|completed|finished)\W*$", re.I)

DEFAULT_SNOOZE_MINUTES = 10
TEST_DELAY = timedelta(seconds=10)

_EXAMPLES = (
    "Try saying:\n"
    '• "Remind me to call mom in 30 minutes"\n'
    '• "Remind me to take medicine at 8pm"\n'
    '• "Remind me tomorrow at 9am to go to the gym"\n'
    '• "Remind me every day at 10am to drink water"'
)


def is_reminder_request(text: str) -> bool:
    return any(p.search(text) for p in _CREATE_PATTERNS)


def _reply(text: str) -> Accepted:
    return Accepted(CapabilityResult(response_text=text))


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'s' if n != 1 else ''}"


class ReminderCapability:
    """Reminder handlers over a shared store.

    ``clock`` returns the current local time and is injectable for tests.
    """

    def __init__(
        self,
        store: ReminderStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now().astimezone())

    def handlers(self) -> dict[str, CapabilityHandler]:
        return {
            slots.REMINDER_SNOOZE: self.snooze,
            slots.REMINDER_DONE: self.done,
            slots.REMINDER_CANCEL: self.cancel,
            slots.REMINDER_LIST: self.list_reminders,
            slots.REMINDER_TEST: self.schedule_test,
            slots.REMINDER_CREATE: self.create,
        }

    async def snooze(self, request: CapabilityRequest) -> CapabilityOutcome:
        if not _SNOOZE_RE.search(request.text):
            return Declined("not a snooze")

        reminders = await self._store.for_chat(request.context.chat_jid)
        if not reminders:
            return _reply("No active reminders to snooze.")

        minutes = DEFAULT_SNOOZE_MINUTES
        match = _SNOOZE_FOR_RE.search(request.text)
        if match:
            amount, unit = int(match.group(1)), match.group(2).lower()
            minutes = amount * 60 if unit.startswith(("hour", "hr")) else amount

        reminder = reminders[-1]
        until = self._clock() + timedelta(minutes=minutes)
        await self._store.reschedule(reminder.id, until)
        log.info("reminder_snoozed", id=reminder.id, minutes=minutes)
        return _reply(
            f"⏰ Snoozed for {_plural(minutes, 'minute')}.\n\n"
            f"I'll remind you again at {format_datetime(until, self._clock())}."
        )

    async def done(self, request: CapabilityRequest) -> CapabilityOutcome:
        if not _DONE_RE.match(request.text.strip()):
            return Declined("not a completion")
        return _reply("✅ Great! I've marked that as done.")

    async def cancel(self, request: CapabilityRequest) -> CapabilityOutcome:
        text = request.text.strip()
        chat = request.context.chat_jid

        match = _CANCEL_ID_RE.match(text)
        if match:
            reminder = await self._store.find_by_prefix(chat, match.group(1))
            if reminder is None:
                return _reply(
                    "❌ Reminder not found.\n\nUse /reminders to see your active reminders."
                )
            await self._store.cancel(reminder.id)
            log.info("reminder_cancelled", id=reminder.id, chat=chat)
            return _reply(f"✅ Reminder cancelled:\n_{reminder.message}_")

        if _CANCEL_ALL_RE.search(text):
            count = await self._store.cancel_all(chat)
            log.info("reminders_cancelled", chat=chat, count=count)
            return _reply(f"✅ Cancelled {_plural(count, 'reminder')}.")

        return Declined("not a cancel command")

    async def list_reminders(self, request: CapabilityRequest) -> CapabilityOutcome:
        if not _LIST_RE.match(request.text.strip()):
            return Declined("not a list command")

        reminders = await self._store.for_chat(request.context.chat_jid)
        if not reminders:
            return _reply(
                "📭 *No Active Reminders*\n\n"
                'Set a reminder with:\n"Remind me to call mom in 30 minutes"'
            )

        now = self._clock()
        lines = [f"📋 *Your Reminders* ({len(reminders)})\n"]
        for i, reminder in enumerate(reminders, 1):
            recurring = "🔄 " if reminder.is_recurring else ""
            lines.append(f"{i}. {recurring}{reminder.message}")
            lines.append(
                f"   _{format_relative(reminder.scheduled_at, now)}_ · ID: `{reminder.id}`\n"
            )
        lines.append("To cancel: /cancel reminder <ID>")
        return _reply("\n".join(lines))

    async def schedule_test(self, request: CapabilityRequest) -> CapabilityOutcome:
        if not _TEST_RE.match(request.text.strip()):
            return Declined("not a test command")

        ctx = request.context
        reminder = await self._store.add(
            chat_jid=ctx.chat_jid,
            creator_jid=ctx.sender_jid,
            creator_name=ctx.sender_name,
            message="This is a test reminder! 🎉",
            scheduled_at=self._clock() + TEST_DELAY,
        )
        return _reply(
            "🧪 Test reminder created!\n\n"
            f"You should receive it in {int(TEST_DELAY.total_seconds())} seconds.\n\n"
            f"ID: `{reminder.id}`"
        )

    async def create(self, request: CapabilityRequest) -> CapabilityOutcome:
        text = request.text
        if not is_reminder_request(text):
            return Declined("not a reminder request")

        now = self._clock()
        parsed = parse_time(text, now)
        if parsed is None:
            return _reply(f"⏰ I couldn't understand when to remind you.\n\n{_EXAMPLES}")

        what = extract_reminder_text(text)
        if len(what) < 3:
            return _reply(
                "⏰ What should I remind you about?\n\n"
                'Example: "Remind me to call mom in 30 minutes"'
            )

        ctx = request.context
        reminder = await self._store.add(
            chat_jid=ctx.chat_jid,
            creator_jid=ctx.sender_jid,
            creator_name=ctx.sender_name,
            message=what,
            scheduled_at=parsed.when,
            recurrence=parsed.recurrence,
            label=parsed.label,
        )

        lines = ["✅ *Reminder Set*\n", f"📋 {what}", f"⏰ {format_datetime(parsed.when, now)}"]
        if parsed.is_recurring:
            lines.append(f"🔄 Recurring: {parsed.label}")
        lines.append(f"\n_{format_relative(parsed.when, now)}_")
        lines.append(f"\nID: `{reminder.id}`")
        lines.append(f"\nTo cancel: /cancel reminder {reminder.id}")
        return _reply("\n".join(lines))
