"""Tests for reminder parsing, storage, delivery and the reminder capability."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from buddy.capabilities import registry as slots
from buddy.capabilities.registry import CapabilityRegistry
from buddy.capabilities.reminders import ReminderCapability, is_reminder_request
from buddy.config import FeatureFlags
from buddy.core.waterfall import Accepted, Declined, run_waterfall
from buddy.models import ContentKind
from buddy.reminders.scheduler import ReminderScheduler, format_reminder, next_run
from buddy.reminders.store import ReminderStore
from buddy.reminders.time_parser import (
    extract_reminder_text,
    format_datetime,
    format_relative,
    parse_time,
)
from conftest import GROUP_JID, USER_JID

# A Monday
NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
async def store(tmp_path):
    s = ReminderStore(tmp_path / "reminders.db")
    await s.start()
    yield s
    await s.stop()


async def add(store, message="call mom", when=NOW, chat=USER_JID, **kwargs):
    return await store.add(chat, USER_JID, "Alice", message, when, **kwargs)


class TestParseTime:
    def test_in_minutes(self):
        parsed = parse_time("remind me to call mom in 30 minutes", NOW)
        assert parsed.when == NOW + timedelta(minutes=30)
        assert not parsed.is_recurring

    def test_in_hours_and_days(self):
        assert parse_time("in 2 hours", NOW).when == NOW + timedelta(hours=2)
        assert parse_time("in 3 days", NOW).when == NOW + timedelta(days=3)

    def test_tomorrow_at(self):
        assert parse_time("tomorrow at 5pm", NOW).when == datetime(2026, 3, 3, 17, 0,
                                                                   tzinfo=timezone.utc)

    def test_bare_tomorrow_defaults_to_nine(self):
        assert parse_time("tomorrow", NOW).when.hour == 9

    def test_today_time_already_passed_rolls_over(self):
        assert parse_time("today at 9am", NOW).when == datetime(2026, 3, 3, 9, 0,
                                                                tzinfo=timezone.utc)

    def test_every_day(self):
        parsed = parse_time("every day at 8am", NOW)
        assert parsed.recurrence == "0 8 * * *"
        assert parsed.label == "daily"
        assert parsed.when == datetime(2026, 3, 3, 8, 0, tzinfo=timezone.utc)

    def test_every_day_uses_earlier_clock(self):
        parsed = parse_time("remind me to drink water at 8pm every day", NOW)
        assert parsed.recurrence == "0 20 * * *"
        assert parsed.when == datetime(2026, 3, 2, 20, 0, tzinfo=timezone.utc)

    def test_every_day_without_clock_defaults_to_nine(self):
        assert parse_time("stretch every day", NOW).recurrence == "0 9 * * *"

    def test_every_week_uses_earlier_clock(self):
        assert parse_time("at 7:30am every week on monday", NOW).recurrence == "30 7 * * 1"

    def test_every_week(self):
        parsed = parse_time("every week on friday at 6pm", NOW)
        assert parsed.recurrence == "0 18 * * 5"
        assert parsed.when == datetime(2026, 3, 6, 18, 0, tzinfo=timezone.utc)

    def test_every_interval(self):
        parsed = parse_time("every 15 minutes", NOW)
        assert parsed.recurrence == "*/15 * * * *"
        assert parsed.label == "every 15 minutes"

    def test_interval_out_of_range(self):
        assert parse_time("every 90 minutes", NOW) is None

    def test_weekday_is_always_in_the_future(self):
        assert parse_time("on wednesday", NOW).when == datetime(2026, 3, 4, 9, 0,
                                                                tzinfo=timezone.utc)
        assert parse_time("monday at 3pm", NOW).when == datetime(2026, 3, 9, 15, 0,
                                                                 tzinfo=timezone.utc)

    def test_part_of_day(self):
        assert parse_time("this evening", NOW).when.hour == 18

    def test_invalid_clock(self):
        assert parse_time("at 25:00", NOW) is None

    def test_no_time(self):
        assert parse_time("what's up", NOW) is None


class TestReminderText:
    @pytest.mark.parametrize("text,expected", [
        ("remind me to call mom in 30 minutes", "call mom"),
        ("Remind me tomorrow at 9am to go to the gym", "go to the gym"),
        ("set a reminder to pay rent every day at 8am", "pay rent"),
        ("remind me to drink water at 8pm every day", "drink water"),
        ("don't let me forget to water the plants tonight at 7pm", "water the plants tonight"),
    ])
    def test_extract(self, text, expected):
        assert extract_reminder_text(text) == expected

    def test_format_datetime(self):
        assert format_datetime(NOW + timedelta(minutes=30), NOW) == "Today at 10:30 AM"
        assert format_datetime(NOW + timedelta(days=1, hours=7), NOW) == "Tomorrow at 5:00 PM"
        assert format_datetime(NOW + timedelta(days=4, hours=8), NOW) == "Fri, Mar 6, 6:00 PM"

    def test_format_relative(self):
        assert format_relative(NOW, NOW) == "now"
        assert format_relative(NOW + timedelta(minutes=1), NOW) == "in 1 minute"
        assert format_relative(NOW + timedelta(minutes=30), NOW) == "in 30 minutes"
        assert format_relative(NOW + timedelta(hours=5), NOW) == "in 5 hours"
        assert format_relative(NOW + timedelta(days=2), NOW) == "in 2 days"


class TestReminderStore:
    async def test_add_and_get(self, store):
        reminder = await add(store)
        assert len(reminder.id) == 8
        loaded = await store.get(reminder.id)
        assert loaded.message == "call mom"
        assert loaded.scheduled_at == NOW
        assert loaded.active

    async def test_stored_in_utc(self, store):
        local = datetime(2026, 3, 2, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        reminder = await add(store, when=local)
        loaded = await store.get(reminder.id)
        assert loaded.scheduled_at == NOW
        assert loaded.scheduled_at.utcoffset() == timedelta(0)

    async def test_for_chat_oldest_first_and_scoped(self, store):
        first = await add(store, "one")
        second = await add(store, "two")
        await add(store, "other", chat=GROUP_JID)
        assert [r.id for r in await store.for_chat(USER_JID)] == [first.id, second.id]

    async def test_due(self, store):
        past = await add(store, "past", when=NOW - timedelta(minutes=1))
        await add(store, "future", when=NOW + timedelta(minutes=1))
        assert [r.id for r in await store.due(NOW)] == [past.id]

    async def test_cancel(self, store):
        reminder = await add(store)
        assert await store.cancel(reminder.id)
        assert not await store.cancel(reminder.id)
        assert await store.for_chat(USER_JID) == []
        assert await store.due(NOW + timedelta(days=1)) == []

    async def test_cancel_all(self, store):
        await add(store, "one")
        await add(store, "two")
        await add(store, "other", chat=GROUP_JID)
        assert await store.cancel_all(USER_JID) == 2
        assert len(await store.for_chat(GROUP_JID)) == 1

    async def test_reschedule_reactivates(self, store):
        reminder = await add(store)
        await store.cancel(reminder.id)
        await store.reschedule(reminder.id, NOW + timedelta(hours=1))
        loaded = await store.get(reminder.id)
        assert loaded.active
        assert loaded.scheduled_at == NOW + timedelta(hours=1)

    async def test_find_by_prefix(self, store):
        reminder = await add(store)
        assert (await store.find_by_prefix(USER_JID, reminder.id[:4].upper())).id == reminder.id
        assert await store.find_by_prefix(GROUP_JID, reminder.id) is None


class TestScheduler:
    async def test_one_shot_sent_then_retired(self, store, transport):
        reminder = await add(store, when=NOW - timedelta(seconds=5))
        assert await ReminderScheduler(store, transport).fire_due(NOW) == 1
        chat, text = transport.send_text.await_args.args
        assert chat == USER_JID
        assert "call mom" in text
        assert not (await store.get(reminder.id)).active

    async def test_recurring_advanced(self, store, transport):
        reminder = await add(store, when=NOW - timedelta(seconds=5),
                             recurrence="*/15 * * * *", label="every 15 minutes")
        await ReminderScheduler(store, transport).fire_due(NOW)
        loaded = await store.get(reminder.id)
        assert loaded.active
        assert NOW < loaded.scheduled_at <= NOW + timedelta(minutes=15)

    async def test_send_failure_still_advances(self, store, transport):
        reminder = await add(store, when=NOW - timedelta(seconds=5))
        transport.send_text.side_effect = RuntimeError("gateway down")
        assert await ReminderScheduler(store, transport).fire_due(NOW) == 0
        assert not (await store.get(reminder.id)).active

    async def test_nothing_due(self, store, transport):
        await add(store, when=NOW + timedelta(hours=1))
        assert await ReminderScheduler(store, transport).fire_due(NOW) == 0
        transport.send_text.assert_not_called()

    async def test_background_loop_delivers(self, store, transport):
        await add(store, when=datetime.now(timezone.utc) - timedelta(seconds=1))
        scheduler = ReminderScheduler(store, transport, interval=0.01)
        await scheduler.start()
        for _ in range(100):
            if transport.send_text.await_count:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()
        assert transport.send_text.await_count == 1

    async def test_next_run_daily(self, store):
        reminder = await add(store, when=NOW - timedelta(hours=2), recurrence="0 8 * * *")
        upcoming = next_run(reminder, NOW)
        assert NOW < upcoming <= NOW + timedelta(days=1)
        assert upcoming.astimezone().hour == 8
        assert upcoming.minute == 0

    async def test_next_run_one_shot(self, store):
        assert next_run(await add(store), NOW) is None

    async def test_format_reminder(self, store):
        text = format_reminder(await add(store, recurrence="0 8 * * *"))
        assert text.startswith("⏰ *Reminder*\n\ncall mom")
        assert "_This is a recurring reminder_" in text
        assert '"done" to dismiss' in text


@pytest.fixture
def capability(store):
    return ReminderCapability(store, clock=lambda: NOW)


class TestReminderCapability:
    def test_request_detection(self):
        assert is_reminder_request("Remind me to stretch")
        assert is_reminder_request("remember to water plants at 6pm")
        assert is_reminder_request("reminder: dentist tomorrow")
        assert not is_reminder_request("I remember the party")
        assert not is_reminder_request("the reminder app is broken")

    async def test_create_confirms_with_id(self, capability, store, make_request):
        outcome = await capability.create(make_request("remind me to call mom in 30 minutes"))
        assert isinstance(outcome, Accepted)
        [reminder] = await store.for_chat(USER_JID)
        text = outcome.result.response_text
        assert text.startswith("✅ *Reminder Set*")
        assert "\U0001f4cb call mom" in text
        assert "_in 30 minutes_" in text
        assert f"ID: `{reminder.id}`" in text
        assert f"/cancel reminder {reminder.id}" in text
        assert reminder.scheduled_at == NOW + timedelta(minutes=30)
        assert reminder.creator_name == "Alice"

    async def test_create_recurring(self, capability, store, make_request):
        outcome = await capability.create(make_request("remind me every day at 8am to stretch"))
        assert "Recurring: daily" in outcome.result.response_text
        [reminder] = await store.for_chat(USER_JID)
        assert reminder.recurrence == "0 8 * * *"
        assert reminder.message == "stretch"

    async def test_create_without_time(self, capability, store, make_request):
        outcome = await capability.create(make_request("remind me to call mom"))
        assert "couldn't understand when" in outcome.result.response_text
        assert await store.for_chat(USER_JID) == []

    async def test_create_without_subject(self, capability, store, make_request):
        outcome = await capability.create(make_request("remind me in 10 minutes"))
        assert "What should I remind you about?" in outcome.result.response_text
        assert await store.for_chat(USER_JID) == []

    async def test_create_declines_other_text(self, capability, make_request):
        assert isinstance(await capability.create(make_request("hello there")), Declined)

    async def test_list(self, capability, store, make_request):
        empty = await capability.list_reminders(make_request("/reminders"))
        assert "No Active Reminders" in empty.result.response_text

        reminder = await add(store, when=NOW + timedelta(hours=2), recurrence="0 8 * * *")
        outcome = await capability.list_reminders(make_request("/my reminders"))
        text = outcome.result.response_text
        assert "*Your Reminders* (1)" in text
        assert "1. \U0001f504 call mom" in text
        assert f"ID: `{reminder.id}`" in text
        assert "_in 2 hours_" in text

    async def test_list_declines_plain_text(self, capability, make_request):
        assert isinstance(await capability.list_reminders(make_request("reminders")), Declined)

    async def test_cancel_by_id(self, capability, store, make_request):
        reminder = await add(store)
        outcome = await capability.cancel(make_request(f"/cancel reminder {reminder.id}"))
        assert outcome.result.response_text == "✅ Reminder cancelled:\n_call mom_"
        assert await store.for_chat(USER_JID) == []

    async def test_cancel_unknown_id(self, capability, make_request):
        outcome = await capability.cancel(make_request("cancel reminder deadbeef"))
        assert outcome.result.response_text.startswith("❌ Reminder not found.")

    async def test_cancel_all(self, capability, store, make_request):
        await add(store, "one")
        await add(store, "two")
        outcome = await capability.cancel(make_request("cancel all reminders"))
        assert outcome.result.response_text == "✅ Cancelled 2 reminders."

    async def test_cancel_declines_other_text(self, capability, make_request):
        assert isinstance(await capability.cancel(make_request("cancel the meeting")), Declined)

    async def test_snooze_latest(self, capability, store, make_request):
        await add(store, "older")
        latest = await add(store, "latest")
        outcome = await capability.snooze(make_request("snooze 5 minutes"))
        assert outcome.result.response_text.startswith("⏰ Snoozed for 5 minutes.")
        assert (await store.get(latest.id)).scheduled_at == NOW + timedelta(minutes=5)

    @pytest.mark.parametrize("text,minutes", [
        ("snooze", 10),
        ("snooze for 1 hour", 60),
        ("please snooze 20 mins", 20),
    ])
    async def test_snooze_durations(self, capability, store, make_request, text, minutes):
        reminder = await add(store)
        await capability.snooze(make_request(text))
        assert (await store.get(reminder.id)).scheduled_at == NOW + timedelta(minutes=minutes)

    async def test_snooze_without_reminders(self, capability, make_request):
        outcome = await capability.snooze(make_request("snooze"))
        assert outcome.result.response_text == "No active reminders to snooze."

    async def test_done(self, capability, make_request):
        assert isinstance(await capability.done(make_request("Done!")), Accepted)
        assert isinstance(await capability.done(make_request("done with homework")), Declined)

    async def test_schedule_test(self, capability, store, make_request):
        outcome = await capability.schedule_test(make_request("/test reminder"))
        assert "10 seconds" in outcome.result.response_text
        [reminder] = await store.for_chat(USER_JID)
        assert reminder.scheduled_at == NOW + timedelta(seconds=10)

    @pytest.mark.parametrize("text,slot", [
        ("remind me to call mom in 30 minutes", slots.REMINDER_CREATE),
        ("snooze 5 minutes", slots.REMINDER_SNOOZE),
        ("done", slots.REMINDER_DONE),
        ("cancel all reminders", slots.REMINDER_CANCEL),
        ("/reminders", slots.REMINDER_LIST),
        ("/test reminder", slots.REMINDER_TEST),
    ])
    async def test_waterfall_routing(self, capability, store, make_request, text, slot):
        await add(store)
        registry = CapabilityRegistry(FeatureFlags(reminder_system=True))
        registry.register_many(capability.handlers())
        accepted = await run_waterfall(registry.waterfall(ContentKind.TEXT), make_request(text))
        assert accepted[0] == slot
