"""Tests for the admission gate, whitelist and rate limiter."""

import pytest

from buddy.config import RateLimitConfig, WhitelistConfig
from buddy.core.admission import AdmissionGate
from buddy.core.counters import InMemoryCounterStore
from buddy.core.rate_limit import RateLimiter
from buddy.core.whitelist import Whitelist
from buddy.utils.jid import is_group_jid, mention_tag, normalize_number, same_user
from conftest import BOT_JID, GROUP_JID, USER_JID, build_message


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(
        RateLimitConfig(window_seconds=60, max_messages=3),
        InMemoryCounterStore(clock),
    )


@pytest.fixture
def gate(limiter):
    return AdmissionGate(BOT_JID, Whitelist(WhitelistConfig()), limiter)


class TestWhitelist:
    def test_all_allows_everyone(self):
        wl = Whitelist(WhitelistConfig(allowed=["all"]))
        assert wl.allow_all
        assert wl.is_allowed("999@s.whatsapp.net", "999@s.whatsapp.net")

    def test_empty_allows_everyone(self):
        assert Whitelist(WhitelistConfig(allowed=[])).allow_all

    def test_number_entries_match_normalized_sender(self):
        wl = Whitelist(WhitelistConfig(allowed="+15551111111, 15553333333"))
        assert wl.is_allowed("15551111111:12@s.whatsapp.net", "15551111111@s.whatsapp.net")
        assert not wl.is_allowed("15559999999@s.whatsapp.net", "15559999999@s.whatsapp.net")

    def test_group_entry_allows_any_member(self):
        wl = Whitelist(WhitelistConfig(allowed=[GROUP_JID]))
        assert wl.is_allowed("15559999999@s.whatsapp.net", GROUP_JID)
        assert not wl.is_allowed("15559999999@s.whatsapp.net", "120363999@g.us")

    def test_legacy_dash_group_id(self):
        wl = Whitelist(WhitelistConfig(allowed=["15551234567-1600000000"]))
        assert wl.is_allowed(USER_JID, "15551234567-1600000000@g.us")


class TestRateLimiter:
    def test_limited_at_ceiling(self, limiter):
        for _ in range(3):
            assert not limiter.is_limited("a")
            limiter.record("a")
        assert limiter.is_limited("a")
        assert limiter.remaining("a") == 0

    def test_checking_does_not_consume(self, limiter):
        for _ in range(10):
            assert not limiter.is_limited("a")
        assert limiter.remaining("a") == 3

    def test_window_expiry_resets(self, limiter, clock):
        for _ in range(3):
            limiter.record("a")
        clock.now += 61
        assert not limiter.is_limited("a")

    def test_keys_are_independent(self, limiter):
        for _ in range(3):
            limiter.record("a")
        assert not limiter.is_limited("b")

    def test_cleanup_drops_expired(self, limiter, clock):
        limiter.record("a")
        limiter.record("b")
        clock.now += 120
        assert limiter.cleanup() == 2

    def test_reset_in(self, limiter, clock):
        assert limiter.reset_in("a") is None
        for _ in range(3):
            limiter.record("a")
        clock.now += 15
        assert limiter.reset_in("a") == 45
        clock.now += 60
        assert limiter.reset_in("a") is None
        assert not limiter.is_limited("a")


class TestJid:
    def test_same_user_ignores_device_and_server(self):
        assert same_user("15551111111:3@s.whatsapp.net", USER_JID)
        assert same_user("15551111111@lid", USER_JID)
        assert not same_user("", "")
        assert not same_user(BOT_JID, USER_JID)

    def test_normalize_number(self):
        assert normalize_number("15551111111:12@s.whatsapp.net") == "15551111111"
        assert normalize_number(GROUP_JID) == "120363000000000001"

    def test_group_and_mention(self):
        assert is_group_jid(GROUP_JID)
        assert not is_group_jid(USER_JID)
        assert mention_tag(USER_JID) == "@15551111111"


class TestAdmissionGate:
    def test_admits_plain_dm(self, gate):
        assert gate.check(build_message("hi there")).admitted

    def test_rejects_empty_content(self, gate):
        decision = gate.check(build_message(None))
        assert not decision.admitted
        assert decision.reason == "no_content"

    def test_rejects_own_messages(self, gate):
        assert gate.check(build_message("hi", from_me=True)).reason == "self"

    def test_rejects_missing_chat(self, gate):
        assert gate.check(build_message("hi", chat="")).reason == "no_chat"

    def test_rejects_bot_sender_with_device_suffix(self, gate):
        msg = build_message("hi", chat=GROUP_JID, participant="15550000000:3@s.whatsapp.net")
        assert gate.check(msg).reason == "self"

    def test_rejects_status_broadcast(self, gate):
        msg = build_message("status", chat="status@broadcast", participant=USER_JID)
        assert gate.check(msg).reason == "broadcast"

    def test_whitelist_checked_before_rate_limit(self, limiter):
        gate = AdmissionGate(BOT_JID, Whitelist(WhitelistConfig(allowed=["15553333333"])), limiter)
        for _ in range(5):
            limiter.record(USER_JID)
        assert gate.check(build_message("hi")).reason == "whitelist"

    def test_rejects_rate_limited_sender(self, gate):
        msg = build_message("hi")
        for _ in range(3):
            gate.record(msg)
        assert gate.check(msg).reason == "rate_limited"
