"""Tests for the message chunker and response dispatcher."""

from unittest.mock import AsyncMock

import httpx
import pytest

from buddy.config import ChunkerConfig
from buddy.core.chunker import MAX_MESSAGE_LENGTH, chunk_message
from buddy.core.dispatcher import ResponseDispatcher
from buddy.models import CapabilityResult
from conftest import GROUP_JID, USER_JID, build_message


def cfg(limit: int, min_chunk_size: int = 0) -> ChunkerConfig:
    return ChunkerConfig(limit=limit, min_chunk_size=min_chunk_size, delay=0.0)


class TestChunkMessage:
    def test_short_message_single_chunk(self):
        assert chunk_message("Hello world", cfg(100)) == ["Hello world"]

    def test_empty_message(self):
        assert chunk_message("", cfg(100)) == []
        assert chunk_message("   \n ", cfg(100)) == []

    def test_splits_on_paragraph_boundary(self):
        text = "First paragraph.\n\nSecond paragraph."
        assert chunk_message(text, cfg(25)) == ["First paragraph.", "Second paragraph."]

    def test_splits_on_sentence_boundary(self):
        text = "First sentence. Second sentence. Third sentence."
        result = chunk_message(text, cfg(35))
        assert all(len(c) <= 35 for c in result)
        assert result[0] == "First sentence. Second sentence."

    def test_preserves_code_blocks(self):
        text = "Intro text here.\n\n```\ncode line\n```\n\nOutro."
        result = chunk_message(text, cfg(30))
        assert result == ["Intro text here.", "```\ncode line\n```\n\nOutro."]

    def test_hard_cuts_long_word(self):
        assert chunk_message("a" * 25, cfg(10)) == ["a" * 10, "a" * 10, "a" * 5]

    def test_limit_capped_at_platform_maximum(self):
        result = chunk_message("word " * 2000, cfg(10_000))
        assert len(result) > 1
        assert all(len(c) <= MAX_MESSAGE_LENGTH for c in result)

    def test_short_chunk_merged_forward(self):
        text = "Hi.\n\n" + "b" * 26
        assert chunk_message(text, cfg(30, min_chunk_size=10)) == ["Hi.\n" + "b" * 26]

    def test_no_content_lost(self):
        text = " ".join(f"word{i}" for i in range(300))
        result = chunk_message(text, cfg(100))
        assert " ".join(result).split() == text.split()


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def dispatcher(transport, sleep):
    return ResponseDispatcher(transport, cfg(25), chunking=True, sleep=sleep)


class TestResponseDispatcher:
    async def test_failed_result_sends_nothing(self, dispatcher, transport):
        result = CapabilityResult("Sorry", success=False)
        assert await dispatcher.dispatch(build_message("hi"), result) == 0
        transport.send_text.assert_not_called()

    async def test_empty_result_sends_nothing(self, dispatcher, transport):
        assert await dispatcher.dispatch(build_message("hi"), CapabilityResult("")) == 0
        transport.send_text.assert_not_called()

    async def test_dm_reply_not_quoted(self, dispatcher, transport):
        msg = build_message("hi")
        assert await dispatcher.dispatch(msg, CapabilityResult("Hello!")) == 1
        transport.send_text.assert_awaited_once_with(USER_JID, "Hello!", quoted=None)

    async def test_group_reply_quotes_trigger(self, dispatcher, transport):
        msg = build_message("hi", chat=GROUP_JID, participant=USER_JID)
        await dispatcher.dispatch(msg, CapabilityResult("Hello!"))
        transport.send_text.assert_awaited_once_with(GROUP_JID, "Hello!", quoted=msg)

    async def test_chunks_sent_in_order_with_delay(self, dispatcher, transport, sleep):
        text = "First paragraph.\n\nSecond paragraph."
        assert await dispatcher.dispatch(build_message("hi"), CapabilityResult(text)) == 2
        sent = [c.args[1] for c in transport.send_text.await_args_list]
        assert sent == ["First paragraph.", "Second paragraph."]
        sleep.assert_awaited_once_with(0.0)

    async def test_chunking_disabled(self, transport, sleep):
        d = ResponseDispatcher(transport, cfg(25), chunking=False, sleep=sleep)
        text = "First paragraph.\n\nSecond paragraph."
        assert await d.dispatch(build_message("hi"), CapabilityResult(text)) == 1
        sleep.assert_not_called()

    async def test_audio_sent_as_voice_note(self, dispatcher, transport):
        result = CapabilityResult("spoken", audio=b"ogg")
        assert await dispatcher.dispatch(build_message("hi"), result) == 1
        transport.send_audio.assert_awaited_once_with(USER_JID, b"ogg", quoted=None)
        transport.send_text.assert_not_called()

    async def test_send_failure_is_contained(self, dispatcher, transport):
        transport.send_text.side_effect = httpx.ConnectError("down")
        assert await dispatcher.dispatch(build_message("hi"), CapabilityResult("Hello")) == 0
