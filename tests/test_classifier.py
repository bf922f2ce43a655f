"""Tests for content classification, text extraction and mention parsing."""

import pytest

from buddy.core.classifier import content_type, detect_content_kind, extract_text
from buddy.group.mentions import parse_mentions
from buddy.models import ContentKind, InboundMessage
from conftest import BOT_JID, GROUP_JID, USER_JID, build_message


class TestDetectContentKind:
    @pytest.mark.parametrize("key,kind", [
        ("conversation", ContentKind.TEXT),
        ("extendedTextMessage", ContentKind.TEXT),
        ("imageMessage", ContentKind.IMAGE),
        ("audioMessage", ContentKind.AUDIO),
        ("videoMessage", ContentKind.VIDEO),
        ("stickerMessage", ContentKind.STICKER),
        ("documentMessage", ContentKind.DOCUMENT),
        ("documentWithCaptionMessage", ContentKind.DOCUMENT),
        ("reactionMessage", ContentKind.UNKNOWN),
    ])
    def test_kinds(self, key, kind):
        msg = build_message(content={key: {}})
        assert detect_content_kind(msg) is kind

    def test_ephemeral_wrapper_unwrapped(self):
        msg = build_message(content={
            "ephemeralMessage": {"message": {"extendedTextMessage": {
                "text": "@buddy hi", "contextInfo": {"mentionedJid": [BOT_JID]},
            }}},
        })
        assert detect_content_kind(msg) is ContentKind.TEXT
        assert extract_text(msg) == "@buddy hi"
        assert parse_mentions(msg, BOT_JID).addresses_bot

    def test_nested_view_once_image(self):
        msg = build_message(content={
            "ephemeralMessage": {"message": {"viewOnceMessageV2": {"message": {
                "imageMessage": {"caption": "look"},
            }}}},
        })
        assert detect_content_kind(msg) is ContentKind.IMAGE
        assert extract_text(msg) == "look"

    def test_metadata_keys_are_skipped(self):
        content = {"messageContextInfo": {}, "imageMessage": {"caption": "x"}}
        assert content_type(content) == "imageMessage"
        assert detect_content_kind(build_message(content=content)) is ContentKind.IMAGE

    def test_no_content_is_unknown(self):
        assert detect_content_kind(build_message(None)) is ContentKind.UNKNOWN


class TestExtractText:
    def test_plain_body(self):
        assert extract_text(build_message("hi")) == "hi"

    def test_plain_body_wins(self):
        msg = build_message(content={
            "conversation": "plain",
            "extendedTextMessage": {"text": "extended"},
        })
        assert extract_text(msg) == "plain"

    def test_extended_text(self):
        msg = build_message(content={"extendedTextMessage": {"text": "ext"}})
        assert extract_text(msg) == "ext"

    def test_image_caption(self):
        msg = build_message(content={"imageMessage": {"caption": "look"}})
        assert extract_text(msg) == "look"

    def test_video_caption(self):
        msg = build_message(content={"videoMessage": {"caption": "watch"}})
        assert extract_text(msg) == "watch"

    def test_audio_has_no_text(self):
        assert extract_text(build_message(content={"audioMessage": {}})) is None


class TestInboundMessage:
    def test_group_sender_is_participant(self):
        msg = build_message("hi", chat=GROUP_JID, participant=USER_JID)
        assert msg.is_group
        assert msg.sender_jid == USER_JID

    def test_dm_sender_is_chat(self):
        msg = build_message("hi")
        assert not msg.is_group
        assert msg.sender_jid == USER_JID

    def test_long_timestamp(self):
        msg = InboundMessage.from_payload({
            "key": {"remoteJid": USER_JID, "id": "x"},
            "messageTimestamp": {"low": 42, "high": 0},
            "message": {"conversation": "hi"},
        })
        assert msg.timestamp == 42.0

    def test_forwarded_flag(self):
        msg = build_message("fwd", context_info={"isForwarded": True})
        assert msg.is_forwarded


class TestParseMentions:
    def test_no_context_info(self):
        info = parse_mentions(build_message("hi"), BOT_JID)
        assert not info.addresses_bot
        assert info.mentioned_ids == ()

    def test_bot_mentioned(self):
        msg = build_message("@bot hi", chat=GROUP_JID, participant=USER_JID,
                            context_info={"mentionedJid": [BOT_JID, USER_JID]})
        info = parse_mentions(msg, BOT_JID)
        assert info.is_bot_mentioned
        assert info.mentioned_ids == (BOT_JID, USER_JID)

    def test_reply_to_bot_with_quoted_text(self):
        msg = build_message("thanks", chat=GROUP_JID, participant=USER_JID, context_info={
            "participant": "15550000000:7@s.whatsapp.net",
            "quotedMessage": {"conversation": "earlier answer"},
        })
        info = parse_mentions(msg, BOT_JID)
        assert info.is_reply_to_bot
        assert not info.is_bot_mentioned
        assert info.quoted_text == "earlier answer"

    def test_reply_to_someone_else(self):
        msg = build_message("thanks", chat=GROUP_JID, participant=USER_JID, context_info={
            "participant": USER_JID,
            "quotedMessage": {"extendedTextMessage": {"text": "their text"}},
        })
        info = parse_mentions(msg, BOT_JID)
        assert not info.is_reply_to_bot
        assert info.quoted_text == "their text"
