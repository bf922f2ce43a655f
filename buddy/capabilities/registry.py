"""Capability slots, their feature flags and the per-kind waterfall order."""

from __future__ import annotations

from buddy.capabilities.intents import generation_gate, search_gate, url_gate
from buddy.config import FeatureFlags
from buddy.core.waterfall import CapabilityHandler
from buddy.models import ContentKind
from buddy.utils.logging import get_logger

log = get_logger(__name__)

GENERATE_IMAGE = "generate_image"
GENERATE_DOCUMENT = "generate_document"
SUMMARIZE_URL = "summarize_url"
WEB_SEARCH = "web_search"
POLL_VOTE = "poll_vote"
POLL_STATUS = "poll_status"
POLL_END = "poll_end"
POLL_CREATE = "poll_create"
REMINDER_SNOOZE = "reminder_snooze"
REMINDER_DONE = "reminder_done"
REMINDER_CANCEL = "reminder_cancel"
REMINDER_LIST = "reminder_list"
REMINDER_TEST = "reminder_test"
REMINDER_CREATE = "reminder_create"
SEMANTIC_SEARCH = "semantic_search"
SUMMARY = "summary"
CODE_EXECUTION = "code_execution"
CALENDAR = "calendar"
GROUP_ADMIN = "group_admin"
KNOWLEDGE_BASE = "knowledge_base"
STICKER_COMMAND = "sticker_command"
CONVERSATION = "conversation"

STICKER_FROM_IMAGE = "sticker_from_image"
DESCRIBE_IMAGE = "describe_image"
VOICE = "voice"
VIDEO = "video"
DOCUMENT = "document"

TEXT_WATERFALL: tuple[str, ...] = (
    GENERATE_IMAGE,
    GENERATE_DOCUMENT,
    SUMMARIZE_URL,
    WEB_SEARCH,
    POLL_VOTE,
    POLL_STATUS,
    POLL_END,
    POLL_CREATE,
    REMINDER_SNOOZE,
    REMINDER_DONE,
    REMINDER_CANCEL,
    REMINDER_LIST,
    REMINDER_TEST,
    REMINDER_CREATE,
    SEMANTIC_SEARCH,
    SUMMARY,
    CODE_EXECUTION,
    CALENDAR,
    GROUP_ADMIN,
    KNOWLEDGE_BASE,
    STICKER_COMMAND,
    CONVERSATION,
)

WATERFALLS: dict[ContentKind, tuple[str, ...]] = {
    ContentKind.TEXT: TEXT_WATERFALL,
    ContentKind.IMAGE: (STICKER_FROM_IMAGE, DESCRIBE_IMAGE),
    ContentKind.AUDIO: (VOICE,),
    ContentKind.VIDEO: (VIDEO,),
    ContentKind.DOCUMENT: (DOCUMENT,),
}

# Slots that only run when their feature flag is on. Unlisted slots always run.
SLOT_FLAGS: dict[str, str] = {
    SUMMARIZE_URL: "url_summarization",
    WEB_SEARCH: "web_search",
    POLL_VOTE: "poll_creator",
    POLL_STATUS: "poll_creator",
    POLL_END: "poll_creator",
    POLL_CREATE: "poll_creator",
    REMINDER_SNOOZE: "reminder_system",
    REMINDER_DONE: "reminder_system",
    REMINDER_CANCEL: "reminder_system",
    REMINDER_LIST: "reminder_system",
    REMINDER_TEST: "reminder_system",
    REMINDER_CREATE: "reminder_system",
    SEMANTIC_SEARCH: "semantic_memory",
    SUMMARY: "conversation_summaries",
    CODE_EXECUTION: "code_execution",
    CALENDAR: "calendar_integration",
    GROUP_ADMIN: "group_admin_controls",
    KNOWLEDGE_BASE: "group_knowledge_base",
    STICKER_COMMAND: "sticker_creation",
    STICKER_FROM_IMAGE: "sticker_creation",
    VIDEO: "video_analysis",
}

# Intent gates wrapped around collaborator handlers when they run in a waterfall
_GATES = {
    GENERATE_IMAGE: lambda h: generation_gate("image", h),
    GENERATE_DOCUMENT: lambda h: generation_gate("document", h),
    SUMMARIZE_URL: url_gate,
    WEB_SEARCH: search_gate,
}

_KNOWN_SLOTS = frozenset(slot for order in WATERFALLS.values() for slot in order)


class CapabilityRegistry:
    """Maps slot names to handlers, honouring the feature flags."""

    def __init__(self, features: FeatureFlags) -> None:
        self._features = features
        self._handlers: dict[str, CapabilityHandler] = {}

    def register(self, slot: str, handler: CapabilityHandler) -> None:
        if slot not in _KNOWN_SLOTS:
            raise ValueError(f"Unknown capability slot: {slot}")
        self._handlers[slot] = handler
        log.debug("capability_registered", slot=slot)

    def register_many(self, handlers: dict[str, CapabilityHandler]) -> None:
        for slot, handler in handlers.items():
            self.register(slot, handler)

    def get_raw(self, slot: str) -> CapabilityHandler | None:
        """The registered handler without its intent gate, or None when unavailable."""
        flag = SLOT_FLAGS.get(slot)
        if flag is not None and not self._features.is_enabled(flag):
            return None
        return self._handlers.get(slot)

    def get(self, slot: str) -> CapabilityHandler | None:
        """The handler for a slot as the waterfall runs it, intent gate included."""
        handler = self.get_raw(slot)
        if handler is None or slot not in _GATES:
            return handler
        return _GATES[slot](handler)

    def is_registered(self, slot: str) -> bool:
        return slot in self._handlers

    def waterfall(self, kind: ContentKind) -> list[tuple[str, CapabilityHandler]]:
        """Active handlers for a content kind, in waterfall order."""
        active = []
        for slot in WATERFALLS.get(kind, ()):
            handler = self.get(slot)
            if handler is not None:
                active.append((slot, handler))
        return active
