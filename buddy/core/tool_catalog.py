"""Tool definitions offered to the model, filtered per message."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from buddy.config import FeatureFlags
from buddy.models import MessageContext


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: dict[str, Any] = field(default_factory=dict)

    def to_anthropic_schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


def _text_schema(description: str, key: str = "text") -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {key: {"type": "string", "description": description}},
        "required": [key],
    }


GENERATE_IMAGE = ToolDefinition(
    "generate_image",
    "Generate an image from a text description. Use when the user asks to create, draw, "
    "design, or generate a picture, photo, illustration, logo, or artwork.",
    _text_schema("Detailed description of the image to generate", key="prompt"),
)

GENERATE_DOCUMENT = ToolDefinition(
    "generate_document",
    "Generate a document (PDF, Word, PowerPoint, or Excel). Use when the user asks to create, "
    "make, or generate a document, report, presentation, spreadsheet, or file.",
    _text_schema("The full document generation request as the user said it", key="request"),
)

SUMMARIZE_URL = ToolDefinition(
    "summarize_url",
    "Summarize the content of a URL/webpage. Use when the user shares a link and wants a "
    "summary or analysis of its content.",
    _text_schema("The message text containing the URL to summarize"),
)

WEB_SEARCH = ToolDefinition(
    "web_search",
    "Search the web for current information. Use when the user asks about recent events, "
    "needs up-to-date facts, or asks you to look something up online.",
    _text_schema("The search query", key="query"),
)

SET_REMINDER = ToolDefinition(
    "set_reminder",
    "Set a reminder for the user. Use when they ask to be reminded about something at a "
    "specific time or after a duration.",
    _text_schema(
        'The full reminder request as the user said it '
        '(e.g. "remind me to call mom in 30 minutes")'
    ),
)

LIST_REMINDERS = ToolDefinition(
    "list_reminders",
    "List all active reminders for the user. Use when they ask to see, show, or list their "
    "reminders.",
    _text_schema("The original message text"),
)

CANCEL_REMINDER = ToolDefinition(
    "cancel_reminder",
    "Cancel an existing reminder. Use when the user asks to cancel, delete, or remove a "
    "reminder.",
    _text_schema("The cancel reminder request text"),
)

CREATE_POLL = ToolDefinition(
    "create_poll",
    "Create a poll in a group chat. Use when the user asks to create a poll, vote, or survey "
    "with options.",
    _text_schema("The full poll creation request"),
)

SEARCH_MEMORY = ToolDefinition(
    "search_memory",
    'Search through conversation memory and stored knowledge. Use when the user asks "do you '
    'remember", "what did I say about", or wants to recall past conversations.',
    _text_schema("The memory search query text"),
)

SUMMARIZE_CHAT = ToolDefinition(
    "summarize_chat",
    'Summarize recent chat conversation history. Use when the user asks for a summary of the '
    'chat, what happened, or "tldr".',
    _text_schema("The summary request text"),
)

EXECUTE_CODE = ToolDefinition(
    "execute_code",
    "Execute code (JavaScript/Python). Use when the user asks to run, execute, or evaluate "
    "code, or wants a calculation performed programmatically.",
    _text_schema("The code execution request text"),
)

CALENDAR_COMMAND = ToolDefinition(
    "calendar_command",
    "Manage calendar events. Use when the user asks about their schedule, wants to add or "
    "remove calendar events, or check upcoming appointments.",
    _text_schema("The calendar command text"),
)

ADMIN_COMMAND = ToolDefinition(
    "admin_command",
    "Execute group admin commands. Use when someone uses admin commands like /admin help, "
    "/set welcome, /enable spam or /response rate in a group chat.",
    _text_schema("The admin command text"),
)

KNOWLEDGE_BASE = ToolDefinition(
    "knowledge_base",
    "Access or manage the group knowledge base. Use when the user asks to save, search, or "
    "retrieve information from the group knowledge base.",
    _text_schema("The knowledge base command text"),
)

CREATE_STICKER = ToolDefinition(
    "create_sticker",
    "Create a sticker from an image. Use when the user asks to make, create, or convert "
    "something into a sticker.",
    _text_schema("The sticker creation request text"),
)

ALL_TOOLS: tuple[ToolDefinition, ...] = (
    GENERATE_IMAGE,
    GENERATE_DOCUMENT,
    SUMMARIZE_URL,
    WEB_SEARCH,
    SET_REMINDER,
    LIST_REMINDERS,
    CANCEL_REMINDER,
    CREATE_POLL,
    SEARCH_MEMORY,
    SUMMARIZE_CHAT,
    EXECUTE_CODE,
    CALENDAR_COMMAND,
    ADMIN_COMMAND,
    KNOWLEDGE_BASE,
    CREATE_STICKER,
)


def build_tool_catalog(
    features: FeatureFlags,
    context: MessageContext,
    search_available: bool = False,
) -> list[ToolDefinition]:
    """Tools for this message. Group-only tools are left out of direct chats."""
    tools = [GENERATE_IMAGE, GENERATE_DOCUMENT]

    if features.url_summarization:
        tools.append(SUMMARIZE_URL)
    if search_available:
        tools.append(WEB_SEARCH)
    if features.reminder_system:
        tools.extend((SET_REMINDER, LIST_REMINDERS, CANCEL_REMINDER))
    if features.poll_creator and context.is_group:
        tools.append(CREATE_POLL)
    if features.semantic_memory:
        tools.append(SEARCH_MEMORY)
    if features.conversation_summaries:
        tools.append(SUMMARIZE_CHAT)
    if features.code_execution:
        tools.append(EXECUTE_CODE)
    if features.calendar_integration:
        tools.append(CALENDAR_COMMAND)
    if features.group_admin_controls and context.is_group:
        tools.append(ADMIN_COMMAND)
    if features.group_knowledge_base and context.is_group:
        tools.append(KNOWLEDGE_BASE)
    if features.sticker_creation:
        tools.append(CREATE_STICKER)

    return tools
