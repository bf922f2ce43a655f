"""System prompt construction for the conversation handler."""

from __future__ import annotations

from buddy.core.tool_catalog import ToolDefinition
from buddy.models import MessageContext


_BASE_PROMPT = """\
You are {name}, a friendly assistant chatting with people on WhatsApp.

Guidelines:
- Be concise. You're texting, not writing essays. Match the energy and length of the conversation.
- Use WhatsApp formatting sparingly: *bold*, _italic_, and short bullet lists.
- If you don't know something, say so instead of guessing.
- When a tool can do what the user asked, use it rather than describing how they could do it.
"""

_GROUP_CONTEXT = """
Current context:
You are in a group chat called "{group}".
Only respond when mentioned, replied to, or when you can add genuine value.
Keep responses concise and group-appropriate."""

_DM_CONTEXT = """
Current context:
You are in a direct conversation with {user}.
Be conversational and helpful. Remember past interactions if context is provided."""


def build_system_prompt(
    bot_name: str,
    context: MessageContext,
    tools: list[ToolDefinition] | None = None,
) -> str:
    """Build the full system prompt for one message."""
    parts = [_BASE_PROMPT.format(name=bot_name)]

    if tools:
        parts.append("Available tools:")
        for tool in tools:
            parts.append(f"- **{tool.name}**: {tool.description}")

    if context.is_group:
        parts.append(_GROUP_CONTEXT.format(group=context.group_name or context.chat_jid))
    else:
        parts.append(_DM_CONTEXT.format(user=context.sender_name))

    return "\n".join(parts)
