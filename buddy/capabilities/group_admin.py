"""Group admin slash commands: welcome text, moderation toggles, response rate."""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime

from buddy.core.waterfall import Accepted, CapabilityOutcome, CapabilityRequest, Declined
from buddy.group.moderation import is_group_admin
from buddy.group.settings import GroupSettings, GroupSettingsStore
from buddy.models import CapabilityResult
from buddy.utils.logging import get_logger

log = get_logger(__name__)

_HELP_RE = re.compile(r"^/(?:admin|mod)\s+help$", re.I)
_SET_WELCOME_RE = re.compile(r"^/(?:set|add)\s+welcome\s+(.+)", re.I | re.S)
_REMOVE_WELCOME_RE = re.compile(r"^/(?:remove|delete)\s+welcome$", re.I)
_SHOW_WELCOME_RE = re.compile(r"^/(?:show|view)\s+welcome$", re.I)
_TOGGLE_RE = re.compile(r"^/(enable|disable)\s+(spam|links|forwards)$", re.I)
_INFO_RE = re.compile(r"^/(?:group|chat)\s+info$", re.I)
_RATE_RE = re.compile(r"^/(?:set\s+)?response(?:\s+rate)?\s*(\d+)$", re.I)

_TOGGLE_FIELDS = {
    "spam": "spam_detection",
    "links": "link_blocking",
    "forwards": "forward_blocking",
}

HELP_TEXT = (
    "🛡️ *Group Admin Commands*\n\n"
    "*Welcome Messages:*\n"
    "• `/set welcome [message]` - Set welcome message\n"
    "  Use @user to mention new members\n"
    "• `/show welcome` - View current welcome\n"
    "• `/remove welcome` - Remove welcome\n\n"
    "*Moderation:*\n"
    "• `/enable spam` - Enable spam detection\n"
    "• `/disable links` - Disable link blocking\n"
    "• `/enable forwards` - Block forwarded msgs\n\n"
    "*Bot Behavior:*\n"
    "• `/response rate [0-100]` - Set response %\n"
    "  (e.g., `/response rate 50` for 50%)\n\n"
    "*Group Info:*\n"
    "• `/group info` - Show group stats\n"
)


def _reply(text: str, success: bool = True) -> Accepted:
    return Accepted(CapabilityResult(response_text=text, success=success))


def _mark(flag: bool) -> str:
    return "✅" if flag else "❌"


class GroupAdminCapability:
    """Admin-only commands for group chats. Non-admins may only read the help."""

    def __init__(self, settings: GroupSettingsStore) -> None:
        self._settings = settings

    async def __call__(self, request: CapabilityRequest) -> CapabilityOutcome:
        ctx = request.context
        if not ctx.is_group:
            return Declined("not a group")

        text = request.text.strip()
        if not text.startswith("/"):
            return Declined("not a command")
        is_admin = await is_group_admin(request.transport, ctx.chat_jid, ctx.sender_jid)

        if _HELP_RE.match(text):
            if is_admin:
                return _reply(HELP_TEXT)
            return _reply(f"{HELP_TEXT}\n_⚠️ You need admin rights to use these commands_")

        if not is_admin:
            return Declined("sender is not an admin")

        chat = ctx.chat_jid

        match = _SET_WELCOME_RE.match(text)
        if match:
            welcome = match.group(1).strip()
            await self._settings.set_welcome(chat, welcome)
            log.info("welcome_message_set", chat=chat, by=ctx.sender_jid)
            return _reply(
                f'✅ Welcome message set!\n\n"{welcome}"\n\n'
                "_New members will see this when they join._"
            )

        if _SHOW_WELCOME_RE.match(text):
            current = (await self._settings.get(chat)).welcome_message
            if not current:
                return _reply(
                    "❌ No welcome message set.\n\nUse `/set welcome [message]` to set one.",
                    success=False,
                )
            return _reply(f'📋 *Current Welcome Message:*\n\n"{current}"')

        if _REMOVE_WELCOME_RE.match(text):
            await self._settings.set_welcome(chat, None)
            log.info("welcome_message_removed", chat=chat)
            return _reply("✅ Welcome message removed.")

        match = _TOGGLE_RE.match(text)
        if match:
            action, feature = match.group(1).lower(), match.group(2).lower()
            settings = replace(
                await self._settings.get(chat),
                **{_TOGGLE_FIELDS[feature]: action == "enable"},
            )
            await self._settings.save(settings)
            log.info("moderation_toggled", chat=chat, feature=feature, action=action)
            return _reply(f"✅ {feature} detection {action}d.")

        if _INFO_RE.match(text):
            return await self._group_info(request, await self._settings.get(chat))

        match = _RATE_RE.match(text)
        if match:
            rate = int(match.group(1))
            try:
                await self._settings.set_response_rate(chat, rate)
            except ValueError:
                return _reply(
                    "❌ Invalid rate. Please use a number between 0 and 100.", success=False
                )
            if rate == 0:
                note = "_Bot will only respond when @mentioned or replied to._"
            else:
                note = f"_Bot will respond to ~{rate}% of substantive messages._"
            return _reply(f"✅ Bot response rate set to {rate}%.\n\n{note}")

        return Declined("not an admin command")

    async def _group_info(
        self, request: CapabilityRequest, settings: GroupSettings
    ) -> CapabilityOutcome:
        try:
            metadata = await request.transport.group_metadata(settings.chat_jid)
        except Exception:
            log.exception("group_info_failed", chat=settings.chat_jid)
            return _reply("❌ Failed to get group info.", success=False)

        created = (
            datetime.fromtimestamp(metadata.creation).strftime("%Y-%m-%d")
            if metadata.creation
            else "unknown"
        )
        return _reply(
            "📊 *Group Info*\n\n"
            f"*Name:* {metadata.subject}\n"
            f"*Members:* {len(metadata.participants)}\n"
            f"*Created:* {created}\n\n"
            "*Moderation:*\n"
            f"• Spam detection: {_mark(settings.spam_detection)}\n"
            f"• Link blocking: {_mark(settings.link_blocking)}\n"
            f"• Forward blocking: {_mark(settings.forward_blocking)}\n"
            f"• Welcome messages: {_mark(settings.welcome_enabled)}\n\n"
            "*Bot Settings:*\n"
            f"• Response rate: {settings.response_rate}%\n"
        )
