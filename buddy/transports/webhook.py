"""Inbound Evolution API webhooks using aiohttp."""

from __future__ import annotations

import asyncio
import hmac
from typing import Any, Awaitable, Callable

from aiohttp import web

from buddy.config import WebhookConfig
from buddy.models import InboundMessage, ParticipantsUpdate
from buddy.utils.logging import get_logger

log = get_logger(__name__)

MESSAGES_UPSERT = "messages.upsert"
GROUP_PARTICIPANTS_UPDATE = "group-participants.update"

BatchHandler = Callable[[list[InboundMessage]], Awaitable[None]]
ParticipantsHandler = Callable[[ParticipantsUpdate], Awaitable[None]]


class InvalidPayloadError(Exception):
    """Raised when a webhook body does not have the expected shape."""


def event_name(payload: dict[str, Any]) -> str:
    """Event names arrive as ``messages.upsert`` or ``MESSAGES_UPSERT``."""
    event = payload.get("event")
    if not isinstance(event, str) or not event:
        raise InvalidPayloadError("missing event")
    name = event.lower().replace("_", ".")
    if name == "group.participants.update":
        return GROUP_PARTICIPANTS_UPDATE
    return name


def parse_messages(payload: dict[str, Any]) -> list[InboundMessage]:
    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("messages"), list):
        data = data["messages"]
    items = data if isinstance(data, list) else [data]

    messages = []
    for item in items:
        if not isinstance(item, dict):
            raise InvalidPayloadError("message entry is not an object")
        key = item.get("key")
        if not isinstance(key, dict) or not key.get("remoteJid"):
            raise InvalidPayloadError("missing key.remoteJid")
        messages.append(InboundMessage.from_payload(item))
    return messages


def parse_participants(payload: dict[str, Any]) -> ParticipantsUpdate:
    data = payload.get("data")
    if not isinstance(data, dict):
        raise InvalidPayloadError("missing data")
    chat = data.get("id") or data.get("groupJid")
    if not chat:
        raise InvalidPayloadError("missing group id")
    participants = data.get("participants") or []
    if not isinstance(participants, list):
        raise InvalidPayloadError("participants is not a list")
    jids = tuple(p["id"] if isinstance(p, dict) else str(p) for p in participants)
    return ParticipantsUpdate(chat_jid=chat, participants=jids, action=str(data.get("action", "")))


def validate_secret(provided: str, configured: str) -> bool:
    """Constant-time secret check. An unset secret accepts everything."""
    if not configured:
        return True
    if not provided:
        return False
    return hmac.compare_digest(provided, configured)


class WebhookServer:
    """Receives Evolution API events and hands them to the engine."""

    def __init__(
        self,
        config: WebhookConfig,
        on_messages: BatchHandler,
        on_participants: ParticipantsHandler,
    ) -> None:
        self._config = config
        self._on_messages = on_messages
        self._on_participants = on_participants
        self._runner: web.AppRunner | None = None
        self._tasks: set[asyncio.Future[None]] = set()

    async def start(self) -> None:
        if not self._config.secret:
            log.warning("webhook_no_secret", path=self._config.path)
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.bind, self._config.port)
        await site.start()
        log.info("webhook_server_started", bind=self._config.bind, port=self._config.port)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        log.info("webhook_server_stopped")

    def build_app(self) -> web.Application:
        app = web.Application()
        path = self._config.path if self._config.path.startswith("/") else f"/{self._config.path}"
        app.router.add_post(path, self._handle_webhook)
        # Evolution can append the event name to the configured URL
        app.router.add_post(f"{path.rstrip('/')}/{{event}}", self._handle_webhook)
        return app

    async def _handle_webhook(self, request: web.Request) -> web.Response:
        try:
            payload: dict[str, Any] = await request.json()
        except ValueError:
            return web.Response(status=400, text="Invalid JSON")
        if not isinstance(payload, dict):
            return web.Response(status=400, text="Invalid payload")

        provided = request.headers.get(
            "X-Webhook-Secret", request.headers.get("apikey", str(payload.get("apikey") or ""))
        )
        if not validate_secret(provided, self._config.secret):
            return web.Response(status=401, text="Invalid secret")

        try:
            job = self._dispatch(payload)
        except InvalidPayloadError as e:
            log.warning("webhook_invalid_payload", error=str(e))
            return web.Response(status=400, text=str(e))

        if job is not None:
            task = asyncio.ensure_future(job)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return web.Response(status=200, text="OK")

    def _dispatch(self, payload: dict[str, Any]) -> Awaitable[None] | None:
        event = event_name(payload)
        if event == MESSAGES_UPSERT:
            messages = parse_messages(payload)
            log.debug("webhook_messages", count=len(messages))
            return self._on_messages(messages)
        if event == GROUP_PARTICIPANTS_UPDATE:
            update = parse_participants(payload)
            log.debug("webhook_participants", chat=update.chat_jid, action=update.action)
            return self._on_participants(update)
        log.debug("webhook_event_ignored", webhook_event=event)
        return None
