"""Evolution API transport: WhatsApp over an HTTP gateway."""

from __future__ import annotations

import base64
from typing import Any, Literal

import httpx

from buddy.config import EvolutionConfig
from buddy.models import InboundMessage
from buddy.transports.base import GroupMetadata, GroupParticipant, Presence, Transport
from buddy.utils.logging import get_logger

log = get_logger(__name__)


def _quoted_payload(message: InboundMessage) -> dict[str, Any]:
    key: dict[str, Any] = {
        "id": message.message_id,
        "remoteJid": message.chat_jid,
        "fromMe": message.from_me,
    }
    if message.participant:
        key["participant"] = message.participant
    return {"key": key, "message": dict(message.content or {})}


def parse_group_metadata(chat_jid: str, data: dict[str, Any]) -> GroupMetadata:
    participants = tuple(
        GroupParticipant(jid=p.get("id", ""), admin=p.get("admin"))
        for p in data.get("participants") or []
        if p.get("id")
    )
    creation = data.get("creation")
    return GroupMetadata(
        jid=data.get("id") or chat_jid,
        subject=data.get("subject") or "",
        creation=int(creation) if creation else None,
        participants=participants,
    )


class EvolutionTransport(Transport):
    """Outbound half of an Evolution API instance.

    Every call raises ``httpx.HTTPStatusError`` on a non-2xx answer.
    """

    def __init__(self, config: EvolutionConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._http_client = client

    @property
    def platform_name(self) -> str:
        return "whatsapp"

    async def start(self) -> None:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self._config.base_url.rstrip("/"),
                headers={"apikey": self._config.api_key},
                timeout=self._config.timeout,
            )
        log.info("evolution_transport_started", instance=self._config.instance)

    async def stop(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        log.info("evolution_transport_stopped")

    def _path(self, endpoint: str) -> str:
        return f"{endpoint}/{self._config.instance}"

    async def _post(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        assert self._http_client is not None
        resp = await self._http_client.post(self._path(endpoint), json=body)
        resp.raise_for_status()
        return resp.json() if resp.content else {}

    async def send_text(
        self,
        chat_jid: str,
        text: str,
        *,
        quoted: InboundMessage | None = None,
        mentions: list[str] | None = None,
    ) -> None:
        body: dict[str, Any] = {"number": chat_jid, "text": text}
        if quoted is not None:
            body["quoted"] = _quoted_payload(quoted)
        if mentions:
            body["mentioned"] = list(mentions)
        await self._post("/message/sendText", body)
        log.debug("text_sent", chat=chat_jid, length=len(text))

    async def send_audio(
        self,
        chat_jid: str,
        audio: bytes,
        *,
        quoted: InboundMessage | None = None,
    ) -> None:
        body: dict[str, Any] = {
            "number": chat_jid,
            "audio": base64.b64encode(audio).decode("ascii"),
        }
        if quoted is not None:
            body["quoted"] = _quoted_payload(quoted)
        await self._post("/message/sendWhatsAppAudio", body)
        log.debug("audio_sent", chat=chat_jid, size=len(audio))

    async def send_media(
        self,
        chat_jid: str,
        media: bytes | str,
        *,
        mediatype: Literal["image", "video", "document"],
        mimetype: str,
        caption: str = "",
        file_name: str | None = None,
        quoted: InboundMessage | None = None,
    ) -> None:
        # A str is passed through as a URL; bytes go as base64
        if isinstance(media, bytes):
            media = base64.b64encode(media).decode("ascii")
        body: dict[str, Any] = {
            "number": chat_jid,
            "mediatype": mediatype,
            "mimetype": mimetype,
            "caption": caption,
            "media": media,
        }
        if file_name:
            body["fileName"] = file_name
        if quoted is not None:
            body["quoted"] = _quoted_payload(quoted)
        await self._post("/message/sendMedia", body)
        log.debug("media_sent", chat=chat_jid, mediatype=mediatype)

    async def set_presence(self, chat_jid: str, presence: Presence) -> None:
        try:
            await self._post(
                "/chat/sendPresence",
                {"number": chat_jid, "presence": presence, "delay": 1200},
            )
        except httpx.HTTPError as e:
            # Typing indicators are cosmetic
            log.debug("presence_update_failed", chat=chat_jid, error=str(e))

    async def group_metadata(self, chat_jid: str) -> GroupMetadata:
        assert self._http_client is not None
        resp = await self._http_client.get(
            self._path("/group/findGroupInfos"), params={"groupJid": chat_jid}
        )
        resp.raise_for_status()
        return parse_group_metadata(chat_jid, resp.json())
