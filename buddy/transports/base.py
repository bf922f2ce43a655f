"""Abstract transport base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Literal

from buddy.models import InboundMessage
from buddy.utils.jid import same_user

Presence = Literal["composing", "paused", "recording", "available", "unavailable"]


@dataclass(frozen=True)
class GroupParticipant:
    jid: str
    admin: str | None = None  # "admin", "superadmin" or None

    @property
    def is_admin(self) -> bool:
        return self.admin in ("admin", "superadmin")


@dataclass(frozen=True)
class GroupMetadata:
    jid: str
    subject: str = ""
    creation: int | None = None
    participants: tuple[GroupParticipant, ...] = field(default_factory=tuple)

    def participant(self, jid: str) -> GroupParticipant | None:
        for p in self.participants:
            if same_user(p.jid, jid):
                return p
        return None

    def is_admin(self, jid: str) -> bool:
        p = self.participant(jid)
        return p is not None and p.is_admin


class Transport(ABC):
    """Outbound side of a messaging connection.

    ``quoted`` makes the send a reply to that inbound message where the
    platform supports it.
    """

    @property
    @abstractmethod
    def platform_name(self) -> str: ...

    @abstractmethod
    async def start(self) -> None: ...

    @abstractmethod
    async def stop(self) -> None: ...

    @abstractmethod
    async def send_text(
        self,
        chat_jid: str,
        text: str,
        *,
        quoted: InboundMessage | None = None,
        mentions: list[str] | None = None,
    ) -> None: ...

    @abstractmethod
    async def send_audio(
        self,
        chat_jid: str,
        audio: bytes,
        *,
        quoted: InboundMessage | None = None,
    ) -> None: ...

    @abstractmethod
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
    ) -> None: ...

    @abstractmethod
    async def set_presence(self, chat_jid: str, presence: Presence) -> None: ...

    @abstractmethod
    async def group_metadata(self, chat_jid: str) -> GroupMetadata: ...
