"""Capability outcomes and the first-acceptance-wins waterfall."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Iterable, Union

from buddy.models import CapabilityResult, ContentKind, InboundMessage, MessageContext
from buddy.utils.logging import get_logger

if TYPE_CHECKING:
    from buddy.transports.base import Transport

log = get_logger(__name__)


@dataclass(frozen=True)
class Accepted:
    result: CapabilityResult


@dataclass(frozen=True)
class Declined:
    reason: str = ""


CapabilityOutcome = Union[Accepted, Declined]


@dataclass(frozen=True)
class CapabilityRequest:
    """Everything a capability handler gets to look at.

    ``argument`` carries a value pulled out by an intent gate (a URL, a search
    query) so the wrapped handler does not have to parse the text again.
    """

    transport: Transport
    message: InboundMessage
    text: str
    context: MessageContext
    kind: ContentKind = ContentKind.TEXT
    argument: str | None = None


CapabilityHandler = Callable[[CapabilityRequest], Awaitable[CapabilityOutcome]]


async def run_waterfall(
    handlers: Iterable[tuple[str, CapabilityHandler]],
    request: CapabilityRequest,
) -> tuple[str, CapabilityResult] | None:
    """Offer the request to each handler in order; the first acceptance wins.

    Handler exceptions propagate to the caller.
    """
    for slot, handler in handlers:
        outcome = await handler(request)
        if isinstance(outcome, Accepted):
            log.debug("capability_accepted", slot=slot, chat=request.context.chat_jid)
            return slot, outcome.result
        if isinstance(outcome, Declined):
            continue
        raise TypeError(f"Capability {slot!r} returned {type(outcome).__name__}")
    return None
