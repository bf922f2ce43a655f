"""Buddy transports."""

from buddy.transports.base import GroupMetadata, GroupParticipant, Transport
from buddy.transports.evolution import EvolutionTransport

__all__ = [
    "GroupMetadata",
    "GroupParticipant",
    "Transport",
    "EvolutionTransport",
]
