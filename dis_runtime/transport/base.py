"""
Abstract base class for transport adapters.

The receiver pushes entity events and pass-through PDUs (Fire,
Detonation, simulation management) through every registered adapter.
Each adapter handles its own output format and delivery.
"""

from abc import ABC, abstractmethod

from dis_runtime.codec.pdus import Pdu
from dis_runtime.core.tracker import EntityEvent


class TransportAdapter(ABC):
    """Abstract transport adapter interface."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable adapter name."""
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Open sockets / start output."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        ...

    @abstractmethod
    async def push_entity_event(self, event: EntityEvent) -> None:
        """Deliver one entity lifecycle or pose event."""
        ...

    @abstractmethod
    async def push_event(self, pdu: Pdu) -> None:
        """Deliver a Fire, Detonation or simulation management PDU."""
        ...

    async def push_bulk_update(self, events: list[EntityEvent]) -> None:
        """Deliver a tick's worth of entity events."""
        for event in events:
            await self.push_entity_event(event)
