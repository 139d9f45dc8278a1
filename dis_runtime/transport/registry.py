"""
Fan-out of decoded DIS traffic to every registered output.

One receiver usually drives several outputs at once (console plus a UDP
rebroadcast, for example). An adapter that raises is logged and counted;
the remaining adapters and the tick loop carry on.
"""

import logging
from collections import Counter
from typing import Awaitable, Callable

from dis_runtime.codec.pdus import Pdu
from dis_runtime.core.tracker import EntityEvent
from dis_runtime.transport.base import TransportAdapter

logger = logging.getLogger(__name__)


class TransportRegistry:
    """Ordered set of transport adapters sharing one event stream."""

    def __init__(self):
        self._adapters: list[TransportAdapter] = []
        self._failures: Counter[str] = Counter()

    def register(self, adapter: TransportAdapter) -> None:
        self._adapters.append(adapter)
        logger.info(f"Registered transport: {adapter.name}")

    async def _fan_out(self, action: str, call: Callable[[TransportAdapter], Awaitable[None]]) -> None:
        for adapter in self._adapters:
            try:
                await call(adapter)
            except Exception as e:
                self._failures[adapter.name] += 1
                logger.warning(f"Transport {adapter.name} {action} failed: {e}")

    async def connect_all(self) -> None:
        await self._fan_out("connect", lambda a: a.connect())

    async def disconnect_all(self) -> None:
        await self._fan_out("disconnect", lambda a: a.disconnect())

    async def push_entity_event(self, event: EntityEvent) -> None:
        await self._fan_out("entity event", lambda a: a.push_entity_event(event))

    async def push_bulk_update(self, events: list[EntityEvent]) -> None:
        """Hand one tick's entity events to each adapter. Empty ticks are skipped."""
        if events:
            await self._fan_out("bulk update", lambda a: a.push_bulk_update(events))

    async def push_event(self, pdu: Pdu) -> None:
        await self._fan_out(f"{type(pdu).__name__} push", lambda a: a.push_event(pdu))

    @property
    def failures(self) -> dict[str, int]:
        """Failed calls per adapter name since startup."""
        return dict(self._failures)

    @property
    def transport_names(self) -> list[str]:
        return [a.name for a in self._adapters]

    @property
    def count(self) -> int:
        return len(self._adapters)
