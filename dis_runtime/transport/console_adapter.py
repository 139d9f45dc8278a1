"""
Debug transport adapter that prints entity poses to stdout.

Useful for watching an exercise without a visual host. Poses are
converted to latitude/longitude and local heading/pitch/roll first.
Dead reckoned updates are rate-limited per entity; lifecycle events
always print.
"""

import time

from dis_runtime.codec.pdus import DetonationPdu, FirePdu, Pdu
from dis_runtime.core.tracker import EntityEvent, EntityEventType
from dis_runtime.geodesy.frames import geodetic_pose
from dis_runtime.transport.base import TransportAdapter


class ConsoleAdapter(TransportAdapter):
    """Prints entity events and pass-through PDUs to the console."""

    def __init__(self, min_interval: float = 5.0) -> None:
        """
        Args:
            min_interval: Minimum seconds between pose prints for the same entity.
        """
        self._min_interval = min_interval
        self._last_print: dict[str, float] = {}

    @property
    def name(self) -> str:
        return "console"

    async def connect(self) -> None:
        print("[CONSOLE] Transport adapter connected")

    async def disconnect(self) -> None:
        print("[CONSOLE] Transport adapter disconnected")

    async def push_entity_event(self, event: EntityEvent) -> None:
        key = str(event.entity_id)
        if event.event_type in (EntityEventType.UPDATED, EntityEventType.DEAD_RECKONED):
            now = time.monotonic()
            last = self._last_print.get(key)
            if last is not None and now - last < self._min_interval:
                return
            self._last_print[key] = now
        elif event.event_type == EntityEventType.REMOVED:
            self._last_print.pop(key, None)

        line = f"[{event.event_type.value:>13}] {key:<14}"
        if event.state is not None:
            pose = geodetic_pose(event.state)
            line += (
                f" {event.state.marking:<11} "
                f"@ ({pose.latitude:8.4f}, {pose.longitude:9.4f}, {pose.height:8.1f}m) "
                f"HDG {pose.heading:6.1f} PIT {pose.pitch:5.1f} ROL {pose.roll:6.1f}"
            )
        if event.reason:
            line += f" ({event.reason})"
        print(line)

    async def push_event(self, pdu: Pdu) -> None:
        if isinstance(pdu, (FirePdu, DetonationPdu)):
            ev = pdu.event_id
            print(
                f"[{type(pdu).__name__:>13}] {pdu.firing_entity_id} -> {pdu.target_entity_id} "
                f"event {ev.site}:{ev.application}:{ev.event_number}"
            )
        else:
            print(f"[{type(pdu).__name__:>13}] exercise {pdu.exercise_id}")
