"""
Per-entity state machine.

An EntityStateTracker owns the canonical EntityStateRecord of one entity
and decides, for every PDU and every tick, what the host should see. It
never raises for bad input from the network: unsupported dead reckoning
holds the last pose, and a removed tracker ignores everything.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum

from dis_runtime.codec.pdus import EntityStateUpdatePdu
from dis_runtime.core.entity import EntityID, EntityStateRecord
from dis_runtime.deadreckoning.algorithms import dead_reckon

logger = logging.getLogger(__name__)


class TrackerState(Enum):
    ACTIVE = "ACTIVE"
    REMOVED = "REMOVED"


class EntityEventType(Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DEAD_RECKONED = "DEAD_RECKONED"
    DEACTIVATED = "DEACTIVATED"
    REMOVED = "REMOVED"


@dataclass
class EntityEvent:
    """Lifecycle or pose notification for the host."""
    event_type: EntityEventType
    entity_id: EntityID
    state: EntityStateRecord | None = None
    elapsed_s: float = 0.0
    reason: str = ""
    owned_locally: bool = False

    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type.value,
            "entity_id": str(self.entity_id),
            "state": self.state.to_dict() if self.state else None,
            "elapsed_s": self.elapsed_s,
            "reason": self.reason,
            "owned_locally": self.owned_locally,
        }


class EntityStateTracker:
    """
    Tracks one entity from its first Entity State PDU until removal.

    The canonical record only changes on authoritative input (Entity State
    or Entity State Update PDUs). Dead reckoning produces a separate
    extrapolated record from the canonical one and the total time since
    it arrived.
    """

    def __init__(
        self,
        record: EntityStateRecord,
        heartbeat_timeout_s: float,
        dead_reckoning_enabled: bool = True,
        owned_locally: bool = False,
    ) -> None:
        self._record = record
        self._current = record
        self._heartbeat_timeout_s = heartbeat_timeout_s
        self._dead_reckoning_enabled = dead_reckoning_enabled
        self._owned_locally = owned_locally
        self._elapsed_s = 0.0
        self._state = TrackerState.ACTIVE

    @property
    def entity_id(self) -> EntityID:
        return self._record.entity_id

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def is_removed(self) -> bool:
        return self._state == TrackerState.REMOVED

    @property
    def record(self) -> EntityStateRecord:
        """Last authoritative state."""
        return self._record

    @property
    def current(self) -> EntityStateRecord:
        """Latest pose shown to the host (extrapolated when dead reckoning)."""
        return self._current

    @property
    def elapsed_s(self) -> float:
        """Seconds since the last authoritative update."""
        return self._elapsed_s

    @property
    def owned_locally(self) -> bool:
        return self._owned_locally

    def _event(self, event_type: EntityEventType, reason: str = "") -> EntityEvent:
        return EntityEvent(
            event_type=event_type,
            entity_id=self.entity_id,
            state=self._current,
            elapsed_s=self._elapsed_s,
            reason=reason,
            owned_locally=self._owned_locally,
        )

    def created_event(self) -> list[EntityEvent]:
        return [self._event(EntityEventType.CREATED)]

    def _accept(self, record: EntityStateRecord) -> list[EntityEvent]:
        self._record = record
        self._current = record
        self._elapsed_s = 0.0
        if record.is_deactivated:
            deactivated = self._event(EntityEventType.DEACTIVATED, reason="appearance deactivated")
            return [deactivated] + self.remove("deactivated")
        return [self._event(EntityEventType.UPDATED)]

    def on_entity_state(self, record: EntityStateRecord) -> list[EntityEvent]:
        """Replace the canonical record with a full Entity State."""
        if self.is_removed:
            return []
        return self._accept(record)

    def on_entity_state_update(self, pdu: EntityStateUpdatePdu) -> list[EntityEvent]:
        """Merge the non-static fields of an Entity State Update."""
        if self.is_removed:
            return []
        merged = replace(
            self._record,
            location=pdu.location,
            orientation=pdu.orientation,
            linear_velocity=pdu.linear_velocity,
            appearance=pdu.appearance,
            articulation_parameters=list(pdu.articulation_parameters),
        )
        return self._accept(merged)

    def remove(self, reason: str) -> list[EntityEvent]:
        """Move to the terminal REMOVED state."""
        if self.is_removed:
            return []
        self._state = TrackerState.REMOVED
        logger.info(f"Entity {self.entity_id} removed ({reason})")
        return [self._event(EntityEventType.REMOVED, reason=reason)]

    def on_tick(self, dt: float) -> list[EntityEvent]:
        """Advance time by dt seconds, then time out or dead reckon."""
        if self.is_removed:
            return []
        self._elapsed_s += dt

        # The host keeps its own entities alive by publishing them
        if self._owned_locally:
            return []

        if self._elapsed_s >= self._heartbeat_timeout_s:
            return self.remove("heartbeat timeout")

        if not self._dead_reckoning_enabled:
            return []

        result = dead_reckon(self._record, self._elapsed_s)
        if not result.supported:
            return []
        self._current = result.state
        return [self._event(EntityEventType.DEAD_RECKONED)]
