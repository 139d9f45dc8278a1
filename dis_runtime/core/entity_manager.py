"""
Thread-safe registry of entity trackers.

Central owner of every EntityStateTracker in the exercise. Received PDUs
and clock ticks go in; EntityEvents come out through update callbacks so
transport adapters and the host scene can follow entities without
touching tracker state directly. Fire, Detonation and simulation
management PDUs are passed through to event callbacks untouched.
"""

import logging
import threading
from typing import Callable

from dis_runtime.codec.pdus import (
    EntityStatePdu,
    EntityStateUpdatePdu,
    Pdu,
    RemoveEntityPdu,
    StartResumePdu,
    StopFreezePdu,
)
from dis_runtime.core.entity import EntityID, EntityStateRecord
from dis_runtime.core.tracker import EntityEvent, EntityStateTracker

logger = logging.getLogger(__name__)


class EntityManager:
    """
    Registry of trackers keyed by EntityID.

    Thread-safe via threading.Lock, so a network thread can apply PDUs
    while the tick loop runs elsewhere. Callbacks run outside the lock.
    """

    def __init__(
        self,
        heartbeat_timeout_s: float = 12.0,
        dead_reckoning_enabled: bool = True,
        exercise_id: int | None = None,
    ) -> None:
        self._trackers: dict[EntityID, EntityStateTracker] = {}
        self._lock = threading.Lock()
        self._heartbeat_timeout_s = heartbeat_timeout_s
        self._dead_reckoning_enabled = dead_reckoning_enabled
        self._exercise_id = exercise_id
        self._frozen = False
        self._update_callbacks: list[Callable[[EntityEvent], None]] = []
        self._event_callbacks: list[Callable[[Pdu], None]] = []

    @property
    def frozen(self) -> bool:
        """True between a Stop/Freeze and the next Start/Resume."""
        with self._lock:
            return self._frozen

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._trackers)

    def on_update(self, callback: Callable[[EntityEvent], None]) -> None:
        """Register a listener for entity lifecycle and pose events."""
        self._update_callbacks.append(callback)

    def on_event(self, callback: Callable[[Pdu], None]) -> None:
        """Register a listener for Fire, Detonation and simulation management PDUs."""
        self._event_callbacks.append(callback)

    def get_entity(self, entity_id: EntityID) -> EntityStateRecord | None:
        """Latest pose of an entity, or None if it is not tracked."""
        with self._lock:
            tracker = self._trackers.get(entity_id)
            return tracker.current if tracker else None

    def get_tracker(self, entity_id: EntityID) -> EntityStateTracker | None:
        with self._lock:
            return self._trackers.get(entity_id)

    def get_all_entities(self) -> list[EntityStateRecord]:
        with self._lock:
            return [t.current for t in self._trackers.values()]

    def apply(self, pdu: Pdu) -> list[EntityEvent]:
        """Apply one decoded PDU. Returns the entity events it produced."""
        if self._exercise_id is not None and pdu.exercise_id != self._exercise_id:
            logger.debug(f"Dropping {type(pdu).__name__} for exercise {pdu.exercise_id}")
            return []

        if isinstance(pdu, EntityStatePdu):
            events = self._apply_entity_state(pdu.state)
        elif isinstance(pdu, EntityStateUpdatePdu):
            events = self._with_tracker(pdu.entity_id, lambda t: t.on_entity_state_update(pdu))
        elif isinstance(pdu, RemoveEntityPdu):
            events = self._with_tracker(pdu.receiving_entity_id, lambda t: t.remove("remove entity PDU"))
            self._emit_event(pdu)
        else:
            if isinstance(pdu, StopFreezePdu):
                self.freeze()
            elif isinstance(pdu, StartResumePdu):
                self.resume()
            self._emit_event(pdu)
            return []

        self._notify_update(events)
        return events

    def _apply_entity_state(self, record: EntityStateRecord, owned_locally: bool = False) -> list[EntityEvent]:
        with self._lock:
            tracker = self._trackers.get(record.entity_id)
            if tracker is None:
                if record.is_deactivated:
                    logger.debug(f"Ignoring deactivated state for unknown entity {record.entity_id}")
                    return []
                tracker = EntityStateTracker(
                    record,
                    heartbeat_timeout_s=self._heartbeat_timeout_s,
                    dead_reckoning_enabled=self._dead_reckoning_enabled,
                    owned_locally=owned_locally,
                )
                self._trackers[record.entity_id] = tracker
                logger.info(f"New entity {record.entity_id} '{record.marking}'")
                return tracker.created_event()
            events = tracker.on_entity_state(record)
            self._prune(tracker)
            return events

    def _with_tracker(
        self, entity_id: EntityID, action: Callable[[EntityStateTracker], list[EntityEvent]],
    ) -> list[EntityEvent]:
        with self._lock:
            tracker = self._trackers.get(entity_id)
            if tracker is None:
                logger.debug(f"No tracked entity {entity_id}, ignoring")
                return []
            events = action(tracker)
            self._prune(tracker)
            return events

    def _prune(self, tracker: EntityStateTracker) -> None:
        # Caller holds the lock
        if tracker.is_removed:
            self._trackers.pop(tracker.entity_id, None)

    def publish_local(self, record: EntityStateRecord) -> list[EntityEvent]:
        """Create or update an entity owned by this host. It is never extrapolated."""
        events = self._apply_entity_state(record, owned_locally=True)
        self._notify_update(events)
        return events

    def remove(self, entity_id: EntityID, reason: str = "removed by host") -> list[EntityEvent]:
        events = self._with_tracker(entity_id, lambda t: t.remove(reason))
        self._notify_update(events)
        return events

    def tick(self, dt: float) -> list[EntityEvent]:
        """Advance every tracker by dt seconds. No-op while frozen."""
        events: list[EntityEvent] = []
        with self._lock:
            if self._frozen:
                return []
            for tracker in list(self._trackers.values()):
                events.extend(tracker.on_tick(dt))
                self._prune(tracker)
        self._notify_update(events)
        return events

    def freeze(self) -> None:
        self._set_frozen(True)

    def resume(self) -> None:
        self._set_frozen(False)

    def _set_frozen(self, frozen: bool) -> None:
        with self._lock:
            changed = self._frozen != frozen
            self._frozen = frozen
        if changed:
            logger.info("Exercise frozen" if frozen else "Exercise resumed")

    def _notify_update(self, events: list[EntityEvent]) -> None:
        for event in events:
            for cb in self._update_callbacks:
                cb(event)

    def _emit_event(self, pdu: Pdu) -> None:
        for cb in self._event_callbacks:
            cb(pdu)
