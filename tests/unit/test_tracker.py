"""Tests for the per-entity state machine."""

import pytest

from dis_runtime.codec.pdus import EntityStateUpdatePdu
from dis_runtime.core.entity import (
    DEACTIVATED_APPEARANCE_BIT,
    ArticulationParameter,
    DeadReckoningAlgorithm,
    DeadReckoningParameters,
    EntityID,
    EntityStateRecord,
    EntityType,
    ForceID,
    Orientation,
    Vector3,
)
from dis_runtime.core.tracker import EntityEventType, EntityStateTracker, TrackerState

DEACTIVATED = 1 << DEACTIVATED_APPEARANCE_BIT


def _make_record(**kwargs) -> EntityStateRecord:
    defaults = {
        "entity_id": EntityID(1, 1, 1),
        "entity_type": EntityType(1, 1, 225, 1, 1, 0, 0),
        "force_id": ForceID.OPPOSING,
        "location": Vector3(1000.0, 0.0, 0.0),
        "linear_velocity": Vector3(10.0, 0.0, 0.0),
        "dead_reckoning": DeadReckoningParameters(algorithm=DeadReckoningAlgorithm.FPW),
        "marking": "T72",
    }
    defaults.update(kwargs)
    return EntityStateRecord(**defaults)


def _types(events):
    return [e.event_type for e in events]


class TestEntityStateTracker:
    def test_created_event(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=5.0)
        events = tracker.created_event()
        assert _types(events) == [EntityEventType.CREATED]
        assert events[0].state.marking == "T72"
        assert tracker.state == TrackerState.ACTIVE

    def test_entity_state_update_event(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=5.0)
        events = tracker.on_entity_state(_make_record(location=Vector3(2000.0, 0.0, 0.0)))
        assert _types(events) == [EntityEventType.UPDATED]
        assert tracker.record.location.x == 2000.0

    def test_deactivated_entity_state_removes(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=5.0)
        events = tracker.on_entity_state(_make_record(appearance=DEACTIVATED))
        assert _types(events) == [EntityEventType.DEACTIVATED, EntityEventType.REMOVED]
        assert tracker.is_removed

    def test_deactivated_after_ticks(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=5.0)
        tracker.on_tick(1.0)
        tracker.on_tick(1.0)
        tracker.on_entity_state(_make_record(appearance=DEACTIVATED | 0x4))
        assert tracker.state == TrackerState.REMOVED

    def test_update_merges_only_dynamic_fields(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=5.0)
        pdu = EntityStateUpdatePdu(
            entity_id=EntityID(1, 1, 1),
            location=Vector3(5.0, 6.0, 7.0),
            orientation=Orientation(0.1, 0.2, 0.3),
            linear_velocity=Vector3(1.0, 1.0, 1.0),
            appearance=0x10,
            articulation_parameters=[ArticulationParameter(parameter_value=1.0)],
        )
        events = tracker.on_entity_state_update(pdu)
        record = tracker.record
        assert _types(events) == [EntityEventType.UPDATED]
        assert record.location == Vector3(5.0, 6.0, 7.0)
        assert record.orientation == Orientation(0.1, 0.2, 0.3)
        assert record.appearance == 0x10
        assert record.number_of_articulation_parameters == 1
        # Static fields survive
        assert record.force_id == ForceID.OPPOSING
        assert record.entity_type == EntityType(1, 1, 225, 1, 1, 0, 0)
        assert record.dead_reckoning.algorithm == DeadReckoningAlgorithm.FPW
        assert record.marking == "T72"

    def test_update_with_deactivated_bit(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=5.0)
        events = tracker.on_entity_state_update(EntityStateUpdatePdu(entity_id=EntityID(1, 1, 1), appearance=DEACTIVATED))
        assert EntityEventType.UPDATED not in _types(events)
        assert tracker.is_removed

    def test_update_resets_elapsed(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=5.0)
        tracker.on_tick(3.0)
        tracker.on_entity_state(_make_record())
        assert tracker.elapsed_s == 0.0

    def test_remove(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=5.0)
        events = tracker.remove("remove entity PDU")
        assert _types(events) == [EntityEventType.REMOVED]
        assert events[0].reason == "remove entity PDU"
        assert tracker.remove("again") == []

    def test_removed_is_terminal(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=5.0)
        tracker.remove("test")
        assert tracker.on_entity_state(_make_record()) == []
        assert tracker.on_tick(1.0) == []
        assert tracker.state == TrackerState.REMOVED


class TestHeartbeat:
    def test_not_removed_before_timeout(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=5.0)
        for _ in range(4):
            tracker.on_tick(1.0)
        assert tracker.on_tick(0.5)[0].event_type == EntityEventType.DEAD_RECKONED
        assert not tracker.is_removed

    def test_removed_exactly_at_timeout(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=4.0)
        for _ in range(3):
            tracker.on_tick(1.0)
        assert not tracker.is_removed
        events = tracker.on_tick(1.0)
        assert _types(events) == [EntityEventType.REMOVED]
        assert events[0].reason == "heartbeat timeout"

    def test_locally_owned_never_times_out(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=1.0, owned_locally=True)
        assert tracker.on_tick(10.0) == []
        assert not tracker.is_removed


class TestDeadReckoningOnTick:
    def test_tick_extrapolates_from_canonical(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=10.0)
        tracker.on_tick(1.0)
        events = tracker.on_tick(1.0)
        assert events[0].state.location.x == pytest.approx(1020.0)
        assert events[0].elapsed_s == pytest.approx(2.0)
        # Canonical record untouched
        assert tracker.record.location.x == 1000.0
        assert tracker.current.location.x == pytest.approx(1020.0)

    def test_locally_owned_not_extrapolated(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=10.0, owned_locally=True)
        tracker.on_tick(1.0)
        assert tracker.current.location.x == 1000.0

    def test_dead_reckoning_disabled(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=10.0, dead_reckoning_enabled=False)
        assert tracker.on_tick(1.0) == []
        assert tracker.current.location.x == 1000.0

    def test_unsupported_algorithm_holds_last_pose(self):
        record = _make_record(dead_reckoning=DeadReckoningParameters(algorithm=0))
        tracker = EntityStateTracker(record, heartbeat_timeout_s=10.0)
        assert tracker.on_tick(1.0) == []
        assert tracker.current is record

    def test_event_serializes(self):
        tracker = EntityStateTracker(_make_record(), heartbeat_timeout_s=10.0)
        d = tracker.on_tick(1.0)[0].to_dict()
        assert d["event_type"] == "DEAD_RECKONED"
        assert d["entity_id"] == "1:1:1"
        assert d["state"]["marking"] == "T72"
