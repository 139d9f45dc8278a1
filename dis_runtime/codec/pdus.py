"""
Typed PDU records.

One dataclass per supported PDU type. Header fields are shared through
the Pdu base; the type code and protocol family are class constants so
they can never disagree with the record's shape. The length field is
derived on marshal and is not stored.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar

from dis_runtime.core.entity import (
    ArticulationParameter,
    BurstDescriptor,
    ClockTime,
    EntityID,
    EntityStateRecord,
    EventID,
    Orientation,
    Vector3,
)

DEFAULT_PROTOCOL_VERSION = 6


class PduType(IntEnum):
    """PDU type codes (SISO-REF-010 Annex A)."""
    ENTITY_STATE = 1
    FIRE = 2
    DETONATION = 3
    REMOVE_ENTITY = 12
    START_RESUME = 13
    STOP_FREEZE = 14
    ENTITY_STATE_UPDATE = 67


class ProtocolFamily(IntEnum):
    ENTITY_INFORMATION = 1
    WARFARE = 2
    SIMULATION_MANAGEMENT = 5


class StopFreezeReason(IntEnum):
    OTHER = 0
    RECESS = 1
    TERMINATION = 2
    SYSTEM_FAILURE = 3
    SECURITY_VIOLATION = 4
    ENTITY_RECONSTITUTION = 5
    STOP_FOR_RESET = 6
    STOP_FOR_RESTART = 7
    ABORT_TRAINING_RETURN_TO_TACTICAL_OPERATIONS = 8


@dataclass
class Pdu:
    """Common PDU header fields."""
    pdu_type: ClassVar[PduType]
    protocol_family: ClassVar[ProtocolFamily]

    protocol_version: int = DEFAULT_PROTOCOL_VERSION
    exercise_id: int = 1
    timestamp: int = 0


@dataclass
class EntityStatePdu(Pdu):
    """Full entity state. The only PDU that creates a tracked entity."""
    pdu_type: ClassVar[PduType] = PduType.ENTITY_STATE
    protocol_family: ClassVar[ProtocolFamily] = ProtocolFamily.ENTITY_INFORMATION

    state: EntityStateRecord = field(default_factory=EntityStateRecord)

    @property
    def entity_id(self) -> EntityID:
        return self.state.entity_id


@dataclass
class EntityStateUpdatePdu(Pdu):
    """Non-static subset of entity state. Type, force and DR are not sent."""
    pdu_type: ClassVar[PduType] = PduType.ENTITY_STATE_UPDATE
    protocol_family: ClassVar[ProtocolFamily] = ProtocolFamily.ENTITY_INFORMATION

    entity_id: EntityID = field(default_factory=EntityID)
    padding: int = 0
    linear_velocity: Vector3 = field(default_factory=Vector3)
    location: Vector3 = field(default_factory=Vector3)
    orientation: Orientation = field(default_factory=Orientation)
    appearance: int = 0
    articulation_parameters: list[ArticulationParameter] = field(default_factory=list)


@dataclass
class FirePdu(Pdu):
    pdu_type: ClassVar[PduType] = PduType.FIRE
    protocol_family: ClassVar[ProtocolFamily] = ProtocolFamily.WARFARE

    firing_entity_id: EntityID = field(default_factory=EntityID)
    target_entity_id: EntityID = field(default_factory=EntityID)
    munition_id: EntityID = field(default_factory=EntityID)
    event_id: EventID = field(default_factory=EventID)
    fire_mission_index: int = 0
    location: Vector3 = field(default_factory=Vector3)
    burst_descriptor: BurstDescriptor = field(default_factory=BurstDescriptor)
    velocity: Vector3 = field(default_factory=Vector3)
    range_m: float = 0.0


@dataclass
class DetonationPdu(Pdu):
    pdu_type: ClassVar[PduType] = PduType.DETONATION
    protocol_family: ClassVar[ProtocolFamily] = ProtocolFamily.WARFARE

    firing_entity_id: EntityID = field(default_factory=EntityID)
    target_entity_id: EntityID = field(default_factory=EntityID)
    munition_id: EntityID = field(default_factory=EntityID)
    event_id: EventID = field(default_factory=EventID)
    velocity: Vector3 = field(default_factory=Vector3)
    location: Vector3 = field(default_factory=Vector3)
    burst_descriptor: BurstDescriptor = field(default_factory=BurstDescriptor)
    location_in_entity_coordinates: Vector3 = field(default_factory=Vector3)
    detonation_result: int = 0
    pad: int = 0
    articulation_parameters: list[ArticulationParameter] = field(default_factory=list)


@dataclass
class SimulationManagementPdu(Pdu):
    protocol_family: ClassVar[ProtocolFamily] = ProtocolFamily.SIMULATION_MANAGEMENT

    originating_entity_id: EntityID = field(default_factory=EntityID)
    receiving_entity_id: EntityID = field(default_factory=EntityID)


@dataclass
class RemoveEntityPdu(SimulationManagementPdu):
    """Asks the receiving entity to leave the exercise."""
    pdu_type: ClassVar[PduType] = PduType.REMOVE_ENTITY

    request_id: int = 0


@dataclass
class StartResumePdu(SimulationManagementPdu):
    pdu_type: ClassVar[PduType] = PduType.START_RESUME

    real_world_time: ClockTime = field(default_factory=ClockTime)
    simulation_time: ClockTime = field(default_factory=ClockTime)
    request_id: int = 0


@dataclass
class StopFreezePdu(SimulationManagementPdu):
    pdu_type: ClassVar[PduType] = PduType.STOP_FREEZE

    real_world_time: ClockTime = field(default_factory=ClockTime)
    reason: int = StopFreezeReason.OTHER
    frozen_behavior: int = 0
    padding: int = 0
    request_id: int = 0
