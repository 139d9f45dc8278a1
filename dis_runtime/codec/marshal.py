"""
DIS wire codec.

Converts raw big-endian byte buffers into typed PDU records and back,
following the IEEE 1278.1 field tables. Shared records (IDs, types,
vectors, dead reckoning parameters) go through the open-dis record
classes. PDU bodies are assembled here so that every length check
happens before the first field is read.

Precision notes: velocities, accelerations, orientation angles, entity
coordinate offsets and the Fire range are single precision on the wire,
so they round-trip exactly only for values representable as float32.
Markings are ASCII, NUL padded to 11 bytes.
"""

import io
import logging
from dataclasses import dataclass, replace
from typing import Callable

from opendis import dis7
from opendis.DataInputStream import DataInputStream
from opendis.DataOutputStream import DataOutputStream

from dis_runtime.codec.errors import MalformedPacket, UnknownPduType
from dis_runtime.codec.pdus import (
    DetonationPdu,
    EntityStatePdu,
    EntityStateUpdatePdu,
    FirePdu,
    Pdu,
    PduType,
    RemoveEntityPdu,
    StartResumePdu,
    StopFreezePdu,
)
from dis_runtime.core.entity import (
    MARKING_LENGTH,
    OTHER_PARAMETERS_LENGTH,
    ArticulationParameter,
    BurstDescriptor,
    ClockTime,
    DeadReckoningAlgorithm,
    DeadReckoningParameters,
    EntityID,
    EntityStateRecord,
    EntityType,
    EventID,
    Orientation,
    Vector3,
)

logger = logging.getLogger(__name__)

HEADER_SIZE = 12
PDU_TYPE_OFFSET = 2
ARTICULATION_PARAMETER_SIZE = 16

# DR algorithm stamped on entity state PDUs authored by this host
OUTBOUND_DR_ALGORITHM = DeadReckoningAlgorithm.RVW


# --- records -----------------------------------------------------------------
#
# Records whose DIS 6 layout matches open-dis 7 byte for byte are parsed
# and serialized by the dis7 record classes. Clock time (signed hour),
# markings (unsigned characters) and articulation parameters (DIS 6 field
# split) differ and are laid out here.

def _parse(ds: DataInputStream, record_class):
    record = record_class()
    record.parse(ds)
    return record


def _read_entity_id(ds: DataInputStream) -> EntityID:
    r = _parse(ds, dis7.EntityID)
    return EntityID(site=r.siteID, application=r.applicationID, entity=r.entityID)


def _write_entity_id(out: DataOutputStream, entity_id: EntityID) -> None:
    dis7.EntityID(entity_id.site, entity_id.application, entity_id.entity).serialize(out)


def _read_event_id(ds: DataInputStream) -> EventID:
    r = _parse(ds, dis7.EventIdentifier)
    return EventID(
        site=r.simulationAddress.site,
        application=r.simulationAddress.application,
        event_number=r.eventNumber,
    )


def _write_event_id(out: DataOutputStream, event_id: EventID) -> None:
    address = dis7.SimulationAddress(event_id.site, event_id.application)
    dis7.EventIdentifier(address, event_id.event_number).serialize(out)


def _entity_type(r) -> EntityType:
    return EntityType(
        kind=r.entityKind,
        domain=r.domain,
        country=r.country,
        category=r.category,
        subcategory=r.subcategory,
        specific=r.specific,
        extra=r.extra,
    )


def _dis7_entity_type(t: EntityType):
    return dis7.EntityType(t.kind, t.domain, t.country, t.category, t.subcategory, t.specific, t.extra)


def _read_entity_type(ds: DataInputStream) -> EntityType:
    return _entity_type(_parse(ds, dis7.EntityType))


def _write_entity_type(out: DataOutputStream, entity_type: EntityType) -> None:
    _dis7_entity_type(entity_type).serialize(out)


def _read_vector_float(ds: DataInputStream) -> Vector3:
    r = _parse(ds, dis7.Vector3Float)
    return Vector3(r.x, r.y, r.z)


def _write_vector_float(out: DataOutputStream, v: Vector3) -> None:
    dis7.Vector3Float(v.x, v.y, v.z).serialize(out)


def _read_vector_double(ds: DataInputStream) -> Vector3:
    r = _parse(ds, dis7.Vector3Double)
    return Vector3(r.x, r.y, r.z)


def _write_vector_double(out: DataOutputStream, v: Vector3) -> None:
    dis7.Vector3Double(v.x, v.y, v.z).serialize(out)


def _read_orientation(ds: DataInputStream) -> Orientation:
    r = _parse(ds, dis7.EulerAngles)
    return Orientation(psi=r.psi, theta=r.theta, phi=r.phi)


def _write_orientation(out: DataOutputStream, o: Orientation) -> None:
    dis7.EulerAngles(o.psi, o.theta, o.phi).serialize(out)


def _read_burst_descriptor(ds: DataInputStream) -> BurstDescriptor:
    r = _parse(ds, dis7.MunitionDescriptor)
    return BurstDescriptor(
        munition=_entity_type(r.munitionType),
        warhead=r.warhead,
        fuse=r.fuse,
        quantity=r.quantity,
        rate=r.rate,
    )


def _write_burst_descriptor(out: DataOutputStream, burst: BurstDescriptor) -> None:
    dis7.MunitionDescriptor(
        _dis7_entity_type(burst.munition), burst.warhead, burst.fuse, burst.quantity, burst.rate,
    ).serialize(out)


def _padded(data: bytes, count: int) -> bytes:
    return bytes(data)[:count].ljust(count, b"\0")


def _read_dead_reckoning(ds: DataInputStream) -> DeadReckoningParameters:
    r = _parse(ds, dis7.DeadReckoningParameters)
    try:
        algorithm = DeadReckoningAlgorithm(r.deadReckoningAlgorithm)
    except ValueError:
        algorithm = r.deadReckoningAlgorithm
    return DeadReckoningParameters(
        algorithm=algorithm,
        other_parameters=bytes(r.parameters),
        linear_acceleration=Vector3(r.entityLinearAcceleration.x, r.entityLinearAcceleration.y,
                                    r.entityLinearAcceleration.z),
        angular_velocity=Vector3(r.entityAngularVelocity.x, r.entityAngularVelocity.y,
                                 r.entityAngularVelocity.z),
    )


def _write_dead_reckoning(out: DataOutputStream, dr: DeadReckoningParameters) -> None:
    acceleration, omega = dr.linear_acceleration, dr.angular_velocity
    dis7.DeadReckoningParameters(
        int(dr.algorithm),
        list(_padded(dr.other_parameters, OTHER_PARAMETERS_LENGTH)),
        dis7.Vector3Float(acceleration.x, acceleration.y, acceleration.z),
        dis7.Vector3Float(omega.x, omega.y, omega.z),
    ).serialize(out)


def _read_clock_time(ds: DataInputStream) -> ClockTime:
    return ClockTime(hour=ds.read_int(), time_past_hour=ds.read_unsigned_int())


def _write_clock_time(out: DataOutputStream, clock: ClockTime) -> None:
    out.write_int(clock.hour)
    out.write_unsigned_int(clock.time_past_hour)


def _read_articulation_parameters(ds: DataInputStream, count: int) -> list[ArticulationParameter]:
    return [
        ArticulationParameter(
            parameter_type_designator=ds.read_unsigned_byte(),
            change_indicator=ds.read_unsigned_byte(),
            part_attached_to=ds.read_unsigned_short(),
            parameter_type=ds.read_unsigned_int(),
            parameter_value=ds.read_double(),
        )
        for _ in range(count)
    ]


def _write_articulation_parameters(out: DataOutputStream, params: list[ArticulationParameter]) -> None:
    for p in params:
        out.write_unsigned_byte(p.parameter_type_designator)
        out.write_unsigned_byte(p.change_indicator)
        out.write_unsigned_short(p.part_attached_to)
        out.write_unsigned_int(p.parameter_type)
        out.write_double(p.parameter_value)


def _read_marking(ds: DataInputStream) -> tuple[int, str]:
    character_set = ds.read_unsigned_byte()
    raw = bytes(ds.read_unsigned_byte() for _ in range(MARKING_LENGTH))
    return character_set, raw.rstrip(b"\0").decode("ascii", errors="replace")


def _write_marking(out: DataOutputStream, character_set: int, marking: str) -> None:
    out.write_unsigned_byte(character_set)
    for b in _padded(marking.encode("ascii", errors="replace"), MARKING_LENGTH):
        out.write_unsigned_byte(b)


# --- PDU bodies ------------------------------------------------------------

def _decode_entity_state(ds: DataInputStream, header: dict) -> EntityStatePdu:
    entity_id = _read_entity_id(ds)
    force_id = ds.read_unsigned_byte()
    count = ds.read_unsigned_byte()
    entity_type = _read_entity_type(ds)
    alternative_type = _read_entity_type(ds)
    velocity = _read_vector_float(ds)
    location = _read_vector_double(ds)
    orientation = _read_orientation(ds)
    appearance = ds.read_unsigned_int()
    dead_reckoning = _read_dead_reckoning(ds)
    character_set, marking = _read_marking(ds)
    capabilities = ds.read_unsigned_int()
    state = EntityStateRecord(
        entity_id=entity_id,
        entity_type=entity_type,
        force_id=force_id,
        alternative_entity_type=alternative_type,
        location=location,
        orientation=orientation,
        linear_velocity=velocity,
        appearance=appearance,
        dead_reckoning=dead_reckoning,
        marking=marking,
        marking_character_set=character_set,
        capabilities=capabilities,
        articulation_parameters=_read_articulation_parameters(ds, count),
    )
    return EntityStatePdu(state=state, **header)


def _encode_entity_state(out: DataOutputStream, pdu: EntityStatePdu) -> None:
    s = pdu.state
    _write_entity_id(out, s.entity_id)
    out.write_unsigned_byte(int(s.force_id))
    out.write_unsigned_byte(s.number_of_articulation_parameters)
    _write_entity_type(out, s.entity_type)
    _write_entity_type(out, s.alternative_entity_type)
    _write_vector_float(out, s.linear_velocity)
    _write_vector_double(out, s.location)
    _write_orientation(out, s.orientation)
    out.write_unsigned_int(s.appearance)
    _write_dead_reckoning(out, s.dead_reckoning)
    _write_marking(out, s.marking_character_set, s.marking)
    out.write_unsigned_int(s.capabilities)
    _write_articulation_parameters(out, s.articulation_parameters)


def _decode_entity_state_update(ds: DataInputStream, header: dict) -> EntityStateUpdatePdu:
    entity_id = _read_entity_id(ds)
    padding = ds.read_unsigned_byte()
    count = ds.read_unsigned_byte()
    return EntityStateUpdatePdu(
        entity_id=entity_id,
        padding=padding,
        linear_velocity=_read_vector_float(ds),
        location=_read_vector_double(ds),
        orientation=_read_orientation(ds),
        appearance=ds.read_unsigned_int(),
        articulation_parameters=_read_articulation_parameters(ds, count),
        **header,
    )


def _encode_entity_state_update(out: DataOutputStream, pdu: EntityStateUpdatePdu) -> None:
    _write_entity_id(out, pdu.entity_id)
    out.write_unsigned_byte(pdu.padding)
    out.write_unsigned_byte(len(pdu.articulation_parameters))
    _write_vector_float(out, pdu.linear_velocity)
    _write_vector_double(out, pdu.location)
    _write_orientation(out, pdu.orientation)
    out.write_unsigned_int(pdu.appearance)
    _write_articulation_parameters(out, pdu.articulation_parameters)


def _decode_fire(ds: DataInputStream, header: dict) -> FirePdu:
    return FirePdu(
        firing_entity_id=_read_entity_id(ds),
        target_entity_id=_read_entity_id(ds),
        munition_id=_read_entity_id(ds),
        event_id=_read_event_id(ds),
        fire_mission_index=ds.read_unsigned_int(),
        location=_read_vector_double(ds),
        burst_descriptor=_read_burst_descriptor(ds),
        velocity=_read_vector_float(ds),
        range_m=ds.read_float(),
        **header,
    )


def _encode_fire(out: DataOutputStream, pdu: FirePdu) -> None:
    _write_entity_id(out, pdu.firing_entity_id)
    _write_entity_id(out, pdu.target_entity_id)
    _write_entity_id(out, pdu.munition_id)
    _write_event_id(out, pdu.event_id)
    out.write_unsigned_int(pdu.fire_mission_index)
    _write_vector_double(out, pdu.location)
    _write_burst_descriptor(out, pdu.burst_descriptor)
    _write_vector_float(out, pdu.velocity)
    out.write_float(pdu.range_m)


def _decode_detonation(ds: DataInputStream, header: dict) -> DetonationPdu:
    firing = _read_entity_id(ds)
    target = _read_entity_id(ds)
    munition = _read_entity_id(ds)
    event_id = _read_event_id(ds)
    velocity = _read_vector_float(ds)
    location = _read_vector_double(ds)
    burst = _read_burst_descriptor(ds)
    entity_offset = _read_vector_float(ds)
    result = ds.read_unsigned_byte()
    count = ds.read_unsigned_byte()
    pad = ds.read_unsigned_short()
    return DetonationPdu(
        firing_entity_id=firing,
        target_entity_id=target,
        munition_id=munition,
        event_id=event_id,
        velocity=velocity,
        location=location,
        burst_descriptor=burst,
        location_in_entity_coordinates=entity_offset,
        detonation_result=result,
        pad=pad,
        articulation_parameters=_read_articulation_parameters(ds, count),
        **header,
    )


def _encode_detonation(out: DataOutputStream, pdu: DetonationPdu) -> None:
    _write_entity_id(out, pdu.firing_entity_id)
    _write_entity_id(out, pdu.target_entity_id)
    _write_entity_id(out, pdu.munition_id)
    _write_event_id(out, pdu.event_id)
    _write_vector_float(out, pdu.velocity)
    _write_vector_double(out, pdu.location)
    _write_burst_descriptor(out, pdu.burst_descriptor)
    _write_vector_float(out, pdu.location_in_entity_coordinates)
    out.write_unsigned_byte(pdu.detonation_result)
    out.write_unsigned_byte(len(pdu.articulation_parameters))
    out.write_unsigned_short(pdu.pad)
    _write_articulation_parameters(out, pdu.articulation_parameters)


def _decode_remove_entity(ds: DataInputStream, header: dict) -> RemoveEntityPdu:
    return RemoveEntityPdu(
        originating_entity_id=_read_entity_id(ds),
        receiving_entity_id=_read_entity_id(ds),
        request_id=ds.read_unsigned_int(),
        **header,
    )


def _encode_remove_entity(out: DataOutputStream, pdu: RemoveEntityPdu) -> None:
    _write_entity_id(out, pdu.originating_entity_id)
    _write_entity_id(out, pdu.receiving_entity_id)
    out.write_unsigned_int(pdu.request_id)


def _decode_start_resume(ds: DataInputStream, header: dict) -> StartResumePdu:
    return StartResumePdu(
        originating_entity_id=_read_entity_id(ds),
        receiving_entity_id=_read_entity_id(ds),
        real_world_time=_read_clock_time(ds),
        simulation_time=_read_clock_time(ds),
        request_id=ds.read_unsigned_int(),
        **header,
    )


def _encode_start_resume(out: DataOutputStream, pdu: StartResumePdu) -> None:
    _write_entity_id(out, pdu.originating_entity_id)
    _write_entity_id(out, pdu.receiving_entity_id)
    _write_clock_time(out, pdu.real_world_time)
    _write_clock_time(out, pdu.simulation_time)
    out.write_unsigned_int(pdu.request_id)


def _decode_stop_freeze(ds: DataInputStream, header: dict) -> StopFreezePdu:
    return StopFreezePdu(
        originating_entity_id=_read_entity_id(ds),
        receiving_entity_id=_read_entity_id(ds),
        real_world_time=_read_clock_time(ds),
        reason=ds.read_unsigned_byte(),
        frozen_behavior=ds.read_unsigned_byte(),
        padding=ds.read_short(),
        request_id=ds.read_unsigned_int(),
        **header,
    )


def _encode_stop_freeze(out: DataOutputStream, pdu: StopFreezePdu) -> None:
    _write_entity_id(out, pdu.originating_entity_id)
    _write_entity_id(out, pdu.receiving_entity_id)
    _write_clock_time(out, pdu.real_world_time)
    out.write_unsigned_byte(pdu.reason)
    out.write_unsigned_byte(pdu.frozen_behavior)
    out.write_short(pdu.padding)
    out.write_unsigned_int(pdu.request_id)


@dataclass(frozen=True)
class PduLayout:
    """Field table entry for one PDU type."""
    pdu_class: type
    fixed_size: int
    # Offset of the u8 count of 16-byte trailing records, if any
    count_offset: int | None
    decode: Callable[[DataInputStream, dict], Pdu]
    encode: Callable[[DataOutputStream, Pdu], None]

    def variable_count(self, pdu: Pdu) -> int:
        if isinstance(pdu, EntityStatePdu):
            return pdu.state.number_of_articulation_parameters
        return len(getattr(pdu, "articulation_parameters", ()))


LAYOUTS: dict[int, PduLayout] = {
    PduType.ENTITY_STATE: PduLayout(EntityStatePdu, 144, 19, _decode_entity_state, _encode_entity_state),
    PduType.FIRE: PduLayout(FirePdu, 96, None, _decode_fire, _encode_fire),
    PduType.DETONATION: PduLayout(DetonationPdu, 104, 101, _decode_detonation, _encode_detonation),
    PduType.REMOVE_ENTITY: PduLayout(RemoveEntityPdu, 28, None, _decode_remove_entity, _encode_remove_entity),
    PduType.START_RESUME: PduLayout(StartResumePdu, 44, None, _decode_start_resume, _encode_start_resume),
    PduType.STOP_FREEZE: PduLayout(StopFreezePdu, 40, None, _decode_stop_freeze, _encode_stop_freeze),
    PduType.ENTITY_STATE_UPDATE: PduLayout(
        EntityStateUpdatePdu, 72, 19, _decode_entity_state_update, _encode_entity_state_update,
    ),
}

SUPPORTED_PDU_TYPES = frozenset(PduType(t) for t in LAYOUTS)


def peek_pdu_type(data: bytes) -> int:
    """Read only the type code. Raises MalformedPacket if there is no header."""
    if len(data) < HEADER_SIZE:
        raise MalformedPacket(
            f"Buffer of {len(data)} bytes is shorter than the {HEADER_SIZE}-byte PDU header",
            required=HEADER_SIZE, actual=len(data),
        )
    return data[PDU_TYPE_OFFSET]


def required_size(data: bytes) -> int:
    """Total bytes the buffer must hold for its declared type."""
    layout = LAYOUTS.get(peek_pdu_type(data))
    if layout is None:
        raise UnknownPduType(data[PDU_TYPE_OFFSET])
    if len(data) < layout.fixed_size or layout.count_offset is None:
        return layout.fixed_size
    return layout.fixed_size + data[layout.count_offset] * ARTICULATION_PARAMETER_SIZE


def unmarshal(data: bytes) -> Pdu:
    """
    Decode one PDU from a byte buffer.

    Raises:
        MalformedPacket: buffer shorter than the header, the fixed body, or
            the fixed body plus its declared trailing records.
        UnknownPduType: type code without a registered layout.
    """
    data = bytes(data)
    pdu_type = peek_pdu_type(data)
    layout = LAYOUTS.get(pdu_type)
    if layout is None:
        raise UnknownPduType(pdu_type)

    needed = required_size(data)
    if len(data) < needed:
        raise MalformedPacket(
            f"PDU type {pdu_type} needs {needed} bytes, got {len(data)}",
            required=needed, actual=len(data),
        )

    ds = DataInputStream(io.BytesIO(data))
    header = {
        "protocol_version": ds.read_unsigned_byte(),
        "exercise_id": ds.read_unsigned_byte(),
    }
    ds.read_unsigned_byte()  # type
    ds.read_unsigned_byte()  # family
    header["timestamp"] = ds.read_unsigned_int()
    ds.read_unsigned_short()  # length
    ds.read_unsigned_short()  # padding
    return layout.decode(ds, header)


def marshal(pdu: Pdu) -> bytes:
    """Encode a PDU to its big-endian wire form."""
    layout = LAYOUTS.get(pdu.pdu_type)
    if layout is None or not isinstance(pdu, layout.pdu_class):
        raise UnknownPduType(int(pdu.pdu_type))

    length = layout.fixed_size + layout.variable_count(pdu) * ARTICULATION_PARAMETER_SIZE
    buffer = io.BytesIO()
    out = DataOutputStream(buffer)
    out.write_unsigned_byte(pdu.protocol_version)
    out.write_unsigned_byte(pdu.exercise_id)
    out.write_unsigned_byte(int(pdu.pdu_type))
    out.write_unsigned_byte(int(pdu.protocol_family))
    out.write_unsigned_int(pdu.timestamp)
    out.write_unsigned_short(length)
    out.write_unsigned_short(0)
    layout.encode(out, pdu)

    encoded = buffer.getvalue()
    if len(encoded) != length:
        raise ValueError(f"Encoded {len(encoded)} bytes for PDU type {pdu.pdu_type}, expected {length}")
    return encoded


def entity_state_pdu_from_record(
    record: EntityStateRecord, exercise_id: int, timestamp: int = 0,
) -> EntityStatePdu:
    """Build an outbound Entity State PDU for an entity this host owns."""
    dead_reckoning = replace(record.dead_reckoning, algorithm=OUTBOUND_DR_ALGORITHM)
    return EntityStatePdu(
        exercise_id=exercise_id,
        timestamp=timestamp,
        state=replace(record, dead_reckoning=dead_reckoning),
    )
