"""Tests for the DIS wire codec."""

import io
import struct

import pytest
from opendis import dis7
from opendis.DataInputStream import DataInputStream
from opendis.DataOutputStream import DataOutputStream

from dis_runtime.codec.errors import MalformedPacket, PduDecodeError, UnknownPduType
from dis_runtime.codec.marshal import (
    SUPPORTED_PDU_TYPES,
    entity_state_pdu_from_record,
    marshal,
    peek_pdu_type,
    unmarshal,
)
from dis_runtime.codec.pdus import (
    DetonationPdu,
    EntityStatePdu,
    EntityStateUpdatePdu,
    FirePdu,
    PduType,
    RemoveEntityPdu,
    StartResumePdu,
    StopFreezePdu,
    StopFreezeReason,
)
from dis_runtime.core.entity import (
    ArticulationParameter,
    BurstDescriptor,
    ClockTime,
    DeadReckoningAlgorithm,
    DeadReckoningParameters,
    EntityID,
    EntityStateRecord,
    EntityType,
    EventID,
    ForceID,
    Orientation,
    Vector3,
)

# Values below are exactly representable as float32 so single precision
# wire fields compare equal after a round trip.


def _make_state(**kwargs) -> EntityStateRecord:
    defaults = {
        "entity_id": EntityID(1, 2, 3),
        "entity_type": EntityType(1, 1, 225, 1, 1, 3, 0),
        "force_id": ForceID.FRIENDLY,
        "alternative_entity_type": EntityType(1, 1, 222, 2, 1, 0, 0),
        "location": Vector3(4510983.123456, 1234567.891011, 4321098.765432),
        "orientation": Orientation(0.5, -0.25, 1.125),
        "linear_velocity": Vector3(12.5, -3.75, 0.0),
        "appearance": 0x00010000,
        "dead_reckoning": DeadReckoningParameters(
            algorithm=DeadReckoningAlgorithm.RVW,
            other_parameters=bytes(range(15)),
            linear_acceleration=Vector3(0.5, 0.25, -9.75),
            angular_velocity=Vector3(0.0, 0.0, 0.125),
        ),
        "marking": "TANK1",
        "capabilities": 7,
        "articulation_parameters": [
            ArticulationParameter(0, 1, 0, 4096 + 11, 0.7853981633974483),
            ArticulationParameter(1, 0, 4096, 4096 + 12, -1.5),
        ],
    }
    defaults.update(kwargs)
    return EntityStateRecord(**defaults)


class TestEntityStateCodec:
    def test_round_trip(self):
        pdu = EntityStatePdu(exercise_id=9, timestamp=123456, state=_make_state())
        assert unmarshal(marshal(pdu)) == pdu

    def test_length_includes_articulation_parameters(self):
        data = marshal(EntityStatePdu(state=_make_state()))
        assert len(data) == 144 + 2 * 16
        assert struct.unpack(">H", data[8:10])[0] == len(data)

    def test_header_fields(self):
        data = marshal(EntityStatePdu(exercise_id=7, state=_make_state()))
        assert data[0] == 6
        assert data[1] == 7
        assert data[2] == PduType.ENTITY_STATE
        assert data[3] == 1

    def test_location_is_big_endian_double(self):
        state = _make_state()
        data = marshal(EntityStatePdu(state=state))
        assert struct.unpack(">3d", data[48:72]) == state.location.as_tuple()

    def test_no_articulation_parameters(self):
        pdu = EntityStatePdu(state=_make_state(articulation_parameters=[]))
        data = marshal(pdu)
        assert len(data) == 144
        assert unmarshal(data) == pdu

    def test_marking_truncated_to_eleven_chars(self):
        pdu = EntityStatePdu(state=_make_state(marking="ABCDEFGHIJKLMNOP"))
        decoded = unmarshal(marshal(pdu))
        assert decoded.state.marking == "ABCDEFGHIJK"

    def test_unknown_dr_algorithm_kept_as_int(self):
        dr = DeadReckoningParameters(algorithm=200)
        decoded = unmarshal(marshal(EntityStatePdu(state=_make_state(dead_reckoning=dr))))
        assert decoded.state.dead_reckoning.algorithm == 200

    def test_entity_id_property(self):
        pdu = EntityStatePdu(state=_make_state())
        assert pdu.entity_id == EntityID(1, 2, 3)


class TestOpenDisInterop:
    def test_entity_state_readable_by_open_dis(self):
        state = _make_state()
        data = marshal(EntityStatePdu(exercise_id=5, state=state))
        parsed = dis7.EntityStatePdu()
        parsed.parse(DataInputStream(io.BytesIO(data)))
        assert parsed.exerciseID == 5
        assert parsed.length == len(data)
        assert (parsed.entityID.siteID, parsed.entityID.applicationID, parsed.entityID.entityID) == (1, 2, 3)
        assert parsed.entityType.country == 225
        assert parsed.entityLocation.x == state.location.x
        assert parsed.entityLinearVelocity.y == state.linear_velocity.y
        assert parsed.entityOrientation.phi == state.orientation.phi
        assert parsed.deadReckoningParameters.deadReckoningAlgorithm == DeadReckoningAlgorithm.RVW
        assert parsed.deadReckoningParameters.entityAngularVelocity.z == 0.125
        assert bytes(parsed.marking.characters[:5]) == b"TANK1"
        assert parsed.capabilities == 7
        assert len(parsed.variableParameters) == 2

    def test_open_dis_entity_id_readable(self):
        out = io.BytesIO()
        dis7.EntityID(7, 8, 9).serialize(DataOutputStream(out))
        data = marshal(RemoveEntityPdu(originating_entity_id=EntityID(1, 1, 1)))
        # Originating ID sits right after the 12 byte header
        patched = data[:12] + out.getvalue() + data[18:]
        assert unmarshal(patched).originating_entity_id == EntityID(7, 8, 9)


class TestOtherPduCodecs:
    def test_entity_state_update_round_trip(self):
        pdu = EntityStateUpdatePdu(
            entity_id=EntityID(1, 2, 3),
            linear_velocity=Vector3(1.5, 2.5, -0.5),
            location=Vector3(-2700000.25, 4300000.5, 3850000.125),
            orientation=Orientation(-1.5, 0.125, 0.0),
            appearance=42,
            articulation_parameters=[ArticulationParameter(0, 2, 0, 4107, 3.0)],
        )
        data = marshal(pdu)
        assert len(data) == 72 + 16
        assert unmarshal(data) == pdu

    def test_fire_round_trip(self):
        pdu = FirePdu(
            exercise_id=3,
            firing_entity_id=EntityID(1, 1, 10),
            target_entity_id=EntityID(2, 1, 20),
            munition_id=EntityID(1, 1, 11),
            event_id=EventID(1, 1, 500),
            fire_mission_index=4,
            location=Vector3(1.0e6, 2.0e6, 3.0e6),
            burst_descriptor=BurstDescriptor(EntityType(2, 9, 225, 2, 1, 0, 0), 1000, 100, 1, 0),
            velocity=Vector3(250.0, 0.5, -10.0),
            range_m=3500.0,
        )
        data = marshal(pdu)
        assert len(data) == 96
        assert unmarshal(data) == pdu

    def test_detonation_round_trip(self):
        pdu = DetonationPdu(
            firing_entity_id=EntityID(1, 1, 10),
            target_entity_id=EntityID(2, 1, 20),
            munition_id=EntityID(1, 1, 11),
            event_id=EventID(1, 1, 500),
            velocity=Vector3(-5.0, 0.0, 1.25),
            location=Vector3(1.0e6, 2.0e6, 3.0e6),
            burst_descriptor=BurstDescriptor(EntityType(2, 9, 225, 2, 1, 0, 0), 1000, 100, 1, 0),
            location_in_entity_coordinates=Vector3(0.5, 0.0, -1.0),
            detonation_result=1,
            articulation_parameters=[ArticulationParameter(0, 0, 0, 1, 2.0)],
        )
        data = marshal(pdu)
        assert len(data) == 104 + 16
        assert unmarshal(data) == pdu

    def test_remove_entity_round_trip(self):
        pdu = RemoveEntityPdu(
            originating_entity_id=EntityID(1, 1, 0),
            receiving_entity_id=EntityID(1, 2, 3),
            request_id=77,
        )
        data = marshal(pdu)
        assert len(data) == 28
        assert data[3] == 5
        assert unmarshal(data) == pdu

    def test_start_resume_round_trip(self):
        pdu = StartResumePdu(
            real_world_time=ClockTime(hour=480000, time_past_hour=1234),
            simulation_time=ClockTime(hour=-1, time_past_hour=99),
            request_id=5,
        )
        data = marshal(pdu)
        assert len(data) == 44
        assert unmarshal(data) == pdu

    def test_stop_freeze_round_trip(self):
        pdu = StopFreezePdu(
            real_world_time=ClockTime(hour=480000, time_past_hour=1234),
            reason=StopFreezeReason.RECESS,
            frozen_behavior=2,
            request_id=6,
        )
        data = marshal(pdu)
        assert len(data) == 40
        assert unmarshal(data) == pdu


class TestDecodeErrors:
    def test_buffer_shorter_than_header(self):
        with pytest.raises(MalformedPacket) as exc:
            unmarshal(b"\x06\x01\x01")
        assert exc.value.required == 12
        assert exc.value.actual == 3

    def test_empty_buffer(self):
        with pytest.raises(MalformedPacket):
            unmarshal(b"")

    def test_truncated_fixed_body(self):
        data = marshal(EntityStatePdu(state=_make_state()))
        with pytest.raises(MalformedPacket):
            unmarshal(data[:100])

    def test_truncated_articulation_parameters(self):
        data = marshal(EntityStatePdu(state=_make_state()))
        with pytest.raises(MalformedPacket) as exc:
            unmarshal(data[:-16])
        assert exc.value.required == 176

    def test_truncated_fixed_size_pdu(self):
        data = marshal(FirePdu())
        with pytest.raises(MalformedPacket):
            unmarshal(data[:95])

    def test_unknown_type(self):
        header = bytes([6, 1, 99, 1]) + bytes(8)
        with pytest.raises(UnknownPduType) as exc:
            unmarshal(header)
        assert exc.value.pdu_type == 99

    def test_errors_share_base_class(self):
        assert issubclass(MalformedPacket, PduDecodeError)
        assert issubclass(UnknownPduType, PduDecodeError)

    def test_trailing_bytes_ignored(self):
        pdu = RemoveEntityPdu(request_id=1)
        assert unmarshal(marshal(pdu) + b"\x00\x00") == pdu


class TestHelpers:
    def test_peek_pdu_type(self):
        assert peek_pdu_type(marshal(FirePdu())) == PduType.FIRE

    def test_peek_short_buffer(self):
        with pytest.raises(MalformedPacket):
            peek_pdu_type(b"\x06")

    def test_supported_types(self):
        assert SUPPORTED_PDU_TYPES == set(PduType)

    def test_outbound_entity_state_uses_rvw(self):
        state = _make_state(dead_reckoning=DeadReckoningParameters(algorithm=DeadReckoningAlgorithm.FPW))
        pdu = entity_state_pdu_from_record(state, exercise_id=4)
        assert pdu.exercise_id == 4
        assert pdu.state.dead_reckoning.algorithm == DeadReckoningAlgorithm.RVW
        # Source record untouched
        assert state.dead_reckoning.algorithm == DeadReckoningAlgorithm.FPW

    def test_outbound_entity_state_marshals(self):
        data = marshal(entity_state_pdu_from_record(_make_state(), exercise_id=2))
        # DR algorithm byte follows the appearance field
        assert data[88] == 4
        assert data[1] == 2
