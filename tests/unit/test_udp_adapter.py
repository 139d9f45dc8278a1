"""Tests for the UDP transport adapter."""

from unittest.mock import MagicMock

import pytest

from dis_runtime.codec.marshal import marshal, unmarshal
from dis_runtime.codec.pdus import EntityStatePdu, FirePdu
from dis_runtime.core.entity import (
    DeadReckoningAlgorithm,
    DeadReckoningParameters,
    EntityID,
    EntityStateRecord,
)
from dis_runtime.core.entity_manager import EntityManager
from dis_runtime.core.pdu_processor import PduProcessor
from dis_runtime.core.tracker import EntityEvent, EntityEventType
from dis_runtime.transport.udp_adapter import UdpAdapter, _DisDatagramProtocol


@pytest.fixture
def processor():
    return PduProcessor(EntityManager())


@pytest.fixture
def adapter(processor):
    adapter = UdpAdapter(processor, exercise_id=5, port=3000, broadcast_address="10.0.0.255")
    adapter._transport = MagicMock()
    return adapter


def _event(event_type, owned_locally=True) -> EntityEvent:
    state = EntityStateRecord(
        entity_id=EntityID(1, 2, 3),
        dead_reckoning=DeadReckoningParameters(algorithm=DeadReckoningAlgorithm.FPW),
        marking="OWN",
    )
    return EntityEvent(event_type, state.entity_id, state=state, owned_locally=owned_locally)


class TestUdpAdapter:
    def test_datagrams_reach_processor(self, processor):
        protocol = _DisDatagramProtocol(processor)
        data = marshal(EntityStatePdu(state=EntityStateRecord(entity_id=EntityID(1, 1, 1))))
        protocol.datagram_received(data, ("10.0.0.9", 3000))
        assert processor.stats.decoded == 1

    def test_bad_datagram_does_not_raise(self, processor):
        protocol = _DisDatagramProtocol(processor)
        protocol.datagram_received(b"\x00\x01", ("10.0.0.9", 3000))
        assert processor.stats.malformed == 1

    @pytest.mark.asyncio
    async def test_sends_local_entity_state(self, adapter):
        await adapter.push_entity_event(_event(EntityEventType.UPDATED))
        data, address = adapter._transport.sendto.call_args[0]
        assert address == ("10.0.0.255", 3000)
        pdu = unmarshal(data)
        assert pdu.exercise_id == 5
        assert pdu.state.marking == "OWN"
        assert pdu.state.dead_reckoning.algorithm == DeadReckoningAlgorithm.RVW

    @pytest.mark.asyncio
    async def test_removed_local_entity_sent_deactivated(self, adapter):
        await adapter.push_entity_event(_event(EntityEventType.REMOVED))
        pdu = unmarshal(adapter._transport.sendto.call_args[0][0])
        assert pdu.state.is_deactivated

    @pytest.mark.asyncio
    async def test_remote_entities_not_sent(self, adapter):
        await adapter.push_entity_event(_event(EntityEventType.UPDATED, owned_locally=False))
        await adapter.push_entity_event(_event(EntityEventType.DEAD_RECKONED))
        adapter._transport.sendto.assert_not_called()
        assert adapter.sent_count == 0

    @pytest.mark.asyncio
    async def test_received_pdus_not_rebroadcast(self, adapter):
        await adapter.push_event(FirePdu())
        adapter._transport.sendto.assert_not_called()

    @pytest.mark.asyncio
    async def test_disconnect(self, adapter):
        transport = adapter._transport
        await adapter.disconnect()
        transport.close.assert_called_once()
        assert not adapter.is_connected

    def test_send_without_transport(self, processor):
        adapter = UdpAdapter(processor, exercise_id=1)
        adapter.send(b"\x00")
        assert adapter.sent_count == 0
