"""
UDP transport for DIS.

Listens on the exercise port and feeds every datagram to a PduProcessor.
Entity State PDUs are broadcast for entities this host owns whenever
the host publishes them; a locally owned entity that is removed goes out
one last time with its deactivated appearance bit set.
"""

import asyncio
import logging
import socket
from dataclasses import replace

from dis_runtime.codec.marshal import entity_state_pdu_from_record, marshal
from dis_runtime.codec.pdus import Pdu
from dis_runtime.core.entity import DEACTIVATED_APPEARANCE_BIT
from dis_runtime.core.pdu_processor import PduProcessor
from dis_runtime.core.tracker import EntityEvent, EntityEventType
from dis_runtime.transport.base import TransportAdapter

logger = logging.getLogger(__name__)


class _DisDatagramProtocol(asyncio.DatagramProtocol):
    def __init__(self, processor: PduProcessor) -> None:
        self._processor = processor

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self._processor.handle_bytes(data, addr)

    def error_received(self, exc: Exception) -> None:
        logger.warning(f"UDP receive error: {exc}")


class UdpAdapter(TransportAdapter):
    """Receives and sends DIS PDUs over UDP broadcast."""

    def __init__(
        self,
        processor: PduProcessor,
        exercise_id: int,
        bind_address: str = "0.0.0.0",
        port: int = 3000,
        broadcast_address: str = "255.255.255.255",
    ) -> None:
        self._processor = processor
        self._exercise_id = exercise_id
        self._bind_address = bind_address
        self._port = port
        self._broadcast_address = broadcast_address
        self._transport: asyncio.DatagramTransport | None = None
        self.sent_count = 0

    @property
    def name(self) -> str:
        return "udp"

    @property
    def is_connected(self) -> bool:
        return self._transport is not None

    async def connect(self) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        sock.bind((self._bind_address, self._port))
        loop = asyncio.get_running_loop()
        self._transport, _ = await loop.create_datagram_endpoint(
            lambda: _DisDatagramProtocol(self._processor), sock=sock,
        )
        logger.info(f"Listening for DIS on {self._bind_address}:{self._port}")

    async def disconnect(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            logger.info("UDP transport closed")

    def send(self, data: bytes) -> None:
        if self._transport is None:
            logger.debug("UDP transport not connected, dropping outbound PDU")
            return
        self._transport.sendto(data, (self._broadcast_address, self._port))
        self.sent_count += 1

    async def push_entity_event(self, event: EntityEvent) -> None:
        """Broadcast state for entities owned by this host."""
        if not event.owned_locally or event.state is None:
            return
        record = event.state
        if event.event_type == EntityEventType.REMOVED:
            record = replace(record, appearance=record.appearance | (1 << DEACTIVATED_APPEARANCE_BIT))
        elif event.event_type not in (EntityEventType.CREATED, EntityEventType.UPDATED):
            return
        self.send(marshal(entity_state_pdu_from_record(record, self._exercise_id)))

    async def push_event(self, pdu: Pdu) -> None:
        # Received PDUs are not re-broadcast
        return
