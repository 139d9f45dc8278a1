"""
Transport boundary: raw datagrams in, entity manager updates out.

Decode failures stop here. Malformed buffers are logged and counted,
unknown PDU types are counted quietly, and nothing raised by the codec
reaches the transport that delivered the bytes.
"""

import logging
from dataclasses import dataclass

from dis_runtime.codec.errors import MalformedPacket, UnknownPduType
from dis_runtime.codec.marshal import unmarshal
from dis_runtime.codec.pdus import Pdu
from dis_runtime.core.entity_manager import EntityManager

logger = logging.getLogger(__name__)


@dataclass
class ProcessorStats:
    received: int = 0
    decoded: int = 0
    malformed: int = 0
    unknown_type: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "received": self.received,
            "decoded": self.decoded,
            "malformed": self.malformed,
            "unknown_type": self.unknown_type,
        }


class PduProcessor:
    """Decodes datagrams and applies them to an EntityManager."""

    def __init__(self, manager: EntityManager) -> None:
        self._manager = manager
        self.stats = ProcessorStats()

    def handle_bytes(self, data: bytes, address: tuple[str, int] | None = None) -> Pdu | None:
        """Decode and apply one datagram. Returns the PDU, or None if dropped."""
        self.stats.received += 1
        try:
            pdu = unmarshal(data)
        except MalformedPacket as e:
            self.stats.malformed += 1
            logger.warning(f"Dropping malformed datagram from {address}: {e}")
            return None
        except UnknownPduType as e:
            self.stats.unknown_type += 1
            logger.debug(f"Dropping datagram from {address}: {e}")
            return None

        self.stats.decoded += 1
        self._manager.apply(pdu)
        return pdu
