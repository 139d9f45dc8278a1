"""Decode failures raised by the wire codec."""


class PduDecodeError(Exception):
    """Base class for buffers that cannot be turned into a PDU."""


class MalformedPacket(PduDecodeError):
    """Buffer is shorter than the header or the body its type requires."""

    def __init__(self, message: str, required: int = 0, actual: int = 0) -> None:
        super().__init__(message)
        self.required = required
        self.actual = actual


class UnknownPduType(PduDecodeError):
    """Type code has no registered layout. Not an application error."""

    def __init__(self, pdu_type: int) -> None:
        super().__init__(f"No layout registered for PDU type {pdu_type}")
        self.pdu_type = pdu_type
