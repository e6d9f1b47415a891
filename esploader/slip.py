"""SLIP framing over a port."""

from __future__ import annotations

from .errors import InvalidParameterError, InvalidResponseError
from .port import Port

DELIMITER = 0xC0
ESCAPE = 0xDB
ESCAPED_DELIMITER = 0xDC
ESCAPED_ESCAPE = 0xDD

_ENCODE_TABLE = {
    DELIMITER: bytes((ESCAPE, ESCAPED_DELIMITER)),
    ESCAPE: bytes((ESCAPE, ESCAPED_ESCAPE)),
}
_DECODE_TABLE = {
    ESCAPED_DELIMITER: DELIMITER,
    ESCAPED_ESCAPE: ESCAPE,
}


def encode(data: bytes) -> bytes:
    """Escape delimiter and escape bytes; no frame delimiters are added."""
    return b"".join(_ENCODE_TABLE.get(byte, bytes((byte,))) for byte in data)


class SlipLink:
    """Sends and receives SLIP frames through a port, honouring its timer."""

    def __init__(self, port: Port):
        self._port = port

    def send(self, data: bytes) -> None:
        """Send ``data`` escaped, without delimiters."""
        if data:
            self._port.write(encode(data), self._port.remaining_time())

    def send_delimiter(self) -> None:
        self._port.write(bytes((DELIMITER,)), self._port.remaining_time())

    def _read_byte(self) -> int:
        return self._port.read(1, self._port.remaining_time())[0]

    def _skip_to_delimiter(self) -> None:
        while self._read_byte() != DELIMITER:
            pass

    def receive_packet(self, max_size: int) -> bytes:
        """Receive one frame, keeping at most ``max_size`` decoded bytes.

        Bytes beyond ``max_size`` are read and discarded up to the closing
        delimiter. Repeated opening delimiters are skipped.
        """
        if max_size < 1:
            raise InvalidParameterError("max_size must be at least 1")

        self._skip_to_delimiter()
        ch = self._read_byte()
        while ch == DELIMITER:
            ch = self._read_byte()

        packet = bytearray()
        while ch != DELIMITER:
            if ch == ESCAPE:
                escaped = self._read_byte()
                if escaped not in _DECODE_TABLE:
                    raise InvalidResponseError(f"invalid SLIP escape 0x{escaped:02x}")
                ch = _DECODE_TABLE[escaped]
            packet.append(ch)
            if len(packet) == max_size:
                self._skip_to_delimiter()
                break
            ch = self._read_byte()
        return bytes(packet)