# midi/vlq.py
"""Variable-length quantities: 7 bits per byte, most significant group first,
high bit set on every byte but the last. SMF caps them at four bytes."""
from typing import Tuple

from errors import FormatError

MAX_VLQ = 0x0FFFFFFF
MAX_VLQ_BYTES = 4


def encode_vlq(value: int) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"VLQ value must be an integer, got {value!r}")
    if not 0 <= value <= MAX_VLQ:
        raise ValueError(f"VLQ value {value} outside [0, {MAX_VLQ:#x}]")
    out = bytearray([value & 0x7F])
    value >>= 7
    while value:
        out.insert(0, (value & 0x7F) | 0x80)
        value >>= 7
    return bytes(out)


def decode_vlq(buf: bytes, pos: int = 0) -> Tuple[int, int]:
    """Return (value, position after the quantity)."""
    value = 0
    for i in range(MAX_VLQ_BYTES):
        if pos + i >= len(buf):
            raise FormatError("truncated variable-length quantity", pos + i)
        byte = buf[pos + i]
        value = (value << 7) | (byte & 0x7F)
        if not byte & 0x80:
            return value, pos + i + 1
    raise FormatError(f"variable-length quantity longer than {MAX_VLQ_BYTES} bytes", pos)


def vlq_size(value: int) -> int:
    n = 1
    while value > 0x7F:
        value >>= 7
        n += 1
    return n
