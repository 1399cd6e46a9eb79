import pytest

from errors import FormatError
from midi.vlq import MAX_VLQ, decode_vlq, encode_vlq, vlq_size

REFERENCE = [
    (0, b"\x00"),
    (0x40, b"\x40"),
    (127, b"\x7f"),
    (128, b"\x81\x00"),
    (0x2000, b"\xc0\x00"),
    (16383, b"\xff\x7f"),
    (16384, b"\x81\x80\x00"),
    (0x1FFFFF, b"\xff\xff\x7f"),
    (0x200000, b"\x81\x80\x80\x00"),
    (0x08000000, b"\xc0\x80\x80\x00"),
    (MAX_VLQ, b"\xff\xff\xff\x7f"),
]


@pytest.mark.parametrize("value,expected", REFERENCE)
def test_encode_reference_values(value, expected):
    assert encode_vlq(value) == expected
    assert vlq_size(value) == len(expected)


@pytest.mark.parametrize("value,expected", REFERENCE)
def test_decode_reference_values(value, expected):
    assert decode_vlq(expected + b"\x99") == (value, len(expected))


def test_decode_at_position():
    assert decode_vlq(b"\x00\x00\x83\x60", 2) == (480, 4)


@pytest.mark.parametrize("value", [-1, MAX_VLQ + 1, 1.5])
def test_encode_out_of_range(value):
    with pytest.raises(ValueError):
        encode_vlq(value)


def test_decode_longer_than_four_bytes():
    with pytest.raises(FormatError):
        decode_vlq(b"\x81\x81\x81\x81\x00")


def test_decode_truncated():
    with pytest.raises(FormatError):
        decode_vlq(b"\x81\x80")
