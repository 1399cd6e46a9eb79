# midi/writer.py
import logging
import os
import struct
from typing import Iterable, Union

from errors import InvalidConfiguration
from midi.vlq import encode_vlq, vlq_size
from timeline.scheduler import EventKind, Timeline

log = logging.getLogger(__name__)

HEADER_ID = b"MThd"
TRACK_ID = b"MTrk"
HEADER_LENGTH = 6
FORMAT_SINGLE_TRACK = 0
MAX_DIVISION = 0x7FFF   # high bit set would mean SMPTE timing

NOTE_OFF_STATUS = 0x80
NOTE_ON_STATUS = 0x90
END_OF_TRACK_BYTES = b"\xff\x2f\x00"


def check_division(division) -> int:
    if isinstance(division, bool) or not isinstance(division, int) or not 1 <= division <= MAX_DIVISION:
        raise InvalidConfiguration(f"division must be an integer in [1, {MAX_DIVISION}], got {division!r}")
    return division


def header_chunk(division: int, tracks: int = 1, fmt: int = FORMAT_SINGLE_TRACK) -> bytes:
    check_division(division)
    return HEADER_ID + struct.pack(">IHHH", HEADER_LENGTH, fmt, tracks, division)


def _event_bytes(ev) -> bytes:
    if ev.kind is EventKind.NOTE_ON:
        return bytes((NOTE_ON_STATUS | ev.channel, ev.pitch, ev.velocity))
    if ev.kind is EventKind.NOTE_OFF:
        return bytes((NOTE_OFF_STATUS | ev.channel, ev.pitch, 0))
    raise ValueError(f"cannot encode event kind {ev.kind!r}")


def _check_end(end_tick, last_tick: int) -> None:
    if end_tick is not None and end_tick < last_tick:
        raise ValueError(f"EndOfTrack at tick {end_tick} precedes the last event at tick {last_tick}")


def track_events(timeline: Timeline) -> bytes:
    """Delta-timed event stream; EndOfTrack is always the single final event."""
    out = bytearray()
    prev = 0
    end_tick = None
    for ev in timeline:
        if ev.kind is EventKind.END_OF_TRACK:
            end_tick = ev.tick
            continue
        out += encode_vlq(ev.tick - prev)
        out += _event_bytes(ev)
        prev = ev.tick
    _check_end(end_tick, prev)
    out += encode_vlq(end_tick - prev if end_tick is not None else 0)
    out += END_OF_TRACK_BYTES
    return bytes(out)


def track_chunk(timeline: Timeline) -> bytes:
    data = track_events(timeline)
    return TRACK_ID + struct.pack(">I", len(data)) + data


def encode(timeline: Timeline, division: int) -> bytes:
    """Format-0 Standard MIDI File bytes for a single timeline."""
    return header_chunk(division) + track_chunk(timeline)


def encode_tracks(timelines: Iterable[Timeline], division: int) -> bytes:
    """Format 1 when given more than one track."""
    chunks = [track_chunk(t) for t in timelines]
    fmt = FORMAT_SINGLE_TRACK if len(chunks) == 1 else 1
    return header_chunk(division, len(chunks), fmt) + b"".join(chunks)


def encoded_size(timeline: Timeline) -> int:
    """Exact size in bytes of encode(timeline, ...) without building it."""
    size = 8 + HEADER_LENGTH + 8
    prev = 0
    end_tick = None
    for ev in timeline:
        if ev.kind is EventKind.END_OF_TRACK:
            end_tick = ev.tick
            continue
        size += vlq_size(ev.tick - prev) + 3
        prev = ev.tick
    _check_end(end_tick, prev)
    size += vlq_size(end_tick - prev if end_tick is not None else 0) + len(END_OF_TRACK_BYTES)
    return size


def write_file(path: Union[str, os.PathLike], timeline: Timeline, division: int) -> int:
    data = encode(timeline, division)
    with open(path, "wb") as f:
        f.write(data)
    log.debug("wrote %d bytes to %s", len(data), path)
    return len(data)
