# midi/decoder.py
"""
Strict Standard MIDI File reader, the inverse of midi.writer.

Everything that cannot be represented as a Timeline event is either skipped
(other channel messages, meta events, sysex) or rejected with FormatError.
"""
import logging
import os
from dataclasses import dataclass
from typing import List, Tuple, Union

from errors import FormatError
from midi.vlq import decode_vlq
from midi.writer import HEADER_ID, HEADER_LENGTH, TRACK_ID
from timeline.scheduler import Timeline, TimelineEvent, end_of_track, note_off, note_on

log = logging.getLogger(__name__)

META = 0xFF
SYSEX, SYSEX_ESCAPE = 0xF0, 0xF7
META_END_OF_TRACK = 0x2F
ONE_DATA_BYTE = (0xC0, 0xD0)   # program change, channel pressure


@dataclass(frozen=True)
class SmfFile:
    format: int
    division: int
    tracks: Tuple[Timeline, ...]

    @property
    def timeline(self) -> Timeline:
        return self.tracks[0]


class _Reader:
    def __init__(self, data: bytes, pos: int = 0, end: int = None, what: str = "file"):
        self.data = data
        self.pos = pos
        self.end = len(data) if end is None else end
        self.what = what
        self._view = memoryview(data)[:self.end]

    def _need(self, n: int) -> None:
        if self.pos + n > self.end:
            if self.what == "file":
                raise FormatError("unexpected end of data", self.pos)
            raise FormatError(f"{self.what} runs past its declared chunk length", self.pos)

    def byte(self) -> int:
        self._need(1)
        b = self.data[self.pos]
        self.pos += 1
        return b

    def data_byte(self) -> int:
        b = self.byte()
        if b & 0x80:
            raise FormatError(f"expected data byte, found {b:#04x}", self.pos - 1)
        return b

    def take(self, n: int) -> bytes:
        self._need(n)
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def u16(self) -> int:
        b = self.take(2)
        return (b[0] << 8) | b[1]

    def u32(self) -> int:
        b = self.take(4)
        return (b[0] << 24) | (b[1] << 16) | (b[2] << 8) | b[3]

    def vlq(self) -> int:
        # bounded view: a quantity may not run past the chunk
        value, self.pos = decode_vlq(self._view, self.pos)
        return value

    def chunk_header(self, expected: bytes) -> int:
        start = self.pos
        magic = self.take(4)
        if magic != expected:
            raise FormatError(f"expected chunk {expected!r}, found {magic!r}", start)
        return self.u32()


def _parse_track(data: bytes, start: int, length: int) -> Timeline:
    r = _Reader(data, start, start + length, what="track")
    if r.end > len(data):
        raise FormatError(f"track declares {length} bytes but only {len(data) - start} remain", start)
    events: List[TimelineEvent] = []
    tick = 0
    running = None
    while True:
        if r.pos >= r.end:
            raise FormatError("track data ended without EndOfTrack", r.pos)
        tick += r.vlq()
        status_pos = r.pos
        status = r.byte()
        first = None
        if status < 0x80:
            if running is None:
                raise FormatError(f"data byte {status:#04x} without running status", status_pos)
            first, status = status, running

        if 0x80 <= status <= 0xEF:
            running = status
            kind, channel = status & 0xF0, status & 0x0F
            d1 = first if first is not None else r.data_byte()
            if kind in ONE_DATA_BYTE:
                log.debug("skipping channel message %#04x at tick %d", status, tick)
                continue
            d2 = r.data_byte()
            if kind == 0x90 and d2 > 0:
                events.append(note_on(tick, d1, d2, channel))
            elif kind in (0x80, 0x90):
                events.append(note_off(tick, d1, channel))
            else:
                log.debug("skipping channel message %#04x at tick %d", status, tick)
        elif status == META:
            running = None
            meta_type = r.byte()
            payload = r.take(r.vlq())
            if meta_type == META_END_OF_TRACK:
                if payload:
                    raise FormatError("EndOfTrack meta event must have length 0", status_pos)
                events.append(end_of_track(tick))
                break
            log.debug("skipping meta event %#04x (%d bytes)", meta_type, len(payload))
        elif status in (SYSEX, SYSEX_ESCAPE):
            running = None
            r.take(r.vlq())
        else:
            raise FormatError(f"unrecognized status byte {status:#04x}", status_pos)

    if r.pos != r.end:
        raise FormatError(
            f"track declares {length} bytes but EndOfTrack ends after {r.pos - start}", r.pos)
    return Timeline(events)


def decode(data: bytes) -> SmfFile:
    data = bytes(data)
    r = _Reader(data)
    length = r.chunk_header(HEADER_ID)
    if length != HEADER_LENGTH:
        raise FormatError(f"header length must be {HEADER_LENGTH}, found {length}", 4)
    fmt, ntracks, division = r.u16(), r.u16(), r.u16()
    if fmt not in (0, 1, 2):
        raise FormatError(f"unknown SMF format {fmt}", 8)
    if division & 0x8000:
        raise FormatError("SMPTE time division is not supported", 12)
    if division == 0:
        raise FormatError("division must be positive", 12)
    if fmt == 0 and ntracks != 1:
        raise FormatError(f"format 0 requires exactly one track, header declares {ntracks}", 10)

    tracks: List[Timeline] = []
    for _ in range(ntracks):
        length = r.chunk_header(TRACK_ID)
        tracks.append(_parse_track(data, r.pos, length))
        r.pos += length
    if r.pos != len(data):
        raise FormatError(f"{len(data) - r.pos} trailing bytes after last track", r.pos)
    return SmfFile(fmt, division, tuple(tracks))


def decode_timeline(data: bytes) -> Tuple[Timeline, int]:
    """(timeline, division) of a single-track file."""
    smf = decode(data)
    if len(smf.tracks) != 1:
        raise FormatError(f"expected a single track, found {len(smf.tracks)}")
    return smf.timeline, smf.division


def read_file(path: Union[str, os.PathLike]) -> SmfFile:
    with open(path, "rb") as f:
        return decode(f.read())
