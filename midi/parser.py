# midi/parser.py
import io
import os
from typing import List, Tuple, Union

import mido

from notes.model import NoteEvent


def load_midi(source: Union[str, os.PathLike, bytes]) -> mido.MidiFile:
    if isinstance(source, (bytes, bytearray)):
        return mido.MidiFile(file=io.BytesIO(bytes(source)))
    return mido.MidiFile(os.fspath(source))


def parse_midi_to_notes(source: Union[str, os.PathLike, bytes]) -> Tuple[List[NoteEvent], int]:
    """Read a file through mido and pair note-on/off into NoteEvents (ticks).

    Independent of midi.decoder, so it doubles as an interoperability check.
    Returns (notes, ticks_per_beat).
    """
    mid = load_midi(source)
    tick = 0
    active = {}
    notes: List[NoteEvent] = []

    for msg in mido.merge_tracks(mid.tracks):
        tick += msg.time
        if msg.is_meta:
            continue
        if msg.type == 'note_on' and msg.velocity > 0:
            active[(msg.channel, msg.note)] = (tick, msg.velocity)
        elif msg.type == 'note_off' or (msg.type == 'note_on' and msg.velocity == 0):
            key = (msg.channel, msg.note)
            if key in active:
                st, vel = active.pop(key)
                if tick > st:
                    notes.append(NoteEvent(pitch=msg.note, velocity=vel, start_tick=st, duration_ticks=tick - st))
    # close dangling
    for (_, p), (st, vel) in active.items():
        if tick > st:
            notes.append(NoteEvent(pitch=p, velocity=vel, start_tick=st, duration_ticks=tick - st))
    notes.sort(key=lambda n: (n.start_tick, n.pitch))
    return notes, mid.ticks_per_beat
