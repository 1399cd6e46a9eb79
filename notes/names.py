# notes/names.py
"""
Note-name parsing for alphabets given on the command line.

Accepted forms:
    "C:4"        name:octave, middle C = 60
    "c#:5" / "CSharp:5" / "Db:5" / "d♭:5"   enharmonic spellings
    "60"         plain MIDI number
    "60-71"      inclusive range of MIDI numbers
"""
from typing import Iterable, List

from errors import InvalidPitch
from notes.model import check_pitch

SEMITONES = {
    "c": 0, "bsharp": 0, "b#": 0,
    "csharp": 1, "c#": 1, "dflat": 1, "db": 1, "d♭": 1,
    "d": 2,
    "dsharp": 3, "d#": 3, "eflat": 3, "eb": 3, "e♭": 3,
    "e": 4, "fflat": 4, "fb": 4, "f♭": 4,
    "f": 5, "esharp": 5, "e#": 5,
    "fsharp": 6, "f#": 6, "gflat": 6, "gb": 6, "g♭": 6,
    "g": 7,
    "gsharp": 8, "g#": 8, "aflat": 8, "ab": 8, "a♭": 8,
    "a": 9,
    "asharp": 10, "a#": 10, "bflat": 10, "bb": 10, "b♭": 10,
    "b": 11, "cflat": 11, "cb": 11, "c♭": 11,
}

SHARP_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

MIN_OCTAVE, MAX_OCTAVE = -1, 9


class InvalidNoteName(InvalidPitch):
    def __init__(self, message: str, text: str = "", index: int = -1):
        super().__init__(message)
        self.text = text
        self.index = index


def note_to_pitch(text: str) -> int:
    """Parse `<name>:<octave>` into a MIDI note number."""
    parts = text.strip().split(":")
    if len(parts) != 2:
        raise InvalidNoteName(f"expected '<note>:<octave>', found {text!r}", text)
    name, octave_s = parts[0].strip().lower(), parts[1].strip()
    if name not in SEMITONES:
        raise InvalidNoteName(f"unknown note type {parts[0]!r}", text)
    try:
        octave = int(octave_s)
    except ValueError:
        raise InvalidNoteName(f"invalid octave {octave_s!r}", text) from None
    if not MIN_OCTAVE <= octave <= MAX_OCTAVE:
        raise InvalidNoteName(f"octave {octave} outside [{MIN_OCTAVE}, {MAX_OCTAVE}]", text)
    # Cb:-1 and B#:9 etc. fall outside 0..127
    try:
        return check_pitch(SEMITONES[name] + (octave + 1) * 12)
    except InvalidPitch as e:
        raise InvalidNoteName(str(e), text) from None


def pitch_name(pitch: int) -> str:
    p = check_pitch(pitch)
    return f"{SHARP_NAMES[p % 12]}{p // 12 - 1}"


def _parse_token(token: str) -> List[int]:
    if ":" in token:
        return [note_to_pitch(token)]
    lo_s, sep, hi_s = token.partition("-")
    try:
        if sep and lo_s:
            lo, hi = int(lo_s), int(hi_s)
            if hi < lo:
                raise InvalidNoteName(f"empty pitch range {token!r}", token)
            return [check_pitch(p) for p in range(lo, hi + 1)]
        return [check_pitch(int(token))]
    except ValueError as e:
        if isinstance(e, InvalidPitch):
            raise InvalidNoteName(str(e), token) from None
        raise InvalidNoteName(f"cannot parse pitch {token!r}", token) from None


def parse_alphabet(text: str) -> List[int]:
    """Comma separated tokens, in the order given. Duplicates are kept (Alphabet rejects them)."""
    out: List[int] = []
    for idx, token in enumerate(text.split(",")):
        try:
            out.extend(_parse_token(token.strip()))
        except InvalidNoteName as e:
            raise InvalidNoteName(f"invalid note at index {idx}: {e}", e.text, idx) from None
    return out


def parse_note_set(text: str) -> List[int]:
    """Like parse_alphabet but sorted with duplicates removed."""
    return sorted(set(parse_alphabet(text)))


def format_sequence(pitches: Iterable[int]) -> str:
    return " ".join(pitch_name(p) for p in pitches)
