# notes/model.py
from dataclasses import dataclass
from typing import Iterable, Iterator, Tuple

from errors import InvalidConfiguration, InvalidDuration, InvalidPitch, InvalidVelocity

MIN_PITCH, MAX_PITCH = 0, 127
MIN_VELOCITY, MAX_VELOCITY = 1, 127
MAX_CHANNEL = 15


def _as_int(value, err, what: str) -> int:
    # bool is an int subclass but never a sensible pitch/velocity
    if isinstance(value, bool) or not isinstance(value, int):
        raise err(f"{what} must be an integer, got {value!r}")
    return value


def check_pitch(pitch) -> int:
    p = _as_int(pitch, InvalidPitch, "pitch")
    if not MIN_PITCH <= p <= MAX_PITCH:
        raise InvalidPitch(f"pitch {p} outside [{MIN_PITCH}, {MAX_PITCH}]")
    return p


def check_velocity(velocity) -> int:
    v = _as_int(velocity, InvalidVelocity, "velocity")
    if not MIN_VELOCITY <= v <= MAX_VELOCITY:
        raise InvalidVelocity(f"velocity {v} outside [{MIN_VELOCITY}, {MAX_VELOCITY}]")
    return v


def check_channel(channel) -> int:
    c = _as_int(channel, InvalidConfiguration, "channel")
    if not 0 <= c <= MAX_CHANNEL:
        raise InvalidConfiguration(f"channel {c} outside [0, {MAX_CHANNEL}]")
    return c


@dataclass(frozen=True)
class NoteEvent:
    pitch: int          # MIDI note number
    velocity: int
    start_tick: int
    duration_ticks: int

    def __post_init__(self):
        check_pitch(self.pitch)
        check_velocity(self.velocity)
        start = _as_int(self.start_tick, InvalidDuration, "start_tick")
        dur = _as_int(self.duration_ticks, InvalidDuration, "duration_ticks")
        if start < 0:
            raise InvalidDuration(f"start_tick must be >= 0, got {start}")
        if dur <= 0:
            raise InvalidDuration(f"duration_ticks must be > 0, got {dur}")

    @property
    def end_tick(self) -> int:
        return self.start_tick + self.duration_ticks


class Alphabet:
    """Ordered, immutable set of pitches. Position in the alphabet is the odometer digit."""

    def __init__(self, pitches: Iterable[int]):
        ps = tuple(check_pitch(p) for p in pitches)
        if not ps:
            raise InvalidConfiguration("alphabet must contain at least one pitch")
        index = {p: i for i, p in enumerate(ps)}
        if len(index) != len(ps):
            raise InvalidConfiguration(f"alphabet has duplicate pitches: {ps}")
        self._pitches: Tuple[int, ...] = ps
        self._index = index

    @classmethod
    def from_range(cls, lo: int, hi: int) -> "Alphabet":
        """Inclusive pitch range, e.g. from_range(60, 71) is one octave from middle C."""
        return cls(range(lo, hi + 1))

    @classmethod
    def parse(cls, text: str) -> "Alphabet":
        from notes.names import parse_alphabet
        return cls(parse_alphabet(text))

    @property
    def size(self) -> int:
        return len(self._pitches)

    @property
    def pitches(self) -> Tuple[int, ...]:
        return self._pitches

    def index(self, pitch: int) -> int:
        try:
            return self._index[pitch]
        except KeyError:
            raise InvalidPitch(f"pitch {pitch!r} is not in the alphabet") from None

    def __getitem__(self, i: int) -> int:
        return self._pitches[i]

    def __iter__(self) -> Iterator[int]:
        return iter(self._pitches)

    def __len__(self) -> int:
        return len(self._pitches)

    def __contains__(self, pitch) -> bool:
        return pitch in self._index

    def __eq__(self, other) -> bool:
        return isinstance(other, Alphabet) and self._pitches == other._pitches

    def __hash__(self) -> int:
        return hash(self._pitches)

    def __repr__(self) -> str:
        return f"Alphabet({list(self._pitches)})"
