# timeline/scheduler.py
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Iterable, Iterator, List, Optional, Sequence as Seq, Tuple

from errors import InvalidDuration, InvalidVelocity
from notes.model import NoteEvent, check_channel, check_pitch, check_velocity


class EventKind(IntEnum):
    # value doubles as the same-tick sort order: a note ends before the next starts
    NOTE_OFF = 0
    NOTE_ON = 1
    END_OF_TRACK = 2


@dataclass(frozen=True)
class TimelineEvent:
    tick: int                     # absolute
    kind: EventKind
    pitch: Optional[int] = None   # None only for END_OF_TRACK
    velocity: int = 0
    channel: int = 0

    def __post_init__(self):
        object.__setattr__(self, "kind", EventKind(self.kind))
        if isinstance(self.tick, bool) or not isinstance(self.tick, int) or self.tick < 0:
            raise InvalidDuration(f"tick must be a non-negative integer, got {self.tick!r}")
        check_channel(self.channel)
        if self.kind is EventKind.END_OF_TRACK:
            return
        check_pitch(self.pitch)
        if self.kind is EventKind.NOTE_ON:
            check_velocity(self.velocity)
        elif self.velocity != 0:
            raise InvalidVelocity(f"note-off velocity is always 0, got {self.velocity!r}")

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (self.tick, int(self.kind))


def note_on(tick: int, pitch: int, velocity: int, channel: int = 0) -> TimelineEvent:
    return TimelineEvent(tick, EventKind.NOTE_ON, pitch, velocity, channel)


def note_off(tick: int, pitch: int, channel: int = 0) -> TimelineEvent:
    return TimelineEvent(tick, EventKind.NOTE_OFF, pitch, 0, channel)


def end_of_track(tick: int) -> TimelineEvent:
    return TimelineEvent(tick, EventKind.END_OF_TRACK)


class Timeline:
    """Tick-ordered events of one track. NoteOff sorts before NoteOn on equal ticks."""

    def __init__(self, events: Iterable[TimelineEvent]):
        # sorted() is stable, so equal keys keep their insertion order
        self.events: Tuple[TimelineEvent, ...] = tuple(sorted(events, key=lambda e: e.sort_key))

    def __iter__(self) -> Iterator[TimelineEvent]:
        return iter(self.events)

    def __len__(self) -> int:
        return len(self.events)

    def __getitem__(self, i):
        return self.events[i]

    def __eq__(self, other) -> bool:
        return isinstance(other, Timeline) and self.events == other.events

    def __hash__(self) -> int:
        return hash(self.events)

    def __repr__(self) -> str:
        return f"Timeline({len(self.events)} events, end_tick={self.end_tick})"

    @property
    def end_tick(self) -> int:
        return self.events[-1].tick if self.events else 0

    @property
    def has_end_marker(self) -> bool:
        return bool(self.events) and self.events[-1].kind is EventKind.END_OF_TRACK

    def notes(self) -> List[NoteEvent]:
        """Pair note-ons with their note-offs. Unclosed notes end at the track end."""
        active: Dict[Tuple[int, int], Tuple[int, int]] = {}
        notes: List[NoteEvent] = []
        for ev in self.events:
            if ev.kind is EventKind.NOTE_ON:
                active[(ev.channel, ev.pitch)] = (ev.tick, ev.velocity)
            elif ev.kind is EventKind.NOTE_OFF:
                key = (ev.channel, ev.pitch)
                if key in active:
                    st, vel = active.pop(key)
                    if ev.tick > st:
                        notes.append(NoteEvent(ev.pitch, vel, st, ev.tick - st))
        # close dangling
        end = self.end_tick
        for (_, p), (st, vel) in active.items():
            if end > st:
                notes.append(NoteEvent(p, vel, st, end - st))
        notes.sort(key=lambda n: (n.start_tick, n.pitch))
        return notes

    def pitches(self) -> Tuple[int, ...]:
        return tuple(e.pitch for e in self.events if e.kind is EventKind.NOTE_ON)


def build_timeline(sequence: Seq[int], velocity: int = 100, duration_ticks: int = 480,
                   gap_ticks: int = 0, channel: int = 0) -> Timeline:
    """One note per pitch, back to back with `gap_ticks` of silence, then EndOfTrack
    at the last note-off. Produces 2*len(sequence)+1 events."""
    check_velocity(velocity)
    check_channel(channel)
    if duration_ticks <= 0:
        raise InvalidDuration(f"duration_ticks must be > 0, got {duration_ticks}")
    if gap_ticks < 0:
        raise InvalidDuration(f"gap_ticks must be >= 0, got {gap_ticks}")

    step = duration_ticks + gap_ticks
    events: List[TimelineEvent] = []
    tick = 0
    for i, pitch in enumerate(sequence):
        check_pitch(pitch)
        start = i * step
        tick = start + duration_ticks
        events.append(note_on(start, pitch, velocity, channel))
        events.append(note_off(tick, pitch, channel))
    events.append(end_of_track(tick))
    return Timeline(events)


def timeline_for(sequence: Seq[int], cfg) -> Timeline:
    """build_timeline driven by a TimelineConfig."""
    return build_timeline(sequence, cfg.velocity, cfg.duration_ticks, cfg.gap_ticks, cfg.channel)
