import pytest

from config import TimelineConfig
from errors import InvalidConfiguration, InvalidDuration, InvalidPitch, InvalidVelocity
from notes.model import NoteEvent
from timeline.scheduler import (EventKind, Timeline, TimelineEvent, build_timeline, end_of_track,
                                note_off, note_on, timeline_for)


class TestBuildTimeline:
    def test_event_count_and_ticks(self):
        t = build_timeline((60, 62, 64), velocity=90, duration_ticks=100, gap_ticks=20)
        assert len(t) == 7
        assert list(t) == [
            note_on(0, 60, 90), note_off(100, 60),
            note_on(120, 62, 90), note_off(220, 62),
            note_on(240, 64, 90), note_off(340, 64),
            end_of_track(340),
        ]

    def test_note_off_sorts_before_note_on_on_same_tick(self):
        t = build_timeline((60, 60), duration_ticks=480, gap_ticks=0)
        kinds = [(e.tick, e.kind) for e in t]
        assert kinds == [
            (0, EventKind.NOTE_ON), (480, EventKind.NOTE_OFF),
            (480, EventKind.NOTE_ON), (960, EventKind.NOTE_OFF),
            (960, EventKind.END_OF_TRACK),
        ]

    def test_ticks_never_decrease(self):
        t = build_timeline((72, 60, 65, 71), duration_ticks=7, gap_ticks=0)
        ticks = [e.tick for e in t]
        assert ticks == sorted(ticks)

    def test_channel_is_carried(self):
        t = build_timeline((60,), channel=9)
        assert {e.channel for e in t if e.kind is not EventKind.END_OF_TRACK} == {9}

    def test_from_config(self):
        cfg = TimelineConfig(velocity=64, duration_ticks=10, gap_ticks=5, channel=2)
        assert timeline_for((60, 61), cfg) == build_timeline((60, 61), 64, 10, 5, 2)

    def test_invalid_inputs(self):
        with pytest.raises(InvalidDuration):
            build_timeline((60,), duration_ticks=0)
        with pytest.raises(InvalidDuration):
            build_timeline((60,), gap_ticks=-1)
        with pytest.raises(InvalidVelocity):
            build_timeline((60,), velocity=0)
        with pytest.raises(InvalidPitch):
            build_timeline((60, 128))


class TestTimeline:
    def test_sorted_on_construction(self):
        t = Timeline([end_of_track(10), note_on(5, 60, 100), note_off(10, 60), note_on(0, 61, 100)])
        assert [e.tick for e in t] == [0, 5, 10, 10]
        assert t.has_end_marker
        assert t.end_tick == 10

    def test_notes_roundtrip(self):
        t = build_timeline((60, 64, 67), velocity=80, duration_ticks=240, gap_ticks=0)
        assert t.notes() == [
            NoteEvent(60, 80, 0, 240),
            NoteEvent(64, 80, 240, 240),
            NoteEvent(67, 80, 480, 240),
        ]
        assert t.pitches() == (60, 64, 67)

    def test_dangling_note_closed_at_track_end(self):
        t = Timeline([note_on(0, 60, 100), end_of_track(50)])
        assert t.notes() == [NoteEvent(60, 100, 0, 50)]

    def test_equality(self):
        assert build_timeline((60,)) == build_timeline((60,))
        assert build_timeline((60,)) != build_timeline((61,))


class TestTimelineEvent:
    @pytest.mark.parametrize("args,exc", [
        ((0, EventKind.NOTE_ON, 60, 100, 16), InvalidConfiguration),
        ((0, EventKind.NOTE_ON, 128, 100), InvalidPitch),
        ((0, EventKind.NOTE_OFF, -1), InvalidPitch),
        ((0, EventKind.NOTE_ON, None, 100), InvalidPitch),
        ((0, EventKind.NOTE_ON, 60, 0), InvalidVelocity),
        ((0, EventKind.NOTE_ON, 60, 128), InvalidVelocity),
        ((0, EventKind.NOTE_OFF, 60, 64), InvalidVelocity),
        ((-1, EventKind.NOTE_ON, 60, 100), InvalidDuration),
        ((1.5, EventKind.END_OF_TRACK), InvalidDuration),
    ])
    def test_out_of_range_fields_rejected(self, args, exc):
        with pytest.raises(exc):
            TimelineEvent(*args)

    def test_plain_int_kind(self):
        ev = TimelineEvent(5, 2)
        assert ev.kind is EventKind.END_OF_TRACK
        assert ev == end_of_track(5)

    def test_edge_values_accepted(self):
        assert note_on(0, 127, 127, 15).channel == 15
        assert note_off(0, 0).velocity == 0
