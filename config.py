# ========================= config.py =========================
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple, Union

from errors import InvalidConfiguration, InvalidDuration
from notes.model import Alphabet, check_channel, check_velocity

Equivalence = Union[None, str, Callable]

NAMING_MODES = ("offset", "hash", "sequence")


@dataclass
class TimelineConfig:
    velocity: int = 100
    duration_ticks: int = 480
    gap_ticks: int = 0        # silence between consecutive notes
    channel: int = 0

    def validate(self) -> "TimelineConfig":
        check_velocity(self.velocity)
        check_channel(self.channel)
        if not isinstance(self.duration_ticks, int) or self.duration_ticks <= 0:
            raise InvalidDuration(f"duration_ticks must be a positive integer, got {self.duration_ticks!r}")
        if not isinstance(self.gap_ticks, int) or self.gap_ticks < 0:
            raise InvalidDuration(f"gap_ticks must be a non-negative integer, got {self.gap_ticks!r}")
        return self


@dataclass
class OutputConfig:
    naming: str = "offset"    # offset | hash | sequence
    suffix: str = ".mid"
    max_retries: int = 3      # extra attempts after the first failed write
    backoff_s: float = 0.05
    backoff_factor: float = 2.0

    def validate(self) -> "OutputConfig":
        if self.naming not in NAMING_MODES:
            raise InvalidConfiguration(f"naming must be one of {NAMING_MODES}, got {self.naming!r}")
        if self.max_retries < 0 or self.backoff_s < 0 or self.backoff_factor < 1:
            raise InvalidConfiguration("retry settings must be non-negative (backoff_factor >= 1)")
        return self


@dataclass
class GeneratorConfig:
    alphabet: Tuple[int, ...] = tuple(range(60, 72))
    length: int = 3
    division: int = 480
    equivalence: Equivalence = None
    shard_range: Optional[Tuple[int, int]] = None   # None = whole space
    timeline: TimelineConfig = field(default_factory=TimelineConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def space(self):
        from sequences.space import SequenceSpace
        alphabet = self.alphabet if isinstance(self.alphabet, Alphabet) else Alphabet(self.alphabet)
        return SequenceSpace(alphabet, self.length)

    def canonicalizer(self, space=None):
        from sequences.equivalence import make_canonicalizer
        space = space or self.space()
        return make_canonicalizer(self.equivalence, space.alphabet)

    def resolved_range(self, space=None) -> Tuple[int, int]:
        space = space or self.space()
        if self.shard_range is None:
            return 0, space.size
        lo, hi = self.shard_range
        return space.validate_range(lo, hi)

    def validate(self) -> "GeneratorConfig":
        """Raise before any work starts if anything is out of range."""
        from midi.writer import check_division
        space = self.space()
        check_division(self.division)
        self.timeline.validate()
        self.output.validate()
        self.canonicalizer(space)
        self.resolved_range(space)
        return self
