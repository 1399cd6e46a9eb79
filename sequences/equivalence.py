# sequences/equivalence.py
from math import gcd
from typing import Callable, Optional, Sequence as Seq, Tuple, Union

from errors import InvalidConfiguration
from notes.model import Alphabet

Digits = Tuple[int, ...]


class Canonicalizer:
    """Maps alphabet-index digits to the canonical member of their equivalence class."""
    name = "none"

    def canonicalize(self, digits: Seq[int]) -> Digits:
        raise NotImplementedError

    def is_canonical(self, digits: Seq[int]) -> bool:
        d = tuple(digits)
        return self.canonicalize(d) == d


class Transposition(Canonicalizer):
    """Shift every digit by the same k modulo B (pitch rotation inside the alphabet).
    Every class has exactly B members and one of them starts with digit 0."""
    name = "transposition"

    def __init__(self, base: int):
        self.base = base

    def canonicalize(self, digits: Seq[int]) -> Digits:
        if not digits:
            return ()
        k = digits[0]
        return tuple((d - k) % self.base for d in digits)

    def is_canonical(self, digits: Seq[int]) -> bool:
        return digits[0] == 0


class Retrograde(Canonicalizer):
    """A melody and its reversal are the same class; keep the lexicographically smaller."""
    name = "retrograde"

    def canonicalize(self, digits: Seq[int]) -> Digits:
        d = tuple(digits)
        return min(d, d[::-1])

    def is_canonical(self, digits: Seq[int]) -> bool:
        n = len(digits)
        for i in range(n // 2):
            a, b = digits[i], digits[n - 1 - i]
            if a != b:
                return a < b
        return True


class Necklace(Canonicalizer):
    """Cyclic rotations in time are the same class; keep the smallest rotation."""
    name = "necklace"

    def canonicalize(self, digits: Seq[int]) -> Digits:
        d = tuple(digits)
        return min(d[i:] + d[:i] for i in range(len(d))) if d else d


class PitchFunction(Canonicalizer):
    """Wraps a user function over pitch tuples."""
    name = "custom"

    def __init__(self, fn: Callable[[Tuple[int, ...]], Seq[int]], alphabet: Alphabet):
        self.fn = fn
        self.alphabet = alphabet

    def canonicalize(self, digits: Seq[int]) -> Digits:
        pitches = tuple(self.alphabet[d] for d in digits)
        return tuple(self.alphabet.index(p) for p in self.fn(pitches))


MODES = ("none", "transposition", "retrograde", "necklace")


def make_canonicalizer(mode: Union[None, str, Callable], alphabet: Alphabet) -> Optional[Canonicalizer]:
    if mode is None or mode == "none":
        return None
    if callable(mode):
        return PitchFunction(mode, alphabet)
    if mode == "transposition":
        return Transposition(alphabet.size)
    if mode == "retrograde":
        return Retrograde()
    if mode == "necklace":
        return Necklace()
    raise InvalidConfiguration(f"unknown equivalence mode {mode!r}; expected one of {MODES}")


def _phi(n: int) -> int:
    return sum(1 for k in range(1, n + 1) if gcd(n, k) == 1)


def class_count(mode: Optional[str], base: int, length: int) -> int:
    """Number of equivalence classes (= emitted sequences) over the full space."""
    if mode is None or mode == "none":
        return base ** length
    if mode == "transposition":
        return base ** (length - 1)
    if mode == "retrograde":
        return (base ** length + base ** ((length + 1) // 2)) // 2
    if mode == "necklace":
        # Burnside over the cyclic group
        total = sum(_phi(d) * base ** (length // d) for d in range(1, length + 1) if length % d == 0)
        return total // length
    raise InvalidConfiguration(f"no closed-form class count for mode {mode!r}")
