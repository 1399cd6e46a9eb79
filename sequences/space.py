# sequences/space.py
"""
Offset-addressable view of every melody of a fixed length over an alphabet.

Offset k maps to a sequence by mixed-radix ("odometer") decomposition: digit i,
counted from the most significant, is floor(k / B**(L-1-i)) mod B and picks
alphabet[digit]. The B**L sequences are never stored; ranges are walked by
incrementing the odometer in place.
"""
from typing import Iterator, List, Optional, Sequence as Seq, Tuple

from errors import InvalidConfiguration
from notes.model import Alphabet

Sequence = Tuple[int, ...]
Range = Tuple[int, int]


class SequenceSpace:
    def __init__(self, alphabet: Alphabet, length: int):
        if isinstance(length, bool) or not isinstance(length, int) or length <= 0:
            raise InvalidConfiguration(f"sequence length must be a positive integer, got {length!r}")
        self.alphabet = alphabet
        self.length = length
        self.base = alphabet.size
        self.size = self.base ** length

    def __len__(self) -> int:
        # len() is capped at sys.maxsize; use .size for huge spaces
        return self.size

    def __repr__(self) -> str:
        return f"SequenceSpace(B={self.base}, L={self.length}, size={self.size})"

    # ---------- offset <-> digits ----------
    def _check_offset(self, offset: int) -> None:
        if not 0 <= offset < self.size:
            raise InvalidConfiguration(f"offset {offset} outside [0, {self.size})")

    def digits_at(self, offset: int) -> List[int]:
        self._check_offset(offset)
        digits = [0] * self.length
        for i in range(self.length - 1, -1, -1):
            offset, digits[i] = divmod(offset, self.base)
        return digits

    def sequence_at(self, offset: int) -> Sequence:
        pitches = self.alphabet.pitches
        return tuple(pitches[d] for d in self.digits_at(offset))

    def digits_of(self, sequence: Seq[int]) -> List[int]:
        if len(sequence) != self.length:
            raise InvalidConfiguration(
                f"sequence has {len(sequence)} pitches, space length is {self.length}")
        return [self.alphabet.index(p) for p in sequence]

    def offset_of(self, sequence: Seq[int]) -> int:
        offset = 0
        for d in self.digits_of(sequence):
            offset = offset * self.base + d
        return offset

    # ---------- ranges ----------
    def validate_range(self, lo: int, hi: int) -> Range:
        for v in (lo, hi):
            if isinstance(v, bool) or not isinstance(v, int):
                raise InvalidConfiguration(f"shard bounds must be integers, got {v!r}")
        if not 0 <= lo <= hi <= self.size:
            raise InvalidConfiguration(f"shard range [{lo}, {hi}) outside [0, {self.size})")
        return lo, hi

    def iter_digits(self, lo: int = 0, hi: Optional[int] = None) -> Iterator[Tuple[int, List[int]]]:
        """Yield (offset, digits) for each offset in [lo, hi), ascending.

        The digits list is one odometer stepped in place; copy it to keep it.
        """
        hi = self.size if hi is None else hi
        self.validate_range(lo, hi)
        if lo == hi:
            return
        base, last = self.base, self.length - 1
        digits = self.digits_at(lo)
        offset = lo
        while True:
            yield offset, digits
            offset += 1
            if offset >= hi:
                return
            # odometer step
            i = last
            while digits[i] == base - 1:
                digits[i] = 0
                i -= 1
            digits[i] += 1

    def iter_range(self, lo: int = 0, hi: Optional[int] = None,
                   canonicalizer=None) -> Iterator[Tuple[int, Sequence]]:
        """Yield (offset, sequence) for each offset in [lo, hi), ascending.

        With a canonicalizer only offsets whose sequence is the canonical member
        of its equivalence class are yielded.
        """
        pitches = self.alphabet.pitches
        for offset, digits in self.iter_digits(lo, hi):
            if canonicalizer is None or canonicalizer.is_canonical(digits):
                yield offset, tuple(pitches[d] for d in digits)

    def __iter__(self) -> Iterator[Sequence]:
        for _, seq in self.iter_range():
            yield seq

    def count(self, lo: int = 0, hi: Optional[int] = None, canonicalizer=None) -> int:
        hi = self.size if hi is None else hi
        if canonicalizer is None:
            lo, hi = self.validate_range(lo, hi)
            return hi - lo
        return sum(1 for _ in self.iter_range(lo, hi, canonicalizer))

    def split(self, n: int) -> List[Range]:
        return split_range(0, self.size, n)


def split_range(lo: int, hi: int, n: int) -> List[Range]:
    """Partition [lo, hi) into n contiguous shards whose sizes differ by at most one.

    Empty shards are dropped when n exceeds the range size.
    """
    if n <= 0:
        raise InvalidConfiguration(f"shard count must be positive, got {n}")
    if hi < lo:
        raise InvalidConfiguration(f"invalid range [{lo}, {hi})")
    q, r = divmod(hi - lo, n)
    out: List[Range] = []
    start = lo
    for i in range(n):
        end = start + q + (1 if i < r else 0)
        if end > start:
            out.append((start, end))
        start = end
    return out
