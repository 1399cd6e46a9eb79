# batch/orchestrator.py
"""
Enumerate -> build timeline -> encode -> persist, for one shard of the space.

The checkpoint always holds the next offset to process and is advanced only
after the file for the previous offset has been written, so a crash costs at
most one regenerated file and never a skipped offset.
"""
import errno
import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence as Seq, Tuple

from config import GeneratorConfig, OutputConfig
from errors import InvalidConfiguration, PersistentIOFailure, TransientIOFailure
from midi.writer import encode
from timeline.scheduler import timeline_for

log = logging.getLogger(__name__)

TRANSIENT_ERRNOS = frozenset(
    e for e in (errno.EAGAIN, errno.EWOULDBLOCK, errno.EINTR, errno.EBUSY,
                errno.ETIMEDOUT, getattr(errno, "ENOBUFS", None))
    if e is not None
)


@dataclass
class RunStats:
    lo: int
    hi: int
    resumed_from: int
    written: int = 0
    skipped: int = 0      # offsets dropped by the equivalence filter
    retries: int = 0
    next_offset: int = 0  # value of the last committed checkpoint
    stopped: bool = False

    @property
    def finished(self) -> bool:
        return self.next_offset >= self.hi


def make_identifier(naming: str, offset: int, sequence: Seq[int], data: bytes,
                    width: int = 0, suffix: str = ".mid") -> str:
    if naming == "offset":
        return f"{offset:0{width}d}{suffix}"
    if naming == "hash":
        return hashlib.sha1(data).hexdigest() + suffix
    if naming == "sequence":
        return "-".join(str(p) for p in sequence) + suffix
    raise InvalidConfiguration(f"unknown naming mode {naming!r}")


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, TransientIOFailure):
        return True
    if isinstance(exc, PersistentIOFailure):
        return False
    return isinstance(exc, OSError) and exc.errno in TRANSIENT_ERRNOS


def write_with_retry(sink, name: str, data: bytes, cfg: OutputConfig,
                     sleep: Callable[[float], None] = time.sleep) -> int:
    """Write once, retrying transient failures with exponential backoff.
    Returns the number of retries used; raises PersistentIOFailure otherwise."""
    attempt = 0
    delay = cfg.backoff_s
    while True:
        try:
            sink.write(name, data)
            return attempt
        except OSError as e:
            if not is_transient(e):
                if isinstance(e, PersistentIOFailure):
                    raise
                raise PersistentIOFailure(f"writing {name} failed: {e}") from e
            if attempt >= cfg.max_retries:
                raise PersistentIOFailure(
                    f"writing {name} failed after {attempt + 1} attempts: {e}") from e
            attempt += 1
            log.warning("transient failure writing %s (attempt %d/%d): %s; retrying in %.3fs",
                        name, attempt, cfg.max_retries + 1, e, delay)
            sleep(delay)
            delay *= cfg.backoff_factor


def _commit(checkpoint_store, offset: int) -> None:
    try:
        checkpoint_store.set(offset)
    except OSError as e:
        raise PersistentIOFailure(f"could not persist checkpoint {offset}: {e}") from e


def run(config: GeneratorConfig,
        shard_range: Optional[Tuple[int, int]],
        checkpoint_store,
        sink,
        should_stop: Optional[Callable[[], bool]] = None,
        on_commit: Optional[Callable[[int, str], None]] = None,
        sleep: Callable[[float], None] = time.sleep) -> RunStats:
    """Generate and persist every (canonical) sequence in shard_range.

    shard_range None means the config's own shard_range (or the whole space).
    should_stop is polled before every offset, filtered ones included;
    on_commit(offset, name) fires after each checkpoint.
    """
    config.validate()
    space = config.space()
    canon = config.canonicalizer(space)
    if shard_range is None:
        lo, hi = config.resolved_range(space)
    else:
        lo, hi = space.validate_range(*shard_range)

    saved = checkpoint_store.get()
    start = lo if saved is None else saved
    if not lo <= start <= hi:
        raise InvalidConfiguration(f"checkpoint {start} outside shard [{lo}, {hi})")

    stats = RunStats(lo=lo, hi=hi, resumed_from=start, next_offset=start)
    if saved is not None and start > lo:
        log.info("shard [%d, %d): resuming at offset %d", lo, hi, start)
    else:
        log.info("shard [%d, %d): starting", lo, hi)

    out = config.output
    width = len(str(space.size - 1))
    pitches = space.alphabet.pitches
    visited_to = start   # every offset below this is written or filtered out

    for offset, digits in space.iter_digits(start, hi):
        if should_stop is not None and should_stop():
            stats.stopped = True
            break
        if canon is not None and not canon.is_canonical(digits):
            visited_to = offset + 1
            continue
        seq = tuple(pitches[d] for d in digits)
        data = encode(timeline_for(seq, config.timeline), config.division)
        name = make_identifier(out.naming, offset, seq, data, width, out.suffix)
        try:
            stats.retries += write_with_retry(sink, name, data, out, sleep)
        except PersistentIOFailure:
            log.error("shard [%d, %d): aborting at offset %d, checkpoint left at %d",
                      lo, hi, offset, stats.next_offset)
            raise
        _commit(checkpoint_store, offset + 1)
        stats.written += 1
        stats.next_offset = visited_to = offset + 1
        if on_commit is not None:
            on_commit(offset, name)

    if not stats.stopped:
        visited_to = hi
    # trailing filtered offsets need no file, only the checkpoint
    if stats.next_offset != visited_to:
        _commit(checkpoint_store, visited_to)
        stats.next_offset = visited_to
    stats.skipped = (visited_to - start) - stats.written

    log.info("shard [%d, %d): %s, %d written, %d filtered, %d retries, next offset %d",
             lo, hi, "stopped" if stats.stopped else "done",
             stats.written, stats.skipped, stats.retries, stats.next_offset)
    return stats
