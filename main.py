# main.py
import argparse
import logging
import sys
import traceback
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from batch.orchestrator import run
from batch.storage import DirectorySink, JsonCheckpointStore
from batch.workers import checkpoint_path, run_sharded
from config import NAMING_MODES, GeneratorConfig, OutputConfig, TimelineConfig
from errors import FormatError, MelodySpaceError
from midi.decoder import read_file
from midi.parser import parse_midi_to_notes
from notes.model import Alphabet
from notes.names import format_sequence
from sequences.equivalence import MODES, class_count
from utils.crashlog import init_logging, log_exception, set_log_dir, setup_crashlog

log = logging.getLogger("melodyspace")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="melodyspace",
                                 description="Enumerate every melody over a pitch alphabet as MIDI files",
                                 allow_abbrev=False)
    ap.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    ap.add_argument("--log-dir", default=None, help="where log and crash files go (default ./logs)")
    sub = ap.add_subparsers(dest="command", required=True)

    g = sub.add_parser("generate", help="write one SMF file per sequence")
    g.add_argument("--alphabet", default="60-71",
                   help="comma separated pitches: 60, 60-71 or note names like C:4,D#:4")
    g.add_argument("--length", type=int, default=3)
    g.add_argument("--out", required=True, help="output directory")
    g.add_argument("--division", type=int, default=480)
    g.add_argument("--velocity", type=int, default=100)
    g.add_argument("--duration", type=int, default=480, help="note length in ticks")
    g.add_argument("--gap", type=int, default=0, help="ticks of silence between notes")
    g.add_argument("--channel", type=int, default=0)
    g.add_argument("--equivalence", default="none", choices=list(MODES))
    g.add_argument("--naming", default="offset", choices=list(NAMING_MODES))
    g.add_argument("--lo", type=int, default=None, help="first offset (inclusive)")
    g.add_argument("--hi", type=int, default=None, help="last offset (exclusive)")
    g.add_argument("--workers", type=int, default=1)
    g.add_argument("--checkpoint-dir", default=None)
    g.add_argument("--max-retries", type=int, default=3)
    g.add_argument("--no-progress", action="store_true")

    i = sub.add_parser("inspect", help="decode SMF files and print their notes")
    i.add_argument("files", nargs="+")
    i.add_argument("--mido", action="store_true", help="also parse with mido and compare pitches")
    return ap


def config_from_args(args) -> GeneratorConfig:
    alphabet = Alphabet.parse(args.alphabet)
    shard = None
    if args.lo is not None or args.hi is not None:
        size = alphabet.size ** args.length if args.length > 0 else 0
        shard = (args.lo or 0, size if args.hi is None else args.hi)
    return GeneratorConfig(
        alphabet=alphabet.pitches,
        length=args.length,
        division=args.division,
        equivalence=None if args.equivalence == "none" else args.equivalence,
        shard_range=shard,
        timeline=TimelineConfig(velocity=args.velocity, duration_ticks=args.duration,
                                gap_ticks=args.gap, channel=args.channel),
        output=OutputConfig(naming=args.naming, max_retries=args.max_retries),
    )


def cmd_generate(args) -> int:
    cfg = config_from_args(args).validate()
    space = cfg.space()
    lo, hi = cfg.resolved_range(space)
    out_dir = Path(args.out)
    ck_dir = Path(args.checkpoint_dir) if args.checkpoint_dir else out_dir / ".checkpoints"
    expected = class_count(cfg.equivalence, space.base, space.length) if (lo, hi) == (0, space.size) else None
    log.info("space %r, range [%d, %d), equivalence=%s, expected files=%s",
             space, lo, hi, cfg.equivalence or "none", expected if expected is not None else "?")

    if args.workers > 1:
        results = run_sharded(cfg, args.workers, out_dir, ck_dir)
        failed = [r for r in results if not r.ok]
        written = sum(r.stats.written for r in results if r.ok)
        log.info("%d files written by %d shard(s), %d failed", written, len(results), len(failed))
        for r in failed:
            log.error("shard [%d, %d): %s", r.lo, r.hi, r.error)
        return 1 if failed else 0

    ck_dir.mkdir(parents=True, exist_ok=True)
    store = JsonCheckpointStore(checkpoint_path(ck_dir, lo, hi))
    total = expected if expected is not None else hi - lo
    with tqdm(total=total, unit="file", disable=args.no_progress) as bar:
        stats = run(cfg, (lo, hi), store, DirectorySink(out_dir),
                    on_commit=lambda offset, name: bar.update(1))
    print(f"{stats.written} files written to {out_dir} (next offset {stats.next_offset})")
    return 0


def cmd_inspect(args) -> int:
    failed = 0
    for path in args.files:
        try:
            smf = read_file(path)
        except (FormatError, OSError) as e:
            failed += 1
            log.error("%s: %s", path, e)
            continue
        for n, track in enumerate(smf.tracks):
            pitches = track.pitches()
            print(f"{path}: format {smf.format}, division {smf.division}, track {n}: "
                  f"{len(track)} events, {format_sequence(pitches)}")
        if args.mido:
            try:
                notes, tpb = parse_midi_to_notes(path)
            except Exception as e:
                # mido is stricter about meta payloads than our decoder
                failed += 1
                log.error("%s: mido could not parse it: %s: %s", path, type(e).__name__, e)
                continue
            ours = [p for t in smf.tracks for p in t.pitches()]
            theirs = [nt.pitch for nt in notes]
            if sorted(ours) != sorted(theirs) or tpb != smf.division:
                failed += 1
                log.error("%s: mido disagrees (%s vs %s)", path, theirs, ours)
    return 1 if failed else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.log_dir:
        set_log_dir(args.log_dir)
    init_logging(args.log_level)
    try:
        if args.command == "generate":
            return cmd_generate(args)
        return cmd_inspect(args)
    except MelodySpaceError as e:
        log.error("%s", e)
        return 2


if __name__ == '__main__':
    setup_crashlog()
    try:
        sys.exit(main())
    except Exception as e:
        log_exception("Top-level exception", e)
        logging.error("unhandled exception: %s", e, exc_info=True)
        traceback.print_exc()
        sys.exit(1)
