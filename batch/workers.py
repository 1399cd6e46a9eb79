# batch/workers.py
import logging
import os
from concurrent.futures import Executor, ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Union

from batch.orchestrator import RunStats, run
from batch.storage import DirectorySink, JsonCheckpointStore
from config import GeneratorConfig
from sequences.space import split_range
from utils.crashlog import log_exception

log = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


@dataclass
class ShardResult:
    lo: int
    hi: int
    stats: Optional[RunStats] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def checkpoint_path(checkpoint_dir: PathLike, lo: int, hi: int) -> Path:
    return Path(checkpoint_dir) / f"checkpoint-{lo}-{hi}.json"


def run_shard(config: GeneratorConfig, lo: int, hi: int,
              output_dir: PathLike, checkpoint_dir: PathLike) -> RunStats:
    """One worker: its own checkpoint file, shared output directory (names never collide)."""
    return run(config, (lo, hi),
               JsonCheckpointStore(checkpoint_path(checkpoint_dir, lo, hi)),
               DirectorySink(output_dir))


def run_sharded(config: GeneratorConfig, workers: int, output_dir: PathLike,
                checkpoint_dir: Optional[PathLike] = None,
                executor_factory: Callable[..., Executor] = ProcessPoolExecutor) -> List[ShardResult]:
    """Split the configured range into `workers` disjoint shards and run them in parallel.

    A failing shard is reported in its ShardResult and does not stop the others.
    Resume by calling again with the same config and worker count, so the
    checkpoint file names line up.
    """
    config.validate()
    lo, hi = config.resolved_range()
    shards = split_range(lo, hi, workers)
    ck_dir = Path(checkpoint_dir) if checkpoint_dir is not None else Path(output_dir) / ".checkpoints"
    ck_dir.mkdir(parents=True, exist_ok=True)
    Path(output_dir).mkdir(parents=True, exist_ok=True)
    log.info("running [%d, %d) as %d shard(s)", lo, hi, len(shards))

    results: List[ShardResult] = []
    if not shards:
        return results
    with executor_factory(max_workers=len(shards)) as ex:
        futures = {
            ex.submit(run_shard, config, a, b, str(output_dir), str(ck_dir)): (a, b)
            for a, b in shards
        }
        for fut in as_completed(futures):
            a, b = futures[fut]
            try:
                results.append(ShardResult(a, b, stats=fut.result()))
            except Exception as e:
                log.error("shard [%d, %d) failed: %s", a, b, e)
                log_exception(f"shard [{a}, {b})", e)
                results.append(ShardResult(a, b, error=f"{type(e).__name__}: {e}"))
    results.sort(key=lambda r: r.lo)
    return results
