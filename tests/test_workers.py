from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from functools import partial
from multiprocessing import get_context

import pytest

from batch.orchestrator import run
from batch.storage import JsonCheckpointStore, MemoryCheckpointStore, MemorySink
from batch.workers import checkpoint_path, run_shard, run_sharded
from config import GeneratorConfig
from errors import InvalidConfiguration


def files_in(path):
    return {p.name: p.read_bytes() for p in path.iterdir() if p.is_file()}


def refuse_62(pitches):
    if pitches[0] == 62:
        raise ValueError("refusing to canonicalize")
    return pitches


class TestSharded:
    def test_matches_single_run(self, small_config, tmp_path):
        single = MemorySink()
        run(small_config, None, MemoryCheckpointStore(), single)

        out = tmp_path / "out"
        results = run_sharded(small_config, 4, out, executor_factory=ThreadPoolExecutor)
        assert [(r.lo, r.hi) for r in results] == [(0, 3), (3, 5), (5, 7), (7, 9)]
        assert all(r.ok for r in results)
        assert sum(r.stats.written for r in results) == 9
        assert files_in(out) == single.files

    def test_checkpoints_per_shard(self, small_config, tmp_path):
        out, ck = tmp_path / "out", tmp_path / "ck"
        run_sharded(small_config, 3, out, ck, executor_factory=ThreadPoolExecutor)
        for lo, hi in [(0, 3), (3, 6), (6, 9)]:
            assert JsonCheckpointStore(checkpoint_path(ck, lo, hi)).get() == hi
        assert not (out / ".checkpoints").exists()

    def test_default_checkpoint_dir(self, small_config, tmp_path):
        out = tmp_path / "out"
        run_sharded(small_config, 2, out, executor_factory=ThreadPoolExecutor)
        names = sorted(p.name for p in (out / ".checkpoints").iterdir())
        assert names == ["checkpoint-0-5.json", "checkpoint-5-9.json"]

    def test_more_workers_than_sequences(self, tmp_path):
        cfg = GeneratorConfig(alphabet=(60, 64), length=1)
        results = run_sharded(cfg, 8, tmp_path, executor_factory=ThreadPoolExecutor)
        assert [(r.lo, r.hi) for r in results] == [(0, 1), (1, 2)]

    def test_rerun_resumes_from_checkpoints(self, small_config, tmp_path):
        out = tmp_path / "out"
        run_sharded(small_config, 3, out, executor_factory=ThreadPoolExecutor)
        again = run_sharded(small_config, 3, out, executor_factory=ThreadPoolExecutor)
        assert [r.stats.written for r in again] == [0, 0, 0]
        assert [r.stats.resumed_from for r in again] == [3, 6, 9]

    def test_failing_shard_does_not_stop_others(self, small_config, tmp_path, isolated_log_dir):
        small_config.equivalence = refuse_62
        out = tmp_path / "out"
        results = run_sharded(small_config, 3, out, executor_factory=ThreadPoolExecutor)

        ok = [(r.lo, r.hi) for r in results if r.ok]
        bad = [r for r in results if not r.ok]
        assert ok == [(0, 3), (3, 6)]
        assert len(bad) == 1 and (bad[0].lo, bad[0].hi) == (6, 9)
        assert "ValueError" in bad[0].error
        assert sorted(files_in(out)) == [f"{i}.mid" for i in range(6)]
        assert any(p.name.startswith("error-") for p in isolated_log_dir.iterdir())

    def test_invalid_config_raises_before_spawning(self, tmp_path):
        cfg = GeneratorConfig(alphabet=(60, 61), length=2, division=0)
        with pytest.raises(InvalidConfiguration):
            run_sharded(cfg, 2, tmp_path / "out", executor_factory=ThreadPoolExecutor)
        assert not (tmp_path / "out").exists()

    def test_process_pool(self, small_config, tmp_path):
        factory = partial(ProcessPoolExecutor, mp_context=get_context("spawn"))
        results = run_sharded(small_config, 2, tmp_path, executor_factory=factory)
        assert all(r.ok for r in results)
        assert len([p for p in tmp_path.iterdir() if p.suffix == ".mid"]) == 9


def test_run_shard_writes_its_own_checkpoint(small_config, tmp_path):
    stats = run_shard(small_config, 2, 5, tmp_path / "out", tmp_path / "ck")
    assert stats.written == 3
    assert (tmp_path / "ck" / "checkpoint-2-5.json").exists()
    assert sorted(p.name for p in (tmp_path / "out").iterdir()) == ["2.mid", "3.mid", "4.mid"]
