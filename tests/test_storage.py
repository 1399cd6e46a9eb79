import json

import pytest

from batch import storage
from batch.storage import DirectorySink, JsonCheckpointStore, MemoryCheckpointStore, MemorySink


class TestJsonCheckpointStore:
    def test_absent_is_none(self, tmp_path):
        assert JsonCheckpointStore(tmp_path / "ck.json").get() is None

    def test_set_then_get(self, tmp_path):
        store = JsonCheckpointStore(tmp_path / "sub" / "ck.json")
        store.set(41)
        store.set(42)
        assert store.get() == 42
        assert JsonCheckpointStore(tmp_path / "sub" / "ck.json").get() == 42
        assert json.loads((tmp_path / "sub" / "ck.json").read_text()) == {"offset": 42}

    def test_no_temp_files_left(self, tmp_path):
        store = JsonCheckpointStore(tmp_path / "ck.json")
        for i in range(5):
            store.set(i)
        assert [p.name for p in tmp_path.iterdir()] == ["ck.json"]

    def test_huge_offsets(self, tmp_path):
        store = JsonCheckpointStore(tmp_path / "ck.json")
        store.set(128 ** 40)
        assert store.get() == 128 ** 40

    @pytest.mark.parametrize("text", ['{"offset": "x"}', "[]", "7", '{"offset": true}', "{", ""])
    def test_corrupt_checkpoint(self, tmp_path, text):
        (tmp_path / "ck.json").write_text(text)
        with pytest.raises(ValueError):
            JsonCheckpointStore(tmp_path / "ck.json").get()


class TestSinks:
    def test_directory_sink(self, tmp_path):
        sink = DirectorySink(tmp_path / "out", fsync_dir=True)
        sink.write("a.mid", b"abc")
        sink.write("a.mid", b"xyz")
        assert (tmp_path / "out" / "a.mid").read_bytes() == b"xyz"
        assert sorted(p.name for p in (tmp_path / "out").iterdir()) == ["a.mid"]

    def test_memory_sink_records_repeats(self):
        sink = MemorySink()
        sink.write("a", b"1")
        sink.write("a", b"2")
        assert sink.files == {"a": b"2"}
        assert sink.writes == ["a", "a"]

    def test_memory_checkpoint(self):
        store = MemoryCheckpointStore()
        assert store.get() is None
        store.set(3)
        assert store.get() == 3
        assert store.history == [3]


class TestDurability:
    @pytest.fixture
    def synced(self, monkeypatch):
        dirs = []
        monkeypatch.setattr(storage, "_fsync_dir", dirs.append)
        return dirs

    def test_sink_syncs_directory_by_default(self, tmp_path, synced):
        DirectorySink(tmp_path / "out").write("a.mid", b"abc")
        assert synced == [tmp_path / "out"]

    def test_sink_directory_sync_can_be_disabled(self, tmp_path, synced):
        DirectorySink(tmp_path / "out", fsync_dir=False).write("a.mid", b"abc")
        assert synced == []

    def test_file_is_synced_before_its_checkpoint(self, tmp_path, synced):
        sink = DirectorySink(tmp_path / "out")
        store = JsonCheckpointStore(tmp_path / "ck" / "checkpoint-0-9.json")
        sink.write("0.mid", b"abc")
        store.set(1)
        assert synced == [tmp_path / "out", tmp_path / "ck"]

    def test_real_directory_fsync(self, tmp_path):
        storage._fsync_dir(tmp_path)
