# batch/storage.py
"""
Checkpoint stores and output sinks handed to the orchestrator.

Both are capabilities: the orchestrator only calls get/set and write. The
file-backed versions write to a temp file, fsync, os.replace, then fsync the
directory, so a crash leaves either the old or the new content but never a
torn file, and a file is on disk before the checkpoint that covers it.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol, Union


class CheckpointStore(Protocol):
    def get(self) -> Optional[int]: ...

    def set(self, offset: int) -> None: ...


class OutputSink(Protocol):
    def write(self, name: str, data: bytes) -> None: ...


def _fsync_dir(directory: Path) -> None:
    # makes a completed os.replace survive power loss; not available on Windows
    if not hasattr(os, "O_DIRECTORY"):
        return
    fd = os.open(str(directory), os.O_RDONLY | os.O_DIRECTORY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def _atomic_write(path: Path, data: bytes, sync_dir: bool = True) -> None:
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise
    if sync_dir:
        _fsync_dir(path.parent)


class MemoryCheckpointStore:
    def __init__(self, offset: Optional[int] = None):
        self.offset = offset
        self.history = []

    def get(self) -> Optional[int]:
        return self.offset

    def set(self, offset: int) -> None:
        self.offset = offset
        self.history.append(offset)


class JsonCheckpointStore:
    """{"offset": N} in a small JSON file."""

    def __init__(self, path: Union[str, os.PathLike]):
        self.path = Path(path)

    def get(self) -> Optional[int]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                obj = json.load(f)
        except FileNotFoundError:
            return None
        offset = obj.get("offset") if isinstance(obj, dict) else None
        if isinstance(offset, bool) or not isinstance(offset, int):
            raise ValueError(f"corrupt checkpoint {self.path}: {obj!r}")
        return offset

    def set(self, offset: int) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        _atomic_write(self.path, json.dumps({"offset": offset}).encode("utf-8"))


class MemorySink:
    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self.writes = []   # names in write order, repeats included

    def write(self, name: str, data: bytes) -> None:
        self.files[name] = bytes(data)
        self.writes.append(name)


class DirectorySink:
    def __init__(self, root: Union[str, os.PathLike], fsync_dir: bool = True):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.fsync_dir = fsync_dir

    def path_for(self, name: str) -> Path:
        return self.root / name

    def write(self, name: str, data: bytes) -> None:
        _atomic_write(self.path_for(name), data, sync_dir=self.fsync_dir)
