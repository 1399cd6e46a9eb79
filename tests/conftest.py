"""
Shared pytest fixtures.
"""
import pytest

from config import GeneratorConfig, TimelineConfig
from utils import crashlog


@pytest.fixture(autouse=True)
def isolated_log_dir(tmp_path, monkeypatch):
    """Keep error-*.txt files written by log_exception out of the working tree."""
    monkeypatch.setattr(crashlog, "_log_dir", str(tmp_path / "logs"))
    return tmp_path / "logs"


@pytest.fixture
def small_config():
    """B=3, L=2: nine sequences."""
    return GeneratorConfig(alphabet=(60, 61, 62), length=2, division=480)


@pytest.fixture
def octave_config():
    """The 12-pitch, length-3 space: 1728 sequences."""
    return GeneratorConfig(
        alphabet=tuple(range(60, 72)),
        length=3,
        division=480,
        timeline=TimelineConfig(velocity=100, duration_ticks=480, gap_ticks=0),
    )


@pytest.fixture
def no_sleep():
    calls = []
    return calls.append, calls
