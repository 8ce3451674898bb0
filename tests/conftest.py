import random
import pytest
from pathlib import Path


@pytest.fixture
def make_file(tmp_path):
    """Create a file of pseudo-random bytes under tmp_path"""
    def _make(name: str = "report.bin", size: int = 10_000, seed: int = 1234) -> Path:
        path = tmp_path / name
        path.write_bytes(random.Random(seed).randbytes(size))
        return path
    return _make


@pytest.fixture
def out_dir(tmp_path):
    path = tmp_path / "out"
    path.mkdir()
    return path
