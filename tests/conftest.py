from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    path = tmp_path / "input"
    path.mkdir()
    return path


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "output"
