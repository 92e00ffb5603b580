"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture
def temp_dir(tmp_path: Path) -> str:
    path = tmp_path / "recordings"
    path.mkdir()
    return str(path)
