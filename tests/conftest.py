"""Shared fixtures for all tests."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture()
def tmp_data_dir(tmp_path: Path):
    """Provide a temporary data directory for draft storage."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    return data_dir
