"""Shared test fixtures for the ndvitrend test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from ndvitrend.config import Config
from ndvitrend.region import SANTIPUR, Region, region


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """Return a Config with an isolated cache directory."""
    return Config(cache_dir=tmp_path / "cache", project="test-project")


@pytest.fixture
def test_region(test_config: Config) -> Region:
    """Return the Santipur region using an explicit test config."""
    return region(*SANTIPUR, config=test_config)
