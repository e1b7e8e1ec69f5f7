"""Tests for the top-level semantic API."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

import ndvitrend as nt
from ndvitrend.api import _resolve_region
from ndvitrend.config import Config
from ndvitrend.region import SANTIPUR, Region


@pytest.mark.unit
class TestResolveRegion:
    def test_region_passed_through(self, test_region: Region) -> None:
        assert _resolve_region(test_region) is test_region

    def test_bounds_create_region(self, test_config: Config) -> None:
        area = _resolve_region(*SANTIPUR, config=test_config)
        assert area.bounds == SANTIPUR
        assert area.config is test_config

    def test_missing_bounds_raise_type_error(self) -> None:
        with pytest.raises(TypeError, match="south, east and north"):
            _resolve_region(88.35, 23.05)


@pytest.mark.unit
class TestNdviTrend:
    def test_with_bounds(self, test_config: Config) -> None:
        sentinel = MagicMock()
        with patch("ndvitrend._pipeline._run_trend", return_value=sentinel) as run:
            result = nt.ndvi_trend(
                *SANTIPUR, sensor="L8", year_start=2015, config=test_config
            )
        assert result is sentinel
        area = run.call_args.args[0]
        assert area.bounds == SANTIPUR
        assert run.call_args.kwargs == {
            "sensor": "L8",
            "year_start": 2015,
            "year_end": 2023,
            "use_cache": True,
        }

    def test_with_region(self, test_region: Region) -> None:
        with patch("ndvitrend._pipeline._run_trend") as run:
            nt.ndvi_trend(test_region, use_cache=False)
        assert run.call_args.args[0] is test_region
        assert run.call_args.kwargs["sensor"] == "S2"
        assert run.call_args.kwargs["use_cache"] is False

    def test_invalid_bounds_raise(self) -> None:
        with pytest.raises(nt.ConfigurationError):
            nt.ndvi_trend(88.55, 23.05, 88.35, 23.35)
