"""Tests for TrendResult display and exports."""

from __future__ import annotations

import math
from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pandas as pd
import pytest

from ndvitrend.results import ResultMetadata, TrendResult, YearlyStat, _interpret_ndvi

# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def sample_metadata() -> ResultMetadata:
    return ResultMetadata(
        sensor="S2",
        collection="COPERNICUS/S2_SR_HARMONIZED",
        years=[2018, 2019, 2020, 2021],
        scale_m=10,
        bounds={"minx": 88.35, "miny": 23.05, "maxx": 88.55, "maxy": 23.35},
        bands=["NDVI_slope_per_year"],
    )


@pytest.fixture
def trend_result(sample_metadata: ResultMetadata) -> TrendResult:
    return TrendResult(
        yearly=[
            YearlyStat(2018, 41, 0.40),
            YearlyStat(2019, 0, float("nan")),
            YearlyStat(2020, 52, 0.44),
            YearlyStat(2021, 61, 0.46),
        ],
        positive_area_m2=21_450_000.0,
        negative_area_m2=3_100_000.0,
        regional_slope=0.02,
        confidence=0.78,
        metadata=sample_metadata,
        warnings=["No imagery for 2019"],
    )


@pytest.fixture
def live_result(trend_result: TrendResult) -> TrendResult:
    trend_result.slope_image = MagicMock(name="slope")
    trend_result.year_collection = MagicMock(name="years")
    trend_result.geometry = MagicMock(name="geometry")
    return trend_result


# ── Model ─────────────────────────────────────────────────────────────────────


@pytest.mark.unit
class TestTrendResultModel:
    def test_derived_values(self, trend_result: TrendResult) -> None:
        assert trend_result.years == [2018, 2019, 2020, 2021]
        assert trend_result.image_counts == [41, 0, 52, 61]
        assert trend_result.positive_area_ha == pytest.approx(2145.0)
        assert trend_result.negative_area_ha == pytest.approx(310.0)
        assert np.isnan(trend_result.mean_ndvi[1])
        assert not trend_result.is_live

    def test_yearly_stat_has_imagery(self) -> None:
        assert YearlyStat(2020, 3, 0.4).has_imagery
        assert not YearlyStat(2020).has_imagery
        assert math.isnan(YearlyStat(2020).mean_ndvi)

    def test_metadata_defaults(self) -> None:
        meta = ResultMetadata()
        assert meta.source == "earthengine"
        assert meta.crs == "EPSG:4326"
        assert meta.years == []

    @pytest.mark.parametrize(
        ("value", "label"),
        [
            (0.7, "healthy vegetation"),
            (0.4, "moderate vegetation"),
            (0.2, "sparse/stressed vegetation"),
            (0.0, "bare soil/water"),
            (float("nan"), "no data"),
        ],
    )
    def test_interpret_ndvi(self, value: float, label: str) -> None:
        assert _interpret_ndvi(value) == label


@pytest.mark.unit
class TestTrendResultRepr:
    def test_narrative(self, trend_result: TrendResult) -> None:
        text = repr(trend_result)
        assert text.startswith("TrendResult(")
        assert "88.35–88.55°E" in text
        assert "sensor: S2 (COPERNICUS/S2_SR_HARMONIZED, 10 m)" in text
        assert "years: 2018 → 2021 (3 of 4 with imagery)" in text
        assert "confidence: 0.78" in text
        assert "+0.0200/year (strong greening)" in text
        assert "greening_area: 2,145.0 ha" in text
        assert "browning_area: 310.0 ha" in text
        assert "⚠ No imagery for 2019" in text

    def test_undefined_trend(self) -> None:
        text = repr(TrendResult())
        assert "regional_trend: N/A" in text
        assert "greening_area: N/A" in text


# ── Exports ───────────────────────────────────────────────────────────────────


@pytest.mark.unit
class TestToDataframe:
    def test_one_row_per_year(self, trend_result: TrendResult) -> None:
        df = trend_result.to_dataframe()
        assert isinstance(df, pd.DataFrame)
        assert list(df["year"]) == [2018, 2019, 2020, 2021]
        assert list(df.columns) == [
            "year",
            "image_count",
            "mean_ndvi",
            "ndvi_interpretation",
            "sensor",
        ]
        assert df.loc[0, "mean_ndvi"] == pytest.approx(0.40)
        assert np.isnan(df.loc[1, "mean_ndvi"])
        assert df.loc[1, "ndvi_interpretation"] == "no data"
        assert (df["sensor"] == "S2").all()

    def test_empty_result(self) -> None:
        df = TrendResult().to_dataframe()
        assert df.empty
        assert "mean_ndvi" in df.columns


@pytest.mark.unit
class TestToPng:
    def test_writes_file(self, trend_result: TrendResult, tmp_path: Path) -> None:
        path = trend_result.to_png(tmp_path / "chart.png")
        assert path == tmp_path / "chart.png"
        assert path.read_bytes()[:4] == b"\x89PNG"

    def test_accepts_string_path(self, trend_result: TrendResult, tmp_path: Path) -> None:
        path = trend_result.to_png(str(tmp_path / "chart.png"))
        assert isinstance(path, Path)
        assert path.exists()

    def test_empty_result_still_writes(self, tmp_path: Path) -> None:
        path = TrendResult().to_png(tmp_path / "empty.png")
        assert path.stat().st_size > 0


@pytest.mark.unit
class TestLiveObjects:
    def test_cached_result_raises(self, trend_result: TrendResult) -> None:
        with pytest.raises(ValueError, match="use_cache=False"):
            trend_result.slope_thumbnail_url()
        with pytest.raises(ValueError, match="restored from cache"):
            trend_result.ndvi_thumbnail_url(2018)
        with pytest.raises(ValueError):
            trend_result.export_slope("slope")
        with pytest.raises(ValueError):
            trend_result.to_geotiff("slope.tif")

    def test_slope_thumbnail(self, live_result: TrendResult) -> None:
        with patch("ndvitrend.results.thumbnail_url", return_value="https://t") as thumb:
            url = live_result.slope_thumbnail_url(dimensions=512)
        assert url == "https://t"
        args = thumb.call_args.args
        assert args[0] is live_result.slope_image
        assert args[1]["palette"] == ["red", "white", "green"]
        assert args[2] is live_result.geometry
        assert args[3] == 512

    def test_ndvi_thumbnail_selects_year(self, live_result: TrendResult) -> None:
        with (
            patch("ndvitrend.results.thumbnail_url", return_value="https://n") as thumb,
            patch("ndvitrend.results.ee") as mock_ee,
        ):
            url = live_result.ndvi_thumbnail_url(2020)
        assert url == "https://n"
        mock_ee.Filter.eq.assert_called_once_with("year", 2020)
        live_result.year_collection.filter.assert_called_once_with(
            mock_ee.Filter.eq.return_value
        )
        assert thumb.call_args.args[1]["min"] == -0.3

    def test_ndvi_thumbnail_unknown_year(self, live_result: TrendResult) -> None:
        with pytest.raises(ValueError, match="outside"):
            live_result.ndvi_thumbnail_url(2030)

    def test_export_slope(self, live_result: TrendResult) -> None:
        with patch("ndvitrend.results.export_to_drive") as export:
            task = live_result.export_slope("santipur_slope", folder="gee")
        assert task is export.return_value
        export.assert_called_once_with(
            live_result.slope_image,
            description="santipur_slope",
            geometry=live_result.geometry,
            scale=10,
            folder="gee",
            crs="EPSG:4326",
        )


@pytest.mark.unit
class TestToGeotiff:
    def test_writes_slope_raster(self, live_result: TrendResult, tmp_path: Path) -> None:
        import rasterio

        grid = np.array([[0.01, np.nan], [-0.02, 0.0]])
        with patch("ndvitrend.results.compute_pixels", return_value=grid) as pixels:
            path = live_result.to_geotiff(tmp_path / "slope.tif", scale_m=1000)

        bounds = pixels.call_args.args[1]
        assert bounds == (88.35, 23.05, 88.55, 23.35)
        assert pixels.call_args.kwargs["scale_deg"] == pytest.approx(1000 / 111_320)

        with rasterio.open(path) as src:
            assert src.count == 1
            assert (src.height, src.width) == (2, 2)
            assert src.crs.to_string() == "EPSG:4326"
            assert src.descriptions[0] == "NDVI_slope_per_year"
            data = src.read(1)
            assert data[0, 0] == pytest.approx(0.01)
            assert np.isnan(data[0, 1])
            assert src.bounds.left == pytest.approx(88.35)
            assert src.bounds.top == pytest.approx(23.35)
