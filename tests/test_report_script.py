"""Tests for the HTML trend report script."""

from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType
from unittest.mock import MagicMock, patch

import pytest

from ndvitrend.results import ResultMetadata, TrendResult, YearlyStat

_SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "run_trend_report.py"


@pytest.fixture(scope="module")
def report() -> ModuleType:
    spec = importlib.util.spec_from_file_location("run_trend_report", _SCRIPT)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def cached_result() -> TrendResult:
    return TrendResult(
        yearly=[YearlyStat(2018, 12, 0.41), YearlyStat(2019, 0)],
        positive_area_m2=float("nan"),
        negative_area_m2=float("nan"),
        regional_slope=float("nan"),
        confidence=0.1,
        metadata=ResultMetadata(sensor="S2", years=[2018, 2019], scale_m=10),
        warnings=["No imagery for 2019"],
        from_cache=True,
    )


def _fake_png(path: Path) -> Path:
    path = Path(path)
    path.write_bytes(b"\x89PNG")
    return path


@pytest.mark.unit
class TestReportScript:
    def test_format_hectares(self, report: ModuleType) -> None:
        assert report.format_hectares(2145.4) == "2,145 ha"
        assert report.format_hectares(float("nan")) == "N/A"

    def test_nan_areas_rendered_as_not_available(
        self,
        report: ModuleType,
        cached_result: TrendResult,
        tmp_path: Path,
    ) -> None:
        area = MagicMock()
        area.ndvi_trend.return_value = cached_result
        output = tmp_path / "report.html"

        with (
            patch.object(report.nt, "region", return_value=area),
            patch.object(TrendResult, "to_png", side_effect=_fake_png),
        ):
            report.generate_html_report(
                (88.35, 23.05, 88.55, 23.35), "S2", 2018, 2019, output
            )

        html = output.read_text(encoding="utf-8")
        assert "nan ha" not in html
        assert html.count(">N/A<") == 3  # slope and both areas
        assert "summary restored from cache" in html
        assert "No imagery for 2019" in html

    def test_temp_dir_removed_when_rendering_fails(
        self,
        report: ModuleType,
        cached_result: TrendResult,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        work = tmp_path / "work"
        work.mkdir()
        monkeypatch.setattr(report.tempfile, "mkdtemp", lambda: str(work))
        area = MagicMock()
        area.ndvi_trend.return_value = cached_result
        output = tmp_path / "report.html"

        with (
            patch.object(report.nt, "region", return_value=area),
            patch.object(TrendResult, "to_png", side_effect=OSError("disk full")),
        ):
            with pytest.raises(OSError, match="disk full"):
                report.generate_html_report(
                    (88.35, 23.05, 88.55, 23.35), "S2", 2018, 2019, output
                )

        assert not work.exists()
        assert not output.exists()
