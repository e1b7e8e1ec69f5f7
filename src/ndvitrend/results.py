"""Result object model for NDVI trend outputs."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import ee
import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, Field

from ndvitrend.analysis.ndvi import NDVI_VIS, SLOPE_BAND, SLOPE_VIS, YEAR_PROPERTY
from ndvitrend.analysis.vegetation import interpret_slope
from ndvitrend.earthengine import compute_pixels, export_to_drive, thumbnail_url
from ndvitrend.sensors.base import NDVI_BAND

if TYPE_CHECKING:
    import pandas as pd

_M2_PER_HECTARE = 10_000.0
_METRES_PER_DEGREE = 111_320.0

# ── NDVI interpretation thresholds ────────────────────────────────
_NDVI_HEALTHY_THRESHOLD: float = 0.6
_NDVI_MODERATE_THRESHOLD: float = 0.3
_NDVI_SPARSE_THRESHOLD: float = 0.1


def _interpret_ndvi(value: float) -> str:
    """Return plain-language interpretation of an NDVI value."""
    if math.isnan(value):
        return "no data"
    if value >= _NDVI_HEALTHY_THRESHOLD:
        return "healthy vegetation"
    if value >= _NDVI_MODERATE_THRESHOLD:
        return "moderate vegetation"
    if value >= _NDVI_SPARSE_THRESHOLD:
        return "sparse/stressed vegetation"
    return "bare soil/water"


def _format_area(area_m2: float) -> str:
    if math.isnan(area_m2):
        return "N/A"
    return f"{area_m2 / _M2_PER_HECTARE:,.1f} ha"


class ResultMetadata(BaseModel):
    """Metadata for trend results.

    Uses Pydantic (not dataclass) for JSON serialization of cached
    summaries and exports.

    Attributes:
        source: Processing platform (``"earthengine"``).
        sensor: Sensor name (``"S2"`` or ``"L8"``).
        collection: Earth Engine collection id.
        years: Years covered by the trend, in order.
        scale_m: Nominal reduction scale in metres.
        crs: Coordinate reference system for raster exports.
        bounds: Region bounding box ``{"minx", "miny", "maxx", "maxy"}``.
        bands: Band identifiers of the slope image.
        computed_at: ISO-8601 UTC timestamp of the Earth Engine evaluation.

    Example:
        >>> meta = ResultMetadata(sensor="S2", years=[2018, 2019])
        >>> meta.source
        'earthengine'
    """

    source: str = "earthengine"
    sensor: str = ""
    collection: str = ""
    years: list[int] = Field(default_factory=list)
    scale_m: float | None = None
    crs: str = "EPSG:4326"
    bounds: dict[str, float] = Field(default_factory=dict)
    bands: list[str] = Field(default_factory=list)
    computed_at: str = ""


@dataclass
class YearlyStat:
    """Regional statistics for one year of the trend.

    Attributes:
        year: Calendar year.
        image_count: Images matching the region in that year.
        mean_ndvi: Regional mean of the median composite (NaN if no data).
    """

    year: int
    image_count: int = 0
    mean_ndvi: float = float("nan")

    @property
    def has_imagery(self) -> bool:
        """Whether any image fed this year's composite."""
        return self.image_count > 0


@dataclass
class TrendResult:
    """NDVI trend analysis result.

    Holds the evaluated regional summary and, when computed in this
    process, the live Earth Engine objects (slope image, yearly
    composites, region geometry) used for maps and exports. Results
    restored from the cache carry the summary only.

    The ``__repr__`` renders a narrative summary: region, sensor, years,
    confidence, regional trend with interpretation, trend areas and
    warnings.

    Attributes:
        yearly: One ``YearlyStat`` per requested year, in order.
        positive_area_m2: Area with a positive per-pixel slope.
        negative_area_m2: Area with a negative per-pixel slope.
        regional_slope: Slope of the regional mean NDVI, per year.
        confidence: Overall confidence score (0.0--1.0).
        metadata: Sensor, years, bounds and export settings.
        warnings: Human-readable quality warnings.
        from_cache: Whether the summary was restored from the cache.

    Example:
        >>> result = TrendResult(
        ...     yearly=[YearlyStat(2018, 40, 0.41), YearlyStat(2019, 38, 0.43)],
        ...     positive_area_m2=1.2e7,
        ...     negative_area_m2=3.0e6,
        ...     regional_slope=0.02,
        ...     confidence=0.6,
        ... )
        >>> result.years
        [2018, 2019]
    """

    yearly: list[YearlyStat] = field(default_factory=list)
    positive_area_m2: float = float("nan")
    negative_area_m2: float = float("nan")
    regional_slope: float = float("nan")
    confidence: float = 0.0
    metadata: ResultMetadata = field(default_factory=ResultMetadata)
    warnings: list[str] = field(default_factory=list)
    from_cache: bool = False
    slope_image: Any = field(default=None, repr=False, compare=False)
    year_collection: Any = field(default=None, repr=False, compare=False)
    geometry: Any = field(default=None, repr=False, compare=False)

    # ── Derived values ────────────────────────────────────────────

    @property
    def years(self) -> list[int]:
        return [stat.year for stat in self.yearly]

    @property
    def image_counts(self) -> list[int]:
        return [stat.image_count for stat in self.yearly]

    @property
    def mean_ndvi(self) -> npt.NDArray[np.float64]:
        """Regional mean NDVI per year as an array (NaN where missing)."""
        return np.array([stat.mean_ndvi for stat in self.yearly], dtype=np.float64)

    @property
    def positive_area_ha(self) -> float:
        return self.positive_area_m2 / _M2_PER_HECTARE

    @property
    def negative_area_ha(self) -> float:
        return self.negative_area_m2 / _M2_PER_HECTARE

    @property
    def is_live(self) -> bool:
        """Whether Earth Engine objects are attached to this result."""
        return self.slope_image is not None

    def __repr__(self) -> str:
        """Return narrative summary for interactive display."""
        lines: list[str] = [f"{type(self).__name__}("]

        bounds = self.metadata.bounds
        if bounds and {"minx", "miny", "maxx", "maxy"}.issubset(bounds.keys()):
            lines.append(
                f"  region: {bounds['minx']:.2f}–{bounds['maxx']:.2f}°E, "
                f"{bounds['miny']:.2f}–{bounds['maxy']:.2f}°N"
            )

        if self.metadata.sensor:
            scale = (
                f", {self.metadata.scale_m:g} m"
                if self.metadata.scale_m is not None
                else ""
            )
            lines.append(
                f"  sensor: {self.metadata.sensor} ({self.metadata.collection}{scale})"
            )

        if self.yearly:
            usable = sum(1 for stat in self.yearly if stat.has_imagery)
            lines.append(
                f"  years: {self.yearly[0].year} → {self.yearly[-1].year} "
                f"({usable} of {len(self.yearly)} with imagery)"
            )

        lines.append(f"  confidence: {self.confidence:.2f}")

        if math.isnan(self.regional_slope):
            lines.append("  regional_trend: N/A (insufficient data)")
        else:
            lines.append(
                f"  regional_trend: {self.regional_slope:+.4f}/year "
                f"({interpret_slope(self.regional_slope)})"
            )

        lines.append(f"  greening_area: {_format_area(self.positive_area_m2)}")
        lines.append(f"  browning_area: {_format_area(self.negative_area_m2)}")

        for w in self.warnings:
            lines.append(f"  ⚠ {w}")

        lines.append(")")
        return "\n".join(lines)

    # ── Exports ───────────────────────────────────────────────────

    def to_dataframe(self) -> pd.DataFrame:
        """Export the yearly series to a pandas DataFrame.

        One row per year with image count, regional mean NDVI and its
        interpretation.
        """
        import pandas as pd

        rows: list[dict[str, Any]] = [
            {
                "year": stat.year,
                "image_count": stat.image_count,
                "mean_ndvi": stat.mean_ndvi,
                "ndvi_interpretation": _interpret_ndvi(stat.mean_ndvi),
                "sensor": self.metadata.sensor,
            }
            for stat in self.yearly
        ]
        columns = ["year", "image_count", "mean_ndvi", "ndvi_interpretation", "sensor"]
        return pd.DataFrame(rows, columns=columns)

    def to_png(self, path: str | Path) -> Path:
        """Plot mean NDVI per year to a PNG image.

        Draws the regional mean per year as a line with point markers and,
        when defined, the fitted regional trend as a dashed line. Years
        without data leave a gap.

        Args:
            path: Output file path (will be created/overwritten).

        Returns:
            Path object pointing to the written file.
        """
        import matplotlib

        matplotlib.use("Agg")  # Non-interactive backend for file output
        import matplotlib.pyplot as plt

        path = Path(path)
        fig, ax = plt.subplots(figsize=(10, 6))

        title = "Mean NDVI per year"
        if self.metadata.sensor:
            title += f" ({self.metadata.sensor})"
        ax.set_title(title)

        values = self.mean_ndvi
        if values.size == 0 or np.all(np.isnan(values)):
            ax.text(
                0.5,
                0.5,
                "No data available",
                ha="center",
                va="center",
                fontsize=14,
                transform=ax.transAxes,
            )
        else:
            years = np.array(self.years, dtype=np.float64)
            ax.plot(
                years,
                values,
                color="tab:green",
                linewidth=2,
                marker="o",
                markersize=4,
                label="meanNDVI",
            )
            if not math.isnan(self.regional_slope):
                valid = ~np.isnan(values)
                x_mean = float(np.mean(years[valid]))
                y_mean = float(np.mean(values[valid]))
                fitted = y_mean + self.regional_slope * (years - x_mean)
                ax.plot(
                    years,
                    fitted,
                    color="tab:gray",
                    linestyle="--",
                    linewidth=1,
                    label=f"trend {self.regional_slope:+.4f}/year",
                )
            ax.set_xticks(years)
            ax.set_xticklabels([str(year) for year in self.years])
            ax.legend(loc="best")

        ax.set_xlabel("Year")
        ax.set_ylabel("NDVI")

        plt.tight_layout()
        plt.savefig(path, dpi=150, bbox_inches="tight")
        plt.close(fig)

        return path

    def _require_live(self, action: str) -> None:
        if not self.is_live:
            msg = (
                f"Cannot {action}: this result has no Earth Engine objects "
                "attached (restored from cache). Recompute with use_cache=False."
            )
            raise ValueError(msg)

    def ndvi_thumbnail_url(self, year: int, dimensions: int = 768) -> str:
        """Return a PNG thumbnail URL of the NDVI composite for *year*.

        Raises:
            ValueError: If the result is not live or *year* is not covered.
        """
        self._require_live("render NDVI thumbnail")
        if year not in self.years:
            msg = f"Year {year} is outside the trend years {self.years}"
            raise ValueError(msg)
        image = (
            self.year_collection.filter(ee.Filter.eq(YEAR_PROPERTY, year))
            .first()
            .select(NDVI_BAND)
        )
        return thumbnail_url(ee.Image(image), NDVI_VIS, self.geometry, dimensions)

    def slope_thumbnail_url(self, dimensions: int = 768) -> str:
        """Return a PNG thumbnail URL of the per-pixel slope map."""
        self._require_live("render slope thumbnail")
        return thumbnail_url(self.slope_image, SLOPE_VIS, self.geometry, dimensions)

    def export_slope(self, description: str, folder: str | None = None) -> Any:
        """Start a Drive GeoTIFF export of the slope image.

        Returns:
            The started ``ee.batch.Task``.
        """
        self._require_live("export slope image")
        return export_to_drive(
            self.slope_image,
            description=description,
            geometry=self.geometry,
            scale=self.metadata.scale_m or 30,
            folder=folder,
            crs=self.metadata.crs,
        )

    def slope_array(self, scale_m: float | None = None) -> npt.NDArray[np.float64]:
        """Fetch the slope image as a north-up numpy grid (NaN where masked).

        Args:
            scale_m: Approximate pixel size in metres; defaults to the
                sensor scale. Converted to degrees at the equator.

        Raises:
            ValueError: If the result is not live, or the grid exceeds the
                single-request pixel limit.
        """
        self._require_live("fetch slope pixels")
        bounds = self.metadata.bounds
        scale = scale_m or self.metadata.scale_m or 30
        return compute_pixels(
            self.slope_image,
            (bounds["minx"], bounds["miny"], bounds["maxx"], bounds["maxy"]),
            scale_deg=scale / _METRES_PER_DEGREE,
            crs="EPSG:4326",
        )

    def to_geotiff(self, path: str | Path, scale_m: float | None = None) -> Path:
        """Export the slope map to a single-band GeoTIFF.

        Args:
            path: Output file path (will be created/overwritten).
            scale_m: Approximate pixel size in metres; defaults to the
                sensor scale.

        Returns:
            Path object pointing to the written file.

        Raises:
            ValueError: If the result is not live, or the grid at *scale_m*
                is too large for a single pixel request.
        """
        import rasterio
        from rasterio.transform import from_bounds

        path = Path(path)
        data = self.slope_array(scale_m).astype(np.float32)
        height, width = data.shape
        bounds = self.metadata.bounds
        transform = from_bounds(
            bounds["minx"],
            bounds["miny"],
            bounds["maxx"],
            bounds["maxy"],
            width,
            height,
        )

        with rasterio.open(
            path,
            "w",
            driver="GTiff",
            height=height,
            width=width,
            count=1,
            dtype=data.dtype,
            crs="EPSG:4326",
            transform=transform,
            nodata=np.nan,
        ) as dst:
            dst.write(data, 1)
            dst.set_band_description(1, SLOPE_BAND)

        return path
