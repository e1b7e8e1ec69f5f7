"""Pipeline helpers for the NDVI trend computation.

The ``_run_trend`` function is the central orchestration helper used by
``Region.ndvi_trend`` and ``ndvitrend.ndvi_trend``: cache check →
initialize Earth Engine → build the graph → evaluate summaries → cache
store → return ``TrendResult``.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from ndvitrend import earthengine
from ndvitrend._types import QualityAssessment
from ndvitrend.analysis.ndvi import (
    MEAN_PROPERTY,
    SLOPE_BAND,
    YEAR_PROPERTY,
    build_year_collection,
    fit_trend,
    image_counts,
    mean_ndvi_per_year,
    trend_area,
)
from ndvitrend.analysis.vegetation import fit_linear_trend
from ndvitrend.exceptions import ConfigurationError
from ndvitrend.results import ResultMetadata, TrendResult, YearlyStat
from ndvitrend.sensors import Sensor, get_sensor

if TYPE_CHECKING:
    from ndvitrend.region import Region

logger = logging.getLogger(__name__)

_PRODUCT = "ndvi-trend"

# Earliest year any supported collection has data (Landsat 8 launch).
_MIN_YEAR = 2013


# ── Year range helper ──────────────────────────────────────────────


def _resolve_years(year_start: int, year_end: int) -> list[int]:
    """Validate the year span and return every year in it, inclusive.

    Raises:
        ConfigurationError: If the years are not integers, precede the
            supported archives, or are inverted.
    """
    for name, value in (("year_start", year_start), ("year_end", year_end)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(
                what=f"Invalid {name}: {value!r}",
                cause="Years must be integers",
                fix=f"Pass {name} as a calendar year, e.g. 2018",
            )
        if value < _MIN_YEAR:
            raise ConfigurationError(
                what=f"Invalid {name}: {value}",
                cause=f"No supported sensor has data before {_MIN_YEAR}",
                fix=f"Use years from {_MIN_YEAR} onwards",
            )
    if year_start > year_end:
        raise ConfigurationError(
            what=f"Invalid years: year_start ({year_start}) is after "
            f"year_end ({year_end})",
            cause="The year span is inverted",
            fix="Swap year_start and year_end",
        )
    return list(range(year_start, year_end + 1))


# ── Quality assessment helper ──────────────────────────────────────

# Confidence scoring weights.
_RATIO_WEIGHT: float = 0.7
_COUNT_WEIGHT: float = 0.3
_MIN_ADEQUATE_YEARS: int = 3


def _assess_quality(years: list[int], counts: list[int]) -> QualityAssessment:
    """Compute quality assessment for a trend result.

    The confidence score combines two factors:

    * **Year coverage** (weight 0.7): proportion of requested years with
      at least one image.
    * **Series adequacy** (weight 0.3): whether enough usable years exist
      for a meaningful trend (minimum 3).

    With fewer than two usable years the trend is undefined and
    confidence is capped accordingly.

    Args:
        years: Requested years, in order.
        counts: Per-year image counts, aligned with *years*.

    Returns:
        ``QualityAssessment`` with confidence in [0.0, 1.0] and warnings.
    """
    counts = [max(int(c), 0) for c in counts]
    year_count = len(years)
    usable = sum(1 for c in counts if c > 0)

    warnings: list[str] = []

    if year_count == 0 or usable == 0:
        confidence = 0.0
        warnings.append("No satellite imagery available for any requested year")
    else:
        ratio_score = usable / year_count
        count_score = min(usable / _MIN_ADEQUATE_YEARS, 1.0)
        confidence = _RATIO_WEIGHT * ratio_score + _COUNT_WEIGHT * count_score

        # Penalise series too short to fit a line
        if usable < 2:
            confidence = min(confidence, usable * 0.15)

        confidence = min(max(confidence, 0.0), 1.0)

    empty_years = [year for year, c in zip(years, counts) if c == 0]
    if empty_years and usable > 0:
        listed = ", ".join(str(y) for y in empty_years)
        warnings.append(
            f"No imagery for {listed}; those years use a nodata fill and "
            "their pixels are excluded from the trend"
        )
    if 0 < usable < 2:
        warnings.append(
            f"Only {usable} of {year_count} years have imagery; "
            "trend is undefined"
        )

    return QualityAssessment(
        confidence=confidence,
        year_count=year_count,
        usable_year_count=usable,
        image_counts=counts,
        warnings=warnings,
    )


# ── Serialization helpers ──────────────────────────────────────────


def _nan_to_none(value: float) -> float | None:
    return None if math.isnan(value) else value


def _none_to_nan(value: Any) -> float:
    return float("nan") if value is None else float(value)


def _serialize_summary(result: TrendResult) -> bytes:
    """Serialize the evaluated part of a ``TrendResult`` for cache storage.

    Only plain values are stored; the live Earth Engine objects are not.
    NaN is written as JSON ``null``.
    """
    payload: dict[str, Any] = {
        "yearly": [
            {
                "year": stat.year,
                "image_count": stat.image_count,
                "mean_ndvi": _nan_to_none(stat.mean_ndvi),
            }
            for stat in result.yearly
        ],
        "positive_area_m2": _nan_to_none(result.positive_area_m2),
        "negative_area_m2": _nan_to_none(result.negative_area_m2),
        "regional_slope": _nan_to_none(result.regional_slope),
        "confidence": result.confidence,
        "warnings": list(result.warnings),
        "metadata": result.metadata.model_dump(mode="json"),
    }
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def _deserialize_summary(data: bytes) -> TrendResult:
    """Rebuild a summary-only ``TrendResult`` from cache bytes.

    Inverse of ``_serialize_summary``; the result has ``from_cache`` set
    and no live Earth Engine objects.
    """
    payload: dict[str, Any] = json.loads(data.decode("utf-8"))
    yearly = [
        YearlyStat(
            year=int(row["year"]),
            image_count=int(row["image_count"]),
            mean_ndvi=_none_to_nan(row["mean_ndvi"]),
        )
        for row in payload["yearly"]
    ]
    return TrendResult(
        yearly=yearly,
        positive_area_m2=_none_to_nan(payload["positive_area_m2"]),
        negative_area_m2=_none_to_nan(payload["negative_area_m2"]),
        regional_slope=_none_to_nan(payload["regional_slope"]),
        confidence=float(payload["confidence"]),
        warnings=list(payload["warnings"]),
        metadata=ResultMetadata.model_validate(payload["metadata"]),
        from_cache=True,
    )


# ── Evaluation helpers ─────────────────────────────────────────────


def _parse_means(info: dict[str, Any], years: list[int]) -> list[float]:
    """Map an evaluated ``{year, meanNDVI}`` FeatureCollection onto *years*."""
    by_year: dict[int, float] = {}
    for feature in info.get("features", []):
        props = feature.get("properties", {})
        year = props.get(YEAR_PROPERTY)
        if year is None:
            continue
        by_year[int(year)] = _none_to_nan(props.get(MEAN_PROPERTY))
    return [by_year.get(year, float("nan")) for year in years]


# ── Pipeline entry point ───────────────────────────────────────────


def _run_trend(
    region: Region,
    sensor: str | Sensor = "S2",
    year_start: int = 2018,
    year_end: int = 2023,
    use_cache: bool = True,
) -> TrendResult:
    """Compute the NDVI trend for *region* through the cache pipeline.

    Infrastructure errors (``EarthEngineError``, ``ConfigurationError``)
    propagate to the caller.

    Args:
        region: Study area providing geometry, config and cache.
        sensor: Sensor name or instance.
        year_start: First year, inclusive.
        year_end: Last year, inclusive.
        use_cache: Reuse a cached summary when one is available.

    Returns:
        ``TrendResult``; live Earth Engine objects are attached unless the
        summary came from the cache.

    Raises:
        ConfigurationError: For unknown sensors, invalid years or rejected
            credentials.
        EarthEngineError: If an evaluation fails after retries.
    """
    config = region.config
    sensor_obj = get_sensor(sensor)
    years = _resolve_years(year_start, year_end)
    scale = sensor_obj.scale_m

    cache = region.cache
    params: dict[str, str] = {
        "scale": str(scale),
        "max_pixels": str(config.max_pixels),
        "best_effort": str(config.best_effort),
    }
    cache_key = cache.build_key(
        sensor=sensor_obj.name,
        product=_PRODUCT,
        region_hash=region.region_hash,
        time_range=(str(year_start), str(year_end)),
        params=params,
    )

    if use_cache:
        cached = cache.get(cache_key)
        if cached is not None:
            logger.debug("Cache hit for %s", cache_key)
            return _deserialize_summary(cached)
        logger.debug("Cache miss for %s, computing on Earth Engine", cache_key)

    earthengine.initialize(config)

    geometry = region.geometry()
    year_collection = build_year_collection(sensor_obj, geometry, years)
    slope = fit_trend(year_collection)

    logger.info(
        "Computing %s NDVI trend %d-%d over %s...",
        sensor_obj.name,
        year_start,
        year_end,
        region.bounds,
    )
    counts = earthengine.evaluate(
        image_counts(sensor_obj, geometry, years), "yearly image counts"
    )
    means_info = earthengine.evaluate(
        mean_ndvi_per_year(
            year_collection,
            geometry,
            scale,
            max_pixels=config.max_pixels,
            best_effort=config.best_effort,
        ),
        "mean NDVI per year",
    )
    areas = earthengine.evaluate(
        trend_area(
            slope,
            geometry,
            scale,
            max_pixels=config.max_pixels,
            best_effort=config.best_effort,
        ),
        "trend areas",
    )

    counts = [int(c) for c in counts]
    means = _parse_means(means_info, years)
    quality = _assess_quality(years, counts)
    regional_slope, _ = fit_linear_trend(years, means)

    described = sensor_obj.describe()
    metadata = ResultMetadata(
        sensor=described["sensor"],
        collection=described["collection"],
        years=years,
        scale_m=float(scale),
        crs=config.default_crs,
        bounds=region.bounds_dict(),
        bands=[SLOPE_BAND],
        computed_at=datetime.now(timezone.utc).isoformat(),
    )

    result = TrendResult(
        yearly=[
            YearlyStat(year=year, image_count=count, mean_ndvi=mean)
            for year, count, mean in zip(years, counts, means)
        ],
        positive_area_m2=_none_to_nan(areas.get("positive_m2")),
        negative_area_m2=_none_to_nan(areas.get("negative_m2")),
        regional_slope=regional_slope,
        confidence=quality.confidence,
        metadata=metadata,
        warnings=list(quality.warnings),
        slope_image=slope,
        year_collection=year_collection,
        geometry=geometry,
    )

    cache.store(
        cache_key=cache_key,
        sensor=sensor_obj.name,
        product=_PRODUCT,
        region_hash=region.region_hash,
        data=_serialize_summary(result),
    )

    return result
