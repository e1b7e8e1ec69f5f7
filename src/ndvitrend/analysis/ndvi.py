"""Server-side NDVI trend graph.

Builds lazy Earth Engine expressions only: yearly composites, the
per-pixel linear fit and the regional reductions. Nothing here calls
``getInfo()``; evaluation happens in ``ndvitrend.earthengine``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import ee

from ndvitrend.sensors.base import NDVI_BAND, Sensor

NODATA = -9999
"""Fill value of the composite for a year without any images."""

TIME_BAND = "t"
SLOPE_BAND = "NDVI_slope_per_year"
MEAN_PROPERTY = "meanNDVI"
YEAR_PROPERTY = "year"

NDVI_VIS: dict[str, Any] = {
    "min": -0.3,
    "max": 0.9,
    "palette": [
        "ffffff",
        "ce7e45",
        "df923d",
        "f1b555",
        "fcd163",
        "99b718",
        "74a901",
        "66a000",
        "529400",
        "3e8601",
    ],
}

SLOPE_VIS: dict[str, Any] = {
    "min": -0.05,
    "max": 0.05,
    "palette": ["red", "white", "green"],
}


def collection_for_year(
    sensor: Sensor,
    geometry: ee.Geometry,
    year: int,
) -> ee.ImageCollection:
    """Return the masked NDVI collection for one calendar year.

    Images are filtered to ``[Jan 1 year, Jan 1 year+1)`` and to the
    region footprint, then cloud-masked and given an ``NDVI`` band.
    """
    start = ee.Date.fromYMD(year, 1, 1)
    end = start.advance(1, "year")
    return (
        sensor.collection()
        .filterDate(start, end)
        .filterBounds(geometry)
        .map(sensor.process)
    )


def yearly_composite(
    sensor: Sensor,
    geometry: ee.Geometry,
    year: int,
) -> ee.Image:
    """Median NDVI composite for *year* with a constant time band.

    A year without images yields a constant ``NODATA`` NDVI image rather
    than an empty composite, so every year contributes a two-band image
    ``[NDVI, t]`` to the trend collection.
    """
    collection = collection_for_year(sensor, geometry, year)
    ndvi = ee.Image(
        ee.Algorithms.If(
            collection.size().gt(0),
            collection.select(NDVI_BAND).median().toFloat().clip(geometry),
            ee.Image.constant(NODATA).toFloat().rename(NDVI_BAND).clip(geometry),
        )
    )
    time_band = ee.Image.constant(year).toFloat().rename(TIME_BAND)
    return ndvi.addBands(time_band).set(YEAR_PROPERTY, year)


def build_year_collection(
    sensor: Sensor,
    geometry: ee.Geometry,
    years: Iterable[int],
) -> ee.ImageCollection:
    """Collection of one ``yearly_composite`` per year, in year order."""
    images = [yearly_composite(sensor, geometry, year) for year in years]
    return ee.ImageCollection.fromImages(images)


def image_counts(
    sensor: Sensor,
    geometry: ee.Geometry,
    years: Iterable[int],
) -> ee.List:
    """Per-year number of images matching the region, in year order."""
    return ee.List(
        [collection_for_year(sensor, geometry, year).size() for year in years]
    )


def fit_trend(year_collection: ee.ImageCollection) -> ee.Image:
    """Per-pixel least-squares NDVI slope in NDVI units per year.

    ``linearFit`` regresses the second band (``NDVI``) on the first
    (``t``). Pixels where any year holds the ``NODATA`` fill are masked.
    """
    fit = year_collection.select([TIME_BAND, NDVI_BAND]).reduce(
        ee.Reducer.linearFit()
    )
    slope = fit.select("scale").rename(SLOPE_BAND)
    all_years_valid = (
        year_collection.select(NDVI_BAND).reduce(ee.Reducer.min()).neq(NODATA)
    )
    return slope.updateMask(all_years_valid)


def mean_ndvi_per_year(
    year_collection: ee.ImageCollection,
    geometry: ee.Geometry,
    scale: float,
    max_pixels: float = 1e13,
    best_effort: bool = True,
) -> ee.FeatureCollection:
    """Regional mean NDVI per year as geometry-less features.

    Each feature carries ``year`` and ``meanNDVI``. The ``NODATA`` fill is
    masked before reducing, so a year without images gets a null mean.
    """

    def _mean(image: ee.Image) -> ee.Feature:
        ndvi = image.select(NDVI_BAND)
        ndvi = ndvi.updateMask(ndvi.neq(NODATA))
        stats = ndvi.reduceRegion(
            reducer=ee.Reducer.mean(),
            geometry=geometry,
            scale=scale,
            bestEffort=best_effort,
            maxPixels=max_pixels,
        )
        return ee.Feature(
            None,
            {
                YEAR_PROPERTY: image.get(YEAR_PROPERTY),
                MEAN_PROPERTY: stats.get(NDVI_BAND),
            },
        )

    return ee.FeatureCollection(year_collection.map(_mean))


def trend_area(
    slope: ee.Image,
    geometry: ee.Geometry,
    scale: float,
    max_pixels: float = 1e13,
    best_effort: bool = True,
) -> ee.Dictionary:
    """Area in square metres with a positive and a negative slope.

    Returns:
        ``ee.Dictionary`` with keys ``positive_m2`` and ``negative_m2``.
    """
    pixel_area = ee.Image.pixelArea()

    def _area(selector: ee.Image) -> ee.ComputedObject:
        stats = (
            selector.multiply(pixel_area)
            .rename("area")
            .reduceRegion(
                reducer=ee.Reducer.sum(),
                geometry=geometry,
                scale=scale,
                maxPixels=max_pixels,
                bestEffort=best_effort,
            )
        )
        return stats.get("area")

    return ee.Dictionary(
        {
            "positive_m2": _area(slope.gt(0)),
            "negative_m2": _area(slope.lt(0)),
        }
    )
