"""Top-level semantic API functions for ndvitrend.

Provides a module-level function for the trend analysis that accepts
either raw bounds or a ``Region`` object, for quick scripts and
notebooks.

Example:
    >>> import ndvitrend as nt
    >>> # Simple: just pass bounds
    >>> result = nt.ndvi_trend(88.35, 23.05, 88.55, 23.35, sensor="S2")
    >>> print(result.regional_slope)
    >>>
    >>> # Or reuse a Region
    >>> area = nt.region(*nt.SANTIPUR)
    >>> s2 = nt.ndvi_trend(area, sensor="S2")
    >>> l8 = nt.ndvi_trend(area, sensor="L8", year_start=2014)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, overload

from ndvitrend.region import Region
from ndvitrend.region import region as create_region
from ndvitrend.results import TrendResult

if TYPE_CHECKING:
    from ndvitrend.config import Config
    from ndvitrend.sensors import Sensor


def _resolve_region(
    region_or_west: Region | float,
    south: float | None = None,
    east: float | None = None,
    north: float | None = None,
    config: Config | None = None,
) -> Region:
    """Resolve input to a Region object.

    Raises:
        TypeError: If the first argument is a longitude but the other
            three bounds are not all provided.
    """
    if isinstance(region_or_west, Region):
        return region_or_west
    if south is None or east is None or north is None:
        raise TypeError(
            "south, east and north are required when the first argument is "
            "the western longitude. Use: ndvi_trend(west, south, east, north) "
            "or ndvi_trend(region)"
        )
    return create_region(region_or_west, south, east, north, config=config)


@overload
def ndvi_trend(
    region_or_west: Region,
    south: None = None,
    east: None = None,
    north: None = None,
    *,
    sensor: str | Sensor = ...,
    year_start: int = ...,
    year_end: int = ...,
    use_cache: bool = ...,
    config: None = None,
) -> TrendResult: ...


@overload
def ndvi_trend(
    region_or_west: float,
    south: float,
    east: float,
    north: float,
    *,
    sensor: str | Sensor = ...,
    year_start: int = ...,
    year_end: int = ...,
    use_cache: bool = ...,
    config: Config | None = None,
) -> TrendResult: ...


def ndvi_trend(
    region_or_west: Region | float,
    south: float | None = None,
    east: float | None = None,
    north: float | None = None,
    *,
    sensor: str | Sensor = "S2",
    year_start: int = 2018,
    year_end: int = 2023,
    use_cache: bool = True,
    config: Config | None = None,
) -> TrendResult:
    """Compute the multi-year NDVI trend for a rectangular region.

    Builds a cloud-masked median NDVI composite per year on Earth Engine,
    fits a per-pixel linear trend, and evaluates the regional mean per
    year and the area greening or browning.

    Args:
        region_or_west: A Region object, or the western longitude.
        south: Southern latitude (required with a longitude).
        east: Eastern longitude (required with a longitude).
        north: Northern latitude (required with a longitude).
        sensor: ``"S2"`` (Sentinel-2) or ``"L8"`` (Landsat 8).
        year_start: First year, inclusive. Defaults to 2018.
        year_end: Last year, inclusive. Defaults to 2023.
        use_cache: Reuse a cached summary when one is available.
        config: Optional configuration override (ignored for a Region,
            which carries its own).

    Returns:
        TrendResult with yearly statistics, trend areas and confidence.

    Example:
        >>> import ndvitrend as nt
        >>> result = nt.ndvi_trend(88.35, 23.05, 88.55, 23.35, year_start=2019)
        >>> result.to_dataframe()  # doctest: +SKIP
    """
    area = _resolve_region(region_or_west, south, east, north, config)
    return area.ndvi_trend(
        sensor=sensor,
        year_start=year_start,
        year_end=year_end,
        use_cache=use_cache,
    )
