"""Region model for ndvitrend queries.

A ``Region`` is the rectangular study area every trend is computed over,
with WGS84 bounds validation and configuration snapshot capture.
"""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING

import ee

from ndvitrend._types import Bounds, RegionHash
from ndvitrend.config import Config, get_default_config
from ndvitrend.exceptions import ConfigurationError

if TYPE_CHECKING:
    from ndvitrend.cache import CacheManager
    from ndvitrend.results import TrendResult
    from ndvitrend.sensors import Sensor

logger = logging.getLogger(__name__)

_MIN_LAT = -90.0
_MAX_LAT = 90.0
_MIN_LON = -180.0
_MAX_LON = 180.0

SANTIPUR: Bounds = (88.35, 23.05, 88.55, 23.35)
"""Default study area around Santipur, West Bengal."""


def region(
    west: float,
    south: float,
    east: float,
    north: float,
    config: Config | None = None,
) -> Region:
    """Create a rectangular region from WGS84 bounds.

    Validates the bounds and captures the current configuration
    snapshot used by the trend pipeline.

    Args:
        west: Western longitude (-180 to 180).
        south: Southern latitude (-90 to 90).
        east: Eastern longitude, greater than *west*.
        north: Northern latitude, greater than *south*.
        config: Optional Config object. If provided, overrides
            the module-level defaults.

    Returns:
        A ``Region`` ready for trend analysis.

    Raises:
        ConfigurationError: If bounds are outside WGS84 or inverted.

    Example:
        >>> import ndvitrend as nt
        >>> area = nt.region(88.35, 23.05, 88.55, 23.35)
        >>> area.center
        (88.45, 23.2)
    """
    for name, lon in (("west", west), ("east", east)):
        if not (_MIN_LON <= lon <= _MAX_LON):
            raise ConfigurationError(
                what=f"Invalid {name} longitude: {lon}",
                cause=f"Longitude must be between {_MIN_LON} and {_MAX_LON}",
                fix="Provide a valid WGS84 longitude value",
            )
    for name, lat in (("south", south), ("north", north)):
        if not (_MIN_LAT <= lat <= _MAX_LAT):
            raise ConfigurationError(
                what=f"Invalid {name} latitude: {lat}",
                cause=f"Latitude must be between {_MIN_LAT} and {_MAX_LAT}",
                fix="Provide a valid WGS84 latitude value",
            )
    if west >= east:
        raise ConfigurationError(
            what=f"Invalid region: west ({west}) must be less than east ({east})",
            cause="Rectangles crossing the antimeridian are not supported",
            fix="Pass bounds as (west, south, east, north)",
        )
    if south >= north:
        raise ConfigurationError(
            what=f"Invalid region: south ({south}) must be less than north ({north})",
            cause="Bounds are inverted or the rectangle is empty",
            fix="Pass bounds as (west, south, east, north)",
        )

    captured_config = config if config is not None else get_default_config()
    return Region(
        bounds=(float(west), float(south), float(east), float(north)),
        config=captured_config,
    )


class Region:
    """A rectangular study area for NDVI trend analysis.

    Stores validated WGS84 bounds and a frozen ``Config`` snapshot
    captured at creation time.

    Args:
        bounds: Validated ``(west, south, east, north)``.
        config: Frozen configuration snapshot.

    Example:
        >>> area = Region(bounds=(88.35, 23.05, 88.55, 23.35), config=Config())
        >>> area.bounds
        (88.35, 23.05, 88.55, 23.35)
    """

    __slots__ = ("_bounds", "_config", "_region_hash", "_cache_manager")

    def __init__(self, bounds: Bounds, config: Config) -> None:
        """Initialize from pre-validated bounds and frozen config.

        Use the ``region()`` factory function for bounds validation.
        """
        self._bounds = bounds
        self._config = config
        canonical = ",".join(f"{v:.10f}" for v in bounds)
        self._region_hash: RegionHash = hashlib.sha256(canonical.encode()).hexdigest()
        self._cache_manager: CacheManager | None = None

    # ── Read-only properties ─────────────────────────────────────

    @property
    def bounds(self) -> Bounds:
        """Bounding box as ``(west, south, east, north)`` in degrees."""
        return self._bounds

    @property
    def center(self) -> tuple[float, float]:
        """Rectangle centre as ``(lon, lat)``."""
        west, south, east, north = self._bounds
        return (round((west + east) / 2, 10), round((south + north) / 2, 10))

    @property
    def config(self) -> Config:
        """Frozen configuration snapshot captured at creation."""
        return self._config

    @property
    def region_hash(self) -> RegionHash:
        """Deterministic SHA-256 hex digest for cache key generation."""
        return self._region_hash

    @property
    def cache(self) -> CacheManager:
        """Cached CacheManager instance for this region's config.

        Lazily instantiated on first access.
        """
        if self._cache_manager is None:
            from ndvitrend.cache import CacheManager

            self._cache_manager = CacheManager(config=self._config)
        return self._cache_manager

    def geometry(self) -> ee.Geometry:
        """Return the region as an ``ee.Geometry.Rectangle``."""
        return ee.Geometry.Rectangle(list(self._bounds))

    def bounds_dict(self) -> dict[str, float]:
        """Bounds as ``{"minx", "miny", "maxx", "maxy"}`` for metadata."""
        west, south, east, north = self._bounds
        return {"minx": west, "miny": south, "maxx": east, "maxy": north}

    # ── Analysis ─────────────────────────────────────────────────

    def ndvi_trend(
        self,
        sensor: str | Sensor = "S2",
        year_start: int = 2018,
        year_end: int = 2023,
        use_cache: bool = True,
    ) -> TrendResult:
        """Compute the per-pixel NDVI trend over this region.

        Builds yearly median NDVI composites for every year in
        ``[year_start, year_end]``, fits a linear trend per pixel, and
        summarizes the regional mean per year and the area greening or
        browning.

        Args:
            sensor: ``"S2"`` (Sentinel-2, 10 m) or ``"L8"`` (Landsat 8, 30 m).
            year_start: First year, inclusive.
            year_end: Last year, inclusive.
            use_cache: Reuse a cached summary when one is available.

        Returns:
            ``TrendResult`` with yearly statistics, trend areas and the
            live slope image.

        Raises:
            ConfigurationError: For unknown sensors, inverted years or
                rejected credentials.
            EarthEngineError: If Earth Engine fails after retries.

        Example:
            >>> area = region(88.35, 23.05, 88.55, 23.35)
            >>> result = area.ndvi_trend(sensor="S2", year_start=2018, year_end=2023)
            >>> result.positive_area_m2  # doctest: +SKIP
            21450000.0
        """
        from ndvitrend._pipeline import _run_trend

        return _run_trend(
            self,
            sensor=sensor,
            year_start=year_start,
            year_end=year_end,
            use_cache=use_cache,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Region):
            return NotImplemented
        return self._bounds == other._bounds

    def __hash__(self) -> int:
        return hash(self._bounds)

    def __repr__(self) -> str:
        west, south, east, north = self._bounds
        return f"Region(west={west}, south={south}, east={east}, north={north})"
