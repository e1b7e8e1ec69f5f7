"""ndvitrend — Multi-year NDVI trend maps on Google Earth Engine.

Example:
    >>> import ndvitrend as nt
    >>>
    >>> # Quick analysis with just bounds
    >>> result = nt.ndvi_trend(88.35, 23.05, 88.55, 23.35, sensor="S2")
    >>> print(result)
    >>>
    >>> # Or use a Region for several sensors
    >>> area = nt.region(*nt.SANTIPUR)
    >>> l8 = area.ndvi_trend(sensor="L8", year_start=2014, year_end=2023)
    >>> l8.to_png("l8_mean_ndvi.png")
"""

from ndvitrend.__about__ import __version__
from ndvitrend.api import ndvi_trend
from ndvitrend.config import Config, configure
from ndvitrend.exceptions import (
    CacheError,
    ConfigurationError,
    EarthEngineError,
    NdviTrendError,
)
from ndvitrend.region import SANTIPUR, Region, region
from ndvitrend.results import ResultMetadata, TrendResult, YearlyStat
from ndvitrend.sensors import Sensor, get_sensor

__all__ = [
    # Version
    "__version__",
    # Semantic API (top-level functions)
    "ndvi_trend",
    # Region
    "SANTIPUR",
    "Region",
    "region",
    # Sensors
    "Sensor",
    "get_sensor",
    # Configuration
    "Config",
    "configure",
    # Results
    "ResultMetadata",
    "TrendResult",
    "YearlyStat",
    # Exceptions
    "CacheError",
    "ConfigurationError",
    "EarthEngineError",
    "NdviTrendError",
]
