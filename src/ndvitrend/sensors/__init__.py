"""Sensor registry.

Provides ``get_sensor()`` to look up a sensor profile by name. Supports
Sentinel-2 (``S2``) and Landsat 8 (``L8``).
"""

from __future__ import annotations

from ndvitrend.exceptions import ConfigurationError
from ndvitrend.sensors.base import NDVI_BAND, Sensor
from ndvitrend.sensors.landsat import Landsat8Sensor
from ndvitrend.sensors.sentinel2 import Sentinel2Sensor

_SENSOR_REGISTRY: dict[str, type[Sensor]] = {
    "S2": Sentinel2Sensor,
    "L8": Landsat8Sensor,
}

__all__ = [
    "NDVI_BAND",
    "Landsat8Sensor",
    "Sensor",
    "Sentinel2Sensor",
    "get_registered_names",
    "get_sensor",
]


def get_registered_names() -> list[str]:
    """Return sorted list of registered sensor names."""
    return sorted(_SENSOR_REGISTRY)


def get_sensor(name: str | Sensor) -> Sensor:
    """Return a sensor instance by name.

    Names are case-insensitive. A ``Sensor`` instance is returned as-is.

    Args:
        name: Sensor identifier (``"S2"`` or ``"L8"``) or a ``Sensor``.

    Returns:
        A ``Sensor`` instance.

    Raises:
        ConfigurationError: If *name* does not match a registered sensor.

    Example:
        >>> get_sensor("l8").collection_id
        'LANDSAT/LC08/C02/T1_L2'
    """
    if isinstance(name, Sensor):
        return name
    key = str(name).upper()
    if key not in _SENSOR_REGISTRY:
        valid = ", ".join(get_registered_names())
        raise ConfigurationError(
            what=f"Unknown sensor: {name!r}",
            cause=f"Valid sensors are: {valid}",
            fix=f"Use one of: {valid}",
        )
    return _SENSOR_REGISTRY[key]()
