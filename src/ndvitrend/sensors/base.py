"""Sensor interface contract.

Defines the ``Sensor`` abstract base class: the per-platform knowledge
(collection, bands, native scale, cloud masking) needed to turn a raw
Earth Engine image collection into a collection with an ``NDVI`` band.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import ee

NDVI_BAND = "NDVI"


class Sensor(ABC):
    """Abstract base class for optical sensors usable for NDVI trends.

    Subclasses set the class attributes below and implement
    ``mask_clouds``. All methods build server-side ``ee`` expressions and
    never call ``getInfo()``.

    Example:
        >>> from ndvitrend.sensors import get_sensor
        >>> get_sensor("s2").scale_m
        10
    """

    name: str = ""
    description: str = ""
    collection_id: str = ""
    scale_m: int = 30
    nir_band: str = ""
    red_band: str = ""

    @abstractmethod
    def mask_clouds(self, image: ee.Image) -> ee.Image:
        """Return *image* with cloudy pixels masked out.

        Args:
            image: A single image from ``collection_id``.

        Returns:
            The same image with an updated mask.
        """
        ...

    def prepare(self, image: ee.Image) -> ee.Image:
        """Convert stored values to reflectance before NDVI.

        Identity by default.
        """
        return image

    def add_ndvi(self, image: ee.Image) -> ee.Image:
        """Append an ``NDVI`` band computed from the NIR and red bands."""
        ndvi = image.normalizedDifference([self.nir_band, self.red_band])
        return image.addBands(ndvi.rename(NDVI_BAND))

    def collection(self) -> ee.ImageCollection:
        """Return the unfiltered image collection for this sensor."""
        return ee.ImageCollection(self.collection_id)

    def process(self, image: ee.Image) -> ee.Image:
        """Mask, scale and add NDVI; the function mapped over collections."""
        return self.add_ndvi(self.prepare(self.mask_clouds(image)))

    def describe(self) -> dict[str, Any]:
        """Return a JSON-friendly description used in result metadata."""
        return {
            "sensor": self.name,
            "collection": self.collection_id,
            "scale_m": self.scale_m,
            "bands": [self.nir_band, self.red_band],
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, scale_m={self.scale_m})"
