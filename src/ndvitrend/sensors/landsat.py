"""Landsat 8 Collection 2 Level-2 surface reflectance."""

from __future__ import annotations

import ee

from ndvitrend.sensors.base import Sensor

# QA_PIXEL bit flags
_CLOUD_BIT = 1 << 3
_CLOUD_SHADOW_BIT = 1 << 4

# Collection 2 Level-2 surface reflectance scaling
_SR_SCALE = 0.0000275
_SR_OFFSET = -0.2
_SR_BANDS_PATTERN = "SR_B."


class Landsat8Sensor(Sensor):
    """Landsat 8 OLI surface reflectance, 30 m.

    Masks pixels flagged as cloud or cloud shadow in ``QA_PIXEL`` and
    rescales the ``SR_B*`` bands to reflectance before NDVI.

    Example:
        >>> Landsat8Sensor().nir_band
        'SR_B5'
    """

    name = "L8"
    description = "Landsat 8 Collection 2 Level-2 surface reflectance"
    collection_id = "LANDSAT/LC08/C02/T1_L2"
    scale_m = 30
    nir_band = "SR_B5"
    red_band = "SR_B4"

    def mask_clouds(self, image: ee.Image) -> ee.Image:
        qa = image.select("QA_PIXEL")
        clear = (
            qa.bitwiseAnd(_CLOUD_BIT).eq(0).And(qa.bitwiseAnd(_CLOUD_SHADOW_BIT).eq(0))
        )
        return image.updateMask(clear)

    def prepare(self, image: ee.Image) -> ee.Image:
        optical = image.select(_SR_BANDS_PATTERN).multiply(_SR_SCALE).add(_SR_OFFSET)
        return image.addBands(optical, None, True)
