"""Sentinel-2 surface reflectance with a band-tolerant cloud mask."""

from __future__ import annotations

import ee

from ndvitrend.sensors.base import Sensor

# Scene Classification Layer classes kept as clear:
# 4=Vegetation, 5=Not vegetated, 6=Water, 7=Unclassified.
_SCL_CLEAR_CLASSES: tuple[int, ...] = (4, 5, 6, 7)

# MSK_CLDPRB is a 0-100 cloud probability.
_CLOUD_PROBABILITY_MAX = 50


def _scl_mask(image: ee.Image) -> ee.Image:
    """Clear-class mask from SCL, or an all-ones image if SCL is absent."""
    scl = image.select("SCL")
    clear = scl.eq(_SCL_CLEAR_CLASSES[0])
    for value in _SCL_CLEAR_CLASSES[1:]:
        clear = clear.Or(scl.eq(value))
    return ee.Image(
        ee.Algorithms.If(
            image.bandNames().contains("SCL"),
            clear,
            ee.Image.constant(1),
        )
    )


def _qa_mask(image: ee.Image) -> ee.Image:
    """Cloud mask from QA60, falling back to MSK_CLDPRB, then to all-ones."""
    bands = image.bandNames()
    probability = ee.Image(
        ee.Algorithms.If(
            bands.contains("MSK_CLDPRB"),
            image.select("MSK_CLDPRB").lt(_CLOUD_PROBABILITY_MAX),
            ee.Image.constant(1),
        )
    )
    return ee.Image(
        ee.Algorithms.If(
            bands.contains("QA60"),
            image.select("QA60").eq(0),
            probability,
        )
    )


class Sentinel2Sensor(Sensor):
    """Sentinel-2 Level-2A surface reflectance (harmonized), 10 m.

    Not every image in the archive carries the same quality bands, so the
    mask is assembled server-side from whatever is present: the SCL clear
    classes OR a clear QA60 flag (or low MSK_CLDPRB). Either source
    saying "clear" keeps the pixel.

    Example:
        >>> Sentinel2Sensor().collection_id
        'COPERNICUS/S2_SR_HARMONIZED'
    """

    name = "S2"
    description = "Sentinel-2 L2A surface reflectance"
    collection_id = "COPERNICUS/S2_SR_HARMONIZED"
    scale_m = 10
    nir_band = "B8"
    red_band = "B4"

    def mask_clouds(self, image: ee.Image) -> ee.Image:
        combined = _scl_mask(image).Or(_qa_mask(image))
        return image.updateMask(combined)
