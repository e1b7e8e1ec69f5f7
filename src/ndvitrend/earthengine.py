"""Earth Engine session, evaluation and transfer helpers.

This is the only module that talks to the Earth Engine service directly:
initialization, ``getInfo()`` evaluation with retries, thumbnail URLs and
downloads, pixel fetches and Drive exports. Everything else builds lazy
``ee`` expressions.
"""

from __future__ import annotations

import logging
import random
import re
import time
from pathlib import Path
from typing import Any

import ee
import numpy as np
import numpy.typing as npt
import requests

from ndvitrend.config import Config, load_credentials, resolve_credentials_path
from ndvitrend.exceptions import ConfigurationError, EarthEngineError

logger = logging.getLogger(__name__)

_INITIALIZED = False

# ---------------------------------------------------------------------------
# Retry constants
# ---------------------------------------------------------------------------

_MAX_RETRIES = 3
_INITIAL_BACKOFF = 2.0  # seconds
_MAX_BACKOFF = 60.0  # seconds
_TRANSIENT_MARKERS: tuple[str, ...] = (
    "too many concurrent",
    "rate limit",
    "quota",
    "timed out",
    "deadline exceeded",
    "internal error",
    "service unavailable",
)
# Whole-word HTTP status codes only
_TRANSIENT_STATUS = re.compile(r"\b(?:429|50[0234])\b")

_DOWNLOAD_TIMEOUT = (30, 300)  # (connect, read) seconds
_SUCCESS_STATUS_CODES = frozenset({200})
_PIXEL_FILL = -9999.0
_PIXEL_BYTES = 4  # float32
_MAX_PIXEL_RESPONSE_BYTES = 48 * 1024 * 1024  # computePixels response limit


def initialize(config: Config, force: bool = False) -> None:
    """Initialize the Earth Engine client once per process.

    Uses service-account credentials when a key file resolves (explicit
    ``Config.service_account_key``, ``NDVITREND_CREDENTIALS`` or the
    default key path); otherwise falls back to the persistent user
    credentials written by ``earthengine authenticate``.

    Args:
        config: Configuration providing ``project`` and key location.
        force: Re-initialize even if already initialized.

    Raises:
        ConfigurationError: If Earth Engine rejects the credentials or
            project.
    """
    global _INITIALIZED  # noqa: PLW0603
    if _INITIALIZED and not force:
        return

    key_path = resolve_credentials_path(explicit=config.service_account_key)
    try:
        if key_path is not None:
            key = load_credentials(key_path)
            credentials = ee.ServiceAccountCredentials(
                key["client_email"], key_file=str(key_path)
            )
            project = config.project or key.get("project_id")
            ee.Initialize(credentials, project=project)
            logger.info(
                "Earth Engine initialized with service account %s",
                key["client_email"],
            )
        else:
            ee.Initialize(project=config.project)
            logger.info("Earth Engine initialized (project=%s)", config.project)
    except ee.EEException as exc:
        raise ConfigurationError(
            what="Earth Engine initialization failed",
            cause=str(exc),
            fix=(
                "Run 'earthengine authenticate', or configure a service account "
                "key and a Cloud project registered for Earth Engine"
            ),
        ) from exc

    _INITIALIZED = True


def _is_transient(exc: Exception) -> bool:
    message = str(exc).lower()
    if any(marker in message for marker in _TRANSIENT_MARKERS):
        return True
    return _TRANSIENT_STATUS.search(message) is not None


def _compute_backoff(attempt: int) -> float:
    """Compute exponential backoff with jitter.

    Args:
        attempt: Zero-based attempt index.

    Returns:
        Wait time in seconds (randomized).
    """
    base_delay: float = min(_INITIAL_BACKOFF * (2**attempt), _MAX_BACKOFF)
    jitter: float = random.uniform(0, base_delay * 0.1)  # noqa: S311
    return float(base_delay + jitter)


def evaluate(obj: Any, what: str) -> Any:
    """Evaluate a computed object with ``getInfo()``, retrying transient errors.

    Rate limits, timeouts and concurrent-aggregation limits are retried
    with exponential backoff. Any other ``ee.EEException`` fails
    immediately.

    Args:
        obj: An ``ee.ComputedObject`` (number, list, dictionary, ...).
        what: Short description used in log and error messages.

    Returns:
        The evaluated Python value.

    Raises:
        EarthEngineError: On a non-transient error or when all retries
            are exhausted.
    """
    last_exc: Exception | None = None

    for attempt in range(_MAX_RETRIES):
        try:
            return obj.getInfo()
        except ee.EEException as exc:
            if not _is_transient(exc):
                raise EarthEngineError(
                    what=f"Earth Engine could not compute {what}",
                    cause=str(exc),
                    fix="Check the region, years and sensor parameters",
                ) from exc
            last_exc = exc
            if attempt < _MAX_RETRIES - 1:
                backoff = _compute_backoff(attempt)
                logger.warning(
                    "Evaluating %s failed (%s, attempt %d/%d), retrying in %.1fs...",
                    what,
                    exc,
                    attempt + 1,
                    _MAX_RETRIES,
                    backoff,
                )
                time.sleep(backoff)

    raise EarthEngineError(
        what=f"Earth Engine could not compute {what}",
        cause=f"{last_exc} (after {_MAX_RETRIES} attempts)",
        fix="Try again later, or reduce the region size or increase the scale",
    ) from last_exc


def thumbnail_url(
    image: ee.Image,
    vis: dict[str, Any],
    geometry: ee.Geometry,
    dimensions: int = 768,
) -> str:
    """Return a PNG thumbnail URL for a visualized image.

    Args:
        image: Single-band image to render.
        vis: Visualization parameters (``min``, ``max``, ``palette``).
        geometry: Region to render.
        dimensions: Longest edge of the thumbnail in pixels.

    Returns:
        A signed URL valid for a limited time.

    Raises:
        EarthEngineError: If Earth Engine rejects the request.
    """
    params = dict(vis)
    params.update({"region": geometry, "dimensions": dimensions, "format": "png"})
    try:
        return str(image.getThumbURL(params))
    except ee.EEException as exc:
        raise EarthEngineError(
            what="Earth Engine thumbnail request failed",
            cause=str(exc),
            fix="Reduce 'dimensions' or the region size",
        ) from exc


def download_thumbnail(url: str, path: str | Path) -> Path:
    """Download a thumbnail URL to *path*.

    Raises:
        EarthEngineError: On connection errors or a non-200 response.
    """
    path = Path(path)
    try:
        resp = requests.get(url, timeout=_DOWNLOAD_TIMEOUT)
    except requests.RequestException as exc:
        raise EarthEngineError(
            what="Thumbnail download failed",
            cause=str(exc),
            fix="Check internet connection and try again",
        ) from exc

    if resp.status_code not in _SUCCESS_STATUS_CODES:
        raise EarthEngineError(
            what="Thumbnail download failed",
            cause=f"HTTP {resp.status_code}",
            fix="Thumbnail URLs expire; request a new one",
        )

    path.write_bytes(resp.content)
    logger.debug("Wrote thumbnail %s (%d bytes)", path, len(resp.content))
    return path


def compute_pixels(
    image: ee.Image,
    bounds: tuple[float, float, float, float],
    scale_deg: float,
    crs: str = "EPSG:4326",
) -> npt.NDArray[np.float64]:
    """Fetch a single-band image as a numpy grid over *bounds*.

    The grid is north-up with square pixels of *scale_deg* degrees; masked
    pixels become NaN.

    Args:
        image: Single-band image.
        bounds: ``(west, south, east, north)`` in degrees.
        scale_deg: Pixel size in degrees.
        crs: Output CRS (degrees-based).

    Returns:
        2-D float64 array of shape ``(height, width)``.

    Raises:
        ValueError: If the grid exceeds the ``computePixels`` response
            limit at *scale_deg*.
        EarthEngineError: If Earth Engine rejects the request.
    """
    west, south, east, north = bounds
    width = max(int(round((east - west) / scale_deg)), 1)
    height = max(int(round((north - south) / scale_deg)), 1)
    size = width * height * _PIXEL_BYTES
    if size > _MAX_PIXEL_RESPONSE_BYTES:
        raise ValueError(
            f"Pixel grid {width}x{height} needs {size / 1e6:.0f} MB, above the "
            f"{_MAX_PIXEL_RESPONSE_BYTES / 1e6:.0f} MB computePixels limit. "
            "Use a coarser scale or export_slope() for full resolution."
        )
    request = {
        "expression": image.unmask(_PIXEL_FILL).toFloat(),
        "fileFormat": "NUMPY_NDARRAY",
        "grid": {
            "dimensions": {"width": width, "height": height},
            "affineTransform": {
                "scaleX": scale_deg,
                "shearX": 0,
                "translateX": west,
                "shearY": 0,
                "scaleY": -scale_deg,
                "translateY": north,
            },
            "crsCode": crs,
        },
    }
    try:
        structured = ee.data.computePixels(request)
    except ee.EEException as exc:
        raise EarthEngineError(
            what="Earth Engine pixel request failed",
            cause=str(exc),
            fix="Reduce the region size or use a coarser scale",
        ) from exc

    # Structured array with one field per band
    band = structured.dtype.names[0] if structured.dtype.names else None
    array = structured[band] if band is not None else structured
    grid = np.asarray(array, dtype=np.float64)
    grid[grid == _PIXEL_FILL] = np.nan
    return grid


def export_to_drive(
    image: ee.Image,
    description: str,
    geometry: ee.Geometry,
    scale: float,
    folder: str | None = None,
    crs: str = "EPSG:4326",
    max_pixels: float = 1e13,
) -> Any:
    """Start a GeoTIFF export of *image* to Google Drive.

    Returns:
        The started ``ee.batch.Task``.
    """
    params: dict[str, Any] = {
        "image": image,
        "description": description,
        "region": geometry,
        "scale": scale,
        "crs": crs,
        "maxPixels": max_pixels,
        "fileFormat": "GeoTIFF",
    }
    if folder:
        params["folder"] = folder
    try:
        task = ee.batch.Export.image.toDrive(**params)
        task.start()
    except ee.EEException as exc:
        raise EarthEngineError(
            what="Earth Engine export could not be started",
            cause=str(exc),
            fix="Check Drive permissions for the authenticated account",
        ) from exc
    logger.info("Started Drive export task %s", description)
    return task
