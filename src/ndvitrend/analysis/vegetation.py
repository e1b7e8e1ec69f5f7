"""Local trend statistics on evaluated yearly values.

Pure computation module: no Earth Engine, no caching. Takes the yearly
regional means returned by the platform and fits the regional trend.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

import numpy as np
import numpy.typing as npt

# Slope magnitudes (NDVI per year) used for plain-language labels.
_STABLE_SLOPE: float = 0.002
_STRONG_SLOPE: float = 0.02


def fit_linear_trend(
    years: Sequence[int] | npt.NDArray[Any],
    values: Sequence[float] | npt.NDArray[Any],
) -> tuple[float, float]:
    """Least-squares line through ``(year, value)`` pairs.

    NaN values are ignored. With fewer than two valid points the slope
    and intercept are NaN.

    Parameters:
        years: Independent variable, one entry per year.
        values: Regional mean NDVI per year (NaN where missing).

    Returns:
        ``(slope, intercept)`` with slope in NDVI units per year.

    Example:
        >>> slope, _ = fit_linear_trend([2018, 2019, 2020], [0.40, 0.42, 0.44])
        >>> round(slope, 3)
        0.02
    """
    x = np.asarray(years, dtype=np.float64)
    y = np.asarray(values, dtype=np.float64)
    if x.shape != y.shape:
        msg = f"years and values must have the same length ({x.size} != {y.size})"
        raise ValueError(msg)

    valid = ~np.isnan(y)
    if np.count_nonzero(valid) < 2:
        return (float("nan"), float("nan"))

    x_valid = x[valid]
    if np.ptp(x_valid) == 0:
        return (float("nan"), float("nan"))

    slope, intercept = np.polyfit(x_valid, y[valid], deg=1)
    return (float(slope), float(intercept))


def interpret_slope(slope: float) -> str:
    """Return plain-language interpretation of an NDVI slope per year.

    Example:
        >>> interpret_slope(0.03)
        'strong greening'
        >>> interpret_slope(-0.001)
        'stable'
    """
    if math.isnan(slope):
        return "no trend (insufficient data)"
    if abs(slope) < _STABLE_SLOPE:
        return "stable"
    if slope >= _STRONG_SLOPE:
        return "strong greening"
    if slope > 0:
        return "greening"
    if slope <= -_STRONG_SLOPE:
        return "strong browning"
    return "browning"
