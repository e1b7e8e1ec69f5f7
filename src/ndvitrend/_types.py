"""Internal shared types for cross-boundary data contracts.

These types define the data shapes passed between the pipeline, the
cache and the result objects. They are internal (prefixed ``_``) and NOT
re-exported from ``ndvitrend.__init__``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

Bounds = tuple[float, float, float, float]
"""WGS84 rectangle ``(west, south, east, north)`` in degrees."""

RegionHash = str
"""Hex digest uniquely identifying a region for cache keys."""

TimeRange = tuple[str, str]
"""ISO-8601 date pair ``(start, end)`` bounding a query window."""


@dataclass
class QualityAssessment:
    """Quality assessment produced by the pipeline for every trend result.

    Args:
        confidence: Overall confidence score (0.0–1.0).
        year_count: Number of years requested.
        usable_year_count: Years with at least one image in the collection.
        image_counts: Per-year image counts, in year order.
        warnings: Human-readable quality warnings.

    Example:
        >>> qa = QualityAssessment(
        ...     confidence=0.85, year_count=6, usable_year_count=5,
        ...     image_counts=[40, 0, 52, 61, 58, 49],
        ... )
        >>> qa.warnings
        []
    """

    confidence: float = 0.0
    year_count: int = 0
    usable_year_count: int = 0
    image_counts: list[int] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
