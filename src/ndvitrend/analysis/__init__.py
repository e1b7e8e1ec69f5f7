"""NDVI trend graph construction and local trend statistics."""

from ndvitrend.analysis.vegetation import fit_linear_trend, interpret_slope

__all__ = ["fit_linear_trend", "interpret_slope"]
