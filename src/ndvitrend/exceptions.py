"""ndvitrend exception hierarchy.

All exceptions follow a three-part message pattern: what failed,
likely cause, and suggested fix.
"""

from __future__ import annotations


class NdviTrendError(Exception):
    """Base exception for all ndvitrend errors.

    Args:
        what: Description of what failed.
        cause: Likely cause of the failure.
        fix: Suggested action to resolve the issue.

    Example:
        >>> raise NdviTrendError(
        ...     what="Trend computation failed",
        ...     cause="Unexpected internal state",
        ...     fix="Please report this issue",
        ... )
    """

    def __init__(
        self,
        what: str,
        cause: str = "",
        fix: str = "",
    ) -> None:
        self.what = what
        self.cause = cause
        self.fix = fix
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Build the multi-line error message from parts."""
        parts = [self.what]
        if self.cause:
            parts.append(f"Cause: {self.cause}")
        if self.fix:
            parts.append(f"Fix: {self.fix}")
        return "\n".join(parts)


class ConfigurationError(NdviTrendError):
    """Raised for configuration, credential and parameter errors.

    Example:
        >>> raise ConfigurationError(
        ...     what="Unknown sensor: 'S3'",
        ...     cause="Valid sensors are: L8, S2",
        ...     fix="Use one of: L8, S2",
        ... )
    """


class EarthEngineError(NdviTrendError):
    """Raised when an Earth Engine call fails after retries are exhausted.

    Example:
        >>> raise EarthEngineError(
        ...     what="Earth Engine evaluation failed",
        ...     cause="Computation timed out after 3 attempts",
        ...     fix="Reduce the region size or increase the scale",
        ... )
    """


class CacheError(NdviTrendError):
    """Raised for cache subsystem errors."""
