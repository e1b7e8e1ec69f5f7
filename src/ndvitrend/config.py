"""Configuration and credential management for ndvitrend.

Holds the frozen ``Config`` model captured by every ``Region`` and the
service-account key resolution used when initializing Earth Engine.
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from ndvitrend.exceptions import ConfigurationError

logger = logging.getLogger("ndvitrend")

_CREDENTIALS_ENV_VAR = "NDVITREND_CREDENTIALS"
_DEFAULT_CREDENTIALS_PATH = Path("~/.ndvitrend/service-account.json")


class Config(BaseModel):
    """Package configuration model.

    Immutable pydantic model. Each ``Region`` captures a snapshot of the
    active ``Config`` at creation time so later ``configure()`` calls
    never affect existing regions.

    Args:
        project: Google Cloud project registered for Earth Engine.
        service_account_key: Path to a service-account JSON key file.
        cache_dir: Local directory for cached trend summaries.
        cache_size_mb: Maximum cache size in megabytes.
        cache_ttl_hours: Lifetime of a cached summary in hours.
        max_pixels: ``maxPixels`` passed to every region reduction.
        best_effort: ``bestEffort`` passed to every region reduction.
        default_crs: Coordinate reference system for raster exports.

    Example:
        >>> cfg = Config(project="my-ee-project", cache_size_mb=100)
        >>> cfg.default_crs
        'EPSG:4326'
    """

    model_config = ConfigDict(frozen=True, validate_default=True, extra="forbid")

    project: str | None = None
    service_account_key: Path | None = None
    cache_dir: Path = Path("~/.ndvitrend/cache")
    cache_size_mb: int = 500
    cache_ttl_hours: float = 24.0
    max_pixels: float = 1e13
    best_effort: bool = True
    default_crs: str = "EPSG:4326"

    @field_validator("service_account_key", mode="before")
    @classmethod
    def _expand_key_path(cls, v: str | Path | None) -> Path | None:
        """Expand ``~`` in the key path."""
        if v is None:
            return None
        return Path(v).expanduser()

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _expand_cache_dir(cls, v: str | Path) -> Path:
        """Expand ``~`` in cache directory path."""
        return Path(v).expanduser()

    @field_validator("cache_size_mb")
    @classmethod
    def _validate_cache_size(cls, v: int) -> int:
        if v <= 0:
            msg = "cache_size_mb must be greater than 0"
            raise ValueError(msg)
        return v

    @field_validator("cache_ttl_hours", "max_pixels")
    @classmethod
    def _validate_positive(cls, v: float) -> float:
        if v <= 0:
            msg = "value must be greater than 0"
            raise ValueError(msg)
        return v

    @field_validator("default_crs")
    @classmethod
    def _validate_crs(cls, v: str) -> str:
        """Ensure CRS matches EPSG format."""
        if not re.match(r"^EPSG:\d+$", v):
            msg = "default_crs must match 'EPSG:<number>' format"
            raise ValueError(msg)
        return v


_default_config = Config()


def configure(**kwargs: Any) -> None:
    """Set module-level default configuration.

    Creates a new ``Config`` from the current defaults merged with
    the provided keyword arguments.

    Args:
        **kwargs: Any ``Config`` field (e.g. ``project``, ``cache_dir``).

    Raises:
        ValidationError: If a provided value fails pydantic validation.

    Example:
        >>> configure(project="my-ee-project", cache_size_mb=200)
    """
    global _default_config  # noqa: PLW0603
    current = _default_config.model_dump()
    current.update(kwargs)
    _default_config = Config(**current)


def get_default_config() -> Config:
    """Return the current module-level default configuration."""
    return _default_config


def resolve_credentials_path(
    explicit: Path | None = None,
) -> Path | None:
    """Resolve the service-account key path.

    Resolution order:
        1. *explicit* argument (highest priority)
        2. ``NDVITREND_CREDENTIALS`` environment variable
        3. Default ``~/.ndvitrend/service-account.json``

    Emits a warning if the resolved file is readable by group or others
    on POSIX systems.

    Args:
        explicit: An explicit path passed via ``Config``.

    Returns:
        Resolved ``Path``, or ``None`` if no key file exists at the
        selected location.
    """
    if explicit is not None:
        path = Path(explicit).expanduser()
    elif os.environ.get(_CREDENTIALS_ENV_VAR):
        path = Path(os.environ[_CREDENTIALS_ENV_VAR]).expanduser()
    else:
        path = _DEFAULT_CREDENTIALS_PATH.expanduser()

    if not path.exists():
        return None

    _check_file_permissions(path)
    return path


def _check_file_permissions(path: Path) -> None:
    """Warn if *path* is readable by group or others.

    Skipped on Windows where POSIX permission bits are not meaningful.
    """
    if sys.platform == "win32":
        return
    try:
        mode = path.stat().st_mode
        if mode & 0o077:
            logger.warning(
                "Service account key %s has overly permissive "
                "permissions (%o). Consider running: "
                "chmod 600 %s",
                path,
                mode & 0o777,
                path,
            )
    except OSError:
        pass


def load_credentials(path: Path) -> dict[str, Any]:
    """Load and validate a service-account JSON key.

    Args:
        path: Absolute or ``~``-expanded path to the key file.

    Returns:
        Parsed key dictionary (contains at least ``client_email``).

    Raises:
        ConfigurationError: If the file is missing, unreadable, not a
            JSON object, or lacks ``client_email``.
    """
    resolved = Path(path).expanduser()
    try:
        text = resolved.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigurationError(
            what="Cannot read service account key",
            cause=f"File not found: {resolved}",
            fix=(
                f"Download a key for your Earth Engine service account to "
                f"{resolved}, or set the {_CREDENTIALS_ENV_VAR} environment variable"
            ),
        ) from None
    except PermissionError:
        raise ConfigurationError(
            what="Cannot read service account key",
            cause=f"Permission denied: {resolved}",
            fix=f"Check file permissions on {resolved}",
        ) from None

    try:
        parsed: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            what="Invalid service account key format",
            cause=f"JSON parse error in {resolved}: {exc}",
            fix="Download a fresh JSON key from the Google Cloud console",
        ) from None

    if not isinstance(parsed, dict):
        raise ConfigurationError(
            what="Invalid service account key format",
            cause=f"Expected a JSON object in {resolved}, got {type(parsed).__name__}",
            fix="Download a fresh JSON key from the Google Cloud console",
        )

    if not parsed.get("client_email"):
        raise ConfigurationError(
            what="Invalid service account key format",
            cause=f"No 'client_email' field in {resolved}",
            fix="Use a service account key, not an OAuth client secret",
        )

    return parsed
