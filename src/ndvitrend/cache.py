"""Summary cache with an SQLite index and file-based storage.

Earth Engine evaluations of yearly counts, means and trend areas take
tens of seconds. The cache stores the serialized summary of a trend run
keyed by sensor, region, year span and reduction parameters, so repeat
runs of the same report skip the platform round trips.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ndvitrend._types import TimeRange
    from ndvitrend.config import Config

logger = logging.getLogger("ndvitrend")


@dataclass
class CacheStatus:
    """Summary statistics for the cache.

    Args:
        entry_count: Number of entries currently in the cache.
        total_size_bytes: Combined size of all cached files in bytes.
        oldest_entry: ISO-8601 UTC timestamp of the oldest entry, or
            empty string if the cache is empty.
    """

    __slots__ = ("entry_count", "total_size_bytes", "oldest_entry")

    entry_count: int
    total_size_bytes: int
    oldest_entry: str


_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS cache_entries (
    cache_key TEXT PRIMARY KEY,
    sensor TEXT NOT NULL,
    product TEXT NOT NULL,
    region_hash TEXT NOT NULL,
    created_at TEXT NOT NULL,
    last_accessed_at TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    file_path TEXT NOT NULL,
    size_bytes INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_expires ON cache_entries(expires_at);
CREATE INDEX IF NOT EXISTS idx_lru ON cache_entries(last_accessed_at);
"""


class CacheManager:
    """Manages local caching of trend summaries.

    Uses an SQLite metadata index for lookups and stores payloads as
    files under ``{cache_dir}/{sensor}/``. Entries expire after
    ``Config.cache_ttl_hours``; the least recently read entries are
    evicted once the cache exceeds ``Config.cache_size_mb``.

    Cache methods **never raise exceptions** to callers. All errors are
    caught internally and logged as warnings.

    Args:
        config: Configuration providing ``cache_dir``, ``cache_size_mb``
            and ``cache_ttl_hours``.

    Example:
        >>> from ndvitrend.config import Config
        >>> mgr = CacheManager(config=Config(cache_dir="/tmp/ndvitrend-cache"))
        >>> mgr.status()
        CacheStatus(entry_count=0, total_size_bytes=0, oldest_entry='')
    """

    def __init__(self, config: Config) -> None:
        self._config = config
        self._cache_dir = Path(config.cache_dir)
        self._db_path = self._cache_dir / "cache.db"
        self._init_db()

    def _init_db(self) -> None:
        """Create the cache directory and database schema if needed."""
        try:
            self._cache_dir.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._db_path))
            try:
                conn.executescript(_CREATE_TABLE_SQL)
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Cache database initialization failed: %s", exc)

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._db_path))

    def build_key(
        self,
        sensor: str,
        product: str,
        region_hash: str,
        time_range: TimeRange,
        params: dict[str, str],
    ) -> str:
        """Build a deterministic composite cache key.

        Returns:
            ``{sensor}:{product}:{region_hash}:{start}:{end}:{params_hash}``.

        Example:
            >>> mgr.build_key(
            ...     "S2", "ndvi-trend", "abc", ("2018", "2023"), {}
            ... )  # doctest: +SKIP
            'S2:ndvi-trend:abc:2018:2023:44136fa...'
        """
        params_json = json.dumps(params, sort_keys=True)
        params_hash = hashlib.sha256(params_json.encode()).hexdigest()
        return (
            f"{sensor}:{product}:{region_hash}"
            f":{time_range[0]}:{time_range[1]}:{params_hash}"
        )

    def _key_to_path(self, cache_key: str, sensor: str) -> Path:
        key_hash = hashlib.sha256(cache_key.encode()).hexdigest()
        return self._cache_dir / sensor / f"{key_hash}.json"

    def get(self, cache_key: str) -> bytes | None:
        """Look up cached data by key.

        Returns the cached bytes if the entry exists, has not expired,
        and the backing file is present. Otherwise returns ``None``.
        """
        try:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    "SELECT expires_at, file_path FROM cache_entries "
                    "WHERE cache_key = ?",
                    (cache_key,),
                ).fetchone()
                if row is None:
                    return None

                expires_at_str: str = row[0]
                file_path = Path(row[1])

                now = datetime.now(timezone.utc)
                if now >= datetime.fromisoformat(expires_at_str):
                    self._delete_entry(conn, cache_key, file_path)
                    conn.commit()
                    return None

                if not file_path.exists():
                    logger.warning(
                        "Cache file missing for key %s at %s, removing stale entry",
                        cache_key,
                        file_path,
                    )
                    self._delete_entry(conn, cache_key, file_path)
                    conn.commit()
                    return None

                data = file_path.read_bytes()
                conn.execute(
                    "UPDATE cache_entries SET last_accessed_at = ? WHERE cache_key = ?",
                    (now.isoformat(), cache_key),
                )
                conn.commit()
                return data
            finally:
                conn.close()
        except (sqlite3.Error, OSError, ValueError) as exc:
            logger.warning("Cache lookup failed for key %s: %s", cache_key, exc)
            return None

    def store(
        self,
        cache_key: str,
        sensor: str,
        product: str,
        region_hash: str,
        data: bytes,
        ttl_hours: float | None = None,
    ) -> None:
        """Store data in the cache.

        Writes the payload atomically, records it in the index, then
        evicts least recently read entries if the size limit is exceeded.

        Args:
            cache_key: The composite cache key.
            sensor: Sensor name (used as subdirectory).
            product: Product identifier.
            region_hash: Hex digest for the region.
            data: Raw bytes to cache.
            ttl_hours: Time-to-live; defaults to ``Config.cache_ttl_hours``.
        """
        ttl = self._config.cache_ttl_hours if ttl_hours is None else ttl_hours
        try:
            file_path = self._key_to_path(cache_key, sensor)
            file_path.parent.mkdir(parents=True, exist_ok=True)

            tmp_path = file_path.with_suffix(".tmp")
            tmp_path.write_bytes(data)
            tmp_path.replace(file_path)

            now = datetime.now(timezone.utc)
            conn = self._get_connection()
            try:
                conn.execute(
                    "INSERT OR REPLACE INTO cache_entries "
                    "(cache_key, sensor, product, region_hash, created_at, "
                    "last_accessed_at, expires_at, file_path, size_bytes) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        cache_key,
                        sensor,
                        product,
                        region_hash,
                        now.isoformat(),
                        now.isoformat(),
                        (now + timedelta(hours=ttl)).isoformat(),
                        str(file_path),
                        len(data),
                    ),
                )
                conn.commit()
            finally:
                conn.close()

            self._maybe_evict()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Cache store failed for key %s: %s", cache_key, exc)

    def _delete_entry(
        self, conn: sqlite3.Connection, cache_key: str, file_path: Path
    ) -> None:
        """Delete an index row and its file; the caller commits."""
        conn.execute("DELETE FROM cache_entries WHERE cache_key = ?", (cache_key,))
        try:
            file_path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to delete cache file %s: %s", file_path, exc)

    def _maybe_evict(self) -> None:
        """Evict least recently read entries until under ``cache_size_mb``."""
        try:
            max_bytes = self._config.cache_size_mb * 1024 * 1024
            conn = self._get_connection()
            try:
                row = conn.execute(
                    "SELECT COALESCE(SUM(size_bytes), 0) FROM cache_entries"
                ).fetchone()
                total_size: int = row[0] if row else 0
                if total_size <= max_bytes:
                    return

                entries = conn.execute(
                    "SELECT cache_key, file_path, size_bytes "
                    "FROM cache_entries ORDER BY last_accessed_at ASC"
                ).fetchall()
                evicted = 0
                for cache_key, file_path, size in entries:
                    if total_size <= max_bytes:
                        break
                    self._delete_entry(conn, cache_key, Path(file_path))
                    total_size -= size
                    evicted += 1
                conn.commit()
                logger.info(
                    "Cache eviction: removed %d entries to stay within %d MB limit",
                    evicted,
                    self._config.cache_size_mb,
                )
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Cache eviction failed: %s", exc)

    def status(self) -> CacheStatus:
        """Return summary statistics for the cache (zeros on any error)."""
        try:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    "SELECT COUNT(*), COALESCE(SUM(size_bytes), 0), "
                    "COALESCE(MIN(created_at), '') FROM cache_entries"
                ).fetchone()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Cache status query failed: %s", exc)
            return CacheStatus(entry_count=0, total_size_bytes=0, oldest_entry="")
        return CacheStatus(
            entry_count=row[0], total_size_bytes=row[1], oldest_entry=row[2]
        )

    def clear(self) -> None:
        """Remove all cache entries and their backing files."""
        try:
            conn = self._get_connection()
            try:
                for (file_path,) in conn.execute("SELECT file_path FROM cache_entries"):
                    try:
                        Path(file_path).unlink(missing_ok=True)
                    except OSError as exc:
                        logger.warning(
                            "Failed to delete cache file %s: %s", file_path, exc
                        )
                conn.execute("DELETE FROM cache_entries")
                conn.commit()
            finally:
                conn.close()

            # VACUUM must run outside a transaction
            conn = self._get_connection()
            try:
                conn.execute("VACUUM")
            finally:
                conn.close()
            logger.debug("Cache cleared")
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Cache clear failed: %s", exc)
