"""SQLite storage for audio fingerprints.

Layout:
    tracks        track_id -> display name, external reference
    fingerprints  (hash, track_id, anchor_time), unique per tuple

Each call opens its own connection so the store can be shared between
threads; WAL journaling lets lookups run while another track is written.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from itertools import islice
from pathlib import Path

from .config import StoreConfig
from .errors import StoreError
from .fingerprint import Fingerprint
from .store import StoreHit, TrackRecord

logger = logging.getLogger(__name__)


DEFAULT_DB_PATH = StoreConfig().db_path


def _batched(items: Iterable, size: int) -> Iterator[list]:
    iterator = iter(items)
    while batch := list(islice(iterator, size)):
        yield batch


class FingerprintDB:
    """Database interface for storing and querying fingerprints."""

    def __init__(
        self,
        db_path: Path | str = DEFAULT_DB_PATH,
        timeout: float = 30.0,
        batch_size: int = 10_000,
    ):
        """Initialize database.

        Args:
            db_path: Path to SQLite database
            timeout: Seconds to wait for a lock held by another writer
            batch_size: Fingerprints written per transaction
        """
        self.db_path = Path(db_path)
        self.timeout = timeout
        self.batch_size = batch_size
        self._ensure_tables()

    @classmethod
    def from_config(cls, config: StoreConfig) -> FingerprintDB:
        return cls(config.db_path, timeout=config.timeout, batch_size=config.batch_size)

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection, translating sqlite errors into StoreError.

        Commits on success and rolls back the current transaction on failure.
        """
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            if conn is not None:
                conn.rollback()
            raise StoreError(f"Fingerprint store failure ({self.db_path}): {e}") from e
        finally:
            if conn is not None:
                conn.close()

    def _ensure_tables(self) -> None:
        """Create tables if they don't exist."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create database directory: {e}") from e

        with self._connection() as conn:
            conn.execute("PRAGMA journal_mode = WAL")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS tracks (
                    track_id TEXT PRIMARY KEY,
                    display_name TEXT NOT NULL,
                    external_ref TEXT,
                    registered_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            # Uniqueness makes put() idempotent
            conn.execute("""
                CREATE TABLE IF NOT EXISTS fingerprints (
                    hash INTEGER NOT NULL,
                    track_id TEXT NOT NULL,
                    anchor_time INTEGER NOT NULL,
                    UNIQUE (hash, track_id, anchor_time),
                    FOREIGN KEY (track_id) REFERENCES tracks(track_id) ON DELETE CASCADE
                )
            """)

            # Index on hash for fast lookup during matching
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_fingerprints_hash
                ON fingerprints(hash)
            """)

            # Index on track_id for fast deletion/lookup by track
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_fingerprints_track_id
                ON fingerprints(track_id)
            """)

    def register_track(self, record: TrackRecord) -> None:
        """Create the track record, or refresh its metadata if it exists.

        Args:
            record: Track to register
        """
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO tracks (track_id, display_name, external_ref)
                VALUES (?, ?, ?)
                ON CONFLICT(track_id) DO UPDATE SET
                    display_name = excluded.display_name,
                    external_ref = excluded.external_ref
                """,
                (record.track_id, record.display_name, record.external_ref),
            )

    def put(self, fingerprints: Iterable[Fingerprint]) -> int:
        """Store fingerprints; tuples already present are skipped.

        Writes are committed every ``batch_size`` rows. If a batch fails, the
        batches before it stay committed and StoreError is raised; re-running
        the same put is safe.

        Args:
            fingerprints: Fingerprints to store

        Returns:
            Number of newly stored fingerprints

        Raises:
            StoreError: On any database failure, including unregistered tracks
        """
        added = 0
        for batch in _batched(fingerprints, self.batch_size):
            with self._connection() as conn:
                before = conn.total_changes
                conn.executemany(
                    """
                    INSERT OR IGNORE INTO fingerprints (hash, track_id, anchor_time)
                    VALUES (?, ?, ?)
                    """,
                    [(fp.hash, fp.track_id, fp.anchor_time) for fp in batch],
                )
                added += conn.total_changes - before
        logger.debug("[FingerprintDB] Stored %d new fingerprints", added)
        return added

    def lookup(self, hashes: Iterable[int]) -> dict[int, list[StoreHit]]:
        """Query fingerprints by hash values.

        Uses a temporary table for efficient lookup with large hash lists.

        Args:
            hashes: Hash values to search for

        Returns:
            Mapping of every requested hash to its (track_id, anchor_time)
            hits; unknown hashes map to an empty list
        """
        unique = set(hashes)
        result: dict[int, list[StoreHit]] = {h: [] for h in unique}
        if not unique:
            return result

        with self._connection() as conn:
            conn.execute("CREATE TEMP TABLE IF NOT EXISTS query_hashes (hash INTEGER PRIMARY KEY)")
            conn.execute("DELETE FROM query_hashes")
            conn.executemany(
                "INSERT OR IGNORE INTO query_hashes (hash) VALUES (?)",
                [(h,) for h in unique],
            )

            # JOIN is faster than IN clause for large lists
            rows = conn.execute(
                """
                SELECT f.hash, f.track_id, f.anchor_time
                FROM fingerprints f
                INNER JOIN query_hashes q ON f.hash = q.hash
                ORDER BY f.hash, f.track_id, f.anchor_time
                """
            ).fetchall()

            conn.execute("DELETE FROM query_hashes")

        for row in rows:
            result[row["hash"]].append((row["track_id"], row["anchor_time"]))
        return result

    def get_track(self, track_id: str) -> TrackRecord | None:
        """Get a registered track.

        Args:
            track_id: Track ID

        Returns:
            TrackRecord or None
        """
        with self._connection() as conn:
            row = conn.execute(
                "SELECT track_id, display_name, external_ref FROM tracks WHERE track_id = ?",
                (track_id,),
            ).fetchone()

        if row:
            return TrackRecord(**dict(row))
        return None

    def get_all_tracks(self) -> list[dict]:
        """Get all registered tracks with their fingerprint counts.

        Returns:
            List of track dicts, most recent first
        """
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT t.track_id, t.display_name, t.external_ref, t.registered_at,
                       COUNT(f.hash) AS fingerprint_count
                FROM tracks t
                LEFT JOIN fingerprints f ON t.track_id = f.track_id
                GROUP BY t.track_id
                ORDER BY t.registered_at DESC, t.track_id
                """
            ).fetchall()

        return [dict(row) for row in rows]

    def get_stats(self) -> dict:
        """Get fingerprint database statistics.

        Returns:
            Dict with stats
        """
        with self._connection() as conn:
            total_tracks = conn.execute("SELECT COUNT(*) FROM tracks").fetchone()[0]
            indexed_tracks = conn.execute(
                "SELECT COUNT(DISTINCT track_id) FROM fingerprints"
            ).fetchone()[0]
            total_fingerprints = conn.execute("SELECT COUNT(*) FROM fingerprints").fetchone()[0]

        return {
            "total_tracks": total_tracks,
            "indexed_tracks": indexed_tracks,
            "unindexed_tracks": total_tracks - indexed_tracks,
            "total_fingerprints": total_fingerprints,
            "avg_fingerprints_per_track": (
                total_fingerprints / indexed_tracks if indexed_tracks > 0 else 0
            ),
        }

    def delete_track(self, track_id: str) -> bool:
        """Delete a track and its fingerprints.

        Args:
            track_id: Track ID

        Returns:
            True if the track existed
        """
        with self._connection() as conn:
            conn.execute("DELETE FROM fingerprints WHERE track_id = ?", (track_id,))
            cursor = conn.execute("DELETE FROM tracks WHERE track_id = ?", (track_id,))
            return cursor.rowcount > 0

    def clear(self) -> None:
        """Delete all tracks and fingerprints."""
        with self._connection() as conn:
            conn.execute("DELETE FROM fingerprints")
            conn.execute("DELETE FROM tracks")
