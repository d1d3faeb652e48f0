"""Fingerprint store contract and an in-memory implementation.

Any object satisfying ``FingerprintStore`` can back the indexer and the
matcher; ``tunematch.database.FingerprintDB`` is the persistent one.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from .errors import StoreError
from .fingerprint import Fingerprint

# (track_id, anchor_time) pairs stored under one hash
StoreHit = tuple[str, int]


@dataclass(frozen=True)
class TrackRecord:
    """Catalog entry a set of fingerprints belongs to."""

    track_id: str
    display_name: str
    external_ref: str | None = None


@runtime_checkable
class FingerprintStore(Protocol):
    """Access contract used by the indexer and the matcher."""

    def register_track(self, record: TrackRecord) -> None: ...
    def put(self, fingerprints: Iterable[Fingerprint]) -> int: ...
    def lookup(self, hashes: Iterable[int]) -> dict[int, list[StoreHit]]: ...
    def get_track(self, track_id: str) -> TrackRecord | None: ...
    def delete_track(self, track_id: str) -> bool: ...
    def get_stats(self) -> dict: ...
    def clear(self) -> None: ...


class InMemoryStore:
    """Thread-safe dictionary-backed store.

    Readers and writers share one lock; a ``put`` is fully visible once it
    returns.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tracks: dict[str, TrackRecord] = {}
        self._by_hash: defaultdict[int, set[StoreHit]] = defaultdict(set)
        self._counts: defaultdict[str, int] = defaultdict(int)

    def register_track(self, record: TrackRecord) -> None:
        with self._lock:
            self._tracks[record.track_id] = record

    def put(self, fingerprints: Iterable[Fingerprint]) -> int:
        """Store fingerprints, ignoring tuples that are already present.

        Returns:
            Number of newly stored fingerprints

        Raises:
            StoreError: If a fingerprint references an unregistered track
        """
        fingerprints = list(fingerprints)
        added = 0
        with self._lock:
            unknown = {fp.track_id for fp in fingerprints} - self._tracks.keys()
            if unknown:
                raise StoreError(f"Unregistered track(s): {', '.join(sorted(unknown))}")

            for fp in fingerprints:
                hit = (fp.track_id, fp.anchor_time)
                bucket = self._by_hash[fp.hash]
                if hit not in bucket:
                    bucket.add(hit)
                    self._counts[fp.track_id] += 1
                    added += 1
        return added

    def lookup(self, hashes: Iterable[int]) -> dict[int, list[StoreHit]]:
        with self._lock:
            return {
                h: sorted(self._by_hash[h]) if h in self._by_hash else []
                for h in set(hashes)
            }

    def get_track(self, track_id: str) -> TrackRecord | None:
        with self._lock:
            return self._tracks.get(track_id)

    def delete_track(self, track_id: str) -> bool:
        with self._lock:
            if track_id not in self._tracks:
                return False
            del self._tracks[track_id]
            self._counts.pop(track_id, None)
            for h in list(self._by_hash):
                bucket = {hit for hit in self._by_hash[h] if hit[0] != track_id}
                if bucket:
                    self._by_hash[h] = bucket
                else:
                    del self._by_hash[h]
            return True

    def get_stats(self) -> dict:
        with self._lock:
            total_tracks = len(self._tracks)
            indexed_tracks = sum(1 for t in self._tracks if self._counts.get(t))
            total_fingerprints = sum(self._counts.values())
        return {
            "total_tracks": total_tracks,
            "indexed_tracks": indexed_tracks,
            "unindexed_tracks": total_tracks - indexed_tracks,
            "total_fingerprints": total_fingerprints,
            "avg_fingerprints_per_track": (
                total_fingerprints / indexed_tracks if indexed_tracks > 0 else 0
            ),
        }

    def clear(self) -> None:
        with self._lock:
            self._tracks.clear()
            self._by_hash.clear()
            self._counts.clear()
