"""Register tracks and store their fingerprints.

For every track the order is fixed: fingerprint, register, put. Batches of
tracks are fingerprinted in worker processes; the parent process owns all
store writes so a store does not need to be picklable.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .config import FingerprintConfig
from .fingerprint import Fingerprint, Fingerprinter
from .store import FingerprintStore, TrackRecord

logger = logging.getLogger(__name__)


@dataclass
class IndexJob:
    """One track to index, given either as samples or as an audio file."""

    record: TrackRecord
    samples: np.ndarray | None = None
    sample_rate: int = 44100
    duration: float | None = None
    path: Path | str | None = None


@dataclass
class IndexResult:
    """Outcome of indexing one track."""

    track_id: str
    fingerprint_count: int = 0
    stored_count: int = 0
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _fingerprint_job(job: IndexJob, config: FingerprintConfig) -> list[Fingerprint]:
    """Fingerprint one job. Runs in subprocess."""
    fingerprinter = Fingerprinter(config)
    if job.path is not None:
        return fingerprinter.fingerprint_file(job.path, job.record.track_id, job.sample_rate)
    return fingerprinter.fingerprint(
        job.samples, job.sample_rate, job.record.track_id, job.duration
    )


class Indexer:
    """Ingest tracks into a fingerprint store."""

    def __init__(self, store: FingerprintStore, fingerprinter: Fingerprinter | None = None):
        """Initialize indexer.

        Args:
            store: Destination store
            fingerprinter: Fingerprinter instance (uses default if None)
        """
        self.store = store
        self.fingerprinter = fingerprinter or Fingerprinter()

    def _store(self, record: TrackRecord, fingerprints: list[Fingerprint]) -> int:
        self.store.register_track(record)
        stored = self.store.put(fingerprints)
        logger.info(
            "[Indexer] %s: %d fingerprints (%d new)",
            record.track_id,
            len(fingerprints),
            stored,
        )
        return stored

    def index_track(
        self,
        samples: np.ndarray,
        sample_rate: int,
        record: TrackRecord,
        duration: float | None = None,
    ) -> int:
        """Fingerprint one track and store it.

        A failure after some fingerprints were written is raised as is;
        calling index_track again with the same arguments is safe.

        Args:
            samples: Mono samples
            sample_rate: Sample rate in Hz
            record: Track metadata; its id is bound to the fingerprints
            duration: Track duration in seconds

        Returns:
            Number of fingerprints newly written

        Raises:
            InvalidInput: If the samples yield no fingerprints
            StoreError: If registration or storage fails
        """
        fingerprints = self.fingerprinter.fingerprint(
            samples, sample_rate, record.track_id, duration
        )
        return self._store(record, fingerprints)

    def index_tracks(
        self,
        jobs: Iterable[IndexJob],
        max_workers: int = 1,
        progress_callback: Callable[[int, int, IndexResult], object] | None = None,
    ) -> list[IndexResult]:
        """Index many tracks, fingerprinting them in parallel.

        Tracks complete in no particular order. A failing track does not stop
        the batch: its exception is logged and returned in its IndexResult.

        Args:
            jobs: Tracks to index
            max_workers: Worker processes; 1 runs everything in this process
            progress_callback: Optional callback(done, total, result)

        Returns:
            One IndexResult per job, in completion order
        """
        jobs = list(jobs)
        total = len(jobs)
        results: list[IndexResult] = []
        start_time = time.time()

        if not jobs:
            logger.info("[Indexer] No tracks to index")
            return results

        logger.info("[Indexer] Indexing %d tracks with %d workers", total, max_workers)

        def finish(job: IndexJob, compute: Callable[[], list[Fingerprint]]) -> None:
            result = IndexResult(track_id=job.record.track_id)
            try:
                fingerprints = compute()
                result.fingerprint_count = len(fingerprints)
                result.stored_count = self._store(job.record, fingerprints)
            except Exception as e:
                logger.error("[Indexer] %s failed: %s", job.record.track_id, e)
                result.error = e
            results.append(result)
            if progress_callback:
                progress_callback(len(results), total, result)

        config = self.fingerprinter.config
        if max_workers <= 1:
            for job in jobs:
                finish(job, lambda job=job: _fingerprint_job(job, config))
        else:
            with ProcessPoolExecutor(max_workers=max_workers) as executor:
                future_to_job = {
                    executor.submit(_fingerprint_job, job, config): job for job in jobs
                }
                for future in as_completed(future_to_job):
                    finish(future_to_job[future], future.result)

        failed = sum(1 for r in results if not r.ok)
        logger.info(
            "[Indexer] Done in %.1fs: %d indexed, %d failed",
            time.time() - start_time,
            total - failed,
            failed,
        )
        return results
