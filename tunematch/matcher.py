"""Match query fingerprints against the store to identify tracks.

Internal pipeline
-----------------
1. Collect the distinct query hashes and fetch them with one batched lookup
2. Vote for every (track, stored anchor - query anchor) pair sharing a hash
3. Keep the strongest offset bucket of each track; a real match piles its
   votes on one offset because the query is a time-shifted excerpt, while
   chance collisions spread over many offsets
4. Rank by votes and flag candidates that clear both acceptance thresholds
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np

from .config import MatchConfig
from .errors import InvalidInput
from .fingerprint import Fingerprint, Fingerprinter
from .store import FingerprintStore

logger = logging.getLogger(__name__)

QUERY_TRACK_ID = "__query__"


@dataclass(frozen=True)
class MatchCandidate:
    """A track aligned with the query.

    Attributes:
        track_id: Matched track
        offset_delta: Frames between the query start and its position in the track
        vote_count: Query fingerprints agreeing on that offset
        confidence: vote_count relative to the number of query fingerprints
        is_confident: Whether both acceptance thresholds are met
    """

    track_id: str
    offset_delta: int
    vote_count: int
    confidence: float
    is_confident: bool


class Matcher:
    """Recognize query clips against a fingerprint store."""

    def __init__(
        self,
        store: FingerprintStore,
        fingerprinter: Fingerprinter | None = None,
        config: MatchConfig | None = None,
    ):
        """Initialize matcher.

        Args:
            store: Fingerprint store to query
            fingerprinter: Fingerprinter for raw queries (uses default if None)
            config: Acceptance thresholds
        """
        self.store = store
        self.fingerprinter = fingerprinter or Fingerprinter()
        self.config = config or MatchConfig()

    def recognize(self, query_fingerprints: Iterable[Fingerprint]) -> list[MatchCandidate]:
        """Rank catalog tracks by temporal agreement with the query.

        Args:
            query_fingerprints: Fingerprints of the unknown clip

        Returns:
            One candidate per track sharing at least one hash, best first.
            Empty when no query hash is known to the store.

        Raises:
            InvalidInput: If the query is empty
            StoreError: If the lookup fails
        """
        query = list(dict.fromkeys(query_fingerprints))
        if not query:
            raise InvalidInput("Cannot recognize an empty fingerprint set")

        hits_by_hash = self.store.lookup({fp.hash for fp in query})

        votes: Counter[tuple[str, int]] = Counter()
        for fp in query:
            for track_id, anchor_time in hits_by_hash.get(fp.hash, ()):
                votes[(track_id, anchor_time - fp.anchor_time)] += 1

        if not votes:
            logger.info("[Matcher] No known hash among %d query fingerprints", len(query))
            return []

        # Strongest bucket per track; equal votes resolve to the smallest delta
        best: dict[str, tuple[int, int]] = {}
        for (track_id, delta), count in votes.items():
            current = best.get(track_id)
            if current is None or count > current[0] or (count == current[0] and delta < current[1]):
                best[track_id] = (count, delta)

        total = len(query)
        candidates = [
            MatchCandidate(
                track_id=track_id,
                offset_delta=delta,
                vote_count=count,
                confidence=count / total,
                is_confident=self._is_confident(count, total),
            )
            for track_id, (count, delta) in best.items()
        ]
        candidates.sort(key=lambda c: (-c.vote_count, c.track_id))

        logger.info(
            "[Matcher] %d query fingerprints, %d candidate tracks, best %s (%d votes)",
            total,
            len(candidates),
            candidates[0].track_id,
            candidates[0].vote_count,
        )
        return candidates

    def _is_confident(self, vote_count: int, total: int) -> bool:
        return (
            vote_count >= self.config.min_votes
            and vote_count / total >= self.config.min_vote_fraction
        )

    def identify(
        self,
        samples: np.ndarray,
        sample_rate: int,
        duration: float | None = None,
    ) -> list[MatchCandidate]:
        """Fingerprint a raw clip and recognize it.

        Args:
            samples: Mono samples of the clip
            sample_rate: Sample rate in Hz
            duration: Optional clip duration in seconds

        Returns:
            Ranked candidates, best first
        """
        query_fps = self.fingerprinter.fingerprint(samples, sample_rate, QUERY_TRACK_ID, duration)
        return self.recognize(query_fps)

    @staticmethod
    def best_match(candidates: Iterable[MatchCandidate]) -> MatchCandidate | None:
        """Return the highest-ranked confident candidate, if any."""
        for candidate in candidates:
            if candidate.is_confident:
                return candidate
        return None
