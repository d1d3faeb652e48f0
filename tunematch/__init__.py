"""tunematch - Audio fingerprinting and song recognition.

Songs are indexed by pairing spectral peaks into compact hashes. An unknown
clip is recognized by looking up its hashes and voting on the time offset
between the clip and each catalog track.

References:
- "An Industrial-Strength Audio Search Algorithm" (Wang, 2003)
"""

__version__ = "0.1.0"

from .errors import InvalidInput, StoreError, TunematchError
from .spectrogram import Spectrogram, build_spectrogram
from .peaks import Peak, extract_peaks
from .fingerprint import Fingerprint, Fingerprinter, generate_fingerprints
from .store import FingerprintStore, InMemoryStore, TrackRecord
from .database import FingerprintDB
from .matcher import MatchCandidate, Matcher
from .indexer import IndexJob, IndexResult, Indexer

__all__ = [
    "Fingerprint",
    "FingerprintDB",
    "FingerprintStore",
    "Fingerprinter",
    "InMemoryStore",
    "IndexJob",
    "IndexResult",
    "Indexer",
    "InvalidInput",
    "MatchCandidate",
    "Matcher",
    "Peak",
    "Spectrogram",
    "StoreError",
    "TrackRecord",
    "TunematchError",
    "build_spectrogram",
    "extract_peaks",
    "generate_fingerprints",
]
