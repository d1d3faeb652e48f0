"""Combinatorial hashing of spectral peak pairs.

Each peak acts as an anchor and is paired with a few of the peaks that follow
it closely in time (the target zone). A pair is packed into one integer:

    [ anchor bin | target bin | frame delta ]

Only integer arithmetic is involved, so identical peak pairs hash identically
on every machine even if the upstream spectrogram differs in the last bits.
Because the hash only depends on the relative timing inside the pair, a clip
cut from anywhere in a track produces the same hashes as the track itself.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .config import FingerprintConfig, HashConfig
from .errors import InvalidInput
from .peaks import Peak, extract_peaks
from .spectrogram import build_spectrogram


@dataclass(frozen=True, slots=True)
class Fingerprint:
    """A hash bound to a track and to the frame of its anchor peak.

    Attributes:
        hash: Packed (anchor bin, target bin, frame delta)
        track_id: Opaque track identifier
        anchor_time: Frame index of the anchor peak
    """

    hash: int
    track_id: str
    anchor_time: int


def quantize_bin(bin_index: int, config: HashConfig) -> int:
    """Reduce a frequency bin to ``config.freq_bits`` bits."""
    return min(bin_index >> config.freq_shift, (1 << config.freq_bits) - 1)


def compute_hash(anchor: Peak, target: Peak, config: HashConfig | None = None) -> int:
    """Pack an anchor/target pair into a fixed-width integer.

    Args:
        anchor: Earlier peak
        target: Later peak
        config: Bit budget of each field

    Returns:
        Hash of width ``2 * freq_bits + delta_bits`` bits
    """
    config = config or HashConfig()
    delta = min(target.frame_index - anchor.frame_index, config.max_time_delta)
    return (
        (quantize_bin(anchor.bin_index, config) << (config.freq_bits + config.delta_bits))
        | (quantize_bin(target.bin_index, config) << config.delta_bits)
        | delta
    )


def generate_fingerprints(
    peaks: Iterable[Peak],
    track_id: str,
    config: HashConfig | None = None,
) -> list[Fingerprint]:
    """Turn a set of peaks into fingerprints for one track.

    Args:
        peaks: Peaks of the track, in any order
        track_id: Identifier the fingerprints are bound to
        config: Target zone and hash layout

    Returns:
        Unique fingerprints in production order (anchor by anchor)

    Raises:
        InvalidInput: If there are no peaks
    """
    config = config or HashConfig()
    ordered = sorted(peaks, key=lambda p: (p.frame_index, p.bin_index))

    if not ordered:
        raise InvalidInput("Cannot generate fingerprints without peaks")

    fingerprints: dict[Fingerprint, None] = {}

    for i, anchor in enumerate(ordered):
        paired = 0
        for j in range(i + 1, len(ordered)):
            target = ordered[j]
            delta = target.frame_index - anchor.frame_index
            if delta <= 0:
                continue
            if delta > config.max_time_delta or paired >= config.pairs_per_anchor:
                break

            fp = Fingerprint(
                hash=compute_hash(anchor, target, config),
                track_id=track_id,
                anchor_time=anchor.frame_index,
            )
            fingerprints.setdefault(fp, None)
            paired += 1

    return list(fingerprints)


class Fingerprinter:
    """Run the full samples -> spectrogram -> peaks -> fingerprints pipeline.

    Holds no state besides its configuration, so one instance can be shared
    or rebuilt inside worker processes.
    """

    def __init__(self, config: FingerprintConfig | None = None):
        """Initialize fingerprinter.

        Args:
            config: Spectrogram, peak and hashing settings
        """
        self.config = config or FingerprintConfig()

    def frame_duration(self, sample_rate: int) -> float:
        """Seconds between two frames at ``sample_rate``."""
        return self.config.spectrogram.hop_size / sample_rate

    def extract_peaks(
        self,
        samples: np.ndarray,
        sample_rate: int,
        duration: float | None = None,
    ) -> list[Peak]:
        spectrogram = build_spectrogram(samples, sample_rate, self.config.spectrogram)
        return extract_peaks(spectrogram, duration, self.config.peaks)

    def fingerprint(
        self,
        samples: np.ndarray,
        sample_rate: int,
        track_id: str,
        duration: float | None = None,
    ) -> list[Fingerprint]:
        """Fingerprint an in-memory sample sequence.

        Args:
            samples: Mono samples
            sample_rate: Sample rate in Hz
            track_id: Identifier to bind the fingerprints to
            duration: Optional track duration in seconds

        Returns:
            List of fingerprints

        Raises:
            InvalidInput: On empty input or when no peak survives extraction
        """
        peaks = self.extract_peaks(samples, sample_rate, duration)
        return generate_fingerprints(peaks, track_id, self.config.hashing)

    def fingerprint_file(
        self,
        audio_path: str | Path,
        track_id: str,
        sample_rate: int = 44100,
    ) -> list[Fingerprint]:
        """Load an audio file and fingerprint it.

        Args:
            audio_path: Path to audio file
            track_id: Identifier to bind the fingerprints to
            sample_rate: Rate the file is resampled to

        Returns:
            List of fingerprints
        """
        from .audio import load_audio

        clip = load_audio(audio_path, sample_rate=sample_rate)
        return self.fingerprint(clip.samples, clip.sample_rate, track_id, clip.duration)
