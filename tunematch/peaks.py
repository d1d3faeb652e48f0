"""Band-wise peak picking with an adaptive threshold.

The frequency axis is split into a handful of bands. In every frame the
loudest bin of each band is a candidate ("band champion"). A candidate is
kept when it is louder than the rolling average of the champion level around
that frame, which rejects silence and evens out differences in loudness
between recordings.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .config import PeakConfig
from .errors import InvalidInput
from .spectrogram import Spectrogram


@dataclass(frozen=True, slots=True)
class Peak:
    """A local energy maximum in the spectrogram."""

    frame_index: int
    bin_index: int
    magnitude: float


def band_bin_ranges(spectrogram: Spectrogram, band_edges_hz: list[float]) -> list[tuple[int, int]]:
    """Map band edges in Hz to half-open bin ranges, dropping empty bands."""
    edges = [
        min(spectrogram.bin_for_frequency(hz), spectrogram.n_bins)
        for hz in band_edges_hz
    ]
    return [(lo, hi) for lo, hi in zip(edges, edges[1:]) if hi > lo]


def _rolling_mean(values: np.ndarray, window: int) -> np.ndarray:
    """Centred moving average that only counts the frames actually present.

    Frames near either end average over the partial window instead of
    treating missing frames as zeros.
    """
    from scipy.ndimage import uniform_filter1d

    if window <= 1 or len(values) == 1:
        return values.astype(np.float64, copy=True)

    sums = uniform_filter1d(values.astype(np.float64), size=window, mode="constant", cval=0.0)
    counts = uniform_filter1d(np.ones(len(values)), size=window, mode="constant", cval=0.0)
    return sums / counts


def extract_peaks(
    spectrogram: Spectrogram,
    duration: float | None = None,
    config: PeakConfig | None = None,
) -> list[Peak]:
    """Find the dominant time-frequency bins of a spectrogram.

    Args:
        spectrogram: Spectrogram to analyse
        duration: Track duration in seconds; frames past it (or past
            ``config.max_duration_sec``) are ignored
        config: Peak extraction settings

    Returns:
        Peaks ordered by frame, then by bin

    Raises:
        InvalidInput: If the spectrogram has no frames or duration <= 0
    """
    config = config or PeakConfig()

    if spectrogram.n_frames == 0:
        raise InvalidInput("Cannot extract peaks from an empty spectrogram")
    if duration is not None and duration <= 0:
        raise InvalidInput(f"Duration must be positive, got {duration}")

    cap_sec = config.max_duration_sec if duration is None else min(duration, config.max_duration_sec)
    n_frames = min(spectrogram.n_frames, spectrogram.frames_for_duration(cap_sec))
    magnitudes = spectrogram.magnitudes[:n_frames]

    bands = band_bin_ranges(spectrogram, config.band_edges_hz)
    if not bands:
        return []

    rows = np.arange(n_frames)
    champion_bins = np.empty((n_frames, len(bands)), dtype=np.int64)
    champion_mags = np.empty((n_frames, len(bands)), dtype=np.float64)

    for b, (lo, hi) in enumerate(bands):
        block = magnitudes[:, lo:hi]
        idx = np.argmax(block, axis=1)
        champion_bins[:, b] = idx + lo
        champion_mags[:, b] = block[rows, idx]

    # Adaptive threshold: rolling average of the per-frame champion level
    level = _rolling_mean(champion_mags.mean(axis=1), config.rolling_window)
    threshold = config.threshold_factor * level

    keep = (champion_mags > threshold[:, None]) & (champion_mags > config.min_magnitude)

    # np.nonzero walks row-major: frame ascending, then band (and bin) ascending
    frames, band_idx = np.nonzero(keep)
    return [
        Peak(
            frame_index=int(f),
            bin_index=int(champion_bins[f, b]),
            magnitude=float(champion_mags[f, b]),
        )
        for f, b in zip(frames, band_idx)
    ]
