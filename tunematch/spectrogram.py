"""Short-time magnitude spectrogram of a mono sample sequence.

Frames are taken without centring or padding so the frame count follows
``floor((len(samples) - window_size) / hop_size) + 1``. A clip shorter than
one window is zero-padded to exactly one frame.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from .config import SpectrogramConfig
from .errors import InvalidInput


@dataclass(frozen=True)
class Spectrogram:
    """Time-frequency magnitude matrix.

    Attributes:
        magnitudes: Array of shape (n_frames, n_bins)
        sample_rate: Sample rate of the source samples
        window_size: FFT window length in samples
        hop_size: Distance between frame starts in samples
    """

    magnitudes: np.ndarray
    sample_rate: int
    window_size: int
    hop_size: int

    @property
    def n_frames(self) -> int:
        return int(self.magnitudes.shape[0])

    @property
    def n_bins(self) -> int:
        return int(self.magnitudes.shape[1])

    @property
    def bin_hz(self) -> float:
        """Width of one frequency bin in Hz."""
        return self.sample_rate / self.window_size

    def frames_for_duration(self, seconds: float) -> int:
        """Number of frames whose start lies before ``seconds``."""
        return max(1, math.ceil(seconds * self.sample_rate / self.hop_size))

    def bin_for_frequency(self, hz: float) -> int:
        return int(round(hz / self.bin_hz))


def _as_mono_float(samples: np.ndarray) -> np.ndarray:
    """Convert PCM or multi-channel input to a 1-D float64 array."""
    import librosa

    y = np.asarray(samples)
    if np.issubdtype(y.dtype, np.integer):
        y = y.astype(np.float64) / float(np.iinfo(y.dtype).max)
    else:
        y = y.astype(np.float64, copy=False)

    if y.ndim == 2:
        # librosa wants (channels, samples); soundfile and scipy give (samples, channels)
        if y.shape[0] > y.shape[1]:
            y = y.T
        y = librosa.to_mono(np.ascontiguousarray(y))
    elif y.ndim != 1:
        raise InvalidInput(f"Expected 1-D or 2-D samples, got {y.ndim} dimensions")

    return y


def build_spectrogram(
    samples: np.ndarray,
    sample_rate: int,
    config: SpectrogramConfig | None = None,
) -> Spectrogram:
    """Build the magnitude spectrogram of ``samples``.

    Args:
        samples: Audio samples, mono or multi-channel in either
            (channels, samples) or (samples, channels) layout
        sample_rate: Sample rate in Hz
        config: STFT settings (defaults: 4096 window, 1024 hop, Hann)

    Returns:
        Spectrogram with one row per frame

    Raises:
        InvalidInput: If samples are empty or not finite, or sample_rate <= 0
    """
    import librosa

    config = config or SpectrogramConfig()

    if sample_rate is None or sample_rate <= 0:
        raise InvalidInput(f"Sample rate must be positive, got {sample_rate}")
    if samples is None or np.size(samples) == 0:
        raise InvalidInput("Cannot build a spectrogram from empty samples")

    y = _as_mono_float(samples)
    if y.size == 0:
        raise InvalidInput("Cannot build a spectrogram from empty samples")
    if not np.all(np.isfinite(y)):
        raise InvalidInput("Samples contain NaN or infinite values")

    if len(y) < config.window_size:
        y = np.pad(y, (0, config.window_size - len(y)))

    stft = librosa.stft(
        y,
        n_fft=config.window_size,
        hop_length=config.hop_size,
        window=config.window,
        center=False,
    )
    magnitudes = np.abs(stft)
    if config.power != 1.0:
        magnitudes = magnitudes ** config.power

    return Spectrogram(
        magnitudes=np.ascontiguousarray(magnitudes.T),
        sample_rate=int(sample_rate),
        window_size=config.window_size,
        hop_size=config.hop_size,
    )
