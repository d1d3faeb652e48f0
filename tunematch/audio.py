"""Audio decoding glue.

Decoding is delegated to librosa (soundfile, with audioread/ffmpeg as
fallback). The core only ever sees mono float samples at a fixed rate.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .errors import InvalidInput


@dataclass(frozen=True)
class AudioClip:
    """Decoded mono audio."""

    samples: np.ndarray
    sample_rate: int

    @property
    def duration(self) -> float:
        return len(self.samples) / self.sample_rate


def load_audio(
    audio_path: str | Path,
    sample_rate: int = 44100,
    offset: float = 0.0,
    duration: float | None = None,
) -> AudioClip:
    """Load an audio file as mono samples.

    Args:
        audio_path: Path to audio file
        sample_rate: Target sample rate (the file is resampled if different)
        offset: Start reading after this many seconds
        duration: Only load this many seconds

    Returns:
        AudioClip with float32 samples in [-1, 1]

    Raises:
        FileNotFoundError: If the file doesn't exist
        InvalidInput: If the file cannot be decoded or decodes to no samples
    """
    import librosa

    path = Path(audio_path)
    if not path.exists():
        raise FileNotFoundError(f"Audio file not found: {path}")

    try:
        y, sr = librosa.load(path, sr=sample_rate, mono=True, offset=offset, duration=duration)
    except Exception as e:
        raise InvalidInput(f"Cannot decode {path}: {e}") from e

    if len(y) == 0:
        raise InvalidInput(f"No audio decoded from {path}")

    return AudioClip(samples=y, sample_rate=int(sr))
