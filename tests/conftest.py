"""Pytest configuration and fixtures."""

from pathlib import Path

import numpy as np
import pytest

SAMPLE_RATE = 44100


def tone_sequence(
    seed: int,
    duration_sec: float = 10.0,
    sr: int = SAMPLE_RATE,
    note_sec: float = 0.2,
) -> np.ndarray:
    """Generate a reproducible "song": chords of three random tones.

    Every note lasts note_sec and mixes three sines drawn between 150 Hz and
    4.5 kHz, so each frame carries several strong peaks in different bands.
    """
    rng = np.random.default_rng(seed)
    note_len = int(note_sec * sr)
    n_notes = int(round(duration_sec / note_sec))
    t = np.arange(note_len) / sr

    notes = []
    for _ in range(n_notes):
        freqs = rng.uniform(150.0, 4500.0, size=3)
        notes.append(sum(np.sin(2 * np.pi * f * t) for f in freqs) / 3)

    return 0.5 * np.concatenate(notes)


def sine(freq: float = 440.0, duration_sec: float = 5.0, sr: int = SAMPLE_RATE) -> np.ndarray:
    """Pure tone with exactly duration_sec * sr samples."""
    t = np.arange(int(duration_sec * sr)) / sr
    return 0.5 * np.sin(2 * np.pi * freq * t)


@pytest.fixture
def song_a() -> np.ndarray:
    return tone_sequence(seed=1)


@pytest.fixture
def song_b() -> np.ndarray:
    return tone_sequence(seed=2)


@pytest.fixture
def memory_store():
    """Provide an empty in-memory store."""
    from tunematch.store import InMemoryStore

    return InMemoryStore()


@pytest.fixture
def fingerprint_db(tmp_path: Path):
    """Provide a SQLite store in a temporary directory."""
    from tunematch.database import FingerprintDB

    return FingerprintDB(tmp_path / "fingerprints.db")


@pytest.fixture
def fingerprinter():
    """Provide a fingerprinter with default settings."""
    from tunematch.fingerprint import Fingerprinter

    return Fingerprinter()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Provide a config file that logs to the console only."""
    path = tmp_path / "config.yaml"
    path.write_text(
        "logging:\n"
        "  level: WARNING\n"
        "  file: null\n"
        "indexing:\n"
        "  workers: 1\n"
    )
    return path


@pytest.fixture
def make_song():
    """Factory for reproducible tone-sequence songs."""
    return tone_sequence


@pytest.fixture
def make_sine():
    """Factory for pure tones."""
    return sine
