"""Tests for tunematch.peaks.

Focus on:
- band mapping and the adaptive threshold
- edge cases: one frame, silence, duration cap
- the pure-tone scenario
"""

from __future__ import annotations

import numpy as np
import pytest

from tunematch.config import PeakConfig
from tunematch.errors import InvalidInput
from tunematch.peaks import _rolling_mean, band_bin_ranges, extract_peaks
from tunematch.spectrogram import Spectrogram, build_spectrogram


def _spectrogram(magnitudes: np.ndarray) -> Spectrogram:
    return Spectrogram(magnitudes=magnitudes, sample_rate=44100, window_size=4096, hop_size=1024)


class TestRollingMean:
    """Unit tests for the partial-window moving average."""

    def test_constant_signal_unchanged(self) -> None:
        values = np.full(30, 4.0)
        np.testing.assert_allclose(_rolling_mean(values, 7), values)

    def test_edges_use_partial_window(self) -> None:
        """First value averages only itself and the frames after it."""
        values = np.array([0.0, 3.0, 6.0, 9.0, 12.0])
        out = _rolling_mean(values, 3)
        assert out[0] == pytest.approx(1.5)  # (0 + 3) / 2
        assert out[2] == pytest.approx(6.0)  # (3 + 6 + 9) / 3
        assert out[-1] == pytest.approx(10.5)  # (9 + 12) / 2

    def test_single_value(self) -> None:
        np.testing.assert_allclose(_rolling_mean(np.array([2.5]), 21), [2.5])


class TestBandRanges:
    def test_default_bands_at_44100(self) -> None:
        ranges = band_bin_ranges(_spectrogram(np.zeros((1, 2049))), PeakConfig().band_edges_hz)
        assert ranges == [(0, 9), (9, 19), (19, 37), (37, 74), (74, 149), (149, 464)]

    def test_bands_clipped_to_available_bins(self) -> None:
        ranges = band_bin_ranges(_spectrogram(np.zeros((1, 50))), [0.0, 200.0, 1000.0, 5000.0])
        assert ranges == [(0, 19), (19, 50)]


class TestExtractPeaks:
    """Behaviour of extract_peaks()."""

    def test_pure_tone_scenario(self, make_sine) -> None:
        """5 s of 440 Hz: one peak per frame, all in the 400-800 Hz band."""
        spectrogram = build_spectrogram(make_sine(440.0, 5.0), 44100)
        peaks = extract_peaks(spectrogram, duration=5.0)

        assert len(peaks) >= int(0.95 * spectrogram.n_frames)
        assert {p.bin_index for p in peaks} == {41}
        assert all(37 <= p.bin_index < 74 for p in peaks)

    def test_peaks_ordered_by_frame_then_bin(self, make_song) -> None:
        spectrogram = build_spectrogram(make_song(seed=7, duration_sec=3.0), 44100)
        peaks = extract_peaks(spectrogram)
        keys = [(p.frame_index, p.bin_index) for p in peaks]
        assert keys == sorted(keys)
        assert len(set(keys)) == len(keys)

    def test_at_most_one_peak_per_band_per_frame(self, make_song) -> None:
        spectrogram = build_spectrogram(make_song(seed=8, duration_sec=3.0), 44100)
        peaks = extract_peaks(spectrogram)
        per_frame: dict[int, int] = {}
        for p in peaks:
            per_frame[p.frame_index] = per_frame.get(p.frame_index, 0) + 1
        assert max(per_frame.values()) <= len(PeakConfig().band_edges_hz) - 1

    def test_silence_yields_no_peaks(self) -> None:
        spectrogram = build_spectrogram(np.zeros(44100), 44100)
        assert extract_peaks(spectrogram) == []

    def test_loud_band_survives_quiet_bands_do_not(self) -> None:
        mags = np.zeros((5, 2049))
        mags[:, 50] = 100.0  # band 37..74
        mags[:, 5] = 1.0  # band 0..9, far below the level
        peaks = extract_peaks(_spectrogram(mags))
        assert [(p.frame_index, p.bin_index) for p in peaks] == [(f, 50) for f in range(5)]

    def test_steady_tones_kept_in_every_frame(self, make_sine) -> None:
        """Sustained tones stay above the frame level instead of their own average."""
        y = make_sine(440.0, 2.0) + make_sine(1000.0, 2.0)
        spectrogram = build_spectrogram(y, 44100)
        peaks = extract_peaks(spectrogram)

        assert [(p.frame_index, p.bin_index) for p in peaks] == [
            (f, b) for f in range(spectrogram.n_frames) for b in (41, 93)
        ]

    def test_threshold_adapts_to_loudness(self) -> None:
        """Scaling the whole spectrogram does not change which peaks survive."""
        rng = np.random.default_rng(0)
        mags = rng.random((40, 2049)) * 10
        quiet = extract_peaks(_spectrogram(mags))
        loud = extract_peaks(_spectrogram(mags * 1000))
        assert [(p.frame_index, p.bin_index) for p in quiet] == [
            (p.frame_index, p.bin_index) for p in loud
        ]

    def test_one_frame_spectrogram(self) -> None:
        """Minimum input works with no neighbourhood history."""
        spectrogram = build_spectrogram(np.sin(np.arange(4096) * 0.1), 44100)
        assert spectrogram.n_frames == 1
        peaks = extract_peaks(spectrogram)
        assert all(p.frame_index == 0 for p in peaks)

    def test_duration_truncates_frames(self, make_sine) -> None:
        spectrogram = build_spectrogram(make_sine(440.0, 5.0), 44100)
        peaks = extract_peaks(spectrogram, duration=1.0)
        assert peaks
        assert max(p.frame_index for p in peaks) < spectrogram.frames_for_duration(1.0)

    def test_max_duration_caps_frames(self, make_sine) -> None:
        spectrogram = build_spectrogram(make_sine(440.0, 5.0), 44100)
        peaks = extract_peaks(spectrogram, duration=5.0, config=PeakConfig(max_duration_sec=2.0))
        assert max(p.frame_index for p in peaks) < spectrogram.frames_for_duration(2.0)

    def test_empty_spectrogram_rejected(self) -> None:
        with pytest.raises(InvalidInput):
            extract_peaks(_spectrogram(np.zeros((0, 2049))))

    def test_non_positive_duration_rejected(self, make_sine) -> None:
        spectrogram = build_spectrogram(make_sine(440.0, 1.0), 44100)
        with pytest.raises(InvalidInput):
            extract_peaks(spectrogram, duration=0.0)
