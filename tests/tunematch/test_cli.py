"""Tests for the tunematch command line and audio loading."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from scipy.io import wavfile

from tunematch.audio import load_audio
from tunematch.cli import build_parser, main, track_id_for
from tunematch.database import FingerprintDB
from tunematch.errors import InvalidInput


@pytest.fixture
def song_file(tmp_path: Path, make_song) -> Path:
    path = tmp_path / "first_song.wav"
    wavfile.write(path, 44100, make_song(seed=30, duration_sec=6.0).astype(np.float32))
    return path


class TestLoadAudio:
    """Audio glue."""

    def test_loads_mono_at_rate(self, song_file: Path) -> None:
        clip = load_audio(song_file, sample_rate=44100)
        assert clip.samples.ndim == 1
        assert clip.sample_rate == 44100
        assert clip.duration == pytest.approx(6.0, abs=0.01)

    def test_resamples(self, song_file: Path) -> None:
        clip = load_audio(song_file, sample_rate=22050)
        assert clip.sample_rate == 22050
        assert len(clip.samples) == pytest.approx(6 * 22050, abs=2)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_audio(tmp_path / "missing.wav")

    def test_undecodable_file(self, tmp_path: Path) -> None:
        broken = tmp_path / "broken.wav"
        broken.write_bytes(b"this is not audio" * 64)
        with pytest.raises(InvalidInput, match="Cannot decode") as exc_info:
            load_audio(broken)
        assert exc_info.value.__cause__ is not None


class TestCli:
    """End-to-end command tests against a temporary database."""

    def _run(self, config_file: Path, db: Path, *argv: str) -> int:
        return main(["--config", str(config_file), "--db", str(db), *argv])

    def test_parser_requires_command(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_stats_on_empty_catalog(self, config_file: Path, tmp_path: Path, capsys) -> None:
        assert self._run(config_file, tmp_path / "fp.db", "stats") == 0
        assert "Registered tracks:          0" in capsys.readouterr().out

    def test_index_then_identify(self, config_file: Path, tmp_path: Path, song_file: Path, capsys) -> None:
        db_path = tmp_path / "fp.db"

        assert self._run(config_file, db_path, "index", str(song_file)) == 0
        assert FingerprintDB(db_path).get_stats()["indexed_tracks"] == 1
        capsys.readouterr()

        assert self._run(config_file, db_path, "identify", str(song_file)) == 0
        out = capsys.readouterr().out
        assert "1. first_song" in out
        assert "Position in track: 0.0s" in out

    def test_index_missing_file(self, config_file: Path, tmp_path: Path) -> None:
        assert self._run(config_file, tmp_path / "fp.db", "index", str(tmp_path / "nope.wav")) == 1

    def test_identify_missing_file(self, config_file: Path, tmp_path: Path) -> None:
        assert self._run(config_file, tmp_path / "fp.db", "identify", str(tmp_path / "nope.wav")) == 1

    def test_identify_on_empty_catalog(self, config_file: Path, tmp_path: Path, song_file: Path, capsys) -> None:
        assert self._run(config_file, tmp_path / "fp.db", "identify", str(song_file)) == 0
        assert "No matches found." in capsys.readouterr().out

    def test_remove(self, config_file: Path, tmp_path: Path, song_file: Path) -> None:
        db_path = tmp_path / "fp.db"
        self._run(config_file, db_path, "index", str(song_file))
        [track] = FingerprintDB(db_path).get_all_tracks()

        assert self._run(config_file, db_path, "remove", track["track_id"]) == 0
        assert self._run(config_file, db_path, "remove", track["track_id"]) == 1
        assert FingerprintDB(db_path).get_stats()["total_fingerprints"] == 0

    def test_clear_force(self, config_file: Path, tmp_path: Path, song_file: Path) -> None:
        db_path = tmp_path / "fp.db"
        self._run(config_file, db_path, "index", str(song_file))
        assert self._run(config_file, db_path, "clear", "--force") == 0
        assert FingerprintDB(db_path).get_stats()["total_tracks"] == 0

    def test_clear_aborted(self, config_file: Path, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setattr("builtins.input", lambda _prompt: "n")
        assert self._run(config_file, tmp_path / "fp.db", "clear") == 1

    def test_bad_config(self, tmp_path: Path) -> None:
        assert main(["--config", str(tmp_path / "missing.yaml"), "stats"]) == 1

    def test_reindexing_same_file_keeps_one_track(self, config_file: Path, tmp_path: Path, song_file: Path) -> None:
        """Running index twice on one file is a safe retry, not a second track."""
        db_path = tmp_path / "fp.db"

        assert self._run(config_file, db_path, "index", str(song_file)) == 0
        first = FingerprintDB(db_path).get_stats()
        assert self._run(config_file, db_path, "index", str(song_file)) == 0
        second = FingerprintDB(db_path).get_stats()

        assert second["total_tracks"] == 1
        assert second["total_fingerprints"] == first["total_fingerprints"]
        [track] = FingerprintDB(db_path).get_all_tracks()
        assert track["track_id"] == track_id_for(song_file)

    def test_track_id_follows_resolved_path(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        assert track_id_for("song.wav") == track_id_for(tmp_path / "song.wav")
        assert track_id_for("song.wav") != track_id_for("other.wav")

    def test_list(self, config_file: Path, tmp_path: Path, song_file: Path, capsys) -> None:
        db_path = tmp_path / "fp.db"
        assert self._run(config_file, db_path, "list") == 0
        assert "No tracks registered." in capsys.readouterr().out

        self._run(config_file, db_path, "index", str(song_file))
        capsys.readouterr()

        assert self._run(config_file, db_path, "list") == 0
        out = capsys.readouterr().out
        assert track_id_for(song_file) in out
        assert "first_song" in out
        assert "1 track(s)" in out

    def test_identify_undecodable_file(self, config_file: Path, tmp_path: Path, capsys) -> None:
        broken = tmp_path / "broken.wav"
        broken.write_bytes(b"this is not audio" * 64)

        assert self._run(config_file, tmp_path / "fp.db", "identify", str(broken)) == 1
        assert "Cannot decode" in capsys.readouterr().err

    def test_index_undecodable_file(self, config_file: Path, tmp_path: Path) -> None:
        broken = tmp_path / "broken.wav"
        broken.write_bytes(b"this is not audio" * 64)

        assert self._run(config_file, tmp_path / "fp.db", "index", str(broken)) == 1
        assert FingerprintDB(tmp_path / "fp.db").get_stats()["total_tracks"] == 0
