"""Configuration management using Pydantic and YAML."""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class SpectrogramConfig(BaseModel):
    """Short-time Fourier transform settings."""

    window_size: int = Field(ge=16, default=4096)
    hop_size: int = Field(gt=0, default=1024)
    window: str = "hann"
    power: float = Field(gt=0, default=1.0)  # 1.0 = magnitude, 2.0 = power

    @model_validator(mode="after")
    def _check_overlap(self) -> "SpectrogramConfig":
        # Peak picking needs at least 50% overlap between frames
        if self.hop_size > self.window_size // 2:
            raise ValueError(
                f"hop_size ({self.hop_size}) must be at most half of "
                f"window_size ({self.window_size})"
            )
        return self


class PeakConfig(BaseModel):
    """Peak extraction settings.

    The band layout and the rolling window length drive recognition accuracy
    and should be tuned against a reference corpus.
    """

    band_edges_hz: list[float] = [0.0, 100.0, 200.0, 400.0, 800.0, 1600.0, 5000.0]
    rolling_window: int = Field(ge=1, default=21)  # frames
    threshold_factor: float = Field(gt=0, default=1.0)
    min_magnitude: float = Field(ge=0, default=0.1)
    max_duration_sec: float = Field(gt=0, default=900.0)

    @model_validator(mode="after")
    def _check_bands(self) -> "PeakConfig":
        edges = self.band_edges_hz
        if len(edges) < 2:
            raise ValueError("band_edges_hz needs at least two edges")
        if edges[0] < 0:
            raise ValueError("band_edges_hz must be non-negative")
        if any(b <= a for a, b in zip(edges, edges[1:])):
            raise ValueError("band_edges_hz must be strictly increasing")
        return self


class HashConfig(BaseModel):
    """Anchor/target pairing and hash packing.

    max_time_delta trades shift tolerance against hash collisions;
    pairs_per_anchor trades fingerprint density against storage cost.
    """

    pairs_per_anchor: int = Field(ge=1, default=5)
    max_time_delta: int = Field(ge=1, default=64)  # frames
    freq_bits: int = Field(ge=1, default=10)
    freq_shift: int = Field(ge=0, default=1)
    delta_bits: int = Field(ge=1, default=12)

    @model_validator(mode="after")
    def _check_packing(self) -> "HashConfig":
        if self.max_time_delta >= 1 << self.delta_bits:
            raise ValueError(
                f"max_time_delta ({self.max_time_delta}) does not fit in "
                f"{self.delta_bits} bits"
            )
        if 2 * self.freq_bits + self.delta_bits > 64:
            raise ValueError("hash layout exceeds 64 bits")
        return self


class FingerprintConfig(BaseModel):
    """Everything that influences the produced hashes."""

    spectrogram: SpectrogramConfig = Field(default_factory=SpectrogramConfig)
    peaks: PeakConfig = Field(default_factory=PeakConfig)
    hashing: HashConfig = Field(default_factory=HashConfig)


class MatchConfig(BaseModel):
    """Acceptance thresholds for a confident match."""

    min_votes: int = Field(ge=1, default=5)
    min_vote_fraction: float = Field(ge=0, le=1, default=0.02)


class StoreConfig(BaseModel):
    """SQLite fingerprint store configuration."""

    db_path: Path = Field(default_factory=lambda: Path.home() / ".tunematch" / "fingerprints.db")
    timeout: float = Field(gt=0, default=30.0)
    batch_size: int = Field(ge=1, default=10_000)

    @field_validator("db_path")
    @classmethod
    def _expand_user(cls, value: Path) -> Path:
        return value.expanduser()


class IndexConfig(BaseModel):
    """Batch indexing configuration."""

    workers: int = Field(ge=1, default_factory=lambda: max(1, (os.cpu_count() or 2) - 1))
    sample_rate: int = Field(gt=0, default=44100)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str | None = "tunematch.log"


class TunematchConfig(BaseModel):
    """Main application configuration."""

    fingerprint: FingerprintConfig = Field(default_factory=FingerprintConfig)
    matching: MatchConfig = Field(default_factory=MatchConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    indexing: IndexConfig = Field(default_factory=IndexConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Path | None = None) -> TunematchConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, searches the default
            locations and falls back to built-in defaults.

    Returns:
        TunematchConfig instance

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        ValueError: If config file is invalid
    """
    if config_path is None:
        possible_paths = [
            Path.cwd() / "config" / "config.yaml",
            Path.home() / ".config" / "tunematch" / "config.yaml",
            Path.home() / ".tunematch" / "config.yaml",
        ]

        for path in possible_paths:
            if path.exists():
                config_path = path
                break
        else:
            return TunematchConfig()

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f)

    return TunematchConfig(**(data or {}))
