import math
from collections import deque
from dataclasses import dataclass

import numpy as np


LOW_BAND_END = 0.1     # Fraction of bins in the low band
MID_BAND_END = 0.5     # Fraction of bins up to the end of the mid band


@dataclass(frozen=True)
class BandLevels:
    """Per-tick feature values (all normalized 0-1)"""
    volume: float
    low_freq: float
    mid_freq: float
    high_freq: float
    average_frequency: float


def band_edges(buffer_length: int) -> tuple[int, int]:
    """Return (low_end, mid_end) bin indices for a buffer of this length."""
    return int(math.floor(buffer_length * LOW_BAND_END)), int(math.floor(buffer_length * MID_BAND_END))


def raw_volume(sample: np.ndarray) -> float:
    """RMS of the byte amplitudes, normalized to 0-1."""
    if sample is None or len(sample) == 0:
        return 0.0
    bins = np.asarray(sample, dtype=np.float64)
    return float(math.sqrt(float(np.mean(bins * bins))) / 255.0)


def band_average(sample: np.ndarray, start: int, end: int) -> float:
    """Mean of bins [start, end) normalized to 0-1; empty ranges give 0."""
    if end <= start:
        return 0.0
    band = np.asarray(sample[start:end], dtype=np.float64)
    if band.size == 0:
        return 0.0
    return float(np.mean(band)) / 255.0


class AudioFeatureExtractor:
    """
    Derives smoothed volume and three band energies from one byte spectrum
    per tick. Volume is a simple moving average over the last
    ``history_size`` raw RMS values.
    """

    def __init__(self, history_size: int = 10):
        self.history_size = max(1, int(history_size))
        self.volume_history: deque[float] = deque(maxlen=self.history_size)

    def smooth(self, raw: float) -> float:
        self.volume_history.append(raw)
        return sum(self.volume_history) / len(self.volume_history)

    def process(self, sample: np.ndarray, raw: float | None = None) -> BandLevels:
        if raw is None:
            raw = raw_volume(sample)
        volume = self.smooth(raw)

        length = len(sample) if sample is not None else 0
        low_end, mid_end = band_edges(length)
        low = band_average(sample, 0, low_end) if length else 0.0
        mid = band_average(sample, low_end, mid_end) if length else 0.0
        high = band_average(sample, mid_end, length) if length else 0.0

        return BandLevels(
            volume=volume,
            low_freq=low,
            mid_freq=mid,
            high_freq=high,
            average_frequency=(low + mid + high) / 3,
        )

    def reset(self) -> None:
        self.volume_history.clear()
