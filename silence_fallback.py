"""
Silence detection and the ambient fallback signal.

When no input is available, or the input has been silent for longer than the
timeout, the audio engine reports values from ``SilenceFallbackGenerator``
instead of analysing zeros. The generator is a pure function of the clock
apart from a sparse synthetic beat drawn from an injectable RNG.
"""

import math
import random
from dataclasses import dataclass

from config import SilenceConfig
from logging_utils import log_event


@dataclass
class SilenceState:
    last_audio_time: float = 0.0      # ms
    in_silent_mode: bool = False


@dataclass(frozen=True)
class FallbackFrame:
    volume: float
    low_freq: float
    mid_freq: float
    high_freq: float
    average_frequency: float
    beat: bool


class SilenceMonitor:
    def __init__(self, config: SilenceConfig | None = None, now: float = 0.0):
        self.config = config or SilenceConfig()
        self.state = SilenceState(last_audio_time=now)

    @property
    def in_silent_mode(self) -> bool:
        return self.state.in_silent_mode

    def observe(self, raw_volume: float, now: float) -> bool:
        """Feed one raw volume reading; returns True while in silent mode."""
        state = self.state
        if raw_volume > self.config.threshold:
            state.last_audio_time = now
            if state.in_silent_mode:
                state.in_silent_mode = False
                log_event("INFO", "Silence", "Audio input detected, resuming normal mode")
        elif not state.in_silent_mode and now - state.last_audio_time > self.config.timeout_ms:
            state.in_silent_mode = True
            log_event("INFO", "Silence", "No audio input detected, switching to silent mode",
                      silent_ms=f"{now - state.last_audio_time:.0f}")
        return state.in_silent_mode

    def reset(self, now: float) -> None:
        self.state.last_audio_time = now
        self.state.in_silent_mode = False


class SilenceFallbackGenerator:
    def __init__(self, beat_probability: float = 0.01, rng: random.Random | None = None):
        self.beat_probability = beat_probability
        self.rng = rng or random.Random()

    def generate(self, now_ms: float) -> FallbackFrame:
        t = now_ms * 0.001
        volume = 0.1 + math.sin(t * 0.5) * 0.05
        low = 0.2 + math.sin(t * 0.3) * 0.1
        mid = 0.15 + math.sin(t * 0.7) * 0.08
        high = 0.1 + math.sin(t * 1.2) * 0.06
        return FallbackFrame(
            volume=volume,
            low_freq=low,
            mid_freq=mid,
            high_freq=high,
            average_frequency=(low + mid + high) / 3,
            beat=self.rng.random() < self.beat_probability,
        )
