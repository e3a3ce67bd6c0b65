"""
skinandbones - Audio Engine
Runs the per-tick audio feature pipeline: capture -> auto-gain -> silence
check -> features -> beat detection. Falls back to ambient synthetic values
whenever there is no usable input.
"""

import random
import time
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from audio_capture import AudioCaptureSource
from auto_gain import AutoGainController
from beat_detector import BeatDetector
from config import Config
from errors import InitializationFailure
from feature_extractor import AudioFeatureExtractor, raw_volume
from logging_utils import log_event
from silence_fallback import SilenceFallbackGenerator, SilenceMonitor


@dataclass
class AudioState:
    """Latest audio features, refreshed once per tick"""
    volume: float = 0.0
    low_freq: float = 0.0
    mid_freq: float = 0.0
    high_freq: float = 0.0
    average_frequency: float = 0.0
    beat: bool = False
    last_beat_time: float = 0.0       # ms


@dataclass(frozen=True)
class AudioData:
    """Snapshot handed to the acts each frame"""
    frequency_data: np.ndarray
    volume: float
    bass: float
    mid: float
    treble: float
    pitch: float


def wall_clock_ms() -> float:
    return time.time() * 1000.0


class AudioEngine:
    """
    Owns the capture source and every analysis stage. ``update`` is the only
    method that mutates the audio state; everything else reads it.
    """

    def __init__(self, config: Optional[Config] = None,
                 source_factory: Optional[Callable] = None,
                 clock: Optional[Callable[[], float]] = None,
                 rng: Optional[random.Random] = None):
        self.config = config or Config()
        self._source_factory = source_factory or AudioCaptureSource
        self._clock = clock or wall_clock_ms

        self.source = None
        self.init_error: Optional[str] = None
        self.is_enabled = False

        self.auto_gain = AutoGainController(self.config.auto_gain)
        self.extractor = AudioFeatureExtractor(self.config.audio.history_size)
        self.beat_detector = BeatDetector(self.config.beat)
        self.silence = SilenceMonitor(self.config.silence, now=self._clock())
        self.fallback = SilenceFallbackGenerator(self.config.silence.fallback_beat_probability, rng)

        self.state = AudioState()
        self._sample: Optional[np.ndarray] = None
        self._reset_session_stats()

    # ---------- Lifecycle ----------

    def init(self) -> bool:
        """Build the capture chain. Returns False (and records the error) when impossible."""
        if self.source is not None:
            return True
        try:
            self.source = self._source_factory(self.config.audio)
        except InitializationFailure as e:
            self.init_error = str(e)
            log_event("ERROR", "Audio", "Audio initialization failed", error=e)
            return False

        self.init_error = None
        self.source.set_gain(self.auto_gain.current_gain)
        log_event("INFO", "Audio", "Audio analyzer initialized",
                  fft_size=self.config.audio.fft_size, bins=self.source.buffer_length)
        return True

    @property
    def is_microphone_connected(self) -> bool:
        return bool(self.source is not None and self.source.is_connected)

    @property
    def in_silent_mode(self) -> bool:
        return self.silence.in_silent_mode

    def request_microphone(self) -> bool:
        if self.source is None:
            log_event("WARNING", "Audio", "Microphone requested before audio initialization")
            return False
        if self.source.is_connected:
            return True

        connected = self.source.acquire()
        self.is_enabled = self.source.enabled
        self.silence.reset(self._clock())
        return connected

    def toggle_microphone(self) -> bool:
        """Flip input on/off, or retry acquisition if never connected."""
        if self.source is None:
            return False
        if self.source.is_connected:
            self.source.toggle()
            self.is_enabled = self.source.enabled
        else:
            self.request_microphone()
        return self.is_enabled

    def dispose(self) -> None:
        self._log_shutdown_summary()
        if self.source is not None:
            self.source.dispose()
            self.source = None
        self.is_enabled = False

    # ---------- Per-tick pipeline ----------

    def update(self, now: Optional[float] = None) -> AudioState:
        now = self._clock() if now is None else now

        if not self.is_enabled or self.source is None:
            self._apply_fallback(now)
            return self.state

        sample = self.source.read_sample()
        self._sample = sample
        raw = raw_volume(sample)

        if self.auto_gain.enabled:
            self.source.set_gain(self.auto_gain.update(raw))

        if self.silence.observe(raw, now):
            self._apply_fallback(now)
            self._session_silent_frames += 1
            return self.state

        levels = self.extractor.process(sample, raw)
        state = self.state
        state.volume = levels.volume
        state.low_freq = levels.low_freq
        state.mid_freq = levels.mid_freq
        state.high_freq = levels.high_freq
        state.average_frequency = levels.average_frequency
        state.beat = self.beat_detector.detect(levels.volume, levels.low_freq, now)
        state.last_beat_time = self.beat_detector.last_beat_time

        self._update_session_stats(raw, state.beat)
        return state

    def generate_fallback_data(self, now: Optional[float] = None) -> AudioState:
        now = self._clock() if now is None else now
        self._apply_fallback(now)
        return self.state

    def _apply_fallback(self, now: float) -> None:
        frame = self.fallback.generate(now)
        self._sample = None
        state = self.state
        state.volume = frame.volume
        state.low_freq = frame.low_freq
        state.mid_freq = frame.mid_freq
        state.high_freq = frame.high_freq
        state.average_frequency = frame.average_frequency
        if frame.beat:
            state.beat = self.beat_detector.trigger(now)
        else:
            self.beat_detector.clear()
            state.beat = False
        state.last_beat_time = self.beat_detector.last_beat_time

    # ---------- Getters ----------

    def get_volume(self) -> float:
        return self.state.volume

    def get_low_freq(self) -> float:
        return self.state.low_freq

    def get_mid_freq(self) -> float:
        return self.state.mid_freq

    def get_high_freq(self) -> float:
        return self.state.high_freq

    def get_beat(self) -> bool:
        return self.state.beat

    def get_gain(self) -> float:
        return self.auto_gain.current_gain

    def get_bpm(self) -> float:
        return self.beat_detector.beats_per_minute()

    def get_audio_data(self) -> AudioData:
        frequency_data = self._sample if self._sample is not None else np.zeros(0, dtype=np.uint8)
        return AudioData(
            frequency_data=frequency_data,
            volume=self.state.volume,
            bass=self.state.low_freq,
            mid=self.state.mid_freq,
            treble=self.state.high_freq,
            pitch=self.state.average_frequency,
        )

    def get_volume_normalized(self, low: float = 0.0, high: float = 1.0) -> float:
        return low + self.state.volume * (high - low)

    def get_frequency_normalized(self, kind: str = "average", low: float = 0.0, high: float = 1.0) -> float:
        values = {
            "low": self.state.low_freq,
            "mid": self.state.mid_freq,
            "high": self.state.high_freq,
        }
        freq = values.get(kind, self.state.average_frequency)
        return low + freq * (high - low)

    # ---------- Session stats ----------

    def _reset_session_stats(self) -> None:
        self._session_started_at = time.time()
        self._session_frame_count = 0
        self._session_silent_frames = 0
        self._session_beats = 0
        self._session_raw_min: Optional[float] = None
        self._session_raw_max: Optional[float] = None
        self._session_raw_sum = 0.0

    def _update_session_stats(self, raw: float, beat: bool) -> None:
        self._session_frame_count += 1
        self._session_raw_sum += raw
        if beat:
            self._session_beats += 1
        if self._session_raw_min is None or raw < self._session_raw_min:
            self._session_raw_min = raw
        if self._session_raw_max is None or raw > self._session_raw_max:
            self._session_raw_max = raw

    def _log_shutdown_summary(self) -> None:
        if self._session_frame_count <= 0:
            return

        elapsed_s = max(0.0, time.time() - self._session_started_at)
        raw_min = float(self._session_raw_min or 0.0)
        raw_max = float(self._session_raw_max or 0.0)
        raw_mean = self._session_raw_sum / float(self._session_frame_count)

        log_event(
            "INFO",
            "Audio",
            "Shutdown levels summary",
            frames=self._session_frame_count,
            silent_frames=self._session_silent_frames,
            seconds=f"{elapsed_s:.1f}",
            beats=self._session_beats,
            raw_rms_min=f"{raw_min:.6f}",
            raw_rms_max=f"{raw_max:.6f}",
            raw_rms_mean=f"{raw_mean:.6f}",
            gain=f"{self.auto_gain.current_gain:.3f}",
        )
        self._reset_session_stats()
