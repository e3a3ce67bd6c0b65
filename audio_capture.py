"""
skinandbones - Audio capture source
Acquires a live input device through sounddevice and turns the latest block
into a byte frequency spectrum (compressor -> gain -> analyser). When the
device is refused or missing, a silent oscillator keeps the signal path alive.
"""

import math
import threading
from typing import Callable, Optional

import numpy as np

from config import AudioConfig
from errors import InitializationFailure, PermissionDenied
from logging_utils import log_event

# PortAudio may be missing entirely on headless machines
try:
    import sounddevice as sd
    _SOUNDDEVICE_ERROR = None
except (ImportError, OSError) as e:
    sd = None
    _SOUNDDEVICE_ERROR = e


class DynamicsCompressor:
    """Block-rate soft-knee compressor in front of the gain stage."""

    def __init__(self, sample_rate: int, threshold_db: float = -24.0, knee_db: float = 12.0,
                 ratio: float = 4.0, attack_s: float = 0.005, release_s: float = 0.1):
        self.sample_rate = sample_rate
        self.threshold_db = threshold_db
        self.knee_db = knee_db
        self.ratio = max(1.0, ratio)
        self.attack_s = attack_s
        self.release_s = release_s
        self.reduction_db = 0.0       # current (smoothed) gain reduction, <= 0

    def static_curve(self, level_db: float) -> float:
        """Gain reduction in dB (<= 0) for an input level in dB."""
        over = level_db - self.threshold_db
        slope = 1.0 / self.ratio - 1.0
        if self.knee_db > 0 and abs(over) <= self.knee_db / 2:
            return slope * (over + self.knee_db / 2) ** 2 / (2 * self.knee_db)
        if over <= 0:
            return 0.0
        return slope * over

    def process(self, block: np.ndarray) -> np.ndarray:
        if block.size == 0:
            return block
        peak = float(np.max(np.abs(block)))
        level_db = 20.0 * math.log10(peak) if peak > 1e-9 else -200.0
        target = self.static_curve(level_db)

        block_s = block.size / float(self.sample_rate)
        time_constant = self.attack_s if target < self.reduction_db else self.release_s
        coef = math.exp(-block_s / time_constant) if time_constant > 0 else 0.0
        self.reduction_db = coef * self.reduction_db + (1.0 - coef) * target

        return block * (10.0 ** (self.reduction_db / 20.0))

    def reset(self) -> None:
        self.reduction_db = 0.0


class ByteFrequencyAnalyser:
    """
    Blackman-windowed FFT with temporal smoothing, mapped to unsigned bytes.
    Produces ``fft_size // 2`` bins per call, 0 at ``min_db`` and 255 at ``max_db``.
    """

    def __init__(self, fft_size: int = 512, smoothing: float = 0.8,
                 min_db: float = -100.0, max_db: float = -30.0):
        self.fft_size = fft_size
        self.buffer_length = fft_size // 2
        self.smoothing = min(max(smoothing, 0.0), 1.0)
        self.min_db = min_db
        self.max_db = max_db
        self._window = np.blackman(fft_size)
        self._smoothed = np.zeros(self.buffer_length)

    def _frame(self, block: np.ndarray) -> np.ndarray:
        if block.size >= self.fft_size:
            return block[-self.fft_size:]
        frame = np.zeros(self.fft_size)
        frame[self.fft_size - block.size:] = block
        return frame

    def process(self, block: np.ndarray) -> np.ndarray:
        frame = self._frame(np.asarray(block, dtype=np.float64))
        magnitude = np.abs(np.fft.rfft(frame * self._window))[:self.buffer_length] / self.fft_size
        self._smoothed = self.smoothing * self._smoothed + (1.0 - self.smoothing) * magnitude

        db = 20.0 * np.log10(np.maximum(self._smoothed, 1e-12))
        scaled = 255.0 * (db - self.min_db) / (self.max_db - self.min_db)
        return np.clip(scaled, 0, 255).astype(np.uint8)

    def reset(self) -> None:
        self._smoothed = np.zeros(self.buffer_length)


StreamFactory = Callable[[Callable], object]


class AudioCaptureSource:
    """
    Owns the input stream and the analysis chain.

    The PortAudio callback only copies the newest block under a lock; all
    analysis happens in ``read_sample`` on the caller's tick.
    """

    def __init__(self, config: AudioConfig | None = None, stream_factory: Optional[StreamFactory] = None):
        self.config = config or AudioConfig()
        if stream_factory is None and sd is None:
            raise InitializationFailure(f"Audio backend unavailable: {_SOUNDDEVICE_ERROR}")

        self._stream_factory = stream_factory or self._default_stream
        self.stream = None
        self.enabled = False
        self.is_connected = False
        self.is_silent_mode = False
        self.disposed = False
        self.gain = 1.0

        self._latest: Optional[np.ndarray] = None
        self._lock = threading.Lock()
        self.compressor: Optional[DynamicsCompressor] = DynamicsCompressor(
            self.config.sample_rate,
            threshold_db=self.config.compressor_threshold_db,
            knee_db=self.config.compressor_knee_db,
            ratio=self.config.compressor_ratio,
            attack_s=self.config.compressor_attack_s,
            release_s=self.config.compressor_release_s,
        )
        self.analyser: Optional[ByteFrequencyAnalyser] = ByteFrequencyAnalyser(
            fft_size=self.config.fft_size,
            smoothing=self.config.smoothing_time_constant,
            min_db=self.config.min_decibels,
            max_db=self.config.max_decibels,
        )

    @property
    def buffer_length(self) -> int:
        return self.config.fft_size // 2

    # ---------- Public API ----------

    def acquire(self) -> bool:
        """Connect the input device; on refusal fall back to the silent source."""
        if self.is_connected:
            return True
        if self.disposed:
            return False

        try:
            self._open_stream()
        except PermissionDenied as e:
            log_event("WARNING", "Capture", "Microphone access denied", error=e)
            self._start_silent_mode()
            return False

        self.is_connected = True
        self.is_silent_mode = False
        self.enabled = True
        log_event("INFO", "Capture", "Microphone connected",
                  device=self.config.device_index if self.config.device_index is not None else "default",
                  sample_rate=self.config.sample_rate)
        return True

    def toggle(self, enabled: Optional[bool] = None) -> bool:
        """Retry acquisition when not connected, otherwise flip the enabled flag."""
        if not self.is_connected:
            return self.acquire()
        self.enabled = (not self.enabled) if enabled is None else bool(enabled)
        log_event("INFO", "Capture", f"Microphone {'enabled' if self.enabled else 'disabled'}")
        return self.enabled

    def set_gain(self, gain: float) -> None:
        self.gain = float(gain)

    def read_sample(self) -> np.ndarray:
        """Byte spectrum of the newest block (all zeros when nothing is captured)."""
        if self.analyser is None:
            return np.zeros(self.buffer_length, dtype=np.uint8)

        with self._lock:
            block = self._latest.copy() if self._latest is not None else None
        if block is None or self.is_silent_mode:
            block = np.zeros(self.config.fft_size, dtype=np.float32)

        if self.compressor is not None:
            block = self.compressor.process(block)
        return self.analyser.process(block * self.gain)

    def dispose(self) -> None:
        """Disconnect input, gain stage and analyser. Safe to call repeatedly."""
        if self.disposed:
            return
        self.disposed = True

        if self.stream is not None:
            try:
                self.stream.stop()
                self.stream.close()
            except Exception as e:
                log_event("WARNING", "Capture", "Error closing input stream", error=e)
            self.stream = None

        self.compressor = None
        self.gain = 0.0
        self.analyser = None
        with self._lock:
            self._latest = None

        self.enabled = False
        self.is_connected = False
        self.is_silent_mode = False
        log_event("INFO", "Capture", "Disposed")

    # ---------- Internal ----------

    def _default_stream(self, callback):
        return sd.InputStream(
            device=self.config.device_index,
            channels=self.config.channels,
            samplerate=self.config.sample_rate,
            blocksize=self.config.fft_size,
            dtype='float32',
            callback=callback,
        )

    def _open_stream(self) -> None:
        try:
            stream = self._stream_factory(self._on_audio)
            stream.start()
        except Exception as e:
            raise PermissionDenied(str(e)) from e
        self.stream = stream

    def _start_silent_mode(self) -> None:
        # Zero-amplitude oscillator: the chain keeps producing (empty) spectra
        self.is_silent_mode = True
        self.enabled = True
        log_event("INFO", "Capture", "Running in silent mode (no microphone)")

    def _on_audio(self, indata, frames, time_info, status):
        if status:
            log_event("DEBUG", "Capture", "Stream status", status=status)
        data = np.asarray(indata, dtype=np.float32)
        if data.ndim > 1:
            mono = np.mean(data, axis=1) if data.shape[1] > 1 else data[:, 0]
        else:
            mono = data
        with self._lock:
            self._latest = mono.copy()


def list_input_devices() -> list[dict]:
    """Input-capable devices as dicts (index, name, channels, sample_rate)."""
    if sd is None:
        log_event("WARNING", "Capture", "sounddevice not available", error=_SOUNDDEVICE_ERROR)
        return []
    devices = []
    for i, d in enumerate(sd.query_devices()):
        if d['max_input_channels'] <= 0:
            continue
        devices.append({
            'index': i,
            'name': d['name'],
            'channels': d['max_input_channels'],
            'sample_rate': d['default_samplerate'],
        })
    return devices
