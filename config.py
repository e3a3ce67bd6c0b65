# skinandbones Configuration
# All default values and constants

from dataclasses import dataclass, field, is_dataclass
from enum import IntEnum

from logging_utils import log_event


CURRENT_CONFIG_VERSION = 1

ACT_COUNT = 4                          # Fixed number of acts in the performance


class ActId(IntEnum):
    """Registered act ids"""
    MATRIX = 1
    DESERT = 2
    HUMAN = 3
    STARS = 4


@dataclass
class AudioConfig:
    """Audio capture and analyser settings"""
    sample_rate: int = 44100
    fft_size: int = 512               # Analyser FFT size; bufferLength = fft_size / 2
    channels: int = 1
    # Device index - None means use system default
    device_index: int | None = None
    smoothing_time_constant: float = 0.8  # Temporal smoothing of bin magnitudes (0-1)
    min_decibels: float = -100.0      # Maps to byte 0
    max_decibels: float = -30.0       # Maps to byte 255
    # Compressor in front of the gain stage
    compressor_threshold_db: float = -24.0
    compressor_knee_db: float = 12.0
    compressor_ratio: float = 4.0
    compressor_attack_s: float = 0.005
    compressor_release_s: float = 0.1
    history_size: int = 10            # Moving-average window for volume (ticks)


@dataclass
class AutoGainConfig:
    """Auto-gain feedback loop"""
    enabled: bool = True
    target_volume: float = 0.5        # Target RMS volume (0-1)
    adjustment_speed: float = 0.01    # Fraction of the gain error applied per tick
    min_gain: float = 0.1
    max_gain: float = 50.0
    initial_gain: float = 1.0
    silence_floor: float = 0.001      # Below this raw volume the sqrt correction is skipped
    silence_decay: float = 0.99       # Per-tick gain decay while silent and gain > target


@dataclass
class BeatConfig:
    """Beat detection parameters"""
    threshold: float = 0.3            # Volume spike threshold (0-1)
    low_freq_factor: float = 1.2      # Low band must exceed threshold * this
    cooldown_ms: float = 100.0        # Hard gap between beats
    history_ms: float = 2000.0        # Beat log retention


@dataclass
class SilenceConfig:
    """Silence detection and ambient fallback"""
    threshold: float = 0.01           # Raw volume above this counts as audio
    timeout_ms: float = 5000.0        # Silence longer than this switches to fallback data
    fallback_beat_probability: float = 0.01  # Synthetic beat chance per tick


@dataclass
class TimingConfig:
    """Act and transition durations (milliseconds)"""
    act_duration: float = 6.25 * 60 * 1000       # 6.25 minutes per act
    transition_duration: float = 10 * 1000       # 10 s crossfade
    demo_act_duration: float = 30 * 1000         # 30 s per act in demo
    demo_transition_duration: float = 10 * 1000  # 10 s crossfade in demo


@dataclass
class HostConfig:
    """Frame driver settings"""
    target_fps: int = 60
    background_fps: int = 30          # Frame rate while the window is hidden
    loop_acts: bool = False           # Wrap 4 -> 1 during performance auto-progression
    auto_request_microphone: bool = True
    initial_act: ActId = ActId.MATRIX  # Act shown when the performance starts


@dataclass
class Config:
    """Master configuration"""
    version: int = 1                  # Schema version for persisted configs
    audio: AudioConfig = field(default_factory=AudioConfig)
    auto_gain: AutoGainConfig = field(default_factory=AutoGainConfig)
    beat: BeatConfig = field(default_factory=BeatConfig)
    silence: SilenceConfig = field(default_factory=SilenceConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    host: HostConfig = field(default_factory=HostConfig)

    # Global
    log_level: str = "INFO"           # Logging level (DEBUG/INFO/WARNING/ERROR)


# Quick demo preset: 3 s per act, 0.3 s transitions
QUICK_DEMO_ACT_MS = 3000.0
QUICK_DEMO_TRANSITION_MS = 300.0


def apply_dict_to_dataclass(target, data) -> None:
    """Recursively apply values from a dict onto a dataclass instance.
    Unknown keys are ignored; IntEnum fields are coerced when possible."""
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if not hasattr(target, key):
            continue

        current = getattr(target, key)

        if is_dataclass(current) and isinstance(value, dict):
            apply_dict_to_dataclass(current, value)
            continue

        if isinstance(current, IntEnum):
            try:
                setattr(target, key, current.__class__(value))
            except ValueError:
                log_event("WARNING", "Config", "Could not convert value, keeping default",
                          key=key, type=current.__class__.__name__)
            continue

        setattr(target, key, value)


def _clamped(value, default: float, low: float, high: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = default
    return max(low, min(high, number))


def migrate_config(config: Config, loaded_version) -> None:
    """Upgrade older config structures to the current schema.
    Fills None values with defaults, clamps unsafe ranges and bumps version."""
    try:
        version = int(loaded_version) if loaded_version is not None else 0
    except (TypeError, ValueError):
        version = 0

    if version < 1:
        # Pre-versioned files stored durations in seconds
        timing = config.timing
        for name in ("act_duration", "transition_duration",
                     "demo_act_duration", "demo_transition_duration"):
            try:
                value = float(getattr(timing, name))
            except (TypeError, ValueError):
                continue
            if 0 < value < 1000:
                setattr(timing, name, value * 1000.0)

    defaults = TimingConfig()
    for name in ("act_duration", "transition_duration",
                 "demo_act_duration", "demo_transition_duration"):
        if getattr(config.timing, name, None) is None:
            setattr(config.timing, name, getattr(defaults, name))

    if getattr(config, 'log_level', None) is None:
        config.log_level = "INFO"

    # Always keep the gain loop inside a sane envelope
    gain = config.auto_gain
    gain.min_gain = _clamped(gain.min_gain, 0.1, 0.01, 1.0)
    gain.max_gain = _clamped(gain.max_gain, 50.0, gain.min_gain, 100.0)
    gain.adjustment_speed = _clamped(gain.adjustment_speed, 0.01, 0.0, 1.0)
    gain.initial_gain = _clamped(gain.initial_gain, 1.0, gain.min_gain, gain.max_gain)

    config.audio.history_size = int(_clamped(config.audio.history_size, 10, 1, 600))

    config.version = CURRENT_CONFIG_VERSION
