from config import BeatConfig
from logging_utils import log_event


class BeatDetector:
    """
    Cooldown-gated transient detector.

    A beat needs both an overall loudness spike and a bass spike, which keeps
    broadband noise from firing it. After every beat the detector stays
    silent for ``cooldown_ms`` no matter what the input does.
    """

    def __init__(self, config: BeatConfig | None = None):
        self.config = config or BeatConfig()
        self.threshold = self.config.threshold
        self.beat = False
        self.last_beat_time = 0.0
        self.beat_history: list[float] = []

    def _in_cooldown(self, now: float) -> bool:
        return now - self.last_beat_time < self.config.cooldown_ms

    def _record(self, now: float) -> None:
        self.last_beat_time = now
        self.beat_history.append(now)
        self.beat_history = [t for t in self.beat_history if now - t < self.config.history_ms]

    def detect(self, volume: float, low_freq: float, now: float) -> bool:
        if self._in_cooldown(now):
            self.beat = False
            return False

        volume_spike = volume > self.threshold
        low_spike = low_freq > self.threshold * self.config.low_freq_factor

        if volume_spike and low_spike:
            self.beat = True
            self._record(now)
            log_event("DEBUG", "Beat", "Beat", volume=f"{volume:.3f}", low=f"{low_freq:.3f}")
        else:
            self.beat = False
        return self.beat

    def trigger(self, now: float) -> bool:
        """Register a synthetic beat, still subject to the cooldown."""
        if self._in_cooldown(now):
            self.beat = False
            return False
        self.beat = True
        self._record(now)
        return True

    def clear(self) -> None:
        self.beat = False

    def beats_per_minute(self) -> float:
        """Tempo estimate from the retained beat log (0 when fewer than two beats)."""
        if len(self.beat_history) < 2:
            return 0.0
        span = self.beat_history[-1] - self.beat_history[0]
        if span <= 0:
            return 0.0
        return 60000.0 * (len(self.beat_history) - 1) / span

    def reset(self) -> None:
        self.beat = False
        self.last_beat_time = 0.0
        self.beat_history.clear()
