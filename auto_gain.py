"""
Auto-gain feedback loop.

Pulls the input gain multiplier toward a target perceived loudness. The loop
settles over roughly 100 ticks, slow enough that the visuals never pump
with it.
"""

import math
from dataclasses import dataclass

from config import AutoGainConfig
from logging_utils import log_event


@dataclass
class GainState:
    """Gain multiplier and loop parameters"""
    current_gain: float = 1.0
    target_volume: float = 0.5
    adjustment_speed: float = 0.01


class AutoGainController:
    def __init__(self, config: AutoGainConfig | None = None):
        self.config = config or AutoGainConfig()
        self.enabled = self.config.enabled
        self.min_gain = self.config.min_gain
        self.max_gain = self.config.max_gain
        self.state = GainState(
            current_gain=self._clamp(self.config.initial_gain),
            target_volume=self.config.target_volume,
            adjustment_speed=self.config.adjustment_speed,
        )
        self._at_limit = False

    @property
    def current_gain(self) -> float:
        return self.state.current_gain

    def _clamp(self, gain: float) -> float:
        return max(self.min_gain, min(self.max_gain, gain))

    def desired_gain(self, raw_volume: float) -> float:
        """Gain the loop is steering toward for this raw volume (already clamped)."""
        current = self.state.current_gain
        if raw_volume > self.config.silence_floor:
            # sqrt dampens the correction compared to a linear ratio
            desired = current * math.sqrt(self.state.target_volume / raw_volume)
        elif current > self.state.target_volume:
            desired = current * self.config.silence_decay
        else:
            desired = current
        return self._clamp(desired)

    def update(self, raw_volume: float) -> float:
        """Advance the loop by one tick and return the new gain."""
        if not self.enabled:
            return self.state.current_gain

        current = self.state.current_gain
        desired = self.desired_gain(raw_volume)
        new_gain = self._clamp(current + (desired - current) * self.state.adjustment_speed)
        self.state.current_gain = new_gain

        at_limit = new_gain in (self.min_gain, self.max_gain)
        if at_limit and not self._at_limit:
            log_event("DEBUG", "AutoGain", "Gain pinned at limit", gain=f"{new_gain:.2f}")
        self._at_limit = at_limit
        return new_gain

    def set_target_volume(self, target: float) -> None:
        self.state.target_volume = max(0.0, min(1.0, float(target)))

    def reset(self) -> None:
        self.state.current_gain = self._clamp(self.config.initial_gain)
        self._at_limit = False
