"""
skinandbones - Transition Scheduler
Crossfades between the current act and a target act in three phases:

  FADE_OUT    0.00 - 0.25   outgoing act starts exiting, incoming act prepared
  TRANSITION  0.25 - 0.75   incoming act starts entering, becomes the current act
  FADE_IN     0.75 - 1.00   outgoing act finishes exiting

Opacity is blended continuously from an eased progress value so both acts are
partially visible for most of the transition. At most one transition runs at
a time; requests made while one is in flight are ignored.
"""

import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from acts import ActRegistry, BaseAct, TransitionDirection
from config import ACT_COUNT, QUICK_DEMO_ACT_MS, QUICK_DEMO_TRANSITION_MS, TimingConfig
from errors import InvalidActTarget
from logging_utils import log_event


class TransitionPhase(Enum):
    IDLE = "idle"
    FADE_OUT = "fade_out"
    TRANSITION = "transition"
    FADE_IN = "fade_in"


FADE_OUT_END = 0.25
TRANSITION_END = 0.75
PREVIOUS_FADE_SPAN = 0.5      # eased progress over which the outgoing act fades to 0
NEXT_FADE_START = 0.2         # eased progress at which the incoming act starts to show


@dataclass
class TransitionState:
    phase: TransitionPhase = TransitionPhase.IDLE
    progress: float = 0.0
    previous_act: Optional[BaseAct] = None
    next_act: Optional[BaseAct] = None
    start_time: float = 0.0
    current_act_number: int = 1


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def ease_in_out_cubic(x: float) -> float:
    return 4 * x * x * x if x < 0.5 else 1 - (-2 * x + 2) ** 3 / 2


def crossfade_opacities(progress: float) -> tuple[float, float]:
    """(previous, next) act opacity for a raw transition progress."""
    eased = ease_in_out_cubic(_clamp01(progress))
    previous = 1.0 - _clamp01(eased / PREVIOUS_FADE_SPAN)
    nxt = _clamp01((eased - NEXT_FADE_START) / (1.0 - NEXT_FADE_START)) if eased > NEXT_FADE_START else 0.0
    return previous, nxt


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class TransitionScheduler:
    def __init__(self, registry: ActRegistry, timing: Optional[TimingConfig] = None,
                 clock: Optional[Callable[[], float]] = None,
                 initial_act: int = 1, loop: bool = False):
        self.registry = registry
        self.timing = timing or TimingConfig()
        self._clock = clock or monotonic_ms

        self.current_act = registry.get(initial_act)
        self.state = TransitionState(current_act_number=initial_act)

        self.demo_mode = False
        self.auto_progress = False
        self.loop = loop
        self.act_progress_timer = self._clock()

        # Host hook, called with (act_number, now) when a transition completes
        self.on_transition_complete: Optional[Callable[[int, float], None]] = None

    # ---------- Setup ----------

    def init(self, now: Optional[float] = None) -> None:
        """Initialize every act; only the current one starts entered and visible."""
        now = self._clock() if now is None else now
        self.registry.init_all()
        for act in self.registry:
            if act is self.current_act:
                act.enter()
            else:
                act.visible = False
                act.apply_fade(0.0)
        self.act_progress_timer = now
        log_event("INFO", "Scheduler", "Initialized", acts=len(self.registry),
                  current=self.state.current_act_number)

    # ---------- Transitions ----------

    def transition_to_act(self, act_number: int, now: Optional[float] = None) -> bool:
        """Start a crossfade to ``act_number``. Returns False when nothing was started."""
        state = self.state
        if act_number == state.current_act_number or state.phase != TransitionPhase.IDLE:
            return False

        try:
            next_act = self.registry.get(act_number)
        except InvalidActTarget as e:
            log_event("WARNING", "Scheduler", "Ignoring transition", error=e)
            return False

        now = self._clock() if now is None else now
        previous_act = self.current_act

        state.previous_act = previous_act
        state.next_act = next_act
        state.phase = TransitionPhase.FADE_OUT
        state.progress = 0.0
        state.start_time = now

        previous_act.start_exit()
        next_act.prepare_entry()
        next_act.visible = True

        log_event("INFO", "Scheduler", "Transitioning",
                  from_act=state.current_act_number, to_act=act_number,
                  duration_ms=f"{self.active_transition_duration():.0f}",
                  demo=self.demo_mode)
        return True

    def update(self, now: Optional[float] = None) -> TransitionPhase:
        """Advance the state machine for this tick and return the phase afterwards."""
        now = self._clock() if now is None else now
        if self.state.phase == TransitionPhase.IDLE:
            if self.auto_progress:
                self._update_auto_progress(now)
            return self.state.phase

        self._advance(now)
        return self.state.phase

    def _advance(self, now: float) -> None:
        state = self.state
        duration = self.active_transition_duration()
        progress = _clamp01((now - state.start_time) / duration) if duration > 0 else 1.0
        state.progress = progress

        previous_opacity, next_opacity = crossfade_opacities(progress)
        state.previous_act.update_transition(1.0 - previous_opacity, TransitionDirection.EXIT)
        state.next_act.update_transition(next_opacity, TransitionDirection.ENTER)

        # Thresholds are checked in order so a late tick can cross several at once
        if state.phase == TransitionPhase.FADE_OUT and progress >= FADE_OUT_END:
            state.phase = TransitionPhase.TRANSITION
            state.next_act.start_entry()
            self.current_act = state.next_act
            state.current_act_number = self.registry.id_of(state.next_act)

        if state.phase == TransitionPhase.TRANSITION and progress >= TRANSITION_END:
            state.phase = TransitionPhase.FADE_IN
            state.previous_act.finish_exit()

        if state.phase == TransitionPhase.FADE_IN and progress >= 1.0:
            self._complete(now)

    def _complete(self, now: float) -> None:
        state = self.state
        previous_act, next_act = state.previous_act, state.next_act

        previous_act.exit()
        previous_act.visible = False
        next_act.enter()

        state.previous_act = None
        state.next_act = None
        state.progress = 0.0
        state.phase = TransitionPhase.IDLE

        self.act_progress_timer = now
        log_event("INFO", "Scheduler", "Transition complete", act=state.current_act_number)
        if self.on_transition_complete is not None:
            self.on_transition_complete(state.current_act_number, now)

    def _update_auto_progress(self, now: float) -> None:
        if now - self.act_progress_timer < self.active_act_duration():
            return
        next_act = self.state.current_act_number + 1
        if next_act > ACT_COUNT:
            if not (self.demo_mode or self.loop):
                return
            next_act = 1
        self.transition_to_act(next_act, now)

    def update_acts(self, now: float) -> None:
        """Per-frame act updates: the current act in full, the rest in the background."""
        for act in self.registry:
            if act is self.current_act:
                act.update(now)
            else:
                act.update_background(now)

    # ---------- Queries ----------

    def get_current_act(self) -> BaseAct:
        return self.current_act

    def get_current_act_number(self) -> int:
        return self.state.current_act_number

    def get_transition_progress(self) -> float:
        return self.state.progress if self.is_in_transition() else 0.0

    def is_in_transition(self) -> bool:
        return self.state.phase != TransitionPhase.IDLE

    def get_phase(self) -> TransitionPhase:
        return self.state.phase

    def snapshot(self) -> TransitionState:
        return replace(self.state)

    def active_transition_duration(self) -> float:
        return self.timing.demo_transition_duration if self.demo_mode else self.timing.transition_duration

    def active_act_duration(self) -> float:
        return self.timing.demo_act_duration if self.demo_mode else self.timing.act_duration

    # ---------- Timing / demo ----------

    def enable_demo_mode(self, enabled: bool = True) -> None:
        self.demo_mode = bool(enabled)
        log_event("INFO", "Scheduler", f"Demo mode {'enabled' if self.demo_mode else 'disabled'}")

    def set_auto_progress(self, enabled: bool = True, now: Optional[float] = None) -> None:
        self.auto_progress = bool(enabled)
        self.act_progress_timer = self._clock() if now is None else now
        log_event("INFO", "Scheduler", f"Auto-progress {'enabled' if self.auto_progress else 'disabled'}")

    def set_demo_timing(self, act_duration: float = 5000, transition_duration: float = 500) -> None:
        self.timing.demo_act_duration = float(act_duration)
        self.timing.demo_transition_duration = float(transition_duration)
        log_event("INFO", "Scheduler", "Demo timing",
                  act_ms=f"{act_duration:.0f}", transition_ms=f"{transition_duration:.0f}")

    def set_timing_config(self, **durations: float) -> None:
        """Update any of the TimingConfig durations (milliseconds)."""
        for name, value in durations.items():
            if not hasattr(self.timing, name):
                log_event("WARNING", "Scheduler", "Unknown timing field ignored", field=name)
                continue
            setattr(self.timing, name, float(value))
        log_event(
            "INFO",
            "Scheduler",
            "Timing updated",
            act_min=f"{self.timing.act_duration / 60000:.2f}",
            transition_s=f"{self.timing.transition_duration / 1000:.1f}",
            demo_act_s=f"{self.timing.demo_act_duration / 1000:.1f}",
            demo_transition_s=f"{self.timing.demo_transition_duration / 1000:.1f}",
        )

    def start_quick_demo(self, now: Optional[float] = None) -> None:
        """Cycle through all acts quickly: 3 s per act, 0.3 s transitions."""
        self.enable_demo_mode(True)
        self.set_demo_timing(QUICK_DEMO_ACT_MS, QUICK_DEMO_TRANSITION_MS)
        self.set_auto_progress(True, now)
        log_event("INFO", "Scheduler", "Quick demo started")

    def stop_demo(self) -> None:
        self.enable_demo_mode(False)
        self.set_auto_progress(False)
        log_event("INFO", "Scheduler", "Demo stopped")

    def dispose(self) -> None:
        self.auto_progress = False
        self.registry.dispose_all()
