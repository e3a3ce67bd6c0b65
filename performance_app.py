"""
skinandbones - Performance host
Composes the audio engine, the act registry and the transition scheduler and
runs exactly one tick per host frame callback. The host (Qt timer or the
headless loop in run.py) owns the frame clock; nothing here blocks or
reschedules itself.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from acts import ActRegistry
from audio_engine import AudioEngine
from config import ACT_COUNT, Config
from logging_utils import log_event
from transition_scheduler import TransitionScheduler, monotonic_ms


@dataclass(frozen=True)
class AnimationState:
    is_playing: bool
    current_time: float       # ms elapsed in the current act
    progress: float           # 0-1 through the current act
    act: int
    is_transitioning: bool


class PerformanceApp:
    def __init__(self, config: Optional[Config] = None,
                 audio_engine: Optional[AudioEngine] = None,
                 registry: Optional[ActRegistry] = None,
                 clock: Optional[Callable[[], float]] = None,
                 saved_config: Optional[Config] = None):
        self.config = config or Config()
        # Written back on exit; session-only overrides live in self.config
        self.saved_config = saved_config or self.config
        self._clock = clock or monotonic_ms

        self.audio = audio_engine or AudioEngine(self.config)
        self.registry = registry or ActRegistry.create_default(self.audio)
        self.scheduler = TransitionScheduler(
            self.registry,
            self.config.timing,
            clock=self._clock,
            initial_act=int(self.config.host.initial_act),
            loop=self.config.host.loop_acts,
        )
        self.scheduler.on_transition_complete = self._on_transition_complete

        self.target_fps = self.config.host.target_fps
        self.last_frame_time = 0.0
        self.frame_count = 0
        self.status_message: Optional[str] = None
        self.is_initialized = False
        self.is_disposed = False

    # ---------- Setup ----------

    def init(self, now: Optional[float] = None) -> bool:
        """Bring up audio and acts. Audio failure degrades to ambient data, never raises."""
        audio_ok = self.audio.init()
        if not audio_ok:
            self.status_message = f"Audio unavailable ({self.audio.init_error}). Running on ambient fallback."
            log_event("ERROR", "App", self.status_message)
        elif self.config.host.auto_request_microphone:
            if not self.audio.request_microphone():
                self.status_message = "Microphone unavailable. Running in silent mode."

        self.scheduler.init(now)
        self.is_initialized = True
        log_event("INFO", "App", "Performance ready", act=self.get_current_act_number())
        return audio_ok

    @property
    def frame_interval(self) -> float:
        return 1000.0 / max(1, self.target_fps)

    # ---------- Frame ----------

    def tick(self, now: Optional[float] = None) -> bool:
        """Host frame callback. Runs one update when a frame interval has elapsed."""
        now = self._clock() if now is None else now
        if now - self.last_frame_time < self.frame_interval:
            return False
        self.update(now)
        self.last_frame_time = now
        self.frame_count += 1
        return True

    def update(self, now: float) -> None:
        self.audio.update()
        self.scheduler.update(now)
        self.scheduler.update_acts(now)

    def set_background(self, hidden: bool) -> None:
        """Drop the frame rate while the output is not visible."""
        host = self.config.host
        self.target_fps = host.background_fps if hidden else host.target_fps

    # ---------- Playback ----------

    @property
    def is_playing(self) -> bool:
        return self.scheduler.auto_progress

    def play(self) -> None:
        if not self.is_playing:
            self.scheduler.set_auto_progress(True)
            log_event("INFO", "App", "Performance started", act=self.get_current_act_number())

    def pause(self) -> None:
        self.scheduler.set_auto_progress(False)
        log_event("INFO", "App", "Performance paused")

    def stop(self) -> None:
        self.pause()
        self.set_act(1)
        log_event("INFO", "App", "Performance stopped")

    def toggle_auto_play(self) -> None:
        if self.is_playing:
            self.pause()
        else:
            self.play()

    def next_act(self) -> bool:
        current = self.get_current_act_number()
        if current >= ACT_COUNT:
            return False
        return self.transition_to_act(current + 1)

    def previous_act(self) -> bool:
        current = self.get_current_act_number()
        if current <= 1:
            return False
        return self.transition_to_act(current - 1)

    def set_act(self, act_number: int) -> bool:
        if not 1 <= act_number <= ACT_COUNT:
            log_event("WARNING", "App", "Act out of range", act=act_number)
            return False
        return self.transition_to_act(act_number)

    # ---------- Scheduler passthrough ----------

    def transition_to_act(self, act_number: int) -> bool:
        return self.scheduler.transition_to_act(act_number)

    def get_current_act_number(self) -> int:
        return self.scheduler.get_current_act_number()

    def get_transition_progress(self) -> float:
        return self.scheduler.get_transition_progress()

    def is_in_transition(self) -> bool:
        return self.scheduler.is_in_transition()

    def enable_demo_mode(self, enabled: bool = True) -> None:
        self.scheduler.enable_demo_mode(enabled)

    def set_demo_timing(self, act_ms: float, transition_ms: float) -> None:
        self.scheduler.set_demo_timing(act_ms, transition_ms)

    def set_timing_config(self, **durations: float) -> None:
        self.scheduler.set_timing_config(**durations)
        if self.saved_config is not self.config:
            for name, value in durations.items():
                if hasattr(self.saved_config.timing, name):
                    setattr(self.saved_config.timing, name, float(value))

    def start_quick_demo(self) -> None:
        self.scheduler.start_quick_demo()

    def stop_demo(self) -> None:
        self.scheduler.stop_demo()

    def toggle_microphone(self) -> bool:
        return self.audio.toggle_microphone()

    def get_animation_state(self, now: Optional[float] = None) -> AnimationState:
        now = self._clock() if now is None else now
        elapsed = now - self.scheduler.act_progress_timer if self.is_playing else 0.0
        duration = self.scheduler.active_act_duration()
        return AnimationState(
            is_playing=self.is_playing,
            current_time=elapsed,
            progress=min(elapsed / duration, 1.0) if duration > 0 else 1.0,
            act=self.get_current_act_number(),
            is_transitioning=self.is_in_transition(),
        )

    def _on_transition_complete(self, act_number: int, now: float) -> None:
        log_event("INFO", "App", f"Now at Act {act_number}")

    # ---------- Cleanup ----------

    def dispose(self) -> None:
        if self.is_disposed:
            return
        self.is_disposed = True
        self.scheduler.dispose()
        self.audio.dispose()
        log_event("INFO", "App", "Disposed", frames=self.frame_count)
