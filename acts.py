"""
Acts and the act registry.

Each act is a stand-in for a visual scene: it tracks visibility, opacity and
its own transition state, and reads the audio engine once per update. The
rendering itself lives outside this project; the scheduler only ever talks to
acts through the lifecycle methods below.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterator, Optional

from config import ACT_COUNT, ActId
from errors import InvalidActTarget
from logging_utils import log_event


@dataclass
class ActGroup:
    """Drawable group: everything an act renders hangs off this node"""
    name: str
    visible: bool = True
    opacity: float = 1.0
    scale: float = 1.0


class TransitionDirection:
    ENTER = "enter"
    EXIT = "exit"


class ActState:
    IDLE = "idle"
    ENTERING = "entering"
    ACTIVE = "active"
    EXITING = "exiting"


class BaseAct:
    """Lifecycle contract shared by every act."""

    name = "Act"

    def __init__(self, act_number: int, audio=None):
        self.act_number = act_number
        self.audio = audio
        self.group = ActGroup(name=f"Act{act_number}Group")

        self.is_active = False
        self.is_initialized = False
        self.is_disposed = False
        self.transition_state = ActState.IDLE
        self.transition_progress = 0.0
        self.fade_value = 0.0

        self.time = 0.0
        self.delta_time = 0.0
        self.last_update_time = 0.0

        self.audio_level = 0.0
        self.bass_level = 0.0
        self.mid_level = 0.0
        self.treble_level = 0.0
        self.beat_detected = False

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} act={self.act_number} state={self.transition_state}>"

    @property
    def visible(self) -> bool:
        return self.group.visible

    @visible.setter
    def visible(self, value: bool) -> None:
        self.group.visible = bool(value)

    # ---------- Lifecycle ----------

    def init(self) -> None:
        if self.is_initialized:
            log_event("WARNING", "Act", "Already initialized", act=self.act_number)
            return
        self.create_content()
        self.group.visible = True
        self.is_initialized = True
        log_event("DEBUG", "Act", "Initialized", act=self.act_number, name=self.name)

    def prepare_entry(self) -> None:
        self.transition_state = ActState.ENTERING
        self.group.visible = True
        self.fade_value = 0.0
        self.transition_progress = 0.0
        self.apply_fade(0.0)
        self.on_prepare_entry()

    def start_entry(self) -> None:
        self.transition_state = ActState.ENTERING
        self.on_start_entry()

    def enter(self) -> None:
        self.is_active = True
        self.transition_state = ActState.ACTIVE
        self.group.visible = True
        self.fade_value = 1.0
        self.transition_progress = 1.0
        self.apply_fade(1.0)
        self.on_enter()
        log_event("DEBUG", "Act", "Entered", act=self.act_number)

    def start_exit(self) -> None:
        self.transition_state = ActState.EXITING
        self.on_start_exit()

    def finish_exit(self) -> None:
        self.on_finish_exit()

    def exit(self) -> None:
        self.is_active = False
        self.transition_state = ActState.IDLE
        self.transition_progress = 0.0
        self.on_exit()
        log_event("DEBUG", "Act", "Exited", act=self.act_number)

    def update_transition(self, progress: float, direction: str) -> None:
        """Set the act's fade from a blend value (0-1) in the given direction."""
        self.transition_progress = progress
        if direction == TransitionDirection.ENTER:
            self.fade_value = progress
        elif direction == TransitionDirection.EXIT:
            self.fade_value = 1.0 - progress
        self.apply_fade(self.fade_value)

    def apply_fade(self, fade_value: float) -> None:
        self.group.opacity = max(0.0, min(1.0, fade_value))

    def update(self, time: float) -> None:
        if not self.is_initialized:
            return
        self._advance_clock(time)
        self._read_audio()
        self.update_content(time)

    def update_background(self, time: float) -> None:
        # Inactive acts keep animating so a crossfade never reveals a frozen scene
        if not self.is_initialized:
            return
        self._advance_clock(time)
        self._read_audio()

    def dispose(self) -> None:
        if self.is_disposed:
            return
        self.is_disposed = True
        self.is_active = False
        self.group.visible = False
        log_event("DEBUG", "Act", "Disposed", act=self.act_number)

    # ---------- Hooks ----------

    def create_content(self) -> None:
        pass

    def update_content(self, time: float) -> None:
        pass

    def on_prepare_entry(self) -> None:
        pass

    def on_start_entry(self) -> None:
        pass

    def on_enter(self) -> None:
        pass

    def on_start_exit(self) -> None:
        pass

    def on_finish_exit(self) -> None:
        pass

    def on_exit(self) -> None:
        pass

    # ---------- Internal ----------

    def _advance_clock(self, time: float) -> None:
        self.delta_time = time - self.last_update_time if self.last_update_time > 0 else 0.0
        self.last_update_time = time
        self.time = time

    def _read_audio(self) -> None:
        if self.audio is None:
            return
        self.audio_level = self.audio.get_volume()
        self.bass_level = self.audio.get_low_freq()
        self.mid_level = self.audio.get_mid_freq()
        self.treble_level = self.audio.get_high_freq()
        self.beat_detected = self.audio.get_beat()


class Act1Matrix(BaseAct):
    name = "Matrix"


class Act2Desert(BaseAct):
    name = "Desert"


class Act3Human(BaseAct):
    name = "Human"


class Act4Stars(BaseAct):
    name = "Stars"

    def on_prepare_entry(self) -> None:
        # Starfield collapses to a point and expands on entry
        self.group.scale = 0.01

    def update_transition(self, progress: float, direction: str) -> None:
        super().update_transition(progress, direction)
        if direction == TransitionDirection.ENTER:
            self.group.scale = 0.01 + 0.99 * progress

    def on_enter(self) -> None:
        self.group.scale = 1.0

    def on_finish_exit(self) -> None:
        self.group.visible = False

    def on_exit(self) -> None:
        self.group.visible = False


ACT_CLASSES = {
    ActId.MATRIX: Act1Matrix,
    ActId.DESERT: Act2Desert,
    ActId.HUMAN: Act3Human,
    ActId.STARS: Act4Stars,
}


class ActRegistry:
    """Fixed mapping from act id (1-4) to act instance; never resized."""

    def __init__(self, acts: dict[int, BaseAct]):
        if sorted(acts) != list(range(1, ACT_COUNT + 1)):
            raise ValueError(f"Registry needs exactly acts 1..{ACT_COUNT}, got {sorted(acts)}")
        self._acts = MappingProxyType(dict(acts))

    @classmethod
    def create_default(cls, audio=None) -> "ActRegistry":
        return cls({int(act_id): act_cls(int(act_id), audio) for act_id, act_cls in ACT_CLASSES.items()})

    def get(self, act_id: int) -> BaseAct:
        try:
            return self._acts[act_id]
        except (KeyError, TypeError):
            raise InvalidActTarget(act_id) from None

    def __contains__(self, act_id) -> bool:
        return act_id in self._acts

    def __iter__(self) -> Iterator[BaseAct]:
        return iter(self._acts[i] for i in sorted(self._acts))

    def __len__(self) -> int:
        return len(self._acts)

    def ids(self) -> list[int]:
        return sorted(self._acts)

    def id_of(self, act: BaseAct) -> Optional[int]:
        for act_id, instance in self._acts.items():
            if instance is act:
                return act_id
        return None

    def init_all(self) -> None:
        for act in self:
            act.init()

    def dispose_all(self) -> None:
        for act in self:
            act.dispose()
