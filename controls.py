"""Keyboard bindings and display helpers shared by the window and the headless host."""

from typing import Optional

from config import ACT_COUNT, TimingConfig


KEY_ACTIONS = {
    " ": "toggle_auto_play",
    "space": "toggle_auto_play",
    "p": "toggle_auto_play",
    "arrowright": "next_act",
    "right": "next_act",
    "n": "next_act",
    "d": "next_act",
    "arrowleft": "previous_act",
    "left": "previous_act",
    "b": "previous_act",
    "a": "previous_act",
    "m": "toggle_microphone",
    "q": "start_quick_demo",
    "s": "stop_demo",
}

ACT_NAMES = {
    1: "Matrix",
    2: "Desert",
    3: "Human",
    4: "Stars",
}


def handle_key(app, key: str) -> Optional[str]:
    """Dispatch a key name to the app. Returns the action taken, or None."""
    if not key:
        return None
    name = key.lower()

    if name.isdigit() and 1 <= int(name) <= ACT_COUNT:
        app.set_act(int(name))
        return f"set_act:{name}"

    action = KEY_ACTIONS.get(name)
    if action is None:
        return None
    getattr(app, action)()
    return action


def level_percent(value: float) -> int:
    """Meter fill for a 0-1 level, clamped to 0..100."""
    return int(max(0.0, min(value * 100.0, 100.0)))


def microphone_status(engine) -> str:
    if engine.is_microphone_connected:
        return "connected" if engine.is_enabled else "muted"
    if engine.source is not None and engine.is_enabled:
        return "fallback"
    return "disconnected"


def act_label(act_number: int) -> str:
    return f"Act {act_number} - {ACT_NAMES.get(act_number, '?')}"


def format_duration(ms: float) -> str:
    total_s = max(0, int(round(ms / 1000.0)))
    minutes, seconds = divmod(total_s, 60)
    return f"{minutes}:{seconds:02d}"


def total_duration_ms(timing: TimingConfig, demo: bool = False) -> float:
    """Full run length: every act plus the transitions between them."""
    if demo:
        return timing.demo_act_duration * ACT_COUNT + timing.demo_transition_duration * (ACT_COUNT - 1)
    return timing.act_duration * ACT_COUNT + timing.transition_duration * (ACT_COUNT - 1)
