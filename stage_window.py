"""
skinandbones - Stage window
Operator view for a running performance: level meters, act crossfade, beat
light and status line. A QTimer drives PerformanceApp.tick; the window holds
no performance state of its own.
"""

import numpy as np
import pyqtgraph as pg
from PyQt6.QtCore import QEvent, Qt, QTimer
from PyQt6.QtGui import QColor
from PyQt6.QtWidgets import QHBoxLayout, QLabel, QMainWindow, QVBoxLayout, QWidget

from config import ACT_COUNT
from config_persistence import save_config
from controls import act_label, format_duration, handle_key, level_percent, microphone_status, total_duration_ms
from logging_utils import log_event
from performance_app import PerformanceApp


LEVEL_NAMES = ("Volume", "Low", "Mid", "High")

QT_KEY_NAMES = {
    Qt.Key.Key_Space.value: " ",
    Qt.Key.Key_Right.value: "arrowright",
    Qt.Key.Key_Left.value: "arrowleft",
}


class LevelBars(pg.PlotWidget):
    """Fixed set of 0-1 bars with one colour per bar"""

    def __init__(self, labels, hue_span=270, parent=None):
        super().__init__(parent)
        self.setBackground('#0a0a12')
        self.setMouseEnabled(x=False, y=False)
        self.setMenuEnabled(False)
        self.hideAxis('left')
        self.setXRange(-0.5, len(labels) - 0.5)
        self.setYRange(0, 1.05)

        axis = self.getAxis('bottom')
        axis.setTicks([list(enumerate(labels))])

        count = len(labels)
        colors = [QColor.fromHsv(int(i / max(1, count) * hue_span), 220, 255, 220) for i in range(count)]
        self.bar_item = pg.BarGraphItem(x=np.arange(count), height=np.zeros(count), width=0.7, brushes=colors)
        self.addItem(self.bar_item)

    def set_levels(self, values) -> None:
        self.bar_item.setOpts(height=np.clip(np.asarray(values, dtype=float), 0.0, 1.0))


class BeatLight(QLabel):
    def __init__(self, parent=None):
        super().__init__("BEAT", parent)
        self.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.setFixedSize(64, 32)
        self.set_on(False)

    def set_on(self, on: bool) -> None:
        if on:
            self.setStyleSheet("background-color: #ff3232; color: #fff; font-weight: bold; border-radius: 4px;")
        else:
            self.setStyleSheet("background-color: #2a2a2a; color: #666; border-radius: 4px;")


class StageWindow(QMainWindow):
    def __init__(self, app: PerformanceApp):
        super().__init__()
        self.app = app
        self.setWindowTitle("Skin and Bones")
        self.resize(720, 420)
        self.setStyleSheet("QMainWindow { background-color: #121218; } QLabel { color: #ccc; }")

        central = QWidget()
        layout = QVBoxLayout(central)

        header = QHBoxLayout()
        self.act_label = QLabel(act_label(app.get_current_act_number()))
        self.act_label.setStyleSheet("font-size: 20px; font-weight: bold; color: #0af;")
        self.beat_light = BeatLight()
        header.addWidget(self.act_label)
        header.addStretch(1)
        header.addWidget(self.beat_light)
        layout.addLayout(header)

        meters = QHBoxLayout()
        self.level_bars = LevelBars(LEVEL_NAMES)
        self.act_bars = LevelBars([f"Act {i}" for i in range(1, ACT_COUNT + 1)], hue_span=200)
        meters.addWidget(self.level_bars, 3)
        meters.addWidget(self.act_bars, 2)
        layout.addLayout(meters, 1)

        self.status_label = QLabel("")
        self.status_label.setStyleSheet("color: #aaa;")
        layout.addWidget(self.status_label)

        self.help_label = QLabel(
            "Space/P play-pause   Left/Right change act   1-4 jump   M mic   Q quick demo   S stop demo"
        )
        self.help_label.setStyleSheet("color: #666; font-size: 11px;")
        layout.addWidget(self.help_label)

        self.setCentralWidget(central)

        # Poll well above target fps; tick() does the frame limiting
        self.frame_timer = QTimer()
        self.frame_timer.timeout.connect(self._on_frame)
        self.frame_timer.start(max(1, int(app.frame_interval / 2)))

    def _on_frame(self) -> None:
        if self.app.tick():
            self._refresh()

    def _refresh(self) -> None:
        app = self.app
        audio = app.audio
        self.level_bars.set_levels([
            audio.get_volume(), audio.get_low_freq(), audio.get_mid_freq(), audio.get_high_freq(),
        ])
        self.act_bars.set_levels([act.group.opacity if act.visible else 0.0 for act in app.registry])
        self.beat_light.set_on(audio.get_beat())
        self.act_label.setText(act_label(app.get_current_act_number()))

        anim = app.get_animation_state()
        timing = app.config.timing
        parts = [
            "Playing" if anim.is_playing else "Paused",
            f"mic {microphone_status(audio)}",
            f"vol {level_percent(audio.get_volume())}%",
            f"gain {audio.get_gain():.2f}",
            f"act time {format_duration(anim.current_time)}",
            f"show {format_duration(total_duration_ms(timing, app.scheduler.demo_mode))}",
        ]
        if anim.is_transitioning:
            parts.append(f"transition {level_percent(app.get_transition_progress())}%")
        if app.status_message:
            parts.append(app.status_message)
        self.status_label.setText("   ".join(parts))

    def keyPressEvent(self, event):
        key = QT_KEY_NAMES.get(int(event.key()), event.text())
        if handle_key(self.app, key) is None:
            super().keyPressEvent(event)

    def changeEvent(self, event):
        super().changeEvent(event)
        if event.type() == QEvent.Type.WindowStateChange:
            self.app.set_background(self.isMinimized())

    def closeEvent(self, event):
        """Stop the frame timer, release audio and persist config"""
        self.frame_timer.stop()
        self.app.dispose()
        if not save_config(self.app.saved_config):
            log_event("WARNING", "UI", "Config not saved on exit")
        event.accept()
