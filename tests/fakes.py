"""Shared stand-ins for the clock and the capture source."""

import numpy as np


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeSource:
    """Stands in for AudioCaptureSource; returns whatever spectrum the test sets."""

    def __init__(self, connect=True):
        self.connect = connect
        self.buffer_length = 256
        self.is_connected = False
        self.enabled = False
        self.gain = 1.0
        self.gains = []
        self.dispose_calls = 0
        self.sample = np.zeros(256, dtype=np.uint8)

    def acquire(self):
        self.enabled = True
        if self.connect:
            self.is_connected = True
        return self.connect

    def toggle(self, enabled=None):
        self.enabled = not self.enabled if enabled is None else enabled
        return self.enabled

    def set_gain(self, gain):
        self.gain = gain
        self.gains.append(gain)

    def read_sample(self):
        return self.sample

    def dispose(self):
        self.dispose_calls += 1
