import random
import unittest

from beat_detector import BeatDetector
from config import BeatConfig


class TestBeatDetector(unittest.TestCase):
    def test_beat_needs_volume_and_low_spike(self):
        detector = BeatDetector(BeatConfig())
        self.assertFalse(detector.detect(0.5, 0.2, 1000.0))
        self.assertFalse(detector.detect(0.2, 0.5, 2000.0))
        self.assertTrue(detector.detect(0.5, 0.5, 3000.0))
        self.assertEqual(detector.last_beat_time, 3000.0)

    def test_low_band_needs_scaled_threshold(self):
        detector = BeatDetector(BeatConfig())
        # 0.35 > 0.3 but not > 0.3 * 1.2
        self.assertFalse(detector.detect(0.5, 0.35, 1000.0))
        self.assertTrue(detector.detect(0.5, 0.37, 2000.0))

    def test_cooldown_blocks_second_beat(self):
        detector = BeatDetector(BeatConfig())
        self.assertTrue(detector.detect(0.9, 0.9, 1000.0))
        self.assertFalse(detector.detect(0.9, 0.9, 1050.0))
        self.assertFalse(detector.detect(0.9, 0.9, 1099.0))
        self.assertTrue(detector.detect(0.9, 0.9, 1100.0))

    def test_no_two_beats_within_cooldown_for_any_input(self):
        detector = BeatDetector(BeatConfig())
        rng = random.Random(11)
        beats = []
        now = 1000.0
        for _ in range(3000):
            now += rng.choice([1.0, 5.0, 16.0, 33.0, 120.0])
            fired = detector.detect(rng.random(), rng.random(), now) if rng.random() < 0.7 else detector.trigger(now)
            if fired:
                beats.append(now)
        self.assertGreater(len(beats), 10)
        for earlier, later in zip(beats, beats[1:]):
            self.assertGreaterEqual(later - earlier, 100.0)

    def test_trigger_respects_cooldown(self):
        detector = BeatDetector(BeatConfig())
        self.assertTrue(detector.trigger(1000.0))
        self.assertFalse(detector.trigger(1040.0))
        self.assertFalse(detector.beat)
        self.assertTrue(detector.trigger(1200.0))

    def test_history_is_pruned(self):
        detector = BeatDetector(BeatConfig())
        for t in (1000.0, 1200.0, 3500.0):
            detector.detect(0.9, 0.9, t)
        self.assertEqual(detector.beat_history, [3500.0])

    def test_beats_per_minute(self):
        detector = BeatDetector(BeatConfig())
        self.assertEqual(detector.beats_per_minute(), 0.0)
        for t in (1000.0, 1500.0, 2000.0):
            detector.detect(0.9, 0.9, t)
        self.assertAlmostEqual(detector.beats_per_minute(), 120.0)

    def test_reset(self):
        detector = BeatDetector(BeatConfig())
        detector.detect(0.9, 0.9, 1000.0)
        detector.reset()
        self.assertFalse(detector.beat)
        self.assertEqual(detector.last_beat_time, 0.0)
        self.assertEqual(detector.beat_history, [])


if __name__ == "__main__":
    unittest.main()
