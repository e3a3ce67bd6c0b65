import random
import unittest

from auto_gain import AutoGainController
from config import AutoGainConfig


class TestAutoGain(unittest.TestCase):
    def test_quiet_input_raises_gain_by_damped_step(self):
        ctrl = AutoGainController(AutoGainConfig())
        # desired = 1 * sqrt(0.5 / 0.125) = 2, step 1% of the error
        self.assertAlmostEqual(ctrl.update(0.125), 1.01, places=9)

    def test_loud_input_lowers_gain(self):
        ctrl = AutoGainController(AutoGainConfig())
        self.assertLess(ctrl.update(0.9), 1.0)

    def test_gain_stays_within_bounds(self):
        cfg = AutoGainConfig()
        ctrl = AutoGainController(cfg)
        rng = random.Random(7)
        for _ in range(5000):
            gain = ctrl.update(rng.choice([0.0, 0.0005, 0.002, rng.random()]))
            self.assertGreaterEqual(gain, cfg.min_gain)
            self.assertLessEqual(gain, cfg.max_gain)

    def test_persistent_faint_input_pins_at_max(self):
        cfg = AutoGainConfig()
        ctrl = AutoGainController(cfg)
        for _ in range(5000):
            ctrl.update(0.002)
        self.assertAlmostEqual(ctrl.current_gain, cfg.max_gain, places=6)

    def test_persistent_loud_input_pins_at_min(self):
        cfg = AutoGainConfig()
        ctrl = AutoGainController(cfg)
        for _ in range(5000):
            ctrl.update(1.0)
        self.assertAlmostEqual(ctrl.current_gain, cfg.min_gain, places=6)

    def test_silence_decays_gain_above_target(self):
        ctrl = AutoGainController(AutoGainConfig())
        # desired = 1 * 0.99; new = 1 - 0.01 * 0.01
        self.assertAlmostEqual(ctrl.update(0.0), 0.9999, places=9)

    def test_silence_holds_gain_at_or_below_target(self):
        ctrl = AutoGainController(AutoGainConfig(initial_gain=0.4))
        self.assertAlmostEqual(ctrl.update(0.0), 0.4, places=9)

    def test_disabled_loop_leaves_gain(self):
        ctrl = AutoGainController(AutoGainConfig(enabled=False, initial_gain=2.0))
        for i in range(100):
            ctrl.update(0.001 if i % 2 else 0.9)
        self.assertEqual(ctrl.current_gain, 2.0)

    def test_initial_gain_is_clamped_and_reset_restores_it(self):
        ctrl = AutoGainController(AutoGainConfig(initial_gain=80.0))
        self.assertEqual(ctrl.current_gain, 50.0)
        ctrl.update(1.0)
        ctrl.reset()
        self.assertEqual(ctrl.current_gain, 50.0)

    def test_set_target_volume_is_clamped(self):
        ctrl = AutoGainController(AutoGainConfig())
        ctrl.set_target_volume(1.7)
        self.assertEqual(ctrl.state.target_volume, 1.0)


if __name__ == "__main__":
    unittest.main()
